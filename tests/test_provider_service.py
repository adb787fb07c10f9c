import asyncio
import json
from unittest import IsolatedAsyncioTestCase, TestCase
from unittest.mock import patch

from kye.backend.config import ProviderConfig
from kye.backend.errors import (
	API_ERROR,
	AUTH_ERROR,
	CONFIG_ERROR,
	INVALID_REQUEST,
	PARSE_ERROR,
	RATE_LIMIT,
	SERVER_ERROR,
	ProviderError,
)
from kye.backend.schemas import InterpretRequest
from kye.backend.services import provider_service
from kye.backend.services.prompt_service import build_prompts

from provider_fakes import (
	VALID_REPLY,
	APITimeoutError,
	FakeClient,
	FakeStatusError,
	RecordingSleep,
	completion,
	fake_stream,
	stream_chunk,
)


CONFIG = ProviderConfig(api_key="test-key", retry_delay_s=1.0)
PROMPTS = build_prompts(InterpretRequest(message="Sure, great idea 🙃", platform="SLACK", context="COWORKER"))


class ClassifyProviderExceptionTests(TestCase):
	def test_status_codes_map_to_taxonomy(self) -> None:
		cases = {
			401: (AUTH_ERROR, False),
			429: (RATE_LIMIT, True),
			500: (SERVER_ERROR, True),
			503: (SERVER_ERROR, True),
			400: (INVALID_REQUEST, False),
			404: (INVALID_REQUEST, False),
		}
		for status, (code, retryable) in cases.items():
			error = provider_service.classify_provider_exception(FakeStatusError(status))
			self.assertEqual(error.code, code, status)
			self.assertEqual(error.retryable, retryable, status)
			self.assertEqual(error.status_code, status)

	def test_timeout_is_retryable_server_error(self) -> None:
		error = provider_service.classify_provider_exception(APITimeoutError("slow"))
		self.assertEqual(error.code, SERVER_ERROR)
		self.assertEqual(error.status_code, 504)
		self.assertTrue(error.retryable)

	def test_unknown_failure_is_fatal_api_error(self) -> None:
		error = provider_service.classify_provider_exception(RuntimeError("boom"))
		self.assertEqual(error.code, API_ERROR)
		self.assertFalse(error.retryable)

	def test_provider_errors_pass_through(self) -> None:
		original = ProviderError(code=CONFIG_ERROR, message="missing key")
		self.assertIs(provider_service.classify_provider_exception(original), original)


class ParseInterpretationResponseTests(TestCase):
	def test_valid_reply_parses(self) -> None:
		response = provider_service.parse_interpretation_response(json.dumps(VALID_REPLY))
		self.assertEqual(response.metrics.sarcasm_probability, 70)
		self.assertEqual(response.emojis[0].character, "🙃")

	def test_code_fenced_reply_parses(self) -> None:
		raw = "```json\n" + json.dumps(VALID_REPLY) + "\n```"
		response = provider_service.parse_interpretation_response(raw)
		self.assertEqual(response.metrics.overall_tone, "neutral")

	def test_out_of_range_metrics_are_rejected(self) -> None:
		for field in ("sarcasmProbability", "passiveAggressionProbability", "confidence"):
			for value in (-1, 101):
				reply = json.loads(json.dumps(VALID_REPLY))
				reply["metrics"][field] = value
				with self.assertRaises(ProviderError) as ctx:
					provider_service.parse_interpretation_response(json.dumps(reply))
				self.assertEqual(ctx.exception.code, PARSE_ERROR)
				self.assertFalse(ctx.exception.retryable)

	def test_non_json_reply_is_parse_error(self) -> None:
		with self.assertRaises(ProviderError) as ctx:
			provider_service.parse_interpretation_response("I cannot help with that.")
		self.assertEqual(ctx.exception.code, PARSE_ERROR)

	def test_unknown_severity_is_rejected(self) -> None:
		reply = dict(VALID_REPLY, redFlags=[{"type": "guilt", "description": "x", "severity": "extreme"}])
		with self.assertRaises(ProviderError):
			provider_service.parse_interpretation_response(json.dumps(reply))


class CallWithRetryTests(IsolatedAsyncioTestCase):
	async def test_rate_limited_twice_then_succeeds_after_two_retries(self) -> None:
		attempts = []
		sleep = RecordingSleep()

		async def operation():
			attempts.append(1)
			if len(attempts) < 3:
				raise FakeStatusError(429)
			return "ok"

		with self.assertLogs("kye.backend.services.provider_service", level="WARNING") as logs:
			result = await provider_service.call_with_retry(operation, max_attempts=3, delay_s=1.0, sleep=sleep)
		self.assertEqual(result, "ok")
		self.assertEqual(len(attempts), 3)
		self.assertEqual(sleep.delays, [1.0, 1.0])
		self.assertEqual(len(logs.records), 2)

	async def test_fatal_error_is_not_retried(self) -> None:
		attempts = []
		sleep = RecordingSleep()

		async def operation():
			attempts.append(1)
			raise FakeStatusError(401)

		with self.assertRaises(ProviderError) as ctx:
			await provider_service.call_with_retry(operation, max_attempts=3, sleep=sleep)
		self.assertEqual(ctx.exception.code, AUTH_ERROR)
		self.assertEqual(len(attempts), 1)
		self.assertEqual(sleep.delays, [])

	async def test_retryable_error_surfaces_after_max_attempts(self) -> None:
		attempts = []

		async def operation():
			attempts.append(1)
			raise FakeStatusError(502)

		with self.assertRaises(ProviderError) as ctx:
			await provider_service.call_with_retry(operation, max_attempts=3, sleep=RecordingSleep())
		self.assertEqual(ctx.exception.code, SERVER_ERROR)
		self.assertEqual(len(attempts), 3)


class CompleteInterpretationTests(IsolatedAsyncioTestCase):
	async def test_structured_result_after_rate_limit_retries(self) -> None:
		client = FakeClient([FakeStatusError(429), FakeStatusError(429), completion(json.dumps(VALID_REPLY))])
		sleep = RecordingSleep()
		with patch("kye.backend.services.provider_service._build_openai_client", return_value=client):
			response = await provider_service.complete_interpretation(PROMPTS, CONFIG, sleep=sleep)
		self.assertEqual(response.interpretation, VALID_REPLY["interpretation"])
		self.assertEqual(len(client.calls), 3)
		self.assertEqual(sleep.delays, [1.0, 1.0])
		call = client.calls[0]
		self.assertEqual(call["model"], CONFIG.model)
		self.assertEqual(call["response_format"], {"type": "json_object"})
		self.assertEqual(call["messages"][0], {"role": "system", "content": PROMPTS.system})
		self.assertEqual(call["messages"][1], {"role": "user", "content": PROMPTS.user})

	async def test_missing_api_key_is_config_error_without_calls(self) -> None:
		with patch("kye.backend.services.provider_service._build_openai_client") as build:
			with self.assertRaises(ProviderError) as ctx:
				await provider_service.complete_interpretation(PROMPTS, ProviderConfig(api_key=""))
		self.assertEqual(ctx.exception.code, CONFIG_ERROR)
		build.assert_not_called()

	async def test_empty_content_is_api_error(self) -> None:
		client = FakeClient([completion("")])
		with patch("kye.backend.services.provider_service._build_openai_client", return_value=client):
			with self.assertRaises(ProviderError) as ctx:
				await provider_service.complete_interpretation(PROMPTS, CONFIG, sleep=RecordingSleep())
		self.assertEqual(ctx.exception.code, API_ERROR)
		self.assertEqual(len(client.calls), 1)

	async def test_invalid_metrics_are_not_retried(self) -> None:
		reply = json.loads(json.dumps(VALID_REPLY))
		reply["metrics"]["confidence"] = 150
		client = FakeClient([completion(json.dumps(reply))])
		with patch("kye.backend.services.provider_service._build_openai_client", return_value=client):
			with self.assertRaises(ProviderError) as ctx:
				await provider_service.complete_interpretation(PROMPTS, CONFIG, sleep=RecordingSleep())
		self.assertEqual(ctx.exception.code, PARSE_ERROR)
		self.assertEqual(len(client.calls), 1)


class OpenCompletionStreamTests(IsolatedAsyncioTestCase):
	async def test_yields_text_deltas_in_order(self) -> None:
		chunks = [stream_chunk("Hello "), stream_chunk(None), stream_chunk("world "), stream_chunk("streaming!")]
		client = FakeClient([fake_stream(chunks)])
		with patch("kye.backend.services.provider_service._build_openai_client", return_value=client):
			deltas = await provider_service.open_completion_stream(PROMPTS, CONFIG)
			received = [delta async for delta in deltas]
		self.assertEqual(received, ["Hello ", "world ", "streaming!"])
		self.assertTrue(client.calls[0]["stream"])

	async def test_handshake_failure_is_classified_and_not_retried(self) -> None:
		client = FakeClient([FakeStatusError(429), fake_stream([])])
		with patch("kye.backend.services.provider_service._build_openai_client", return_value=client):
			with self.assertRaises(ProviderError) as ctx:
				await provider_service.open_completion_stream(PROMPTS, CONFIG)
		self.assertEqual(ctx.exception.code, RATE_LIMIT)
		self.assertEqual(len(client.calls), 1)

	async def test_mid_stream_failure_is_terminal(self) -> None:
		client = FakeClient([fake_stream([stream_chunk("Hello "), FakeStatusError(500)])])
		received = []
		with patch("kye.backend.services.provider_service._build_openai_client", return_value=client):
			deltas = await provider_service.open_completion_stream(PROMPTS, CONFIG)
			with self.assertRaises(ProviderError) as ctx:
				async for delta in deltas:
					received.append(delta)
		self.assertEqual(received, ["Hello "])
		self.assertEqual(ctx.exception.code, SERVER_ERROR)
		self.assertEqual(len(client.calls), 1)

	async def test_timeout_during_stream_is_server_error(self) -> None:
		client = FakeClient([fake_stream([asyncio.TimeoutError()])])
		with patch("kye.backend.services.provider_service._build_openai_client", return_value=client):
			deltas = await provider_service.open_completion_stream(PROMPTS, CONFIG)
			with self.assertRaises(ProviderError) as ctx:
				async for _ in deltas:
					pass
		self.assertEqual(ctx.exception.status_code, 504)
