from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, TypeVar

from pydantic import ValidationError

from kye.backend import constants
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
from kye.backend.schemas import InterpretationResponse
from kye.backend.services.prompt_service import PromptPair


logger = logging.getLogger(__name__)

T = TypeVar("T")
Sleep = Callable[[float], Awaitable[None]]


def _build_openai_client(*, api_key: str, timeout_s: float):
	try:
		from openai import AsyncOpenAI
	except ImportError as exc:
		raise ProviderError(
			code=CONFIG_ERROR,
			message="OpenAI SDK not installed. Add 'openai' dependency.",
			status_code=503,
		) from exc
	# Retries are owned by call_with_retry, not the SDK.
	return AsyncOpenAI(api_key=api_key, timeout=timeout_s, max_retries=0)


def _client_for(config: ProviderConfig):
	if not config.has_api_key:
		raise ProviderError(
			code=CONFIG_ERROR,
			message="OPENAI_API_KEY is not configured",
			status_code=503,
		)
	return _build_openai_client(api_key=config.api_key, timeout_s=config.timeout_s)


def _status_code(exc: Exception) -> int | None:
	for attr in ("status_code", "status"):
		value = getattr(exc, attr, None)
		if isinstance(value, int):
			return value
	response = getattr(exc, "response", None)
	value = getattr(response, "status_code", None)
	return value if isinstance(value, int) else None


def classify_provider_exception(exc: Exception) -> ProviderError:
	"""Map an SDK or transport failure onto the provider error taxonomy."""
	if isinstance(exc, ProviderError):
		return exc
	name = exc.__class__.__name__
	if isinstance(exc, (TimeoutError, asyncio.TimeoutError)) or name == "APITimeoutError":
		return ProviderError(code=SERVER_ERROR, message="OpenAI request timed out", status_code=504)
	status = _status_code(exc)
	if status == 401:
		return ProviderError(code=AUTH_ERROR, message="OpenAI authentication failed", status_code=status)
	if status == 429:
		return ProviderError(code=RATE_LIMIT, message="OpenAI rate limit exceeded", status_code=status)
	if status is not None and status >= 500:
		return ProviderError(code=SERVER_ERROR, message="OpenAI server error", status_code=status)
	if status is not None and 400 <= status < 500:
		return ProviderError(code=INVALID_REQUEST, message=f"OpenAI rejected the request: {exc}", status_code=status)
	return ProviderError(code=API_ERROR, message=f"OpenAI request failed: {exc}", status_code=status)


async def call_with_retry(
	operation: Callable[[], Awaitable[T]],
	*,
	max_attempts: int = constants.MAX_ATTEMPTS,
	delay_s: float = constants.RETRY_DELAY_S,
	sleep: Sleep = asyncio.sleep,
) -> T:
	"""Run ``operation`` up to ``max_attempts`` times, retrying only retryable errors.

	The delay between attempts is fixed. The last error is surfaced as a
	ProviderError once attempts are exhausted or a fatal error is seen.
	"""
	attempt = 0
	while True:
		attempt += 1
		try:
			return await operation()
		except Exception as exc:
			error = classify_provider_exception(exc)
			if not error.retryable or attempt >= max_attempts:
				if error is exc:
					raise
				raise error from exc
			logger.warning(
				"provider attempt %d/%d failed with %s (status=%s); retrying in %.2fs",
				attempt,
				max_attempts,
				error.code,
				error.status_code,
				delay_s,
			)
		await sleep(delay_s)


def _chat_messages(prompts: PromptPair) -> List[Dict[str, str]]:
	return [
		{"role": "system", "content": prompts.system},
		{"role": "user", "content": prompts.user},
	]


def _extract_completion_text(completion: Any) -> str:
	choices = getattr(completion, "choices", None)
	if not choices:
		return ""
	message = getattr(choices[0], "message", None)
	content = getattr(message, "content", None)
	return content.strip() if isinstance(content, str) else ""


def _extract_json_object(raw: str) -> Dict[str, Any]:
	candidate = raw.strip()
	if candidate.startswith("```"):
		candidate = re.sub(r"^```[a-zA-Z]*\s*", "", candidate)
		candidate = re.sub(r"\s*```$", "", candidate)
	start = candidate.find("{")
	end = candidate.rfind("}")
	if start == -1 or end == -1 or end <= start:
		raise ProviderError(code=PARSE_ERROR, message="Failed to parse OpenAI response as JSON", status_code=502)
	try:
		parsed = json.loads(candidate[start : end + 1])
	except json.JSONDecodeError as exc:
		raise ProviderError(
			code=PARSE_ERROR,
			message="Failed to parse OpenAI response as JSON",
			status_code=502,
		) from exc
	if not isinstance(parsed, dict):
		raise ProviderError(code=PARSE_ERROR, message="OpenAI response is not a JSON object", status_code=502)
	return parsed


def parse_interpretation_response(raw: str) -> InterpretationResponse:
	"""Validate a raw model reply; metrics outside 0-100 are rejected here."""
	payload = _extract_json_object(raw)
	try:
		return InterpretationResponse.model_validate(payload)
	except ValidationError as exc:
		issues = "; ".join(
			f"{'.'.join(str(part) for part in issue.get('loc', []))}: {issue.get('msg', 'invalid')}"
			for issue in exc.errors()
		)
		raise ProviderError(
			code=PARSE_ERROR,
			message=f"Invalid response structure: {issues}",
			status_code=502,
		) from exc


async def complete_interpretation(
	prompts: PromptPair,
	config: ProviderConfig,
	*,
	sleep: Sleep = asyncio.sleep,
) -> InterpretationResponse:
	client = _client_for(config)

	async def _attempt() -> InterpretationResponse:
		completion = await client.chat.completions.create(
			model=config.model,
			messages=_chat_messages(prompts),
			response_format={"type": "json_object"},
			temperature=config.temperature,
			max_tokens=config.max_tokens,
		)
		raw = _extract_completion_text(completion)
		if not raw:
			raise ProviderError(code=API_ERROR, message="No response content from OpenAI", status_code=502)
		return parse_interpretation_response(raw)

	return await call_with_retry(
		_attempt,
		max_attempts=config.max_attempts,
		delay_s=config.retry_delay_s,
		sleep=sleep,
	)


def _extract_stream_delta(chunk: Any) -> str:
	choices = getattr(chunk, "choices", None)
	if not choices:
		return ""
	delta = getattr(choices[0], "delta", None)
	content = getattr(delta, "content", None)
	return content if isinstance(content, str) else ""


async def _iter_stream_deltas(stream: Any) -> AsyncIterator[str]:
	try:
		async for chunk in stream:
			delta = _extract_stream_delta(chunk)
			if delta:
				yield delta
	except ProviderError:
		raise
	except Exception as exc:
		raise classify_provider_exception(exc) from exc


async def open_completion_stream(prompts: PromptPair, config: ProviderConfig) -> AsyncIterator[str]:
	"""Start a streaming completion and return its text deltas.

	Failures while opening the stream raise ProviderError before any caller
	output has started. The returned iterator is never retried: an error
	after the first delta ends the stream.
	"""
	client = _client_for(config)
	try:
		stream = await client.chat.completions.create(
			model=config.model,
			messages=_chat_messages(prompts),
			temperature=config.temperature,
			max_tokens=config.max_tokens,
			stream=True,
		)
	except Exception as exc:
		raise classify_provider_exception(exc) from exc
	return _iter_stream_deltas(stream)
