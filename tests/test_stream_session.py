from unittest import TestCase

from kye.client.errors import InvalidTransition, StreamCancelled, StreamReadError
from kye.client.session import CancellationToken, SessionStatus, StreamSession


class CancellationTokenTests(TestCase):
	def test_callbacks_run_once_on_cancel(self) -> None:
		token = CancellationToken()
		calls = []
		token.add_callback(lambda: calls.append("a"))
		token.cancel()
		token.cancel()
		self.assertTrue(token.cancelled)
		self.assertEqual(calls, ["a"])

	def test_late_callback_runs_immediately(self) -> None:
		token = CancellationToken()
		token.cancel()
		calls = []
		token.add_callback(lambda: calls.append("late"))
		self.assertEqual(calls, ["late"])

	def test_raise_if_cancelled(self) -> None:
		token = CancellationToken()
		token.raise_if_cancelled()
		token.cancel()
		with self.assertRaises(StreamCancelled):
			token.raise_if_cancelled()


class StreamSessionTests(TestCase):
	def test_success_path_accumulates_in_order(self) -> None:
		transitions = []
		session = StreamSession(on_transition=lambda old, new: transitions.append((old, new)))
		session.start()
		prefixes = [session.append_chunk(chunk) for chunk in ("Hello ", "world ", "streaming!")]
		self.assertEqual(session.complete(), "Hello world streaming!")
		self.assertEqual(prefixes, ["Hello ", "Hello world ", "Hello world streaming!"])
		self.assertEqual(
			transitions,
			[(SessionStatus.IDLE, SessionStatus.LOADING), (SessionStatus.LOADING, SessionStatus.SUCCESS)],
		)

	def test_fail_records_error(self) -> None:
		session = StreamSession()
		session.start()
		error = StreamReadError("boom")
		session.fail(error)
		self.assertIs(session.error, error)
		self.assertEqual(session.status, SessionStatus.ERROR)
		self.assertFalse(session.is_loading)

	def test_cancel_triggers_token_without_error(self) -> None:
		session = StreamSession()
		session.start()
		token = session.token
		session.cancel()
		self.assertTrue(token.cancelled)
		self.assertEqual(session.status, SessionStatus.ABORTED)
		self.assertIsNone(session.error)

	def test_reset_returns_to_idle_from_any_state(self) -> None:
		for finish in ("complete", "fail", "cancel"):
			session = StreamSession()
			session.start()
			session.append_chunk("partial")
			if finish == "fail":
				session.fail(StreamReadError("x"))
			else:
				getattr(session, finish)()
			session.reset()
			self.assertEqual(session.status, SessionStatus.IDLE)
			self.assertEqual(session.text, "")
			self.assertIsNone(session.error)
			self.assertFalse(session.token.cancelled)

	def test_reset_while_loading_cancels_the_token(self) -> None:
		session = StreamSession()
		session.start()
		token = session.token
		session.reset()
		self.assertTrue(token.cancelled)

	def test_illegal_transitions_raise(self) -> None:
		session = StreamSession()
		with self.assertRaises(InvalidTransition):
			session.append_chunk("x")
		with self.assertRaises(InvalidTransition):
			session.complete()
		session.start()
		with self.assertRaises(InvalidTransition):
			session.start()
		session.complete()
		with self.assertRaises(InvalidTransition):
			session.append_chunk("late")
		with self.assertRaises(InvalidTransition):
			session.cancel()
