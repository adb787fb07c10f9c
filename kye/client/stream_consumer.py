from __future__ import annotations

import asyncio
import codecs
import logging
from typing import Any, Callable, Dict, Optional

import httpx

from kye.backend import constants
from kye.client.errors import StreamCancelled, StreamError, StreamReadError, StreamRequestError
from kye.client.session import CancellationToken, SessionStatus, StreamSession


logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:8000"

TextCallback = Callable[[str], None]
ErrorCallback = Callable[[Exception], None]
StateCallback = Callable[[SessionStatus, SessionStatus], None]


def _error_message(response: httpx.Response) -> str:
	try:
		payload = response.json()
	except ValueError:
		payload = None
	if isinstance(payload, dict):
		message = payload.get("error")
		if isinstance(message, str) and message.strip():
			return message
	return f"Request failed with status {response.status_code}"


def _body_readable(response: httpx.Response) -> bool:
	return isinstance(response.stream, httpx.AsyncByteStream) and not response.is_stream_consumed


class StreamingInterpreter:
	"""Drives POST /api/interpret/stream and accumulates the streamed text.

	At most one session is loading per instance: interpret() cancels the
	previous session before issuing its own request. Cancellation is silent.
	It never sets an error or calls on_error.
	"""

	def __init__(
		self,
		base_url: str = DEFAULT_BASE_URL,
		*,
		endpoint: str = constants.INTERPRET_STREAM_PATH,
		client: Optional[httpx.AsyncClient] = None,
		on_text: Optional[TextCallback] = None,
		on_finish: Optional[TextCallback] = None,
		on_error: Optional[ErrorCallback] = None,
		on_state_change: Optional[StateCallback] = None,
		request_timeout_s: float = 30.0,
	) -> None:
		self.base_url = base_url.rstrip("/")
		self.endpoint = endpoint
		self._client = client
		self._on_text = on_text
		self._on_finish = on_finish
		self._on_error = on_error
		self._on_state_change = on_state_change
		self._request_timeout_s = request_timeout_s
		self._session = self._new_session()

	def _new_session(self) -> StreamSession:
		def _listener(old: SessionStatus, new: SessionStatus) -> None:
			self._notify_state(session, old, new)

		session = StreamSession(on_transition=_listener)
		return session

	def _is_current(self, session: StreamSession) -> bool:
		return session is self._session

	def _notify_state(self, session: StreamSession, old: SessionStatus, new: SessionStatus) -> None:
		if self._on_state_change is not None and self._is_current(session):
			self._on_state_change(old, new)

	@property
	def session(self) -> StreamSession:
		return self._session

	@property
	def status(self) -> SessionStatus:
		return self._session.status

	@property
	def text(self) -> str:
		return self._session.text

	@property
	def error(self) -> Optional[Exception]:
		return self._session.error

	@property
	def is_loading(self) -> bool:
		return self._session.is_loading

	@property
	def url(self) -> str:
		return f"{self.base_url}{self.endpoint}"

	async def interpret(
		self,
		message: str,
		platform: str,
		context: str,
		*,
		timeout_s: Optional[float] = None,
	) -> StreamSession:
		previous = self._session
		if previous.is_loading:
			logger.debug("cancelling in-flight stream before starting a new one")
			previous.cancel()

		session = self._new_session()
		self._session = session
		session.start()
		payload = {"message": message, "platform": platform, "context": context}

		timer = None
		if timeout_s is not None:
			timer = asyncio.get_running_loop().call_later(timeout_s, self._stop_session, session)
		try:
			await self._run(session, payload)
		finally:
			if timer is not None:
				timer.cancel()
		return session

	async def _run(self, session: StreamSession, payload: Dict[str, Any]) -> None:
		token = session.token
		task = asyncio.ensure_future(self._stream(session, token, payload))
		token.add_callback(task.cancel)
		try:
			await task
		except asyncio.CancelledError:
			if not token.cancelled:
				if session.is_loading:
					session.cancel()
				raise
			logger.debug("stream cancelled")

	async def _stream(self, session: StreamSession, token: CancellationToken, payload: Dict[str, Any]) -> None:
		try:
			if self._client is not None:
				await self._request(self._client, session, token, payload)
			else:
				async with httpx.AsyncClient(timeout=httpx.Timeout(self._request_timeout_s, read=None)) as client:
					await self._request(client, session, token, payload)
		except StreamCancelled:
			logger.debug("stream cancelled")
		except StreamError as exc:
			self._fail(session, token, exc)
		except httpx.HTTPError as exc:
			self._fail(session, token, StreamRequestError(f"Request failed: {exc}"))
		except Exception as exc:
			self._fail(session, token, StreamReadError(f"Stream failed: {exc}"))

	async def _request(
		self,
		client: httpx.AsyncClient,
		session: StreamSession,
		token: CancellationToken,
		payload: Dict[str, Any],
	) -> None:
		async with client.stream("POST", self.url, json=payload) as response:
			await self._consume(response, session, token)

	async def _consume(self, response: httpx.Response, session: StreamSession, token: CancellationToken) -> None:
		token.raise_if_cancelled()
		if not response.is_success:
			await response.aread()
			raise StreamRequestError(_error_message(response), status_code=response.status_code)
		if not _body_readable(response):
			raise StreamReadError("Response body is not readable", status_code=response.status_code)

		decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
		try:
			async for raw in response.aiter_bytes():
				token.raise_if_cancelled()
				self._append(session, decoder.decode(raw))
			token.raise_if_cancelled()
			self._append(session, decoder.decode(b"", final=True))
		except httpx.HTTPError as exc:
			token.raise_if_cancelled()
			raise StreamReadError(f"Stream interrupted: {exc}") from exc

		if not session.text:
			raise StreamReadError("Stream ended without producing any text")
		text = session.complete()
		if self._on_finish is not None and self._is_current(session):
			self._on_finish(text)

	def _append(self, session: StreamSession, chunk: str) -> None:
		if not chunk:
			return
		text = session.append_chunk(chunk)
		if self._on_text is not None and self._is_current(session):
			self._on_text(text)

	def _fail(self, session: StreamSession, token: CancellationToken, error: StreamError) -> None:
		if token.cancelled or not session.is_loading:
			return
		logger.warning("interpretation stream failed: %s", error.message)
		session.fail(error)
		if self._on_error is not None and self._is_current(session):
			self._on_error(error)

	def _stop_session(self, session: StreamSession) -> None:
		if self._is_current(session):
			self.stop()

	def stop(self) -> None:
		if self._session.is_loading:
			self._session.cancel()

	def reset(self) -> None:
		self.stop()
		self._session.reset()
