from __future__ import annotations

from enum import Enum
from typing import Callable, List, Optional

from kye.client.errors import InvalidTransition, StreamCancelled


class SessionStatus(str, Enum):
	IDLE = "idle"
	LOADING = "loading"
	SUCCESS = "success"
	ERROR = "error"
	ABORTED = "aborted"


TransitionListener = Callable[[SessionStatus, SessionStatus], None]


class CancellationToken:
	"""Cooperative cancellation flag owned by a single stream session."""

	def __init__(self) -> None:
		self._cancelled = False
		self._callbacks: List[Callable[[], None]] = []

	@property
	def cancelled(self) -> bool:
		return self._cancelled

	def cancel(self) -> None:
		if self._cancelled:
			return
		self._cancelled = True
		callbacks, self._callbacks = self._callbacks, []
		for callback in callbacks:
			callback()

	def add_callback(self, callback: Callable[[], None]) -> None:
		if self._cancelled:
			callback()
			return
		self._callbacks.append(callback)

	def raise_if_cancelled(self) -> None:
		if self._cancelled:
			raise StreamCancelled()


class StreamSession:
	"""Finite-state machine for one interpretation stream.

	idle -> loading -> success | error | aborted, and any state -> idle via
	reset(). Chunks can only be appended while loading.
	"""

	def __init__(self, on_transition: Optional[TransitionListener] = None) -> None:
		self.status = SessionStatus.IDLE
		self.text = ""
		self.error: Optional[Exception] = None
		self.token = CancellationToken()
		self._on_transition = on_transition

	@property
	def is_loading(self) -> bool:
		return self.status is SessionStatus.LOADING

	def _move(self, target: SessionStatus) -> None:
		previous = self.status
		self.status = target
		if self._on_transition is not None and previous is not target:
			self._on_transition(previous, target)

	def _require(self, action: str, *allowed: SessionStatus) -> None:
		if self.status not in allowed:
			raise InvalidTransition(action, self.status.value)

	def start(self) -> None:
		self._require("start", SessionStatus.IDLE)
		self.text = ""
		self.error = None
		self._move(SessionStatus.LOADING)

	def append_chunk(self, chunk: str) -> str:
		self._require("append to", SessionStatus.LOADING)
		self.text += chunk
		return self.text

	def complete(self) -> str:
		self._require("complete", SessionStatus.LOADING)
		self._move(SessionStatus.SUCCESS)
		return self.text

	def fail(self, error: Exception) -> None:
		self._require("fail", SessionStatus.LOADING)
		self.error = error
		self._move(SessionStatus.ERROR)

	def cancel(self) -> None:
		self._require("cancel", SessionStatus.LOADING)
		self.token.cancel()
		self._move(SessionStatus.ABORTED)

	def reset(self) -> None:
		if self.is_loading:
			self.token.cancel()
		self.text = ""
		self.error = None
		self.token = CancellationToken()
		self._move(SessionStatus.IDLE)
