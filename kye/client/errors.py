from __future__ import annotations

from typing import Optional


class StreamError(Exception):
	"""Terminal failure of a streaming interpretation."""

	def __init__(self, message: str, *, status_code: Optional[int] = None):
		super().__init__(message)
		self.message = message
		self.status_code = status_code


class StreamRequestError(StreamError):
	"""The request failed before any text could be read."""


class StreamReadError(StreamError):
	"""Reading the response body failed or ended without a result."""


class StreamCancelled(Exception):
	"""Cooperative cancellation signal. Never reported as a failure."""


class InvalidTransition(RuntimeError):
	def __init__(self, action: str, status: str):
		super().__init__(f"cannot {action} a session in state {status!r}")
		self.action = action
		self.status = status
