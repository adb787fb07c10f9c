from __future__ import annotations

from typing import Optional


CONFIG_ERROR = "CONFIG_ERROR"
RATE_LIMIT = "RATE_LIMIT"
SERVER_ERROR = "SERVER_ERROR"
INVALID_REQUEST = "INVALID_REQUEST"
AUTH_ERROR = "AUTH_ERROR"
PARSE_ERROR = "PARSE_ERROR"
API_ERROR = "API_ERROR"

RETRYABLE_CODES = frozenset({RATE_LIMIT, SERVER_ERROR})


class ProviderError(Exception):
	"""Failure talking to the completion provider, tagged with a taxonomy code."""

	def __init__(self, *, code: str, message: str, status_code: Optional[int] = None):
		super().__init__(message)
		self.code = code
		self.message = message
		self.status_code = status_code

	@property
	def retryable(self) -> bool:
		return self.code in RETRYABLE_CODES

	def __repr__(self) -> str:
		return f"ProviderError(code={self.code!r}, status_code={self.status_code!r}, message={self.message!r})"
