from __future__ import annotations

from typing import Dict, List


FieldErrors = Dict[str, List[str]]


class RequestValidationFailed(Exception):
	"""Client-correctable request problem, reported per field."""

	status_code = 400

	def __init__(self, message: str, field_errors: FieldErrors | None = None):
		super().__init__(message)
		self.message = message
		self.field_errors: FieldErrors = field_errors or {}
