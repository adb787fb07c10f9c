from __future__ import annotations

from typing import Any, List

from kye.backend import constants
from kye.backend.schemas import InterpretRequest

from .emoji import contains_emoji
from .types import FieldErrors, RequestValidationFailed


PLATFORM_ERROR = f"Platform must be one of: {', '.join(constants.VALID_PLATFORMS)}"
CONTEXT_ERROR = f"Context must be one of: {', '.join(constants.VALID_CONTEXTS)}"


def _message_errors(message: Any) -> List[str]:
	if not isinstance(message, str):
		return ["Message must be a string"]
	errors: List[str] = []
	length = len(message.strip())
	if length < constants.MESSAGE_MIN_CHARS:
		errors.append(f"Message must be at least {constants.MESSAGE_MIN_CHARS} characters")
	if length > constants.MESSAGE_MAX_CHARS:
		errors.append(f"Message must be at most {constants.MESSAGE_MAX_CHARS} characters")
	if not contains_emoji(message):
		errors.append("Message must contain at least one emoji")
	return errors


def _enum_errors(value: Any, allowed: tuple, message: str) -> List[str]:
	if isinstance(value, str) and value in allowed:
		return []
	return [message]


def collect_field_errors(payload: Any) -> FieldErrors:
	if not isinstance(payload, dict):
		return {"body": ["Request body must be a JSON object"]}
	checks = (
		("message", _message_errors(payload.get("message"))),
		("platform", _enum_errors(payload.get("platform"), constants.VALID_PLATFORMS, PLATFORM_ERROR)),
		("context", _enum_errors(payload.get("context"), constants.VALID_CONTEXTS, CONTEXT_ERROR)),
	)
	return {field: errors for field, errors in checks if errors}


def validate_interpret_request(payload: Any) -> InterpretRequest:
	"""Narrow a raw JSON payload to an InterpretRequest.

	Every rule is evaluated independently so a single failure reports all
	offending fields at once. The message is returned as submitted; trimming
	only applies to the length check.
	"""
	field_errors = collect_field_errors(payload)
	if field_errors:
		first = next(iter(field_errors.values()))[0]
		raise RequestValidationFailed(first, field_errors)
	return InterpretRequest(
		message=payload["message"],
		platform=payload["platform"],
		context=payload["context"],
	)
