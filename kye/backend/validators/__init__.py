from kye.backend.validators.emoji import contains_emoji, extract_emojis, extract_emojis_with_positions
from kye.backend.validators.interpret_request import collect_field_errors, validate_interpret_request
from kye.backend.validators.types import FieldErrors, RequestValidationFailed

__all__ = [
	"FieldErrors",
	"RequestValidationFailed",
	"collect_field_errors",
	"contains_emoji",
	"extract_emojis",
	"extract_emojis_with_positions",
	"validate_interpret_request",
]
