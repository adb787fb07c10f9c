from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List

from kye.backend import constants
from kye.backend.errors import CONFIG_ERROR, ProviderError


_FALSEY = {"0", "false", "off", "no"}


@dataclass(frozen=True)
class ProviderConfig:
	"""Provider settings resolved once at startup and injected into the pipeline."""

	api_key: str = ""
	interpreter_enabled: bool = True
	model: str = constants.DEFAULT_OPENAI_MODEL
	timeout_s: float = constants.DEFAULT_OPENAI_TIMEOUT_S
	max_attempts: int = constants.MAX_ATTEMPTS
	retry_delay_s: float = constants.RETRY_DELAY_S
	temperature: float = constants.DEFAULT_TEMPERATURE
	max_tokens: int = constants.DEFAULT_MAX_TOKENS

	@property
	def has_api_key(self) -> bool:
		return bool(self.api_key.strip())

	@property
	def is_live(self) -> bool:
		return self.interpreter_enabled and self.has_api_key

	def warnings(self) -> List[str]:
		warnings: List[str] = []
		if self.interpreter_enabled and not self.has_api_key:
			warnings.append("OPENAI_API_KEY is not set. Interpreter feature will not work.")
		if not self.interpreter_enabled:
			warnings.append("KYE_ENABLE_INTERPRETER is off. Interpreter returns placeholder results.")
		return warnings


def _flag_env(name: str, default: bool) -> bool:
	raw = os.getenv(name, "").strip().lower()
	if not raw:
		return default
	return raw not in _FALSEY


def _float_env(name: str, default: float, *, allow_zero: bool = False) -> float:
	raw = os.getenv(name, "").strip()
	if not raw:
		return default
	try:
		value = float(raw)
	except ValueError as exc:
		raise ProviderError(
			code=CONFIG_ERROR,
			message=f"{name} must be numeric.",
			status_code=503,
		) from exc
	if value < 0 or (value == 0 and not allow_zero):
		raise ProviderError(
			code=CONFIG_ERROR,
			message=f"{name} must be greater than zero.",
			status_code=503,
		)
	return value


def _int_env(name: str, default: int, minimum: int = 1) -> int:
	raw = os.getenv(name, "").strip()
	if not raw:
		return default
	try:
		value = int(raw)
	except ValueError as exc:
		raise ProviderError(
			code=CONFIG_ERROR,
			message=f"{name} must be an integer.",
			status_code=503,
		) from exc
	if value < minimum:
		raise ProviderError(
			code=CONFIG_ERROR,
			message=f"{name} must be at least {minimum}.",
			status_code=503,
		)
	return value


def resolve_provider_config() -> ProviderConfig:
	model = os.getenv("KYE_OPENAI_MODEL", "").strip() or constants.DEFAULT_OPENAI_MODEL
	return ProviderConfig(
		api_key=os.getenv("OPENAI_API_KEY", "").strip(),
		interpreter_enabled=_flag_env("KYE_ENABLE_INTERPRETER", True),
		model=model,
		timeout_s=_float_env("KYE_OPENAI_TIMEOUT_S", constants.DEFAULT_OPENAI_TIMEOUT_S),
		max_attempts=_int_env("KYE_MAX_ATTEMPTS", constants.MAX_ATTEMPTS),
		retry_delay_s=_float_env("KYE_RETRY_DELAY_S", constants.RETRY_DELAY_S, allow_zero=True),
	)


def resolve_trusted_hosts() -> List[str]:
	"""Host headers the API answers to; KYE_TRUSTED_HOSTS is a comma list, "*" allows any."""
	raw = os.getenv("KYE_TRUSTED_HOSTS", "")
	hosts = [item.strip() for item in raw.split(",") if item.strip()]
	return hosts or list(constants.DEFAULT_TRUSTED_HOSTS)
