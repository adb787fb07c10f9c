from __future__ import annotations

from typing import Dict

from kye.backend import constants
from kye.backend.config import ProviderConfig


def get_summary(config: ProviderConfig) -> Dict[str, object]:
	return {
		"app": constants.APP_NAME,
		"version": constants.APP_VERSION,
		"interpreter_live": config.is_live,
		"interpreter_enabled": config.interpreter_enabled,
		"provider_configured": config.has_api_key,
		"model": config.model,
		"warnings": config.warnings(),
	}
