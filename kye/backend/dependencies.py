from __future__ import annotations

from fastapi import Request

from kye.backend.config import ProviderConfig


def get_provider_config(request: Request) -> ProviderConfig:
	return request.app.state.provider_config
