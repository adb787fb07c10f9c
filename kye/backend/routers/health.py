from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from kye.backend.config import ProviderConfig
from kye.backend.dependencies import get_provider_config
from kye.backend.response import success_response
from kye.backend.schemas import ApiEnvelope, HealthData
from kye.backend.services import health_service


router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health", response_model=ApiEnvelope)
def get_health(request: Request, config: ProviderConfig = Depends(get_provider_config)):
	data = HealthData(**health_service.get_summary(config))
	return success_response(
		request=request,
		data=data.model_dump(),
	)
