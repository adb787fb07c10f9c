from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any, Tuple

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from kye.backend import constants
from kye.backend.config import ProviderConfig
from kye.backend.dependencies import get_provider_config
from kye.backend.errors import AUTH_ERROR, CONFIG_ERROR, RATE_LIMIT, SERVER_ERROR, ProviderError
from kye.backend.schemas import InterpretationResult, InterpretRequest
from kye.backend.services import interpreter_service, provider_service
from kye.backend.services.prompt_service import build_prompts
from kye.backend.validators import RequestValidationFailed, validate_interpret_request


logger = logging.getLogger(__name__)

router = APIRouter(prefix=constants.INTERPRET_PATH, tags=["interpret"])

NOT_CONFIGURED = "AI service is not configured"


def provider_error_status(exc: ProviderError) -> Tuple[int, str]:
	if exc.code == CONFIG_ERROR:
		return 503, NOT_CONFIGURED
	if exc.code == RATE_LIMIT:
		return 429, "AI service is temporarily unavailable. Please try again later."
	if exc.code == AUTH_ERROR:
		return 503, "AI service authentication failed"
	if exc.code == SERVER_ERROR:
		return 503, "AI service is temporarily unavailable"
	return 500, "AI service error"


def _provider_http_error(exc: ProviderError) -> HTTPException:
	status_code, message = provider_error_status(exc)
	return HTTPException(status_code=status_code, detail={"message": message})


async def _read_json(request: Request) -> Any:
	try:
		return await request.json()
	except (json.JSONDecodeError, UnicodeDecodeError) as exc:
		raise HTTPException(status_code=400, detail={"message": "Invalid JSON in request body"}) from exc


async def _validated_request(request: Request) -> InterpretRequest:
	payload = await _read_json(request)
	try:
		return validate_interpret_request(payload)
	except RequestValidationFailed as exc:
		raise HTTPException(
			status_code=exc.status_code,
			detail={"message": exc.message, "field_errors": exc.field_errors},
		) from exc


async def relay_text_stream(deltas: AsyncIterator[str], request_id: str | None = None) -> AsyncIterator[str]:
	"""Forward provider deltas verbatim, unframed.

	Headers are already on the wire by the time this runs, so a provider
	failure is logged and re-raised to abort the connection.
	"""
	emitted = 0
	try:
		async for delta in deltas:
			emitted += len(delta)
			yield delta
	except ProviderError as exc:
		logger.error(
			"stream aborted after %d chars [%s]: %s (%s)",
			emitted,
			request_id,
			exc.message,
			exc.code,
		)
		raise


@router.post("", response_model=InterpretationResult, response_model_by_alias=True)
async def interpret(request: Request, config: ProviderConfig = Depends(get_provider_config)):
	payload = await _validated_request(request)
	try:
		return await interpreter_service.interpret(payload, config)
	except ProviderError as exc:
		logger.warning("interpretation failed: %r", exc)
		raise _provider_http_error(exc) from exc


@router.post("/stream")
async def interpret_stream(request: Request, config: ProviderConfig = Depends(get_provider_config)):
	payload = await _validated_request(request)
	if not config.is_live:
		raise HTTPException(status_code=503, detail={"message": NOT_CONFIGURED})
	try:
		deltas = await provider_service.open_completion_stream(build_prompts(payload), config)
	except ProviderError as exc:
		logger.warning("stream could not start: %r", exc)
		raise _provider_http_error(exc) from exc

	return StreamingResponse(
		relay_text_stream(deltas, getattr(request.state, "request_id", None)),
		media_type="text/plain; charset=utf-8",
		headers=dict(constants.STREAM_HEADERS),
	)
