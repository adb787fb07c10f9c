from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.trustedhost import TrustedHostMiddleware

from kye.backend import constants
from kye.backend.config import ProviderConfig, resolve_provider_config, resolve_trusted_hosts
from kye.backend.middleware import RequestContextMiddleware
from kye.backend.response import error_response
from kye.backend.routers import health, interpret


logger = logging.getLogger(__name__)


def create_app(
	config: Optional[ProviderConfig] = None,
	*,
	trusted_hosts: Optional[List[str]] = None,
) -> FastAPI:
	app = FastAPI(
		title=constants.APP_NAME,
		version=constants.APP_VERSION,
	)
	app.state.provider_config = config or resolve_provider_config()
	for warning in app.state.provider_config.warnings():
		logger.warning(warning)
	_register_middleware(app, trusted_hosts or resolve_trusted_hosts())
	_register_handlers(app)
	_register_routers(app)
	return app


def _register_middleware(app: FastAPI, trusted_hosts: List[str]) -> None:
	app.add_middleware(RequestContextMiddleware)
	app.add_middleware(
		CORSMiddleware,
		allow_origins=constants.DEFAULT_CORS_ALLOW_ORIGINS,
		allow_credentials=True,
		allow_methods=["*"],
		allow_headers=["*"],
	)
	app.add_middleware(
		TrustedHostMiddleware,
		allowed_hosts=trusted_hosts,
	)


def _register_routers(app: FastAPI) -> None:
	app.include_router(health.router)
	app.include_router(interpret.router)


def _register_handlers(app: FastAPI) -> None:
	@app.exception_handler(HTTPException)
	async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
		message = _exc_message(exc.detail)
		field_errors = None
		if isinstance(exc.detail, dict):
			detail_message = exc.detail.get("message")
			detail_fields = exc.detail.get("field_errors")
			if isinstance(detail_message, str) and detail_message.strip():
				message = detail_message.strip()
			if isinstance(detail_fields, dict):
				field_errors = {str(key): [str(item) for item in value] for key, value in detail_fields.items()}
		payload = error_response(
			message=message,
			status=exc.status_code,
			request=request,
			field_errors=field_errors,
		)
		return JSONResponse(status_code=exc.status_code, content=payload)

	@app.exception_handler(StarletteHTTPException)
	async def handle_starlette_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
		payload = error_response(
			message=_exc_message(exc.detail),
			status=exc.status_code,
			request=request,
		)
		return JSONResponse(status_code=exc.status_code, content=payload)

	@app.exception_handler(RequestValidationError)
	async def handle_request_validation_error(
		request: Request,
		exc: RequestValidationError,
	) -> JSONResponse:
		field_errors: Dict[str, List[str]] = {}
		for issue in exc.errors():
			loc = [str(part) for part in issue.get("loc", []) if part != "body"]
			field = loc[0] if loc else "body"
			field_errors.setdefault(field, []).append(issue.get("msg", "Invalid request."))
		payload = error_response(
			message="Validation failed",
			status=400,
			request=request,
			field_errors=field_errors,
		)
		return JSONResponse(status_code=400, content=payload)

	@app.exception_handler(Exception)
	async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
		logger.exception("unhandled error on %s", request.url.path)
		payload = error_response(
			message="Internal server error",
			status=500,
			request=request,
		)
		return JSONResponse(status_code=500, content=payload)


def _exc_message(detail: Any) -> str:
	if isinstance(detail, str):
		return detail
	if detail is None:
		return "Request failed."
	return str(detail)


app = create_app()
