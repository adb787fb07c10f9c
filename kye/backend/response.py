from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Request


def now_iso() -> str:
	return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _request_id(request: Optional[Request]) -> Optional[str]:
	if request is None:
		return None
	return getattr(request.state, "request_id", None)


def success_response(
	*,
	request: Optional[Request] = None,
	data: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
	payload: Dict[str, Any] = {
		"ok": True,
		"generated_at": now_iso(),
	}
	request_id = _request_id(request)
	if request_id:
		payload["request_id"] = request_id
	if data is not None:
		payload["data"] = data
	return payload


def error_response(
	*,
	message: str,
	status: int,
	request: Optional[Request] = None,
	field_errors: Optional[Dict[str, List[str]]] = None,
) -> Dict[str, Any]:
	payload: Dict[str, Any] = {
		"error": message,
		"status": status,
	}
	if field_errors:
		payload["fieldErrors"] = field_errors
	request_id = _request_id(request)
	if request_id:
		payload["requestId"] = request_id
	return payload
