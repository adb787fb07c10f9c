from __future__ import annotations

import logging
import time
import uuid

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send


logger = logging.getLogger(__name__)


class RequestContextMiddleware:
	"""Tags each HTTP response with X-Request-ID and X-Process-Time.

	Works on the raw ASGI messages so streamed bodies pass through untouched.
	An error raised after the response has started still reaches the server
	and aborts the connection.
	"""

	def __init__(self, app: ASGIApp) -> None:
		self.app = app

	async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
		if scope["type"] != "http":
			await self.app(scope, receive, send)
			return

		request_id = Headers(scope=scope).get("x-request-id") or uuid.uuid4().hex
		scope.setdefault("state", {})["request_id"] = request_id
		start = time.perf_counter()

		async def send_with_context(message: Message) -> None:
			if message["type"] == "http.response.start":
				headers = MutableHeaders(scope=message)
				headers["X-Request-ID"] = request_id
				headers["X-Process-Time"] = f"{time.perf_counter() - start:.6f}"
				logger.debug("%s %s -> %d [%s]", scope["method"], scope["path"], message["status"], request_id)
			await send(message)

		await self.app(scope, receive, send_with_context)
