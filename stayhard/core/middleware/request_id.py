import logging
import re
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from stayhard.core.logging import LOGGER_NAME, latency_bucket_ms, request_id_ctx_var, user_id_ctx_var

# Client supplied ids are echoed into headers and logs, so keep them tame
_SAFE_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")
_QUIET_PATHS = {"/healthz", "/readyz"}


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id, echo it back and log one completion line."""

    def __init__(self, app, header_name: str = "x-request-id"):
        super().__init__(app)
        self.header_name = header_name

    def _resolve(self, incoming):
        if incoming and _SAFE_REQUEST_ID.match(incoming):
            return incoming
        return str(uuid4())

    async def dispatch(self, request, call_next):
        rid = self._resolve(request.headers.get(self.header_name))
        request.state.request_id = rid
        rid_token = request_id_ctx_var.set(rid)
        user_token = user_id_ctx_var.set(None)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            user_id_ctx_var.reset(user_token)
            request_id_ctx_var.reset(rid_token)
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers[self.header_name] = rid

        status = getattr(response, "status_code", None)
        level = logging.DEBUG if request.url.path in _QUIET_PATHS and status == 200 else logging.INFO
        logging.getLogger(LOGGER_NAME).log(
            level,
            "request.complete",
            extra={
                "request_id": rid,
                "user_id": getattr(request.state, "user_id", None),
                "path": request.url.path,
                "method": request.method,
                "status": status,
                "latency_bucket": latency_bucket_ms(elapsed_ms),
            },
        )
        return response
