import logging
import re
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from meterline.core.logging import LOGGER_NAME, latency_bucket_ms, request_id_ctx_var

logger = logging.getLogger(LOGGER_NAME)

# Client-supplied ids are echoed back, so only accept short opaque tokens
_ACCEPTED_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request id for the duration of the request and log its completion."""

    def __init__(self, app, header_name: str = "x-request-id"):
        super().__init__(app)
        self.header_name = header_name

    def _request_id(self, request) -> str:
        incoming = request.headers.get(self.header_name, "")
        return incoming if _ACCEPTED_ID.match(incoming) else str(uuid4())

    async def dispatch(self, request, call_next):
        rid = self._request_id(request)
        request.state.request_id = rid
        token = request_id_ctx_var.set(rid)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers[self.header_name] = rid
            logger.info(
                "request.complete",
                extra={
                    "request_id": rid,
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "user_id": getattr(request.state, "user_id", None),
                    "latency_bucket": latency_bucket_ms((time.perf_counter() - started) * 1000),
                },
            )
            return response
        finally:
            request_id_ctx_var.reset(token)
