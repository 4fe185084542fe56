import logging
import re
import time
from typing import Optional
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from intellect.core.logging import LOGGER_NAME, request_id_ctx_var, latency_bucket_ms

# Client-supplied ids are echoed into headers and logs
_SAFE_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def accept_request_id(incoming: Optional[str]) -> str:
    if incoming and _SAFE_REQUEST_ID.match(incoming):
        return incoming
    return str(uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request_id for the duration of a request and log its completion."""

    def __init__(self, app, header_name: str = "x-request-id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request, call_next):
        rid = accept_request_id(request.headers.get(self.header_name))
        request.state.request_id = rid
        token = request_id_ctx_var.set(rid)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_ctx_var.reset(token)
        elapsed_ms = (time.perf_counter() - start) * 1000

        response.headers[self.header_name] = rid

        status = getattr(response, "status_code", None)
        level = logging.WARNING if status is not None and status >= 500 else logging.INFO
        logging.getLogger(LOGGER_NAME).log(
            level,
            "request.complete",
            extra={
                "request_id": rid,
                "path": request.url.path,
                "method": request.method,
                "status": status,
                "latency_bucket": latency_bucket_ms(elapsed_ms),
            },
        )
        return response
