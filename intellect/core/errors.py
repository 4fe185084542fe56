"""Error normalization and handlers."""

import logging
import math
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from starlette.exceptions import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.requests import Request

from intellect.core.logging import get_request_id


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None, request_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400


class NotFoundError(AppError, ValueError):
    code = "not_found"
    status_code = 404


class RateLimitError(AppError):
    """Gate denial. Carries the instant the next credit becomes available.

    Retry-After is measured from ``now`` (the gate clock) when given.
    """
    code = "rate_limited"
    status_code = 429

    def __init__(self, message: str, *, retry_at: Optional[datetime] = None, now: Optional[datetime] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_at = retry_at
        self.retry_after = self.retry_after_seconds(now)

    def retry_after_seconds(self, now: Optional[datetime] = None) -> Optional[int]:
        if self.retry_at is None:
            return None
        current = now or datetime.now(timezone.utc)
        return max(0, math.ceil((self.retry_at - current).total_seconds()))


class NoCandidatesError(NotFoundError):
    code = "no_candidates"

    def __init__(self, jurisdiction: str, **kwargs):
        super().__init__(f"No advocates found in the database for {jurisdiction}.", **kwargs)
        self.jurisdiction = jurisdiction


class NoMatchExtractedError(NotFoundError):
    code = "no_match"

    def __init__(self, message: str = "No suitable advocate found matching the case requirements.", **kwargs):
        super().__init__(message, **kwargs)


class GenerationServiceError(AppError):
    code = "generation_failed"
    status_code = 502

    def __init__(self, message: str = "Text generation is currently unavailable", **kwargs):
        super().__init__(message, **kwargs)


class ImageGenerationError(AppError):
    code = "image_generation_failed"
    status_code = 502

    def __init__(self, message: str = "Failed to generate image", **kwargs):
        super().__init__(message, **kwargs)


class StoreUnavailableError(AppError):
    code = "store_unavailable"
    status_code = 503

    def __init__(self, message: str = "Service temporarily unavailable", **kwargs):
        super().__init__(message, **kwargs)


def _request_id_for(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id() or str(uuid4())


def error_response(code: str, message: str, status_code: int, request_id: str, **extra_error) -> JSONResponse:
    """The one error envelope every handler renders."""
    error = {"code": code, "message": message, "request_id": request_id}
    error.update(extra_error)
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "detail": message},
        headers={"x-request-id": request_id},
    )


async def app_error_handler(request: Request, exc: AppError):
    rid = exc.request_id or _request_id_for(request)
    server_side = exc.status_code >= 500
    logging.getLogger("intellect").log(
        logging.ERROR if server_side else logging.WARNING,
        "app.error",
        exc_info=exc if server_side else None,
        extra={"request_id": rid, "error_code": exc.code, "status": exc.status_code},
    )

    if isinstance(exc, RateLimitError) and exc.retry_at is not None:
        response = error_response(exc.code, exc.message, exc.status_code, rid, retry_at=exc.retry_at.isoformat())
        response.headers["Retry-After"] = str(exc.retry_after)
        return response
    return error_response(exc.code, exc.message, exc.status_code, rid)


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _request_id_for(request)
    code = "not_found" if exc.status_code == 404 else "http_error"
    logging.getLogger("intellect").warning("http.error", extra={"request_id": rid, "error_code": code, "status": exc.status_code})
    return error_response(code, exc.detail or "HTTP error", exc.status_code, rid)


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _request_id_for(request)
    logging.getLogger("intellect").error("unhandled.exception", exc_info=exc, extra={"request_id": rid, "error_code": "internal_error"})
    return error_response("internal_error", "Unexpected error", 500, rid)


def _describe_validation_errors(errors) -> str:
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


async def request_validation_handler(request: Request, exc: RequestValidationError):
    rid = _request_id_for(request)
    message = _describe_validation_errors(exc.errors())
    logging.getLogger("intellect").warning("request.invalid", extra={"request_id": rid, "error_code": "validation_error", "status": 400})
    return error_response("validation_error", message, 400, rid)
