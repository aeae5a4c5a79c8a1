import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from hostmeta.config.settings import Settings
from hostmeta.models.base import ErrorInfo, ErrorResponse, Meta


REQUEST_ID_HEADER = "X-Request-ID"


def assign_request_id(request: Request) -> str:
    """Reuse the caller's X-Request-ID or mint one, and pin it on the request."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    request.state.request_id = request_id
    return request_id


def request_id_of(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def build_meta(
    settings: Settings,
    request_id: Optional[str] = None,
) -> Meta:
    """Construct a standard Meta object for hostmeta responses.

    This centralizes how version and role information is attached to
    responses so all endpoints stay consistent.
    """
    return Meta(
        timestamp=datetime.now(timezone.utc),
        request_id=request_id,
        version=settings.version,
        role=settings.role,
    )


def error_response(
    settings: Settings,
    status_code: int,
    code: str,
    message: str,
    request_id: Optional[str] = None,
) -> JSONResponse:
    """Render an ErrorResponse envelope with the given status code."""
    error = ErrorInfo(code=code, message=message)
    body = ErrorResponse(error=error, meta=build_meta(settings, request_id))
    headers = {REQUEST_ID_HEADER: request_id} if request_id else None
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json"),
        headers=headers,
    )
