from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import PlainTextResponse
from pydantic_core import PydanticSerializationError

from hostmeta.config.settings import Settings
from hostmeta.routers.deps import get_settings, get_snapshot_builder
from hostmeta.services.snapshot import SnapshotBuilder
from hostmeta.utils.logging_config import get_logger
from hostmeta.utils.meta import error_response, request_id_of


router = APIRouter(tags=["backend"])
logger = get_logger("hostmeta.api")


@router.get("/")
def snapshot(
    request: Request,
    builder: SnapshotBuilder = Depends(get_snapshot_builder),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Metadata snapshot of this backend instance, as JSON."""
    snap = builder.build(request)

    try:
        body = snap.to_json()
    except (PydanticSerializationError, TypeError, ValueError):
        logger.error(
            "Snapshot serialization failed",
            exc_info=True,
            extra={"event_type": "serialization_error", "path": request.url.path},
        )
        return error_response(
            settings,
            status_code=500,
            code="serialization_error",
            message="Could not serialize metadata.",
            request_id=request_id_of(request),
        )

    return Response(content=body, media_type="application/json")


@router.get("/healthz", response_class=PlainTextResponse)
async def healthz() -> PlainTextResponse:
    """Always healthy: missing metadata is a normal operating state."""
    return PlainTextResponse("ok")
