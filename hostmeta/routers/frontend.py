from pathlib import Path
from typing import Union

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, PlainTextResponse
from fastapi.templating import Jinja2Templates

from hostmeta.models.snapshot import BackendUnavailable, FrontendView, MetadataSnapshot
from hostmeta.routers.deps import get_backend_client, get_snapshot_builder
from hostmeta.services.backend_client import BackendClient, BackendError
from hostmeta.services.snapshot import SnapshotBuilder
from hostmeta.utils.logging_config import get_logger


router = APIRouter(tags=["frontend"])
logger = get_logger("hostmeta.frontend")

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))


@router.get("/", response_class=HTMLResponse)
def index(
    request: Request,
    builder: SnapshotBuilder = Depends(get_snapshot_builder),
    client: BackendClient = Depends(get_backend_client),
):
    """Render this frontend's metadata next to its backend's.

    A failing backend never fails the page: the backend section is replaced
    by an "unreachable" notice and the local metadata is still shown.
    """
    local = builder.build(request)

    backend: Union[MetadataSnapshot, BackendUnavailable]
    try:
        backend = client.fetch_snapshot()
    except BackendError as exc:
        backend = BackendUnavailable(kind=exc.kind, reason=exc.reason)

    view = FrontendView(local=local, backend=backend)
    return templates.TemplateResponse(request, "index.html", {"view": view})


@router.get("/healthz", response_class=PlainTextResponse)
def healthz(client: BackendClient = Depends(get_backend_client)) -> PlainTextResponse:
    """Ready only while the backend's own /healthz answers 200 in time."""
    try:
        client.check_health()
    except BackendError as exc:
        logger.warning(
            "Readiness check failed",
            extra={"event_type": "healthz_failed", "error_kind": exc.kind, "reason": exc.reason},
        )
        return PlainTextResponse(f"backend unhealthy: {exc.reason}", status_code=503)
    return PlainTextResponse("ok")
