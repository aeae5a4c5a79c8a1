from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from hostmeta.config.settings import Settings
from hostmeta.routers.deps import get_settings


router = APIRouter(tags=["core"])


@router.get("/version", response_class=PlainTextResponse)
async def version(settings: Settings = Depends(get_settings)) -> PlainTextResponse:
    """Fixed build identifier as plain text; no metadata lookups."""
    return PlainTextResponse(settings.version)
