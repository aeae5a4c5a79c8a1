from fastapi import Request

from hostmeta.config.settings import Settings
from hostmeta.services.backend_client import BackendClient
from hostmeta.services.snapshot import SnapshotBuilder


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_snapshot_builder(request: Request) -> SnapshotBuilder:
    state = request.app.state
    return SnapshotBuilder(
        version=state.settings.version,
        source_factory=state.metadata_source_factory,
    )


def get_backend_client(request: Request) -> BackendClient:
    return request.app.state.backend_client
