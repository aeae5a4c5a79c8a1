"""
Snapshot builder.

Composes one MetadataSnapshot from the metadata source, the inbound request
and the process version. Runs synchronously inside the request handler.
"""

from typing import Callable, Dict, List

from fastapi import Request

from hostmeta.models.snapshot import NOT_AVAILABLE, MetadataSnapshot
from hostmeta.services.metadata_source import FIELDS, MetadataSource
from hostmeta.utils.logging_config import get_logger


logger = get_logger("hostmeta.metadata")

MetadataSourceFactory = Callable[[], MetadataSource]


def collect_headers(request: Request) -> Dict[str, List[str]]:
    """Request headers as name -> list of values (repeated headers kept)."""
    headers: Dict[str, List[str]] = {}
    for name, value in request.headers.raw:
        headers.setdefault(name.decode("latin-1"), []).append(value.decode("latin-1"))
    return headers


def client_address(request: Request) -> str:
    if request.client is None or not request.client.host:
        return NOT_AVAILABLE
    return request.client.host


class SnapshotBuilder:
    """Builds a fresh, immutable snapshot for every call to build()."""

    def __init__(self, version: str, source_factory: MetadataSourceFactory) -> None:
        self._version = version
        self._source_factory = source_factory

    def build(self, request: Request) -> MetadataSnapshot:
        with self._source_factory() as source:
            metadata = {field: self._resolve(source, field) for field in FIELDS}

        return MetadataSnapshot(
            version=self._version,
            request_headers=collect_headers(request),
            client_address=client_address(request),
            **metadata,
        )

    @staticmethod
    def _resolve(source: MetadataSource, field: str) -> str:
        value, available = source.fetch(field)
        if not available:
            logger.debug(
                "Metadata field not available",
                extra={"event_type": "metadata_unavailable", "field": field},
            )
            return NOT_AVAILABLE
        return value
