"""
HTTP client the frontend uses to talk to its backend.

Every failure is raised as a BackendError subclass carrying a ``kind`` and
a human-readable ``reason``. Callers decide per endpoint whether a failure
degrades the response or fails it. There are no retries: one attempt per
inbound request, bounded by the configured timeout.
"""

import time
from typing import Optional

import httpx
from pydantic import ValidationError

from hostmeta.models.snapshot import MetadataSnapshot
from hostmeta.utils.logging_config import get_logger


logger = get_logger("hostmeta.backend_client")


class BackendError(Exception):
    """Base class for failures talking to the backend."""

    kind = "error"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class BackendUnreachableError(BackendError):
    kind = "unreachable"


class BackendTimeoutError(BackendError):
    kind = "timeout"


class BackendStatusError(BackendError):
    kind = "status"

    def __init__(self, status_code: int) -> None:
        super().__init__(f"backend returned HTTP {status_code}")
        self.status_code = status_code


class BackendPayloadError(BackendError):
    kind = "malformed"


class BackendClient:
    """
    Pooled client bound to one backend base URL.

    The underlying httpx.Client keeps connections alive between requests;
    close() releases them at shutdown.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def fetch_snapshot(self) -> MetadataSnapshot:
        """GET the backend root and parse it into a MetadataSnapshot."""
        body = self._get("/")
        try:
            return MetadataSnapshot.model_validate_json(body)
        except ValidationError as exc:
            raise self._failed(
                BackendPayloadError(f"malformed backend response: {exc.error_count()} error(s)"),
                "/",
            ) from exc

    def check_health(self) -> None:
        """GET the backend /healthz; returns only if it answered 200."""
        self._get("/healthz")

    def _get(self, path: str) -> bytes:
        """
        Body of a 200 answer to GET ``path``.

        httpx timeouts apply per network operation, so a backend dribbling
        its body would keep resetting them. The body is streamed instead
        and the whole exchange is abandoned once ``timeout`` has elapsed.
        """
        deadline = time.monotonic() + self.timeout
        try:
            with self._client.stream("GET", path) as response:
                if response.status_code != 200:
                    raise self._failed(BackendStatusError(response.status_code), path)

                body = bytearray()
                for chunk in response.iter_bytes():
                    body.extend(chunk)
                    if time.monotonic() > deadline:
                        raise self._timed_out(path)
        except httpx.TimeoutException as exc:
            raise self._timed_out(path) from exc
        except httpx.DecodingError as exc:
            raise self._failed(
                BackendPayloadError(f"undecodable backend response: {exc}"), path
            ) from exc
        except httpx.RequestError as exc:
            raise self._failed(
                BackendUnreachableError(f"cannot connect to {self.base_url}: {exc}"), path
            ) from exc

        if time.monotonic() > deadline:
            raise self._timed_out(path)
        return bytes(body)

    def _timed_out(self, path: str) -> BackendError:
        return self._failed(BackendTimeoutError(f"timed out after {self.timeout:g}s"), path)

    def _failed(self, error: BackendError, path: str) -> BackendError:
        logger.warning(
            "Backend call failed",
            extra={
                "event_type": "backend_error",
                "backend_url": self.base_url,
                "path": path,
                "error_kind": error.kind,
                "reason": error.reason,
            },
        )
        return error
