import os
import socket
import sys
import threading
from typing import Dict, Optional

# Ensure the project root (the folder that contains `hostmeta/`) is on sys.path
ROOT_DIR = os.path.dirname(os.path.dirname(__file__))

if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

import pytest  # noqa: E402

from hostmeta.models.snapshot import NOT_AVAILABLE, MetadataSnapshot  # noqa: E402
from hostmeta.services.metadata_source import MISSING, FieldValue  # noqa: E402


class FakeMetadataSource:
    """Stands in for MetadataSource with fixed answers (None = unavailable)."""

    instances = 0

    def __init__(self, values: Dict[str, Optional[str]]) -> None:
        self.values = values
        self.closed = False
        self.fetched = []
        FakeMetadataSource.instances += 1

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.closed = True

    def fetch(self, field: str) -> FieldValue:
        self.fetched.append(field)
        value = self.values.get(field)
        if value is None:
            return MISSING
        return FieldValue(value, True)


ON_PLATFORM = {
    "hostname": "web-1",
    "instance_id": "i-1",
    "project_id": "p-1",
    "zone": "us-central1-a",
    "internal_ip": "10.0.0.5",
    "external_ip": None,
}


@pytest.fixture
def fake_source_factory():
    """Factory returning a fresh FakeMetadataSource per call."""

    def make(values: Optional[Dict[str, Optional[str]]] = None):
        answers = dict(ON_PLATFORM if values is None else values)
        return lambda: FakeMetadataSource(answers)

    return make


@pytest.fixture
def refused_url():
    """URL of a loopback port nothing is listening on."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return f"http://127.0.0.1:{port}"


@pytest.fixture
def silent_url():
    """URL of a server that accepts connections but never answers."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(8)
    try:
        yield f"http://127.0.0.1:{sock.getsockname()[1]}"
    finally:
        sock.close()


def backend_snapshot(**overrides) -> MetadataSnapshot:
    values = {
        "version": "1.0.0",
        "hostname": "backend-7",
        "instance_id": "i-backend",
        "project_id": "p-1",
        "zone": "us-central1-b",
        "internal_ip": "10.0.0.9",
        "external_ip": NOT_AVAILABLE,
        "request_headers": {"user-agent": ["python-httpx"]},
        "client_address": "10.0.0.5",
    }
    values.update(overrides)
    return MetadataSnapshot(**values)


@pytest.fixture
def dribbling_url():
    """URL of a server that answers 200 but sends its body a byte at a time."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(8)
    sock.settimeout(0.1)
    stop = threading.Event()

    def serve() -> None:
        while not stop.is_set():
            try:
                conn, _ = sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            with conn:
                conn.settimeout(2)
                try:
                    conn.recv(65536)
                    conn.sendall(
                        b"HTTP/1.1 200 OK\r\n"
                        b"Content-Type: text/plain\r\n"
                        b"Content-Length: 20\r\n\r\n"
                    )
                    for _ in range(20):
                        if stop.wait(0.2):
                            return
                        conn.sendall(b"o")
                except OSError:
                    continue

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{sock.getsockname()[1]}"
    finally:
        stop.set()
        thread.join(timeout=2)
        sock.close()
