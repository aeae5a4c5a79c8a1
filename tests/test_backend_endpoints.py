import pytest
from fastapi.testclient import TestClient

from hostmeta.config.settings import Settings
from hostmeta.main import create_app
from hostmeta.models.snapshot import NOT_AVAILABLE, MetadataSnapshot
from hostmeta.routers.deps import get_snapshot_builder


VERSION = "1.2.3"


def backend_client(source_factory) -> TestClient:
    app = create_app(Settings(role="backend", version=VERSION), metadata_source_factory=source_factory)
    return TestClient(app)


def test_root_returns_snapshot_json(fake_source_factory):
    client = backend_client(fake_source_factory())

    response = client.get("/", headers={"X-Trace": "abc"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")

    body = response.json()
    assert body["version"] == VERSION
    assert body["instanceId"] == "i-1"
    assert body["projectId"] == "p-1"
    assert body["zone"] == "us-central1-a"
    assert body["internalIP"] == "10.0.0.5"
    assert body["externalIP"] == NOT_AVAILABLE
    assert body["requestHeaders"]["x-trace"] == ["abc"]
    assert body["clientAddress"] == "testclient"

    # The frontend parses exactly this shape
    assert MetadataSnapshot.model_validate(body).version == VERSION


def test_unavailable_fields_are_present_with_sentinel(fake_source_factory):
    client = backend_client(fake_source_factory({}))

    body = client.get("/").json()

    for key in ("hostname", "instanceId", "projectId", "zone", "internalIP", "externalIP"):
        assert key in body
        assert body[key] == NOT_AVAILABLE


def test_repeated_gets_are_identical(fake_source_factory):
    client = backend_client(fake_source_factory())

    first = client.get("/").json()
    second = client.get("/").json()

    assert first == second


def test_healthz_ignores_metadata_state():
    def exploding_factory():
        raise AssertionError("healthz must not gather metadata")

    client = backend_client(exploding_factory)

    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.text == "ok"


def test_version_is_plain_text(fake_source_factory):
    client = backend_client(fake_source_factory())

    response = client.get("/version")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert response.text == VERSION


def test_serialization_failure_is_generic_500(fake_source_factory):
    class BrokenSnapshot:
        def to_json(self):
            raise TypeError("Object of type bytes is not JSON serializable")

    class BrokenBuilder:
        def build(self, request):
            return BrokenSnapshot()

    app = create_app(Settings(role="backend", version=VERSION), metadata_source_factory=fake_source_factory())
    app.dependency_overrides[get_snapshot_builder] = lambda: BrokenBuilder()
    client = TestClient(app)

    response = client.get("/")
    assert response.status_code == 500

    body = response.json()
    assert body["error"]["code"] == "serialization_error"
    # No internal detail leaks to the caller
    assert "bytes" not in body["error"]["message"]
    assert body["meta"]["version"] == VERSION


@pytest.mark.parametrize("path", ["/", "/healthz"])
def test_backend_does_not_call_a_backend(fake_source_factory, path):
    app = create_app(Settings(role="backend"), metadata_source_factory=fake_source_factory())
    assert app.state.backend_client is None
    assert TestClient(app).get(path).status_code == 200
