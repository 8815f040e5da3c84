from fastapi.testclient import TestClient
from desire.main import app
import pytest

from conftest import InMemoryDocumentStore, InMemoryKeyValueStore
from desire.api.deps import SessionRegistry

client = TestClient(app)


@pytest.fixture(autouse=True)
def registry():
    # Lifespan does not run without a context manager, so no Mongo is needed
    app.state.sessions = SessionRegistry(
        kv_factory=lambda device_id: InMemoryKeyValueStore(),
        documents=InMemoryDocumentStore()
    )
    yield app.state.sessions


def test_404_not_found():
    response = client.get("/non-existent-route")
    assert response.status_code == 404
    data = response.json()
    assert "error" in data
    assert "code" in data
    assert data["code"] == "HTTP_ERROR"


def test_unknown_device_uses_error_body():
    response = client.get("/api/v1/devices/ghost/session")
    assert response.status_code == 404
    data = response.json()
    assert data["code"] == "NOT_FOUND"
    assert data["error"] == "No session for device ghost"


def test_validation_error_structure():
    response = client.post("/api/v1/devices/phone-1/pantry/items", json={"name": ""})
    assert response.status_code == 422
    data = response.json()
    assert data["code"] == "VALIDATION_ERROR"
    assert "details" in data
    assert len(data["details"]) > 0


def test_custom_exception():
    from desire.core.exceptions import LocalPersistenceError

    @app.get("/test-custom-error")
    def trigger_custom_error():
        raise LocalPersistenceError()

    response = client.get("/test-custom-error")
    assert response.status_code == 500
    data = response.json()
    assert data["code"] == "LOCAL_PERSISTENCE_ERROR"
    assert data["error"] == "Failed to save onboarding progress"


def test_liveness():
    assert client.get("/live").json() == {"status": "alive"}
