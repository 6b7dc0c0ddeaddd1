from fastapi import status
from fastapi.testclient import TestClient


def test_health_ready(client: TestClient):
    response = client.get("/health")

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["status"] == "ok"
    assert body["ready"] is True
    assert body["environment"] == "development"
    assert body["components"] == {
        "api": "ready",
        "provider_credentials": "ready",
        "temp_storage": "ready",
    }
    assert "timestamp" in body


def test_health_without_credentials(make_client):
    client = make_client(streamtape_key=None)

    response = client.get("/health")

    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    body = response.json()
    assert body["status"] == "degraded"
    assert body["ready"] is False
    assert body["components"]["provider_credentials"] == "missing"


def test_health_with_missing_upload_dir(make_client, tmp_path):
    client = make_client(upload_tmp_dir=str(tmp_path / "does-not-exist"))

    response = client.get("/health")

    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert response.json()["components"]["temp_storage"] == "not writable"


def test_health_never_exposes_credentials(client: TestClient):
    response = client.get("/health")

    assert "test-key" not in response.text
