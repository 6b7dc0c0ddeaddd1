import httpx
from fastapi import status
from fastapi.testclient import TestClient

from tests.fixtures.fake_streamtape import envelope


def test_provider_error_passes_status_and_message(client: TestClient, fake_streamtape):
    fake_streamtape.overrides["file/listfolder"] = envelope(None, status=403, msg="Invalid login or key")

    response = client.get("/api/videos")

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json() == {"success": False, "message": "Invalid login or key"}


def test_provider_unreachable(client: TestClient, fake_streamtape):
    fake_streamtape.overrides["file/getsplash"] = httpx.ConnectError("connection refused")

    response = client.get("/api/videos/abc123/thumbnail")

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json() == {"success": False, "message": "Server error while contacting Streamtape."}


def test_provider_non_json_answer(client: TestClient, fake_streamtape):
    fake_streamtape.overrides["file/dlticket"] = lambda request: httpx.Response(503, text="maintenance")

    response = client.get("/api/videos/abc123/download-ticket")

    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert response.json()["message"] == "Failed to get download ticket."


def test_download_link_requires_ticket(client: TestClient, fake_streamtape):
    response = client.get("/api/videos/abc123/download-link")

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"success": False, "message": "Download ticket is required."}
    assert fake_streamtape.calls == []


def test_remote_upload_requires_url(client: TestClient, fake_streamtape):
    response = client.post("/api/remote-upload", json={"name": "video.mp4"})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"success": False, "message": "Remote URL is required."}
    assert fake_streamtape.calls == []


def test_remote_upload_invalid_body(client: TestClient):
    response = client.post("/api/remote-upload", content=b"not json", headers={"Content-Type": "application/json"})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["success"] is False


def test_remote_upload_status_unknown_id(client: TestClient):
    response = client.get("/api/remote-upload-status/missing")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json() == {"success": False, "message": "Remote upload missing not found."}


def test_unexpected_error_is_contained(client: TestClient, fake_streamtape):
    def explode(request):
        raise RuntimeError("unexpected")

    fake_streamtape.overrides["file/listfolder"] = explode

    response = client.get("/api/videos")

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json() == {"success": False, "message": "Internal server error."}
    assert client.get("/").status_code == status.HTTP_200_OK


def test_unexpected_error_keeps_cors_headers(client: TestClient, fake_streamtape):
    def explode(request):
        raise RuntimeError("unexpected")

    fake_streamtape.overrides["file/listfolder"] = explode

    response = client.get("/api/videos", headers={"Origin": "http://localhost:5173"})

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
