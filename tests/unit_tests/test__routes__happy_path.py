from fastapi import status
from fastapi.testclient import TestClient

from tests.consts import (
    STREAM_BASE_URL,
    TEST_FOLDER_ID,
    TEST_KEY,
    TEST_LOGIN,
    TEST_VIDEO_CONTENT,
    TEST_VIDEO_CONTENT_TYPE,
    TEST_VIDEO_NAME,
)


def upload(client: TestClient, name=TEST_VIDEO_NAME, content=TEST_VIDEO_CONTENT, content_type=TEST_VIDEO_CONTENT_TYPE):
    return client.post("/api/upload", files={"videoFile": (name, content, content_type)})


def test_upload_video(client: TestClient, fake_streamtape):
    response = upload(client)

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Video uploaded successfully!"

    data = body["data"]
    assert data["fileId"] == "file1"
    assert data["fileName"] == TEST_VIDEO_NAME
    assert data["streamUrl"] == STREAM_BASE_URL + data["fileId"]
    assert data["size"] == len(TEST_VIDEO_CONTENT)
    assert data["downloadUrl"] == f"https://streamtape.com/v/file1/{TEST_VIDEO_NAME}"

    # bytes arrive at the upload URL unchanged, under the provider's field name
    assert fake_streamtape.uploads == [{"field": "file1", "filename": TEST_VIDEO_NAME, "data": TEST_VIDEO_CONTENT}]


def test_upload_negotiates_with_credentials_and_folder(client: TestClient, fake_streamtape):
    upload(client)

    (negotiation,) = fake_streamtape.calls_to("/file/ul")
    assert negotiation.method == "GET"
    assert negotiation.url.params["login"] == TEST_LOGIN
    assert negotiation.url.params["key"] == TEST_KEY
    assert negotiation.url.params["folder"] == TEST_FOLDER_ID

    # negotiation strictly before the single transfer
    assert fake_streamtape.calls.index(negotiation) < fake_streamtape.calls.index(fake_streamtape.upload_calls[0])
    assert len(fake_streamtape.upload_calls) == 1


def test_upload_payload_is_the_same_for_every_strategy(strategy_client: TestClient, fake_streamtape, upload_dir):
    response = upload(strategy_client)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()["data"]
    assert set(data) == {"fileId", "fileName", "streamUrl", "downloadUrl", "size", "contentType", "sha256"}
    assert data["streamUrl"] == STREAM_BASE_URL + data["fileId"]
    assert fake_streamtape.uploads[0]["data"] == TEST_VIDEO_CONTENT
    assert list(upload_dir.iterdir()) == []


def test_upload_ignores_other_form_fields(client: TestClient, fake_streamtape):
    response = client.post(
        "/api/upload",
        data={"title": "holiday"},
        files={
            "thumbnail": ("thumb.jpg", b"jpeg-bytes", "image/jpeg"),
            "videoFile": (TEST_VIDEO_NAME, TEST_VIDEO_CONTENT, TEST_VIDEO_CONTENT_TYPE),
        },
    )

    assert response.status_code == status.HTTP_200_OK
    assert len(fake_streamtape.uploads) == 1
    assert fake_streamtape.uploads[0]["data"] == TEST_VIDEO_CONTENT


def test_upload_empty_file(client: TestClient, fake_streamtape):
    response = upload(client, content=b"")

    assert response.status_code == status.HTTP_200_OK
    assert fake_streamtape.uploads[0]["data"] == b""


def test_list_videos_only_returns_converted(client: TestClient, fake_streamtape):
    response = client.get("/api/videos")

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["success"] is True
    assert [v["linkid"] for v in body["videos"]] == ["abc123"]
    (call,) = fake_streamtape.calls_to("/file/listfolder")
    assert call.url.params["folder"] == TEST_FOLDER_ID


def test_get_thumbnail(client: TestClient):
    response = client.get("/api/videos/abc123/thumbnail")

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"success": True, "thumbnailUrl": "https://thumb.streamtape.test/abc123.jpg"}


def test_download_ticket_then_link(client: TestClient, fake_streamtape):
    response = client.get("/api/videos/abc123/download-ticket")

    assert response.status_code == status.HTTP_200_OK
    ticket = response.json()
    assert ticket == {"success": True, "ticket": "ticket-1", "wait_time": 5}

    response = client.get("/api/videos/abc123/download-link", params={"ticket": ticket["ticket"]})

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {
        "success": True,
        "downloadUrl": "https://dl.streamtape.test/abc123/clip.mp4",
        "filename": "clip.mp4",
    }
    (call,) = fake_streamtape.calls_to("/file/dl")
    assert call.url.params["ticket"] == "ticket-1"
    assert "key" not in call.url.params


def test_remote_upload_then_status(client: TestClient, fake_streamtape):
    response = client.post("/api/remote-upload", json={"url": "https://example.com/video.mp4"})

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body == {"success": True, "remoteUploadId": "remote1", "folderId": TEST_FOLDER_ID}

    response = client.get(f"/api/remote-upload-status/{body['remoteUploadId']}")

    assert response.status_code == status.HTTP_200_OK
    status_body = response.json()
    assert status_body["status"] == "new"
    assert status_body["remoteUrl"] == "https://example.com/video.mp4"
    assert status_body["streamtapeUrl"] is None


def test_root(client: TestClient):
    response = client.get("/")

    assert response.status_code == status.HTTP_200_OK
    assert response.text == "Streamtape relay API is running!"
