TEST_LOGIN = "test-login"
TEST_KEY = "test-key"
TEST_FOLDER_ID = "folder-123"

FAKE_API_BASE_URL = "https://api.streamtape.test"
FAKE_UPLOAD_HOST = "upload.streamtape.test"
FAKE_UPLOAD_URL = f"https://{FAKE_UPLOAD_HOST}/ul/one-time-token"
STREAM_BASE_URL = "https://streamtape.com/e/"

TEST_VIDEO_NAME = "clip.mp4"
TEST_VIDEO_CONTENT = b"0123456789"
TEST_VIDEO_CONTENT_TYPE = "video/mp4"
