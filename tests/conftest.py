import os
import tempfile

# Point storage and logging at a scratch directory and clear credentials
# before config.py is imported anywhere.
_SCRATCH = tempfile.mkdtemp(prefix="animify-tests-")
os.environ["UPLOAD_DIR"] = os.path.join(_SCRATCH, "uploads")
os.environ["STATE_DIR"] = os.path.join(_SCRATCH, "state")
os.environ["SERVER_LOG_FILE"] = os.path.join(_SCRATCH, "server.log")
os.environ["LOG_LEVEL"] = "WARNING"
for _token in ("EXH_AI_API_TOKEN", "EXH_VIDEO_API_TOKEN", "EXH_BOTIFY_TOKEN", "X_AUTH_TOKEN"):
    os.environ[_token] = ""

import pytest
from fastapi.testclient import TestClient

from animify.services import (
    ChatConfigManager,
    ChatService,
    ExhAPIError,
    MediaLibrary,
    SessionService,
    StateStore,
    TransformConfigManager,
    UploadService,
)

# 8-byte PNG signature, enough for mime sniffing and base64 validation
PNG_B64 = "iVBORw0KGgo="
VIDEO_URL = "https://cdn.example.com/video.mp4"
STORY_URL = "https://cdn.example.com/story.mp4"


class FakeExhClient:
    """Stands in for ExhClient; records calls and returns canned results."""

    def __init__(self):
        self.calls = []
        self.error = None
        self.image_b64 = PNG_B64
        self.video_url = VIDEO_URL
        self.story_url = STORY_URL
        self.faceswap_result = {"image_b64": PNG_B64}
        self.chat_reply = {
            "response": "Hi there!",
            "image_response": {"bs64": PNG_B64, "prompt": "a selfie at the beach"},
        }
        self.contextual_result = {"image_url": "https://cdn.example.com/photo.jpg"}

    def _record(self, name, *args, **kwargs):
        self.calls.append((name, args, kwargs))
        if self.error is not None:
            raise self.error

    def last(self, name):
        matching = [call for call in self.calls if call[0] == name]
        assert matching, f"{name} was never called"
        return matching[-1]

    def generate_gallery_image(self, identity_image_b64, prompt, **options):
        self._record("generate_gallery_image", identity_image_b64, prompt, **options)
        return self.image_b64

    def submit_video_generation(self, image_url, prompt, **options):
        self._record("submit_video_generation", image_url, prompt, **options)
        return self.video_url

    def require_video_token(self):
        pass

    def animate_story(self, image_b64, prompt, **options):
        self._record("animate_story", image_b64, prompt, **options)
        return self.story_url

    def faceswap(self, source_image_b64, target_image_b64):
        self._record("faceswap", source_image_b64, target_image_b64)
        return self.faceswap_result

    def chatbot_response(self, body):
        self._record("chatbot_response", body)
        return self.chat_reply

    def contextual_image(self, strapi_bot_id, user_id, context):
        self._record("contextual_image", strapi_bot_id, user_id, context)
        return self.contextual_result


@pytest.fixture
def fake_exh():
    return FakeExhClient()


@pytest.fixture
def upstream_error():
    def make(message="Status: 500 Internal Server Error. Response: {}", status_code=500, payload=None):
        return ExhAPIError(message, status_code=status_code, payload=payload)
    return make


@pytest.fixture
def store(tmp_path):
    return StateStore(str(tmp_path / "state"))


@pytest.fixture
def uploads(tmp_path):
    return UploadService(str(tmp_path / "uploads"), max_bytes=1024 * 1024)


@pytest.fixture
def transform_config(store):
    return TransformConfigManager(store)


@pytest.fixture
def chat_config(store):
    return ChatConfigManager(store)


@pytest.fixture
def library(store, uploads, fake_exh, transform_config):
    return MediaLibrary(store, uploads, fake_exh, transform_config)


@pytest.fixture
def sessions():
    return SessionService(max_messages=50)


@pytest.fixture
def chat(sessions, chat_config, uploads, fake_exh):
    return ChatService(sessions, chat_config, uploads, fake_exh)


@pytest.fixture
def session_id(sessions):
    return sessions.create_session_id()


@pytest.fixture
def client(monkeypatch, fake_exh):
    """TestClient over the real app with every ExH call going to ``fake_exh``."""
    from animify import main
    from animify.routes import proxy

    monkeypatch.setattr(proxy, "exh_client", fake_exh)
    monkeypatch.setattr(main.media_library, "client", fake_exh)
    monkeypatch.setattr(main.chat_service, "client", fake_exh)

    return TestClient(main.app)
