import json

import pytest
import requests

from animify.services import exh_client as exh_module
from animify.services.exh_client import ExhAPIError, ExhClient, TOKEN_MISSING


class FakeResponse:
    def __init__(self, status_code=200, data=None, text=None, reason=None):
        self.status_code = status_code
        self.reason = reason or ("OK" if status_code < 400 else "Bad Request")
        self._data = data
        self.text = text if text is not None else json.dumps(data)

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._data is None:
            raise ValueError("Expecting value")
        return self._data


@pytest.fixture
def posts(monkeypatch):
    """Capture outbound POSTs; set ``posts.response`` to control the reply."""
    class Recorder:
        calls = []
        response = FakeResponse(200, {})

    def fake_post(url, json=None, headers=None, timeout=None):
        Recorder.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if isinstance(Recorder.response, Exception):
            raise Recorder.response
        return Recorder.response

    Recorder.calls = []
    monkeypatch.setattr(exh_module.requests, "post", fake_post)
    return Recorder


@pytest.fixture
def exh():
    return ExhClient(
        base_url="https://api.test/",
        api_token="ai-token",
        video_token="video-token",
        botify_token="botify-token",
        x_auth_token="x-auth",
        timeout=5,
    )


def test_gallery_image_sends_defaults_and_bearer_token(exh, posts):
    posts.response = FakeResponse(200, {"image_b64": "AAAA"})

    assert exh.generate_gallery_image("SRC", "at the beach", style="anime", gender=None) == "AAAA"

    call = posts.calls[0]
    assert call["url"] == "https://api.test/image/v1/generate_gallery_image"
    assert call["headers"]["authorization"] == "Bearer ai-token"
    assert call["timeout"] == 5
    assert call["json"] == {
        "model_name": "base",
        "style": "anime",
        "gender": "auto",
        "body_type": "auto",
        "skin_color": "auto",
        "auto_detect_hair_color": True,
        "nsfw_policy": "block",
        "identity_image_b64": "SRC",
        "prompt": "at the beach",
    }


def test_gallery_image_error_reports_status_and_body(exh, posts):
    posts.response = FakeResponse(400, {"detail": "bad image"}, reason="Bad Request")

    with pytest.raises(ExhAPIError) as excinfo:
        exh.generate_gallery_image("SRC", "prompt")

    assert excinfo.value.status_code == 400
    assert excinfo.value.message == 'Status: 400 Bad Request. Response: {"detail": "bad image"}'


def test_unparseable_success_body_is_bad_gateway(exh, posts):
    posts.response = FakeResponse(200, None, text="<html>")

    with pytest.raises(ExhAPIError) as excinfo:
        exh.generate_gallery_image("SRC", "prompt")

    assert excinfo.value.status_code == 502
    assert excinfo.value.message.startswith("Failed to parse API response:")


def test_network_failure_is_service_unavailable(exh, posts):
    posts.response = requests.exceptions.ConnectionError("connection refused")

    with pytest.raises(ExhAPIError) as excinfo:
        exh.submit_video_generation("https://x/a.png", "dance")

    assert excinfo.value.status_code == 503
    assert "Network error while calling ExH AI API" in excinfo.value.message


def test_missing_token_fails_before_any_request(posts):
    exh = ExhClient(api_token="", video_token="", botify_token="", x_auth_token="")

    with pytest.raises(ExhAPIError) as excinfo:
        exh.faceswap("A", "B")

    assert excinfo.value.status_code == 500
    assert excinfo.value.message == TOKEN_MISSING
    assert posts.calls == []


def test_video_pro_marker_and_random_ids(exh, posts):
    posts.response = FakeResponse(200, {"media_url": "https://cdn/v.mp4"})

    assert exh.submit_video_generation("https://x/a.png", "Make it :PRO: smooth") == "https://cdn/v.mp4"

    payload = posts.calls[0]["json"]
    assert posts.calls[0]["url"].endswith("/chat_media_manager/v2/submit_video_generation_task")
    assert payload["model_id"] == "pro"
    assert payload["duration"] == 20
    assert payload["nsfw"] is True and payload["allow_nsfw"] is True
    for key in ("user_id", "bot_id"):
        assert len(payload[key]) == 4 and 1000 <= int(payload[key]) <= 9999


def test_video_error_prefers_upstream_error_field(exh, posts):
    posts.response = FakeResponse(422, {"error": "image too small"})

    with pytest.raises(ExhAPIError) as excinfo:
        exh.submit_video_generation("https://x/a.png", "dance")

    assert excinfo.value.status_code == 422
    assert excinfo.value.message == "image too small"


def test_video_ok_without_media_url_is_an_error(exh, posts):
    posts.response = FakeResponse(200, {"status": "queued"})

    with pytest.raises(ExhAPIError) as excinfo:
        exh.submit_video_generation("https://x/a.png", "dance")

    assert excinfo.value.message == "Response has error"
    assert excinfo.value.status_code == 502


def test_animate_story_uses_video_token_and_defaults(exh, posts):
    posts.response = FakeResponse(200, {"video_url": "https://cdn/s.mp4"})

    assert exh.animate_story("IMG", "a day at the park", hair_color="red") == "https://cdn/s.mp4"

    call = posts.calls[0]
    assert call["url"].endswith("/animations/v3/animate_story_experimental")
    assert call["headers"]["authorization"] == "Bearer video-token"
    assert call["json"]["hair_color"] == "red"
    assert call["json"]["gender"] == "woman"
    assert call["json"]["animation_model"] == "pro"
    assert call["json"]["duration"] == 10


def test_faceswap_failure_keeps_upstream_status(exh, posts):
    posts.response = FakeResponse(413, None, text="too large")

    with pytest.raises(ExhAPIError) as excinfo:
        exh.faceswap("A", "B")

    assert excinfo.value.status_code == 413
    assert excinfo.value.message == "Face swap API request failed"
    assert posts.calls[0]["json"]["nsfw_policy"] == "allow"


def test_chatbot_forwards_body_verbatim(exh, posts):
    posts.response = FakeResponse(200, {"response": "hello"})
    body = {"context": [{"message": "hi", "turn": "user"}], "bot_profile": {"name": "Mia"}}

    assert exh.chatbot_response(body) == {"response": "hello"}
    assert posts.calls[0]["json"] == body
    assert posts.calls[0]["url"].endswith("/chatbot/v3/response")


def test_contextual_image_sends_x_auth_header(exh, posts):
    posts.response = FakeResponse(200, {"image_url": "https://cdn/p.jpg"})

    exh.contextual_image(42, "u1", [{"message": "hi"}])

    call = posts.calls[0]
    assert call["headers"]["authorization"] == "Bearer botify-token"
    assert call["headers"]["x-auth-token"] == "x-auth"
    assert call["json"]["photo_model_id"] == "elite"


def test_contextual_image_requires_x_auth_token(posts):
    exh = ExhClient(api_token="a", botify_token="b", x_auth_token="")

    with pytest.raises(ExhAPIError, match="X-Auth token not configured on server"):
        exh.contextual_image(1, 2, [])


def test_contextual_image_failure_keeps_details(exh, posts):
    posts.response = FakeResponse(404, {"detail": "no bot"})

    with pytest.raises(ExhAPIError) as excinfo:
        exh.contextual_image(1, 2, [])

    assert excinfo.value.status_code == 500
    assert excinfo.value.payload == {"detail": "no bot"}
