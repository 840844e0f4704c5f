from animify.routes import proxy

from conftest import PNG_B64, STORY_URL, VIDEO_URL

PNG_BYTES = b"\x89PNG\r\n\x1a\n"


def _upload(client):
    response = client.post("/api/upload", files={"image": ("face.png", PNG_BYTES, "image/png")})
    assert response.status_code == 200
    return response.json()["imageUrl"]


def test_photo_requires_image_and_prompt(client):
    response = client.post("/api/photo", json={"prompt": "beach"})

    assert response.status_code == 400
    assert response.json()["error"] == "Missing required parameters"


def test_photo_forwards_cleaned_image_and_options(client, fake_exh):
    response = client.post("/api/photo", json={
        "identity_image_b64": f"data:image/png;base64,{PNG_B64}",
        "prompt": "at the beach",
        "style": "anime",
    })

    assert response.status_code == 200
    assert response.json() == {"image_b64": PNG_B64}
    _, args, kwargs = fake_exh.last("generate_gallery_image")
    assert args == (PNG_B64, "at the beach")
    assert kwargs == {"style": "anime"}


def test_photo_upstream_error_keeps_status(client, fake_exh, upstream_error):
    fake_exh.error = upstream_error("Status: 400 Bad Request. Response: {}", status_code=400)

    response = client.post("/api/photo", json={"identity_image_b64": PNG_B64, "prompt": "x"})

    assert response.status_code == 400
    assert response.json()["error"] == "Status: 400 Bad Request. Response: {}"


def test_video_validates_prompt_and_image(client):
    response = client.post("/api/video", json={"image_url": "https://x/a.png", "prompt": "  "})
    assert response.status_code == 400
    assert response.json()["error"] == "Prompt must be a non-empty string"

    response = client.post("/api/video", json={"prompt": "dance"})
    assert response.json()["error"] == "Missing required parameter: image_url"


def test_video_makes_relative_url_public(client, fake_exh):
    response = client.post(
        "/api/video",
        json={"image_url": "/api/uploads/a.png", "prompt": "dance"},
        headers={"x-forwarded-host": "animify.example.com", "x-forwarded-proto": "https"},
    )

    assert response.status_code == 200
    assert response.json() == {"videoUrl": VIDEO_URL}
    _, args, _ = fake_exh.last("submit_video_generation")
    assert args == ("https://animify.example.com/api/uploads/a.png", "dance")


def test_animate_story_reads_local_upload(client, fake_exh):
    image_url = _upload(client)

    response = client.post("/api/animate-story", json={"imageUrl": image_url, "prompt": "a walk"})

    assert response.status_code == 200
    assert response.json() == {"videoUrl": STORY_URL}
    _, args, _ = fake_exh.last("animate_story")
    assert args == (PNG_B64, "a walk")


def test_animate_story_errors(client):
    response = client.post("/api/animate-story", json={"prompt": "a walk"})
    assert response.status_code == 400
    assert "imageUrl and prompt are required" in response.json()["error"]

    response = client.post(
        "/api/animate-story", json={"imageUrl": "/api/uploads/gone.png", "prompt": "a walk"}
    )
    assert response.status_code == 500


def test_faceswap(client, fake_exh, upstream_error):
    response = client.post("/api/faceswap", json={"source_image_b64": "A"})
    assert response.status_code == 400
    assert response.json()["error"] == "Both source and target images are required"

    response = client.post("/api/faceswap", json={"source_image_b64": "A", "target_image_b64": "B"})
    assert response.json() == {"image_b64": PNG_B64}

    fake_exh.error = upstream_error("Face swap API request failed", status_code=413)
    response = client.post("/api/faceswap", json={"source_image_b64": "A", "target_image_b64": "B"})
    assert response.status_code == 413


def test_chatbot_requires_context(client, fake_exh):
    assert client.post("/api/chatbot", json={"bot_profile": {}}).status_code == 400

    body = {"context": [{"message": "hi", "turn": "user"}]}
    response = client.post("/api/chatbot", json=body)

    assert response.json()["response"] == "Hi there!"
    assert fake_exh.last("chatbot_response")[1] == (body,)


def test_contextual_photo_error_includes_details(client, fake_exh, upstream_error):
    response = client.post("/api/contextualPhoto", json={"strapi_bot_id": 1, "user_id": "u", "context": []})
    assert response.json() == fake_exh.contextual_result

    fake_exh.error = upstream_error("Failed to generate photo", status_code=500, payload={"detail": "no bot"})
    response = client.post("/api/contextualPhoto", json={"strapi_bot_id": 1, "user_id": "u", "context": []})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to generate photo", "details": {"detail": "no bot"}}


def test_upload_and_serve(client):
    image_url = _upload(client)

    response = client.get(image_url)

    assert response.status_code == 200
    assert response.content == PNG_BYTES
    assert response.headers["content-type"] == "image/png"
    assert "immutable" in response.headers["cache-control"]


def test_upload_requires_file_and_serve_missing(client):
    assert client.post("/api/upload").status_code == 400
    assert client.get("/api/uploads/missing.png").status_code == 404


def test_download_requires_url(client):
    response = client.get("/api/download")

    assert response.status_code == 400
    assert response.text == "Missing url parameter"


def test_download_local_upload(client):
    image_url = _upload(client)

    response = client.get("/api/download", params={"url": image_url, "filename": "photo.png"})

    assert response.status_code == 200
    assert response.content == PNG_BYTES
    assert response.headers["content-disposition"] == 'attachment; filename="photo.png"'


class FakeDownload:
    def __init__(self, status_code=200, body=b"video-bytes", headers=None):
        self.status_code = status_code
        self.ok = status_code < 400
        self.headers = headers or {"content-type": "video/mp4"}
        self.body = body
        self.closed = False

    def iter_content(self, chunk_size=1):
        yield self.body

    def close(self):
        self.closed = True


def test_download_streams_remote_file(client, monkeypatch):
    fake = FakeDownload()
    monkeypatch.setattr(proxy.requests, "get", lambda url, stream, timeout: fake)

    response = client.get("/api/download", params={"url": VIDEO_URL, "filename": "clip.mp4"})

    assert response.status_code == 200
    assert response.content == b"video-bytes"
    assert response.headers["content-type"] == "video/mp4"
    assert response.headers["content-disposition"] == 'attachment; filename="clip.mp4"'
    assert fake.closed


def test_download_remote_failure(client, monkeypatch):
    monkeypatch.setattr(proxy.requests, "get", lambda url, stream, timeout: FakeDownload(404))

    response = client.get("/api/download", params={"url": VIDEO_URL})

    assert response.status_code == 502
    assert response.text == "Failed to fetch file"


def test_animate_story_checks_token_before_fetching_image(client, monkeypatch):
    from animify.services.exh_client import ExhClient, TOKEN_MISSING

    def fetch(url):
        raise AssertionError("image should not be fetched")

    monkeypatch.setattr(proxy, "exh_client", ExhClient(api_token="", video_token="", botify_token="", x_auth_token=""))
    monkeypatch.setattr(proxy.upload_service, "to_base64", fetch)

    response = client.post(
        "/api/animate-story", json={"imageUrl": "https://cdn.example.com/a.png", "prompt": "a walk"}
    )

    assert response.status_code == 500
    assert response.json()["error"] == TOKEN_MISSING


def test_download_filename_cannot_break_header(client, monkeypatch):
    monkeypatch.setattr(proxy.requests, "get", lambda url, stream, timeout: FakeDownload())

    response = client.get(
        "/api/download", params={"url": VIDEO_URL, "filename": 'clip".mp4\r\nX-Injected: 1'}
    )

    assert response.headers["content-disposition"] == 'attachment; filename="clip.mp4X-Injected: 1"'
    assert "x-injected" not in response.headers
