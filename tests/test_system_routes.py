import pytest

from animify import __version__


def test_health_is_degraded_without_tokens(client):
    data = client.get("/health").json()

    assert data["status"] == "degraded"
    assert data["version"] == __version__
    assert data["tokens"] == {
        "exh_ai_api_token": False,
        "exh_video_api_token": False,
        "exh_botify_token": False,
        "x_auth_token": False,
    }
    assert data["services"]["exh_api"] == "unconfigured"


def test_config_never_exposes_token_values(client):
    data = client.get("/stats/config").json()

    assert data["version"] == __version__
    assert all(isinstance(value, bool) for value in data["tokens"].values())
    assert "token" not in " ".join(key for key in data if key != "tokens")


def test_session_stats_include_storage_and_media(client):
    client.post("/api/media/upload", files={"image": ("a.png", b"\x89PNG\r\n\x1a\n", "image/png")})

    data = client.get("/stats/sessions").json()

    assert data["media"]["total"] == 1
    assert data["uploads"]["file_count"] >= 1
    assert "stored_sessions" in data["state"]


def test_performance_stats(client):
    data = client.get("/stats/performance").json()

    assert "performance_metrics" in data


@pytest.mark.parametrize("path,marker", [
    ("/", "Photos"),
    ("/chat", "268785"),
    ("/faceswap", "Face Swap"),
    ("/config", "Bot"),
])
def test_pages_render(client, path, marker):
    response = client.get(path)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert marker in response.text


def test_templates_ship_inside_the_package():
    from pathlib import Path

    import animify
    from animify.routes.pages import TEMPLATES_DIR

    assert TEMPLATES_DIR.parent == Path(animify.__file__).resolve().parent
    assert (TEMPLATES_DIR / "base.html").is_file()


def test_only_api_and_page_routes_are_mounted():
    from animify import main

    assert not any(getattr(route, "name", None) == "static" for route in main.app.routes)
