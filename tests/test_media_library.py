import pytest

from animify.models.media import MediaItem, MediaType
from animify.services.media_library import MediaNotFoundError
from animify.services.state_store import MEDIA_ITEMS_KEY

from conftest import PNG_B64, STORY_URL, VIDEO_URL

SID = "a" * 32
HEADERS = {"host": "animify.test", "x-forwarded-proto": "https"}


@pytest.fixture
def photo(library):
    return library.upload_photo(SID, b"\x89PNG\r\n\x1a\n", "image/png")


def test_upload_photo_adds_image_item(library, photo):
    assert photo.type == MediaType.IMAGE
    assert photo.image_url.startswith("/api/uploads/")
    assert [item.id for item in library.load_items(SID)] == [photo.id]


def test_transform_uses_session_defaults_and_overrides(library, transform_config, fake_exh, photo):
    transform_config.update_defaults(SID, {"style": "anime"})

    item = library.transform_photo(SID, photo.id, "on a boat", {"gender": "woman", "style": None})
    assert item.loading is True
    assert item.parent_id == photo.id
    assert item.params["style"] == "anime"
    assert item.params["gender"] == "woman"

    done = library.run_job(SID, item.id)

    assert done.loading is False
    assert done.error is None
    assert done.image_url.startswith("/api/uploads/")
    name, args, kwargs = fake_exh.last("generate_gallery_image")
    assert args == (PNG_B64, "on a boat")
    assert kwargs["style"] == "anime"


def test_failed_job_records_upstream_message(library, fake_exh, upstream_error, photo):
    fake_exh.error = upstream_error("Status: 400 Bad Request. Response: {}", status_code=400)
    item = library.transform_photo(SID, photo.id, "prompt")

    done = library.run_job(SID, item.id)

    assert done.loading is False
    assert done.error == "Status: 400 Bad Request. Response: {}"
    assert library.get_item(SID, item.id).error == done.error


def test_unexpected_failure_gets_generic_message(library, fake_exh, photo):
    fake_exh.error = KeyError("boom")
    item = library.animate_story(SID, photo.id, "a walk")

    assert library.run_job(SID, item.id).error == "Failed to generate animated story"


def test_animate_photo_sends_public_url(library, fake_exh, photo):
    item = library.animate_photo(SID, photo.id, "wave hello")
    assert item.type == MediaType.VIDEO
    assert item.image_url == photo.image_url

    done = library.run_job(SID, item.id, HEADERS)

    assert done.video_url == VIDEO_URL
    assert done.image_url == photo.image_url
    _, args, _ = fake_exh.last("submit_video_generation")
    assert args == (f"https://animify.test{photo.image_url}", "wave hello")


def test_animate_photo_without_image_fails(library):
    parent = library.add_item(SID, MediaItem(type=MediaType.IMAGE, loading=True))
    item = library.animate_photo(SID, parent.id, "wave")

    assert library.run_job(SID, item.id).error == "Image URL is missing"


def test_animate_story_falls_back_to_defaults(library, fake_exh, photo):
    item = library.animate_story(SID, photo.id, "a day out", hair_color="red")
    assert item.gender == "woman"
    assert item.hair_color == "red"

    done = library.run_job(SID, item.id)

    assert done.url == STORY_URL
    assert done.result_url == STORY_URL
    _, args, kwargs = fake_exh.last("animate_story")
    assert args == (PNG_B64, "a day out")
    assert kwargs["hair_color"] == "red"


def test_retry_creates_fresh_item_with_same_parameters(library, fake_exh, upstream_error, photo):
    fake_exh.error = upstream_error()
    failed = library.transform_photo(SID, photo.id, "sunset", {"style": "anime"})
    library.run_job(SID, failed.id)

    fake_exh.error = None
    retry = library.retry_item(SID, failed.id)

    assert retry.id != failed.id
    assert retry.loading is True
    assert retry.error is None
    assert retry.params == library.get_item(SID, failed.id).params
    assert library.run_job(SID, retry.id).image_url


def test_retry_rejects_uploaded_photos(library, photo):
    with pytest.raises(ValueError, match="Only generated items can be retried"):
        library.retry_item(SID, photo.id)


def test_missing_items(library):
    with pytest.raises(MediaNotFoundError):
        library.transform_photo(SID, "nope", "prompt")
    assert library.run_job(SID, "nope") is None
    assert library.delete_item(SID, "nope") is False


def test_job_for_deleted_parent_records_error(library, photo):
    item = library.transform_photo(SID, photo.id, "prompt")
    library.delete_item(SID, photo.id)

    assert library.run_job(SID, item.id).error == f"Media item {photo.id} not found"


def test_save_drops_finished_items_without_image_and_strips_base64(library, store):
    library.save_items(SID, [
        MediaItem(type=MediaType.IMAGE),
        MediaItem(type=MediaType.IMAGE, error="failed"),
        MediaItem(type=MediaType.IMAGE, image_url="/api/uploads/a.png", base64=PNG_B64),
    ])

    stored = store.get_json(SID, MEDIA_ITEMS_KEY)
    assert len(stored) == 2
    assert stored[1]["base64"] is None
    assert stored[1]["has_base64"] is True


def test_malformed_entries_are_skipped(library, store):
    store.set_json(SID, MEDIA_ITEMS_KEY, [{"type": "hologram"}, {"image_url": "/api/uploads/a.png"}])

    items = library.load_items(SID)
    assert len(items) == 1
    assert items[0].image_url == "/api/uploads/a.png"


def test_clear_and_statistics(library, photo):
    library.transform_photo(SID, photo.id, "prompt")
    assert library.get_statistics(SID) == {"total": 2, "loading": 1, "failed": 0}

    library.clear_items(SID)
    assert library.load_items(SID) == []
