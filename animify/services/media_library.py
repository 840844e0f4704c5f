"""
Media Library Service

Keeps each session's media items (uploaded photos, transformed photos,
videos and animated stories) and runs the generation jobs that fill them.

A generation is requested in two steps:
1. ``transform_photo``, ``animate_photo``, ``animate_story`` or
   ``retry_item`` appends a new item in the loading state and returns it.
2. ``run_job`` (scheduled as a background task) calls the ExH API and
   mutates the stored item: ``loading`` is cleared and either the result
   or ``error`` is set.

Items remember their ``parent_id`` and generation parameters, so a failed
or finished item can be retried against the same source.
"""

import logging
import threading
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from animify.models.media import MediaItem, MediaType
from animify.services.config_service import TransformConfigManager
from animify.services.exh_client import ExhAPIError, ExhClient, STORY_DEFAULTS
from animify.services.state_store import MEDIA_ITEMS_KEY, StateStore
from animify.services.upload_service import UploadService
from animify.utils.image_utils import build_public_url, clean_base64
from animify.utils.performance import timer_context

logger = logging.getLogger(__name__)

TRANSFORM_OPTIONS = (
    "model_name", "style", "gender", "body_type", "skin_color",
    "auto_detect_hair_color", "nsfw_policy",
)


class MediaNotFoundError(LookupError):
    """Raised when a media item id is unknown for the session."""


class MediaLibrary:
    """Per-session media items and their generation jobs."""

    def __init__(
        self,
        store: StateStore,
        uploads: UploadService,
        client: ExhClient,
        transform_config: TransformConfigManager,
    ):
        self.store = store
        self.uploads = uploads
        self.client = client
        self.transform_config = transform_config
        self._lock = threading.RLock()

    # ===== Persistence =====

    def load_items(self, session_id: str) -> List[MediaItem]:
        """Load the session's items; unparseable entries are skipped."""
        raw = self.store.get_json(session_id, MEDIA_ITEMS_KEY)
        if not isinstance(raw, list):
            return []

        items = []
        for entry in raw:
            try:
                items.append(MediaItem.model_validate(entry))
            except ValidationError as e:
                logger.error(f"Skipping malformed media item for session {session_id[:8]}...: {e}")
        return items

    def save_items(self, session_id: str, items: List[MediaItem]) -> None:
        """
        Persist items.

        Finished items without an ``image_url`` cannot be restored and are
        dropped. Base64 data is never stored; ``has_base64`` marks items
        that carried it.
        """
        stored = []
        for item in items:
            if not item.image_url and not item.loading and not item.error:
                continue
            if item.base64:
                item = item.model_copy(update={"base64": None, "has_base64": True})
            stored.append(item.model_dump(mode="json"))
        self.store.set_json(session_id, MEDIA_ITEMS_KEY, stored)

    def clear_items(self, session_id: str) -> None:
        with self._lock:
            self.store.remove_item(session_id, MEDIA_ITEMS_KEY)
        logger.info(f"Cleared media items for session {session_id[:8]}...")

    # ===== Item operations =====

    def get_item(self, session_id: str, item_id: str) -> Optional[MediaItem]:
        for item in self.load_items(session_id):
            if item.id == item_id:
                return item
        return None

    def require_item(self, session_id: str, item_id: str) -> MediaItem:
        item = self.get_item(session_id, item_id)
        if item is None:
            raise MediaNotFoundError(f"Media item {item_id} not found")
        return item

    def add_item(self, session_id: str, item: MediaItem) -> MediaItem:
        with self._lock:
            items = self.load_items(session_id)
            items.append(item)
            self.save_items(session_id, items)
        logger.info(f"Added {item.type.value} item {item.id[:8]} for session {session_id[:8]}...")
        return item

    def update_item(self, session_id: str, item_id: str, **changes) -> Optional[MediaItem]:
        """
        Replace fields of a stored item.

        Returns:
            The updated item, or None if it was deleted meanwhile
        """
        with self._lock:
            items = self.load_items(session_id)
            for index, item in enumerate(items):
                if item.id == item_id:
                    items[index] = item.model_copy(update=changes)
                    self.save_items(session_id, items)
                    return items[index]
        logger.debug(f"Media item {item_id[:8]} was removed before the update")
        return None

    def delete_item(self, session_id: str, item_id: str) -> bool:
        with self._lock:
            items = self.load_items(session_id)
            remaining = [item for item in items if item.id != item_id]
            if len(remaining) == len(items):
                return False
            self.save_items(session_id, remaining)
        logger.info(f"Deleted media item {item_id[:8]} for session {session_id[:8]}...")
        return True

    # ===== Requests =====

    def upload_photo(self, session_id: str, data: bytes, content_type: Optional[str]) -> MediaItem:
        """Store an uploaded photo and append it as an image item."""
        image_url = self.uploads.save_bytes(data, content_type)
        return self.add_item(session_id, MediaItem(type=MediaType.IMAGE, image_url=image_url))

    def transform_photo(
        self,
        session_id: str,
        item_id: str,
        prompt: str,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> MediaItem:
        """
        Queue a photo transform of ``item_id``.

        Options missing from ``overrides`` come from the session's
        transform defaults.
        """
        parent = self.require_item(session_id, item_id)
        defaults = self.transform_config.get_defaults(session_id).model_dump()
        params = {key: defaults.get(key) for key in TRANSFORM_OPTIONS}
        params.update({k: v for k, v in (overrides or {}).items() if v is not None and k in TRANSFORM_OPTIONS})

        return self.add_item(session_id, MediaItem(
            type=MediaType.IMAGE,
            parent_id=parent.id,
            prompt=prompt,
            loading=True,
            params=params,
        ))

    def animate_photo(self, session_id: str, item_id: str, prompt: str) -> MediaItem:
        """Queue a video generation from the photo ``item_id``."""
        parent = self.require_item(session_id, item_id)
        return self.add_item(session_id, MediaItem(
            type=MediaType.VIDEO,
            parent_id=parent.id,
            image_url=parent.image_url,
            prompt=prompt,
            loading=True,
        ))

    def animate_story(
        self,
        session_id: str,
        item_id: str,
        prompt: str,
        gender: str = None,
        body_type: str = None,
        skin_color: str = None,
        hair_color: str = None,
    ) -> MediaItem:
        """Queue an animated story from the photo ``item_id``."""
        parent = self.require_item(session_id, item_id)
        return self.add_item(session_id, MediaItem(
            type=MediaType.ANIMATED_STORY,
            parent_id=parent.id,
            image_url=parent.image_url,
            prompt=prompt,
            loading=True,
            gender=gender or STORY_DEFAULTS["gender"],
            body_type=body_type or STORY_DEFAULTS["body_type"],
            skin_color=skin_color or STORY_DEFAULTS["skin_color"],
            hair_color=hair_color or STORY_DEFAULTS["hair_color"],
        ))

    def retry_item(self, session_id: str, item_id: str) -> MediaItem:
        """
        Queue the generation described by ``item_id`` again.

        The new item shares the original's parent, prompt and parameters.

        Raises:
            ValueError: If the item was not produced by a generation
        """
        item = self.require_item(session_id, item_id)
        if not item.parent_id or not item.prompt:
            raise ValueError("Only generated items can be retried")
        self.require_item(session_id, item.parent_id)

        retry = item.model_copy(update={
            "id": MediaItem().id,
            "loading": True,
            "error": None,
            "base64": None,
            "has_base64": False,
            "url": None,
            "video_url": None,
            "image_url": item.image_url if item.is_video else None,
            "created_at": MediaItem().created_at,
        })
        logger.info(f"Retrying {item.type.value} item {item.id[:8]} as {retry.id[:8]}")
        return self.add_item(session_id, retry)

    # ===== Jobs =====

    def run_job(
        self,
        session_id: str,
        item_id: str,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[MediaItem]:
        """
        Run the generation for a loading item and record the outcome.

        Never raises; failures end up in the item's ``error`` field.

        Args:
            session_id: Owning session
            item_id: Item created by one of the request methods
            headers: Request headers, used to build public image URLs

        Returns:
            The updated item, or None if it was deleted meanwhile
        """
        item = self.get_item(session_id, item_id)
        if item is None:
            logger.warning(f"Generation job for missing item {item_id[:8]} skipped")
            return None

        try:
            with timer_context(f"Media: {item.type.value} job"):
                changes = self._generate(session_id, item, headers or {})
        except ExhAPIError as e:
            logger.error(f"Generation for item {item_id[:8]} failed: {e.message}")
            changes = {"error": e.message}
        except (RuntimeError, ValueError, OSError, MediaNotFoundError) as e:
            logger.error(f"Generation for item {item_id[:8]} failed: {e}")
            changes = {"error": str(e)}
        except Exception as e:
            logger.exception(f"Unexpected error generating item {item_id[:8]}: {e}")
            changes = {"error": f"Failed to generate {item.type.value.replace('_', ' ')}"}

        return self.update_item(session_id, item_id, loading=False, **changes)

    def _generate(self, session_id: str, item: MediaItem, headers: Mapping[str, str]) -> Dict[str, Any]:
        parent = self.require_item(session_id, item.parent_id)

        if item.type == MediaType.IMAGE:
            return self._transform(parent, item)
        if item.type == MediaType.VIDEO:
            return self._animate(session_id, parent, item, headers)
        return self._story(parent, item)

    def _source_base64(self, parent: MediaItem) -> str:
        if parent.base64:
            return clean_base64(parent.base64)
        if not parent.image_url:
            raise ValueError("Image URL is missing")
        return self.uploads.to_base64(parent.image_url)

    def _transform(self, parent: MediaItem, item: MediaItem) -> Dict[str, Any]:
        image_b64 = self.client.generate_gallery_image(
            self._source_base64(parent), item.prompt, **item.params
        )
        image_url = self.uploads.save_base64(image_b64)
        return {"base64": image_b64, "image_url": image_url}

    def _animate(
        self,
        session_id: str,
        parent: MediaItem,
        item: MediaItem,
        headers: Mapping[str, str],
    ) -> Dict[str, Any]:
        image_url = parent.image_url
        if not image_url and parent.base64:
            try:
                image_url = self.uploads.save_base64(parent.base64)
            except (ValueError, OSError) as e:
                logger.error(f"Failed to upload base64 parent {parent.id[:8]}: {e}")
                raise ValueError("Failed to upload image")
            self.update_item(session_id, parent.id, image_url=image_url)
        if not image_url:
            raise ValueError("Image URL is missing")

        video_url = self.client.submit_video_generation(
            build_public_url(headers, image_url), item.prompt
        )
        return {"video_url": video_url, "image_url": item.image_url or image_url}

    def _story(self, parent: MediaItem, item: MediaItem) -> Dict[str, Any]:
        url = self.client.animate_story(
            self._source_base64(parent),
            item.prompt,
            gender=item.gender,
            body_type=item.body_type,
            skin_color=item.skin_color,
            hair_color=item.hair_color,
        )
        return {"url": url}

    def get_statistics(self, session_id: str) -> Dict[str, int]:
        items = self.load_items(session_id)
        return {
            "total": len(items),
            "loading": sum(1 for item in items if item.loading),
            "failed": sum(1 for item in items if item.error),
        }
