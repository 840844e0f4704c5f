"""
Media Item Model

One uploaded or generated image/video shown in the photo carousel.
"""

import time
import uuid
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class MediaType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    ANIMATED_STORY = "animated_story"


class MediaItem(BaseModel):
    """
    A media item and the parameters that produced it.

    Created in the loading state when a generation is requested and
    mutated in place when the upstream call resolves. ``parent_id`` points
    at the item the generation started from, which is what makes a retry
    possible.
    """
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    type: MediaType = MediaType.IMAGE
    base64: Optional[str] = Field(None, description="Image data without a data URL prefix")
    image_url: Optional[str] = Field(None, description="Stored image or video thumbnail")
    url: Optional[str] = Field(None, description="Animated story result")
    video_url: Optional[str] = None
    loading: bool = False
    error: Optional[str] = None
    parent_id: Optional[str] = None
    prompt: Optional[str] = None
    gender: Optional[str] = None
    body_type: Optional[str] = None
    skin_color: Optional[str] = None
    hair_color: Optional[str] = None
    params: Dict[str, Any] = Field(default_factory=dict, description="Transform options")
    has_base64: bool = False
    created_at: float = Field(default_factory=time.time)

    @property
    def is_video(self) -> bool:
        return self.type in (MediaType.VIDEO, MediaType.ANIMATED_STORY)

    @property
    def result_url(self) -> Optional[str]:
        """URL of the finished media (video, story or image)."""
        if self.type == MediaType.ANIMATED_STORY:
            return self.url
        if self.type == MediaType.VIDEO:
            return self.video_url
        return self.image_url
