"""
Pydantic Models and Schemas

Defines the data models used for API requests and responses.

Proxy request fields are optional on purpose: missing values are reported
by the route handlers with a 400 and a specific message rather than a
generic 422.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from .chat import Message, Sender
from .media import MediaItem


# ===== Proxy endpoints =====

class PhotoRequest(BaseModel):
    """Body of POST /api/photo (gallery image generation)."""
    model_config = ConfigDict(protected_namespaces=())

    identity_image_b64: Optional[str] = None
    prompt: Optional[str] = None
    model_name: Optional[str] = None
    style: Optional[str] = None
    gender: Optional[str] = None
    body_type: Optional[str] = None
    skin_color: Optional[str] = None
    auto_detect_hair_color: Optional[bool] = None
    nsfw_policy: Optional[str] = None


class PhotoResponse(BaseModel):
    image_b64: str = Field(..., description="Generated image as base64")


class VideoRequest(BaseModel):
    """Body of POST /api/video."""
    image_url: Optional[str] = None
    prompt: Optional[Any] = None
    model_id: Optional[str] = None
    duration: Optional[int] = None
    allow_nsfw: Optional[bool] = None
    nsfw: Optional[bool] = None


class VideoResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    video_url: str = Field(..., alias="videoUrl", description="URL of the generated video")


class AnimateStoryRequest(BaseModel):
    """Body of POST /api/animate-story."""
    model_config = ConfigDict(populate_by_name=True)

    image_url: Optional[str] = Field(None, alias="imageUrl")
    prompt: Optional[str] = None
    gender: Optional[str] = None
    body_type: Optional[str] = None
    skin_color: Optional[str] = None
    hair_color: Optional[str] = None
    animation_model: Optional[str] = None
    duration: Optional[int] = None


class FaceSwapRequest(BaseModel):
    source_image_b64: Optional[str] = None
    target_image_b64: Optional[str] = None


class ContextualPhotoRequest(BaseModel):
    strapi_bot_id: Optional[Any] = None
    user_id: Optional[Any] = None
    context: Optional[Any] = None


class UploadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_url: str = Field(..., alias="imageUrl", description="Public path of the stored image")


# ===== Media library =====

class MediaListResponse(BaseModel):
    items: List[MediaItem] = Field(default_factory=list)


class TransformRequest(BaseModel):
    """
    Transform an existing photo.

    Options left out fall back to the session's transform defaults.
    """
    model_config = ConfigDict(protected_namespaces=())

    prompt: str = Field(..., min_length=1, max_length=2000)
    model_name: Optional[str] = None
    style: Optional[str] = None
    gender: Optional[str] = None
    body_type: Optional[str] = None
    skin_color: Optional[str] = None
    auto_detect_hair_color: Optional[bool] = None
    nsfw_policy: Optional[str] = None


class AnimateRequest(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=2000)


class StoryRequest(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=2000)
    gender: Optional[str] = None
    body_type: Optional[str] = None
    skin_color: Optional[str] = None
    hair_color: Optional[str] = None


# ===== Chat =====

class ChatSendRequest(BaseModel):
    """
    A chat turn from the chat page.

    Attributes:
        text: Message text; blank text asks the persona to continue
        sender: Which side of the conversation is speaking
    """
    text: str = Field("", max_length=5000)
    sender: Sender = Sender.USER


class ChatReply(BaseModel):
    id: Optional[str] = Field(None, description="Id of the stored reply message")
    message: str = ""
    bs64: Optional[str] = None
    prompt: Optional[str] = None
    sender: Sender


class BotConversationRequest(BaseModel):
    """A turn on the two-bot page."""
    bot_ids: List[str] = Field(..., min_length=2, max_length=2)
    active: int = Field(0, ge=0, le=1, description="Index of the bot speaking next")
    text: str = Field("", max_length=5000)


class BotConversationResponse(BaseModel):
    reply: Optional[Message] = None
    active: int
    messages: List[Message] = Field(default_factory=list)


class MessageListResponse(BaseModel):
    messages: List[Message] = Field(default_factory=list)


# ===== System =====

class HealthResponse(BaseModel):
    """
    Schema for health check endpoint response.

    Attributes:
        status: "healthy" when every upstream token is set, else "degraded"
        version: Application version
        tokens: Which upstream credentials are configured
        services: Status of individual services
    """
    status: str = Field(..., description="Overall system status")
    version: str = Field(..., description="Application version")
    tokens: Dict[str, bool] = Field(default_factory=dict)
    services: Dict[str, str] = Field(default_factory=dict, description="Service statuses")


class ResetResponse(BaseModel):
    ok: bool = Field(True, description="Success status")
    message: Optional[str] = Field(None, description="Status message")
