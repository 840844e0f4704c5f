"""
Chat and Configuration Models

Chat messages plus the persona and transform configuration records that
are loaded from bundled JSON defaults and overridden per session.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Sender(str, Enum):
    USER = "User"
    BOT = "Bot"

    @property
    def opposite(self) -> "Sender":
        return Sender.BOT if self is Sender.USER else Sender.USER


class Message(BaseModel):
    """A single chat turn. Lives in memory only."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    text: str = ""
    sender: Sender
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    image: Optional[str] = Field(None, description="Base64 image sent with the message")
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    loading: bool = False
    error: Optional[str] = None
    prompt: Optional[str] = Field(None, description="Prompt the image was generated from")


class BotProfile(BaseModel):
    id: str = ""
    name: str = ""
    description: str = ""
    appearance: str = ""
    pronoun: str = ""
    example_messages: List[str] = Field(default_factory=list)


class ChatSettings(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_name: str = ""
    allow_nsfw: bool = False
    tasks: List[str] = Field(default_factory=list)
    enable_memory: bool = False


class ImageSettings(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    identity_image_url: str = ""
    model_name: str = ""
    style: str = ""
    gender: str = ""
    skin_color: str = ""
    allow_nsfw: bool = False
    usage_mode: str = ""
    return_bs64: bool = True


class ChatConfig(BaseModel):
    """Persona configuration keyed by sender ("User" / "Bot")."""
    bot_profiles: Dict[str, BotProfile] = Field(default_factory=dict)
    chat_settings: Dict[str, ChatSettings] = Field(default_factory=dict)
    image_settings: Dict[str, ImageSettings] = Field(default_factory=dict)


class TransformDefaults(BaseModel):
    """Default options for photo transforms."""
    model_config = ConfigDict(protected_namespaces=())

    convert_prompt: bool = False
    face_swap: bool = False
    model_name: str = "base"
    style: str = "realistic"
    gender: str = "auto"
    body_type: str = "auto"
    skin_color: str = "auto"
    auto_detect_hair_color: bool = True
    nsfw_policy: str = "block"
