"""
Data models and schemas for the Animify application.
"""

from .media import MediaItem, MediaType
from .chat import (
    BotProfile,
    ChatConfig,
    ChatSettings,
    ImageSettings,
    Message,
    Sender,
    TransformDefaults,
)

__all__ = [
    'MediaItem', 'MediaType',
    'BotProfile', 'ChatConfig', 'ChatSettings', 'ImageSettings', 'Message',
    'Sender', 'TransformDefaults',
]
