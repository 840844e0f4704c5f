"""
Service Layer

Contains business logic separated from API routes.
"""

from .exh_client import ExhAPIError, ExhClient, create_exh_client
from .upload_service import UploadService, UploadTooLargeError
from .state_store import StateStore
from .session_service import SessionService
from .config_service import ChatConfigManager, TransformConfigManager
from .media_library import MediaLibrary, MediaNotFoundError
from .chat_service import ChatService, MessageNotFoundError, build_chat_request

__all__ = [
    'ExhAPIError', 'ExhClient', 'create_exh_client',
    'UploadService', 'UploadTooLargeError',
    'StateStore', 'SessionService',
    'ChatConfigManager', 'TransformConfigManager',
    'MediaLibrary', 'MediaNotFoundError',
    'ChatService', 'MessageNotFoundError', 'build_chat_request',
]
