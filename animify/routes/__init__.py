"""
API Routes

Contains all HTTP endpoint handlers organized by functionality.
"""

from .pages import router as pages_router
from .proxy import router as proxy_router
from .media import router as media_router
from .chat import router as chat_router
from .settings import router as settings_router
from .system import router as system_router

__all__ = [
    'pages_router', 'proxy_router', 'media_router',
    'chat_router', 'settings_router', 'system_router',
]
