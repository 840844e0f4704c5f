"""
System Monitoring Routes

Provides health checks, statistics, and system status endpoints.
"""

import logging
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from animify.models.schemas import HealthResponse
from animify.routes.session import get_session_id
from animify.services import MediaLibrary, SessionService, StateStore, UploadService
from animify.utils.performance import get_tracker
from config import Config
from animify import __version__

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(tags=["system"])

# Services (will be injected by main.py)
session_service: SessionService = None
state_store: StateStore = None
upload_service: UploadService = None
media_library: MediaLibrary = None


def init_system_routes(
    session: SessionService,
    store: StateStore,
    uploads: UploadService,
    library: MediaLibrary,
):
    """
    Initialize system routes with required services.

    Args:
        session: Session service instance
        store: Session state store
        uploads: Upload storage service
        library: Media library service
    """
    global session_service, state_store, upload_service, media_library
    session_service = session
    state_store = store
    upload_service = uploads
    media_library = library


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint for monitoring system status.

    Returns comprehensive status including:
    - Overall system health
    - Application version
    - Which ExH AI tokens are configured (never their values)
    - Individual service statuses

    Returns:
        JSON response with health check data
    """
    logger.debug("Health check requested")

    tokens = Config.token_status()
    status = "healthy" if all(tokens.values()) else "degraded"

    services = {
        "session_manager": "ok" if session_service else "error",
        "state_store": "ok" if state_store else "error",
        "uploads": "ok" if upload_service else "error",
        "exh_api": "ok" if tokens["exh_ai_api_token"] else "unconfigured",
    }

    response = HealthResponse(
        status=status,
        version=__version__,
        tokens=tokens,
        services=services,
    )

    logger.info(f"Health check: {status}")
    return response


@router.get("/stats/sessions")
async def session_stats(request: Request):
    """
    Get statistics about sessions and stored state.

    Provides information about:
    - Total number of sessions and chat message counts
    - Stored session state files
    - Upload storage usage
    - The calling session's media items

    Returns:
        JSON response with session statistics
    """
    logger.debug("Session stats requested")

    if not session_service:
        return JSONResponse(
            status_code=500,
            content={"error": "Session service not available"}
        )

    stats = session_service.get_statistics()
    stats["state"] = state_store.get_statistics()
    stats["uploads"] = upload_service.get_statistics()
    stats["media"] = media_library.get_statistics(get_session_id(request))

    logger.info(
        f"Session stats: {stats['total_sessions']} sessions, "
        f"{stats['total_messages']} messages"
    )

    return JSONResponse(content=stats)


@router.get("/stats/config")
async def get_config():
    """
    Get sanitized configuration information.

    Returns configuration without sensitive data (API tokens, etc.)

    Returns:
        JSON response with safe configuration data
    """
    logger.debug("Config requested")

    safe_config = {
        "exh_api_base_url": Config.EXH_API_BASE_URL,
        "exh_request_timeout": Config.EXH_REQUEST_TIMEOUT,
        "contextual_photo_model": Config.CONTEXTUAL_PHOTO_MODEL,
        "chat_context_messages": Config.CHAT_CONTEXT_MESSAGES,
        "max_chat_messages": Config.MAX_CHAT_MESSAGES,
        "max_upload_bytes": Config.MAX_UPLOAD_BYTES,
        "tokens": Config.token_status(),
        "log_level": Config.LOG_LEVEL,
        "version": __version__
    }

    return JSONResponse(content=safe_config)


@router.get("/stats/performance")
async def performance_stats():
    """
    Get performance timing statistics.

    Shows timing measurements for ExH AI calls and generation jobs to
    help identify slow upstream endpoints.

    Returns:
        JSON response with performance statistics
    """
    logger.debug("Performance stats requested")

    tracker = get_tracker()
    stats = tracker.report(log_level="DEBUG")

    return JSONResponse(content={
        "performance_metrics": stats,
        "note": "Metrics are cumulative since server start. Times in milliseconds."
    })
