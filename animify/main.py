"""
Animify Main Application

FastAPI application wiring:
- ExH AI client, upload storage and per-session state services
- Modular route handlers (pages, proxy, media, chat, config, system)
- Template-based frontend
- Comprehensive error handling
- Health monitoring endpoints
"""

import asyncio
import logging
import time
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Config
from animify.services import (
    ChatConfigManager,
    ChatService,
    MediaLibrary,
    SessionService,
    StateStore,
    TransformConfigManager,
    UploadService,
    create_exh_client,
)
from animify.routes import (
    chat_router,
    media_router,
    pages_router,
    proxy_router,
    settings_router,
    system_router,
)
from animify.routes.chat import init_chat_routes
from animify.routes.media import init_media_routes
from animify.routes.proxy import init_proxy_routes
from animify.routes.session import init_session_helpers
from animify.routes.settings import init_settings_routes
from animify.routes.system import init_system_routes
from animify.utils.performance import timer_context
from animify import __version__

# ===== Configure Logging =====
logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(Config.SERVER_LOG_FILE),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)

SESSION_CLEANUP_INTERVAL = 3600

# ===== Application Initialization =====
logger.info("=" * 60)
logger.info(f"Animify Server v{__version__} initializing...")
logger.info("=" * 60)

# Display configuration
Config.display()

# ===== Create FastAPI App =====
app = FastAPI(
    title="Animify",
    description="Photo transforms, video generation, face swap and persona chat backed by ExH AI",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

# ===== Initialize Services =====
startup_start = time.perf_counter()
try:
    with timer_context("Startup: Initialize storage", log_level="INFO"):
        logger.info("Initializing upload and state storage...")
        upload_service = UploadService()
        state_store = StateStore()
        logger.info(f"✓ Uploads in {upload_service.upload_dir}, state in {state_store.state_dir}")

    with timer_context("Startup: Initialize ExH client", log_level="INFO"):
        exh_client = create_exh_client()
        missing = [name for name, ok in Config.token_status().items() if not ok]
        if missing:
            logger.warning(f"Missing ExH credentials: {', '.join(missing)} (matching requests will fail)")
        logger.info("✓ ExH client ready")

    with timer_context("Startup: Initialize session and config services", log_level="INFO"):
        session_service = SessionService()
        chat_config_manager = ChatConfigManager(state_store)
        transform_config_manager = TransformConfigManager(state_store)
        logger.info("✓ Session and config services ready")

    with timer_context("Startup: Initialize media and chat services", log_level="INFO"):
        media_library = MediaLibrary(state_store, upload_service, exh_client, transform_config_manager)
        chat_service = ChatService(session_service, chat_config_manager, upload_service, exh_client)
        logger.info("✓ Media library and chat service ready")

    # Initialize route handlers with services
    with timer_context("Startup: Initialize route handlers", log_level="INFO"):
        init_session_helpers(session_service)
        init_proxy_routes(exh_client, upload_service)
        init_media_routes(media_library)
        init_chat_routes(chat_service)
        init_settings_routes(chat_config_manager, transform_config_manager)
        init_system_routes(session_service, state_store, upload_service, media_library)
        logger.info("✓ Route handlers initialized")

    total_startup = time.perf_counter() - startup_start
    logger.info(f"⏱️  Total startup time: {total_startup*1000:.2f}ms")

except Exception as e:
    logger.error(f"Failed to initialize services: {e}")
    logger.error("Server will start but may not function properly")
    raise

# ===== Register Routers =====
app.include_router(pages_router)
app.include_router(proxy_router)
app.include_router(media_router)
app.include_router(chat_router)
app.include_router(settings_router)
app.include_router(system_router)

logger.info("✓ All routes registered")

# ===== Error Handlers =====

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors as {"error", "status_code", "path"}."""
    logger.error(f"HTTP {exc.status_code} error on {request.url.path}: {exc.detail}")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.detail,
            "status_code": exc.status_code,
            "path": str(request.url.path)
        }
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and query params are a 422 with the pydantic details."""
    logger.error(f"Validation error on {request.url.path}: {exc.errors()}")

    return JSONResponse(
        status_code=422,
        content={
            "error": "Invalid request data",
            "details": jsonable_errors(exc),
            "path": str(request.url.path)
        }
    )


def jsonable_errors(exc: RequestValidationError):
    """Validation errors with non-JSON values (e.g. exceptions in ``ctx``) stringified."""
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Anything not handled by a route becomes a logged 500."""
    logger.exception(f"Unexpected error on {request.url.path}: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "error": "An unexpected error occurred",
            "message": str(exc),
            "path": str(request.url.path)
        }
    )


# ===== Startup/Shutdown Events =====

async def _session_cleanup_loop():
    """Drop idle in-memory chat sessions once per interval."""
    while True:
        await asyncio.sleep(SESSION_CLEANUP_INTERVAL)
        session_service.cleanup_old_sessions()


@app.on_event("startup")
async def startup_event():
    """Start the idle-session sweeper and list the endpoints."""
    app.state.cleanup_task = asyncio.create_task(_session_cleanup_loop())

    logger.info("=" * 60)
    logger.info("Animify Server started successfully!")
    logger.info("=" * 60)
    logger.info("Available endpoints:")
    logger.info("  Pages:")
    logger.info("    - GET  /              (photo library)")
    logger.info("    - GET  /chat          (persona and two-bot chat)")
    logger.info("    - GET  /faceswap      (face swap)")
    logger.info("    - GET  /config        (persona and transform config)")
    logger.info("  ExH proxy API:")
    logger.info("    - POST /api/photo, /api/video, /api/animate-story")
    logger.info("    - POST /api/faceswap, /api/chatbot, /api/contextualPhoto")
    logger.info("    - POST /api/upload, GET /api/uploads/{filename}, GET /api/download")
    logger.info("  Media API:")
    logger.info("    - GET/DELETE /api/media, POST /api/media/upload")
    logger.info("    - POST /api/media/{id}/transform|animate|animate-story|retry")
    logger.info("  Chat API:")
    logger.info("    - GET  /api/chat/messages, POST /api/chat/send, /api/chat/bots/send")
    logger.info("    - POST /api/chat/reset, /api/chat/messages/{id}/animate")
    logger.info("  Config API:")
    logger.info("    - GET/PUT /api/chat-config, GET/PATCH /api/transform-config")
    logger.info("  System:")
    logger.info("    - GET  /health        (health check)")
    logger.info("    - GET  /stats/sessions (session stats)")
    logger.info("    - GET  /stats/performance")
    logger.info("    - GET  /stats/config  (configuration)")
    logger.info("  Docs:")
    logger.info("    - GET  /docs          (Swagger UI)")
    logger.info("    - GET  /redoc         (ReDoc)")
    logger.info("=" * 60)


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Animify Server shutting down...")

    cleanup_task = getattr(app.state, "cleanup_task", None)
    if cleanup_task:
        cleanup_task.cancel()

    # Log final statistics
    if session_service:
        stats = session_service.get_statistics()
        logger.info(f"Final session stats: {stats}")

    logger.info("Server shutdown complete")


# ===== Middleware =====

@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.debug(f"{request.method} {request.url.path}")
    response = await call_next(request)
    logger.debug(f"{request.method} {request.url.path} -> {response.status_code}")

    return response


# ===== Export for ASGI Servers =====
# This allows running with: uvicorn animify.main:app

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host=Config.HOST,
        port=Config.PORT,
        log_level=Config.LOG_LEVEL.lower()
    )
