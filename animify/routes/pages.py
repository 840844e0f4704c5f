"""
Page Rendering Routes

Serves the HTML pages; each page talks to the JSON API from the browser.
"""

import logging
from pathlib import Path
from fastapi import APIRouter
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from fastapi import Request

from animify.models.media import MediaType
from animify.services.exh_client import STORY_DEFAULTS

logger = logging.getLogger(__name__)

# Jinja2 templates ship inside the package
TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

# Create router
router = APIRouter(tags=["pages"])

PAGES = [
    ("/", "Photos"),
    ("/chat", "Chat"),
    ("/faceswap", "Face Swap"),
    ("/config", "Config"),
]


def _render(request: Request, template: str, **context):
    context.update({"pages": PAGES, "current_path": request.url.path})
    return templates.TemplateResponse(request, template, context)


@router.get("/", response_class=HTMLResponse)
async def media_page(request: Request):
    """
    Serve the photo carousel with the transform, animate and story dialogs.

    Args:
        request: FastAPI Request object

    Returns:
        Rendered HTML page for the media library
    """
    logger.info("Serving / page")
    return _render(
        request,
        "index.html",
        media_types=[t.value for t in MediaType],
        story_defaults=STORY_DEFAULTS,
    )


@router.get("/chat", response_class=HTMLResponse)
async def chat_page(request: Request):
    """Serve the two-bot conversation page."""
    logger.info("Serving /chat page")
    return _render(request, "chat.html", default_bot_ids=["268785", "268786"])


@router.get("/faceswap", response_class=HTMLResponse)
async def faceswap_page(request: Request):
    logger.info("Serving /faceswap page")
    return _render(request, "faceswap.html")


@router.get("/config", response_class=HTMLResponse)
async def config_page(request: Request):
    """Serve the persona and transform configuration editor."""
    logger.info("Serving /config page")
    return _render(request, "config.html", senders=["User", "Bot"])
