"""
Media Library Routes

Per-session photo, video and animated story items. Generation endpoints
return the new item in the loading state right away and finish the work in
a background task; clients poll the item until ``loading`` is false.
"""

import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, BackgroundTasks, File, HTTPException, Request, UploadFile
from fastapi.responses import RedirectResponse

from animify.models.media import MediaItem
from animify.models.schemas import (
    AnimateRequest,
    MediaListResponse,
    ResetResponse,
    StoryRequest,
    TransformRequest,
)
from animify.routes.session import get_session_id, session_response
from animify.services import MediaLibrary, MediaNotFoundError, UploadTooLargeError

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api/media", tags=["media"])

# Services (will be injected by main.py)
media_library: MediaLibrary = None


def init_media_routes(library: MediaLibrary):
    """
    Initialize media routes with required services.

    Args:
        library: Media library service instance
    """
    global media_library
    media_library = library


def _require(session_id: str, item_id: str) -> MediaItem:
    try:
        return media_library.require_item(session_id, item_id)
    except MediaNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


def _queue(
    background_tasks: BackgroundTasks,
    request: Request,
    session_id: str,
    item: MediaItem,
):
    background_tasks.add_task(
        media_library.run_job, session_id, item.id, dict(request.headers)
    )
    logger.info(f"Queued {item.type.value} job {item.id[:8]} for session {session_id[:8]}...")
    return session_response(item, session_id, status_code=202)


@router.get("", response_model=MediaListResponse)
async def list_media(request: Request):
    """List the session's media items, oldest first."""
    session_id = get_session_id(request)
    items = media_library.load_items(session_id)
    return session_response(MediaListResponse(items=items), session_id)


@router.delete("", response_model=ResetResponse)
async def clear_media(request: Request):
    """Remove every media item of the session."""
    session_id = get_session_id(request)
    media_library.clear_items(session_id)
    return session_response(ResetResponse(ok=True, message="Media cleared"), session_id)


@router.post("/upload", response_model=MediaItem, status_code=201)
async def upload_media(request: Request, image: Optional[UploadFile] = File(None)):
    """Upload a photo and add it to the library."""
    session_id = get_session_id(request)
    if image is None:
        raise HTTPException(status_code=400, detail="No image uploaded")

    data = await image.read()
    try:
        item = media_library.upload_photo(session_id, data, image.content_type)
    except UploadTooLargeError as e:
        raise HTTPException(status_code=413, detail=str(e))
    except OSError as e:
        logger.error(f"Failed to store upload: {e}")
        raise HTTPException(status_code=500, detail="Failed to upload image")

    return session_response(item, session_id, status_code=201)


@router.get("/{item_id}", response_model=MediaItem)
async def get_media(request: Request, item_id: str):
    session_id = get_session_id(request)
    return session_response(_require(session_id, item_id), session_id)


@router.delete("/{item_id}", response_model=ResetResponse)
async def delete_media(request: Request, item_id: str):
    session_id = get_session_id(request)
    if not media_library.delete_item(session_id, item_id):
        raise HTTPException(status_code=404, detail=f"Media item {item_id} not found")
    return session_response(ResetResponse(ok=True, message="Media item deleted"), session_id)


@router.post("/{item_id}/transform", response_model=MediaItem, status_code=202)
async def transform_media(
    request: Request,
    item_id: str,
    payload: TransformRequest,
    background_tasks: BackgroundTasks,
):
    """
    Transform a photo into a new image.

    Options missing from the body use the session's transform defaults.
    """
    session_id = get_session_id(request)
    overrides = payload.model_dump(exclude={"prompt"}, exclude_none=True)
    try:
        item = media_library.transform_photo(session_id, item_id, payload.prompt, overrides)
    except MediaNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _queue(background_tasks, request, session_id, item)


@router.post("/{item_id}/animate", response_model=MediaItem, status_code=202)
async def animate_media(
    request: Request,
    item_id: str,
    payload: AnimateRequest,
    background_tasks: BackgroundTasks,
):
    """Generate a video from a photo."""
    session_id = get_session_id(request)
    try:
        item = media_library.animate_photo(session_id, item_id, payload.prompt)
    except MediaNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _queue(background_tasks, request, session_id, item)


@router.post("/{item_id}/animate-story", response_model=MediaItem, status_code=202)
async def animate_story_media(
    request: Request,
    item_id: str,
    payload: StoryRequest,
    background_tasks: BackgroundTasks,
):
    """Generate an animated story from a photo."""
    session_id = get_session_id(request)
    try:
        item = media_library.animate_story(
            session_id,
            item_id,
            payload.prompt,
            gender=payload.gender,
            body_type=payload.body_type,
            skin_color=payload.skin_color,
            hair_color=payload.hair_color,
        )
    except MediaNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _queue(background_tasks, request, session_id, item)


@router.post("/{item_id}/retry", response_model=MediaItem, status_code=202)
async def retry_media(request: Request, item_id: str, background_tasks: BackgroundTasks):
    """Run the generation that produced an item again, as a new item."""
    session_id = get_session_id(request)
    try:
        item = media_library.retry_item(session_id, item_id)
    except MediaNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _queue(background_tasks, request, session_id, item)


@router.get("/{item_id}/download")
async def download_media(request: Request, item_id: str):
    """Redirect to the download proxy for the item's result."""
    session_id = get_session_id(request)
    item = _require(session_id, item_id)

    url = item.result_url
    if not url:
        raise HTTPException(status_code=409, detail="Media item has no result to download")

    extension = "mp4" if item.is_video else "jpg"
    query = urlencode({"url": url, "filename": f"media-{item.id}.{extension}"})
    return RedirectResponse(url=f"/api/download?{query}", status_code=307)
