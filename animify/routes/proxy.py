"""
ExH AI Proxy Routes

Stateless endpoints that validate a request, forward it to ExH AI with the
server-side token, and map the upstream result to JSON. Also serves the
image upload store and a download proxy for generated media.
"""

import logging
from typing import Any, Dict, Optional

import requests
from fastapi import APIRouter, Body, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse
from starlette.background import BackgroundTask

from animify.models.schemas import (
    AnimateStoryRequest,
    ContextualPhotoRequest,
    FaceSwapRequest,
    PhotoRequest,
    PhotoResponse,
    UploadResponse,
    VideoRequest,
    VideoResponse,
)
from animify.services import ExhAPIError, ExhClient, UploadService, UploadTooLargeError
from animify.utils.image_utils import build_public_url, clean_base64
from config import Config

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api", tags=["proxy"])

# Services (will be injected by main.py)
exh_client: ExhClient = None
upload_service: UploadService = None


def init_proxy_routes(client: ExhClient, uploads: UploadService):
    """
    Initialize proxy routes with required services.

    Args:
        client: ExH API client
        uploads: Upload storage service
    """
    global exh_client, upload_service
    exh_client = client
    upload_service = uploads


def _upstream_error(e: ExhAPIError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


def _attachment(filename: Optional[str]) -> str:
    """Content-Disposition value; quotes and line breaks are dropped from the name."""
    safe_name = "".join(ch for ch in (filename or "") if ch not in "\"\r\n")
    return f'attachment; filename="{safe_name}"' if safe_name else "attachment"


@router.post("/photo", response_model=PhotoResponse)
def generate_photo(payload: PhotoRequest):
    """
    Generate a gallery image of the person in ``identity_image_b64``.

    Returns:
        JSON with the generated ``image_b64``
    """
    if not payload.identity_image_b64 or not payload.prompt:
        raise HTTPException(status_code=400, detail="Missing required parameters")

    identity_image_b64 = clean_base64(payload.identity_image_b64)
    if not identity_image_b64:
        raise HTTPException(status_code=400, detail="Invalid base64 image data")

    options = payload.model_dump(exclude={"identity_image_b64", "prompt"}, exclude_none=True)
    try:
        image_b64 = exh_client.generate_gallery_image(identity_image_b64, payload.prompt, **options)
    except ExhAPIError as e:
        raise _upstream_error(e)

    return PhotoResponse(image_b64=image_b64)


@router.post("/video", response_model=VideoResponse)
def generate_video(request: Request, payload: VideoRequest):
    """Submit a video generation task for a still image."""
    if not isinstance(payload.prompt, str) or not payload.prompt.strip():
        raise HTTPException(status_code=400, detail="Prompt must be a non-empty string")
    if not payload.image_url:
        raise HTTPException(status_code=400, detail="Missing required parameter: image_url")

    image_url = build_public_url(request.headers, payload.image_url)
    try:
        video_url = exh_client.submit_video_generation(
            image_url,
            payload.prompt,
            model_id=payload.model_id,
            duration=payload.duration,
            nsfw=payload.nsfw,
            allow_nsfw=payload.allow_nsfw,
        )
    except ExhAPIError as e:
        raise _upstream_error(e)

    return VideoResponse(video_url=video_url)


@router.post("/animate-story", response_model=VideoResponse)
def generate_animated_story(payload: AnimateStoryRequest):
    """Turn a photo URL into an animated story video."""
    if not payload.image_url or not payload.prompt:
        raise HTTPException(
            status_code=400,
            detail="Missing required parameters: imageUrl and prompt are required",
        )

    try:
        exh_client.require_video_token()
    except ExhAPIError as e:
        raise _upstream_error(e)

    try:
        image_b64 = upload_service.to_base64(payload.image_url)
    except RuntimeError as e:
        logger.error(f"Error processing image: {e}")
        raise HTTPException(status_code=500, detail=str(e) or "Failed to process image")

    options = payload.model_dump(exclude={"image_url", "prompt"}, exclude_none=True)
    try:
        video_url = exh_client.animate_story(image_b64, payload.prompt, **options)
    except ExhAPIError as e:
        raise _upstream_error(e)

    return VideoResponse(video_url=video_url)


@router.post("/faceswap")
def faceswap(payload: FaceSwapRequest):
    """Swap the face of the source image onto the target image."""
    if not payload.source_image_b64 or not payload.target_image_b64:
        raise HTTPException(status_code=400, detail="Both source and target images are required")

    try:
        data = exh_client.faceswap(payload.source_image_b64, payload.target_image_b64)
    except ExhAPIError as e:
        raise _upstream_error(e)

    return JSONResponse(content=data)


@router.post("/chatbot")
def chatbot(payload: Dict[str, Any] = Body(...)):
    """Forward a chatbot request body verbatim."""
    if not payload.get("context"):
        raise HTTPException(status_code=400, detail="Missing required parameters")

    try:
        data = exh_client.chatbot_response(payload)
    except ExhAPIError as e:
        raise _upstream_error(e)

    return JSONResponse(content=data)


@router.post("/contextualPhoto")
def contextual_photo(payload: ContextualPhotoRequest):
    """Fetch a persona photo matching the conversation context."""
    try:
        data = exh_client.contextual_image(payload.strapi_bot_id, payload.user_id, payload.context)
    except ExhAPIError as e:
        content = {"error": e.message}
        if e.payload is not None:
            content["details"] = e.payload
        return JSONResponse(status_code=e.status_code, content=content)

    return JSONResponse(content=data)


@router.get("/download")
def download(url: Optional[str] = Query(None), filename: Optional[str] = Query(None)):
    """
    Stream a remote file back as an attachment.

    Local upload URLs are read from disk. ``filename`` is used when the
    upstream response does not name the file itself.
    """
    if not url:
        return PlainTextResponse("Missing url parameter", status_code=400)

    default_disposition = _attachment(filename)

    local_name = upload_service.local_filename(url)
    if local_name is not None:
        try:
            filepath = upload_service.resolve(local_name)
        except ValueError:
            filepath = None
        if filepath is None:
            return PlainTextResponse("Failed to fetch file", status_code=502)
        return Response(
            content=filepath.read_bytes(),
            media_type=upload_service.content_type_for(local_name),
            headers={
                "Content-Disposition": default_disposition,
                "Access-Control-Expose-Headers": "Content-Disposition",
            },
        )

    try:
        file_response = requests.get(url, stream=True, timeout=Config.EXH_REQUEST_TIMEOUT)
    except requests.exceptions.RequestException as e:
        logger.error(f"Error downloading {url[:100]}: {e}")
        return PlainTextResponse("Error downloading file", status_code=500)

    if not file_response.ok:
        logger.error(f"Download of {url[:100]} failed: {file_response.status_code}")
        file_response.close()
        return PlainTextResponse("Failed to fetch file", status_code=502)

    content_type = file_response.headers.get("content-type") or "application/octet-stream"
    disposition = file_response.headers.get("content-disposition") or default_disposition

    return StreamingResponse(
        file_response.iter_content(chunk_size=64 * 1024),
        media_type=content_type,
        headers={
            "Content-Disposition": disposition,
            "Access-Control-Expose-Headers": "Content-Disposition",
        },
        background=BackgroundTask(file_response.close),
    )


@router.post("/upload", response_model=UploadResponse)
async def upload_image(image: Optional[UploadFile] = File(None)):
    """Store an uploaded image and return its public path."""
    if image is None:
        raise HTTPException(status_code=400, detail="No image uploaded")

    data = await image.read()
    try:
        image_url = upload_service.save_bytes(data, image.content_type)
    except UploadTooLargeError as e:
        raise HTTPException(status_code=413, detail=str(e))
    except OSError as e:
        logger.error(f"Failed to store upload: {e}")
        raise HTTPException(status_code=500, detail="Failed to upload image")

    return UploadResponse(image_url=image_url)


@router.get("/uploads/{filename}")
def serve_upload(filename: str):
    """Serve a stored upload with long-lived caching."""
    try:
        filepath = upload_service.resolve(filename)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid filename")
    if filepath is None:
        raise HTTPException(status_code=404, detail="File not found")

    return Response(
        content=filepath.read_bytes(),
        media_type=upload_service.content_type_for(filename),
        headers={"Cache-Control": "public, max-age=31536000, immutable"},
    )
