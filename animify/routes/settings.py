"""
Configuration Routes

Per-session persona configuration and photo transform defaults, as edited
on the configuration page.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, HTTPException, Request

from animify.models.chat import ChatConfig, TransformDefaults
from animify.routes.session import get_session_id, session_response
from animify.services import ChatConfigManager, TransformConfigManager
from animify.services.config_service import remove_at, replace_at

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api", tags=["config"])

# Services (will be injected by main.py)
chat_config_manager: ChatConfigManager = None
transform_config_manager: TransformConfigManager = None


def init_settings_routes(chat_config: ChatConfigManager, transform_config: TransformConfigManager):
    """
    Initialize configuration routes with required services.

    Args:
        chat_config: Persona configuration manager
        transform_config: Transform defaults manager
    """
    global chat_config_manager, transform_config_manager
    chat_config_manager = chat_config
    transform_config_manager = transform_config


@router.get("/chat-config", response_model=ChatConfig)
async def get_chat_config(request: Request):
    session_id = get_session_id(request)
    return session_response(chat_config_manager.get_config(session_id), session_id)


@router.put("/chat-config", response_model=ChatConfig)
async def put_chat_config(request: Request, payload: Dict[str, Any] = Body(...)):
    """Replace and save the session's persona configuration."""
    session_id = get_session_id(request)
    try:
        config = chat_config_manager.update_config(session_id, payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return session_response(config, session_id)


@router.post("/chat-config/reset", response_model=ChatConfig)
async def reset_chat_config(request: Request):
    """Restore the bundled persona configuration."""
    session_id = get_session_id(request)
    return session_response(chat_config_manager.reset_to_default(session_id), session_id)


@router.get("/transform-config", response_model=TransformDefaults)
async def get_transform_config(request: Request):
    session_id = get_session_id(request)
    return session_response(transform_config_manager.get_defaults(session_id), session_id)


@router.patch("/transform-config", response_model=TransformDefaults)
async def patch_transform_config(request: Request, payload: Dict[str, Any] = Body(...)):
    """Merge the given fields into the session's transform defaults."""
    session_id = get_session_id(request)
    try:
        defaults = transform_config_manager.update_defaults(session_id, payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return session_response(defaults, session_id)


@router.post("/transform-config/reset", response_model=TransformDefaults)
async def reset_transform_config(request: Request):
    session_id = get_session_id(request)
    return session_response(transform_config_manager.reset_to_default(session_id), session_id)


@router.patch("/chat-config/{section}/{sender_key}", response_model=ChatConfig)
async def patch_chat_config_section(
    request: Request,
    section: str,
    sender_key: str,
    payload: Dict[str, Any] = Body(...),
):
    """
    Change fields of one sender's profile, chat settings or image settings.

    Args:
        section: ``bot_profiles``, ``chat_settings`` or ``image_settings``
        sender_key: ``User`` or ``Bot``
    """
    session_id = get_session_id(request)
    try:
        config = chat_config_manager.update_section(session_id, section, sender_key, payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return session_response(config, session_id)


def _edit_list(session_id: str, list_field: str, sender_key: str, edit):
    try:
        return chat_config_manager.edit_list(session_id, list_field, sender_key, edit)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/chat-config/{sender_key}/{list_field}", response_model=ChatConfig)
async def add_list_entry(
    request: Request,
    sender_key: str,
    list_field: str,
    value: str = Body("", embed=True),
):
    """Append a task or example message."""
    session_id = get_session_id(request)
    config = _edit_list(session_id, list_field, sender_key, lambda values: values + [value])
    return session_response(config, session_id)


@router.put("/chat-config/{sender_key}/{list_field}/{index}", response_model=ChatConfig)
async def update_list_entry(
    request: Request,
    sender_key: str,
    list_field: str,
    index: int,
    value: str = Body(..., embed=True),
):
    session_id = get_session_id(request)
    config = _edit_list(session_id, list_field, sender_key, replace_at(index, value))
    return session_response(config, session_id)


@router.delete("/chat-config/{sender_key}/{list_field}/{index}", response_model=ChatConfig)
async def remove_list_entry(request: Request, sender_key: str, list_field: str, index: int):
    session_id = get_session_id(request)
    config = _edit_list(session_id, list_field, sender_key, remove_at(index))
    return session_response(config, session_id)
