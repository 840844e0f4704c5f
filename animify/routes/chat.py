"""
Chat API Routes

Handles the persona chat, the two-bot conversation page and animating
images posted in the chat.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Request

from animify.models.chat import Message
from animify.models.schemas import (
    AnimateRequest,
    BotConversationRequest,
    BotConversationResponse,
    ChatReply,
    ChatSendRequest,
    MessageListResponse,
    ResetResponse,
)
from animify.routes.session import get_session_id, session_response
from animify.services import ChatService, ExhAPIError, MessageNotFoundError
from animify.services.session_service import BOTS_CHANNEL, PERSONA_CHANNEL

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api/chat", tags=["chat"])

# Services (will be injected by main.py)
chat_service: ChatService = None

CHANNELS = (PERSONA_CHANNEL, BOTS_CHANNEL)


def init_chat_routes(chat: ChatService):
    """
    Initialize chat routes with required services.

    This is called by main.py during app startup.

    Args:
        chat: Chat service instance
    """
    global chat_service
    chat_service = chat


def _check_channel(channel: str):
    if channel not in CHANNELS:
        raise HTTPException(status_code=400, detail=f"Unknown chat channel '{channel}'")


@router.get("/messages", response_model=MessageListResponse)
async def list_messages(request: Request, channel: str = Query(PERSONA_CHANNEL)):
    """Return the session's chat history for a channel."""
    _check_channel(channel)
    session_id = get_session_id(request)
    messages = chat_service.get_messages(session_id, channel)
    return session_response(MessageListResponse(messages=messages), session_id)


@router.post("/send", response_model=ChatReply)
def send_message(request: Request, payload: ChatSendRequest):
    """
    Send a chat turn and get the persona's reply.

    Process:
    1. Add the sender's message to history (skipped for blank text)
    2. Build the chatbot request from history and persona config
    3. Add the reply, spoken by the opposite sender, to history

    Returns:
        JSON with the reply text, optional image (``bs64``) and its prompt
    """
    session_id = get_session_id(request)
    logger.info(f"[/api/chat/send] Processing message for session {session_id[:8]}...")

    try:
        reply = chat_service.send_chat(session_id, payload.text, payload.sender)
    except ExhAPIError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    logger.info(f"[/api/chat/send] Completed request for session {session_id[:8]}...")
    chat_reply = ChatReply(
        id=reply.id,
        message=reply.text,
        bs64=reply.image,
        prompt=reply.prompt,
        sender=reply.sender,
    )
    return session_response(chat_reply, session_id)


@router.post("/bots/send", response_model=BotConversationResponse)
def send_bot_message(request: Request, payload: BotConversationRequest):
    """Advance the two-bot conversation by one reply."""
    session_id = get_session_id(request)

    try:
        reply, active = chat_service.converse_bots(
            session_id, payload.bot_ids, payload.active, payload.text
        )
    except ExhAPIError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    response = BotConversationResponse(
        reply=reply,
        active=active,
        messages=chat_service.get_messages(session_id, BOTS_CHANNEL),
    )
    return session_response(response, session_id)


@router.post("/reset", response_model=ResetResponse)
async def reset_chat(request: Request, channel: str = Query(None)):
    """
    Clear chat history for the session.

    Args:
        channel: Only clear this channel; every channel when omitted
    """
    if channel is not None:
        _check_channel(channel)
    session_id = get_session_id(request)
    logger.info(f"[/api/chat/reset] Resetting history for session {session_id[:8]}...")
    chat_service.reset(session_id, channel)
    return session_response(ResetResponse(ok=True, message="Chat reset successfully"), session_id)


@router.post("/messages/{message_id}/animate", response_model=Message, status_code=202)
async def animate_message(
    request: Request,
    message_id: str,
    payload: AnimateRequest,
    background_tasks: BackgroundTasks,
):
    """
    Turn the image of a chat message into a video.

    Returns the message in the loading state; poll the message list for
    ``video_url`` or ``error``.
    """
    session_id = get_session_id(request)
    try:
        message = chat_service.animate_message(session_id, message_id)
    except MessageNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    background_tasks.add_task(
        chat_service.run_animation, session_id, message_id, payload.prompt, dict(request.headers)
    )
    return session_response(message, session_id, status_code=202)
