"""
Session Cookie Helpers

Every stateful route identifies the browser by an anonymous session cookie.
"""

from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from animify.services import SessionService
from config import Config

SESSION_COOKIE = Config.SESSION_COOKIE_NAME

# Service (will be injected by main.py)
session_service: SessionService = None


def init_session_helpers(session: SessionService):
    """Register the session service used to resolve cookies."""
    global session_service
    session_service = session


def get_session_id(request: Request) -> str:
    """
    Get or create session ID from request cookies.

    Args:
        request: FastAPI Request object

    Returns:
        Session ID string
    """
    session_id = request.cookies.get(SESSION_COOKIE)
    return session_service.get_or_create_session(session_id)


def session_response(content: Any, session_id: str, status_code: int = 200) -> JSONResponse:
    """JSON response that (re)sets the session cookie."""
    response = JSONResponse(content=jsonable_encoder(content), status_code=status_code)
    response.set_cookie(SESSION_COOKIE, session_id, httponly=True, samesite="lax")
    return response
