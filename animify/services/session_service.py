"""
Session Management Service

Handles anonymous browser sessions:
- Session id creation and validation (cookie based)
- In-memory chat history per session
- Session cleanup and statistics
"""

import logging
import re
import threading
import time
import uuid
from typing import Dict, List, Optional, Tuple

from config import Config
from animify.models.chat import Message

logger = logging.getLogger(__name__)

# Session ids name files in the state store, so only uuid4 hex is accepted
_SESSION_ID = re.compile(r"^[0-9a-f]{32}$")

PERSONA_CHANNEL = "persona"
BOTS_CHANNEL = "bots"


class SessionService:
    """
    Service for managing sessions and chat history.

    Chat messages are kept in memory only and are lost on restart; the
    persistent per-session state lives in the StateStore.
    """

    def __init__(self, max_messages: int = None):
        # In-memory storage: (session_id, channel) -> list of messages
        self._history: Dict[Tuple[str, str], List[Message]] = {}

        # Session metadata (creation time, last activity)
        self._metadata: Dict[str, Dict[str, float]] = {}

        self._max_messages = max_messages or Config.MAX_CHAT_MESSAGES
        self._lock = threading.RLock()

        logger.info("Session service initialized (in-memory chat history)")

    def create_session_id(self) -> str:
        """
        Generate a new unique session ID.

        Returns:
            UUID-based session ID as a hex string
        """
        session_id = uuid.uuid4().hex
        self._touch(session_id)
        logger.info(f"Created new session: {session_id[:8]}...")
        return session_id

    @staticmethod
    def validate_session_id(session_id: Optional[str]) -> bool:
        """Check that a session id is a uuid4 hex string."""
        if not session_id or not isinstance(session_id, str):
            return False
        return bool(_SESSION_ID.match(session_id))

    def get_or_create_session(self, session_id: Optional[str]) -> str:
        """
        Get existing session or create a new one.

        A well-formed id that this process has not seen yet is adopted, so
        a browser keeps its stored media across server restarts.

        Args:
            session_id: Session ID from the cookie, or None

        Returns:
            Valid session ID (either existing or newly created)
        """
        if self.validate_session_id(session_id):
            self._touch(session_id)
            return session_id
        return self.create_session_id()

    def _touch(self, session_id: str) -> None:
        now = time.time()
        with self._lock:
            meta = self._metadata.setdefault(
                session_id, {"created_at": now, "last_activity": now}
            )
            meta["last_activity"] = now

    def append_message(
        self,
        session_id: str,
        message: Message,
        channel: str = PERSONA_CHANNEL,
    ) -> Message:
        """
        Add a message to one of the session's chat histories.

        Trims history to the most recent MAX_CHAT_MESSAGES messages.
        """
        key = (session_id, channel)
        with self._lock:
            history = self._history.setdefault(key, [])
            history.append(message)

            if len(history) > self._max_messages:
                trimmed_count = len(history) - self._max_messages
                self._history[key] = history[-self._max_messages:]
                logger.debug(
                    f"Trimmed {trimmed_count} old {channel} messages from session {session_id[:8]}..."
                )
        self._touch(session_id)
        return message

    def get_history(self, session_id: str, channel: str = PERSONA_CHANNEL) -> List[Message]:
        """
        Retrieve chat history for a session.

        Returns:
            Copy of the message list, or empty list if session not found
        """
        with self._lock:
            return list(self._history.get((session_id, channel), []))

    def get_message(
        self,
        session_id: str,
        message_id: str,
        channel: str = PERSONA_CHANNEL,
    ) -> Optional[Message]:
        with self._lock:
            for message in self._history.get((session_id, channel), []):
                if message.id == message_id:
                    return message
        return None

    def update_message(
        self,
        session_id: str,
        message_id: str,
        channel: str = PERSONA_CHANNEL,
        **changes,
    ) -> Optional[Message]:
        """
        Replace fields of a stored message.

        Returns:
            The updated message, or None if it no longer exists
        """
        with self._lock:
            history = self._history.get((session_id, channel), [])
            for index, message in enumerate(history):
                if message.id == message_id:
                    updated = message.model_copy(update=changes)
                    history[index] = updated
                    return updated
        return None

    def reset_session(self, session_id: str, channel: str = None) -> None:
        """
        Clear chat history for a session.

        Preserves session metadata but removes the messages of ``channel``,
        or of every channel when it is None.
        """
        with self._lock:
            keys = [
                key for key in self._history
                if key[0] == session_id and channel in (None, key[1])
            ]
            removed = sum(len(self._history.pop(key)) for key in keys)
        if keys:
            logger.info(
                f"Reset history for session {session_id[:8]}... "
                f"(removed {removed} messages)"
            )
        else:
            logger.debug(f"No history to reset for session {session_id[:8]}...")

    def delete_session(self, session_id: str) -> None:
        """Completely delete a session and its metadata."""
        with self._lock:
            for key in [key for key in self._history if key[0] == session_id]:
                del self._history[key]
            self._metadata.pop(session_id, None)
        logger.info(f"Deleted session {session_id[:8]}...")

    def get_session_count(self) -> int:
        return len(self._metadata)

    def get_session_info(self, session_id: str) -> Optional[Dict[str, float]]:
        """
        Get metadata about a specific session.

        Returns:
            Dictionary with session metadata, or None if not found
        """
        with self._lock:
            if session_id not in self._metadata:
                return None
            meta = dict(self._metadata[session_id])
            message_count = sum(
                len(history) for key, history in self._history.items() if key[0] == session_id
            )

        return {
            "session_id": session_id,
            "created_at": meta["created_at"],
            "last_activity": meta["last_activity"],
            "message_count": message_count,
            "age_seconds": time.time() - meta["created_at"],
        }

    def cleanup_old_sessions(self, max_age_seconds: int = 86400) -> int:
        """
        Drop in-memory data for sessions that haven't been active recently.

        Args:
            max_age_seconds: Maximum idle time in seconds (default: 24 hours)

        Returns:
            Number of sessions removed
        """
        current_time = time.time()
        with self._lock:
            stale = [
                session_id for session_id, meta in self._metadata.items()
                if current_time - meta["last_activity"] > max_age_seconds
            ]

        for session_id in stale:
            self.delete_session(session_id)

        if stale:
            logger.info(f"Cleaned up {len(stale)} old sessions")

        return len(stale)

    def get_statistics(self) -> Dict[str, float]:
        """Get statistics about session usage."""
        with self._lock:
            total_sessions = len(self._metadata)
            active_chats = len(self._history)
            total_messages = sum(len(hist) for hist in self._history.values())

        avg_messages = total_messages / active_chats if active_chats else 0

        return {
            "total_sessions": total_sessions,
            "active_chats": active_chats,
            "total_messages": total_messages,
            "avg_messages_per_chat": round(avg_messages, 2),
        }
