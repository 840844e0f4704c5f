"""
Session State Store

Server-side stand-in for the browser's local storage: a string key-value
map per session, persisted as one JSON file per session under STATE_DIR.

Like local storage, read and write failures are logged and treated as a
missing value instead of failing the request.
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from config import Config

logger = logging.getLogger(__name__)

MEDIA_ITEMS_KEY = 'animify_media_items'
CHAT_CONFIG_KEY = 'animify_chat_config'
TRANSFORM_CONFIG_KEY = 'animify_transform_config'


class StateStore:
    """Per-session key-value storage backed by flat JSON files."""

    def __init__(self, state_dir: str = None):
        self.state_dir = Path(state_dir or Config.STATE_DIR)
        self._lock = threading.RLock()
        os.makedirs(self.state_dir, exist_ok=True)
        logger.info(f"State store initialized at {self.state_dir}")

    def _path(self, session_id: str) -> Path:
        return self.state_dir / f"{session_id}.json"

    def _read(self, session_id: str) -> Dict[str, str]:
        path = self._path(session_id)
        if not path.exists():
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error reading state for session {session_id[:8]}...: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed state file for session {session_id[:8]}...")
            return {}
        return data

    def _write(self, session_id: str, data: Dict[str, str]) -> bool:
        path = self._path(session_id)
        tmp_path = path.with_suffix(".tmp")
        try:
            os.makedirs(self.state_dir, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
            os.replace(tmp_path, path)
            return True
        except OSError as e:
            logger.error(f"Error writing state for session {session_id[:8]}...: {e}")
            return False

    def get_item(self, session_id: str, key: str) -> Optional[str]:
        """Return the stored string for ``key``, or None."""
        with self._lock:
            return self._read(session_id).get(key)

    def set_item(self, session_id: str, key: str, value: str) -> bool:
        """Store a string value. Last write wins."""
        with self._lock:
            data = self._read(session_id)
            data[key] = value
            return self._write(session_id, data)

    def remove_item(self, session_id: str, key: str) -> None:
        with self._lock:
            data = self._read(session_id)
            if data.pop(key, None) is not None:
                self._write(session_id, data)

    def get_json(self, session_id: str, key: str) -> Any:
        """
        Return the decoded JSON value for ``key``.

        Returns:
            Decoded value, or None if missing or unparseable
        """
        raw = self.get_item(session_id, key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse '{key}' for session {session_id[:8]}...: {e}")
            return None

    def set_json(self, session_id: str, key: str, value: Any) -> bool:
        return self.set_item(session_id, key, json.dumps(value, ensure_ascii=False))

    def clear(self, session_id: str) -> None:
        """Remove every key of a session."""
        with self._lock:
            path = self._path(session_id)
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.error(f"Error clearing state for session {session_id[:8]}...: {e}")

    def get_statistics(self) -> Dict[str, Any]:
        files = list(self.state_dir.glob("*.json")) if self.state_dir.exists() else []
        return {
            "state_dir": str(self.state_dir),
            "stored_sessions": len(files),
        }
