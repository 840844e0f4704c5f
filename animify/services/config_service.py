"""
Persona and Transform Configuration

Loads the bundled JSON defaults and lets each session override them. The
session copy lives in the state store; a stored copy that is missing or
fails validation falls back to the bundled default.
"""

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List

from pydantic import ValidationError

from config import Config
from animify.models.chat import BotProfile, ChatConfig, ChatSettings, ImageSettings, Sender, TransformDefaults
from animify.services.state_store import CHAT_CONFIG_KEY, TRANSFORM_CONFIG_KEY, StateStore

logger = logging.getLogger(__name__)

DEFAULTS_DIR = Path(__file__).resolve().parent.parent / "defaults"

CHAT_SECTIONS = {
    "bot_profiles": BotProfile,
    "chat_settings": ChatSettings,
    "image_settings": ImageSettings,
}

# list field -> section holding it
LIST_FIELDS = {
    "tasks": "chat_settings",
    "example_messages": "bot_profiles",
}

SENDER_KEYS = tuple(sender.value for sender in Sender)


def _load_json(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


class ChatConfigManager:
    """Per-session persona configuration."""

    def __init__(self, store: StateStore, default_path: str = None):
        self.store = store
        self.default_path = Path(
            default_path or Config.CHAT_CONFIG_FILE or DEFAULTS_DIR / "chat_config.json"
        )
        self._default = ChatConfig.model_validate(_load_json(self.default_path))
        logger.info(f"Loaded default chat config from {self.default_path}")

    def default_config(self) -> ChatConfig:
        return self._default.model_copy(deep=True)

    def get_config(self, session_id: str) -> ChatConfig:
        """Stored config for the session, or the bundled default."""
        stored = self.store.get_json(session_id, CHAT_CONFIG_KEY)
        if stored is None:
            return self.default_config()
        try:
            return ChatConfig.model_validate(stored)
        except ValidationError as e:
            logger.error(f"Failed to parse stored chat config, using default: {e}")
            return self.default_config()

    def save_config(self, session_id: str, config: ChatConfig) -> ChatConfig:
        self.store.set_json(session_id, CHAT_CONFIG_KEY, config.model_dump())
        logger.info(f"Saved chat config for session {session_id[:8]}...")
        return config

    def update_config(self, session_id: str, data: Dict[str, Any]) -> ChatConfig:
        """
        Replace the whole config with ``data`` and save it.

        Raises:
            ValueError: If ``data`` is not a valid config
        """
        try:
            config = ChatConfig.model_validate(data)
        except ValidationError as e:
            raise ValueError(str(e))
        return self.save_config(session_id, config)

    def reset_to_default(self, session_id: str) -> ChatConfig:
        """Replace the session's config with the bundled default and save it."""
        logger.info(f"Resetting chat config for session {session_id[:8]}...")
        return self.save_config(session_id, self.default_config())

    def update_section(
        self,
        session_id: str,
        section: str,
        sender_key: str,
        changes: Dict[str, Any],
    ) -> ChatConfig:
        """
        Change fields of one sender's profile, chat settings or image settings.

        Raises:
            ValueError: On an unknown section, sender or invalid field values
        """
        if section not in CHAT_SECTIONS:
            raise ValueError(f"Unknown config section '{section}'")
        if sender_key not in SENDER_KEYS:
            raise ValueError(f"Unknown sender '{sender_key}'")

        data = self.get_config(session_id).model_dump()
        entry = data[section].get(sender_key, {})
        unknown = set(changes) - set(CHAT_SECTIONS[section].model_fields)
        if unknown:
            raise ValueError(f"Unknown fields for {section}: {sorted(unknown)}")
        entry.update(changes)
        data[section][sender_key] = entry

        try:
            config = ChatConfig.model_validate(data)
        except ValidationError as e:
            raise ValueError(str(e))
        return self.save_config(session_id, config)

    def update_bot_profile(self, session_id: str, sender_key: str, field: str, value: Any) -> ChatConfig:
        return self.update_section(session_id, "bot_profiles", sender_key, {field: value})

    def update_chat_settings(self, session_id: str, sender_key: str, field: str, value: Any) -> ChatConfig:
        return self.update_section(session_id, "chat_settings", sender_key, {field: value})

    def update_image_settings(self, session_id: str, sender_key: str, field: str, value: Any) -> ChatConfig:
        return self.update_section(session_id, "image_settings", sender_key, {field: value})

    def edit_list(
        self,
        session_id: str,
        list_field: str,
        sender_key: str,
        edit: Callable[[List[str]], List[str]],
    ) -> ChatConfig:
        """Apply ``edit`` to a sender's tasks or example messages and save."""
        if list_field not in LIST_FIELDS:
            raise ValueError(f"Unknown list field '{list_field}'")
        section = LIST_FIELDS[list_field]

        config = self.get_config(session_id)
        entries = getattr(config, section)
        if sender_key not in entries:
            raise ValueError(f"Unknown sender '{sender_key}'")

        values = list(getattr(entries[sender_key], list_field))
        try:
            values = edit(values)
        except IndexError:
            raise ValueError(f"No {list_field} entry at that index")
        setattr(entries[sender_key], list_field, values)
        return self.save_config(session_id, config)

    def add_task(self, session_id: str, sender_key: str, value: str = "") -> ChatConfig:
        return self.edit_list(session_id, "tasks", sender_key, lambda v: v + [value])

    def update_task(self, session_id: str, sender_key: str, index: int, value: str) -> ChatConfig:
        return self.edit_list(session_id, "tasks", sender_key, replace_at(index, value))

    def remove_task(self, session_id: str, sender_key: str, index: int) -> ChatConfig:
        return self.edit_list(session_id, "tasks", sender_key, remove_at(index))

    def add_example_message(self, session_id: str, sender_key: str, value: str = "") -> ChatConfig:
        return self.edit_list(session_id, "example_messages", sender_key, lambda v: v + [value])

    def update_example_message(self, session_id: str, sender_key: str, index: int, value: str) -> ChatConfig:
        return self.edit_list(session_id, "example_messages", sender_key, replace_at(index, value))

    def remove_example_message(self, session_id: str, sender_key: str, index: int) -> ChatConfig:
        return self.edit_list(session_id, "example_messages", sender_key, remove_at(index))


class TransformConfigManager:
    """Per-session default options for photo transforms."""

    def __init__(self, store: StateStore, default_path: str = None):
        self.store = store
        self.default_path = Path(
            default_path or Config.TRANSFORM_CONFIG_FILE or DEFAULTS_DIR / "transform_config.json"
        )
        self._default = TransformDefaults.model_validate(
            _load_json(self.default_path).get("defaults", {})
        )
        logger.info(f"Loaded default transform config from {self.default_path}")

    def default_defaults(self) -> TransformDefaults:
        return self._default.model_copy()

    def get_defaults(self, session_id: str) -> TransformDefaults:
        stored = self.store.get_json(session_id, TRANSFORM_CONFIG_KEY)
        if stored is None:
            return self.default_defaults()
        try:
            return TransformDefaults.model_validate(stored)
        except ValidationError as e:
            logger.error(f"Failed to parse stored transform config, using default: {e}")
            return self.default_defaults()

    def update_defaults(self, session_id: str, changes: Dict[str, Any]) -> TransformDefaults:
        """
        Shallow-merge ``changes`` into the session's defaults and save.

        Raises:
            ValueError: On unknown fields or invalid values
        """
        unknown = set(changes) - set(TransformDefaults.model_fields)
        if unknown:
            raise ValueError(f"Unknown transform fields: {sorted(unknown)}")

        merged = self.get_defaults(session_id).model_dump()
        merged.update(changes)
        try:
            defaults = TransformDefaults.model_validate(merged)
        except ValidationError as e:
            raise ValueError(str(e))

        self.store.set_json(session_id, TRANSFORM_CONFIG_KEY, defaults.model_dump())
        return defaults

    def reset_to_default(self, session_id: str) -> TransformDefaults:
        defaults = self.default_defaults()
        self.store.set_json(session_id, TRANSFORM_CONFIG_KEY, defaults.model_dump())
        logger.info(f"Reset transform config for session {session_id[:8]}...")
        return defaults


def replace_at(index: int, value: str) -> Callable[[List[str]], List[str]]:
    def edit(values: List[str]) -> List[str]:
        if index < 0:
            raise IndexError(index)
        values[index] = value
        return values
    return edit


def remove_at(index: int) -> Callable[[List[str]], List[str]]:
    def edit(values: List[str]) -> List[str]:
        if index < 0:
            raise IndexError(index)
        del values[index]
        return values
    return edit
