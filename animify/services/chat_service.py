"""
Chat Persona Service

Builds chatbot requests from a session's chat history and persona config,
records the replies, and turns chat images into videos.

Two conversations are kept per session:
- the persona chat, where "User" and "Bot" speak with the configured profiles
- the two-bot page, where two hosted bots (by strapi id) talk to each other
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from config import Config
from animify.models.chat import ChatConfig, Message, Sender
from animify.services.config_service import ChatConfigManager
from animify.services.exh_client import ExhAPIError, ExhClient
from animify.services.session_service import BOTS_CHANNEL, PERSONA_CHANNEL, SessionService
from animify.services.upload_service import UploadService
from animify.utils.image_utils import build_public_url

logger = logging.getLogger(__name__)


class MessageNotFoundError(LookupError):
    """Raised when a chat message id is unknown for the session."""


def build_chat_request(
    messages: List[Message],
    sender: Sender,
    config: ChatConfig,
    context_size: int = None,
) -> Dict[str, Any]:
    """
    Build the chatbot request body for the next reply.

    The persona answering is the opposite of ``sender``, so its profile and
    settings come from the opposite key; ``sender`` supplies the user profile.

    Args:
        messages: Conversation so far, oldest first
        sender: Side that is speaking
        config: Persona configuration
        context_size: How many recent messages to send

    Returns:
        JSON body for the chatbot endpoint
    """
    context_size = context_size or Config.CHAT_CONTEXT_MESSAGES
    responder = sender.opposite

    context = []
    for msg in messages[-context_size:]:
        turn = {
            "message": msg.text,
            "turn": "user" if msg.sender == sender else "bot",
        }
        if msg.prompt:
            turn["image_prompt"] = msg.prompt
        context.append(turn)

    def _section(entries: Dict[str, Any], key: Sender) -> Optional[Dict[str, Any]]:
        entry = entries.get(key.value)
        return entry.model_dump() if entry is not None else None

    return {
        "context": context,
        "bot_profile": _section(config.bot_profiles, responder),
        "user_profile": _section(config.bot_profiles, sender),
        "chat_settings": _section(config.chat_settings, responder),
        "image_settings": _section(config.image_settings, responder),
    }


class ChatService:
    """Persona chat, two-bot conversations and chat image animation."""

    def __init__(
        self,
        sessions: SessionService,
        config_manager: ChatConfigManager,
        uploads: UploadService,
        client: ExhClient,
    ):
        self.sessions = sessions
        self.config_manager = config_manager
        self.uploads = uploads
        self.client = client
        logger.info("Chat service initialized")

    def get_messages(self, session_id: str, channel: str = PERSONA_CHANNEL) -> List[Message]:
        return self.sessions.get_history(session_id, channel)

    def reset(self, session_id: str, channel: str = None) -> None:
        self.sessions.reset_session(session_id, channel)

    def send_chat(self, session_id: str, text: str, sender: Sender = Sender.USER) -> Message:
        """
        Send a chat turn and record the persona's reply.

        Blank text sends no new message and asks the persona to continue.

        Returns:
            The reply message (spoken by the opposite sender)

        Raises:
            ExhAPIError: If the chatbot call fails
        """
        if text.strip():
            self.sessions.append_message(session_id, Message(text=text, sender=sender))

        body = build_chat_request(
            self.sessions.get_history(session_id),
            sender,
            self.config_manager.get_config(session_id),
        )
        logger.info(
            f"Chat turn from {sender.value} with {len(body['context'])} context messages "
            f"(session {session_id[:8]}...)"
        )

        data = self.client.chatbot_response(body)
        if not isinstance(data, dict):
            raise ExhAPIError("Failed to parse API response: expected an object", status_code=502)

        image_response = data.get("image_response") or {}
        reply = Message(
            text=data.get("response") or "",
            sender=sender.opposite,
            image=image_response.get("bs64"),
            prompt=image_response.get("prompt"),
        )
        if reply.image:
            logger.info(f"Reply from {reply.sender.value} carries an image")
        return self.sessions.append_message(session_id, reply)

    def animate_message(self, session_id: str, message_id: str) -> Message:
        """
        Mark a chat message as being animated.

        The video itself is produced by ``run_animation``.

        Raises:
            MessageNotFoundError: If the message does not exist
            ValueError: If the message has no image
        """
        message = self.sessions.get_message(session_id, message_id)
        if message is None:
            raise MessageNotFoundError(f"Message {message_id} not found")
        if not message.image and not message.image_url:
            raise ValueError("No image found in the message.")

        return self.sessions.update_message(
            session_id, message_id, loading=True, error=None, video_url=None
        )

    def run_animation(
        self,
        session_id: str,
        message_id: str,
        prompt: str,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[Message]:
        """
        Upload the message image, generate a video from it and record the result.

        Never raises; failures end up in the message's ``error`` field.
        """
        message = self.sessions.get_message(session_id, message_id)
        if message is None:
            logger.warning(f"Animation job for missing message {message_id[:8]} skipped")
            return None

        try:
            changes = self._animate(message, prompt, headers or {})
        except ExhAPIError as e:
            logger.error(f"Error generating video for message {message_id[:8]}: {e.message}")
            changes = {"error": e.message}
        except ValueError as e:
            logger.error(f"Error generating video for message {message_id[:8]}: {e}")
            changes = {"error": str(e)}
        except Exception as e:
            logger.exception(f"Unexpected error animating message {message_id[:8]}: {e}")
            changes = {"error": "An error occurred"}

        return self.sessions.update_message(session_id, message_id, loading=False, **changes)

    def _animate(self, message: Message, prompt: str, headers: Mapping[str, str]) -> Dict[str, Any]:
        changes: Dict[str, Any] = {}
        image_url = message.image_url
        if not image_url:
            try:
                image_url = self.uploads.save_base64(message.image)
            except (ValueError, OSError) as e:
                logger.error(f"Failed to upload chat image: {e}")
                raise ValueError("Failed to upload image")
            changes["image_url"] = image_url

        changes["video_url"] = self.client.submit_video_generation(
            build_public_url(headers, image_url), prompt
        )
        return changes

    def converse_bots(
        self,
        session_id: str,
        bot_ids: List[str],
        active: int,
        text: str = "",
    ) -> Tuple[Optional[Message], int]:
        """
        Advance the two-bot conversation by one reply.

        Bot 1 speaks as "User" and bot 2 as "Bot" in the stored history.

        Args:
            session_id: Owning session
            bot_ids: Strapi ids of bot 1 and bot 2
            active: Index of the bot whose turn it is
            text: Optional line to add on behalf of the active bot first

        Returns:
            (reply, next active index); the reply is None and the turn does
            not pass when the response carries no text

        Raises:
            ExhAPIError: If the chatbot call fails
        """
        speaker = Sender.USER if active == 0 else Sender.BOT
        if text.strip():
            self.sessions.append_message(session_id, Message(text=text, sender=speaker), BOTS_CHANNEL)

        history = self.sessions.get_history(session_id, BOTS_CHANNEL)
        body = {
            "context": [
                {
                    "message": msg.text,
                    "turn": "user" if msg.sender == speaker else "bot",
                    "media_id": None,
                }
                for msg in history
            ],
            "strapi_bot_id": bot_ids[active],
            "output_audio": False,
            "enable_proactive_photos": True,
        }

        data = self.client.chatbot_response(body)
        responses = data.get("responses") if isinstance(data, dict) else None
        reply_text = responses[0].get("response") if responses and isinstance(responses[0], dict) else None
        if not reply_text:
            logger.error(f"Error fetching chatbot response: {str(data)[:500]}")
            return None, active

        reply = self.sessions.append_message(
            session_id, Message(text=reply_text, sender=speaker.opposite), BOTS_CHANNEL
        )
        return reply, 1 - active

    def get_statistics(self) -> Dict[str, float]:
        return self.sessions.get_statistics()
