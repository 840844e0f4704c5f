"""
ExH AI Client

Thin wrapper around the hosted ExH AI endpoints used by Animify:
- gallery image generation (photo transform)
- video generation from a still image
- animated stories
- face swap
- persona chat and contextual chat photos

Secrets never leave the server: every call injects the bearer token from
configuration.
"""

import json
import logging
import random
from typing import Any, Dict, Optional, Tuple

import requests

from config import Config
from animify.utils.performance import timed

logger = logging.getLogger(__name__)

TOKEN_MISSING = "API token not configured on server"

PHOTO_DEFAULTS: Dict[str, Any] = {
    "model_name": "base",
    "style": "realistic",
    "gender": "auto",
    "body_type": "auto",
    "skin_color": "auto",
    "auto_detect_hair_color": True,
    "nsfw_policy": "block",
}

VIDEO_DEFAULTS: Dict[str, Any] = {
    "model_id": "ultra",
    "duration": 20,
    "nsfw": True,
    "allow_nsfw": True,
}

STORY_DEFAULTS: Dict[str, Any] = {
    "gender": "woman",
    "body_type": "skinny",
    "skin_color": "tanned",
    "hair_color": "black",
    "animation_model": "pro",
    "duration": 10,
}


class ExhAPIError(Exception):
    """
    An upstream call failed or could not be made.

    Attributes:
        message: Error text returned to the caller
        status_code: HTTP status to answer with
        payload: Upstream response body, when there was one
    """

    def __init__(self, message: str, status_code: int = 500, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload


def _merge(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(defaults)
    merged.update({k: v for k, v in overrides.items() if v is not None})
    return merged


def _random_id() -> str:
    return str(random.randint(1000, 9999))


class ExhClient:
    """HTTP client for the ExH AI API."""

    def __init__(
        self,
        base_url: str = None,
        api_token: str = None,
        video_token: str = None,
        botify_token: str = None,
        x_auth_token: str = None,
        timeout: int = None,
    ):
        """
        Initialize the client. Arguments left as None come from Config.
        """
        self.base_url = (base_url or Config.EXH_API_BASE_URL).rstrip('/')
        self.api_token = Config.EXH_AI_API_TOKEN if api_token is None else api_token
        self.video_token = Config.EXH_VIDEO_API_TOKEN if video_token is None else video_token
        self.botify_token = Config.EXH_BOTIFY_TOKEN if botify_token is None else botify_token
        self.x_auth_token = Config.X_AUTH_TOKEN if x_auth_token is None else x_auth_token
        self.timeout = timeout or Config.EXH_REQUEST_TIMEOUT

        logger.info(f"Initialized ExH client at {self.base_url}")

    def _get_headers(self, token: str, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Get HTTP headers for an ExH request."""
        headers = {
            "Content-Type": "application/json",
            "accept": "application/json",
            "authorization": f"Bearer {token}",
        }
        if extra:
            headers.update(extra)
        return headers

    @staticmethod
    def _require(token: str, message: str = TOKEN_MISSING) -> None:
        if not token:
            raise ExhAPIError(message, status_code=500)

    def require_video_token(self) -> None:
        """Raise before any image work when story animation has no token."""
        self._require(self.video_token)

    def _post(
        self,
        path: str,
        payload: Dict[str, Any],
        token: str,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> Tuple[requests.Response, Any]:
        """
        POST a JSON payload and decode the response.

        Error bodies that are not JSON come back as text; a success body
        that is not JSON is an error.

        Raises:
            ExhAPIError: On network failure (503) or unparseable success body (502)
        """
        url = f"{self.base_url}{path}"
        logger.debug(f"POST {url} ({len(payload)} fields)")

        try:
            response = requests.post(
                url,
                json=payload,
                headers=self._get_headers(token, extra_headers),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Network error while calling ExH AI API {path}: {e}")
            raise ExhAPIError(f"Network error while calling ExH AI API: {e}", status_code=503)

        logger.info(f"ExH {path} -> {response.status_code} {response.reason}")

        try:
            data = response.json()
        except ValueError as e:
            if response.ok:
                logger.error(f"Failed to parse ExH response from {path}: {e}")
                raise ExhAPIError(f"Failed to parse API response: {e}", status_code=502)
            data = response.text

        if not response.ok:
            logger.error(
                f"Error response from ExH {path}: {response.status_code} "
                f"{_preview(data)}"
            )

        return response, data

    @staticmethod
    def _status_error(response: requests.Response, data: Any) -> ExhAPIError:
        return ExhAPIError(
            f"Status: {response.status_code} {response.reason}. Response: {json.dumps(data)}",
            status_code=response.status_code if not response.ok else 502,
            payload=data,
        )

    @staticmethod
    def _field_error(response: requests.Response, data: Any, default: str) -> ExhAPIError:
        message = data.get("error") if isinstance(data, dict) else None
        return ExhAPIError(
            message or default,
            status_code=response.status_code if not response.ok else 502,
            payload=data,
        )

    @timed("ExH: generate gallery image")
    def generate_gallery_image(self, identity_image_b64: str, prompt: str, **options) -> str:
        """
        Generate a new image of the person in ``identity_image_b64``.

        Args:
            identity_image_b64: Source photo as plain base64
            prompt: What the new image should show
            **options: model_name, style, gender, body_type, skin_color,
                auto_detect_hair_color, nsfw_policy (None means default)

        Returns:
            The generated image as base64
        """
        self._require(self.api_token)

        payload = _merge(PHOTO_DEFAULTS, options)
        payload["identity_image_b64"] = identity_image_b64
        payload["prompt"] = prompt

        logger.info(
            f"Generating gallery image ({len(identity_image_b64)} chars) for prompt "
            f"\"{prompt[:100]}{'...' if len(prompt) > 100 else ''}\""
        )
        response, data = self._post("/image/v1/generate_gallery_image", payload, self.api_token)

        if response.ok and isinstance(data, dict) and data.get("image_b64"):
            logger.info(f"Received image_b64 data ({len(data['image_b64'])} chars)")
            return data["image_b64"]
        raise self._status_error(response, data)

    @timed("ExH: submit video generation")
    def submit_video_generation(
        self,
        image_url: str,
        prompt: str,
        model_id: str = None,
        duration: int = None,
        nsfw: bool = None,
        allow_nsfw: bool = None,
    ) -> str:
        """
        Animate a still image into a video.

        A prompt containing ``:pro:`` selects the "pro" model.

        Returns:
            URL of the generated video
        """
        self._require(self.api_token)

        payload = _merge(VIDEO_DEFAULTS, {
            "model_id": model_id,
            "duration": duration,
            "nsfw": nsfw,
            "allow_nsfw": allow_nsfw,
        })
        if ":pro:" in prompt.lower():
            payload["model_id"] = "pro"
        payload.update({
            "image_url": image_url,
            "prompt": prompt,
            "user_id": _random_id(),
            "bot_id": _random_id(),
        })

        response, data = self._post(
            "/chat_media_manager/v2/submit_video_generation_task", payload, self.api_token
        )

        if response.ok and isinstance(data, dict) and data.get("media_url"):
            return data["media_url"]
        raise self._field_error(response, data, "Response has error")

    @timed("ExH: animate story")
    def animate_story(self, image_b64: str, prompt: str, **options) -> str:
        """
        Turn a photo into an animated story video.

        Args:
            image_b64: Source photo as plain base64
            prompt: Story prompt
            **options: gender, body_type, skin_color, hair_color,
                animation_model, duration

        Returns:
            URL of the story video
        """
        self.require_video_token()

        payload = _merge(STORY_DEFAULTS, options)
        payload["prompt"] = prompt
        payload["image_b64"] = image_b64

        response, data = self._post(
            "/animations/v3/animate_story_experimental", payload, self.video_token
        )

        if response.ok and isinstance(data, dict) and data.get("video_url"):
            return data["video_url"]
        raise self._field_error(response, data, "Response has error")

    @timed("ExH: face swap")
    def faceswap(self, source_image_b64: str, target_image_b64: str) -> Dict[str, Any]:
        """Swap the face from the source image onto the target image."""
        self._require(self.api_token)

        payload = {
            "nsfw_policy": "allow",
            "source_image_b64": source_image_b64,
            "target_image_b64": target_image_b64,
        }
        response, data = self._post("/image/v1/generate_faceswap_image", payload, self.api_token)

        if not response.ok:
            raise ExhAPIError(
                "Face swap API request failed", status_code=response.status_code, payload=data
            )
        return data

    @timed("ExH: chatbot response")
    def chatbot_response(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Forward a chatbot request body verbatim and return the reply."""
        self._require(self.api_token)

        response, data = self._post("/chatbot/v3/response", body, self.api_token)

        if not response.ok:
            raise self._status_error(response, data)
        return data

    @timed("ExH: contextual image")
    def contextual_image(self, strapi_bot_id: Any, user_id: Any, context: Any) -> Dict[str, Any]:
        """Ask a Botify persona for a photo that fits the conversation."""
        self._require(self.botify_token)
        self._require(self.x_auth_token, "X-Auth token not configured on server")

        payload = {
            "strapi_bot_id": strapi_bot_id,
            "user_id": user_id,
            "context": context,
            "photo_model_id": Config.CONTEXTUAL_PHOTO_MODEL,
        }
        response, data = self._post(
            "/chatbot/v3/botify/contextual_image",
            payload,
            self.botify_token,
            extra_headers={"x-auth-token": self.x_auth_token},
        )

        if not response.ok:
            raise ExhAPIError("Failed to fetch contextual photo", status_code=500, payload=data)
        return data


def _preview(data: Any, limit: int = 500) -> str:
    text = data if isinstance(data, str) else json.dumps(data)
    return text[:limit]


def create_exh_client() -> ExhClient:
    """
    Factory function to create the ExH client from configuration.

    Returns:
        An ExhClient instance
    """
    logger.info("Creating ExH client")
    return ExhClient()
