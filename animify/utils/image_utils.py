"""
Image Conversion Helpers

Conversions between data URLs, raw base64 strings, bytes and remote URLs.
"""

import base64
import binascii
import logging
import re
from typing import Mapping, Optional

import requests

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG"

_WHITESPACE = re.compile(r"[\r\n\t ]+")
_DATA_URL = re.compile(r"^data:(?P<mime>[^;,]*)?(?:;[^,]*)?;base64,(?P<data>.*)$", re.DOTALL)


def clean_base64(value: Optional[str]) -> str:
    """
    Normalise a base64 payload before sending it upstream.

    Removes all whitespace and strips a ``data:...;base64,`` prefix.
    """
    if not value:
        return ""

    cleaned = _WHITESPACE.sub("", value)
    if cleaned.startswith("data:"):
        match = _DATA_URL.match(cleaned)
        if match and match.group("data"):
            cleaned = match.group("data")
    return cleaned


def encode_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_base64(value: str) -> bytes:
    """
    Decode a base64 string or data URL into bytes.

    Raises:
        ValueError: If the input is empty or not valid base64
    """
    cleaned = clean_base64(value)
    if not cleaned:
        raise ValueError("Invalid base64 string: empty or undefined")
    try:
        return base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 string: {e}")


def detect_image_mime(value: str) -> str:
    """
    Guess the mime type of a base64 image.

    Data URLs report their own type; otherwise PNG is recognised by its
    signature and everything else is treated as JPEG.
    """
    if value.startswith("data:"):
        match = _DATA_URL.match(_WHITESPACE.sub("", value))
        if match and match.group("mime"):
            return match.group("mime")
        return "image/jpeg"

    try:
        head = base64.b64decode(clean_base64(value)[:16])
    except (binascii.Error, ValueError):
        return "image/jpeg"
    return "image/png" if head.startswith(PNG_SIGNATURE) else "image/jpeg"


def url_to_base64(url: str, timeout: int = 60) -> str:
    """
    Fetch an image and return it as a base64 string without a data prefix.

    Args:
        url: Remote URL, or a ``data:image`` URL which is returned as-is
        timeout: Request timeout in seconds

    Raises:
        RuntimeError: If the image cannot be fetched
    """
    if url.startswith("data:image"):
        return url.split(",", 1)[1]

    try:
        response = requests.get(url, timeout=timeout)
    except requests.exceptions.RequestException as e:
        logger.error(f"Error converting URL to base64: {e}")
        raise RuntimeError(f"Failed to fetch image: {e}")

    if not response.ok:
        raise RuntimeError(f"Failed to fetch image: {response.status_code} {response.reason}")

    return encode_base64(response.content)


def build_public_url(headers: Mapping[str, str], path: str) -> str:
    """
    Build an absolute URL that a third party can reach.

    Honours ``x-forwarded-host``/``x-forwarded-proto`` from a reverse proxy.
    Absolute URLs are returned untouched; without a host the path is
    returned as is.
    """
    if path.startswith(("http://", "https://", "data:")):
        return path

    host = headers.get("x-forwarded-host") or headers.get("host")
    protocol = headers.get("x-forwarded-proto") or "http"

    if not host:
        return path

    normalized_path = path if path.startswith("/") else f"/{path}"
    return f"{protocol}://{host}{normalized_path}"
