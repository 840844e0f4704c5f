"""
Utility Functions

Image conversion and timing helpers.
"""

from .performance import timed, timer_context, PerformanceTracker, get_tracker
from .image_utils import (
    build_public_url,
    clean_base64,
    decode_base64,
    detect_image_mime,
    encode_base64,
    url_to_base64,
)

__all__ = [
    'timed', 'timer_context', 'PerformanceTracker', 'get_tracker',
    'build_public_url', 'clean_base64', 'decode_base64', 'detect_image_mime',
    'encode_base64', 'url_to_base64',
]
