"""
Upload Storage Service

Stores uploaded and generated images on disk and resolves them again for
serving, downloading and base64 conversion.
"""

import logging
import os
import uuid
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from config import Config
from animify.utils.image_utils import decode_base64, detect_image_mime, encode_base64, url_to_base64

logger = logging.getLogger(__name__)

UPLOAD_ROUTE = "/api/uploads/"

CONTENT_TYPES = {
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.gif': 'image/gif',
    '.webp': 'image/webp',
    '.svg': 'image/svg+xml',
}


class UploadTooLargeError(ValueError):
    """Raised when an upload exceeds MAX_UPLOAD_BYTES."""


class UploadService:
    """Flat-file image storage under UPLOAD_DIR."""

    def __init__(self, upload_dir: str = None, max_bytes: int = None):
        self.upload_dir = Path(upload_dir or Config.UPLOAD_DIR)
        self.max_bytes = max_bytes or Config.MAX_UPLOAD_BYTES
        os.makedirs(self.upload_dir, exist_ok=True)
        logger.info(f"Upload service storing files in {self.upload_dir}")

    @staticmethod
    def public_path(filename: str) -> str:
        return f"{UPLOAD_ROUTE}{filename}"

    def save_bytes(self, data: bytes, content_type: Optional[str] = None) -> str:
        """
        Store raw image bytes under a fresh uuid filename.

        Args:
            data: File contents
            content_type: Mime type; its subtype becomes the extension

        Returns:
            Public path of the stored file

        Raises:
            UploadTooLargeError: If the data exceeds the upload limit
        """
        if len(data) > self.max_bytes:
            raise UploadTooLargeError(
                f"Upload of {len(data)} bytes exceeds limit of {self.max_bytes} bytes"
            )

        ext = (content_type or '').split('/')[-1].split(';')[0].strip() or 'png'
        if ext == 'svg+xml':
            ext = 'svg'
        filename = f"{uuid.uuid4()}.{ext}"

        os.makedirs(self.upload_dir, exist_ok=True)
        (self.upload_dir / filename).write_bytes(data)

        logger.info(f"Stored upload {filename} ({len(data)} bytes)")
        return self.public_path(filename)

    def save_base64(self, b64: str) -> str:
        """Decode a base64 image and store it; PNG data keeps .png, anything else is .jpeg."""
        return self.save_bytes(decode_base64(b64), detect_image_mime(b64))

    def resolve(self, filename: str) -> Optional[Path]:
        """
        Find a stored file.

        Raises:
            ValueError: If the filename is empty or tries to leave the upload dir

        Returns:
            Path to the file, or None if it does not exist
        """
        if not filename or '..' in filename or '/' in filename or '\\' in filename:
            raise ValueError("Invalid filename")

        filepath = self.upload_dir / filename
        if not filepath.is_file():
            return None
        return filepath

    @staticmethod
    def content_type_for(filename: str) -> str:
        return CONTENT_TYPES.get(Path(filename).suffix.lower(), 'application/octet-stream')

    def local_filename(self, url: str) -> Optional[str]:
        """Filename for relative URLs pointing at the upload route, else None."""
        if not url:
            return None
        parsed = urlparse(url)
        if parsed.scheme or parsed.netloc:
            return None
        if not parsed.path.startswith(UPLOAD_ROUTE):
            return None
        return parsed.path[len(UPLOAD_ROUTE):]

    def read_local(self, url: str) -> Optional[bytes]:
        """Read a stored upload referenced by URL, or None if it is not local."""
        filename = self.local_filename(url)
        if filename is None:
            return None
        try:
            filepath = self.resolve(filename)
        except ValueError:
            return None
        if filepath is None:
            return None
        return filepath.read_bytes()

    def to_base64(self, url: str) -> str:
        """
        Convert an image URL to plain base64.

        Local uploads are read from disk; everything else is fetched.
        """
        data = self.read_local(url)
        if data is not None:
            return encode_base64(data)
        if self.local_filename(url) is not None:
            raise RuntimeError("Failed to fetch image: 404 File not found")
        return url_to_base64(url, timeout=Config.EXH_REQUEST_TIMEOUT)

    def get_statistics(self) -> dict:
        files = [p for p in self.upload_dir.iterdir() if p.is_file()] if self.upload_dir.exists() else []
        return {
            "upload_dir": str(self.upload_dir),
            "file_count": len(files),
            "total_bytes": sum(p.stat().st_size for p in files),
        }
