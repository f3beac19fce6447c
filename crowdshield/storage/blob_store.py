"""
Blob storage for report audio recordings.
"""

import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from crowdshield.core.exceptions import BlobStorageError

logger = logging.getLogger(__name__)

# Keys are flat names like "<device>-<epoch>.webm"
_KEY_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,199}$")

CONTENT_TYPE_EXTENSIONS = {
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
}


def extension_for(content_type: str) -> str:
    """File extension for an audio content type."""
    base = content_type.split(";")[0].strip().lower()
    return CONTENT_TYPE_EXTENSIONS.get(base, "bin")


def validate_key(key: str) -> str:
    """Reject keys that could escape the storage directory."""
    if not _KEY_PATTERN.match(key) or ".." in key:
        raise BlobStorageError(f"Invalid blob key: {key!r}")
    return key


class BlobStorage(ABC):
    """Durable storage with public URLs."""

    @abstractmethod
    def upload(self, key: str, data: bytes, content_type: str) -> None:
        ...

    @abstractmethod
    def get_public_url(self, key: str) -> str:
        ...


class LocalBlobStorage(BlobStorage):
    """
    Stores blobs as files and serves them through the API.

    Public URLs point at `GET /api/v1/audio/{key}`.
    """

    def __init__(self, root_dir: str, public_base_url: str):
        """
        Initialize local storage.

        Args:
            root_dir: Directory holding the blobs
            public_base_url: Base URL the API is reachable at
        """
        self.root_dir = Path(root_dir)
        self.public_base_url = public_base_url.rstrip("/")

    def path_for(self, key: str) -> Path:
        return self.root_dir / validate_key(key)

    def upload(self, key: str, data: bytes, content_type: str) -> None:
        """
        Write a blob.

        Args:
            key: Blob name
            data: Blob bytes
            content_type: MIME type
        """
        path = self.path_for(key)
        try:
            self.root_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise BlobStorageError(f"Failed to store {key}: {e}") from e

        logger.info(f"Stored blob {key} ({len(data)} bytes, {content_type})")

    def get_public_url(self, key: str) -> str:
        return f"{self.public_base_url}/api/v1/audio/{validate_key(key)}"

    def open_path(self, key: str) -> Optional[Path]:
        """Path of a stored blob, or None if missing."""
        path = self.path_for(key)
        return path if path.is_file() else None
