"""
CrowdShield - Storage Module
Audio blob storage.
"""

from crowdshield.storage.blob_store import (
    BlobStorage,
    LocalBlobStorage,
    extension_for,
)
from crowdshield.core.exceptions import BlobStorageError

__all__ = [
    "BlobStorage",
    "LocalBlobStorage",
    "BlobStorageError",
    "extension_for",
]
