"""
CrowdShield - Device Module
Per-device identity, rate limiting, and persisted client state.
"""

from crowdshield.device.storage import (
    KeyValueStore,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    StorageError,
)
from crowdshield.device.identity import DeviceIdentity
from crowdshield.device.rate_limiter import SubmissionRateLimiter

__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "StorageError",
    "DeviceIdentity",
    "SubmissionRateLimiter",
]
