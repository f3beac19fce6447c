"""
Anonymous per-device identifier.
"""

import logging
import uuid

from crowdshield.core.constants import DEVICE_ID_KEY
from crowdshield.device.storage import KeyValueStore, StorageError

logger = logging.getLogger(__name__)


class DeviceIdentity:
    """
    Stable pseudonymous identifier for one browser or device.

    Not a verified user identity. If the backing store fails, a fresh id is
    returned on every call.
    """

    def __init__(self, storage: KeyValueStore):
        self.storage = storage

    def get_device_id(self) -> str:
        """Return the persisted device id, creating it on first use."""
        try:
            device_id = self.storage.get(DEVICE_ID_KEY)
        except StorageError as e:
            logger.warning(f"Device id unreadable, using a transient one: {e}")
            return str(uuid.uuid4())

        if device_id:
            return device_id

        device_id = str(uuid.uuid4())
        try:
            self.storage.set(DEVICE_ID_KEY, device_id)
            logger.info(f"New device id assigned: {device_id[:8]}...")
        except StorageError as e:
            logger.warning(f"Device id could not be persisted: {e}")

        return device_id
