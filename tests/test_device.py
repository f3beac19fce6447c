"""
Tests for device identity, rate limiting and persisted client state
"""
import json

import pytest

import sys
sys.path.insert(0, '.')

from crowdshield.core.constants import DEVICE_ID_KEY, LAST_REPORT_KEY
from crowdshield.device.identity import DeviceIdentity
from crowdshield.device.rate_limiter import SubmissionRateLimiter
from crowdshield.device.storage import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
    StorageError,
)


class BrokenStore(KeyValueStore):
    """Store whose every access fails."""

    def get(self, key):
        raise StorageError("disk gone")

    def set(self, key, value):
        raise StorageError("disk gone")

    def remove(self, key):
        raise StorageError("disk gone")


class TestDeviceIdentity:
    """Test suite for device identity."""

    def test_id_is_created_once_and_reused(self, kv_store):
        """Test the same id is returned across calls."""
        identity = DeviceIdentity(kv_store)

        first = identity.get_device_id()
        second = identity.get_device_id()

        assert first == second
        assert kv_store.get(DEVICE_ID_KEY) == first

    def test_id_survives_new_instance(self, kv_store):
        """Test a new session on the same device sees the same id."""
        first = DeviceIdentity(kv_store).get_device_id()
        assert DeviceIdentity(kv_store).get_device_id() == first

    def test_cleared_storage_yields_new_id(self, kv_store):
        """Test clearing storage resets the identity."""
        first = DeviceIdentity(kv_store).get_device_id()
        kv_store.clear()
        assert DeviceIdentity(kv_store).get_device_id() != first

    def test_storage_failure_degrades_to_fresh_id(self):
        """Test a broken store never raises."""
        identity = DeviceIdentity(BrokenStore())

        first = identity.get_device_id()
        second = identity.get_device_id()

        assert first and second
        assert first != second


class TestSubmissionRateLimiter:
    """Test suite for the submission rate limiter."""

    def setup_method(self):
        """Setup test fixtures."""
        self.store = InMemoryKeyValueStore()
        self.now = 1_700_000_000.0
        self.limiter = SubmissionRateLimiter(
            self.store, window_seconds=60, clock=lambda: self.now
        )

    def test_never_submitted(self):
        """Test a fresh device may submit immediately."""
        assert self.limiter.can_submit() is True
        assert self.limiter.seconds_until_next_allowed() == 0

    def test_blocked_inside_window(self):
        """Test submission is blocked until the window passes."""
        self.limiter.mark_submitted()

        self.now += 59.5
        assert self.limiter.can_submit() is False
        assert self.limiter.seconds_until_next_allowed() == 1

        self.now += 0.5
        assert self.limiter.can_submit() is True
        assert self.limiter.seconds_until_next_allowed() == 0

    def test_mark_stores_epoch_milliseconds(self):
        """Test the persisted value format."""
        self.limiter.mark_submitted()
        assert self.store.get(LAST_REPORT_KEY) == str(int(self.now * 1000))

    def test_countdown_is_non_increasing(self):
        """Test the countdown only goes down and stays at zero."""
        self.limiter.mark_submitted()

        previous = self.limiter.seconds_until_next_allowed()
        assert previous == 60
        for _ in range(90):
            self.now += 1
            current = self.limiter.seconds_until_next_allowed()
            assert current <= previous
            previous = current
        assert previous == 0

    def test_future_timestamp_never_exceeds_window(self):
        """Test a stored time ahead of the clock is capped."""
        self.store.set(LAST_REPORT_KEY, str(int((self.now + 500) * 1000)))
        assert self.limiter.seconds_until_next_allowed() == 60

    def test_malformed_value_treated_as_never(self):
        """Test garbage in storage does not block the device."""
        self.store.set(LAST_REPORT_KEY, "not-a-number")
        assert self.limiter.can_submit() is True

    def test_shared_storage_between_limiters(self):
        """Test two limiters on one device see the same state."""
        other = SubmissionRateLimiter(self.store, window_seconds=60, clock=lambda: self.now)
        self.limiter.mark_submitted()
        assert other.can_submit() is False

    def test_broken_storage_allows_submission(self):
        """Test storage failures degrade to allowing."""
        limiter = SubmissionRateLimiter(BrokenStore(), clock=lambda: self.now)
        limiter.mark_submitted()
        assert limiter.can_submit() is True


class TestJsonFileKeyValueStore:
    """Test file-backed client state."""

    def test_round_trip_across_instances(self, tmp_path):
        """Test values persist to disk."""
        path = tmp_path / "state" / "device.json"
        JsonFileKeyValueStore(str(path)).set("a", "1")

        assert JsonFileKeyValueStore(str(path)).get("a") == "1"
        assert json.loads(path.read_text()) == {"a": "1"}

    def test_missing_file_is_empty(self, tmp_path):
        """Test reading before any write."""
        store = JsonFileKeyValueStore(str(tmp_path / "none.json"))
        assert store.get("a") is None

    def test_remove(self, tmp_path):
        """Test removing a key."""
        store = JsonFileKeyValueStore(str(tmp_path / "device.json"))
        store.set("a", "1")
        store.remove("a")
        assert store.get("a") is None

    def test_corrupt_file_raises_storage_error(self, tmp_path):
        """Test unreadable content surfaces as StorageError."""
        path = tmp_path / "device.json"
        path.write_text("{not json")

        with pytest.raises(StorageError):
            JsonFileKeyValueStore(str(path)).get("a")

    def test_identity_over_corrupt_file(self, tmp_path):
        """Test device identity still works over a corrupt file."""
        path = tmp_path / "device.json"
        path.write_text("[1, 2]")

        assert DeviceIdentity(JsonFileKeyValueStore(str(path))).get_device_id()
