"""
Pytest configuration and fixtures
"""
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Keep the API module off the on-disk database during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("STORAGE_DIR", str(project_root / ".pytest_storage"))
os.environ.setdefault("AI_ANALYSIS_URL", "")
os.environ.setdefault("AI_GATEWAY_API_KEY", "")
os.environ.setdefault("ORGANIZER_API_KEY", "")

from crowdshield.crowdsource.report import Report
from crowdshield.database.connection import DatabaseConnection
from crowdshield.database.store import ReportStore
from crowdshield.device.storage import InMemoryKeyValueStore


@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def db():
    connection = DatabaseConnection("sqlite://")
    connection.create_tables()
    yield connection
    connection.close()


@pytest.fixture
def report_store(db):
    return ReportStore(db, text_max_length=100)


@pytest.fixture
def now():
    """Fixed dashboard time: 2026-01-27 14:30 UTC."""
    return datetime(2026, 1, 27, 14, 30, tzinfo=timezone.utc)


@pytest.fixture
def make_report(now):
    """Factory for in-memory reports."""
    counter = {"n": 0}

    def _make(
        zone="Gate A",
        category="crowd_pressure",
        device_id=None,
        seconds_ago=0,
        created_at=None,
        **kwargs
    ):
        counter["n"] += 1
        return Report(
            id=f"r-{counter['n']}",
            zone=zone,
            category=category,
            device_id=device_id or f"device-{counter['n']}",
            created_at=created_at or (now - timedelta(seconds=seconds_ago)),
            **kwargs
        )

    return _make
