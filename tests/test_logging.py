"""
Tests for logging configuration
"""
import logging

import pytest

import sys
sys.path.insert(0, '.')

from crowdshield.core.logging import get_logger, parse_level_overrides, setup_logging


class TestLevelOverrides:
    """Test suite for per-logger level parsing."""

    def test_empty(self):
        assert parse_level_overrides("") == {}
        assert parse_level_overrides(None) == {}

    def test_pairs(self):
        overrides = parse_level_overrides("crowdshield.database=debug, httpx=INFO,")
        assert overrides == {
            "crowdshield.database": logging.DEBUG,
            "httpx": logging.INFO,
        }

    @pytest.mark.parametrize("value", ["crowdshield.database", "=DEBUG", "httpx=LOUD"])
    def test_malformed(self, value):
        with pytest.raises(ValueError):
            parse_level_overrides(value)


class TestSetupLogging:
    """Test applying levels to loggers."""

    def setup_method(self):
        """Remember levels touched by the tests."""
        self.names = ["crowdshield", "crowdshield.dashboard", "httpx", "sqlalchemy.engine"]
        self.saved = {name: logging.getLogger(name).level for name in self.names}

    def teardown_method(self):
        for name, level in self.saved.items():
            logging.getLogger(name).setLevel(level)

    def test_defaults_quiet_third_party(self):
        app_logger = setup_logging(level="INFO", overrides="")

        assert app_logger.name == "crowdshield"
        assert app_logger.level == logging.INFO
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_overrides_applied(self):
        setup_logging(
            level="WARNING",
            overrides="crowdshield.dashboard=DEBUG,sqlalchemy.engine=INFO",
        )

        assert logging.getLogger("crowdshield").level == logging.WARNING
        assert logging.getLogger("crowdshield.dashboard").level == logging.DEBUG
        assert logging.getLogger("sqlalchemy.engine").level == logging.INFO

    def test_get_logger_nests_under_package(self):
        assert get_logger("crowdshield.api.main").name == "crowdshield.api.main"
        assert get_logger("worker").name == "crowdshield.worker"
