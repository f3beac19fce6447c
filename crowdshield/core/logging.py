"""
CrowdShield - Logging Configuration
Stdout logging for the API and the reporting client.

Per-logger levels come from LOG_LEVEL_OVERRIDES, a comma-separated list of
`logger=LEVEL` pairs, e.g. `crowdshield.database=DEBUG,httpx=INFO`. They are
applied on top of the defaults that keep HTTP and SQL internals quiet.
"""

import logging
import sys
from typing import Dict, Optional
from functools import lru_cache

from crowdshield.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"

DEFAULT_LOGGER_LEVELS: Dict[str, str] = {
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "sqlalchemy.engine": "WARNING",
    "uvicorn.access": "WARNING",
}


def _level_number(name: str) -> int:
    level = logging.getLevelName(name.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {name!r}")
    return level


def parse_level_overrides(value: Optional[str]) -> Dict[str, int]:
    """
    Parse `logger=LEVEL` pairs.

    Args:
        value: Comma-separated pairs; empty or None means no overrides

    Returns:
        Mapping of logger name to numeric level

    Raises:
        ValueError: Malformed pair or unknown level
    """
    overrides: Dict[str, int] = {}
    for item in (value or "").split(","):
        item = item.strip()
        if not item:
            continue
        name, sep, level = item.partition("=")
        if not sep or not name.strip():
            raise ValueError(f"Expected logger=LEVEL, got {item!r}")
        overrides[name.strip()] = _level_number(level)
    return overrides


def setup_logging(
    level: Optional[str] = None,
    overrides: Optional[str] = None
) -> logging.Logger:
    """
    Configure root output and the `crowdshield` logger tree.

    Args:
        level: Application log level, defaults to LOG_LEVEL
        overrides: Per-logger levels, defaults to LOG_LEVEL_OVERRIDES

    Returns:
        The `crowdshield` logger
    """
    app_level = _level_number(level or settings.log_level)

    logging.basicConfig(
        level=app_level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    app_logger = logging.getLogger("crowdshield")
    app_logger.setLevel(app_level)

    levels = {name: _level_number(lvl) for name, lvl in DEFAULT_LOGGER_LEVELS.items()}
    levels.update(parse_level_overrides(
        overrides if overrides is not None else settings.log_level_overrides
    ))
    for name, value in levels.items():
        logging.getLogger(name).setLevel(value)

    return app_logger


@lru_cache()
def get_logger(name: str = "crowdshield") -> logging.Logger:
    """Logger for a module; names outside the package are nested under `crowdshield`."""
    if name != "crowdshield" and not name.startswith("crowdshield."):
        name = f"crowdshield.{name}"
    return logging.getLogger(name)


logger = setup_logging()
