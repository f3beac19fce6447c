"""
CrowdShield - Core Utilities
Central configuration, logging, and reference data.
"""

from crowdshield.core.config import settings
from crowdshield.core.constants import (
    ZONES,
    Category,
    Urgency,
    CATEGORY_LABELS,
)

__all__ = [
    "settings",
    "ZONES",
    "Category",
    "Urgency",
    "CATEGORY_LABELS",
]
