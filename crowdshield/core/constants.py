"""
CrowdShield - Constants and Reference Data
Static values used throughout the application.
"""

from enum import Enum
from typing import Dict, List, Tuple

# =============================================================================
# EVENT SITE
# =============================================================================

ZONES: Tuple[str, ...] = ("Gate A", "Gate B", "Front Stage", "VIP", "Exit")


# =============================================================================
# INCIDENT CLASSIFICATION
# =============================================================================

class Category(str, Enum):
    """Incident categories shared by reporters and the classifier."""
    CROWD_PRESSURE = "crowd_pressure"
    FIGHT = "fight"
    MEDICAL = "medical"
    FIRE = "fire"
    OTHER = "other"


class Urgency(str, Enum):
    """Classifier-derived severity tier."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


CATEGORY_LABELS: Dict[str, Dict[str, str]] = {
    "crowd_pressure": {"label": "Crowd Pressure", "icon": "👥"},
    "fight": {"label": "Fight", "icon": "🥊"},
    "medical": {"label": "Medical Emergency", "icon": "🏥"},
    "fire": {"label": "Fire / Hazard", "icon": "🔥"},
    "other": {"label": "Other", "icon": "⚠️"},
}

CATEGORY_IDS: List[str] = [c.value for c in Category]
URGENCY_LEVELS: List[str] = [u.value for u in Urgency]

# Keyword fallback used when the classification endpoint is unavailable.
# Checked in order; the first category with a matching keyword wins.
CATEGORY_KEYWORDS: List[Tuple[str, List[str]]] = [
    ("fire", [
        "fire", "smoke", "flame", "burning", "explosion", "sparks", "gas leak",
    ]),
    ("medical", [
        "collapsed", "unconscious", "faint", "bleeding", "injured", "seizure",
        "not breathing", "can't breathe", "heart", "medic", "ambulance", "hurt",
    ]),
    ("fight", [
        "fight", "punch", "hitting", "brawl", "attack", "knife", "weapon", "gun",
        "stabbed",
    ]),
    ("crowd_pressure", [
        "crush", "crowd", "pushing", "stampede", "packed", "squeezed", "trampl",
        "surge", "overcrowded",
    ]),
]

HIGH_URGENCY_KEYWORDS: List[str] = [
    "fire", "explosion", "flame", "collapsed", "unconscious", "not breathing",
    "can't breathe", "bleeding", "seizure", "knife", "weapon", "gun",
    "stabbed", "crush", "stampede", "trampl",
]

MEDIUM_URGENCY_KEYWORDS: List[str] = [
    "smoke", "fight", "punch", "injured", "hurt", "faint", "pushing",
    "packed", "squeezed", "surge", "overcrowded", "attack",
]


# =============================================================================
# ZONE STATUS
# =============================================================================

ZONE_CAUTION_THRESHOLD: int = 5
ZONE_DANGER_THRESHOLD: int = 10


# =============================================================================
# CLIENT STATE KEYS
# =============================================================================

DEVICE_ID_KEY: str = "crowdshield_device_id"
LAST_REPORT_KEY: str = "crowdshield_last_report"
