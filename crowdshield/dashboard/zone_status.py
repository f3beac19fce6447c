"""
Zone danger levels from recent report density.
"""

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Any

from crowdshield.core.constants import (
    ZONES,
    ZONE_CAUTION_THRESHOLD,
    ZONE_DANGER_THRESHOLD,
)
from crowdshield.crowdsource.report import Report

DEFAULT_WINDOW_SECONDS = 120


class ZoneLevel(str, Enum):
    SAFE = "safe"
    CAUTION = "caution"
    DANGER = "danger"


@dataclass
class ZoneStatus:
    """Derived state of one zone."""
    zone: str
    level: ZoneLevel
    device_count: int
    report_count: int
    top_category: Optional[str] = None
    top_category_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "zone": self.zone,
            "level": self.level.value,
            "device_count": self.device_count,
            "report_count": self.report_count,
            "top_category": self.top_category,
            "top_category_count": self.top_category_count,
        }


def level_for_count(device_count: int) -> ZoneLevel:
    """Map distinct reporting devices to a level."""
    if device_count >= ZONE_DANGER_THRESHOLD:
        return ZoneLevel.DANGER
    if device_count >= ZONE_CAUTION_THRESHOLD:
        return ZoneLevel.CAUTION
    return ZoneLevel.SAFE


def most_common(values: Iterable[str]) -> Optional[Tuple[str, int]]:
    """Most frequent value; ties go to the lexicographically smallest."""
    counts = Counter(values)
    if not counts:
        return None
    return min(counts.items(), key=lambda item: (-item[1], item[0]))


def compute_zone_statuses(
    reports: Iterable[Report],
    now: datetime,
    zones: Sequence[str] = ZONES,
    window_seconds: float = DEFAULT_WINDOW_SECONDS
) -> List[ZoneStatus]:
    """
    Danger level of each zone.

    Counts distinct devices that reported in the zone within the trailing
    window, so repeat reports from one device never raise the level.

    Args:
        reports: Reports to consider
        now: Current time (timezone-aware)
        zones: Zones to report on, in display order
        window_seconds: Trailing window length

    Returns:
        One ZoneStatus per zone
    """
    cutoff = now - timedelta(seconds=window_seconds)

    recent: Dict[str, List[Report]] = {zone: [] for zone in zones}
    for report in reports:
        if report.zone in recent and report.created_at > cutoff:
            recent[report.zone].append(report)

    statuses = []
    for zone in zones:
        zone_reports = recent[zone]
        device_count = len({r.device_id for r in zone_reports})
        top = most_common(r.category for r in zone_reports)
        statuses.append(ZoneStatus(
            zone=zone,
            level=level_for_count(device_count),
            device_count=device_count,
            report_count=len(zone_reports),
            top_category=top[0] if top else None,
            top_category_count=top[1] if top else 0,
        ))

    return statuses
