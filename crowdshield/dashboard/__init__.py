"""
CrowdShield - Dashboard Module
Read-only views over the organizer's report list.
"""

from crowdshield.dashboard.feed import ReportFeed
from crowdshield.dashboard.zone_status import (
    ZoneLevel,
    ZoneStatus,
    compute_zone_statuses,
    level_for_count,
)
from crowdshield.dashboard.analytics import (
    AnalyticsSummary,
    HourlyBucket,
    compute_analytics,
)

__all__ = [
    "ReportFeed",
    "ZoneLevel",
    "ZoneStatus",
    "compute_zone_statuses",
    "level_for_count",
    "AnalyticsSummary",
    "HourlyBucket",
    "compute_analytics",
]
