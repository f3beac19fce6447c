"""
Today's report statistics for the organizer dashboard.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from crowdshield.crowdsource.report import Report, ensure_utc
from crowdshield.dashboard.zone_status import most_common

HISTOGRAM_HOURS = 12


@dataclass
class HourlyBucket:
    label: str
    start: datetime
    count: int = 0


@dataclass
class AnalyticsSummary:
    """Statistics over reports created on the current calendar day."""
    total_today: int
    top_category: Optional[str] = None
    top_category_count: int = 0
    top_zone: Optional[str] = None
    top_zone_count: int = 0
    hourly: List[HourlyBucket] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_today": self.total_today,
            "top_category": self.top_category,
            "top_category_count": self.top_category_count,
            "top_zone": self.top_zone,
            "top_zone_count": self.top_zone_count,
            "hourly": [
                {"label": b.label, "start": b.start.isoformat(), "count": b.count}
                for b in self.hourly
            ],
        }


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def compute_analytics(reports: Iterable[Report], now: datetime) -> AnalyticsSummary:
    """
    Summarize today's reports.

    "Today" is the calendar day of `now` in `now`'s timezone, so a report
    from late yesterday is excluded even when it is under 24 hours old.
    The histogram covers the 12 one-hour windows ending with the current
    hour, counting only today's reports.

    Args:
        reports: Reports to consider
        now: Current time (timezone-aware)

    Returns:
        AnalyticsSummary
    """
    tz = now.tzinfo
    day_start = start_of_day(now).astimezone(timezone.utc)

    today = []
    for report in reports:
        created = ensure_utc(report.created_at)
        if day_start <= created:
            today.append((report, created))

    top_category = most_common(r.category for r, _ in today)
    top_zone = most_common(r.zone for r, _ in today)

    # Bucket edges step through real elapsed hours; local time is only for labels
    current_hour = now.replace(minute=0, second=0, microsecond=0).astimezone(timezone.utc)
    hourly = []
    for i in range(HISTOGRAM_HOURS - 1, -1, -1):
        bucket_start = current_hour - timedelta(hours=i)
        bucket_end = bucket_start + timedelta(hours=1)
        count = sum(1 for _, created in today if bucket_start <= created < bucket_end)
        local_start = bucket_start.astimezone(tz)
        hourly.append(HourlyBucket(
            label=local_start.strftime("%H:%M"),
            start=local_start,
            count=count,
        ))

    return AnalyticsSummary(
        total_today=len(today),
        top_category=top_category[0] if top_category else None,
        top_category_count=top_category[1] if top_category else 0,
        top_zone=top_zone[0] if top_zone else None,
        top_zone_count=top_zone[1] if top_zone else 0,
        hourly=hourly,
    )
