"""
Organizer's in-memory report list kept current by realtime inserts.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from crowdshield.crowdsource.report import Report

logger = logging.getLogger(__name__)


class ReportFeed:
    """
    Recent reports, newest first, de-duplicated by id.

    Realtime delivery is at-least-once and may race the initial load, so
    both paths go through the same id check.
    """

    def __init__(
        self,
        lookback_hours: int = 24,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize feed.

        Args:
            lookback_hours: How far back the initial load reaches
            clock: Returns the current aware datetime
        """
        self.lookback_hours = lookback_hours
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._reports: Dict[str, Report] = {}
        self._unsubscribe: Optional[Callable[[], None]] = None

    def __len__(self) -> int:
        self.prune()
        return len(self._reports)

    def __contains__(self, report_id: str) -> bool:
        self.prune()
        return report_id in self._reports

    def _cutoff(self) -> datetime:
        return self.clock() - timedelta(hours=self.lookback_hours)

    def prune(self) -> int:
        """
        Drop reports older than the lookback window.

        Returns:
            Number of reports removed
        """
        cutoff = self._cutoff()
        stale = [rid for rid, r in self._reports.items() if r.created_at < cutoff]
        for report_id in stale:
            del self._reports[report_id]
        if stale:
            logger.debug(f"Dropped {len(stale)} reports older than {self.lookback_hours}h")
        return len(stale)

    @property
    def reports(self) -> List[Report]:
        """Reports inside the lookback window, newest first."""
        self.prune()
        return sorted(self._reports.values(), key=lambda r: r.created_at, reverse=True)

    def attach(self, store) -> int:
        """
        Subscribe to inserts, then load recent history.

        Subscribing first means nothing inserted during the load is missed;
        anything seen twice is dropped by id.

        Args:
            store: ReportStore

        Returns:
            Number of reports after the load
        """
        self.detach()
        self._unsubscribe = store.subscribe(self.on_insert)
        for report in store.query(self._cutoff()):
            self.on_insert(report)
        logger.info(f"Report feed loaded with {len(self._reports)} reports")
        return len(self._reports)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def on_insert(self, report: Report) -> bool:
        """
        Add a newly delivered report.

        Returns:
            False if the id was already present or the report is outside
            the lookback window
        """
        if report.id in self._reports or report.created_at < self._cutoff():
            return False
        self._reports[report.id] = report
        return True

    def apply_update(self, report: Report) -> None:
        """Replace a report after an organizer edit."""
        if report.id in self._reports:
            self._reports[report.id] = report

    def recent(self, limit: int = 50) -> List[Report]:
        return self.reports[:limit]
