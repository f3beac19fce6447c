"""
Tests for organizer dashboard views: zone levels, analytics and the live feed
"""
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

import sys
sys.path.insert(0, '.')

from crowdshield.core.constants import ZONES
from crowdshield.dashboard.analytics import compute_analytics
from crowdshield.dashboard.feed import ReportFeed
from crowdshield.dashboard.zone_status import (
    ZoneLevel,
    compute_zone_statuses,
    level_for_count,
    most_common,
)


class TestZoneStatus:
    """Test suite for zone level computation."""

    @pytest.mark.parametrize("devices,level", [
        (0, ZoneLevel.SAFE),
        (4, ZoneLevel.SAFE),
        (5, ZoneLevel.CAUTION),
        (9, ZoneLevel.CAUTION),
        (10, ZoneLevel.DANGER),
        (25, ZoneLevel.DANGER),
    ])
    def test_thresholds(self, devices, level):
        assert level_for_count(devices) == level

    def test_every_zone_reported_in_order(self, now):
        statuses = compute_zone_statuses([], now)
        assert [s.zone for s in statuses] == list(ZONES)
        assert all(s.level == ZoneLevel.SAFE for s in statuses)

    def test_distinct_devices_in_window(self, now, make_report):
        reports = [make_report(zone="Gate B", seconds_ago=10) for _ in range(5)]
        statuses = {s.zone: s for s in compute_zone_statuses(reports, now)}

        assert statuses["Gate B"].level == ZoneLevel.CAUTION
        assert statuses["Gate B"].device_count == 5
        assert statuses["Gate A"].level == ZoneLevel.SAFE

    def test_repeat_device_counts_once(self, now, make_report):
        reports = [
            make_report(zone="VIP", device_id="same-device", seconds_ago=i)
            for i in range(12)
        ]
        status = next(s for s in compute_zone_statuses(reports, now) if s.zone == "VIP")

        assert status.device_count == 1
        assert status.report_count == 12
        assert status.level == ZoneLevel.SAFE

    def test_old_reports_ignored(self, now, make_report):
        reports = [make_report(zone="Exit", seconds_ago=121) for _ in range(10)]
        reports += [make_report(zone="Exit", seconds_ago=120)]
        status = next(s for s in compute_zone_statuses(reports, now) if s.zone == "Exit")

        assert status.device_count == 0
        assert status.level == ZoneLevel.SAFE

    def test_danger_at_ten_devices(self, now, make_report):
        reports = [make_report(zone="Front Stage", seconds_ago=30) for _ in range(10)]
        status = next(s for s in compute_zone_statuses(reports, now) if s.zone == "Front Stage")
        assert status.level == ZoneLevel.DANGER

    def test_top_category(self, now, make_report):
        reports = [
            make_report(zone="Gate A", category="fight"),
            make_report(zone="Gate A", category="medical"),
            make_report(zone="Gate A", category="medical"),
        ]
        status = compute_zone_statuses(reports, now)[0]
        assert status.top_category == "medical"
        assert status.top_category_count == 2

    def test_most_common_tie_break(self):
        assert most_common(["medical", "fight", "medical", "fight"]) == ("fight", 2)
        assert most_common([]) is None


class TestAnalytics:
    """Test suite for today's statistics."""

    def test_excludes_yesterday(self, now, make_report):
        reports = [
            make_report(created_at=now.replace(hour=0, minute=0)),
            make_report(created_at=now.replace(hour=0, minute=0) - timedelta(minutes=1)),
            make_report(created_at=now - timedelta(days=1)),
        ]
        summary = compute_analytics(reports, now)
        assert summary.total_today == 1

    def test_top_category_and_zone(self, now, make_report):
        reports = [
            make_report(zone="VIP", category="fire"),
            make_report(zone="VIP", category="fire"),
            make_report(zone="Exit", category="medical"),
        ]
        summary = compute_analytics(reports, now)

        assert summary.total_today == 3
        assert summary.top_category == "fire"
        assert summary.top_category_count == 2
        assert summary.top_zone == "VIP"
        assert summary.top_zone_count == 2

    def test_tie_break_lexicographic(self, now, make_report):
        reports = [
            make_report(zone="VIP", category="medical"),
            make_report(zone="Exit", category="fight"),
        ]
        summary = compute_analytics(reports, now)
        assert summary.top_category == "fight"
        assert summary.top_zone == "Exit"

    def test_empty(self, now):
        summary = compute_analytics([], now)
        assert summary.total_today == 0
        assert summary.top_category is None
        assert summary.top_zone is None
        assert len(summary.hourly) == 12

    def test_hourly_histogram(self, now, make_report):
        """Test 12 buckets ending with the current hour."""
        reports = [
            make_report(created_at=now.replace(minute=5)),
            make_report(created_at=now.replace(minute=59)),
            make_report(created_at=now.replace(hour=13, minute=0)),
            make_report(created_at=now.replace(hour=1, minute=0)),
        ]
        summary = compute_analytics(reports, now)

        labels = [b.label for b in summary.hourly]
        assert labels[0] == "03:00"
        assert labels[-1] == "14:00"
        assert summary.hourly[-1].count == 2
        assert summary.hourly[-2].count == 1
        # 01:00 is today but outside the histogram
        assert sum(b.count for b in summary.hourly) == 3
        assert summary.total_today == 4

    def test_histogram_before_noon_skips_yesterday(self, make_report):
        now = datetime(2026, 1, 27, 5, 10, tzinfo=timezone.utc)
        reports = [make_report(created_at=datetime(2026, 1, 26, 22, 30, tzinfo=timezone.utc))]

        summary = compute_analytics(reports, now)

        assert summary.hourly[0].label == "18:00"
        assert sum(b.count for b in summary.hourly) == 0

    def test_local_calendar_day(self, make_report):
        """Test the day boundary follows the dashboard timezone."""
        tz = ZoneInfo("Europe/Amsterdam")
        now = datetime(2026, 1, 27, 0, 30, tzinfo=tz)
        # 23:15 UTC is 00:15 local on the 27th; 22:50 UTC is still the 26th locally
        reports = [
            make_report(created_at=datetime(2026, 1, 26, 23, 15, tzinfo=timezone.utc)),
            make_report(created_at=datetime(2026, 1, 26, 22, 50, tzinfo=timezone.utc)),
        ]

        summary = compute_analytics(reports, now)

        assert summary.total_today == 1
        assert summary.hourly[-1].label == "00:00"
        assert summary.hourly[-1].count == 1

    def test_hourly_buckets_on_dst_change(self, make_report):
        """Test buckets stay one real hour wide when clocks go back."""
        tz = ZoneInfo("Europe/Amsterdam")
        now = datetime(2026, 10, 25, 10, 30, tzinfo=timezone.utc).astimezone(tz)
        # 02:10 local twice: once in summer time, once after the clocks went back
        reports = [
            make_report(created_at=datetime(2026, 10, 25, 0, 10, tzinfo=timezone.utc)),
            make_report(created_at=datetime(2026, 10, 25, 1, 10, tzinfo=timezone.utc)),
        ]

        summary = compute_analytics(reports, now)

        starts = [b.start.astimezone(timezone.utc) for b in summary.hourly]
        assert all(b - a == timedelta(hours=1) for a, b in zip(starts, starts[1:]))
        assert starts[-1] == datetime(2026, 10, 25, 10, 0, tzinfo=timezone.utc)
        assert starts[0] == datetime(2026, 10, 24, 23, 0, tzinfo=timezone.utc)

        by_start = {s: b for s, b in zip(starts, summary.hourly)}
        first = by_start[datetime(2026, 10, 25, 0, 0, tzinfo=timezone.utc)]
        second = by_start[datetime(2026, 10, 25, 1, 0, tzinfo=timezone.utc)]
        assert (first.label, first.count) == ("02:00", 1)
        assert (second.label, second.count) == ("02:00", 1)
        assert summary.total_today == 2


class FakeStore:
    """Minimal store that can deliver an insert during the initial load."""

    def __init__(self, history, racing=None):
        self.history = history
        self.racing = racing
        self.callback = None

    def subscribe(self, callback):
        self.callback = callback
        return self.unsubscribe

    def unsubscribe(self):
        self.callback = None

    def query(self, since):
        if self.racing is not None:
            self.callback(self.racing)
        return [r for r in self.history if r.created_at >= since]


class TestReportFeed:
    """Test suite for the organizer feed."""

    def test_initial_load_and_lookback(self, now, make_report):
        fresh = make_report(seconds_ago=60)
        stale = make_report(created_at=now - timedelta(hours=25))
        feed = ReportFeed(lookback_hours=24, clock=lambda: now)

        assert feed.attach(FakeStore([fresh, stale])) == 1
        assert fresh.id in feed
        assert stale.id not in feed

    def test_insert_during_load_not_duplicated(self, now, make_report):
        report = make_report(seconds_ago=5)
        feed = ReportFeed(clock=lambda: now)

        feed.attach(FakeStore([report], racing=report))

        assert len(feed) == 1

    def test_duplicate_delivery_ignored(self, now, make_report):
        report = make_report()
        feed = ReportFeed(clock=lambda: now)

        assert feed.on_insert(report) is True
        assert feed.on_insert(report) is False
        assert len(feed) == 1

    def test_newest_first_and_limit(self, now, make_report):
        feed = ReportFeed(clock=lambda: now)
        for seconds in (30, 10, 20):
            feed.on_insert(make_report(seconds_ago=seconds))

        assert [int((now - r.created_at).total_seconds()) for r in feed.reports] == [10, 20, 30]
        assert len(feed.recent(limit=2)) == 2

    def test_detach_stops_updates(self, now, make_report):
        store = FakeStore([])
        feed = ReportFeed(clock=lambda: now)
        feed.attach(store)

        feed.detach()

        assert store.callback is None

    def test_apply_update(self, now, make_report):
        report = make_report(text="old")
        feed = ReportFeed(clock=lambda: now)
        feed.on_insert(report)

        edited = make_report(text="new")
        edited.id = report.id
        feed.apply_update(edited)

        assert feed.reports[0].text == "new"

    def test_with_real_store(self, report_store):
        """Test the feed picks up history and live inserts from the store."""
        first = report_store.insert({"zone": "Gate A", "category": "fight", "device_id": "d1"})
        feed = ReportFeed()
        feed.attach(report_store)

        second = report_store.insert({"zone": "Gate B", "category": "fire", "device_id": "d2"})

        assert [r.id for r in feed.reports] == [second.id, first.id]

    def test_old_reports_dropped_as_time_passes(self, now, make_report):
        """Test a long-running feed only keeps the lookback window."""
        current = {"time": now}
        feed = ReportFeed(lookback_hours=24, clock=lambda: current["time"])
        for i in range(1000):
            feed.on_insert(make_report(seconds_ago=i))
        assert len(feed) == 1000

        current["time"] = now + timedelta(days=30)
        fresh = make_report(created_at=current["time"])
        feed.on_insert(fresh)

        assert len(feed) == 1
        assert [r.id for r in feed.reports] == [fresh.id]

    def test_stale_insert_rejected(self, now, make_report):
        feed = ReportFeed(lookback_hours=24, clock=lambda: now)

        assert feed.on_insert(make_report(created_at=now - timedelta(hours=25))) is False
        assert len(feed) == 0

    def test_prune_returns_removed_count(self, now, make_report):
        current = {"time": now}
        feed = ReportFeed(lookback_hours=1, clock=lambda: current["time"])
        feed.on_insert(make_report(seconds_ago=1800))
        feed.on_insert(make_report(seconds_ago=60))

        current["time"] = now + timedelta(minutes=45)

        assert feed.prune() == 1
        assert len(feed) == 1
