"""
Report store: durable append-only report collection with insert notifications.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Callable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from crowdshield.core.constants import ZONES, CATEGORY_IDS, URGENCY_LEVELS
from crowdshield.core.exceptions import (
    ReportStoreError,
    ReportValidationError,
    ReportNotFoundError,
)
from crowdshield.crowdsource.report import Report, ensure_utc
from .connection import DatabaseConnection
from .models import ReportRecord

logger = logging.getLogger(__name__)


INSERT_FIELDS = {
    "zone", "category", "text", "device_id", "created_at", "audio_url",
    "transcript", "urgency", "ai_category", "latitude", "longitude",
}
UPDATE_FIELDS = {"text", "created_at"}


InsertCallback = Callable[[Report], None]


class ReportStore:
    """
    Stores reports and notifies subscribers of every insert.

    Inserts are all-or-nothing: a failed commit leaves no partial row and
    triggers no notification.
    """

    def __init__(
        self,
        db: DatabaseConnection,
        text_max_length: int = 100,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize report store.

        Args:
            db: Database connection
            text_max_length: Maximum length of report text
            clock: Returns the current aware datetime
        """
        self.db = db
        self.text_max_length = text_max_length
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._subscribers: List[InsertCallback] = []

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _clean_text(self, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        if not isinstance(value, str):
            raise ReportValidationError("text must be a string")
        value = value.strip()
        if len(value) > self.text_max_length:
            raise ReportValidationError(
                f"text exceeds {self.text_max_length} characters"
            )
        return value or None

    def _validate_insert(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(fields) - INSERT_FIELDS
        if unknown:
            raise ReportValidationError(f"Unknown report fields: {sorted(unknown)}")

        zone = fields.get("zone")
        if zone not in ZONES:
            raise ReportValidationError(f"Invalid zone: {zone}")

        category = fields.get("category")
        if category not in CATEGORY_IDS:
            raise ReportValidationError(f"Invalid category: {category}")

        device_id = fields.get("device_id")
        if not device_id:
            raise ReportValidationError("device_id is required")

        urgency = fields.get("urgency")
        if urgency is not None and urgency not in URGENCY_LEVELS:
            raise ReportValidationError(f"Invalid urgency: {urgency}")

        ai_category = fields.get("ai_category")
        if ai_category is not None and ai_category not in CATEGORY_IDS:
            raise ReportValidationError(f"Invalid ai_category: {ai_category}")

        latitude = fields.get("latitude")
        longitude = fields.get("longitude")
        if latitude is not None and not -90 <= latitude <= 90:
            raise ReportValidationError(f"Invalid latitude: {latitude}")
        if longitude is not None and not -180 <= longitude <= 180:
            raise ReportValidationError(f"Invalid longitude: {longitude}")

        created_at = fields.get("created_at")
        cleaned = dict(fields)
        cleaned["text"] = self._clean_text(fields.get("text"))
        cleaned["created_at"] = ensure_utc(created_at) if created_at else self.clock()
        return cleaned

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def insert(self, fields: Dict[str, Any]) -> Report:
        """
        Insert a new report.

        Args:
            fields: Report fields without id

        Returns:
            Stored Report with assigned id and created_at
        """
        cleaned = self._validate_insert(fields)
        record = ReportRecord(id=str(uuid.uuid4()), **cleaned)

        try:
            with self.db.get_session() as session:
                session.add(record)
        except SQLAlchemyError as e:
            raise ReportStoreError(f"Failed to insert report: {e}") from e

        report = record.to_report()
        logger.info(f"Report {report.id} stored: {report.zone} / {report.category}")

        self._notify(report)
        return report

    def get(self, report_id: str) -> Optional[Report]:
        """Get report by ID."""
        try:
            with self.db.get_session() as session:
                record = session.get(ReportRecord, report_id)
                return record.to_report() if record else None
        except SQLAlchemyError as e:
            raise ReportStoreError(f"Failed to load report {report_id}: {e}") from e

    def query(self, since: datetime, limit: Optional[int] = None) -> List[Report]:
        """
        Reports created at or after `since`, newest first.

        Args:
            since: Lower bound on created_at
            limit: Maximum number of reports

        Returns:
            List of reports
        """
        stmt = (
            select(ReportRecord)
            .where(ReportRecord.created_at >= ensure_utc(since))
            .order_by(ReportRecord.created_at.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            with self.db.get_session() as session:
                return [r.to_report() for r in session.scalars(stmt)]
        except SQLAlchemyError as e:
            raise ReportStoreError(f"Failed to query reports: {e}") from e

    def update(self, report_id: str, **patch: Any) -> Report:
        """
        Organizer correction of an existing report.

        Only `text` and `created_at` may change.

        Args:
            report_id: Report ID
            **patch: New values for text and/or created_at

        Returns:
            Updated report
        """
        unknown = set(patch) - UPDATE_FIELDS
        if unknown:
            raise ReportValidationError(f"Fields cannot be edited: {sorted(unknown)}")

        values: Dict[str, Any] = {}
        if "text" in patch:
            values["text"] = self._clean_text(patch["text"])
        if "created_at" in patch:
            if not isinstance(patch["created_at"], datetime):
                raise ReportValidationError("created_at must be a datetime")
            values["created_at"] = ensure_utc(patch["created_at"])

        try:
            with self.db.get_session() as session:
                record = session.get(ReportRecord, report_id)
                if record is None:
                    raise ReportNotFoundError(f"Report not found: {report_id}")
                for key, value in values.items():
                    setattr(record, key, value)
                session.flush()
                report = record.to_report()
        except SQLAlchemyError as e:
            raise ReportStoreError(f"Failed to update report {report_id}: {e}") from e

        if values:
            logger.info(f"Report {report_id} edited: {sorted(values)}")
        return report

    # ------------------------------------------------------------------
    # Realtime
    # ------------------------------------------------------------------

    def subscribe(self, on_insert: InsertCallback) -> Callable[[], None]:
        """
        Register a callback for new reports.

        Returns:
            Function that removes the subscription
        """
        self._subscribers.append(on_insert)

        def unsubscribe() -> None:
            if on_insert in self._subscribers:
                self._subscribers.remove(on_insert)

        return unsubscribe

    def _notify(self, report: Report) -> None:
        for callback in list(self._subscribers):
            try:
                callback(report)
            except Exception:
                # The report is already committed; a broken listener must not undo that
                logger.exception(f"Insert subscriber failed for report {report.id}")
