"""
SQLAlchemy models for CrowdShield
"""

from datetime import datetime, timezone

from sqlalchemy import Column, Float, String, Text, DateTime, Index
from sqlalchemy.orm import declarative_base

from crowdshield.crowdsource.report import Report, ensure_utc

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReportRecord(Base):
    """
    Attendee danger report.

    Append-only apart from organizer corrections to text and created_at.
    """
    __tablename__ = "reports"

    id = Column(String(36), primary_key=True)

    zone = Column(String(50), nullable=False)
    category = Column(String(30), nullable=False)
    text = Column(Text, nullable=True)
    device_id = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    # Attachments
    audio_url = Column(Text, nullable=True)
    transcript = Column(Text, nullable=True)

    # Classification
    urgency = Column(String(10), nullable=True)
    ai_category = Column(String(30), nullable=True)

    # Location
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    __table_args__ = (
        Index("idx_report_created_at", created_at),
        Index("idx_report_zone_created_at", zone, created_at),
    )

    def __repr__(self):
        return f"<ReportRecord({self.id}, zone={self.zone}, category={self.category})>"

    def to_report(self) -> Report:
        """Convert to the Report dataclass."""
        return Report(
            id=self.id,
            zone=self.zone,
            category=self.category,
            device_id=self.device_id,
            # SQLite drops tzinfo on the way back
            created_at=ensure_utc(self.created_at),
            text=self.text,
            audio_url=self.audio_url,
            transcript=self.transcript,
            urgency=self.urgency,
            ai_category=self.ai_category,
            latitude=self.latitude,
            longitude=self.longitude,
        )
