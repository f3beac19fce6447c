"""
Incident report submitted by an attendee.
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Optional, Dict, Any


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class Report:
    """
    Danger report as stored.

    `category` is what the reporter chose; `ai_category` is what the
    classifier (or the keyword fallback) derived. Both are kept.
    """
    id: str
    zone: str
    category: str
    device_id: str
    created_at: datetime

    text: Optional[str] = None
    audio_url: Optional[str] = None
    transcript: Optional[str] = None
    urgency: Optional[str] = None
    ai_category: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def description(self) -> Optional[str]:
        """Reporter text when present, otherwise the transcript."""
        return self.text or self.transcript

    @property
    def device_label(self) -> str:
        """Shortened device id for display."""
        return f"{self.device_id[:8]}..."

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Report":
        """Create Report from dictionary."""
        created_at = data["created_at"]
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
        return cls(
            id=str(data["id"]),
            zone=data["zone"],
            category=data["category"],
            device_id=data["device_id"],
            created_at=ensure_utc(created_at),
            text=data.get("text"),
            audio_url=data.get("audio_url"),
            transcript=data.get("transcript"),
            urgency=data.get("urgency"),
            ai_category=data.get("ai_category"),
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
        )
