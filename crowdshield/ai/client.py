"""
Client for the incident classification endpoint.

The endpoint accepts `{text?, audio_url?}` and answers
`{urgency?, ai_category?, transcript?, summary?}`. Every failure mode
(no URL configured, transport error, timeout, non-200, malformed body) is
reported as "no result" so the caller can fall back to the keyword
heuristic. Requests are single-shot; there is no retry.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any

import httpx

from crowdshield.core.constants import CATEGORY_IDS, URGENCY_LEVELS

logger = logging.getLogger(__name__)


@dataclass
class ClassificationResult:
    """Suggestion returned by the classification endpoint."""
    urgency: Optional[str] = None
    ai_category: Optional[str] = None
    transcript: Optional[str] = None
    summary: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "ClassificationResult":
        """Build from a response body, dropping values outside the enums."""
        urgency = data.get("urgency")
        ai_category = data.get("ai_category")
        transcript = data.get("transcript")
        summary = data.get("summary")
        return cls(
            urgency=urgency if urgency in URGENCY_LEVELS else None,
            ai_category=ai_category if ai_category in CATEGORY_IDS else None,
            transcript=transcript if isinstance(transcript, str) and transcript.strip() else None,
            summary=summary if isinstance(summary, str) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "urgency": self.urgency,
            "ai_category": self.ai_category,
            "transcript": self.transcript,
            "summary": self.summary,
        }


class ClassificationClient:
    """
    Thin client for a configured analysis endpoint.

    Usage:
        client = ClassificationClient(url="https://.../analyze")
        result = client.classify(text="someone collapsed near the bar")
    """

    def __init__(
        self,
        url: Optional[str],
        api_key: Optional[str] = None,
        timeout: float = 10.0
    ):
        """
        Initialize classification client.

        Args:
            url: Analysis endpoint URL; None disables classification
            api_key: Bearer token sent with each request
            timeout: HTTP request timeout in seconds
        """
        self.url = url
        self.api_key = api_key
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.url)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
            headers["apikey"] = self.api_key
        return headers

    def classify(
        self,
        text: Optional[str] = None,
        audio_url: Optional[str] = None
    ) -> Optional[ClassificationResult]:
        """
        Ask the endpoint to classify a report.

        Args:
            text: Reporter text or live transcript
            audio_url: Public URL of an uploaded recording

        Returns:
            ClassificationResult, or None when unavailable
        """
        if not self.url:
            return None

        payload = {"text": text, "audio_url": audio_url}

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self.url, json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            logger.warning(f"Classification request failed: {e}")
            return None

        if response.status_code != 200:
            logger.warning(f"Classification endpoint returned {response.status_code}")
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning("Classification endpoint returned invalid JSON")
            return None

        if not isinstance(data, dict):
            logger.warning("Classification endpoint returned a non-object body")
            return None

        return ClassificationResult.from_payload(data)
