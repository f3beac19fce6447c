"""
Keyword fallback for incident classification.

Used on the device when the classification endpoint is missing or fails.
"""

from dataclasses import dataclass
from typing import Optional

from crowdshield.core.constants import (
    CATEGORY_KEYWORDS,
    HIGH_URGENCY_KEYWORDS,
    MEDIUM_URGENCY_KEYWORDS,
    Category,
    Urgency,
)


@dataclass
class KeywordClassification:
    """Urgency and category guessed from keywords."""
    urgency: str
    ai_category: str
    matched_keyword: Optional[str] = None


def classify_keywords(text: Optional[str]) -> KeywordClassification:
    """
    Classify free text by case-insensitive substring matches.

    Text without any known keyword yields the neutral low/other pair, the same
    default the analyze endpoint falls back to.

    Args:
        text: Reporter text or transcript

    Returns:
        KeywordClassification
    """
    text_lower = (text or "").lower()

    ai_category = Category.OTHER.value
    matched = None
    for category, keywords in CATEGORY_KEYWORDS:
        hit = next((kw for kw in keywords if kw in text_lower), None)
        if hit:
            ai_category = category
            matched = hit
            break

    if any(kw in text_lower for kw in HIGH_URGENCY_KEYWORDS):
        urgency = Urgency.HIGH.value
    elif any(kw in text_lower for kw in MEDIUM_URGENCY_KEYWORDS):
        urgency = Urgency.MEDIUM.value
    else:
        urgency = Urgency.LOW.value

    return KeywordClassification(
        urgency=urgency,
        ai_category=ai_category,
        matched_keyword=matched,
    )
