"""
CrowdShield - AI Module
Incident classification: endpoint client, keyword fallback, and the
server-side gateway analyzer.
"""

from crowdshield.ai.client import ClassificationClient, ClassificationResult
from crowdshield.ai.heuristics import KeywordClassification, classify_keywords
from crowdshield.ai.analyzer import IncidentAnalyzer, default_analysis

__all__ = [
    "ClassificationClient",
    "ClassificationResult",
    "KeywordClassification",
    "classify_keywords",
    "IncidentAnalyzer",
    "default_analysis",
]
