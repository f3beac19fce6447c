"""
CrowdShield - Database Module
Report persistence with SQLAlchemy.
"""

from crowdshield.database.models import Base, ReportRecord
from crowdshield.database.connection import DatabaseConnection, init_db
from crowdshield.database.store import (
    ReportStore,
    ReportStoreError,
    ReportValidationError,
    ReportNotFoundError,
)

__all__ = [
    "Base",
    "ReportRecord",
    "DatabaseConnection",
    "init_db",
    "ReportStore",
    "ReportStoreError",
    "ReportValidationError",
    "ReportNotFoundError",
]
