"""
CrowdShield - Shared exceptions
"""


class ReportStoreError(Exception):
    """Report could not be written or read."""


class ReportValidationError(ReportStoreError):
    """Report fields are invalid."""


class ReportNotFoundError(ReportStoreError):
    """No report with the given id."""


class BlobStorageError(Exception):
    """Blob could not be stored or located."""
