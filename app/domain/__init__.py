"""
app/domain package marker.
"""

from app.domain.import_errors import (
    AdvisoryUnavailableError,
    DecodeError,
    FixNotAvailableError,
    ImportBlockedError,
    ImportStateError,
    InvalidCorrectionError,
    IssueNotFoundError,
    SmartImportError,
)
from app.domain.import_results import FileValidationResult, ImportOutcome, ReconciliationResult
from app.domain.smart_import import ContentKind, ImportStage, NormalizedRecord, Platform, RawFile, ValidationIssue

__all__ = [
    "AdvisoryUnavailableError",
    "ContentKind",
    "DecodeError",
    "FileValidationResult",
    "FixNotAvailableError",
    "ImportBlockedError",
    "ImportOutcome",
    "ImportStage",
    "ImportStateError",
    "InvalidCorrectionError",
    "IssueNotFoundError",
    "NormalizedRecord",
    "Platform",
    "RawFile",
    "ReconciliationResult",
    "SmartImportError",
    "ValidationIssue",
]
