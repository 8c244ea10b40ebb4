"""
app/domain/import_errors.py

Exceptions raised by the smart import pipeline.

Problems below ``error`` severity are accumulated as issues and never raised.
"""

from __future__ import annotations

from typing import Any, Sequence

from app.domain.smart_import import ImportStage, ValidationIssue


class SmartImportError(Exception):
    """Base exception for smart import failures."""


class DecodeError(SmartImportError, ValueError):
    """
    Raised when a file decodes to zero rows or zero columns.
    """

    def __init__(self, message: str, *, file_name: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.file_name = file_name


class ImportBlockedError(SmartImportError):
    """
    Raised when proceeding while error-severity issues remain unresolved.
    """

    def __init__(self, *, message: str, blocking: Sequence[ValidationIssue]) -> None:
        super().__init__(message)
        self.message = message
        self.blocking = tuple(blocking)

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "blocking_issues": [issue.to_dict() for issue in self.blocking],
        }


class ImportStateError(SmartImportError):
    """
    Raised on an illegal import stage transition.
    """

    def __init__(self, *, current: ImportStage, requested: ImportStage) -> None:
        super().__init__(
            f"Cannot move import from '{current.value}' to '{requested.value}'."
        )
        self.current = current
        self.requested = requested


class IssueNotFoundError(SmartImportError, LookupError):
    """Raised when a fix is requested for an unknown issue id."""


class FixNotAvailableError(SmartImportError):
    """Raised when the requested issue carries no deterministic fix."""


class InvalidCorrectionError(SmartImportError, ValueError):
    """Raised when a manual correction references a column, row or kind that does not exist."""


class AdvisoryUnavailableError(SmartImportError):
    """Raised by advisory checkers when the external analysis cannot be produced."""
