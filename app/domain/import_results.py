"""
app/domain/import_results.py

Mutable per-file results and the end-of-import outcome.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from app.domain.smart_import import (
    ContentKind,
    DateRange,
    GroupCommitResult,
    ImportStage,
    NormalizedRecord,
    Platform,
    RawRow,
    Severity,
    ValidationIssue,
)

if TYPE_CHECKING:
    from llm_synthesis.schema import AdvisoryReport


@dataclass
class FileValidationResult:
    """
    Everything the pipeline knows about one uploaded file.

    Each worker owns its result until reconciliation. ``raw_data`` keeps its
    length for the whole lifecycle so row indices stay stable; rows removed by
    a fix are tracked in ``dropped_rows``.
    """

    source_file_name: str
    platform: Platform
    client_id: str
    upload_index: int
    detected_type: ContentKind = ContentKind.UNKNOWN
    confidence: float = 0.0
    headers: list[str] = field(default_factory=list)
    preamble: tuple[str, ...] = ()
    raw_data: list[RawRow] = field(default_factory=list)
    normalized_data: list[NormalizedRecord] = field(default_factory=list)
    column_mapping: dict[str, str] = field(default_factory=dict)
    manual_mapping: dict[str, str] = field(default_factory=dict)
    kind_overridden: bool = False
    dropped_rows: set[int] = field(default_factory=set)
    row_records: dict[int, NormalizedRecord | None] = field(default_factory=dict)
    row_issues: dict[int, list[ValidationIssue]] = field(default_factory=dict)
    file_issues: list[ValidationIssue] = field(default_factory=list)
    validation_issues: list[ValidationIssue] = field(default_factory=list)
    reconciliation_issues: list[ValidationIssue] = field(default_factory=list)
    stage: ImportStage = ImportStage.PENDING

    @property
    def issues(self) -> list[ValidationIssue]:
        collected: list[ValidationIssue] = list(self.file_issues)
        for row_index in sorted(self.row_issues):
            collected.extend(self.row_issues[row_index])
        collected.extend(self.validation_issues)
        collected.extend(self.reconciliation_issues)
        # Issues tied to a dropped row no longer apply.
        return [issue for issue in collected if issue.row_index not in self.dropped_rows]

    @property
    def blocking_issues(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.is_blocking]

    @property
    def has_blocking_errors(self) -> bool:
        return any(issue.is_blocking for issue in self.issues)

    @property
    def active_row_indices(self) -> list[int]:
        return [index for index in range(len(self.raw_data)) if index not in self.dropped_rows]

    @property
    def is_importable(self) -> bool:
        return self.detected_type != ContentKind.UNKNOWN and not self.has_blocking_errors

    def find_issue(self, issue_id: str) -> ValidationIssue | None:
        for issue in self.issues:
            if issue.issue_id == issue_id:
                return issue
        return None

    def severity_counts(self) -> dict[str, int]:
        counts = {severity.value: 0 for severity in Severity}
        for issue in self.issues:
            counts[issue.severity.value] += 1
        return counts

    def to_summary(self) -> dict[str, Any]:
        return {
            "source_file_name": self.source_file_name,
            "platform": self.platform.value,
            "detected_type": self.detected_type.value,
            "confidence": round(self.confidence, 4),
            "total_rows": len(self.raw_data),
            "valid_rows": sum(1 for record in self.normalized_data if record.content_kind == self.detected_type),
            "dropped_rows": sorted(self.dropped_rows),
            "issue_counts": self.severity_counts(),
            "can_proceed": not self.has_blocking_errors,
        }


@dataclass(frozen=True)
class ReconciliationResult:
    """
    Merged records plus the summary used downstream by the advisory check.
    """

    records: list[NormalizedRecord]
    conflicts: list[ValidationIssue]
    date_range: DateRange | None
    content_kinds: frozenset[ContentKind]
    skipped_files: tuple[str, ...] = ()


@dataclass
class ImportOutcome:
    """
    Final result of one committed import.
    """

    files_processed: int
    records_imported: int
    date_range: DateRange | None
    content_kinds: frozenset[ContentKind]
    per_file_results: list[FileValidationResult]
    commit_groups: list[GroupCommitResult] = field(default_factory=list)
    conflicts: list[ValidationIssue] = field(default_factory=list)
    advisory: "AdvisoryReport | None" = None
    stage: ImportStage = ImportStage.DONE

    @property
    def failed_groups(self) -> list[GroupCommitResult]:
        return [group for group in self.commit_groups if group.has_failures]

    @property
    def records_failed(self) -> int:
        return sum(group.failed for group in self.commit_groups)

    @property
    def status(self) -> str:
        if not self.commit_groups:
            return "empty"
        if not self.failed_groups:
            return "completed"
        if self.records_imported > 0:
            return "partial"
        return "failed"
