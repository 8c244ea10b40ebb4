"""
app/schemas/smart_import.py

Request and response schemas for smart import endpoints.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from app.domain.import_results import FileValidationResult, ImportOutcome
from app.domain.smart_import import ManualAction, ValidationIssue


class FixResponse(BaseModel):
    action: str
    description: str
    column: str | None = None
    value: str | None = None


class ValidationIssueResponse(BaseModel):
    """
    API response model for one validation issue.
    """

    issue_id: str
    severity: str
    category: str
    code: str
    message: str
    row_index: int | None = None
    field: str | None = None
    raw_value: str | None = None
    fix: FixResponse | None = None
    manual_action: str | None = None
    source_file_name: str | None = None

    @classmethod
    def from_issue(cls, issue: ValidationIssue) -> "ValidationIssueResponse":
        return cls.model_validate(issue.to_dict())


class FileValidationResponse(BaseModel):
    """
    API response model for one validated file.
    """

    source_file_name: str
    platform: str
    detected_type: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    stage: str
    total_rows: int = Field(..., ge=0)
    valid_rows: int = Field(..., ge=0)
    dropped_rows: list[int] = Field(default_factory=list)
    column_mapping: dict[str, str] = Field(default_factory=dict)
    issue_counts: dict[str, int] = Field(default_factory=dict)
    can_proceed: bool
    issues: list[ValidationIssueResponse] = Field(default_factory=list)
    preview: list[dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: FileValidationResult, *, preview_rows: int = 5) -> "FileValidationResponse":
        summary = result.to_summary()
        return cls(
            **summary,
            stage=result.stage.value,
            column_mapping=dict(result.column_mapping),
            issues=[ValidationIssueResponse.from_issue(issue) for issue in result.issues],
            preview=[
                {"date": record.date, "external_id": record.external_id, **record.fields}
                for record in result.normalized_data[:preview_rows]
            ],
        )


class ValidationBatchResponse(BaseModel):
    files: list[FileValidationResponse]
    can_proceed: bool


class ImportSessionResponse(BaseModel):
    session_id: str
    client_id: str
    platform: str
    stage: str
    created_at: str
    can_proceed: bool
    files: list[FileValidationResponse] = Field(default_factory=list)


class CorrectionRequest(BaseModel):
    """
    Manual correction for one file of a session.
    """

    file_name: str
    action: ManualAction
    row_index: int | None = Field(default=None, ge=0)
    column: str | None = None
    value: str | None = None
    canonical_field: str | None = None
    source_column: str | None = None
    content_kind: str | None = None

    def params(self) -> dict[str, Any]:
        return self.model_dump(exclude={"file_name", "action"}, exclude_none=True)


class CommitGroupResponse(BaseModel):
    content_kind: str
    target: str
    succeeded: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    error: str | None = None


class AdvisoryResponse(BaseModel):
    status: str
    summary: str
    details: list[str] = Field(default_factory=list)
    issues: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    ai_analyzed: bool = False


class ImportOutcomeResponse(BaseModel):
    """
    API response model for a committed import.
    """

    status: str
    files_processed: int = Field(..., ge=0)
    records_imported: int = Field(..., ge=0)
    records_failed: int = Field(..., ge=0)
    date_range: dict[str, str] | None = None
    content_kinds: list[str] = Field(default_factory=list)
    commit_groups: list[CommitGroupResponse] = Field(default_factory=list)
    conflicts: list[ValidationIssueResponse] = Field(default_factory=list)
    advisory: AdvisoryResponse | None = None

    @classmethod
    def from_outcome(cls, outcome: ImportOutcome) -> "ImportOutcomeResponse":
        return cls(
            status=outcome.status,
            files_processed=outcome.files_processed,
            records_imported=outcome.records_imported,
            records_failed=outcome.records_failed,
            date_range=(
                {"start": outcome.date_range.start, "end": outcome.date_range.end}
                if outcome.date_range
                else None
            ),
            content_kinds=sorted(kind.value for kind in outcome.content_kinds),
            commit_groups=[
                CommitGroupResponse(
                    content_kind=group.content_kind.value,
                    target=group.target,
                    succeeded=group.succeeded,
                    failed=group.failed,
                    error=group.error,
                )
                for group in outcome.commit_groups
            ],
            conflicts=[ValidationIssueResponse.from_issue(issue) for issue in outcome.conflicts],
            advisory=(
                AdvisoryResponse.model_validate(outcome.advisory.model_dump())
                if outcome.advisory is not None
                else None
            ),
        )


class ImportHistoryResponse(BaseModel):
    id: str
    client_id: str
    platform: str
    file_names: list[str] = Field(default_factory=list)
    records_imported: int = Field(..., ge=0)
    records_failed: int = Field(..., ge=0)
    status: str
    content_kinds: list[str] = Field(default_factory=list)
    date_start: str | None = None
    date_end: str | None = None
    metadata: dict[str, Any] | None = None
    created_at: str | None = None
