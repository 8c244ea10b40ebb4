"""
app/validators/import_validator.py

Structural and semantic checks over a normalized file, plus fix application
and manual corrections.
"""

from __future__ import annotations

import logging
from statistics import median
from typing import Any

from app.domain.import_errors import FixNotAvailableError, InvalidCorrectionError, IssueNotFoundError
from app.domain.import_results import FileValidationResult
from app.domain.smart_import import (
    ContentKind,
    Fix,
    ImportStage,
    IssueCategory,
    ManualAction,
    NormalizedRecord,
    Severity,
    ValidationIssue,
    make_issue_id,
)
from app.mappers.content_rules import ContentRule, FieldType, get_rule
from app.mappers.field_normalizer import FieldNormalizer, normalize_header
from app.mappers.value_parsers import days_between

logger = logging.getLogger(__name__)

CLASSIFICATION_UNCERTAIN = "classification_uncertain"
DEFAULT_DATE_GAP_DAYS = 7
DEFAULT_HIGH_VALUE_THRESHOLD = 10_000_000
# A daily series counts as dense when its typical spacing is at most this many days.
DENSE_SERIES_MEDIAN_GAP = 2
MIN_SERIES_LENGTH = 3


class ImportValidator:
    """
    Runs the validation checks and applies caller-requested fixes.
    """

    def __init__(
        self,
        *,
        normalizer: FieldNormalizer | None = None,
        date_gap_days: int = DEFAULT_DATE_GAP_DAYS,
        high_value_threshold: int = DEFAULT_HIGH_VALUE_THRESHOLD,
    ) -> None:
        self._normalizer = normalizer or FieldNormalizer()
        self._date_gap_days = max(1, date_gap_days)
        self._high_value_threshold = max(1, high_value_threshold)

    @property
    def normalizer(self) -> FieldNormalizer:
        return self._normalizer

    def validate(self, result: FileValidationResult) -> FileValidationResult:
        """
        Recompute validation issues for a file result; raw rows are never touched.
        """

        result.stage = ImportStage.VALIDATING
        rule = get_rule(result.detected_type)
        issues: list[ValidationIssue] = []
        if rule is not None:
            issues.extend(self._check_required_columns(result, rule))
            if not rule.aggregate_by_date:
                issues.extend(self._check_duplicates(result, rule))
            if not rule.is_entity:
                issues.extend(self._check_date_gaps(result))
            issues.extend(self._check_values(result, rule))

        result.validation_issues = issues
        result.stage = ImportStage.AWAITING_PROCEED
        counts = result.severity_counts()
        logger.info(
            "Validated file=%r kind=%s errors=%d warnings=%d info=%d",
            result.source_file_name,
            result.detected_type.value,
            counts[Severity.ERROR.value],
            counts[Severity.WARNING.value],
            counts[Severity.INFO.value],
        )
        return result

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def _check_required_columns(self, result: FileValidationResult, rule: ContentRule) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for field_name in rule.required_fields:
            if field_name in result.column_mapping:
                continue
            issues.append(
                self._issue(
                    result,
                    "missing_required_column",
                    Severity.ERROR,
                    f"No column could be mapped to required field '{field_name}'.",
                    field_name=field_name,
                    manual_action=ManualAction.REMAP_COLUMN,
                )
            )
        return issues

    def _check_duplicates(self, result: FileValidationResult, rule: ContentRule) -> list[ValidationIssue]:
        by_key: dict[tuple[str, ...], list[tuple[int, NormalizedRecord]]] = {}
        for row_index in result.active_row_indices:
            record = result.row_records.get(row_index)
            if record is not None:
                by_key.setdefault(record.key, []).append((row_index, record))

        issues: list[ValidationIssue] = []
        for key, rows in by_key.items():
            if len(rows) < 2:
                continue
            # Keep the most populated row; the earliest wins a tie.
            keeper_index, _ = max(rows, key=lambda item: (item[1].populated_count(), -item[0]))
            for row_index, record in rows:
                if row_index == keeper_index:
                    continue
                issues.append(
                    self._issue(
                        result,
                        "duplicate_key",
                        Severity.WARNING,
                        f"Row {row_index + 1} repeats key '{key[-1]}' already present in row {keeper_index + 1}.",
                        row_index=row_index,
                        field_name=rule.key_field,
                        raw_value=key[-1],
                        fix=Fix.drop_row(f"Keep row {keeper_index + 1}, which has more populated fields."),
                    )
                )
        return issues

    def _check_date_gaps(self, result: FileValidationResult) -> list[ValidationIssue]:
        dates = sorted({record.date for record in result.normalized_data if record.date})
        if len(dates) < MIN_SERIES_LENGTH:
            return []
        gaps = [(start, end, days_between(start, end)) for start, end in zip(dates, dates[1:])]
        if median(gap for _, _, gap in gaps) > DENSE_SERIES_MEDIAN_GAP:
            return []

        issues: list[ValidationIssue] = []
        for start, end, gap in gaps:
            if gap <= self._date_gap_days:
                continue
            issues.append(
                self._issue(
                    result,
                    "date_gap",
                    Severity.INFO,
                    f"No data between {start} and {end} ({gap} days).",
                    field_name=f"{start}..{end}",
                )
            )
        return issues

    def _check_values(self, result: FileValidationResult, rule: ContentRule) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for row_index in result.active_row_indices:
            record = result.row_records.get(row_index)
            if record is None:
                continue
            for spec in rule.fields:
                value = record.fields.get(spec.name)
                if not isinstance(value, (int, float)) or spec.name in record.imputed_fields:
                    continue
                column = result.column_mapping.get(spec.name)
                if column is None:
                    continue

                if spec.is_counter and value < 0:
                    issues.append(
                        self._issue(
                            result,
                            "negative_value",
                            Severity.ERROR,
                            f"Row {row_index + 1}: '{spec.name}' cannot be negative ({value}).",
                            row_index=row_index,
                            field_name=spec.name,
                            raw_value=result.raw_data[row_index].get(column),
                            fix=Fix.set_value(column=column, value="0", description="Clamp to zero."),
                        )
                    )
                elif spec.is_rate and not 0 <= value <= 100:
                    bound = "100" if value > 100 else "0"
                    issues.append(
                        self._issue(
                            result,
                            "rate_out_of_range",
                            Severity.WARNING,
                            f"Row {row_index + 1}: rate '{spec.name}' is outside 0-100 ({value}).",
                            row_index=row_index,
                            field_name=spec.name,
                            raw_value=result.raw_data[row_index].get(column),
                            fix=Fix.set_value(column=column, value=bound, description=f"Clamp to {bound}."),
                        )
                    )
                elif (
                    not rule.is_entity
                    and spec.type == FieldType.INT
                    and value > self._high_value_threshold
                ):
                    issues.append(
                        self._issue(
                            result,
                            "high_value",
                            Severity.INFO,
                            f"Row {row_index + 1}: '{spec.name}' is unusually high for a daily value ({value}).",
                            row_index=row_index,
                            field_name=spec.name,
                            raw_value=result.raw_data[row_index].get(column),
                        )
                    )
        return issues

    # ------------------------------------------------------------------
    # Fixes and manual corrections
    # ------------------------------------------------------------------

    def apply_fix(self, result: FileValidationResult, issue_id: str) -> FileValidationResult:
        """
        Apply the deterministic fix of one issue, re-normalize that row only and re-validate.
        """

        issue = result.find_issue(issue_id)
        if issue is None:
            raise IssueNotFoundError(f"Issue '{issue_id}' not found in '{result.source_file_name}'.")
        if issue.fix is None or issue.row_index is None:
            raise FixNotAvailableError(f"Issue '{issue_id}' has no automatic fix.")

        row_index = issue.row_index
        corrected = issue.fix.apply(result.raw_data[row_index])
        if corrected is None:
            result.dropped_rows.add(row_index)
        else:
            result.raw_data[row_index] = corrected

        logger.info(
            "Applied fix file=%r issue=%s action=%s row=%d",
            result.source_file_name,
            issue_id,
            issue.fix.action,
            row_index,
        )
        self._normalizer.refresh_row(result, row_index)
        return self.validate(result)

    def edit_cell(
        self,
        result: FileValidationResult,
        *,
        row_index: int,
        column: str,
        value: str,
    ) -> FileValidationResult:
        if not 0 <= row_index < len(result.raw_data):
            raise InvalidCorrectionError(f"Row {row_index} does not exist.")
        if column not in result.headers:
            raise InvalidCorrectionError(f"Column '{column}' is not present in the file.")

        corrected = dict(result.raw_data[row_index])
        corrected[column] = value
        result.raw_data[row_index] = corrected
        result.dropped_rows.discard(row_index)
        self._normalizer.refresh_row(result, row_index)
        return self.validate(result)

    def remap_column(
        self,
        result: FileValidationResult,
        *,
        canonical_field: str,
        source_column: str,
    ) -> FileValidationResult:
        rule = get_rule(result.detected_type)
        if rule is None:
            raise InvalidCorrectionError("Set a content kind before remapping columns.")
        if rule.field(canonical_field) is None:
            raise InvalidCorrectionError(f"'{canonical_field}' is not a field of {rule.content_kind.value}.")
        lookup = {normalize_header(header): header for header in result.headers}
        matched = lookup.get(normalize_header(source_column))
        if matched is None:
            raise InvalidCorrectionError(f"Column '{source_column}' is not present in the file.")

        result.manual_mapping[canonical_field] = matched
        self._normalizer.populate(result)
        return self.validate(result)

    def override_content_kind(
        self,
        result: FileValidationResult,
        content_kind: ContentKind | str,
    ) -> FileValidationResult:
        try:
            kind = ContentKind(content_kind)
        except ValueError as exc:
            raise InvalidCorrectionError(f"Unknown content kind '{content_kind}'.") from exc
        rule = get_rule(kind)
        if rule is None or rule.platform != result.platform:
            raise InvalidCorrectionError(
                f"Content kind '{kind.value}' is not available for platform '{result.platform.value}'."
            )

        result.detected_type = kind
        result.confidence = 1.0
        result.kind_overridden = True
        result.manual_mapping = {}
        result.file_issues = [issue for issue in result.file_issues if issue.code != CLASSIFICATION_UNCERTAIN]
        self._normalizer.populate(result)
        return self.validate(result)

    @staticmethod
    def _issue(
        result: FileValidationResult,
        code: str,
        severity: Severity,
        message: str,
        **kwargs: Any,
    ) -> ValidationIssue:
        row_index = kwargs.pop("row_index", None)
        field_name = kwargs.pop("field_name", None)
        return ValidationIssue(
            issue_id=make_issue_id(code, row_index, field_name),
            severity=severity,
            category=IssueCategory.VALIDATION,
            code=code,
            message=message,
            row_index=row_index,
            field=field_name,
            source_file_name=result.source_file_name,
            **kwargs,
        )
