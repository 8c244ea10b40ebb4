"""
app/services/reconciler.py

Merges normalized records across files into one authoritative record per key.
"""

from __future__ import annotations

import logging
from typing import Any, MutableMapping, Sequence

from app.domain.import_results import FileValidationResult, ReconciliationResult
from app.domain.smart_import import (
    ContentKind,
    DateRange,
    IssueCategory,
    NormalizedRecord,
    Severity,
    ValidationIssue,
    make_issue_id,
)

logger = logging.getLogger(__name__)

# (source file name, source row index) of the value currently held by a field.
FieldOrigin = tuple[str | None, int | None]


def _origin_of(record: NormalizedRecord) -> FieldOrigin:
    return record.source_file_name, record.source_rows[0] if record.source_rows else None


class Reconciler:
    """
    Latest upload wins on populated fields; a populated value is never replaced by an empty one.
    """

    def reconcile(self, results: Sequence[FileValidationResult]) -> ReconciliationResult:
        merged: dict[tuple[str, ...], NormalizedRecord] = {}
        origins: dict[tuple[str, ...], dict[str, FieldOrigin]] = {}
        conflicts: list[ValidationIssue] = []
        skipped: list[str] = []
        by_file = {result.source_file_name: result for result in results}

        for result in results:
            result.reconciliation_issues = []

        for result in sorted(results, key=lambda item: item.upload_index):
            if result.detected_type == ContentKind.UNKNOWN or result.has_blocking_errors:
                skipped.append(result.source_file_name)
                logger.warning(
                    "Skipping file=%r during reconciliation kind=%s blocking=%d",
                    result.source_file_name,
                    result.detected_type.value,
                    len(result.blocking_issues),
                )
                continue

            for record in result.normalized_data:
                existing = merged.get(record.key)
                if existing is None:
                    merged[record.key] = record
                    origins[record.key] = {name: _origin_of(record) for name in record.fields}
                    continue
                combined, record_conflicts = self.merge(existing, record, origins=origins[record.key])
                merged[record.key] = combined
                conflicts.extend(record_conflicts)

        for issue in conflicts:
            owner = by_file.get(issue.source_file_name or "")
            if owner is not None:
                owner.reconciliation_issues.append(issue)

        records = list(merged.values())
        daily_dates = sorted(record.date for record in records if not record.is_entity and record.date)
        date_range = DateRange(start=daily_dates[0], end=daily_dates[-1]) if daily_dates else None
        content_kinds = frozenset(record.content_kind for record in records)

        logger.info(
            "Reconciled files=%d records=%d conflicts=%d skipped=%d",
            len(results),
            len(records),
            len(conflicts),
            len(skipped),
        )
        return ReconciliationResult(
            records=records,
            conflicts=conflicts,
            date_range=date_range,
            content_kinds=content_kinds,
            skipped_files=tuple(skipped),
        )

    def merge(
        self,
        existing: NormalizedRecord,
        incoming: NormalizedRecord,
        *,
        origins: MutableMapping[str, FieldOrigin] | None = None,
    ) -> tuple[NormalizedRecord, list[ValidationIssue]]:
        """
        Merge ``incoming`` (later upload) into ``existing`` field by field.

        ``origins`` tracks which file and row supplied each field of ``existing``
        and is updated in place; conflicts are attributed to the overridden origin.
        """

        if origins is None:
            origins = {name: _origin_of(existing) for name in existing.fields}
        fields: dict[str, Any] = dict(existing.fields)
        imputed = set(existing.imputed_fields)
        conflicts: list[ValidationIssue] = []
        incoming_origin = _origin_of(incoming)

        for name, value in incoming.fields.items():
            if incoming.is_populated(name):
                if existing.is_populated(name) and existing.fields.get(name) != value:
                    overridden = origins.get(name, _origin_of(existing))
                    conflicts.append(self._conflict(existing, incoming, name, value, overridden))
                fields[name] = value
                imputed.discard(name)
                origins[name] = incoming_origin
            elif name not in fields:
                fields[name] = value
                origins[name] = incoming_origin
                if name in incoming.imputed_fields:
                    imputed.add(name)

        extra = {**existing.extra, **incoming.extra}
        combined = existing.with_fields(
            fields=fields,
            extra=extra,
            imputed_fields=frozenset(imputed),
            source_file_name=incoming.source_file_name,
            upload_index=incoming.upload_index,
            source_rows=incoming.source_rows,
        )
        return combined, conflicts

    @staticmethod
    def _conflict(
        existing: NormalizedRecord,
        incoming: NormalizedRecord,
        field_name: str,
        new_value: Any,
        overridden: FieldOrigin,
    ) -> ValidationIssue:
        key_label = existing.external_id or existing.date or "record"
        file_name, row_index = overridden
        return ValidationIssue(
            issue_id=make_issue_id("reconciliation_conflict", row_index, f"{field_name}@{key_label}"),
            severity=Severity.INFO,
            category=IssueCategory.RECONCILIATION,
            code="reconciliation_conflict",
            message=(
                f"'{field_name}' for {key_label}: value {existing.fields.get(field_name)!r} from "
                f"'{file_name}' was overridden by {new_value!r} from "
                f"'{incoming.source_file_name}'."
            ),
            row_index=row_index,
            field=field_name,
            raw_value=str(existing.fields.get(field_name)),
            source_file_name=file_name,
        )
