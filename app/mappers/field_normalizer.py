"""
app/mappers/field_normalizer.py

Maps raw columns onto canonical fields per ContentKind and types their values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from difflib import SequenceMatcher
from typing import Any, Mapping, Sequence

from app.domain.import_errors import InvalidCorrectionError
from app.domain.import_results import FileValidationResult
from app.domain.smart_import import (
    ContentKind,
    Fix,
    IssueCategory,
    ManualAction,
    NormalizedRecord,
    RawRow,
    Severity,
    ValidationIssue,
    make_issue_id,
)
from app.mappers.content_rules import ContentRule, FieldSpec, FieldType, get_rule
from app.mappers.value_parsers import (
    fold_accents,
    parse_currency,
    parse_date,
    parse_duration,
    parse_number,
    parse_percent,
)

logger = logging.getLogger(__name__)

DEFAULT_FUZZY_THRESHOLD = 0.84
# Labels of export summary rows; an entity named "Total Fitness" is not one.
SUMMARY_LABELS = frozenset({"total", "totais", "total geral", "grand total"})
SUMMARY_DATE_PREFIX = "total"


def is_summary_key(key_raw: str, *, entity: bool) -> bool:
    """
    Whether a key cell marks an export summary row.

    Date keys starting with "total" are summaries ("Total", "Totais do periodo");
    entity names must equal a summary label exactly.
    """

    label = " ".join(fold_accents(key_raw).lower().split())
    if entity:
        return label in SUMMARY_LABELS
    return label.startswith(SUMMARY_DATE_PREFIX)


def normalize_header(header: str) -> str:
    """
    Normalize a column name for flexible matching.
    """

    return "".join(ch for ch in fold_accents(header).strip().lower() if ch.isalnum())


@dataclass(frozen=True)
class ColumnResolution:
    """
    Resolved canonical-to-source column mapping for one file.
    """

    canonical_to_source: dict[str, str]
    match_strategies: dict[str, str]
    missing_required: tuple[str, ...] = ()


@dataclass
class NormalizationOutput:
    records: list[NormalizedRecord]
    issues: list[ValidationIssue]
    resolution: ColumnResolution
    row_records: dict[int, NormalizedRecord | None] = field(default_factory=dict)
    row_issues: dict[int, list[ValidationIssue]] = field(default_factory=dict)


class FieldNormalizer:
    """
    Generic normalizer driven by the ContentRule table.
    """

    def __init__(self, *, fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD) -> None:
        self._fuzzy_threshold = max(0.0, min(1.0, fuzzy_threshold))

    # ------------------------------------------------------------------
    # Column resolution
    # ------------------------------------------------------------------

    def resolve_columns(
        self,
        headers: Sequence[str],
        rule: ContentRule,
        *,
        manual_mapping: Mapping[str, str] | None = None,
    ) -> ColumnResolution:
        """
        Resolve canonical fields to source headers: overrides, then exact/alias, then fuzzy.
        """

        source_headers = tuple(header for header in headers if header and header.strip())
        normalized_header_lookup: dict[str, str] = {}
        for header in source_headers:
            key = normalize_header(header)
            if key and key not in normalized_header_lookup:
                normalized_header_lookup[key] = header

        resolved: dict[str, str] = {}
        strategies: dict[str, str] = {}

        for canonical_field, source_column in (manual_mapping or {}).items():
            if rule.field(canonical_field) is None:
                raise InvalidCorrectionError(
                    f"'{canonical_field}' is not a field of {rule.content_kind.value}."
                )
            matched_source = normalized_header_lookup.get(normalize_header(source_column))
            if matched_source is None:
                raise InvalidCorrectionError(f"Column '{source_column}' is not present in the file.")
            resolved[canonical_field] = matched_source
            strategies[canonical_field] = "override"

        used_headers = set(resolved.values())
        # Exact and alias matches for every field first so a fuzzy guess never
        # steals a column another field names exactly.
        for spec in rule.fields:
            if spec.name in resolved:
                continue
            exact = self._find_exact_or_alias_match(spec, normalized_header_lookup, used_headers)
            if exact is not None:
                resolved[spec.name] = exact
                strategies[spec.name] = "exact_or_alias"
                used_headers.add(exact)

        for spec in rule.fields:
            if spec.name in resolved:
                continue
            fuzzy_match = self._find_best_fuzzy_match(spec, normalized_header_lookup, used_headers)
            if fuzzy_match is not None:
                resolved[spec.name] = fuzzy_match
                strategies[spec.name] = "fuzzy"
                used_headers.add(fuzzy_match)

        missing = tuple(name for name in rule.required_fields if name not in resolved)
        return ColumnResolution(
            canonical_to_source=resolved,
            match_strategies=strategies,
            missing_required=missing,
        )

    @staticmethod
    def _find_exact_or_alias_match(
        spec: FieldSpec,
        normalized_header_lookup: Mapping[str, str],
        used_headers: set[str],
    ) -> str | None:
        for candidate in (spec.name, *spec.aliases):
            match = normalized_header_lookup.get(normalize_header(candidate))
            if match and match not in used_headers:
                return match
        return None

    def _find_best_fuzzy_match(
        self,
        spec: FieldSpec,
        normalized_header_lookup: Mapping[str, str],
        used_headers: set[str],
    ) -> str | None:
        if not spec.fuzzy:
            return None
        normalized_candidates = [
            normalize_header(item) for item in (spec.name, *spec.aliases) if normalize_header(item)
        ]
        best_header: str | None = None
        best_score = 0.0
        for header_norm, header_raw in normalized_header_lookup.items():
            if header_raw in used_headers:
                continue
            for candidate in normalized_candidates:
                score = SequenceMatcher(None, header_norm, candidate).ratio()
                if len(candidate) >= 4 and (header_norm in candidate or candidate in header_norm):
                    score = max(score, 0.9)
                if score > best_score:
                    best_score = score
                    best_header = header_raw

        if best_header is not None and best_score >= self._fuzzy_threshold:
            return best_header
        return None

    # ------------------------------------------------------------------
    # Row normalization
    # ------------------------------------------------------------------

    def normalize(
        self,
        raw_rows: Sequence[RawRow],
        content_kind: ContentKind,
        *,
        client_id: str,
        headers: Sequence[str] | None = None,
        source_file_name: str | None = None,
        upload_index: int = 0,
        manual_mapping: Mapping[str, str] | None = None,
    ) -> NormalizationOutput:
        """
        Normalize every row of a file. Rows that fail are excluded and reported.
        """

        rule = get_rule(content_kind)
        if rule is None:
            raise InvalidCorrectionError(f"No normalization rule for content kind '{content_kind.value}'.")

        if headers is None:
            headers = list(raw_rows[0].keys()) if raw_rows else []
        resolution = self.resolve_columns(headers, rule, manual_mapping=manual_mapping)

        row_records: dict[int, NormalizedRecord | None] = {}
        row_issues: dict[int, list[ValidationIssue]] = {}
        for row_index, raw_row in enumerate(raw_rows):
            record, issues = self.normalize_row(
                raw_row,
                row_index=row_index,
                rule=rule,
                mapping=resolution.canonical_to_source,
                client_id=client_id,
                source_file_name=source_file_name,
                upload_index=upload_index,
            )
            row_records[row_index] = record
            if issues:
                row_issues[row_index] = issues

        records = self.assemble(rule, row_records)
        all_issues = [issue for index in sorted(row_issues) for issue in row_issues[index]]
        return NormalizationOutput(
            records=records,
            issues=all_issues,
            resolution=resolution,
            row_records=row_records,
            row_issues=row_issues,
        )

    def normalize_row(
        self,
        raw_row: RawRow,
        *,
        row_index: int,
        rule: ContentRule,
        mapping: Mapping[str, str],
        client_id: str,
        source_file_name: str | None = None,
        upload_index: int = 0,
    ) -> tuple[NormalizedRecord | None, list[ValidationIssue]]:
        issues: list[ValidationIssue] = []
        key_field = rule.key_field
        key_source = mapping.get(key_field) if key_field else None
        key_raw = (raw_row.get(key_source) or "").strip() if key_source else ""

        if key_field is not None and key_source is None:
            # Unmapped key column; reported once per file by the validation engine.
            return None, issues

        scope_source = mapping.get(rule.scope_field) if rule.scope_field else None
        if scope_source is not None:
            scope = fold_accents(raw_row.get(scope_source) or "").strip().lower()
            if scope and scope not in rule.scope_values:
                # Breakdown rows repeat their post's Total row.
                return None, issues

        if key_source is not None:
            if is_summary_key(key_raw, entity=rule.is_entity):
                issues.append(
                    self._issue(
                        "summary_row",
                        Severity.WARNING,
                        f"Row {row_index + 1} is a summary row and was excluded.",
                        row_index=row_index,
                        field_name=key_field,
                        raw_value=key_raw,
                        fix=Fix.drop_row("Drop the summary row."),
                        source_file_name=source_file_name,
                    )
                )
                return None, issues
            if not key_raw:
                issues.append(
                    self._issue(
                        "missing_key",
                        Severity.ERROR,
                        f"Row {row_index + 1} has an empty '{key_field}' and cannot be keyed.",
                        row_index=row_index,
                        field_name=key_field,
                        raw_value=key_raw,
                        fix=Fix.drop_row(),
                        manual_action=ManualAction.EDIT_VALUE,
                        source_file_name=source_file_name,
                    )
                )
                return None, issues

        fields: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        imputed: set[str] = set()
        pending_imputations: list[tuple[FieldSpec, str]] = []

        for spec in rule.fields:
            source = mapping.get(spec.name)
            if source is None or spec.name == rule.scope_field:
                continue
            raw_value = raw_row.get(source) or ""

            if spec.type == FieldType.DATE:
                parsed_date = parse_date(raw_value, day_first=spec.day_first)
                if parsed_date is None and raw_value.strip():
                    issues.append(
                        self._issue(
                            "invalid_date",
                            Severity.ERROR,
                            f"Row {row_index + 1}: '{raw_value}' is not a valid date.",
                            row_index=row_index,
                            field_name=spec.name,
                            raw_value=raw_value,
                            fix=Fix.drop_row(),
                            manual_action=ManualAction.EDIT_VALUE,
                            source_file_name=source_file_name,
                        )
                    )
                    return None, issues
                fields[spec.name] = parsed_date
                continue

            if spec.type == FieldType.STRING:
                fields[spec.name] = raw_value.strip() or None
                continue

            value = self._parse_typed(spec, raw_value)
            if value is None:
                value = 0.0 if spec.type in {FieldType.FLOAT, FieldType.PERCENT, FieldType.CURRENCY} else 0
                imputed.add(spec.name)
                pending_imputations.append((spec, raw_value))
            fields[spec.name] = value

        if rule.derive is not None:
            rule.derive(fields, extra)

        mapped_sources = set(mapping.values())
        unmapped = {
            header: value
            for header, value in raw_row.items()
            if header not in mapped_sources and value and value.strip()
        }
        if unmapped:
            extra["unmapped_columns"] = unmapped

        record_date = fields.get(rule.date_field) if rule.date_field else None
        external_id: str | None = None
        if rule.is_entity:
            identifier = str(fields.get(rule.id_field) or key_raw).strip()
            external_id = f"{rule.id_prefix}:{identifier}" if rule.id_prefix else identifier

        label = record_date or external_id or f"row {row_index + 1}"
        for spec, raw_value in pending_imputations:
            reason = "Missing value" if not raw_value.strip() else f"Non-numeric value '{raw_value.strip()}'"
            issues.append(
                self._issue(
                    "missing_value",
                    Severity.INFO,
                    f"{reason} treated as zero for '{spec.name}' on {label}.",
                    row_index=row_index,
                    field_name=spec.name,
                    raw_value=raw_value,
                    source_file_name=source_file_name,
                )
            )

        record = NormalizedRecord(
            client_id=client_id,
            platform=rule.platform,
            content_kind=rule.content_kind,
            fields=fields,
            date=record_date,
            external_id=external_id,
            extra=extra,
            imputed_fields=frozenset(imputed),
            source_file_name=source_file_name,
            upload_index=upload_index,
            source_rows=(row_index,),
        )
        return record, issues

    @staticmethod
    def _parse_typed(spec: FieldSpec, raw_value: str) -> Any:
        if spec.type == FieldType.INT:
            return parse_number(raw_value, integer=True)
        if spec.type == FieldType.FLOAT:
            return parse_number(raw_value)
        if spec.type == FieldType.PERCENT:
            return parse_percent(raw_value)
        if spec.type == FieldType.CURRENCY:
            return parse_currency(raw_value)
        if spec.type == FieldType.DURATION:
            return parse_duration(raw_value)
        return raw_value

    # ------------------------------------------------------------------
    # Record assembly
    # ------------------------------------------------------------------

    def assemble(
        self,
        rule: ContentRule,
        row_records: Mapping[int, NormalizedRecord | None],
        dropped_rows: set[int] | frozenset[int] = frozenset(),
    ) -> list[NormalizedRecord]:
        """
        Collect row records in source order, aggregating per date where the rule asks for it.

        Entity rules with a rollup also emit one daily record per date after the entities.
        """

        ordered: list[NormalizedRecord] = []
        for index in sorted(row_records):
            record = row_records[index]
            if index not in dropped_rows and record is not None:
                ordered.append(record)
        if rule.rollup_kind is not None:
            return ordered + self._rollup(rule, ordered)
        if not rule.aggregate_by_date:
            return ordered

        by_date: dict[str, list[NormalizedRecord]] = {}
        for record in ordered:
            by_date.setdefault(record.date or "", []).append(record)
        aggregated = [self._aggregate(rule, group) for group in by_date.values()]
        if rule.running_total is not None:
            aggregated = self._with_running_total(aggregated, *rule.running_total)
        return aggregated

    @staticmethod
    def _rollup(rule: ContentRule, entities: Sequence[NormalizedRecord]) -> list[NormalizedRecord]:
        by_date: dict[str, list[NormalizedRecord]] = {}
        for record in entities:
            if record.date:
                by_date.setdefault(record.date, []).append(record)

        daily: list[NormalizedRecord] = []
        for day in sorted(by_date):
            group = by_date[day]
            fields: dict[str, Any] = {"date": day}
            imputed: set[str] = set()
            for target, sources in rule.rollup_fields:
                total = 0
                populated = False
                for record in group:
                    source = next((name for name in sources if record.is_populated(name)), None)
                    if source is not None:
                        total += record.fields[source]
                        populated = True
                fields[target] = total
                if not populated:
                    imputed.add(target)
            daily.append(
                NormalizedRecord(
                    client_id=group[0].client_id,
                    platform=group[0].platform,
                    content_kind=rule.rollup_kind,  # type: ignore[arg-type]
                    fields=fields,
                    date=day,
                    extra={"rollup_of": rule.content_kind.value, "post_count": len(group)},
                    imputed_fields=frozenset(imputed),
                    source_file_name=group[0].source_file_name,
                    upload_index=group[0].upload_index,
                    source_rows=tuple(row for record in group for row in record.source_rows),
                )
            )
        return daily

    @staticmethod
    def _with_running_total(records: Sequence[NormalizedRecord], source: str, target: str) -> list[NormalizedRecord]:
        running = 0
        result: list[NormalizedRecord] = []
        for record in sorted(records, key=lambda item: item.date or ""):
            running += record.fields.get(source) or 0
            result.append(record.with_fields(fields={**record.fields, target: running}))
        return result

    @staticmethod
    def _aggregate(rule: ContentRule, group: Sequence[NormalizedRecord]) -> NormalizedRecord:
        first = group[0]
        fields: dict[str, Any] = {}
        for spec in rule.fields:
            if spec.name == rule.breakdown_field:
                continue
            if spec.is_numeric or spec.type == FieldType.DURATION:
                fields[spec.name] = sum(record.fields.get(spec.name) or 0 for record in group)
            elif spec.name in first.fields:
                fields[spec.name] = first.fields[spec.name]

        extra: dict[str, Any] = {}
        if rule.breakdown_field:
            metric_names = [spec.name for spec in rule.fields if spec.is_numeric]
            breakdown: dict[str, dict[str, Any]] = {}
            for record in group:
                source = str(record.fields.get(rule.breakdown_field) or "unknown")
                bucket = breakdown.setdefault(source, {})
                for metric in metric_names:
                    bucket[metric] = bucket.get(metric, 0) + (record.fields.get(metric) or 0)
            extra[f"by_{rule.breakdown_field}"] = breakdown

        imputed = frozenset.intersection(*(record.imputed_fields for record in group))
        return NormalizedRecord(
            client_id=first.client_id,
            platform=first.platform,
            content_kind=first.content_kind,
            fields=fields,
            date=first.date,
            external_id=None,
            extra=extra,
            imputed_fields=imputed,
            source_file_name=first.source_file_name,
            upload_index=first.upload_index,
            source_rows=tuple(row for record in group for row in record.source_rows),
        )

    # ------------------------------------------------------------------
    # FileValidationResult helpers
    # ------------------------------------------------------------------

    def populate(self, result: FileValidationResult) -> None:
        """
        (Re)normalize every active row of a file result in place.
        """

        rule = get_rule(result.detected_type)
        result.row_records = {}
        result.row_issues = {}
        result.normalized_data = []
        if rule is None:
            result.column_mapping = {}
            return

        resolution = self.resolve_columns(result.headers, rule, manual_mapping=result.manual_mapping)
        result.column_mapping = dict(resolution.canonical_to_source)
        for row_index in result.active_row_indices:
            self._store_row(result, rule, row_index)
        result.normalized_data = self.assemble(rule, result.row_records, result.dropped_rows)
        logger.info(
            "Normalized file=%r kind=%s rows=%d records=%d strategies=%s",
            result.source_file_name,
            result.detected_type.value,
            len(result.raw_data),
            len(result.normalized_data),
            resolution.match_strategies,
        )

    def refresh_row(self, result: FileValidationResult, row_index: int) -> None:
        """
        Re-normalize a single row after a fix or edit; other rows are untouched.
        """

        rule = get_rule(result.detected_type)
        if rule is None:
            return
        result.row_records.pop(row_index, None)
        result.row_issues.pop(row_index, None)
        if row_index not in result.dropped_rows:
            self._store_row(result, rule, row_index)
        result.normalized_data = self.assemble(rule, result.row_records, result.dropped_rows)

    def _store_row(self, result: FileValidationResult, rule: ContentRule, row_index: int) -> None:
        record, issues = self.normalize_row(
            result.raw_data[row_index],
            row_index=row_index,
            rule=rule,
            mapping=result.column_mapping,
            client_id=result.client_id,
            source_file_name=result.source_file_name,
            upload_index=result.upload_index,
        )
        result.row_records[row_index] = record
        if issues:
            result.row_issues[row_index] = issues

    @staticmethod
    def _issue(
        code: str,
        severity: Severity,
        message: str,
        *,
        row_index: int | None = None,
        field_name: str | None = None,
        raw_value: str | None = None,
        fix: Fix | None = None,
        manual_action: ManualAction | None = None,
        source_file_name: str | None = None,
    ) -> ValidationIssue:
        return ValidationIssue(
            issue_id=make_issue_id(code, row_index, field_name),
            severity=severity,
            category=IssueCategory.NORMALIZATION,
            code=code,
            message=message,
            row_index=row_index,
            field=field_name,
            raw_value=raw_value,
            fix=fix,
            manual_action=manual_action,
            source_file_name=source_file_name,
        )
