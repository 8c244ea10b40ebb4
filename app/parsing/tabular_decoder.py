"""
app/parsing/tabular_decoder.py

Decodes raw CSV/TSV text or spreadsheet bytes into ordered header -> value rows.
"""

from __future__ import annotations

import codecs
import csv
import io
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Iterable, Sequence

import openpyxl

from app.domain.import_errors import DecodeError
from app.domain.smart_import import (
    IssueCategory,
    RawRow,
    Severity,
    ValidationIssue,
    make_issue_id,
)

logger = logging.getLogger(__name__)

CANDIDATE_DELIMITERS: tuple[str, ...] = (",", "\t", ";")
SPREADSHEET_EXTENSIONS = {".xlsx", ".xlsm"}
TEXT_EXTENSIONS = {".csv", ".tsv", ".txt"}
ZIP_MAGIC = b"PK\x03\x04"

# Quoted fields may legitimately span lines (post captions); give up after this many.
MAX_CONTINUATION_LINES = 50

_SEP_DIRECTIVE = re.compile(r'^\s*"?sep=(.)"?\s*$', re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class DecodedTable:
    """
    Decoder output for one file.
    """

    headers: list[str]
    rows: list[RawRow]
    preamble: tuple[str, ...] = ()
    delimiter: str | None = None
    issues: list[ValidationIssue] = field(default_factory=list)


def clean_cell(value: str) -> str:
    return value.replace("\x00", "").replace("\r", "").strip()


def normalize_header_label(value: str) -> str:
    """
    Lower-case, trim, strip quotes and collapse whitespace in a header label.
    """

    cleaned = clean_cell(value).strip('"').strip("'").strip()
    return _WHITESPACE.sub(" ", cleaned).lower()


def sniff_format(content: bytes, hint_format: str | None = None, file_name: str | None = None) -> str:
    """
    Return ``"spreadsheet"`` or ``"text"`` for the given payload.
    """

    if hint_format:
        hint = hint_format.strip().lower().lstrip(".")
        if hint in {"xlsx", "xlsm", "spreadsheet", "excel"}:
            return "spreadsheet"
        if hint in {"csv", "tsv", "txt", "text"}:
            return "text"

    if file_name:
        lowered = file_name.strip().lower()
        suffix = lowered[lowered.rfind(".") :] if "." in lowered else ""
        if suffix in SPREADSHEET_EXTENSIONS:
            return "spreadsheet"
        if suffix in TEXT_EXTENSIONS:
            return "text"

    if content.startswith(ZIP_MAGIC):
        return "spreadsheet"
    return "text"


def decode_text(content: bytes) -> str:
    """
    Decode bytes to text, honouring UTF-16/UTF-8 byte-order marks.
    """

    if content.startswith(codecs.BOM_UTF16_LE) or content.startswith(codecs.BOM_UTF16_BE):
        text = content.decode("utf-16")
    else:
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError:
            text = content.decode("cp1252", errors="replace")

    text = text.lstrip("﻿").replace("\x00", "")
    return text.replace("\r\n", "\n").replace("\r", "\n")


def detect_delimiter(line: str) -> str:
    """
    Pick the most frequent candidate delimiter outside quoted sections.
    """

    counts = {candidate: 0 for candidate in CANDIDATE_DELIMITERS}
    in_quotes = False
    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif not in_quotes and char in counts:
            counts[char] += 1

    best = max(CANDIDATE_DELIMITERS, key=lambda candidate: counts[candidate])
    return best if counts[best] > 0 else ","


def _split_lenient(line: str, delimiter: str) -> list[str]:
    return [clean_cell(cell).strip('"').strip() for cell in line.split(delimiter)]


def _parse_record(lines: Sequence[str], delimiter: str) -> list[str]:
    reader = csv.reader([f"{line}\n" for line in lines], delimiter=delimiter, strict=False)
    try:
        return [clean_cell(cell) for cell in next(reader)]
    except StopIteration:
        return []


def _has_open_quote(text: str) -> bool:
    return text.count('"') % 2 == 1


class TabularDecoder:
    """
    Turns raw uploads into ``DecodedTable`` instances.
    """

    def decode(
        self,
        content: bytes,
        hint_format: str | None = None,
        *,
        file_name: str | None = None,
        sheet_name: str | None = None,
    ) -> DecodedTable:
        """
        Decode one file. Raises ``DecodeError`` only on zero rows or columns.
        """

        file_format = sniff_format(content, hint_format, file_name)
        if file_format == "spreadsheet":
            table = self._decode_spreadsheet(content, sheet_name=sheet_name, file_name=file_name)
        else:
            table = self._decode_text(content, file_name=file_name)

        if not table.headers:
            raise DecodeError("File has no columns after decoding.", file_name=file_name)
        if not table.rows:
            raise DecodeError("File has no data rows after decoding.", file_name=file_name)

        logger.info(
            "Decoded file=%r format=%s columns=%d rows=%d row_issues=%d",
            file_name,
            file_format,
            len(table.headers),
            len(table.rows),
            len(table.issues),
        )
        return table

    # ------------------------------------------------------------------
    # Delimited text
    # ------------------------------------------------------------------

    def _decode_text(self, content: bytes, *, file_name: str | None) -> DecodedTable:
        text = decode_text(content)
        lines = [line for line in text.split("\n")]
        non_empty = [index for index, line in enumerate(lines) if line.strip()]
        if not non_empty:
            raise DecodeError("File is empty.", file_name=file_name)

        cursor = non_empty[0]
        delimiter: str | None = None
        sep_match = _SEP_DIRECTIVE.match(lines[cursor])
        if sep_match:
            delimiter = sep_match.group(1)
            cursor = self._next_non_empty(lines, cursor + 1)

        preamble: list[str] = []
        while cursor is not None:
            candidate = lines[cursor]
            line_delimiter = delimiter or detect_delimiter(candidate)
            cells = [cell for cell in _split_lenient(candidate, line_delimiter) if cell]
            following = self._next_non_empty(lines, cursor + 1)
            if len(cells) <= 1 and following is not None:
                # Title lines such as "Alcance" precede the real header row.
                next_delimiter = delimiter or detect_delimiter(lines[following])
                if len([c for c in _split_lenient(lines[following], next_delimiter) if c]) > 1:
                    if cells:
                        preamble.append(cells[0].lower())
                    cursor = following
                    continue
            break

        if cursor is None:
            raise DecodeError("File has no header row.", file_name=file_name)

        header_line = lines[cursor]
        delimiter = delimiter or detect_delimiter(header_line)
        headers = self._build_headers(_parse_record([header_line], delimiter))
        if not headers:
            raise DecodeError("File has no columns after decoding.", file_name=file_name)

        rows: list[RawRow] = []
        issues: list[ValidationIssue] = []
        index = cursor + 1
        while index < len(lines):
            line = lines[index]
            if not line.strip() or _SEP_DIRECTIVE.match(line):
                index += 1
                continue

            record_lines = [line]
            end = index
            while _has_open_quote("\n".join(record_lines)) and end + 1 < len(lines):
                if len(record_lines) >= MAX_CONTINUATION_LINES:
                    break
                end += 1
                record_lines.append(lines[end])

            row_index = len(rows)
            if _has_open_quote("\n".join(record_lines)):
                values = _split_lenient(line, delimiter)
                issues.append(
                    ValidationIssue(
                        issue_id=make_issue_id("malformed_quotes", row_index),
                        severity=Severity.WARNING,
                        category=IssueCategory.DECODE,
                        code="malformed_quotes",
                        message=f"Line {index + 1} has an unbalanced quoted field; it was parsed leniently.",
                        row_index=row_index,
                        raw_value=line[:200],
                        source_file_name=file_name,
                    )
                )
                index += 1
            else:
                values = _parse_record(record_lines, delimiter)
                index = end + 1

            if not any(values):
                continue
            rows.append(self._to_raw_row(headers, values))

        return DecodedTable(
            headers=headers,
            rows=rows,
            preamble=tuple(preamble),
            delimiter=delimiter,
            issues=issues,
        )

    @staticmethod
    def _next_non_empty(lines: Sequence[str], start: int) -> int | None:
        for index in range(start, len(lines)):
            if lines[index].strip():
                return index
        return None

    # ------------------------------------------------------------------
    # Spreadsheets
    # ------------------------------------------------------------------

    def _decode_spreadsheet(
        self,
        content: bytes,
        *,
        sheet_name: str | None,
        file_name: str | None,
    ) -> DecodedTable:
        try:
            workbook = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
        except Exception as exc:  # noqa: BLE001 - openpyxl raises a wide range of errors
            raise DecodeError(f"Spreadsheet could not be opened: {exc}", file_name=file_name) from exc

        try:
            if sheet_name and sheet_name in workbook.sheetnames:
                sheet = workbook[sheet_name]
            else:
                sheet = workbook.active or workbook[workbook.sheetnames[0]]
            grid = [
                [self._cell_to_text(value) for value in row]
                for row in sheet.iter_rows(values_only=True)
            ]
        finally:
            workbook.close()

        return self._table_from_grid(grid)

    def _table_from_grid(self, grid: Iterable[Sequence[str]]) -> DecodedTable:
        preamble: list[str] = []
        headers: list[str] = []
        rows: list[RawRow] = []
        for values in grid:
            populated = [value for value in values if value]
            if not headers:
                if len(populated) > 1:
                    headers = self._build_headers(values)
                elif populated:
                    preamble.append(populated[0].lower())
                continue
            if not populated:
                continue
            rows.append(self._to_raw_row(headers, list(values)))
        return DecodedTable(headers=headers, rows=rows, preamble=tuple(preamble))

    @staticmethod
    def _cell_to_text(value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, datetime):
            if value.time() == time(0, 0):
                return value.date().isoformat()
            return value.isoformat()
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return clean_cell(str(value))

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _build_headers(values: Sequence[str]) -> list[str]:
        labels = [normalize_header_label(value) for value in values]
        while labels and not labels[-1]:
            labels.pop()

        headers: list[str] = []
        seen: dict[str, int] = {}
        for position, label in enumerate(labels, start=1):
            name = label or f"column_{position}"
            if name in seen:
                seen[name] += 1
                name = f"{name}_{seen[name]}"
            else:
                seen[name] = 1
            headers.append(name)
        return headers

    @staticmethod
    def _to_raw_row(headers: Sequence[str], values: Sequence[str]) -> RawRow:
        return {
            header: clean_cell(values[position]) if position < len(values) else ""
            for position, header in enumerate(headers)
        }
