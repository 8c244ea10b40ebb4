"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation.
"""

from __future__ import annotations

from fastapi import File, HTTPException, UploadFile, status

from app.config import get_smart_import_settings
from app.domain.smart_import import Platform, RawFile

TABULAR_EXTENSIONS = (".csv", ".tsv", ".txt", ".xlsx")
TABULAR_CONTENT_TYPES = {
    "text/csv",
    "text/plain",
    "text/tab-separated-values",
    "application/csv",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def get_tabular_uploads(files: list[UploadFile] = File(...)) -> list[UploadFile]:
    """
    Validate that every uploaded file is a CSV/TSV export or an XLSX workbook.
    """

    if not files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one file is required.",
        )

    for file in files:
        filename = (file.filename or "").strip().lower()
        content_type = (file.content_type or "").strip().lower()
        if not filename.endswith(TABULAR_EXTENSIONS) and content_type not in TABULAR_CONTENT_TYPES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Only CSV, TSV or XLSX files are allowed: '{file.filename}'.",
            )

    return files


def read_raw_files(files: list[UploadFile], platform: Platform) -> list[RawFile]:
    """
    Read uploads into memory, enforcing the per-file size cap.
    """

    max_bytes = get_smart_import_settings().max_upload_bytes
    raw_files: list[RawFile] = []
    for position, file in enumerate(files):
        content = file.file.read(max_bytes + 1)
        if len(content) > max_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File '{file.filename}' exceeds the {max_bytes} byte limit.",
            )
        file_name = file.filename or f"upload_{position + 1}"
        raw_files.append(
            RawFile(
                file_name=file_name,
                content=content,
                platform=platform,
                format_hint=file_name.rsplit(".", 1)[-1].lower() if "." in file_name else None,
            )
        )
    return raw_files
