"""
Repository for the import history audit log.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Sequence

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from db.models.import_history import ImportHistory


class ImportHistoryRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def record_import(
        self,
        *,
        client_id: str,
        platform: str,
        file_names: Sequence[str],
        records_imported: int,
        records_failed: int,
        status: str,
        content_kinds: Sequence[str],
        date_start: date | None = None,
        date_end: date | None = None,
        metadata_json: dict[str, Any] | None = None,
    ) -> ImportHistory:
        entry = ImportHistory(
            client_id=client_id,
            platform=platform,
            file_names=list(file_names),
            records_imported=records_imported,
            records_failed=records_failed,
            status=status,
            content_kinds=sorted(content_kinds),
            date_start=date_start,
            date_end=date_end,
            metadata_json=metadata_json,
        )
        self._session.add(entry)
        self._session.flush()
        self._session.refresh(entry)
        return entry

    def list_imports(
        self,
        *,
        client_id: str | None = None,
        platform: str | None = None,
        limit: int = 50,
    ) -> list[ImportHistory]:
        stmt: Select[tuple[ImportHistory]] = select(ImportHistory)

        if client_id:
            stmt = stmt.where(ImportHistory.client_id == client_id)
        if platform:
            stmt = stmt.where(ImportHistory.platform == platform)

        stmt = stmt.order_by(ImportHistory.created_at.desc()).limit(max(1, limit))
        return list(self._session.scalars(stmt).all())
