"""
app/services/import_history_service.py

Writes and reads the import history audit log.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date
from typing import Any

from sqlalchemy.orm import Session

from app.domain.import_results import ImportOutcome
from db.models.import_history import ImportHistory
from db.repositories.import_history_repository import ImportHistoryRepository

logger = logging.getLogger(__name__)


def history_entry_to_dict(entry: ImportHistory) -> dict[str, Any]:
    return {
        "id": str(entry.id),
        "client_id": entry.client_id,
        "platform": entry.platform,
        "file_names": list(entry.file_names or []),
        "records_imported": entry.records_imported,
        "records_failed": entry.records_failed,
        "status": entry.status,
        "content_kinds": list(entry.content_kinds or []),
        "date_start": entry.date_start.isoformat() if entry.date_start else None,
        "date_end": entry.date_end.isoformat() if entry.date_end else None,
        "metadata": entry.metadata_json,
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
    }


class ImportHistoryService:
    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def record(self, outcome: ImportOutcome, *, client_id: str, platform: str) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "commit_groups": [
                {
                    "content_kind": group.content_kind.value,
                    "target": group.target,
                    "succeeded": group.succeeded,
                    "failed": group.failed,
                    "error": group.error,
                }
                for group in outcome.commit_groups
            ],
            "conflicts": len(outcome.conflicts),
        }
        if outcome.advisory is not None:
            metadata["advisory"] = {
                "status": outcome.advisory.status,
                "summary": outcome.advisory.summary,
                "ai_analyzed": outcome.advisory.ai_analyzed,
            }

        with self._session_factory() as session, session.begin():
            entry = ImportHistoryRepository(session).record_import(
                client_id=client_id,
                platform=platform,
                file_names=[result.source_file_name for result in outcome.per_file_results],
                records_imported=outcome.records_imported,
                records_failed=outcome.records_failed,
                status=outcome.status,
                content_kinds=[kind.value for kind in outcome.content_kinds],
                date_start=date.fromisoformat(outcome.date_range.start) if outcome.date_range else None,
                date_end=date.fromisoformat(outcome.date_range.end) if outcome.date_range else None,
                metadata_json=metadata,
            )
            payload = history_entry_to_dict(entry)

        logger.info(
            "Recorded import history id=%s client=%s platform=%s status=%s records=%d",
            payload["id"],
            client_id,
            platform,
            outcome.status,
            outcome.records_imported,
        )
        return payload

    def list_history(
        self,
        *,
        client_id: str | None = None,
        platform: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        with self._session_factory() as session:
            entries = ImportHistoryRepository(session).list_imports(
                client_id=client_id,
                platform=platform,
                limit=limit,
            )
            return [history_entry_to_dict(entry) for entry in entries]
