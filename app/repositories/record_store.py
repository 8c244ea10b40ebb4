"""
app/repositories/record_store.py

Record store contract used at commit time, with SQLAlchemy and in-memory backends.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import date
from typing import Any, Mapping, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.platform_entity import PlatformEntity
from db.models.platform_metric import PlatformDailyMetric


DAILY_METRICS_TARGET = "platform_daily_metrics"
ENTITIES_TARGET = "platform_entities"


class RecordStore(Protocol):
    """
    Both operations must be idempotent under repeated identical calls.
    """

    def upsert_daily_metric(
        self,
        client_id: str,
        platform: str,
        content_kind: str,
        date: str,
        fields: Mapping[str, Any],
        *,
        extra: Mapping[str, Any] | None = None,
    ) -> None:
        ...

    def upsert_entity(
        self,
        client_id: str,
        platform: str,
        external_id: str,
        fields: Mapping[str, Any],
        *,
        content_kind: str,
        published_on: str | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> None:
        ...


def _merge_payload(current: Mapping[str, Any] | None, incoming: Mapping[str, Any] | None) -> dict[str, Any]:
    return {**(current or {}), **(incoming or {})}


class SQLAlchemyRecordStore:
    """
    One session and transaction per upsert so concurrent commit groups never share a session.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def upsert_daily_metric(
        self,
        client_id: str,
        platform: str,
        content_kind: str,
        date: str,
        fields: Mapping[str, Any],
        *,
        extra: Mapping[str, Any] | None = None,
    ) -> None:
        metric_date = _to_date(date)
        with self._session_factory() as session, session.begin():
            stmt = select(PlatformDailyMetric).where(
                PlatformDailyMetric.client_id == client_id,
                PlatformDailyMetric.platform == platform,
                PlatformDailyMetric.content_kind == content_kind,
                PlatformDailyMetric.metric_date == metric_date,
            )
            row = session.scalars(stmt).first()
            if row is None:
                session.add(
                    PlatformDailyMetric(
                        client_id=client_id,
                        platform=platform,
                        content_kind=content_kind,
                        metric_date=metric_date,
                        metrics=dict(fields),
                        metadata_json=dict(extra) if extra else None,
                    )
                )
                return
            row.metrics = _merge_payload(row.metrics, fields)
            if extra:
                row.metadata_json = _merge_payload(row.metadata_json, extra)

    def upsert_entity(
        self,
        client_id: str,
        platform: str,
        external_id: str,
        fields: Mapping[str, Any],
        *,
        content_kind: str,
        published_on: str | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> None:
        with self._session_factory() as session, session.begin():
            stmt = select(PlatformEntity).where(
                PlatformEntity.client_id == client_id,
                PlatformEntity.platform == platform,
                PlatformEntity.external_id == external_id,
            )
            row = session.scalars(stmt).first()
            if row is None:
                session.add(
                    PlatformEntity(
                        client_id=client_id,
                        platform=platform,
                        content_kind=content_kind,
                        external_id=external_id,
                        published_on=_to_date(published_on) if published_on else None,
                        attributes=dict(fields),
                        metadata_json=dict(extra) if extra else None,
                    )
                )
                return
            row.content_kind = content_kind
            row.attributes = _merge_payload(row.attributes, fields)
            if published_on:
                row.published_on = _to_date(published_on)
            if extra:
                row.metadata_json = _merge_payload(row.metadata_json, extra)


class InMemoryRecordStore:
    """
    Thread-safe dictionary-backed store for tests and local runs without a database.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.daily_metrics: dict[tuple[str, str, str, str], dict[str, Any]] = {}
        self.entities: dict[tuple[str, str, str], dict[str, Any]] = {}
        self.calls = 0

    def upsert_daily_metric(
        self,
        client_id: str,
        platform: str,
        content_kind: str,
        date: str,
        fields: Mapping[str, Any],
        *,
        extra: Mapping[str, Any] | None = None,
    ) -> None:
        key = (client_id, platform, content_kind, date)
        with self._lock:
            self.calls += 1
            self.daily_metrics[key] = _merge_payload(self.daily_metrics.get(key), fields)

    def upsert_entity(
        self,
        client_id: str,
        platform: str,
        external_id: str,
        fields: Mapping[str, Any],
        *,
        content_kind: str,
        published_on: str | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> None:
        key = (client_id, platform, external_id)
        with self._lock:
            self.calls += 1
            payload = _merge_payload(self.entities.get(key), fields)
            payload["content_kind"] = content_kind
            self.entities[key] = payload


def _to_date(value: str) -> date:
    return date.fromisoformat(value)
