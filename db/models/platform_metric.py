"""
db/models/platform_metric.py

Daily time-series metrics per client, platform and content kind.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Any

from sqlalchemy import Date, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONPayload, TimestampMixin


class PlatformDailyMetric(Base, TimestampMixin):
    __tablename__ = "platform_daily_metrics"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    client_id: Mapped[str] = mapped_column(String(64), nullable=False)
    platform: Mapped[str] = mapped_column(String(32), nullable=False)
    content_kind: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="reach, followers, youtube_daily_views, newsletter_daily_performance, ...",
    )
    metric_date: Mapped[date] = mapped_column(Date, nullable=False)
    metrics: Mapped[dict[str, Any]] = mapped_column(
        JSONPayload,
        nullable=False,
        default=dict,
        comment="Canonical field name to typed value",
    )
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(
        JSONPayload,
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint(
            "client_id",
            "platform",
            "content_kind",
            "metric_date",
            name="uq_platform_daily_metrics_key",
        ),
        Index("ix_platform_daily_metrics_client_platform", "client_id", "platform"),
        Index("ix_platform_daily_metrics_metric_date", "metric_date"),
    )
