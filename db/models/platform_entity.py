"""
db/models/platform_entity.py

Entity records (posts, videos, stories, campaigns) keyed by external id.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Any

from sqlalchemy import Date, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONPayload, TimestampMixin


class PlatformEntity(Base, TimestampMixin):
    __tablename__ = "platform_entities"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    client_id: Mapped[str] = mapped_column(String(64), nullable=False)
    platform: Mapped[str] = mapped_column(String(32), nullable=False)
    content_kind: Mapped[str] = mapped_column(String(64), nullable=False)
    external_id: Mapped[str] = mapped_column(String(512), nullable=False)
    published_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    attributes: Mapped[dict[str, Any]] = mapped_column(
        JSONPayload,
        nullable=False,
        default=dict,
    )
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(
        JSONPayload,
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint(
            "client_id",
            "platform",
            "external_id",
            name="uq_platform_entities_key",
        ),
        Index("ix_platform_entities_client_kind", "client_id", "content_kind"),
    )
