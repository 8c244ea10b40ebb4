"""create smart import tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:30:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None

UUID_TYPE = sa.Uuid(as_uuid=True)
JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def upgrade() -> None:
    op.create_table(
        "platform_daily_metrics",
        sa.Column("id", UUID_TYPE, nullable=False),
        sa.Column("client_id", sa.String(length=64), nullable=False),
        sa.Column("platform", sa.String(length=32), nullable=False),
        sa.Column("content_kind", sa.String(length=64), nullable=False),
        sa.Column("metric_date", sa.Date(), nullable=False),
        sa.Column("metrics", JSON_TYPE, nullable=False),
        sa.Column("metadata_json", JSON_TYPE, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_platform_daily_metrics"),
        sa.UniqueConstraint(
            "client_id",
            "platform",
            "content_kind",
            "metric_date",
            name="uq_platform_daily_metrics_key",
        ),
    )
    op.create_index(
        "ix_platform_daily_metrics_client_platform",
        "platform_daily_metrics",
        ["client_id", "platform"],
        unique=False,
    )
    op.create_index(
        "ix_platform_daily_metrics_metric_date",
        "platform_daily_metrics",
        ["metric_date"],
        unique=False,
    )

    op.create_table(
        "platform_entities",
        sa.Column("id", UUID_TYPE, nullable=False),
        sa.Column("client_id", sa.String(length=64), nullable=False),
        sa.Column("platform", sa.String(length=32), nullable=False),
        sa.Column("content_kind", sa.String(length=64), nullable=False),
        sa.Column("external_id", sa.String(length=512), nullable=False),
        sa.Column("published_on", sa.Date(), nullable=True),
        sa.Column("attributes", JSON_TYPE, nullable=False),
        sa.Column("metadata_json", JSON_TYPE, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_platform_entities"),
        sa.UniqueConstraint("client_id", "platform", "external_id", name="uq_platform_entities_key"),
    )
    op.create_index(
        "ix_platform_entities_client_kind",
        "platform_entities",
        ["client_id", "content_kind"],
        unique=False,
    )

    op.create_table(
        "import_history",
        sa.Column("id", UUID_TYPE, nullable=False),
        sa.Column("client_id", sa.String(length=64), nullable=False),
        sa.Column("platform", sa.String(length=32), nullable=False),
        sa.Column("file_names", JSON_TYPE, nullable=False),
        sa.Column("records_imported", sa.Integer(), nullable=False),
        sa.Column("records_failed", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("content_kinds", JSON_TYPE, nullable=False),
        sa.Column("date_start", sa.Date(), nullable=True),
        sa.Column("date_end", sa.Date(), nullable=True),
        sa.Column("metadata_json", JSON_TYPE, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_import_history"),
    )
    op.create_index(
        "ix_import_history_client_platform",
        "import_history",
        ["client_id", "platform"],
        unique=False,
    )
    op.create_index("ix_import_history_created_at", "import_history", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_import_history_created_at", table_name="import_history")
    op.drop_index("ix_import_history_client_platform", table_name="import_history")
    op.drop_table("import_history")
    op.drop_index("ix_platform_entities_client_kind", table_name="platform_entities")
    op.drop_table("platform_entities")
    op.drop_index("ix_platform_daily_metrics_metric_date", table_name="platform_daily_metrics")
    op.drop_index("ix_platform_daily_metrics_client_platform", table_name="platform_daily_metrics")
    op.drop_table("platform_daily_metrics")
