"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.import_history import ImportHistory
from db.models.platform_entity import PlatformEntity
from db.models.platform_metric import PlatformDailyMetric

__all__ = [
    "ImportHistory",
    "PlatformDailyMetric",
    "PlatformEntity",
]
