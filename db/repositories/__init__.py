"""
Repository layer exports.
"""

from db.repositories.import_history_repository import ImportHistoryRepository

__all__ = [
    "ImportHistoryRepository",
]
