"""
app/repositories package marker.
"""

from app.repositories.record_store import InMemoryRecordStore, RecordStore, SQLAlchemyRecordStore

__all__ = [
    "InMemoryRecordStore",
    "RecordStore",
    "SQLAlchemyRecordStore",
]
