"""
app/services package marker.
"""

from app.services.smart_import_service import (
    ImportSession,
    ImportSessionRegistry,
    SmartImportService,
    get_import_session_registry,
    get_smart_import_service,
)

__all__ = [
    "ImportSession",
    "ImportSessionRegistry",
    "SmartImportService",
    "get_import_session_registry",
    "get_smart_import_service",
]
