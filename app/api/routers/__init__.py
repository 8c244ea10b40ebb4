"""
app/api/routers package marker.
"""

from app.api.routers.smart_import import router as smart_import_router

__all__ = [
    "smart_import_router",
]
