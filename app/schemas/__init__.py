"""
app/schemas package marker.
"""

from app.schemas.smart_import import (
    CorrectionRequest,
    FileValidationResponse,
    ImportHistoryResponse,
    ImportOutcomeResponse,
    ImportSessionResponse,
    ValidationBatchResponse,
)

__all__ = [
    "CorrectionRequest",
    "FileValidationResponse",
    "ImportHistoryResponse",
    "ImportOutcomeResponse",
    "ImportSessionResponse",
    "ValidationBatchResponse",
]
