"""Structured contracts for the post-import advisory check."""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class AdvisoryRequest(BaseModel):
    """Import statistics handed to the advisory checker."""

    model_config = ConfigDict(frozen=True)

    client_id: str
    platform: str
    imported_count: int = Field(ge=0)
    date_range: Optional[Dict[str, str]] = None
    import_types: List[str] = Field(default_factory=list)
    file_name: str = ""


class AdvisoryReport(BaseModel):
    """Narrative health report returned by the advisory check.

    ``ai_analyzed`` is False when the report was produced by the local
    deterministic fallback.
    """

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        str_strip_whitespace=True,
    )

    status: Literal["success", "warning", "error"]
    summary: str = Field(min_length=1)
    details: List[str] = Field(default_factory=list)
    issues: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    stats: Optional[Dict[str, object]] = None
    ai_analyzed: bool = False
