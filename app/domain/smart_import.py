"""
app/domain/smart_import.py

Domain models shared by the smart import pipeline stages.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict

RawRow = Dict[str, str]


class Platform(str, Enum):
    INSTAGRAM = "instagram"
    YOUTUBE = "youtube"
    TWITTER = "twitter"
    NEWSLETTER = "newsletter"
    LINKEDIN = "linkedin"
    META_ADS = "meta_ads"


class ContentKind(str, Enum):
    # Instagram
    REACH = "reach"
    FOLLOWERS = "followers"
    VIEWS = "views"
    INTERACTIONS = "interactions"
    PROFILE_VISITS = "profile_visits"
    LINK_CLICKS = "link_clicks"
    POSTS = "posts"
    STORIES = "stories"
    # YouTube
    YOUTUBE_DAILY_VIEWS = "youtube_daily_views"
    YOUTUBE_VIDEOS_PUBLISHED = "youtube_videos_published"
    YOUTUBE_VIDEOS = "youtube_videos"
    # Newsletter
    NEWSLETTER_DAILY_PERFORMANCE = "newsletter_daily_performance"
    NEWSLETTER_POSTS = "newsletter_posts"
    NEWSLETTER_SUBSCRIBERS = "newsletter_subscribers"
    # Twitter / X
    TWITTER_POSTS = "twitter_posts"
    TWITTER_DAILY = "twitter_daily"
    # LinkedIn
    LINKEDIN_DAILY = "linkedin_daily"
    LINKEDIN_FOLLOWERS = "linkedin_followers"
    LINKEDIN_POSTS = "linkedin_posts"
    # Meta Ads
    CAMPAIGNS = "campaigns"
    ADSETS = "adsets"
    ADS = "ads"

    UNKNOWN = "unknown"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class IssueCategory(str, Enum):
    DECODE = "decode"
    CLASSIFICATION = "classification"
    NORMALIZATION = "normalization"
    VALIDATION = "validation"
    RECONCILIATION = "reconciliation"


class ManualAction(str, Enum):
    """
    User corrections required when no deterministic fix exists.
    """

    REMAP_COLUMN = "remap_column"
    EDIT_VALUE = "edit_value"
    OVERRIDE_CONTENT_KIND = "override_content_kind"
    REMOVE_FILE = "remove_file"


class ImportStage(str, Enum):
    PENDING = "pending"
    DECODING = "decoding"
    CLASSIFYING = "classifying"
    NORMALIZING = "normalizing"
    VALIDATING = "validating"
    AWAITING_PROCEED = "awaiting_proceed"
    RECONCILING = "reconciling"
    COMMITTING = "committing"
    DONE = "done"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RawFile:
    """
    One uploaded file as received from the transport layer.
    """

    file_name: str
    content: bytes
    platform: Platform
    format_hint: str | None = None
    sheet_name: str | None = None


@dataclass(frozen=True)
class Fix:
    """
    Deterministic transform of one raw row.

    ``drop_row`` removes the row from the import; ``set_value`` rewrites one
    cell. ``apply`` never mutates its input.
    """

    action: str
    description: str
    column: str | None = None
    value: str | None = None

    DROP_ROW = "drop_row"
    SET_VALUE = "set_value"

    def apply(self, raw_row: RawRow) -> RawRow | None:
        if self.action == self.DROP_ROW:
            return None
        if self.action == self.SET_VALUE and self.column is not None:
            corrected = dict(raw_row)
            corrected[self.column] = self.value if self.value is not None else ""
            return corrected
        raise ValueError(f"Unsupported fix action: {self.action}")

    @classmethod
    def drop_row(cls, description: str = "Drop this row from the import.") -> "Fix":
        return cls(action=cls.DROP_ROW, description=description)

    @classmethod
    def set_value(cls, *, column: str, value: str, description: str) -> "Fix":
        return cls(action=cls.SET_VALUE, description=description, column=column, value=value)


@dataclass(frozen=True)
class ValidationIssue:
    """
    One structured problem found while importing a file.
    """

    issue_id: str
    severity: Severity
    category: IssueCategory
    code: str
    message: str
    row_index: int | None = None
    field: str | None = None
    raw_value: str | None = None
    fix: Fix | None = None
    manual_action: ManualAction | None = None
    source_file_name: str | None = None

    @property
    def is_blocking(self) -> bool:
        return self.severity == Severity.ERROR

    def to_dict(self) -> dict[str, Any]:
        return {
            "issue_id": self.issue_id,
            "severity": self.severity.value,
            "category": self.category.value,
            "code": self.code,
            "message": self.message,
            "row_index": self.row_index,
            "field": self.field,
            "raw_value": self.raw_value,
            "fix": None
            if self.fix is None
            else {
                "action": self.fix.action,
                "description": self.fix.description,
                "column": self.fix.column,
                "value": self.fix.value,
            },
            "manual_action": self.manual_action.value if self.manual_action else None,
            "source_file_name": self.source_file_name,
        }


def make_issue_id(code: str, row_index: int | None = None, field_name: str | None = None) -> str:
    """
    Build a deterministic issue identifier.
    """

    parts = [code]
    if row_index is not None:
        parts.append(f"r{row_index}")
    if field_name:
        parts.append(field_name)
    return ":".join(parts)


@dataclass(frozen=True)
class NormalizedRecord:
    """
    Canonical typed record ready for reconciliation and storage.
    """

    client_id: str
    platform: Platform
    content_kind: ContentKind
    fields: dict[str, Any]
    date: str | None = None
    external_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)
    imputed_fields: frozenset[str] = frozenset()
    source_file_name: str | None = None
    upload_index: int = 0
    source_rows: tuple[int, ...] = ()

    @property
    def is_entity(self) -> bool:
        return self.external_id is not None

    @property
    def key(self) -> tuple[str, ...]:
        if self.external_id is not None:
            return (self.client_id, self.platform.value, self.external_id)
        return (self.client_id, self.platform.value, self.content_kind.value, self.date or "")

    def is_populated(self, field_name: str) -> bool:
        if field_name in self.imputed_fields:
            return False
        value = self.fields.get(field_name)
        if value is None:
            return False
        if isinstance(value, str) and not value.strip():
            return False
        return True

    def populated_count(self) -> int:
        return sum(1 for name in self.fields if self.is_populated(name))

    def with_fields(self, **changes: Any) -> "NormalizedRecord":
        return replace(self, **changes)


@dataclass(frozen=True)
class DateRange:
    start: str
    end: str


@dataclass(frozen=True)
class GroupCommitResult:
    """
    Commit outcome for one ContentKind group.
    """

    content_kind: ContentKind
    target: str
    succeeded: int
    failed: int
    error: str | None = None

    @property
    def has_failures(self) -> bool:
        return self.failed > 0 or self.error is not None
