"""
app/config.py

Smart import and advisory settings read from the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files

ADVISORY_MODES = ("local", "llm")
RECORD_STORES = ("sql", "memory")


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _env(name: str) -> str | None:
    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    return value.strip() or None


def _clamp(value: float, minimum: float | None, maximum: float | None) -> float:
    if minimum is not None:
        value = max(minimum, value)
    if maximum is not None:
        value = min(maximum, value)
    return value


def _int_env(name: str, default: int, *, minimum: int | None = None) -> int:
    raw = _env(name)
    try:
        value = int(raw) if raw is not None else default
    except ValueError:
        value = default
    return int(_clamp(value, minimum, None))


def _float_env(
    name: str,
    default: float,
    *,
    minimum: float | None = None,
    maximum: float | None = None,
) -> float:
    raw = _env(name)
    try:
        value = float(raw) if raw is not None else default
    except ValueError:
        value = default
    return _clamp(value, minimum, maximum)


def _choice_env(name: str, default: str, choices: tuple[str, ...]) -> str:
    value = (_env(name) or default).lower()
    return value if value in choices else default


@dataclass(frozen=True)
class SmartImportSettings:
    """
    Runtime settings for the smart import pipeline.
    """

    max_workers: int = 4
    confidence_floor: float = 0.75
    forbidden_penalty: float = 0.5
    fuzzy_threshold: float = 0.84
    date_gap_days: int = 7
    high_value_threshold: int = 10_000_000
    advisory_timeout_seconds: float = 10.0
    advisory_mode: str = "local"
    record_store: str = "sql"
    max_upload_bytes: int = 20 * 1024 * 1024
    max_sessions: int = 200


@dataclass(frozen=True)
class LLMSettings:
    """
    OpenAI-compatible client settings for the advisory check.
    """

    model: str = "gpt-4o-mini"
    api_key: str | None = None
    base_url: str | None = None
    max_tokens: int = 1024
    max_retries: int = 1


@lru_cache(maxsize=1)
def get_smart_import_settings() -> SmartImportSettings:
    """
    Return cached smart import settings from SMART_IMPORT_* variables.
    Out-of-range numbers are clamped and unknown modes fall back to defaults.
    """

    return SmartImportSettings(
        max_workers=_int_env("SMART_IMPORT_MAX_WORKERS", 4, minimum=1),
        confidence_floor=_float_env("SMART_IMPORT_CONFIDENCE_FLOOR", 0.75, minimum=0.0, maximum=1.0),
        forbidden_penalty=_float_env("SMART_IMPORT_FORBIDDEN_PENALTY", 0.5, minimum=0.0),
        fuzzy_threshold=_float_env("SMART_IMPORT_FUZZY_THRESHOLD", 0.84, minimum=0.0, maximum=1.0),
        date_gap_days=_int_env("SMART_IMPORT_DATE_GAP_DAYS", 7, minimum=1),
        high_value_threshold=_int_env("SMART_IMPORT_HIGH_VALUE_THRESHOLD", 10_000_000, minimum=1),
        advisory_timeout_seconds=_float_env("SMART_IMPORT_ADVISORY_TIMEOUT_SECONDS", 10.0, minimum=0.1),
        advisory_mode=_choice_env("SMART_IMPORT_ADVISORY_MODE", "local", ADVISORY_MODES),
        record_store=_choice_env("SMART_IMPORT_RECORD_STORE", "sql", RECORD_STORES),
        max_upload_bytes=_int_env("SMART_IMPORT_MAX_UPLOAD_BYTES", 20 * 1024 * 1024, minimum=1024),
        max_sessions=_int_env("SMART_IMPORT_MAX_SESSIONS", 200, minimum=1),
    )


@lru_cache(maxsize=1)
def get_llm_settings() -> LLMSettings:
    """
    Return LLM client settings; the key falls back to OPENAI_API_KEY.
    """

    return LLMSettings(
        model=_env("LLM_MODEL") or "gpt-4o-mini",
        api_key=_env("LLM_API_KEY") or _env("OPENAI_API_KEY"),
        base_url=_env("LLM_BASE_URL"),
        max_tokens=_int_env("LLM_MAX_TOKENS", 1024, minimum=64),
        max_retries=_int_env("LLM_MAX_RETRIES", 1, minimum=0),
    )
