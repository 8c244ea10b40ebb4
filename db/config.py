"""
Environment-driven database settings for the smart import store.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

SUPPORTED_SCHEMES = ("postgresql", "sqlite")
DATABASE_URL_VARS = ("SMART_IMPORT_DATABASE_URL", "DATABASE_URL", "LOCAL_DATABASE_URL")

_PROJECT_ROOT = Path(__file__).resolve().parents[1]


def _parse_env_line(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if line.startswith("export "):
        line = line[len("export "):].lstrip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    key, value = line.split("=", 1)
    key = key.strip()
    if not key:
        return None
    return key, value.strip().strip('"').strip("'")


def load_env_files(root: Path | None = None) -> None:
    """
    Load KEY=VALUE pairs from `.env` then `.env.local` under the project root.

    Variables already present in the process environment always win.
    """

    base = root or _PROJECT_ROOT
    for filename in (".env", ".env.local"):
        env_path = base / filename
        if not env_path.is_file():
            continue
        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            parsed = _parse_env_line(raw_line)
            if parsed is not None:
                os.environ.setdefault(*parsed)


def normalize_database_url(url: str) -> str:
    """
    Route bare postgres URLs through the psycopg 3 driver; other schemes pass through.
    """

    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def resolve_database_url() -> str:
    """
    First configured URL among SMART_IMPORT_DATABASE_URL, DATABASE_URL, LOCAL_DATABASE_URL.
    """

    load_env_files()
    for name in DATABASE_URL_VARS:
        value = (os.getenv(name) or "").strip()
        if value:
            return normalize_database_url(value)
    raise RuntimeError(
        "No database URL configured. Set one of "
        + ", ".join(DATABASE_URL_VARS)
        + " or run with SMART_IMPORT_RECORD_STORE=memory."
    )


def _int_from_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, ""))
    except ValueError:
        return default


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    echo: bool = False
    pool_recycle: int = 1800
    pool_size: int = 5
    max_overflow: int = 10

    @property
    def scheme(self) -> str:
        return self.url.split(":", 1)[0].split("+", 1)[0]

    @property
    def is_sqlite(self) -> bool:
        return self.scheme == "sqlite"


def get_database_settings() -> DatabaseSettings:
    url = resolve_database_url()
    settings = DatabaseSettings(
        url=url,
        echo=os.getenv("SQL_ECHO", "").strip().lower() in {"1", "true", "yes", "on"},
        pool_recycle=_int_from_env("DB_POOL_RECYCLE", 1800),
        pool_size=max(1, _int_from_env("DB_POOL_SIZE", 5)),
        max_overflow=max(0, _int_from_env("DB_MAX_OVERFLOW", 10)),
    )
    if settings.scheme not in SUPPORTED_SCHEMES:
        raise RuntimeError(
            f"Unsupported database scheme '{settings.scheme}'. Use one of: {', '.join(SUPPORTED_SCHEMES)}."
        )
    return settings
