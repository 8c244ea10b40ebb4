from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI

logger = logging.getLogger(__name__)


def _validate_env() -> None:
    """
    Validate required environment variables at startup.

    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle.
    """

    from app.config import ADVISORY_MODES, RECORD_STORES
    from db.config import DATABASE_URL_VARS, load_env_files

    load_env_files()
    errors: list[str] = []

    record_store = os.getenv("SMART_IMPORT_RECORD_STORE", "sql").strip().lower()
    if record_store not in RECORD_STORES:
        errors.append(f"SMART_IMPORT_RECORD_STORE='{record_store}' must be one of {list(RECORD_STORES)}.")
    elif record_store == "sql" and not any(os.getenv(name, "").strip() for name in DATABASE_URL_VARS):
        errors.append(
            f"No database URL configured. Set one of {', '.join(DATABASE_URL_VARS)}, "
            "or run with SMART_IMPORT_RECORD_STORE=memory."
        )

    advisory_mode = os.getenv("SMART_IMPORT_ADVISORY_MODE", "local").strip().lower()
    if advisory_mode not in ADVISORY_MODES:
        errors.append(f"SMART_IMPORT_ADVISORY_MODE='{advisory_mode}' must be one of {list(ADVISORY_MODES)}.")
    elif advisory_mode == "llm" and not (
        os.getenv("LLM_API_KEY", "").strip() or os.getenv("OPENAI_API_KEY", "").strip()
    ):
        errors.append("LLM advisory needs LLM_API_KEY or OPENAI_API_KEY, or use SMART_IMPORT_ADVISORY_MODE=local.")

    if errors:
        raise RuntimeError(
            "Startup validation failed, missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(threadName)s %(message)s",
    )


def _check_database() -> None:
    """
    Confirm the database answers and every smart import table exists. Does NOT auto-migrate.
    """

    from sqlalchemy import inspect as sa_inspect
    from sqlalchemy import text

    import db.models  # noqa: F401 - registers all ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    engine = get_engine()
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc
    logger.info("Database connectivity confirmed")

    missing = sorted(set(Base.metadata.tables) - set(sa_inspect(engine).get_table_names()))
    if missing:
        logger.critical(
            "Schema mismatch: %d table(s) absent from the database: %s. Run 'alembic upgrade head'.",
            len(missing),
            ", ".join(missing),
        )
        raise RuntimeError(f"Schema mismatch: missing tables {', '.join(missing)}. Run migrations and restart.")
    logger.info("Database schema validated")


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    from app.config import get_smart_import_settings

    settings = get_smart_import_settings()
    if settings.record_store == "sql":
        _check_database()
    else:
        logger.warning("Using in-memory record store; imports are not persisted")
    logger.info(
        "Smart import ready workers=%d advisory=%s timeout=%.1fs",
        settings.max_workers,
        settings.advisory_mode,
        settings.advisory_timeout_seconds,
    )
    yield


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Smart Import API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import smart_import_router

    application.include_router(smart_import_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
