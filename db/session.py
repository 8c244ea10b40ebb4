"""
db/session.py

SQLAlchemy engine and session factory for the record store and import history.
"""

from __future__ import annotations

import threading

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from db.config import DatabaseSettings, get_database_settings


def create_db_engine(settings: DatabaseSettings | None = None) -> Engine:
    """
    Build an engine for PostgreSQL or SQLite.

    In-memory SQLite shares one connection across threads so every commit
    worker sees the same database.
    """

    settings = settings or get_database_settings()
    if settings.is_sqlite:
        in_memory = settings.url in {"sqlite://", "sqlite:///:memory:"}
        return create_engine(
            settings.url,
            echo=settings.echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool if in_memory else None,
        )

    return create_engine(
        settings.url,
        echo=settings.echo,
        pool_pre_ping=True,
        pool_recycle=settings.pool_recycle,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
    )


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(
        bind=engine,
        class_=Session,
        autoflush=False,
        expire_on_commit=False,
    )


_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None
_init_lock = threading.Lock()


def get_engine() -> Engine:
    """Return the shared engine, creating it on first call."""
    global _engine
    with _init_lock:
        if _engine is None:
            _engine = create_db_engine()
        return _engine


def _get_session_factory() -> sessionmaker[Session]:
    global _session_factory
    if _session_factory is None:
        engine = get_engine()
        with _init_lock:
            if _session_factory is None:
                _session_factory = build_session_factory(engine)
    return _session_factory


def SessionLocal() -> Session:
    """Lazy session factory; commit workers call this from several threads."""
    return _get_session_factory()()
