"""Engine, session factory and schema bootstrap for the data platform."""
from __future__ import annotations

from typing import Any, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import get_settings


def _engine_options(database_url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"pool_pre_ping": True}
    # Request handlers and threadpool work share pooled SQLite connections.
    if make_url(database_url).get_backend_name() == "sqlite":
        options["connect_args"] = {"check_same_thread": False}
    return options


engine: Engine = create_engine(get_settings().database_url, **_engine_options(get_settings().database_url))

SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

Base = declarative_base()


def get_session() -> Generator[Session, None, None]:
    """Yield one session per request and close it afterwards."""
    with SessionLocal() as session:
        yield session


def init_db() -> None:
    """Create any missing tables for the registered models."""
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


__all__ = ["Base", "SessionLocal", "engine", "get_session", "init_db"]
