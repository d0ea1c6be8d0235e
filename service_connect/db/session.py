from __future__ import annotations

import logging
from collections.abc import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from service_connect.core.settings import get_settings

logger = logging.getLogger(__name__)

Base = declarative_base()

engine: Engine | None = None
SessionLocal: sessionmaker[Session] | None = None


def _connect_args(database_url: str) -> dict[str, object]:
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


def _unicode_lower(value: object) -> object:
    return value.lower() if isinstance(value, str) else value


def _register_sqlite_functions(dbapi_connection, _connection_record) -> None:
    # The builtin lower() only folds ASCII letters.
    dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)


def configure_engine(database_url: str) -> None:
    global engine, SessionLocal
    logger.info("Configuring database engine")
    if engine is not None:
        engine.dispose()
    engine = create_engine(database_url, connect_args=_connect_args(database_url), future=True)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _register_sqlite_functions)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=True, future=True)
    logger.debug("Database engine configured dialect=%s", engine.dialect.name)


configure_engine(get_settings().database_url)


def init_db() -> None:
    from service_connect.models import conversation, listing, message, user  # noqa: F401

    if engine is None:
        raise RuntimeError("Database engine is not configured")
    logger.info("Creating database tables if they do not exist")
    Base.metadata.create_all(bind=engine)


def get_db() -> Generator[Session, None, None]:
    if SessionLocal is None:
        raise RuntimeError("Database session factory is not configured")
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
