import tempfile
from pathlib import Path
from typing import Generator

import structlog
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from app.config.settings import settings

logger = structlog.get_logger()

FALLBACK_DB_NAME = "testcases_fallback.db"


def _is_memory_sqlite(db_url: str) -> bool:
    url = make_url(db_url)
    return url.drivername.startswith("sqlite") and url.database in (None, "", ":memory:")


def _create_engine_from_url(db_url: str) -> Engine:
    if not db_url.startswith("sqlite"):
        return create_engine(db_url, pool_pre_ping=True)
    if _is_memory_sqlite(db_url):
        # one shared connection, otherwise every session sees an empty database
        return create_engine(db_url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_engine(db_url, connect_args={"check_same_thread": False})


def _resolve_database_url(original_url: str) -> str:
    """Make sure a file-backed sqlite database can be created.

    Creates the parent directory of the database file; if that location is
    not writable, switches to a file in the system temp directory.
    """
    try:
        url = make_url(original_url)
    except ArgumentError as e:
        logger.debug("Could not parse database url", error=str(e), original=original_url)
        return original_url

    if not url.drivername.startswith("sqlite") or _is_memory_sqlite(original_url):
        return original_url

    db_path = Path(url.database)
    if not db_path.is_absolute():
        db_path = (Path.cwd() / db_path).resolve()

    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        probe = db_path.parent / ".writable_test"
        probe.write_text("ok")
        probe.unlink()
    except OSError as e:
        fallback = f"sqlite:///{(Path(tempfile.gettempdir()) / FALLBACK_DB_NAME).as_posix()}"
        logger.error("Sqlite directory not writable; using temp file", path=str(db_path), fallback=fallback, error=str(e))
        return fallback

    logger.info("Resolved sqlite path", resolved=str(db_path))
    return original_url


resolved_db_url = _resolve_database_url(settings.database_url)
engine = _create_engine_from_url(resolved_db_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_database() -> Generator[Session, None, None]:
    """Dependency to get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    """Create the chunk, generation run and test case tables if missing"""
    from app.models.database import Base

    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        logger.error("Failed to create database tables", error=str(e))
        raise
    logger.info("Database tables ready", tables=sorted(Base.metadata.tables))
