"""
Engine and session factories.

Nothing connects at import time: the engine is built on first use so that
tests and tooling can point ``DATABASE_URL`` somewhere else beforehand.
"""
import logging
import os
import socket
from contextlib import closing

from sqlalchemy import create_engine, text
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import declarative_base, sessionmaker

from roster.core.config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()

_engine = None
SessionLocal = None


def _describe_unreachable_database(exc: Exception) -> None:
    """Log where the app tried to connect, with the password masked."""
    logger.warning("Could not connect to database: %s", exc)
    logger.warning("Startup continues; database operations will fail until the connection succeeds")

    try:
        url = make_url(settings.database_url)
    except Exception as parse_error:  # pragma: no cover
        logger.warning("Unable to parse DATABASE_URL (%s); skipping diagnostics", parse_error)
        return

    if url.get_backend_name() == "sqlite":
        logger.warning("SQLite database file: %s", url.database)
        return

    host = url.host or "localhost"
    port = url.port or 5432
    logger.warning(
        "Database settings: dialect=%s driver=%s host=%s port=%s database=%s user=%s SKIP_DB_INIT=%r",
        url.get_backend_name(),
        url.get_driver_name() or "default",
        host,
        port,
        url.database,
        url.username,
        os.getenv("SKIP_DB_INIT"),
    )

    try:
        with closing(socket.create_connection((host, port), timeout=2)):
            logger.warning("Socket check: %s:%s is reachable", host, port)
    except OSError as socket_err:
        logger.warning("Socket check: unable to reach %s:%s (%s)", host, port, socket_err)


def _engine_kwargs(database_url: str) -> dict:
    # Batch writes run on worker threads; pysqlite refuses cross-thread use by default.
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False, "timeout": 30}}
    return {"pool_pre_ping": True}


def get_engine():
    global _engine
    if _engine is not None:
        return _engine

    _engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))
    try:
        with _engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        _describe_unreachable_database(e)
    return _engine


def get_session_local():
    global SessionLocal
    if SessionLocal is None:
        SessionLocal = sessionmaker(
            bind=get_engine(),
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )
    return SessionLocal


def get_db():
    """FastAPI dependency yielding a request-scoped session."""
    db = get_session_local()()
    try:
        yield db
    finally:
        db.close()
