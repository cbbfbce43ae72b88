from contextlib import contextmanager
from pathlib import Path
from typing import Iterator
import logging
import os

from sqlalchemy.engine import make_url
from sqlalchemy.event import listen
from sqlmodel import SQLModel, Session, create_engine

# Ensure models are imported so SQLModel metadata is populated
from ..models import generation as _generation_models  # noqa: F401
from ..models import subscription as _subscription_models  # noqa: F401
from .config import settings

log = logging.getLogger(__name__)

_DATABASE_URL = (settings.DATABASE_URL or "").strip()
_LOCAL_SQLITE_PATH = Path(__file__).resolve().parent.parent.parent / "drumforge.db"

_POOL_KWARGS = {
    "pool_pre_ping": True,
    "pool_size": int(os.getenv("DB_POOL_SIZE", 10)),
    "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", 10)),
    "pool_recycle": int(os.getenv("DB_POOL_RECYCLE", 1800)),
    "pool_timeout": int(os.getenv("DB_POOL_TIMEOUT", 30)),
    # Force ROLLBACK on connections returned to the pool
    "pool_reset_on_return": "rollback",
    "connect_args": {
        "connect_timeout": int(os.getenv("DB_CONNECT_TIMEOUT", 10)),
    },
}


def _create_engine():
    """Create the database engine from DATABASE_URL, or a local SQLite file."""
    if not _DATABASE_URL:
        log.info("[db] DATABASE_URL not set; using local SQLite at %s", _LOCAL_SQLITE_PATH)
        return create_engine(
            f"sqlite:///{_LOCAL_SQLITE_PATH}",
            connect_args={"check_same_thread": False},
        )

    try:
        parsed_url = make_url(_DATABASE_URL)
    except Exception as e:
        log.error("[db] Invalid DATABASE_URL format: %s", e)
        raise RuntimeError(f"Invalid DATABASE_URL format: {e}") from e

    backend_name = parsed_url.get_backend_name()
    log.info(
        "[db] Using DATABASE_URL for engine (driver=%s, host=%s, database=%s)",
        parsed_url.drivername,
        parsed_url.host or "unknown",
        parsed_url.database or "unknown",
    )
    if backend_name == "sqlite":
        return create_engine(_DATABASE_URL, connect_args={"check_same_thread": False})
    if backend_name != "postgresql":
        raise RuntimeError(
            f"Unsupported database backend: {backend_name}. "
            "DATABASE_URL must start with postgresql+psycopg:// or sqlite://"
        )
    return create_engine(_DATABASE_URL, **_POOL_KWARGS)


engine = _create_engine()


def _handle_invalidate(dbapi_connection, connection_record, exception):
    """Called when a connection is invalidated (stale/broken)."""
    log.warning("[db-pool] Connection invalidated due to: %s", exception)


listen(engine.pool, "invalidate", _handle_invalidate)


def create_db_and_tables():
    """Create all tables from SQLModel metadata."""
    SQLModel.metadata.create_all(engine)


def get_session():
    """Provide database session for FastAPI dependency injection.

    expire_on_commit=False keeps loaded attributes readable after the commit
    that ends each billing mutation. The session always rolls back any open
    transaction before its connection goes back to the pool.
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
    except Exception:
        try:
            session.rollback()
        except Exception as rollback_exc:
            log.warning("[db] Rollback failed in get_session cleanup: %s", rollback_exc)
        raise
    finally:
        try:
            if session.in_transaction():
                session.rollback()
        except Exception as rollback_exc:
            log.debug("[db] Pre-close rollback in get_session: %s", rollback_exc)
        session.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Provide a context manager for DB sessions outside FastAPI dependencies.

    Caller is responsible for commit(); anything left uncommitted is rolled back.
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
    except Exception:
        try:
            session.rollback()
        except Exception as rollback_exc:
            log.warning("[db] Rollback failed in session_scope cleanup: %s", rollback_exc)
        raise
    finally:
        try:
            if session.in_transaction():
                session.rollback()
        except Exception as rollback_exc:
            log.debug("[db] Pre-close rollback in session_scope: %s", rollback_exc)
        session.close()
