"""Tracionar — Database Engine & Session Factory.

``create_db_engine`` picks pool settings per backend: pooled connections
with pre-ping for PostgreSQL, a single shared connection for in-memory
SQLite so every session sees the same tables.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator

from sqlalchemy import text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.config import settings
from app.core.logging import get_logger

logger = get_logger("database")

db_url = settings.effective_database_url


def _mask_url(url: str) -> str:
    """Render a DB URL with its password hidden."""
    return make_url(url).render_as_string(hide_password=True)


def _is_memory_sqlite(url: str) -> bool:
    parsed = make_url(url)
    return parsed.get_backend_name() == "sqlite" and parsed.database in (None, "", ":memory:")


def create_db_engine(url: str) -> Engine:
    kwargs: Dict[str, Any] = {"echo": False}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if _is_memory_sqlite(url):
            kwargs["poolclass"] = StaticPool
        logger.info(f"📦 Database backend: SQLite ({url})")
    else:
        kwargs.update(pool_pre_ping=True, pool_size=5, max_overflow=10, pool_recycle=300)
        logger.info(f"🐘 Database backend: PostgreSQL ({_mask_url(url)})")
    return create_engine(url, **kwargs)


engine = create_db_engine(db_url)


def test_connection() -> bool:
    """SELECT 1 against the configured engine."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("✅ Database connection test: SUCCESS")
        return True
    except SQLAlchemyError as e:
        logger.error(f"❌ Database connection test: FAILED ({e})")
        return False


def init_db(bind: Engine | None = None) -> None:
    """Create missing tables. Existing tables are left untouched."""
    # Registers the table models on SQLModel.metadata
    import app.models.entities  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)
    logger.info("✅ Database tables ready")


def get_session() -> Iterator[Session]:
    """Dependency: one session per request."""
    with Session(engine) as session:
        yield session


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for work that runs outside a request (scheduler jobs).

    Uncommitted changes are rolled back if the block raises.
    """
    with Session(engine) as session:
        try:
            yield session
        except Exception:
            session.rollback()
            raise
