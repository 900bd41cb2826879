"""SQLAlchemy engine and session handling for the lead-score history store.

SQLite is the default backend.  File databases get WAL journaling so the
CLI can read history while a scoring run writes; ``sqlite:///:memory:``
URLs share one connection so every session sees the same tables.
"""

import os
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import Engine, create_engine, event, inspect
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///data/leadscore.db"


class Base(DeclarativeBase):
    """Declarative base for the business profile and score record tables."""


_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


def _is_memory_url(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.rstrip("/") == "sqlite:")


def _sqlite_file_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.execute("PRAGMA busy_timeout=5000;")
    cursor.close()


def _sqlite_memory_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


def _build_engine(url: str, echo: bool) -> Engine:
    if _is_memory_url(url):
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        event.listen(engine, "connect", _sqlite_memory_pragmas)
        return engine

    if url.startswith("sqlite"):
        db_path = url.split("///", 1)[-1]
        if db_path:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(url, echo=echo, connect_args={"check_same_thread": False})
        event.listen(engine, "connect", _sqlite_file_pragmas)
        return engine

    return create_engine(url, echo=echo, pool_pre_ping=True)


def get_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """Return the process-wide engine, creating it on first use.

    Args:
        database_url: Connection string.  Falls back to the ``DATABASE_URL``
                      env-var, then to ``data/leadscore.db``.
        echo: Log every SQL statement.
    """
    global _engine
    if _engine is None:
        url = database_url or os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL
        _engine = _build_engine(url, echo)
        logger.info("Database engine created: %s", _engine.url.render_as_string(hide_password=True))
    return _engine


def get_session_factory() -> sessionmaker:
    global _SessionFactory
    if _SessionFactory is None:
        _SessionFactory = sessionmaker(bind=get_engine(), expire_on_commit=False)
    return _SessionFactory


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Transactional session: commit on success, roll back on any error.

    Usage::

        with get_session() as session:
            session.add(profile)
    """
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def table_names() -> list[str]:
    """Names of the tables present in the active database."""
    return sorted(inspect(get_engine()).get_table_names())


def init_db(database_url: Optional[str] = None, echo: bool = False) -> list[str]:
    """Create missing lead-score tables and return the tables now present."""
    engine = get_engine(database_url=database_url, echo=echo)
    import leadscore.models  # noqa: F401  (registers the mapped classes)
    Base.metadata.create_all(bind=engine)
    tables = table_names()
    logger.info("Database ready with tables: %s", ", ".join(tables))
    return tables


def reset_engine() -> None:
    """Dispose the cached engine and session factory."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None
