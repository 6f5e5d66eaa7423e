"""
ExplainRank - Database Utilities
=================================

Database connection management, session handling, and schema setup for
the scoring service.

Usage:
    from explainrank.core.db import get_engine, get_session, init_db

    # Initialize database
    engine = get_engine()
    init_db(engine)

    # Use session
    with get_session() as session:
        session.add(Explanation(title="Photosynthesis", content="..."))
"""

import os
from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from .models import Base

# =============================================================================
# CONFIGURATION
# =============================================================================


def get_database_url() -> str:
    """
    Get database URL from environment or default.

    Environment variables (in order of precedence):
    - DATABASE_URL: Full connection string
    - POSTGRES_* variables: Individual connection parameters
    """
    if url := os.getenv("DATABASE_URL"):
        return url

    host = os.getenv("POSTGRES_HOST", "localhost")
    port = os.getenv("POSTGRES_PORT", "5432")
    user = os.getenv("POSTGRES_USER", "postgres")
    password = os.getenv("POSTGRES_PASSWORD", "")
    database = os.getenv("POSTGRES_DB", "explainrank")

    if password:
        return f"postgresql+psycopg://{user}:{password}@{host}:{port}/{database}"
    return f"postgresql+psycopg://{user}@{host}:{port}/{database}"


# =============================================================================
# ENGINE AND SESSION MANAGEMENT
# =============================================================================

_engine: Engine | None = None
_SessionFactory: sessionmaker | None = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(
    url: str | None = None,
    pool_size: int = 5,
    max_overflow: int = 10,
    echo: bool = False,
) -> Engine:
    """
    Get or create the SQLAlchemy engine.

    Args:
        url: Database URL (uses get_database_url() if not provided)
        pool_size: Number of connections in the pool
        max_overflow: Max connections above pool_size
        echo: Enable SQL logging

    Returns:
        SQLAlchemy Engine instance
    """
    global _engine

    if _engine is None:
        db_url = url or get_database_url()
        is_sqlite = db_url.startswith("sqlite")

        engine_kwargs = {"echo": echo}

        if is_sqlite:
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            engine_kwargs["poolclass"] = QueuePool
            engine_kwargs["pool_size"] = pool_size
            engine_kwargs["max_overflow"] = max_overflow
            engine_kwargs["pool_pre_ping"] = True

        _engine = create_engine(db_url, **engine_kwargs)

        if is_sqlite:
            event.listen(_engine, "connect", _enable_sqlite_foreign_keys)

    return _engine


def get_session_factory(engine: Engine | None = None) -> sessionmaker:
    """Get or create session factory."""
    global _SessionFactory

    if _SessionFactory is None:
        _SessionFactory = sessionmaker(
            bind=engine or get_engine(),
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

    return _SessionFactory


def reset_engine() -> None:
    """Dispose the cached engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Usage:
        with get_session() as session:
            results = session.query(Explanation).all()
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


# =============================================================================
# CONCURRENT WRITES
# =============================================================================

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def upsert_statement(dialect: str, model, values: dict, index_elements: list[str]):
    """INSERT ... ON CONFLICT (index_elements) DO UPDATE for one row."""
    insert = _DIALECT_INSERTS.get(dialect)
    if insert is None:
        raise NotImplementedError(f"upsert is not supported on {dialect}")

    stmt = insert(model).values(**values)
    updates = {key: stmt.excluded[key] for key in values if key not in index_elements}
    return stmt.on_conflict_do_update(index_elements=index_elements, set_=updates)


def upsert(session: Session, model, values: dict, index_elements: list[str]) -> None:
    """
    Insert or update one row in a single statement.

    Concurrent writers of the same key both succeed; the last one wins.
    The ORM identity map is not refreshed, so re-read the row with
    ``populate_existing=True`` if it was loaded before.
    """
    dialect = session.get_bind().dialect.name
    session.execute(upsert_statement(dialect, model, values, index_elements))


def lock_row(session: Session, model, pk):
    """
    Load a row with SELECT ... FOR UPDATE.

    Holds the row lock until the transaction ends. SQLite ignores the
    clause since it already serializes writers.
    """
    return session.query(model).filter(model.id == pk).with_for_update().one_or_none()


# =============================================================================
# DATABASE INITIALIZATION
# =============================================================================


def init_db(engine: Engine | None = None) -> None:
    """
    Initialize the database schema.

    Creates all tables and enables pgvector on PostgreSQL.
    """
    engine = engine or get_engine()

    if engine.dialect.name == "postgresql":
        with engine.connect() as conn:
            conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
            conn.commit()

    Base.metadata.create_all(engine)


def drop_all_tables(engine: Engine | None = None) -> None:
    """
    Drop all tables. USE WITH CAUTION!

    Only for development/testing.
    """
    engine = engine or get_engine()
    Base.metadata.drop_all(engine)
