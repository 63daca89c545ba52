import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, Session

from app.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Process-wide engine with connection pool, disposed on shutdown (see app.main)
# pool_size: connections kept ready
# max_overflow: extra connections allowed under load
engine = create_engine(
    settings.postgres_url,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
    echo=settings.debug  # Log SQL queries in debug mode
)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_db_session(session_factory: Optional[sessionmaker] = None):
    """
    Context manager for a transactional database session.

    One pooled connection is checked out for the whole block. The block
    commits on success, rolls back on any exception (which is re-raised),
    and always returns the connection to the pool.

    Usage:
        with get_db_session() as db:
            db.execute(text("SELECT * FROM users"))
    """
    session = (session_factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("Transaction rolled back")
        raise
    finally:
        session.close()


def test_postgres_connection() -> bool:
    """
    Test if PostgreSQL is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        with get_db_session() as db:
            result = db.execute(text("SELECT 1 as test"))
            row = result.fetchone()
            return row[0] == 1
    except Exception as e:
        logger.error(f"PostgreSQL connection failed: {e}")
        return False


def rows_to_dicts(result) -> List[Dict[str, Any]]:
    """Convert a SQLAlchemy result into a list of dicts."""
    columns = list(result.keys())
    return [dict(zip(columns, row)) for row in result.fetchall()]


def fetch_one(db: Session, sql: str, params: dict = None) -> Optional[Dict[str, Any]]:
    """Execute SQL on an open session and return the first row as a dict (or None)."""
    rows = rows_to_dicts(db.execute(text(sql), params or {}))
    return rows[0] if rows else None


def execute_raw_sql(sql: str, params: dict = None) -> list:
    """
    Execute raw SQL and return results as list of dicts.
    This is useful for complex queries and views.
    """
    with get_db_session() as db:
        result = db.execute(text(sql), params or {})
        return rows_to_dicts(result)


def execute_scalar(sql: str, params: dict = None) -> Any:
    """Execute raw SQL and return the first column of the first row."""
    with get_db_session() as db:
        return db.execute(text(sql), params or {}).scalar()
