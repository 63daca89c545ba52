"""
Database module - PostgreSQL connection pool and session helpers.
"""
from app.db.postgres import get_db_session, fetch_one, rows_to_dicts, test_postgres_connection

__all__ = [
    "get_db_session",
    "fetch_one",
    "rows_to_dicts",
    "test_postgres_connection",
]
