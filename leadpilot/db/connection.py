"""
Database Connection Management
Handles PostgreSQL connections for the remote store with a context manager pattern.
"""

import psycopg2
from psycopg2.extras import RealDictCursor
from contextlib import contextmanager
import logging

logger = logging.getLogger(__name__)


@contextmanager
def get_db_connection(dsn: str):
    """
    Context manager for database connections.
    Automatically commits on success, rollbacks on error, and closes connection.

    Usage:
        with get_db_connection(config.DATABASE_URL) as conn:
            cur = conn.cursor()
            cur.execute("SELECT doc FROM leads")
    """
    conn = None
    try:
        conn = psycopg2.connect(dsn)
        logger.debug("Database connection established")
        yield conn
        conn.commit()
        logger.debug("Transaction committed")
    except Exception as e:
        if conn:
            conn.rollback()
            logger.error(f"Transaction rolled back due to error: {e}")
        raise
    finally:
        if conn:
            conn.close()
            logger.debug("Database connection closed")


@contextmanager
def get_db_cursor(dsn: str, dict_cursor=True):
    """
    Context manager for database cursor.
    Returns RealDictCursor by default for row-as-dict results.

    Usage:
        with get_db_cursor(dsn) as cur:
            cur.execute("SELECT doc FROM leads WHERE id = %s", ('abc',))
            row = cur.fetchone()
    """
    with get_db_connection(dsn) as conn:
        cursor_factory = RealDictCursor if dict_cursor else None
        cur = conn.cursor(cursor_factory=cursor_factory)
        try:
            yield cur
        finally:
            cur.close()
