"""
core/db.py -- SQLAlchemy engine factory shared by every store.

One engine per process: UserStore, TokenStore and PostStore all receive the
same Engine so the token tables and the users table live in one database and
share one connection pool.

Swapping SQLite for PostgreSQL is a DATABASE_URL change, not a rewrite.
"""

from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. In-memory databases answer "memory" and keep
    working unchanged.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_db_engine(db_url: str) -> Engine:
    """Build an Engine for db_url with the SQLite tweaks the stores rely on.

    check_same_thread=False is required because FastAPI runs sync handlers
    and dependencies in a threadpool.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine
