"""
auth/store.py -- SQLAlchemy Core persistence layer for access and refresh tokens.

Pattern: Repository + Data Mapper. TokenStore is the repository for both token
kinds; _row_to_record is the mapper. TokenStore is the only code that writes
the token tables -- SessionManager goes through it for every change.

Schema: access_tokens and refresh_tokens share one column layout:
  id          surrogate key
  token       the signed JWT, UNIQUE
  user_id     UNIQUE -- one record per user per kind
  expires_at  ISO 8601 UTC
  created_at  ISO 8601 UTC

Replace semantics:
  save() is a single INSERT .. ON CONFLICT (user_id) DO UPDATE on SQLite and
  PostgreSQL, so two concurrent saves for the same user can never leave two
  rows or a window with zero rows. Other dialects fall back to
  delete-then-insert inside one transaction.

Security:
  All queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import TokenKind, TokenRecord
from core.errors import ConflictError, NotFoundError, StorageError

logger = logging.getLogger("sessiongate.token_store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()


def _token_table(name: str) -> Table:
    return Table(
        name,
        _metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("token", Text, nullable=False, unique=True),
        Column("user_id", Integer, nullable=False, unique=True),
        Column("expires_at", String(32), nullable=False),
        Column("created_at", String(32), nullable=False),
    )


_tables: dict[TokenKind, Table] = {
    TokenKind.ACCESS: _token_table("access_tokens"),
    TokenKind.REFRESH: _token_table("refresh_tokens"),
}

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TokenStore:
    """Repository for AccessToken and RefreshToken records.

    Usage:
        tokens = TokenStore(engine)
        tokens.save(TokenKind.ACCESS, TokenRecord(user_id=1, token=jwt, expires_at=iso))
        record = tokens.find_by_user_id(TokenKind.ACCESS, 1)
        tokens.delete_by_user_id(TokenKind.ACCESS, 1)
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        _metadata.create_all(self.engine)

    def save(self, kind: TokenKind, record: TokenRecord) -> TokenRecord:
        """Store record as the user's only token of this kind and return it.

        Any previous record for record.user_id is replaced. Raises
        ConflictError if the token string is already held by another user,
        StorageError on any other database failure.
        """
        table = _tables[kind]
        values = {
            "token": record.token,
            "user_id": record.user_id,
            "expires_at": record.expires_at,
            "created_at": record.created_at or _now_iso(),
        }
        try:
            with self.engine.connect() as conn:
                insert = _UPSERT_DIALECTS.get(self.engine.dialect.name)
                if insert is not None:
                    stmt = insert(table).values(**values)
                    stmt = stmt.on_conflict_do_update(
                        index_elements=[table.c.user_id],
                        set_={
                            "token": stmt.excluded.token,
                            "expires_at": stmt.excluded.expires_at,
                            "created_at": stmt.excluded.created_at,
                        },
                    )
                    conn.execute(stmt)
                else:
                    conn.execute(table.delete().where(table.c.user_id == record.user_id))
                    conn.execute(table.insert().values(**values))
                row = conn.execute(table.select().where(table.c.user_id == record.user_id)).fetchone()
                conn.commit()
        except IntegrityError as exc:
            logger.warning(
                "Failed to save %s token (userId: %s / error: Such %s token already exists)",
                kind.value,
                record.user_id,
                kind.value,
            )
            raise ConflictError(f"Such {kind.value} token already exists") from exc
        except SQLAlchemyError as exc:
            logger.error("Failed to save %s token (userId: %s / error: %s)", kind.value, record.user_id, exc)
            raise StorageError(f"Failed to save {kind.value} token") from exc
        return _row_to_record(row)

    def delete_by_user_id(self, kind: TokenKind, user_id: int) -> None:
        """Delete the user's token of this kind. Raises NotFoundError if there was none."""
        table = _tables[kind]
        try:
            with self.engine.connect() as conn:
                result = conn.execute(table.delete().where(table.c.user_id == user_id))
                conn.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to delete %s token (userId: %s / error: %s)", kind.value, user_id, exc)
            raise StorageError(f"Failed to delete {kind.value} token") from exc
        if result.rowcount == 0:
            raise NotFoundError("Token not found")

    def find_by_user_id(self, kind: TokenKind, user_id: int) -> TokenRecord | None:
        """Return the user's token record of this kind, or None."""
        table = _tables[kind]
        try:
            with self.engine.connect() as conn:
                row = conn.execute(table.select().where(table.c.user_id == user_id)).fetchone()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to read {kind.value} token") from exc
        return _row_to_record(row) if row is not None else None

    def find_all(self, kind: TokenKind) -> list[TokenRecord]:
        """Return every stored record of this kind ordered by id."""
        table = _tables[kind]
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(table.select().order_by(table.c.id)).fetchall()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to list {kind.value} tokens") from exc
        return [_row_to_record(r) for r in rows]


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_record(row) -> TokenRecord:
    return TokenRecord(
        id=row.id,
        user_id=row.user_id,
        token=row.token,
        expires_at=row.expires_at,
        created_at=row.created_at,
    )
