"""
posts/store.py -- SQLAlchemy Core persistence for mirrored posts.

Pattern: Repository + Data Mapper, same as users/store.py.
"""

from __future__ import annotations

import logging

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, select
from sqlalchemy.engine import Engine

from posts.models import Post

logger = logging.getLogger("sessiongate.posts")

_metadata = MetaData()

_posts = Table(
    "posts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=False),  # upstream id
    Column("user_id", Integer, nullable=False),
    Column("title", String(255), nullable=False),
    Column("body", Text, nullable=False),
)


class PostStore:
    """Repository for Post entities."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        _metadata.create_all(self.engine)

    def save_new(self, posts: list[Post]) -> tuple[int, int]:
        """Insert posts whose id is not stored yet. Returns (saved, skipped)."""
        saved = skipped = 0
        with self.engine.connect() as conn:
            for post in posts:
                exists = conn.execute(select(_posts.c.id).where(_posts.c.id == post.id)).fetchone()
                if exists is not None:
                    logger.warning("Post with ID %s already exists. Skipping.", post.id)
                    skipped += 1
                    continue
                conn.execute(
                    _posts.insert().values(id=post.id, user_id=post.user_id, title=post.title, body=post.body)
                )
                logger.info("Post with ID %s saved to database.", post.id)
                saved += 1
            conn.commit()
        return saved, skipped

    def list_posts(self) -> list[Post]:
        with self.engine.connect() as conn:
            rows = conn.execute(_posts.select().order_by(_posts.c.id)).fetchall()
        return [_row_to_post(r) for r in rows]

    def delete_all(self) -> int:
        """Delete every stored post. Returns the number of rows removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_posts.delete())
            conn.commit()
        logger.info("Posts deleted from database")
        return result.rowcount


def _row_to_post(row) -> Post:
    return Post(id=row.id, user_id=row.user_id, title=row.title, body=row.body)
