"""
posts/models.py -- Domain dataclass for mirrored posts.

id is the upstream id, not a local surrogate key: mirroring the same post
twice must hit the primary key and be skipped.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Post:
    id: int
    user_id: int
    title: str
    body: str
