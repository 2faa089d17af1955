"""
posts/fetcher.py -- Fetch posts from the external feed.

The feed is a public JSON API returning a list of
{"userId": int, "id": int, "title": str, "body": str} objects
(jsonplaceholder.typicode.com by default, POSTS_SOURCE_URL to override).
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from posts.models import Post

logger = logging.getLogger("sessiongate.posts")

# Module-level session shared across calls for connection pooling.
# max_redirects=3 replaces the requests default of 30 -- protects against
# redirect chains pointing somewhere unexpected.
_session = requests.Session()
_session.max_redirects = 3


def fetch_posts(url: str, limit: int) -> Optional[list[Post]]:
    """Return the first `limit` posts from the feed, or None if it is unreachable.

    Entries missing a field or carrying the wrong type are skipped with a
    warning rather than failing the whole batch.
    """
    try:
        resp = _session.get(url, timeout=10)
        resp.raise_for_status()
        entries = resp.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("Posts fetch failed for %s: %s", url, e)
        return None
    if not isinstance(entries, list):
        logger.warning("Posts feed at %s did not return a list", url)
        return None

    posts: list[Post] = []
    for entry in entries[:limit]:
        post = _to_post(entry)
        if post is None:
            logger.warning("Skipping malformed post entry: %r", entry)
            continue
        posts.append(post)
    return posts


def _to_post(entry: Any) -> Optional[Post]:
    if not isinstance(entry, dict):
        return None
    try:
        return Post(
            id=int(entry["id"]),
            user_id=int(entry["userId"]),
            title=str(entry["title"]),
            body=str(entry["body"]),
        )
    except (KeyError, TypeError, ValueError):
        return None
