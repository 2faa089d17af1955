"""
api/routes/v1/posts.py -- Local mirror of the external posts feed.

Routes (all guarded):
  GET    /api/v1/posts/external -- fetch the first POSTS_FETCH_LIMIT upstream posts,
                                   store the ones not seen before, return the batch
  GET    /api/v1/posts          -- list stored posts
  DELETE /api/v1/posts          -- delete every stored post
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from api.models import PostListResponse, PostsDeletedResponse
from auth.dependencies import authenticate_request
from core.config import Settings
from core.errors import UpstreamUnavailableError
from posts.fetcher import fetch_posts
from posts.store import PostStore

logger = logging.getLogger("sessiongate.api.posts")

router = APIRouter(dependencies=[Depends(authenticate_request)])


@router.get("/posts/external", response_model=PostListResponse)
def mirror_external_posts(request: Request) -> PostListResponse:
    """Fetch upstream posts and save the new ones.

    The response lists the whole fetched batch, including posts that were
    already stored and therefore skipped.
    """
    settings: Settings = request.app.state.settings
    fetched = fetch_posts(settings.posts_source_url, settings.posts_fetch_limit)
    if fetched is None:
        raise UpstreamUnavailableError("Posts source is unavailable", detail=settings.posts_source_url)

    store: PostStore = request.app.state.posts
    saved, skipped = store.save_new(fetched)
    logger.info("Fetched %d posts from source (saved: %d, skipped: %d)", len(fetched), saved, skipped)
    return PostListResponse.from_posts(fetched)


@router.get("/posts", response_model=PostListResponse)
def list_posts(request: Request) -> PostListResponse:
    store: PostStore = request.app.state.posts
    return PostListResponse.from_posts(store.list_posts())


@router.delete("/posts", response_model=PostsDeletedResponse)
def delete_posts(request: Request) -> PostsDeletedResponse:
    store: PostStore = request.app.state.posts
    deleted = store.delete_all()
    return PostsDeletedResponse(message="Posts deleted", deleted=deleted)
