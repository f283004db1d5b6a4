"""
agora.api.routes.forum — Forums, topics, posts, votes, search
==============================================================

Read views for anonymous visitors are served from the response cache
under the same path keys the services invalidate.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from agora.api.deps import Context, CurrentUser, OptionalUser
from agora.constants import FORUM_LIST_PATH, forum_view_path, topic_view_path
from agora.database.engine import run_db
from agora.services import (
    forum_service,
    reputation_service,
    search_service,
    vote_service,
)
from agora.services.poll_service import PollSpec

router = APIRouter(prefix="/forum", tags=["forum"])


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------
class PollBody(BaseModel):
    question: str
    options: list[str]
    max_votes: int = 1
    allow_revote: bool = False
    ends_at: datetime | None = None


class TopicCreate(BaseModel):
    title: str
    content: str
    poll: PollBody | None = None


class PostBody(BaseModel):
    content: str


class VoteBody(BaseModel):
    vote_type: Literal["up", "down"] = Field(alias="voteType")

    model_config = {"populate_by_name": True}


# ---------------------------------------------------------------------------
# Read views
# ---------------------------------------------------------------------------
@router.get("")
async def list_forums(ctx: Context):
    cached = ctx.cache.get(FORUM_LIST_PATH)
    if cached is not None:
        return cached
    payload = {"categories": await run_db(forum_service.list_forums, ctx)}
    ctx.cache.set(FORUM_LIST_PATH, payload)
    return payload


@router.get("/forum/{forum_id}")
async def get_forum(
    forum_id: int,
    ctx: Context,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    key = f"{forum_view_path(forum_id)}?page={page}&limit={limit}"
    cached = ctx.cache.get(key)
    if cached is not None:
        return cached
    payload = await run_db(forum_service.get_forum, ctx, forum_id, page, limit)
    ctx.cache.set(key, payload)
    return payload


@router.get("/topic/{slug}")
async def get_topic(
    slug: str,
    ctx: Context,
    user_id: OptionalUser,
    page: int = Query(1, ge=1),
    limit: int = Query(15, ge=1, le=100),
):
    """Topic page.  Only anonymous views are cached (signed-in views carry vote/subscription flags)."""
    key = f"{topic_view_path(slug)}?page={page}&limit={limit}"
    if user_id is None:
        cached = ctx.cache.get(key)
        if cached is not None:
            return cached
    payload = await run_db(forum_service.get_topic, ctx, slug, user_id, page, limit)
    if user_id is None:
        ctx.cache.set(key, payload, ttl=30)
    return payload


@router.get("/search")
async def search(
    ctx: Context,
    q: str = Query(""),
    forum: int | None = Query(None),
    author: str | None = Query(None),
    sort: str = Query("relevance", alias="sortBy"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    return await run_db(search_service.search, ctx, q, forum, author, sort, page, limit)


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------
@router.post("/forum/{forum_id}/topic", status_code=201)
async def create_topic(forum_id: int, body: TopicCreate, ctx: Context, user_id: CurrentUser):
    poll = None
    if body.poll is not None:
        poll = PollSpec(
            question=body.poll.question,
            options=list(body.poll.options),
            max_votes=body.poll.max_votes,
            allow_revote=body.poll.allow_revote,
            ends_at=body.poll.ends_at,
        )
    result = await run_db(
        forum_service.create_topic, ctx, forum_id, user_id, body.title, body.content, poll,
    )
    return {"success": True, **result}


@router.post("/topic/{topic_id}/reply", status_code=201)
async def reply(topic_id: int, body: PostBody, ctx: Context, user_id: CurrentUser):
    post_id = await run_db(forum_service.reply, ctx, topic_id, user_id, body.content)
    return {"success": True, "post_id": post_id}


@router.put("/post/{post_id}")
async def edit_post(post_id: int, body: PostBody, ctx: Context, user_id: CurrentUser):
    await run_db(forum_service.edit_post, ctx, post_id, user_id, body.content)
    return {"success": True}


@router.delete("/post/{post_id}")
async def delete_post(post_id: int, ctx: Context, user_id: CurrentUser):
    await run_db(forum_service.soft_delete_post, ctx, post_id, user_id)
    return {"success": True}


@router.delete("/topic/{topic_id}")
async def delete_topic(topic_id: int, ctx: Context, user_id: CurrentUser):
    await run_db(forum_service.delete_topic, ctx, topic_id, user_id)
    return {"success": True}


@router.post("/post/{post_id}/vote")
async def vote(post_id: int, body: VoteBody, ctx: Context, user_id: CurrentUser):
    return await run_db(vote_service.vote, ctx, post_id, user_id, body.vote_type)


# ---------------------------------------------------------------------------
# Reputation
# ---------------------------------------------------------------------------
@router.get("/leaderboard")
async def leaderboard(ctx: Context, limit: int = Query(10, ge=1, le=100)):
    return {"leaderboard": await run_db(reputation_service.get_leaderboard, ctx, limit)}


@router.get("/users/{user_id}/reputation")
async def user_reputation(
    user_id: int, ctx: Context, limit: int = Query(50, ge=1, le=200),
):
    summary = await run_db(reputation_service.get_user_reputation, ctx, user_id)
    history = await run_db(reputation_service.get_reputation_history, ctx, user_id, limit)
    return {**summary, "history": history}


@router.get("/users/{user_id}/stats")
async def user_stats(user_id: int, ctx: Context):
    return await run_db(forum_service.get_user_stats, ctx, user_id)
