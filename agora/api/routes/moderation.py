"""
agora.api.routes.moderation — Moderator endpoints
==================================================

Every write maps onto one typed action and goes through
:func:`agora.services.moderation_service.moderate`, which re-checks the
caller's moderator capability inside its transaction.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from agora.api.deps import Context, CurrentUser, get_admin, get_moderator
from agora.database.engine import run_db
from agora.engine.moderation import (
    BanUser,
    DeletePost,
    DeleteTopic,
    LockTopic,
    ModerationAction,
    MoveTopic,
    PinTopic,
    RestorePost,
    UnbanUser,
    WarnUser,
)
from agora.engine.permissions import Principal
from agora.services import moderation_service, reconciliation_service, search_service

router = APIRouter(prefix="/forum-mod", tags=["moderation"])


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------
class ReasonBody(BaseModel):
    reason: str | None = None


class LockBody(ReasonBody):
    locked: bool = True


class PinBody(ReasonBody):
    pinned: bool = True


class MoveBody(ReasonBody):
    forum_id: int = Field(alias="forumId")

    model_config = {"populate_by_name": True}


class WarnBody(ReasonBody):
    points: int = 1
    expires_at: datetime | None = Field(None, alias="expiresAt")

    model_config = {"populate_by_name": True}


class BanBody(ReasonBody):
    ban_type: str = Field("temporary", alias="banType")
    expires_at: datetime | None = Field(None, alias="expiresAt")

    model_config = {"populate_by_name": True}


async def _apply(ctx, moderator_id: int, action: ModerationAction, target_id: int, reason):
    entry = await run_db(
        moderation_service.moderate, ctx, moderator_id, action, target_id, reason,
    )
    return {"success": True, "log": entry}


# ---------------------------------------------------------------------------
# Topics
# ---------------------------------------------------------------------------
@router.post("/topic/{topic_id}/lock")
async def lock_topic(topic_id: int, body: LockBody, ctx: Context, user_id: CurrentUser):
    return await _apply(ctx, user_id, LockTopic(locked=body.locked), topic_id, body.reason)


@router.post("/topic/{topic_id}/pin")
async def pin_topic(topic_id: int, body: PinBody, ctx: Context, user_id: CurrentUser):
    return await _apply(ctx, user_id, PinTopic(pinned=body.pinned), topic_id, body.reason)


@router.post("/topic/{topic_id}/move")
async def move_topic(topic_id: int, body: MoveBody, ctx: Context, user_id: CurrentUser):
    return await _apply(
        ctx, user_id, MoveTopic(target_forum_id=body.forum_id), topic_id, body.reason,
    )


@router.delete("/topic/{topic_id}")
async def delete_topic(
    topic_id: int, ctx: Context, user_id: CurrentUser, reason: str | None = Query(None),
):
    return await _apply(ctx, user_id, DeleteTopic(), topic_id, reason)


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------
@router.post("/post/{post_id}/delete")
async def delete_post(post_id: int, body: ReasonBody, ctx: Context, user_id: CurrentUser):
    return await _apply(ctx, user_id, DeletePost(), post_id, body.reason)


@router.post("/post/{post_id}/restore")
async def restore_post(post_id: int, body: ReasonBody, ctx: Context, user_id: CurrentUser):
    return await _apply(ctx, user_id, RestorePost(), post_id, body.reason)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
@router.post("/user/{target_id}/warn")
async def warn_user(target_id: int, body: WarnBody, ctx: Context, user_id: CurrentUser):
    action = WarnUser(points=body.points, expires_at=body.expires_at)
    return await _apply(ctx, user_id, action, target_id, body.reason)


@router.post("/user/{target_id}/ban")
async def ban_user(target_id: int, body: BanBody, ctx: Context, user_id: CurrentUser):
    action = BanUser(ban_type=body.ban_type, expires_at=body.expires_at)
    return await _apply(ctx, user_id, action, target_id, body.reason)


@router.post("/user/{target_id}/unban")
async def unban_user(target_id: int, body: ReasonBody, ctx: Context, user_id: CurrentUser):
    return await _apply(ctx, user_id, UnbanUser(), target_id, body.reason)


@router.get("/user/{target_id}/warnings")
async def user_warnings(
    target_id: int,
    ctx: Context,
    _mod: Annotated[Principal, Depends(get_moderator)],
    active_only: bool = Query(True),
):
    return {
        "warnings": await run_db(
            moderation_service.list_user_warnings, ctx, target_id, active_only,
        ),
    }


# ---------------------------------------------------------------------------
# Log & maintenance
# ---------------------------------------------------------------------------
@router.get("/logs")
async def moderation_logs(
    ctx: Context,
    _mod: Annotated[Principal, Depends(get_moderator)],
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
):
    return await run_db(moderation_service.list_moderation_log, ctx, page, limit)


@router.post("/recount")
async def recount(
    ctx: Context,
    _admin: Annotated[Principal, Depends(get_admin)],
    forum_id: int | None = Query(None),
):
    return await run_db(reconciliation_service.recount_counters, ctx, forum_id)


@router.post("/rebuild-search")
async def rebuild_search(ctx: Context, _admin: Annotated[Principal, Depends(get_admin)]):
    indexed = await run_db(search_service.rebuild_search_index, ctx)
    return {"success": True, "indexed": indexed}
