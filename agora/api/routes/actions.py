"""
agora.api.routes.actions — Subscriptions, bookmarks, polls, notifications
==========================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from agora.api.deps import Context, CurrentUser
from agora.database.engine import run_db
from agora.services import forum_service, poll_service, subscription_service

router = APIRouter(prefix="/forum-actions", tags=["forum-actions"])


class PollVoteBody(BaseModel):
    option_id: int = Field(alias="optionId")

    model_config = {"populate_by_name": True}


class SubscriptionSettingsBody(BaseModel):
    notify_replies: bool = Field(alias="notifyReplies")

    model_config = {"populate_by_name": True}


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------
@router.post("/subscribe/topic/{topic_id}")
async def toggle_topic_subscription(topic_id: int, ctx: Context, user_id: CurrentUser):
    subscribed = await run_db(
        subscription_service.toggle_subscription, ctx, user_id, topic_id=topic_id,
    )
    return {"success": True, "subscribed": subscribed}


@router.post("/subscribe/forum/{forum_id}")
async def toggle_forum_subscription(forum_id: int, ctx: Context, user_id: CurrentUser):
    subscribed = await run_db(
        subscription_service.toggle_subscription, ctx, user_id, forum_id=forum_id,
    )
    return {"success": True, "subscribed": subscribed}


@router.put("/subscriptions/topic/{topic_id}", status_code=201)
async def subscribe_topic(topic_id: int, ctx: Context, user_id: CurrentUser):
    await run_db(subscription_service.subscribe, ctx, user_id, topic_id=topic_id)
    return {"success": True, "subscribed": True}


@router.delete("/subscriptions/topic/{topic_id}")
async def unsubscribe_topic(topic_id: int, ctx: Context, user_id: CurrentUser):
    await run_db(subscription_service.unsubscribe, ctx, user_id, topic_id=topic_id)
    return {"success": True, "subscribed": False}


@router.put("/subscriptions/forum/{forum_id}", status_code=201)
async def subscribe_forum(forum_id: int, ctx: Context, user_id: CurrentUser):
    await run_db(subscription_service.subscribe, ctx, user_id, forum_id=forum_id)
    return {"success": True, "subscribed": True}


@router.delete("/subscriptions/forum/{forum_id}")
async def unsubscribe_forum(forum_id: int, ctx: Context, user_id: CurrentUser):
    await run_db(subscription_service.unsubscribe, ctx, user_id, forum_id=forum_id)
    return {"success": True, "subscribed": False}


@router.get("/subscriptions")
async def list_subscriptions(ctx: Context, user_id: CurrentUser):
    return {"subscriptions": await run_db(subscription_service.list_subscriptions, ctx, user_id)}


@router.get("/subscriptions/check/{topic_id}")
async def check_subscription(topic_id: int, ctx: Context, user_id: CurrentUser):
    return await run_db(subscription_service.check_subscription, ctx, user_id, topic_id)


@router.put("/subscriptions/{subscription_id}")
async def update_subscription(
    subscription_id: int, body: SubscriptionSettingsBody, ctx: Context, user_id: CurrentUser,
):
    subscription = await run_db(
        subscription_service.update_subscription,
        ctx, user_id, subscription_id, body.notify_replies,
    )
    return {"success": True, "subscription": subscription}



# ---------------------------------------------------------------------------
# Bookmarks
# ---------------------------------------------------------------------------
@router.post("/bookmark/{topic_id}")
async def toggle_bookmark(topic_id: int, ctx: Context, user_id: CurrentUser):
    bookmarked = await run_db(subscription_service.toggle_bookmark, ctx, user_id, topic_id)
    return {"success": True, "bookmarked": bookmarked}


@router.delete("/bookmark/{topic_id}")
async def remove_bookmark(topic_id: int, ctx: Context, user_id: CurrentUser):
    await run_db(subscription_service.unbookmark, ctx, user_id, topic_id)
    return {"success": True, "bookmarked": False}


@router.get("/bookmarks")
async def list_bookmarks(ctx: Context, user_id: CurrentUser):
    return {"bookmarks": await run_db(subscription_service.list_bookmarks, ctx, user_id)}


# ---------------------------------------------------------------------------
# Polls
# ---------------------------------------------------------------------------
@router.post("/poll/{poll_id}/vote")
async def vote_poll(poll_id: int, body: PollVoteBody, ctx: Context, user_id: CurrentUser):
    result = await run_db(poll_service.vote_poll, ctx, poll_id, user_id, body.option_id)
    return {"success": True, **result}


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
@router.get("/notifications")
async def list_notifications(
    ctx: Context,
    user_id: CurrentUser,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    return await run_db(subscription_service.list_notifications, ctx, user_id, page, limit)


@router.post("/notifications/read-all")
async def mark_all_read(ctx: Context, user_id: CurrentUser):
    updated = await run_db(subscription_service.mark_all_read, ctx, user_id)
    return {"success": True, "updated": updated}


@router.post("/notifications/{notification_id}/read")
async def mark_read(notification_id: int, ctx: Context, user_id: CurrentUser):
    await run_db(subscription_service.mark_read, ctx, user_id, notification_id)
    return {"success": True}


@router.get("/user-stats")
async def user_stats(ctx: Context, user_id: CurrentUser):
    return await run_db(forum_service.get_user_stats, ctx, user_id)
