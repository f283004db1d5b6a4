"""
agora.services.subscription_service — Subscriptions, Bookmarks & Notifications
===============================================================================

Subscriptions point at exactly one topic or one forum
(:class:`~agora.database.models.SubscriptionScope`).  Fan-out branches on
scope:

* topic subscribers get a ``reply`` notification for every reply;
* forum subscribers follow ``config.forum_subscription_fanout``:
  ``new_topics`` → a ``new_topic`` notification when a topic is opened,
  ``replies`` → that plus a ``reply`` notification for every reply in
  the forum, ``off`` → nothing.

Each recipient gets at most one notification per event and the actor
never notifies themself.  Fan-out runs in the caller's transaction.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from agora.config import FANOUT_NEW_TOPICS, FANOUT_REPLIES
from agora.database.engine import transaction
from agora.database.models import (
    Bookmark,
    Forum,
    Notification,
    NotificationType,
    Post,
    Subscription,
    SubscriptionScope,
    Topic,
    User,
)
from agora.errors import Conflict, Forbidden, InvalidInput, NotFound

if TYPE_CHECKING:
    from agora.config import AgoraConfig
    from agora.context import ForumContext

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Fan-out (caller's transaction)
# ---------------------------------------------------------------------------
def _topic_subscribers(session: Session, topic_id: int) -> set[int]:
    return set(session.scalars(
        select(Subscription.user_id).distinct()
        .where(Subscription.topic_id == topic_id, Subscription.notify_replies.is_(True))
    ).all())


def _forum_subscribers(session: Session, forum_id: int) -> set[int]:
    return set(session.scalars(
        select(Subscription.user_id).distinct()
        .where(Subscription.forum_id == forum_id, Subscription.notify_replies.is_(True))
    ).all())


def fan_out_reply(
    session: Session, config: AgoraConfig, topic: Topic, post: Post, actor_id: int,
) -> int:
    """Notify subscribers of a new reply.  Returns the number of notifications."""
    recipients = _topic_subscribers(session, topic.id)
    if config.forum_subscription_fanout == FANOUT_REPLIES:
        recipients |= _forum_subscribers(session, topic.forum_id)
    recipients.discard(actor_id)

    for user_id in sorted(recipients):
        session.add(Notification(
            user_id=user_id,
            type=NotificationType.REPLY,
            topic_id=topic.id,
            post_id=post.id,
            from_user_id=actor_id,
            content=f"New reply in: {topic.title}",
        ))
    return len(recipients)


def fan_out_new_topic(
    session: Session, config: AgoraConfig, topic: Topic, post: Post, actor_id: int,
) -> int:
    if config.forum_subscription_fanout not in (FANOUT_NEW_TOPICS, FANOUT_REPLIES):
        return 0
    recipients = _forum_subscribers(session, topic.forum_id)
    recipients.discard(actor_id)

    for user_id in sorted(recipients):
        session.add(Notification(
            user_id=user_id,
            type=NotificationType.NEW_TOPIC,
            topic_id=topic.id,
            post_id=post.id,
            from_user_id=actor_id,
            content=f"New topic: {topic.title}",
        ))
    return len(recipients)


def notify_user(
    session: Session,
    user_id: int,
    type_: NotificationType,
    content: str,
    from_user_id: int | None = None,
) -> Notification:
    """Direct notification to one user (warnings, bans)."""
    note = Notification(
        user_id=user_id, type=type_, from_user_id=from_user_id, content=content,
    )
    session.add(note)
    return note


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------
def _resolve_target(
    session: Session, topic_id: int | None, forum_id: int | None,
) -> tuple[SubscriptionScope, int]:
    if (topic_id is None) == (forum_id is None):
        raise InvalidInput("Subscribe to exactly one of a topic or a forum")
    if topic_id is not None:
        if session.get(Topic, topic_id) is None:
            raise NotFound("Topic not found")
        return SubscriptionScope.TOPIC, topic_id
    if session.get(Forum, forum_id) is None:
        raise NotFound("Forum not found")
    return SubscriptionScope.FORUM, forum_id


def _existing(
    session: Session, user_id: int, scope: SubscriptionScope, target_id: int,
) -> Subscription | None:
    column = Subscription.topic_id if scope == SubscriptionScope.TOPIC else Subscription.forum_id
    return session.scalar(
        select(Subscription).where(Subscription.user_id == user_id, column == target_id)
    )


def subscribe(
    ctx: ForumContext,
    user_id: int,
    topic_id: int | None = None,
    forum_id: int | None = None,
) -> int:
    with transaction(ctx.engine) as session:
        scope, target_id = _resolve_target(session, topic_id, forum_id)
        if _existing(session, user_id, scope, target_id) is not None:
            raise Conflict(f"Already subscribed to this {scope}")
        sub = Subscription(
            user_id=user_id,
            scope=scope,
            topic_id=topic_id,
            forum_id=forum_id,
            notify_replies=True,
        )
        session.add(sub)
        session.flush()
        sub_id = sub.id
    logger.info("User %d subscribed to %s %d", user_id, scope, target_id)
    return sub_id


def unsubscribe(
    ctx: ForumContext,
    user_id: int,
    topic_id: int | None = None,
    forum_id: int | None = None,
) -> None:
    with transaction(ctx.engine) as session:
        scope, target_id = _resolve_target(session, topic_id, forum_id)
        sub = _existing(session, user_id, scope, target_id)
        if sub is None:
            raise NotFound(f"Not subscribed to this {scope}")
        session.delete(sub)
    logger.info("User %d unsubscribed from %s %d", user_id, scope, target_id)


def toggle_subscription(
    ctx: ForumContext,
    user_id: int,
    topic_id: int | None = None,
    forum_id: int | None = None,
) -> bool:
    """Subscribe when not subscribed, otherwise unsubscribe.  Returns the new state."""
    with transaction(ctx.engine) as session:
        scope, target_id = _resolve_target(session, topic_id, forum_id)
        sub = _existing(session, user_id, scope, target_id)
        if sub is not None:
            session.delete(sub)
            return False
        session.add(Subscription(
            user_id=user_id,
            scope=scope,
            topic_id=topic_id,
            forum_id=forum_id,
            notify_replies=True,
        ))
        return True


def is_subscribed(session: Session, user_id: int, topic_id: int) -> bool:
    return _existing(session, user_id, SubscriptionScope.TOPIC, topic_id) is not None


def _subscription_dict(sub: Subscription) -> dict:
    return {
        "id": sub.id,
        "scope": sub.scope,
        "topic_id": sub.topic_id,
        "forum_id": sub.forum_id,
        "notify_replies": sub.notify_replies,
        "subscribed_at": sub.subscribed_at,
    }


def list_subscriptions(ctx: ForumContext, user_id: int) -> list[dict]:
    """The user's subscriptions, newest first, with topic/forum names joined in."""
    with Session(ctx.engine) as session:
        rows = session.execute(
            select(Subscription, Topic.title, Topic.slug, Forum.name)
            .outerjoin(Topic, Topic.id == Subscription.topic_id)
            .outerjoin(Forum, Forum.id == Subscription.forum_id)
            .where(Subscription.user_id == user_id)
            .order_by(Subscription.subscribed_at.desc(), Subscription.id.desc())
        ).all()
        return [
            {
                **_subscription_dict(sub),
                "topic_title": title,
                "topic_slug": slug,
                "forum_name": forum_name,
            }
            for sub, title, slug, forum_name in rows
        ]


def check_subscription(ctx: ForumContext, user_id: int, topic_id: int) -> dict:
    with Session(ctx.engine) as session:
        sub = _existing(session, user_id, SubscriptionScope.TOPIC, topic_id)
        return {
            "subscribed": sub is not None,
            "subscription": _subscription_dict(sub) if sub is not None else None,
        }


def update_subscription(
    ctx: ForumContext, user_id: int, subscription_id: int, notify_replies: bool,
) -> dict:
    """Change a subscription's settings.  Only its owner may do so.

    Raises
    ------
    NotFound
        No such subscription.
    Forbidden
        The subscription belongs to another user.
    """
    with transaction(ctx.engine) as session:
        sub = session.get(Subscription, subscription_id)
        if sub is None:
            raise NotFound("Subscription not found")
        if sub.user_id != user_id:
            raise Forbidden("Not your subscription")
        sub.notify_replies = notify_replies
        session.flush()
        result = _subscription_dict(sub)
    logger.info(
        "Subscription %d updated by user %d (notify_replies=%s)",
        subscription_id, user_id, notify_replies,
    )
    return result



# ---------------------------------------------------------------------------
# Bookmarks
# ---------------------------------------------------------------------------
def bookmark(ctx: ForumContext, user_id: int, topic_id: int) -> None:
    with transaction(ctx.engine) as session:
        if session.get(Topic, topic_id) is None:
            raise NotFound("Topic not found")
        if is_bookmarked(session, user_id, topic_id):
            raise Conflict("Topic already bookmarked")
        session.add(Bookmark(user_id=user_id, topic_id=topic_id))


def unbookmark(ctx: ForumContext, user_id: int, topic_id: int) -> None:
    with transaction(ctx.engine) as session:
        result = session.execute(
            delete(Bookmark).where(Bookmark.user_id == user_id, Bookmark.topic_id == topic_id)
        )
        if result.rowcount == 0:
            raise NotFound("Bookmark not found")


def toggle_bookmark(ctx: ForumContext, user_id: int, topic_id: int) -> bool:
    with transaction(ctx.engine) as session:
        if session.get(Topic, topic_id) is None:
            raise NotFound("Topic not found")
        existing = session.scalar(
            select(Bookmark).where(Bookmark.user_id == user_id, Bookmark.topic_id == topic_id)
        )
        if existing is not None:
            session.delete(existing)
            return False
        session.add(Bookmark(user_id=user_id, topic_id=topic_id))
        return True


def is_bookmarked(session: Session, user_id: int, topic_id: int) -> bool:
    return session.scalar(
        select(Bookmark.id).where(Bookmark.user_id == user_id, Bookmark.topic_id == topic_id)
    ) is not None


def list_bookmarks(ctx: ForumContext, user_id: int) -> list[dict]:
    with Session(ctx.engine) as session:
        rows = session.execute(
            select(Bookmark, Topic, Forum.name)
            .join(Topic, Topic.id == Bookmark.topic_id)
            .join(Forum, Forum.id == Topic.forum_id)
            .where(Bookmark.user_id == user_id)
            .order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
        ).all()
        return [
            {
                "topic_id": topic.id,
                "title": topic.title,
                "slug": topic.slug,
                "replies": topic.replies,
                "forum_name": forum_name,
                "bookmarked_at": bm.created_at,
            }
            for bm, topic, forum_name in rows
        ]


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
def list_notifications(
    ctx: ForumContext, user_id: int, page: int = 1, limit: int = 20,
) -> dict:
    page = max(page, 1)
    limit = max(limit, 1)
    with Session(ctx.engine) as session:
        rows = session.execute(
            select(Notification, Topic.title, Topic.slug, User.username)
            .outerjoin(Topic, Topic.id == Notification.topic_id)
            .outerjoin(User, User.id == Notification.from_user_id)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        ).all()
        unread = session.scalar(
            select(func.count()).select_from(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
        ) or 0
        total = session.scalar(
            select(func.count()).select_from(Notification)
            .where(Notification.user_id == user_id)
        ) or 0
        notifications = [
            {
                "id": n.id,
                "type": n.type,
                "content": n.content,
                "read": n.read,
                "topic_id": n.topic_id,
                "topic_title": title,
                "topic_slug": slug,
                "post_id": n.post_id,
                "from_user_id": n.from_user_id,
                "from_username": from_username,
                "created_at": n.created_at,
            }
            for n, title, slug, from_username in rows
        ]
    return {
        "notifications": notifications,
        "unread_count": unread,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }


def mark_read(ctx: ForumContext, user_id: int, notification_id: int) -> None:
    with transaction(ctx.engine) as session:
        result = session.execute(
            update(Notification)
            .where(Notification.id == notification_id, Notification.user_id == user_id)
            .values(read=True)
        )
        if result.rowcount == 0:
            raise NotFound("Notification not found")


def mark_all_read(ctx: ForumContext, user_id: int) -> int:
    with transaction(ctx.engine) as session:
        result = session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True)
        )
        return result.rowcount
