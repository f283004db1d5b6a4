"""
agora.services.moderation_service — Audited Moderation Actions
===============================================================

Every moderation write follows the same pattern:
  1. Begin transaction, load the moderator's principal, require moderator capability
  2. Run the action's handler (validates, then mutates)
  3. Append exactly one ``forum_moderation_log`` row
  4. Commit, then invalidate affected cache paths

Handlers are looked up by action type in :data:`ACTION_HANDLERS`; the
action itself is one of the typed dataclasses from
:mod:`agora.engine.moderation`.  The moderation log is append-only;
nothing in this package updates or deletes its rows.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from agora.constants import FORUM_LIST_PATH, forum_view_path, topic_view_path
from agora.context import invalidate_paths
from agora.database.engine import transaction
from agora.database.models import (
    Ban,
    Forum,
    ForumWarning,
    ModerationLogEntry,
    NotificationType,
    Post,
    Topic,
    User,
)
from agora.engine.moderation import (
    REASON_REQUIRED,
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
from agora.engine.permissions import ban_is_active, can_moderate, warning_is_active
from agora.errors import Conflict, Forbidden, InvalidInput, NotFound
from agora.services import subscription_service
from agora.services.forum_service import (
    active_ban,
    floored_decrement,
    live_post_count,
    load_principal,
    mark_post_deleted,
    recompute_forum_pointer,
    remove_topic,
    restore_post,
)

if TYPE_CHECKING:
    from agora.context import ForumContext

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Outcome:
    """What a handler reports back to the dispatcher."""

    details: str | None = None
    cache_paths: list[str] = field(default_factory=list)


_Handler = Callable[[Session, int, ModerationAction, int, str | None], _Outcome]


# ---------------------------------------------------------------------------
# Lookup helpers
# ---------------------------------------------------------------------------
def _topic_or_404(session: Session, topic_id: int) -> Topic:
    topic = session.get(Topic, topic_id)
    if topic is None:
        raise NotFound("Topic not found")
    return topic


def _post_or_404(session: Session, post_id: int) -> Post:
    post = session.get(Post, post_id)
    if post is None:
        raise NotFound("Post not found")
    return post


def _user_or_404(session: Session, user_id: int) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found")
    return user


def _topic_paths(topic: Topic) -> list[str]:
    return [FORUM_LIST_PATH, forum_view_path(topic.forum_id), topic_view_path(topic.slug)]


# ---------------------------------------------------------------------------
# Topic handlers
# ---------------------------------------------------------------------------
def _lock_topic(session, moderator_id, action: LockTopic, target_id, reason) -> _Outcome:
    topic = _topic_or_404(session, target_id)
    topic.locked = action.locked
    return _Outcome(cache_paths=_topic_paths(topic))


def _pin_topic(session, moderator_id, action: PinTopic, target_id, reason) -> _Outcome:
    topic = _topic_or_404(session, target_id)
    topic.pinned = action.pinned
    return _Outcome(cache_paths=_topic_paths(topic))


def _move_topic(session, moderator_id, action: MoveTopic, target_id, reason) -> _Outcome:
    topic = _topic_or_404(session, target_id)
    target = session.get(Forum, action.target_forum_id)
    if target is None:
        raise NotFound("Target forum not found")
    source = session.get(Forum, topic.forum_id)
    if source.id == target.id:
        raise InvalidInput("Topic is already in that forum")

    moved_posts = live_post_count(session, topic.id)
    topic.forum_id = target.id

    source.topics_count = floored_decrement(Forum.topics_count)
    source.posts_count = floored_decrement(Forum.posts_count, moved_posts)
    target.topics_count = Forum.topics_count + 1
    target.posts_count = Forum.posts_count + moved_posts
    session.flush()

    recompute_forum_pointer(session, source)
    recompute_forum_pointer(session, target)
    return _Outcome(
        details=f"Moved from forum {source.id} to {target.id}",
        cache_paths=[
            FORUM_LIST_PATH,
            forum_view_path(source.id),
            forum_view_path(target.id),
            topic_view_path(topic.slug),
        ],
    )


def _delete_topic(session, moderator_id, action: DeleteTopic, target_id, reason) -> _Outcome:
    topic = _topic_or_404(session, target_id)
    paths = _topic_paths(topic)
    title = topic.title
    remove_topic(session, topic)
    return _Outcome(details=f"Deleted topic: {title}", cache_paths=paths)


# ---------------------------------------------------------------------------
# Post handlers
# ---------------------------------------------------------------------------
def _delete_post(session, moderator_id, action: DeletePost, target_id, reason) -> _Outcome:
    post = _post_or_404(session, target_id)
    if post.deleted:
        raise InvalidInput("Post already deleted")
    topic, _forum = mark_post_deleted(session, post, moderator_id)
    return _Outcome(cache_paths=_topic_paths(topic))


def _restore_post(session, moderator_id, action: RestorePost, target_id, reason) -> _Outcome:
    post = _post_or_404(session, target_id)
    if not post.deleted:
        raise InvalidInput("Post is not deleted")
    topic, _forum = restore_post(session, post)
    return _Outcome(cache_paths=_topic_paths(topic))


# ---------------------------------------------------------------------------
# User handlers
# ---------------------------------------------------------------------------
def _warn_user(session, moderator_id, action: WarnUser, target_id, reason) -> _Outcome:
    _user_or_404(session, target_id)
    if action.points < 1:
        raise InvalidInput("Warning points must be at least 1")
    session.add(ForumWarning(
        user_id=target_id,
        moderator_id=moderator_id,
        reason=reason,
        points=action.points,
        expires_at=action.expires_at,
    ))
    subscription_service.notify_user(
        session, target_id, NotificationType.WARNING,
        f"You have received a warning: {reason}", from_user_id=moderator_id,
    )
    return _Outcome(details=f"Warning points: {action.points}")


def _ban_user(session, moderator_id, action: BanUser, target_id, reason) -> _Outcome:
    _user_or_404(session, target_id)
    if active_ban(session, target_id) is not None:
        raise Conflict("User is already banned")
    session.add(Ban(
        user_id=target_id,
        banned_by=moderator_id,
        reason=reason,
        ban_type=action.ban_type,
        expires_at=action.expires_at,
    ))
    subscription_service.notify_user(
        session, target_id, NotificationType.BAN,
        f"You have been banned: {reason}", from_user_id=moderator_id,
    )
    return _Outcome(details=f"Ban type: {action.ban_type}")


def _unban_user(session, moderator_id, action: UnbanUser, target_id, reason) -> _Outcome:
    _user_or_404(session, target_id)
    bans = session.scalars(
        select(Ban).where(Ban.user_id == target_id, Ban.active.is_(True))
    ).all()
    bans = [ban for ban in bans if ban_is_active(ban)]
    if not bans:
        raise NotFound("User has no active ban")
    for ban in bans:
        ban.active = False
    return _Outcome(details=f"Lifted {len(bans)} ban(s)")


ACTION_HANDLERS: dict[type, _Handler] = {
    LockTopic: _lock_topic,
    PinTopic: _pin_topic,
    MoveTopic: _move_topic,
    DeleteTopic: _delete_topic,
    DeletePost: _delete_post,
    RestorePost: _restore_post,
    WarnUser: _warn_user,
    BanUser: _ban_user,
    UnbanUser: _unban_user,
}


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------
def moderate(
    ctx: ForumContext,
    moderator_id: int,
    action: ModerationAction,
    target_id: int,
    reason: str | None = None,
) -> dict:
    """Apply *action* to *target_id* on behalf of *moderator_id*.

    Returns the written log entry as a dict.

    Raises
    ------
    Forbidden
        The acting user lacks moderator/admin capability.
    InvalidInput
        Missing reason on a warn/ban, or the action does not fit the
        target's current state.
    NotFound
        Target (or move destination) missing; unban with no active ban.
    Conflict
        Banning a user who already has an active ban.
    """
    handler = ACTION_HANDLERS.get(type(action))
    if handler is None:
        raise InvalidInput(f"Unknown moderation action: {type(action).__name__}")
    reason = (reason or "").strip() or None
    if isinstance(action, REASON_REQUIRED) and not reason:
        raise InvalidInput("Reason is required")

    with transaction(ctx.engine) as session:
        principal = load_principal(session, moderator_id)
        if not can_moderate(principal):
            raise Forbidden("Moderator privileges required")

        outcome = handler(session, moderator_id, action, target_id, reason)

        entry = ModerationLogEntry(
            moderator_id=moderator_id,
            action=action.log_action,
            target_type=action.target,
            target_id=target_id,
            reason=reason,
            details=outcome.details,
            created_at=datetime.now(UTC),
        )
        session.add(entry)
        session.flush()
        result = {
            "log_id": entry.id,
            "action": str(action.log_action),
            "target_type": str(action.target),
            "target_id": target_id,
            "details": outcome.details,
        }

    invalidate_paths(ctx, *outcome.cache_paths)
    logger.info(
        "Moderator %d: %s %s %d%s",
        moderator_id, action.log_action, action.target, target_id,
        f" ({outcome.details})" if outcome.details else "",
    )
    return result


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def list_moderation_log(ctx: ForumContext, page: int = 1, limit: int = 50) -> dict:
    """Moderation log, newest first, with the moderator's username."""
    page = max(page, 1)
    limit = max(limit, 1)
    with Session(ctx.engine) as session:
        rows = session.execute(
            select(ModerationLogEntry, User.username)
            .outerjoin(User, User.id == ModerationLogEntry.moderator_id)
            .order_by(ModerationLogEntry.created_at.desc(), ModerationLogEntry.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        ).all()
        total = session.scalar(select(func.count()).select_from(ModerationLogEntry)) or 0
        logs = [
            {
                "id": e.id,
                "moderator_id": e.moderator_id,
                "moderator_username": username,
                "action": e.action,
                "target_type": e.target_type,
                "target_id": e.target_id,
                "reason": e.reason,
                "details": e.details,
                "created_at": e.created_at,
            }
            for e, username in rows
        ]
    return {
        "logs": logs,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }


def list_user_warnings(ctx: ForumContext, user_id: int, active_only: bool = True) -> list[dict]:
    with Session(ctx.engine) as session:
        stmt = select(ForumWarning).where(ForumWarning.user_id == user_id)
        rows = session.scalars(
            stmt.order_by(ForumWarning.created_at.desc(), ForumWarning.id.desc())
        ).all()
        if active_only:
            rows = [w for w in rows if warning_is_active(w)]
        return [
            {
                "id": w.id,
                "moderator_id": w.moderator_id,
                "reason": w.reason,
                "points": w.points,
                "expires_at": w.expires_at,
                "active": w.active,
                "created_at": w.created_at,
            }
            for w in rows
        ]
