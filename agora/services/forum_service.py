"""
agora.services.forum_service — Topic & Post Lifecycle
======================================================

Creates topics and replies, edits and soft-deletes posts, hard-deletes
topics, and serves the forum/topic read views.

Every mutation runs in one :func:`~agora.database.engine.transaction`:
counters, last-post pointers, reputation ledger rows, search index rows
and notifications commit together or not at all.  Cache invalidation
happens after commit and is best-effort.

Counter invariants maintained here (and re-derived by
:mod:`agora.services.reconciliation_service`):

* ``forums.topics_count``  = topics in the forum
* ``forums.posts_count``   = non-deleted posts in the forum's topics
* ``forum_topics.replies`` = non-deleted posts in the topic − 1

Counters move with single-statement SQL expressions
(``Forum.posts_count + 1``) so concurrent writers don't lose updates.
Last-post pointers are always re-derived from the remaining non-deleted
posts after a removal; they cannot be decremented.
"""

from __future__ import annotations

import logging
import math
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from agora.constants import (
    FORUM_LIST_PATH,
    MAX_CONTENT_LENGTH,
    MAX_TITLE_LENGTH,
    REPUTATION_VALUES,
    forum_view_path,
    topic_view_path,
)
from agora.context import invalidate_paths
from agora.database.engine import transaction
from agora.database.models import (
    Ban,
    Bookmark,
    Category,
    Forum,
    ForumPermission,
    ForumWarning,
    Post,
    PostVote,
    Subscription,
    Topic,
    User,
    UserGroup,
    UserGroupMembership,
    VoteType,
)
from agora.engine.permissions import (
    Principal,
    ban_is_active,
    can_modify_post,
    can_post,
    can_reply,
    warning_is_active,
)
from agora.engine.slugs import slugify
from agora.errors import Conflict, Forbidden, InvalidInput, NotFound
from agora.services import (
    poll_service,
    reputation_service,
    search_service,
    subscription_service,
)

if TYPE_CHECKING:
    from agora.context import ForumContext
    from agora.services.poll_service import PollSpec

logger = logging.getLogger(__name__)


class _SlugCollision(Exception):
    """Raised inside a create_topic attempt to roll it back and retry."""


# ---------------------------------------------------------------------------
# Principal & ban lookups
# ---------------------------------------------------------------------------
def load_principal(session: Session, user_id: int) -> Principal:
    """Resolve *user_id* into a :class:`Principal` with group flags."""
    user = session.get(User, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found")
    groups = session.scalars(
        select(UserGroup)
        .join(UserGroupMembership, UserGroupMembership.group_id == UserGroup.id)
        .where(UserGroupMembership.user_id == user_id)
    ).all()
    return Principal(
        user_id=user.id,
        role=user.role,
        group_ids=frozenset(g.id for g in groups),
        is_moderator_group=any(g.is_moderator for g in groups),
        is_admin_group=any(g.is_admin for g in groups),
    )


def active_ban(session: Session, user_id: int) -> Ban | None:
    """The user's currently-restricting ban, if any (expired bans are ignored)."""
    bans = session.scalars(
        select(Ban)
        .where(Ban.user_id == user_id, Ban.active.is_(True))
        .order_by(Ban.created_at.desc(), Ban.id.desc())
    ).all()
    for ban in bans:
        if ban_is_active(ban):
            return ban
    return None


def ensure_not_banned(session: Session, user_id: int) -> None:
    ban = active_ban(session, user_id)
    if ban is not None:
        raise Forbidden(f"You are banned: {ban.reason}")


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
def _clean_title(title: str | None) -> str:
    title = (title or "").strip()
    if not title:
        raise InvalidInput("Title is required")
    if len(title) > MAX_TITLE_LENGTH:
        raise InvalidInput(f"Title must be at most {MAX_TITLE_LENGTH} characters")
    return title


def _clean_content(content: str | None) -> str:
    content = (content or "").strip()
    if not content:
        raise InvalidInput("Content is required")
    if len(content) > MAX_CONTENT_LENGTH:
        raise InvalidInput(f"Content must be at most {MAX_CONTENT_LENGTH} characters")
    return content


# ---------------------------------------------------------------------------
# Counter & pointer maintenance (shared with moderation_service)
# ---------------------------------------------------------------------------
def floored_decrement(column, amount: int = 1):
    """``max(column - amount, 0)`` as a portable SQL expression."""
    return case((column > amount, column - amount), else_=0)


def _apply_post_pointer(topic: Topic, forum: Forum, post: Post) -> None:
    topic.last_post_id = post.id
    topic.last_post_user_id = post.user_id
    topic.last_post_time = post.created_at
    forum.last_post_id = post.id
    forum.last_post_topic_id = topic.id
    forum.last_post_user_id = post.user_id
    forum.last_post_time = post.created_at


def recompute_topic_pointer(session: Session, topic: Topic) -> Post | None:
    """Point the topic at its newest non-deleted post, or clear the pointer."""
    latest = session.scalar(
        select(Post)
        .where(Post.topic_id == topic.id, Post.deleted.is_(False))
        .order_by(Post.created_at.desc(), Post.id.desc())
        .limit(1)
    )
    topic.last_post_id = latest.id if latest else None
    topic.last_post_user_id = latest.user_id if latest else None
    topic.last_post_time = latest.created_at if latest else None
    return latest


def recompute_forum_pointer(session: Session, forum: Forum) -> Post | None:
    """Point the forum at the newest non-deleted post in any of its topics."""
    latest = session.scalar(
        select(Post)
        .join(Topic, Topic.id == Post.topic_id)
        .where(Topic.forum_id == forum.id, Post.deleted.is_(False))
        .order_by(Post.created_at.desc(), Post.id.desc())
        .limit(1)
    )
    forum.last_post_id = latest.id if latest else None
    forum.last_post_topic_id = latest.topic_id if latest else None
    forum.last_post_user_id = latest.user_id if latest else None
    forum.last_post_time = latest.created_at if latest else None
    return latest


def live_post_count(session: Session, topic_id: int) -> int:
    return session.scalar(
        select(func.count()).select_from(Post)
        .where(Post.topic_id == topic_id, Post.deleted.is_(False))
    ) or 0


def mark_post_deleted(session: Session, post: Post, actor_id: int) -> tuple[Topic, Forum]:
    """Soft-delete *post*, decrement the forum counter, re-derive replies and pointers.

    Caller has already checked authorization and that the post is live.
    """
    topic = session.get(Topic, post.topic_id)
    forum = session.get(Forum, topic.forum_id)

    post.deleted = True
    post.deleted_by = actor_id
    post.deleted_at = datetime.now(UTC)

    forum.posts_count = floored_decrement(Forum.posts_count)
    session.flush()
    topic.replies = max(live_post_count(session, topic.id) - 1, 0)

    recompute_topic_pointer(session, topic)
    recompute_forum_pointer(session, forum)
    return topic, forum


def restore_post(session: Session, post: Post) -> tuple[Topic, Forum]:
    """Undo a soft delete: forum counter back up, replies and pointers re-derived."""
    topic = session.get(Topic, post.topic_id)
    forum = session.get(Forum, topic.forum_id)

    post.deleted = False
    post.deleted_by = None
    post.deleted_at = None

    forum.posts_count = Forum.posts_count + 1
    session.flush()
    topic.replies = max(live_post_count(session, topic.id) - 1, 0)

    recompute_topic_pointer(session, topic)
    recompute_forum_pointer(session, forum)
    return topic, forum


def remove_topic(session: Session, topic: Topic) -> tuple[Forum, int]:
    """Hard-delete *topic*; posts, votes, poll, index rows, subscriptions,
    bookmarks and notifications cascade.  Returns the forum and the
    number of live posts removed from its counters.
    """
    forum = session.get(Forum, topic.forum_id)
    removed_posts = live_post_count(session, topic.id)

    session.delete(topic)
    session.flush()

    forum.topics_count = floored_decrement(Forum.topics_count)
    forum.posts_count = floored_decrement(Forum.posts_count, removed_posts)
    session.flush()
    recompute_forum_pointer(session, forum)
    return forum, removed_posts


# ---------------------------------------------------------------------------
# CreateTopic
# ---------------------------------------------------------------------------
def create_topic(
    ctx: ForumContext,
    forum_id: int,
    user_id: int,
    title: str,
    content: str,
    poll: PollSpec | None = None,
) -> dict:
    """Open a topic with its first post.

    Returns ``{"topic_id", "slug", "post_id", "poll_id"}``.

    Raises
    ------
    NotFound
        Forum or user missing.
    Forbidden
        Forum locked (non-admin), posting not permitted, or user banned.
    InvalidInput
        Blank/oversized title or content, or a poll with < 2 options.
    Conflict
        A unique slug could not be generated within the retry budget.
    """
    title = _clean_title(title)
    content = _clean_content(content)
    if poll is not None:
        poll.validate()

    attempts = max(ctx.config.slug_retry_attempts, 1)
    for attempt in range(1, attempts + 1):
        try:
            result = _create_topic_once(ctx, forum_id, user_id, title, content, poll)
            break
        except _SlugCollision as exc:
            logger.warning(
                "Slug collision on %s (attempt %d/%d)", exc, attempt, attempts,
            )
    else:
        raise Conflict("Could not allocate a unique slug; please retry")

    invalidate_paths(ctx, FORUM_LIST_PATH, forum_view_path(forum_id))
    logger.info(
        "Topic %d (%s) created in forum %d by user %d",
        result["topic_id"], result["slug"], forum_id, user_id,
    )
    return result


def _create_topic_once(
    ctx: ForumContext,
    forum_id: int,
    user_id: int,
    title: str,
    content: str,
    poll: PollSpec | None,
) -> dict:
    with transaction(ctx.engine) as session:
        forum = session.get(Forum, forum_id)
        if forum is None:
            raise NotFound("Forum not found")
        principal = load_principal(session, user_id)
        if forum.locked and not principal.is_admin:
            raise Forbidden("This forum is locked")
        rows = session.scalars(
            select(ForumPermission).where(ForumPermission.forum_id == forum_id)
        ).all()
        if not can_post(principal, forum, rows, ctx.config):
            raise Forbidden("You do not have permission to post in this forum")
        ensure_not_banned(session, user_id)

        now = datetime.now(UTC)
        slug = slugify(title)
        topic = Topic(forum_id=forum_id, user_id=user_id, title=title, slug=slug, created_at=now)
        session.add(topic)
        try:
            session.flush()
        except IntegrityError as exc:
            raise _SlugCollision(slug) from exc

        post = Post(topic_id=topic.id, user_id=user_id, content=content, created_at=now)
        session.add(post)
        session.flush()

        _apply_post_pointer(topic, forum, post)
        forum.topics_count = Forum.topics_count + 1
        forum.posts_count = Forum.posts_count + 1

        reputation_service.award_reputation(
            session, user_id, "TOPIC_CREATED", REPUTATION_VALUES["TOPIC_CREATED"],
            f"Created topic: {title}", topic.id,
        )
        reputation_service.award_reputation(
            session, user_id, "POST_CREATED", REPUTATION_VALUES["POST_CREATED"],
            f"Posted in topic: {title}", post.id,
        )

        poll_id = None
        if poll is not None:
            poll_id = poll_service.create_poll(session, topic, poll).id

        search_service.index_post(session, post)
        subscription_service.fan_out_new_topic(session, ctx.config, topic, post, user_id)

        return {"topic_id": topic.id, "slug": slug, "post_id": post.id, "poll_id": poll_id}


# ---------------------------------------------------------------------------
# Reply
# ---------------------------------------------------------------------------
def reply(ctx: ForumContext, topic_id: int, user_id: int, content: str) -> int:
    """Append a post to a topic.  Returns the new post id."""
    content = _clean_content(content)

    with transaction(ctx.engine) as session:
        topic = session.get(Topic, topic_id)
        if topic is None:
            raise NotFound("Topic not found")
        forum = session.get(Forum, topic.forum_id)
        principal = load_principal(session, user_id)
        if not can_reply(principal, topic, forum):
            raise Forbidden("This topic is locked")
        ensure_not_banned(session, user_id)

        post = Post(
            topic_id=topic.id, user_id=user_id, content=content,
            created_at=datetime.now(UTC),
        )
        session.add(post)
        session.flush()

        topic.replies = Topic.replies + 1
        forum.posts_count = Forum.posts_count + 1
        _apply_post_pointer(topic, forum, post)

        search_service.index_post(session, post)
        notified = subscription_service.fan_out_reply(
            session, ctx.config, topic, post, user_id,
        )

        post_id = post.id
        forum_id = forum.id
        slug = topic.slug

    invalidate_paths(ctx, FORUM_LIST_PATH, forum_view_path(forum_id), topic_view_path(slug))
    logger.info(
        "Reply %d posted to topic %d by user %d (%d notified)",
        post_id, topic_id, user_id, notified,
    )
    return post_id


# ---------------------------------------------------------------------------
# EditPost / SoftDeletePost / DeleteTopic
# ---------------------------------------------------------------------------
def edit_post(ctx: ForumContext, post_id: int, user_id: int, content: str) -> None:
    content = _clean_content(content)

    with transaction(ctx.engine) as session:
        post = session.get(Post, post_id)
        if post is None:
            raise NotFound("Post not found")
        principal = load_principal(session, user_id)
        if not can_modify_post(principal, post.user_id):
            raise Forbidden("Not authorized to edit this post")

        post.content = content
        post.edited_by = user_id
        post.edited_at = datetime.now(UTC)
        search_service.reindex_post(session, post)
        slug = post.topic.slug

    invalidate_paths(ctx, topic_view_path(slug))
    logger.info("Post %d edited by user %d", post_id, user_id)


def soft_delete_post(ctx: ForumContext, post_id: int, user_id: int) -> None:
    with transaction(ctx.engine) as session:
        post = session.get(Post, post_id)
        if post is None:
            raise NotFound("Post not found")
        principal = load_principal(session, user_id)
        if not can_modify_post(principal, post.user_id):
            raise Forbidden("Not authorized to delete this post")
        if post.deleted:
            raise InvalidInput("Post already deleted")

        topic, forum = mark_post_deleted(session, post, user_id)
        forum_id = forum.id
        slug = topic.slug

    invalidate_paths(ctx, FORUM_LIST_PATH, forum_view_path(forum_id), topic_view_path(slug))
    logger.info("Post %d soft-deleted by user %d", post_id, user_id)


def delete_topic(ctx: ForumContext, topic_id: int, user_id: int) -> None:
    with transaction(ctx.engine) as session:
        topic = session.get(Topic, topic_id)
        if topic is None:
            raise NotFound("Topic not found")
        principal = load_principal(session, user_id)
        if not can_modify_post(principal, topic.user_id):
            raise Forbidden("Not authorized to delete this topic")

        slug = topic.slug
        forum, removed = remove_topic(session, topic)
        forum_id = forum.id

    invalidate_paths(ctx, FORUM_LIST_PATH, forum_view_path(forum_id), topic_view_path(slug))
    logger.info(
        "Topic %d deleted by user %d (%d posts removed)", topic_id, user_id, removed,
    )


# ---------------------------------------------------------------------------
# Read views
# ---------------------------------------------------------------------------
def _pagination(page: int, limit: int, total: int) -> dict:
    return {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)}


def _forum_dict(forum: Forum) -> dict:
    return {
        "id": forum.id,
        "name": forum.name,
        "description": forum.description,
        "locked": forum.locked,
        "topics_count": forum.topics_count,
        "posts_count": forum.posts_count,
        "last_post_id": forum.last_post_id,
        "last_post_topic_id": forum.last_post_topic_id,
        "last_post_user_id": forum.last_post_user_id,
        "last_post_time": forum.last_post_time,
    }


def _topic_dict(topic: Topic) -> dict:
    return {
        "id": topic.id,
        "forum_id": topic.forum_id,
        "user_id": topic.user_id,
        "title": topic.title,
        "slug": topic.slug,
        "views": topic.views,
        "replies": topic.replies,
        "locked": topic.locked,
        "pinned": topic.pinned,
        "announcement": topic.announcement,
        "poll_id": topic.poll_id,
        "last_post_id": topic.last_post_id,
        "last_post_user_id": topic.last_post_user_id,
        "last_post_time": topic.last_post_time,
        "created_at": topic.created_at,
    }


def list_forums(ctx: ForumContext) -> list[dict]:
    """Categories in display order, each with its forums."""
    with Session(ctx.engine) as session:
        categories = session.scalars(
            select(Category).order_by(Category.order, Category.id)
        ).all()
        return [
            {
                "id": c.id,
                "name": c.name,
                "description": c.description,
                "order": c.order,
                "forums": [_forum_dict(f) for f in c.forums],
            }
            for c in categories
        ]


def get_forum(ctx: ForumContext, forum_id: int, page: int = 1, limit: int = 20) -> dict:
    page = max(page, 1)
    limit = max(limit, 1)
    with Session(ctx.engine) as session:
        forum = session.get(Forum, forum_id)
        if forum is None:
            raise NotFound("Forum not found")
        rows = session.execute(
            select(Topic, User.username)
            .join(User, User.id == Topic.user_id)
            .where(Topic.forum_id == forum_id)
            .order_by(
                Topic.pinned.desc(),
                Topic.announcement.desc(),
                Topic.last_post_time.desc(),
                Topic.created_at.desc(),
                Topic.id.desc(),
            )
            .limit(limit)
            .offset((page - 1) * limit)
        ).all()
        total = session.scalar(
            select(func.count()).select_from(Topic).where(Topic.forum_id == forum_id)
        ) or 0
        topics = [
            {**_topic_dict(topic), "author_username": username}
            for topic, username in rows
        ]
        return {
            "forum": _forum_dict(forum),
            "topics": topics,
            "pagination": _pagination(page, limit, total),
        }


def get_topic(
    ctx: ForumContext,
    slug: str,
    viewer_id: int | None = None,
    page: int = 1,
    limit: int = 15,
) -> dict:
    """Topic view: bumps the view count, returns live posts oldest first."""
    page = max(page, 1)
    limit = max(limit, 1)
    with transaction(ctx.engine) as session:
        topic = session.scalar(select(Topic).where(Topic.slug == slug))
        if topic is None:
            raise NotFound("Topic not found")
        topic.views = Topic.views + 1
        session.flush()

        up_count = (
            select(func.count()).select_from(PostVote)
            .where(PostVote.post_id == Post.id, PostVote.vote_type == VoteType.UP)
            .scalar_subquery()
        )
        down_count = (
            select(func.count()).select_from(PostVote)
            .where(PostVote.post_id == Post.id, PostVote.vote_type == VoteType.DOWN)
            .scalar_subquery()
        )
        rows = session.execute(
            select(Post, User.username, up_count, down_count)
            .join(User, User.id == Post.user_id)
            .where(Post.topic_id == topic.id, Post.deleted.is_(False))
            .order_by(Post.created_at, Post.id)
            .limit(limit)
            .offset((page - 1) * limit)
        ).all()

        viewer_votes: dict[int, str] = {}
        if viewer_id is not None and rows:
            viewer_votes = dict(session.execute(
                select(PostVote.post_id, PostVote.vote_type).where(
                    PostVote.user_id == viewer_id,
                    PostVote.post_id.in_([p.id for p, *_ in rows]),
                )
            ).all())

        posts = [
            {
                "id": p.id,
                "user_id": p.user_id,
                "username": username,
                "content": p.content,
                "created_at": p.created_at,
                "edited_by": p.edited_by,
                "edited_at": p.edited_at,
                "upvotes": ups or 0,
                "downvotes": downs or 0,
                "user_vote": viewer_votes.get(p.id),
            }
            for p, username, ups, downs in rows
        ]
        total = live_post_count(session, topic.id)

        poll = None
        if topic.poll is not None:
            poll = {
                "id": topic.poll.id,
                "question": topic.poll.question,
                "max_votes": topic.poll.max_votes,
                "allow_revote": topic.poll.allow_revote,
                "ends_at": topic.poll.ends_at,
                "options": poll_service.poll_results(session, topic.poll.id),
            }

        subscribed = bookmarked = False
        if viewer_id is not None:
            subscribed = subscription_service.is_subscribed(session, viewer_id, topic.id)
            bookmarked = subscription_service.is_bookmarked(session, viewer_id, topic.id)

        return {
            "topic": {
                **_topic_dict(topic),
                "author_username": topic.author.username,
                "forum_name": topic.forum.name,
                "is_subscribed": subscribed,
                "is_bookmarked": bookmarked,
            },
            "posts": posts,
            "poll": poll,
            "pagination": _pagination(page, limit, total),
        }


def get_user_stats(ctx: ForumContext, user_id: int) -> dict:
    """Per-user activity counts plus the five most recent topics."""
    with Session(ctx.engine) as session:
        if session.get(User, user_id) is None:
            raise NotFound(f"User {user_id} not found")

        def _count(stmt) -> int:
            return session.scalar(stmt) or 0

        recent = session.execute(
            select(Topic, Forum.name)
            .join(Forum, Forum.id == Topic.forum_id)
            .where(Topic.user_id == user_id)
            .order_by(Topic.created_at.desc(), Topic.id.desc())
            .limit(5)
        ).all()
        warnings = session.scalars(
            select(ForumWarning)
            .where(ForumWarning.user_id == user_id, ForumWarning.active.is_(True))
        ).all()
        return {
            "topics": _count(
                select(func.count()).select_from(Topic).where(Topic.user_id == user_id)
            ),
            "posts": _count(
                select(func.count()).select_from(Post)
                .where(Post.user_id == user_id, Post.deleted.is_(False))
            ),
            "subscriptions": _count(
                select(func.count()).select_from(Subscription)
                .where(Subscription.user_id == user_id)
            ),
            "bookmarks": _count(
                select(func.count()).select_from(Bookmark)
                .where(Bookmark.user_id == user_id)
            ),
            "active_warnings": sum(1 for w in warnings if warning_is_active(w)),
            "recent_topics": [
                {**_topic_dict(t), "forum_name": forum_name} for t, forum_name in recent
            ],
        }


def get_principal(ctx: ForumContext, user_id: int) -> Principal:
    """Standalone principal lookup for callers outside a transaction."""
    with Session(ctx.engine) as session:
        return load_principal(session, user_id)
