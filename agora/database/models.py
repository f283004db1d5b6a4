"""
agora.database.models — SQLAlchemy 2.0 Data Models
===================================================

Tables:
- users                  — Members with role and cached reputation
- user_groups            — Permission groups (moderator/admin flags)
- user_group_memberships — User ↔ group
- forum_categories       — Ordering containers for forums
- forums                 — Topic buckets with denormalized counters
- forum_permissions      — Per-group, per-forum capabilities
- forum_topics           — Discussion threads
- forum_posts            — Messages (soft-deleted, never removed)
- post_votes             — One up/down vote per (post, user)
- forum_polls / forum_poll_options / forum_poll_votes — Topic polls
- user_reputation_log    — Append-only reputation ledger
- user_badges            — One-time reputation milestone badges
- forum_moderation_log   — Append-only moderation audit trail
- forum_warnings / forum_bans — Time-bounded user restrictions
- forum_subscriptions    — Topic- or forum-scoped opt-ins
- forum_bookmarks        — Saved topics
- forum_notifications    — Fan-out output
- forum_search_index     — Denormalized post text for substring search
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Agora ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class VoteType(enum.StrEnum):
    UP = "up"
    DOWN = "down"


class SubscriptionScope(enum.StrEnum):
    """What a subscription row points at."""
    TOPIC = "topic"
    FORUM = "forum"


class NotificationType(enum.StrEnum):
    REPLY = "reply"
    NEW_TOPIC = "new_topic"
    WARNING = "warning"
    BAN = "ban"


class ModerationActionType(enum.StrEnum):
    """Action names recorded in forum_moderation_log."""
    LOCK = "lock"
    UNLOCK = "unlock"
    PIN = "pin"
    UNPIN = "unpin"
    MOVE = "move"
    DELETE = "delete"
    RESTORE = "restore"
    WARN = "warn"
    BAN = "ban"
    UNBAN = "unban"


class ModerationTarget(enum.StrEnum):
    TOPIC = "topic"
    POST = "post"
    USER = "user"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="user")
    # Cache of SUM(user_reputation_log.points); updated in the same txn as each ledger insert
    reputation: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    memberships: Mapped[list[UserGroupMembership]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_users_reputation_desc", "reputation"),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.username!r} role={self.role!r}>"


# ---------------------------------------------------------------------------
# Groups & memberships
# ---------------------------------------------------------------------------
class UserGroup(Base):
    __tablename__ = "user_groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    color: Mapped[str | None] = mapped_column(String(7), default=None)
    is_moderator: Mapped[bool] = mapped_column(Boolean, default=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<UserGroup id={self.id} name={self.name!r}>"


class UserGroupMembership(Base):
    __tablename__ = "user_group_memberships"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    group_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_groups.id", ondelete="CASCADE"), nullable=False
    )
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped[User] = relationship(back_populates="memberships")
    group: Mapped[UserGroup] = relationship()

    __table_args__ = (
        UniqueConstraint("user_id", "group_id", name="uq_memberships_user_group"),
    )

    def __repr__(self) -> str:
        return f"<UserGroupMembership user={self.user_id} group={self.group_id}>"


# ---------------------------------------------------------------------------
# Categories & forums
# ---------------------------------------------------------------------------
class Category(Base):
    __tablename__ = "forum_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    order: Mapped[int] = mapped_column("order_index", Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    forums: Mapped[list[Forum]] = relationship(
        back_populates="category", cascade="all, delete-orphan",
        order_by="Forum.order",
    )

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"


class Forum(Base):
    """A named bucket of topics.

    ``topics_count``, ``posts_count`` and the ``last_post_*`` columns are
    denormalized; :mod:`agora.services.reconciliation_service` re-derives
    them from ``forum_topics`` / ``forum_posts``.
    """
    __tablename__ = "forums"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("forum_categories.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    order: Mapped[int] = mapped_column("order_index", Integer, default=0)
    locked: Mapped[bool] = mapped_column(Boolean, default=False)
    topics_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    posts_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_post_id: Mapped[int | None] = mapped_column(Integer, default=None)
    last_post_topic_id: Mapped[int | None] = mapped_column(Integer, default=None)
    last_post_user_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    last_post_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    category: Mapped[Category] = relationship(back_populates="forums")

    __table_args__ = (
        Index("ix_forums_category", "category_id"),
    )

    def __repr__(self) -> str:
        return f"<Forum id={self.id} name={self.name!r} topics={self.topics_count}>"


class ForumPermission(Base):
    __tablename__ = "forum_permissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    forum_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("forums.id", ondelete="CASCADE"), nullable=False
    )
    group_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_groups.id", ondelete="CASCADE"), nullable=False
    )
    can_view: Mapped[bool] = mapped_column(Boolean, default=True)
    can_post_topics: Mapped[bool] = mapped_column(Boolean, default=True)
    can_post_replies: Mapped[bool] = mapped_column(Boolean, default=True)
    can_edit_own: Mapped[bool] = mapped_column(Boolean, default=True)
    can_delete_own: Mapped[bool] = mapped_column(Boolean, default=False)

    __table_args__ = (
        UniqueConstraint("forum_id", "group_id", name="uq_forum_permissions_forum_group"),
    )

    def __repr__(self) -> str:
        return f"<ForumPermission forum={self.forum_id} group={self.group_id}>"


# ---------------------------------------------------------------------------
# Topics & posts
# ---------------------------------------------------------------------------
class Topic(Base):
    __tablename__ = "forum_topics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    forum_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("forums.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(300), nullable=False, unique=True)
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Non-deleted posts minus the opening post
    replies: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    locked: Mapped[bool] = mapped_column(Boolean, default=False)
    pinned: Mapped[bool] = mapped_column(Boolean, default=False)
    announcement: Mapped[bool] = mapped_column(Boolean, default=False)
    poll_id: Mapped[int | None] = mapped_column(Integer, default=None)
    last_post_id: Mapped[int | None] = mapped_column(Integer, default=None)
    last_post_user_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    last_post_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    forum: Mapped[Forum] = relationship()
    author: Mapped[User] = relationship()
    posts: Mapped[list[Post]] = relationship(
        back_populates="topic", cascade="all, delete-orphan", passive_deletes=True
    )
    poll: Mapped[Poll | None] = relationship(
        back_populates="topic", cascade="all, delete-orphan",
        passive_deletes=True, uselist=False,
    )
    subscriptions: Mapped[list[Subscription]] = relationship(
        cascade="all, delete-orphan", passive_deletes=True
    )
    bookmarks: Mapped[list[Bookmark]] = relationship(
        cascade="all, delete-orphan", passive_deletes=True
    )
    notifications: Mapped[list[Notification]] = relationship(
        cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index("ix_forum_topics_forum", "forum_id"),
        Index("ix_forum_topics_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Topic id={self.id} slug={self.slug!r} replies={self.replies}>"


class Post(Base):
    __tablename__ = "forum_posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    topic_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("forum_topics.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    edited_by: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), default=None
    )
    edited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deleted_by: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), default=None
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    topic: Mapped[Topic] = relationship(back_populates="posts")
    votes: Mapped[list[PostVote]] = relationship(
        cascade="all, delete-orphan", passive_deletes=True
    )
    search_entry: Mapped[SearchIndexEntry | None] = relationship(
        cascade="all, delete-orphan", passive_deletes=True, uselist=False
    )

    __table_args__ = (
        Index("ix_forum_posts_topic_created", "topic_id", "created_at"),
        Index("ix_forum_posts_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Post id={self.id} topic={self.topic_id} deleted={self.deleted}>"


class PostVote(Base):
    __tablename__ = "post_votes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("forum_posts.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    vote_type: Mapped[str] = mapped_column(String(4), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_post_votes_post_user"),
        CheckConstraint("vote_type IN ('up', 'down')", name="ck_post_votes_type"),
    )

    def __repr__(self) -> str:
        return f"<PostVote post={self.post_id} user={self.user_id} type={self.vote_type}>"


# ---------------------------------------------------------------------------
# Polls
# ---------------------------------------------------------------------------
class Poll(Base):
    __tablename__ = "forum_polls"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    topic_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("forum_topics.id", ondelete="CASCADE"), nullable=False
    )
    question: Mapped[str] = mapped_column(Text, nullable=False)
    max_votes: Mapped[int] = mapped_column(Integer, default=1)
    allow_revote: Mapped[bool] = mapped_column(Boolean, default=False)
    ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    topic: Mapped[Topic] = relationship(back_populates="poll")
    options: Mapped[list[PollOption]] = relationship(
        back_populates="poll", cascade="all, delete-orphan",
        passive_deletes=True, order_by="PollOption.order",
    )

    def __repr__(self) -> str:
        return f"<Poll id={self.id} topic={self.topic_id}>"


class PollOption(Base):
    __tablename__ = "forum_poll_options"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    poll_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("forum_polls.id", ondelete="CASCADE"), nullable=False
    )
    option_text: Mapped[str] = mapped_column(Text, nullable=False)
    votes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    order: Mapped[int] = mapped_column("order_index", Integer, default=0)

    poll: Mapped[Poll] = relationship(back_populates="options")

    def __repr__(self) -> str:
        return f"<PollOption id={self.id} poll={self.poll_id} votes={self.votes}>"


class PollVote(Base):
    __tablename__ = "forum_poll_votes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    poll_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("forum_polls.id", ondelete="CASCADE"), nullable=False
    )
    option_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("forum_poll_options.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    voted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("poll_id", "user_id", "option_id", name="uq_poll_votes_poll_user_option"),
    )

    def __repr__(self) -> str:
        return f"<PollVote poll={self.poll_id} user={self.user_id} option={self.option_id}>"


# ---------------------------------------------------------------------------
# Reputation ledger & badges
# ---------------------------------------------------------------------------
class ReputationLedgerEntry(Base):
    """Append-only.  SUM(points) per user == users.reputation."""
    __tablename__ = "user_reputation_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, default=None)
    related_id: Mapped[int | None] = mapped_column(Integer, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_reputation_log_user_time", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ReputationLedgerEntry user={self.user_id} action={self.action} points={self.points}>"


class UserBadge(Base):
    __tablename__ = "user_badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    badge_type: Mapped[str] = mapped_column(String(50), nullable=False)
    badge_name: Mapped[str] = mapped_column(String(100), nullable=False)
    badge_description: Mapped[str | None] = mapped_column(Text, default=None)
    badge_icon: Mapped[str | None] = mapped_column(String(10), default=None)
    badge_color: Mapped[str | None] = mapped_column(String(7), default=None)
    earned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "badge_type", name="uq_user_badges_user_type"),
    )

    def __repr__(self) -> str:
        return f"<UserBadge user={self.user_id} type={self.badge_type!r}>"


# ---------------------------------------------------------------------------
# Moderation: log, warnings, bans
# ---------------------------------------------------------------------------
class ModerationLogEntry(Base):
    """Append-only audit trail of moderator actions.  Never updated or deleted."""
    __tablename__ = "forum_moderation_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    moderator_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    target_type: Mapped[str] = mapped_column(String(20), nullable=False)
    target_id: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, default=None)
    details: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_moderation_log_moderator_time", "moderator_id", "created_at"),
        Index("ix_moderation_log_target", "target_type", "target_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<ModerationLogEntry id={self.id} mod={self.moderator_id} "
            f"action={self.action} {self.target_type}={self.target_id}>"
        )


class ForumWarning(Base):
    __tablename__ = "forum_warnings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    moderator_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    points: Mapped[int] = mapped_column(Integer, default=1)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<ForumWarning id={self.id} user={self.user_id} points={self.points}>"


class Ban(Base):
    """At most one active ban per user — enforced in moderation_service."""
    __tablename__ = "forum_bans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    banned_by: Mapped[int] = mapped_column(BigInteger, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    ban_type: Mapped[str] = mapped_column(String(20), default="temporary")
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_forum_bans_user_active", "user_id", "active"),
    )

    def __repr__(self) -> str:
        return f"<Ban id={self.id} user={self.user_id} active={self.active}>"


# ---------------------------------------------------------------------------
# Subscriptions, bookmarks, notifications
# ---------------------------------------------------------------------------
class Subscription(Base):
    __tablename__ = "forum_subscriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    scope: Mapped[str] = mapped_column(String(10), nullable=False)
    topic_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("forum_topics.id", ondelete="CASCADE"), default=None
    )
    forum_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("forums.id", ondelete="CASCADE"), default=None
    )
    notify_replies: Mapped[bool] = mapped_column(Boolean, default=True)
    subscribed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "(topic_id IS NULL) <> (forum_id IS NULL)",
            name="ck_subscriptions_one_target",
        ),
        Index("ix_subscriptions_topic", "topic_id"),
        Index("ix_subscriptions_forum", "forum_id"),
        Index("ix_subscriptions_user", "user_id"),
    )

    def __repr__(self) -> str:
        target = self.topic_id if self.scope == SubscriptionScope.TOPIC else self.forum_id
        return f"<Subscription user={self.user_id} {self.scope}={target}>"


class Bookmark(Base):
    __tablename__ = "forum_bookmarks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    topic_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("forum_topics.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "topic_id", name="uq_bookmarks_user_topic"),
    )

    def __repr__(self) -> str:
        return f"<Bookmark user={self.user_id} topic={self.topic_id}>"


class Notification(Base):
    __tablename__ = "forum_notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    topic_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("forum_topics.id", ondelete="CASCADE"), default=None
    )
    post_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("forum_posts.id", ondelete="CASCADE"), default=None
    )
    from_user_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), default=None
    )
    content: Mapped[str | None] = mapped_column(Text, default=None)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "read"),
    )

    def __repr__(self) -> str:
        return f"<Notification id={self.id} user={self.user_id} type={self.type!r}>"


# ---------------------------------------------------------------------------
# SearchIndexEntry: one row per post, content duplicated for LIKE search
# ---------------------------------------------------------------------------
class SearchIndexEntry(Base):
    __tablename__ = "forum_search_index"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("forum_posts.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    topic_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("forum_topics.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content_text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_search_index_topic", "topic_id"),
    )

    def __repr__(self) -> str:
        return f"<SearchIndexEntry post={self.post_id} topic={self.topic_id}>"
