"""Forum engine baseline schema

Revision ID: 0a1f3c5e7b9d
Revises:
Create Date: 2026-10-17 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0a1f3c5e7b9d"
down_revision = None
branch_labels = None
depends_on = None


def _ts(name: str, nullable: bool = True, server_now: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=sa.func.now() if server_now else None,
    )


def upgrade() -> None:
    # -- users & groups -----------------------------------------------------
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(100), nullable=False, unique=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="user"),
        sa.Column("reputation", sa.Integer(), nullable=False, server_default="0"),
        _ts("created_at", server_now=True),
    )
    op.create_index("ix_users_reputation_desc", "users", ["reputation"])

    op.create_table(
        "user_groups",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text()),
        sa.Column("color", sa.String(7)),
        sa.Column("is_moderator", sa.Boolean(), server_default=sa.false()),
        sa.Column("is_admin", sa.Boolean(), server_default=sa.false()),
        _ts("created_at", server_now=True),
    )

    op.create_table(
        "user_group_memberships",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("group_id", sa.Integer(), sa.ForeignKey("user_groups.id", ondelete="CASCADE"), nullable=False),
        sa.Column("is_primary", sa.Boolean(), server_default=sa.false()),
        _ts("joined_at", server_now=True),
        sa.UniqueConstraint("user_id", "group_id", name="uq_memberships_user_group"),
    )

    # -- categories, forums, permissions -----------------------------------
    op.create_table(
        "forum_categories",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("order_index", sa.Integer(), server_default="0"),
        _ts("created_at", server_now=True),
    )

    op.create_table(
        "forums",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("forum_categories.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("order_index", sa.Integer(), server_default="0"),
        sa.Column("locked", sa.Boolean(), server_default=sa.false()),
        sa.Column("topics_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("posts_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_post_id", sa.Integer()),
        sa.Column("last_post_topic_id", sa.Integer()),
        sa.Column("last_post_user_id", sa.BigInteger()),
        _ts("last_post_time"),
        _ts("created_at", server_now=True),
    )
    op.create_index("ix_forums_category", "forums", ["category_id"])

    op.create_table(
        "forum_permissions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("forum_id", sa.Integer(), sa.ForeignKey("forums.id", ondelete="CASCADE"), nullable=False),
        sa.Column("group_id", sa.Integer(), sa.ForeignKey("user_groups.id", ondelete="CASCADE"), nullable=False),
        sa.Column("can_view", sa.Boolean(), server_default=sa.true()),
        sa.Column("can_post_topics", sa.Boolean(), server_default=sa.true()),
        sa.Column("can_post_replies", sa.Boolean(), server_default=sa.true()),
        sa.Column("can_edit_own", sa.Boolean(), server_default=sa.true()),
        sa.Column("can_delete_own", sa.Boolean(), server_default=sa.false()),
        sa.UniqueConstraint("forum_id", "group_id", name="uq_forum_permissions_forum_group"),
    )

    # -- topics & posts ------------------------------------------------------
    op.create_table(
        "forum_topics",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("forum_id", sa.Integer(), sa.ForeignKey("forums.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("slug", sa.String(300), nullable=False, unique=True),
        sa.Column("views", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("replies", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("locked", sa.Boolean(), server_default=sa.false()),
        sa.Column("pinned", sa.Boolean(), server_default=sa.false()),
        sa.Column("announcement", sa.Boolean(), server_default=sa.false()),
        sa.Column("poll_id", sa.Integer()),
        sa.Column("last_post_id", sa.Integer()),
        sa.Column("last_post_user_id", sa.BigInteger()),
        _ts("last_post_time"),
        _ts("created_at", server_now=True),
    )
    op.create_index("ix_forum_topics_forum", "forum_topics", ["forum_id"])
    op.create_index("ix_forum_topics_user", "forum_topics", ["user_id"])

    op.create_table(
        "forum_posts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("topic_id", sa.Integer(), sa.ForeignKey("forum_topics.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("edited_by", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        _ts("edited_at"),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deleted_by", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        _ts("deleted_at"),
        _ts("created_at", nullable=False, server_now=True),
    )
    op.create_index("ix_forum_posts_topic_created", "forum_posts", ["topic_id", "created_at"])
    op.create_index("ix_forum_posts_user", "forum_posts", ["user_id"])

    op.create_table(
        "post_votes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("post_id", sa.Integer(), sa.ForeignKey("forum_posts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("vote_type", sa.String(4), nullable=False),
        _ts("created_at", server_now=True),
        sa.UniqueConstraint("post_id", "user_id", name="uq_post_votes_post_user"),
        sa.CheckConstraint("vote_type IN ('up', 'down')", name="ck_post_votes_type"),
    )

    # -- polls ---------------------------------------------------------------
    op.create_table(
        "forum_polls",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("topic_id", sa.Integer(), sa.ForeignKey("forum_topics.id", ondelete="CASCADE"), nullable=False),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("max_votes", sa.Integer(), server_default="1"),
        sa.Column("allow_revote", sa.Boolean(), server_default=sa.false()),
        _ts("ends_at"),
        _ts("created_at", server_now=True),
    )
    op.create_table(
        "forum_poll_options",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("poll_id", sa.Integer(), sa.ForeignKey("forum_polls.id", ondelete="CASCADE"), nullable=False),
        sa.Column("option_text", sa.Text(), nullable=False),
        sa.Column("votes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("order_index", sa.Integer(), server_default="0"),
    )
    op.create_table(
        "forum_poll_votes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("poll_id", sa.Integer(), sa.ForeignKey("forum_polls.id", ondelete="CASCADE"), nullable=False),
        sa.Column("option_id", sa.Integer(), sa.ForeignKey("forum_poll_options.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        _ts("voted_at", server_now=True),
        sa.UniqueConstraint("poll_id", "user_id", "option_id", name="uq_poll_votes_poll_user_option"),
    )

    # -- reputation ------------------------------------------------------------
    op.create_table(
        "user_reputation_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text()),
        sa.Column("related_id", sa.Integer()),
        _ts("created_at", server_now=True),
    )
    op.create_index("ix_reputation_log_user_time", "user_reputation_log", ["user_id", "created_at"])

    op.create_table(
        "user_badges",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("badge_type", sa.String(50), nullable=False),
        sa.Column("badge_name", sa.String(100), nullable=False),
        sa.Column("badge_description", sa.Text()),
        sa.Column("badge_icon", sa.String(10)),
        sa.Column("badge_color", sa.String(7)),
        _ts("earned_at", server_now=True),
        sa.UniqueConstraint("user_id", "badge_type", name="uq_user_badges_user_type"),
    )

    # -- moderation --------------------------------------------------------------
    op.create_table(
        "forum_moderation_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("moderator_id", sa.BigInteger(), nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("target_type", sa.String(20), nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text()),
        sa.Column("details", sa.Text()),
        _ts("created_at", server_now=True),
    )
    op.create_index(
        "ix_moderation_log_moderator_time", "forum_moderation_log", ["moderator_id", "created_at"],
    )
    op.create_index(
        "ix_moderation_log_target", "forum_moderation_log", ["target_type", "target_id", "created_at"],
    )

    op.create_table(
        "forum_warnings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("moderator_id", sa.BigInteger(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("points", sa.Integer(), server_default="1"),
        _ts("expires_at"),
        sa.Column("active", sa.Boolean(), server_default=sa.true()),
        _ts("created_at", server_now=True),
    )

    op.create_table(
        "forum_bans",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("banned_by", sa.BigInteger(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("ban_type", sa.String(20), server_default="temporary"),
        _ts("expires_at"),
        sa.Column("active", sa.Boolean(), server_default=sa.true()),
        _ts("created_at", server_now=True),
    )
    op.create_index("ix_forum_bans_user_active", "forum_bans", ["user_id", "active"])

    # -- subscriptions, bookmarks, notifications ------------------------------
    op.create_table(
        "forum_subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("scope", sa.String(10), nullable=False),
        sa.Column("topic_id", sa.Integer(), sa.ForeignKey("forum_topics.id", ondelete="CASCADE")),
        sa.Column("forum_id", sa.Integer(), sa.ForeignKey("forums.id", ondelete="CASCADE")),
        sa.Column("notify_replies", sa.Boolean(), server_default=sa.true()),
        _ts("subscribed_at", server_now=True),
        sa.CheckConstraint(
            "(topic_id IS NULL) <> (forum_id IS NULL)", name="ck_subscriptions_one_target",
        ),
    )
    op.create_index("ix_subscriptions_topic", "forum_subscriptions", ["topic_id"])
    op.create_index("ix_subscriptions_forum", "forum_subscriptions", ["forum_id"])
    op.create_index("ix_subscriptions_user", "forum_subscriptions", ["user_id"])

    op.create_table(
        "forum_bookmarks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("topic_id", sa.Integer(), sa.ForeignKey("forum_topics.id", ondelete="CASCADE"), nullable=False),
        _ts("created_at", server_now=True),
        sa.UniqueConstraint("user_id", "topic_id", name="uq_bookmarks_user_topic"),
    )

    op.create_table(
        "forum_notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("topic_id", sa.Integer(), sa.ForeignKey("forum_topics.id", ondelete="CASCADE")),
        sa.Column("post_id", sa.Integer(), sa.ForeignKey("forum_posts.id", ondelete="CASCADE")),
        sa.Column("from_user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("content", sa.Text()),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts("created_at", server_now=True),
    )
    op.create_index("ix_notifications_user_read", "forum_notifications", ["user_id", "read"])

    # -- search index ------------------------------------------------------------
    op.create_table(
        "forum_search_index",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("post_id", sa.Integer(), sa.ForeignKey("forum_posts.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("topic_id", sa.Integer(), sa.ForeignKey("forum_topics.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("content_text", sa.Text(), nullable=False),
        _ts("created_at", server_now=True),
    )
    op.create_index("ix_search_index_topic", "forum_search_index", ["topic_id"])


def downgrade() -> None:
    for table in (
        "forum_search_index",
        "forum_notifications",
        "forum_bookmarks",
        "forum_subscriptions",
        "forum_bans",
        "forum_warnings",
        "forum_moderation_log",
        "user_badges",
        "user_reputation_log",
        "forum_poll_votes",
        "forum_poll_options",
        "forum_polls",
        "post_votes",
        "forum_posts",
        "forum_topics",
        "forum_permissions",
        "forums",
        "forum_categories",
        "user_group_memberships",
        "user_groups",
        "users",
    ):
        op.drop_table(table)
