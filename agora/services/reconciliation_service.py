"""
agora.services.reconciliation_service — Counter Recount
========================================================

Repair job for the denormalized columns the lifecycle operations update
incrementally.  Source tables are authoritative:

    1. ``forum_topics.replies``      ← live posts in the topic − 1 (floored at 0)
    2. ``forum_topics.last_post_*``  ← newest live post in the topic
    3. ``forums.topics_count``       ← topics in the forum
    4. ``forums.posts_count``        ← live posts in the forum's topics
    5. ``forums.last_post_*``        ← newest live post in the forum
    6. ``users.reputation``          ← SUM(user_reputation_log.points)
       (full recount only, skipped when a single forum is requested)

Every drifted value is overwritten and reported.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select

from agora.constants import FORUM_LIST_PATH
from agora.context import invalidate_paths
from agora.database.engine import transaction
from agora.database.models import Forum, Post, ReputationLedgerEntry, Topic, User
from agora.errors import NotFound
from agora.services.forum_service import recompute_forum_pointer, recompute_topic_pointer

if TYPE_CHECKING:
    from agora.context import ForumContext

logger = logging.getLogger(__name__)


def _correct(
    corrections: list[dict], kind: str, row_id: int, column: str, stored, actual,
) -> bool:
    if stored == actual:
        return False
    corrections.append({
        "table": kind,
        "id": row_id,
        "column": column,
        "stored": stored,
        "actual": actual,
    })
    return True


def recount_counters(ctx: ForumContext, forum_id: int | None = None) -> dict:
    """Re-derive counters and pointers from source rows and fix drift.

    Returns ``{"checked": N, "corrected": M, "corrections": [...], "timestamp": ...}``.
    """
    corrections: list[dict] = []
    checked = 0

    with transaction(ctx.engine) as session:
        forum_q = select(Forum).order_by(Forum.id)
        if forum_id is not None:
            forum_q = forum_q.where(Forum.id == forum_id)
        forums = session.scalars(forum_q).all()
        if forum_id is not None and not forums:
            raise NotFound("Forum not found")

        live_by_topic: dict[int, int] = dict(session.execute(
            select(Post.topic_id, func.count())
            .where(Post.deleted.is_(False))
            .group_by(Post.topic_id)
        ).all())

        for forum in forums:
            topics = session.scalars(
                select(Topic).where(Topic.forum_id == forum.id).order_by(Topic.id)
            ).all()
            forum_live_posts = 0

            for topic in topics:
                live = live_by_topic.get(topic.id, 0)
                forum_live_posts += live
                checked += 2

                actual_replies = max(live - 1, 0)
                if _correct(corrections, "forum_topics", topic.id, "replies",
                            topic.replies, actual_replies):
                    topic.replies = actual_replies

                stored_pointer = topic.last_post_id
                latest = recompute_topic_pointer(session, topic)
                _correct(corrections, "forum_topics", topic.id, "last_post_id",
                         stored_pointer, latest.id if latest else None)

            checked += 3
            if _correct(corrections, "forums", forum.id, "topics_count",
                        forum.topics_count, len(topics)):
                forum.topics_count = len(topics)
            if _correct(corrections, "forums", forum.id, "posts_count",
                        forum.posts_count, forum_live_posts):
                forum.posts_count = forum_live_posts

            stored_pointer = forum.last_post_id
            latest = recompute_forum_pointer(session, forum)
            _correct(corrections, "forums", forum.id, "last_post_id",
                     stored_pointer, latest.id if latest else None)

        if forum_id is None:
            ledger: dict[int, int] = dict(session.execute(
                select(ReputationLedgerEntry.user_id, func.sum(ReputationLedgerEntry.points))
                .group_by(ReputationLedgerEntry.user_id)
            ).all())
            for user in session.scalars(select(User).order_by(User.id)).all():
                checked += 1
                actual = int(ledger.get(user.id) or 0)
                if _correct(corrections, "users", user.id, "reputation",
                            user.reputation, actual):
                    user.reputation = actual

    if corrections:
        logger.warning(
            "Counter recount: corrected %d/%d values: %s",
            len(corrections), checked, corrections,
        )
        invalidate_paths(ctx, FORUM_LIST_PATH)
    else:
        logger.info("Counter recount: all %d values match", checked)

    return {
        "checked": checked,
        "corrected": len(corrections),
        "corrections": corrections,
        "timestamp": datetime.now(UTC).isoformat(),
    }
