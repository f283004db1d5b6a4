"""
agora.services.search_service — Search Index & Topic Search
============================================================

``forum_search_index`` holds one row per post with the post text
duplicated for substring search.  Rows are written when a post is
created and rewritten when it is edited.  Soft-deleting a post leaves
its row in place; :func:`search` filters deleted posts at query time.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from agora.database.engine import transaction
from agora.database.models import Forum, Post, SearchIndexEntry, Topic, User
from agora.errors import InvalidInput

if TYPE_CHECKING:
    from agora.context import ForumContext

logger = logging.getLogger(__name__)

SORT_RECENT = "recent"
SORT_REPLIES = "replies"
SORT_RELEVANCE = "relevance"


# ---------------------------------------------------------------------------
# Index maintenance (caller's transaction)
# ---------------------------------------------------------------------------
def index_post(session: Session, post: Post) -> SearchIndexEntry:
    entry = SearchIndexEntry(
        post_id=post.id,
        topic_id=post.topic_id,
        user_id=post.user_id,
        content_text=post.content,
    )
    session.add(entry)
    return entry


def reindex_post(session: Session, post: Post) -> None:
    """Rewrite the index text for an edited post, creating the row if absent."""
    entry = session.scalar(
        select(SearchIndexEntry).where(SearchIndexEntry.post_id == post.id)
    )
    if entry is None:
        index_post(session, post)
        return
    entry.content_text = post.content
    entry.topic_id = post.topic_id


def rebuild_search_index(ctx: ForumContext) -> int:
    """Clear the index and re-insert one row per post.  Returns rows written.

    Soft-deleted posts are indexed too, matching what incremental
    maintenance leaves behind; :func:`search` filters them out.
    """
    with transaction(ctx.engine) as session:
        session.execute(delete(SearchIndexEntry))
        posts = session.execute(
            select(Post.id, Post.topic_id, Post.user_id, Post.content).order_by(Post.id)
        ).all()
        session.add_all([
            SearchIndexEntry(
                post_id=post_id, topic_id=topic_id, user_id=user_id, content_text=content,
            )
            for post_id, topic_id, user_id, content in posts
        ])
    logger.info("Search index rebuilt: %d posts indexed", len(posts))
    return len(posts)



def _like_pattern(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


# ---------------------------------------------------------------------------
# Query
# ---------------------------------------------------------------------------
def search(
    ctx: ForumContext,
    query: str,
    forum_id: int | None = None,
    author: str | None = None,
    sort: str = SORT_RELEVANCE,
    page: int = 1,
    limit: int = 20,
) -> dict:
    """Topics whose non-deleted posts contain *query* (case-insensitive).

    ``sort``: ``recent`` (newest topic first), ``replies`` (most replies
    first), anything else orders by views.
    """
    query = (query or "").strip()
    if len(query) < ctx.config.search_min_query_length:
        raise InvalidInput(
            f"Search query must be at least {ctx.config.search_min_query_length} characters"
        )
    page = max(page, 1)
    limit = max(limit, 1)

    matching_topics = (
        select(SearchIndexEntry.topic_id)
        .join(Post, Post.id == SearchIndexEntry.post_id)
        .where(
            SearchIndexEntry.content_text.ilike(_like_pattern(query), escape="\\"),
            Post.deleted.is_(False),
        )
    )
    filters = [Topic.id.in_(matching_topics)]
    if forum_id is not None:
        filters.append(Topic.forum_id == forum_id)
    if author:
        filters.append(User.username.ilike(_like_pattern(author), escape="\\"))

    if sort == SORT_RECENT:
        order = (Topic.created_at.desc(), Topic.id.desc())
    elif sort == SORT_REPLIES:
        order = (Topic.replies.desc(), Topic.id.desc())
    else:
        order = (Topic.views.desc(), Topic.id.desc())

    base = (
        select(Topic, User.username, Forum.name)
        .join(User, User.id == Topic.user_id)
        .join(Forum, Forum.id == Topic.forum_id)
        .where(*filters)
    )

    with Session(ctx.engine) as session:
        total = session.scalar(
            select(func.count(Topic.id))
            .join(User, User.id == Topic.user_id)
            .where(*filters)
        ) or 0
        rows = session.execute(
            base.order_by(*order).limit(limit).offset((page - 1) * limit)
        ).all()
        results = [
            {
                "id": topic.id,
                "title": topic.title,
                "slug": topic.slug,
                "views": topic.views,
                "replies": topic.replies,
                "created_at": topic.created_at,
                "author_username": username,
                "forum_id": topic.forum_id,
                "forum_name": forum_name,
            }
            for topic, username, forum_name in rows
        ]

    return {
        "results": results,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }
