"""
agora.services.vote_service — Post Voting
==========================================

Applies the :mod:`agora.engine.voting` state machine to the stored vote
row and writes the owner's single net reputation change in the same
transaction.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from agora.constants import topic_view_path
from agora.context import invalidate_paths
from agora.database.engine import transaction
from agora.database.models import Post, PostVote, VoteType
from agora.engine.voting import transition
from agora.errors import Conflict, Forbidden, InvalidInput, NotFound
from agora.services import reputation_service
from agora.services.forum_service import ensure_not_banned

if TYPE_CHECKING:
    from agora.context import ForumContext

logger = logging.getLogger(__name__)

_REASONS = {
    "POST_UPVOTED": "Post upvoted",
    "POST_DOWNVOTED": "Post downvoted",
    "VOTE_REMOVED": "Post vote removed",
}


def vote_counts(session: Session, post_id: int) -> tuple[int, int]:
    ups, downs = session.execute(
        select(
            func.coalesce(func.sum(case((PostVote.vote_type == VoteType.UP, 1), else_=0)), 0),
            func.coalesce(func.sum(case((PostVote.vote_type == VoteType.DOWN, 1), else_=0)), 0),
        ).where(PostVote.post_id == post_id)
    ).one()
    return int(ups), int(downs)


def vote(ctx: ForumContext, post_id: int, user_id: int, vote_type: str) -> dict:
    """Press the up or down button on a post.

    Returns ``{"upvotes", "downvotes", "user_vote"}`` after the change;
    ``user_vote`` is ``None`` when the press toggled the vote off.

    Raises
    ------
    InvalidInput
        *vote_type* is not ``up``/``down``.
    NotFound
        Post missing or soft-deleted.
    Forbidden
        Voting on one's own post, or the voter is banned.
    Conflict
        A concurrent request inserted the same vote first.
    """
    try:
        pressed = VoteType(vote_type)
    except ValueError:
        raise InvalidInput("Invalid vote type") from None

    with transaction(ctx.engine) as session:
        post = session.get(Post, post_id)
        if post is None or post.deleted:
            raise NotFound("Post not found")
        if post.user_id == user_id:
            raise Forbidden("Cannot vote on your own posts")
        ensure_not_banned(session, user_id)

        existing = session.scalar(
            select(PostVote).where(PostVote.post_id == post_id, PostVote.user_id == user_id)
        )
        step = transition(existing.vote_type if existing else None, pressed)

        if existing is None:
            session.add(PostVote(post_id=post_id, user_id=user_id, vote_type=pressed))
            try:
                session.flush()
            except IntegrityError as exc:
                raise Conflict("Vote already recorded; please retry") from exc
        elif step.removed:
            session.delete(existing)
        else:
            existing.vote_type = step.new_state

        reason = _REASONS.get(step.ledger_action, f"Post vote changed to {pressed}vote")
        reputation_service.award_reputation(
            session, post.user_id, step.ledger_action, step.reputation_delta,
            reason, post_id,
        )
        session.flush()

        upvotes, downvotes = vote_counts(session, post_id)
        slug = post.topic.slug

    invalidate_paths(ctx, topic_view_path(slug))
    logger.info(
        "User %d vote on post %d: %s → %s (%+d)",
        user_id, post_id, step.previous, step.new_state, step.reputation_delta,
    )
    return {
        "upvotes": upvotes,
        "downvotes": downvotes,
        "user_vote": str(step.new_state) if step.new_state else None,
    }
