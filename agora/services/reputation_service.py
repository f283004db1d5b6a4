"""
agora.services.reputation_service — Reputation Ledger & Badges
===============================================================

Every point change is one ``user_reputation_log`` row plus the matching
update of the cached ``users.reputation`` column, in the caller's
session so both land in the same transaction.  Crossing a milestone
awards its badge once.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from agora.database.models import ReputationLedgerEntry, User, UserBadge
from agora.engine.badges import milestones_crossed, reputation_tier
from agora.errors import NotFound

if TYPE_CHECKING:
    from agora.context import ForumContext

logger = logging.getLogger(__name__)


def award_reputation(
    session: Session,
    user_id: int,
    action: str,
    points: int,
    reason: str | None = None,
    related_id: int | None = None,
) -> int | None:
    """Append a ledger entry and bump the cached total.

    Returns the user's new reputation, or ``None`` when *points* is zero
    (no ledger row is written for a zero change).
    """
    if points == 0:
        return None

    session.add(ReputationLedgerEntry(
        user_id=user_id,
        action=action,
        points=points,
        reason=reason,
        related_id=related_id,
    ))
    # Single-statement increment; concurrent awards don't lose updates
    session.execute(
        update(User)
        .where(User.id == user_id)
        .values(reputation=User.reputation + points)
    )
    new_total = session.scalar(select(User.reputation).where(User.id == user_id))
    if new_total is None:
        raise NotFound(f"User {user_id} not found")

    check_badges(session, user_id, new_total)
    return new_total


def check_badges(session: Session, user_id: int, reputation: int) -> list[UserBadge]:
    """Award every milestone badge *reputation* has reached and the user lacks."""
    held = set(session.scalars(
        select(UserBadge.badge_type).where(UserBadge.user_id == user_id)
    ).all())
    awarded: list[UserBadge] = []
    for milestone in milestones_crossed(reputation, held):
        badge = UserBadge(
            user_id=user_id,
            badge_type=milestone.badge_type,
            badge_name=milestone.name,
            badge_description=milestone.description,
            badge_icon=milestone.icon,
            badge_color=milestone.color,
        )
        session.add(badge)
        awarded.append(badge)
        logger.info("User %d earned badge %s", user_id, milestone.badge_type)
    return awarded


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_reputation_history(ctx: ForumContext, user_id: int, limit: int = 50) -> list[dict]:
    with Session(ctx.engine) as session:
        rows = session.scalars(
            select(ReputationLedgerEntry)
            .where(ReputationLedgerEntry.user_id == user_id)
            .order_by(ReputationLedgerEntry.created_at.desc(), ReputationLedgerEntry.id.desc())
            .limit(limit)
        ).all()
        return [
            {
                "id": r.id,
                "action": r.action,
                "points": r.points,
                "reason": r.reason,
                "related_id": r.related_id,
                "created_at": r.created_at,
            }
            for r in rows
        ]


def get_leaderboard(ctx: ForumContext, limit: int = 10) -> list[dict]:
    """Users with positive reputation, highest first, with their tier."""
    with Session(ctx.engine) as session:
        users = session.scalars(
            select(User)
            .where(User.reputation > 0)
            .order_by(User.reputation.desc(), User.id)
            .limit(limit)
        ).all()
        board = []
        for rank, user in enumerate(users, start=1):
            tier = reputation_tier(user.reputation)
            board.append({
                "rank": rank,
                "user_id": user.id,
                "username": user.username,
                "reputation": user.reputation,
                "tier": tier.name,
                "tier_icon": tier.icon,
                "tier_color": tier.color,
            })
        return board


def get_user_badges(ctx: ForumContext, user_id: int) -> list[dict]:
    with Session(ctx.engine) as session:
        rows = session.scalars(
            select(UserBadge)
            .where(UserBadge.user_id == user_id)
            .order_by(UserBadge.earned_at, UserBadge.id)
        ).all()
        return [
            {
                "badge_type": b.badge_type,
                "name": b.badge_name,
                "description": b.badge_description,
                "icon": b.badge_icon,
                "color": b.badge_color,
                "earned_at": b.earned_at,
            }
            for b in rows
        ]


def get_user_reputation(ctx: ForumContext, user_id: int) -> dict:
    """Cached total, display tier, and badges for one user."""
    with Session(ctx.engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")
        reputation = user.reputation
    tier = reputation_tier(reputation)
    return {
        "user_id": user_id,
        "reputation": reputation,
        "tier": {"name": tier.name, "icon": tier.icon, "color": tier.color},
        "badges": get_user_badges(ctx, user_id),
    }
