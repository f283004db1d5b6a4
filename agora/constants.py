"""
agora.constants — Shared Constants & Helpers
=============================================

Single source of truth for reputation point values, badge milestones,
cache path keys, and field limits.  Import from here instead of
duplicating in services and routes.
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Reputation point table
# ---------------------------------------------------------------------------
REPUTATION_VALUES: dict[str, int] = {
    "TOPIC_CREATED": 5,
    "POST_CREATED": 2,
    "POST_UPVOTED": 3,
    "POST_DOWNVOTED": -1,
}


# ---------------------------------------------------------------------------
# Reputation milestones: one-time badges
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class BadgeMilestone:
    threshold: int
    badge_type: str
    name: str
    description: str
    icon: str = "⭐"  # ⭐
    color: str = "#fbbf24"


REPUTATION_MILESTONES: tuple[BadgeMilestone, ...] = (
    BadgeMilestone(100, "REPUTATION_100", "Rising Star", "Earned 100 reputation points"),
    BadgeMilestone(500, "REPUTATION_500", "Respected Member", "Earned 500 reputation points"),
    BadgeMilestone(1000, "REPUTATION_1000", "Community Veteran", "Earned 1000 reputation points"),
    BadgeMilestone(2500, "REPUTATION_2500", "Expert Contributor", "Earned 2500 reputation points"),
    BadgeMilestone(5000, "REPUTATION_5000", "Community Legend", "Earned 5000 reputation points"),
)


# ---------------------------------------------------------------------------
# Reputation tiers (display only), highest threshold first
# ---------------------------------------------------------------------------
REPUTATION_TIERS: tuple[tuple[int, str, str, str], ...] = (
    (5000, "Legend", "\U0001f48e", "#8b5cf6"),       # 💎
    (2500, "Expert", "\U0001f3c6", "#f59e0b"),       # 🏆
    (1000, "Veteran", "\U0001f947", "#eab308"),      # 🥇
    (500, "Respected", "\U0001f948", "#6b7280"),     # 🥈
    (100, "Rising Star", "\U0001f949", "#cd7f32"),   # 🥉
    (0, "Newcomer", "\U0001f331", "#10b981"),        # 🌱
)


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------
ROLE_ADMIN = "admin"
ROLE_MODERATOR = "moderator"


# ---------------------------------------------------------------------------
# Input limits
# ---------------------------------------------------------------------------
MAX_TITLE_LENGTH = 200
MAX_CONTENT_LENGTH = 50_000
MIN_POLL_OPTIONS = 2


# ---------------------------------------------------------------------------
# Response cache path keys
# ---------------------------------------------------------------------------
FORUM_LIST_PATH = "/api/forum"


def forum_view_path(forum_id: int) -> str:
    return f"/api/forum/forum/{forum_id}"


def topic_view_path(slug: str) -> str:
    return f"/api/forum/topic/{slug}"
