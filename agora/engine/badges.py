"""
agora.engine.badges — Reputation Milestones & Tiers
====================================================

Pure evaluation: given a reputation total and the badge types a user
already holds, which milestone badges are newly earned?  Persisting the
award is :mod:`agora.services.reputation_service`'s job.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass

from agora.constants import REPUTATION_MILESTONES, REPUTATION_TIERS, BadgeMilestone


@dataclass(frozen=True, slots=True)
class ReputationTier:
    name: str
    icon: str
    color: str
    threshold: int


def milestones_crossed(
    reputation: int, already_held: Collection[str] = (),
) -> list[BadgeMilestone]:
    """Milestones at or below *reputation* whose badge is not yet held."""
    return [
        m for m in REPUTATION_MILESTONES
        if reputation >= m.threshold and m.badge_type not in already_held
    ]


def reputation_tier(points: int) -> ReputationTier:
    for threshold, name, icon, color in REPUTATION_TIERS:
        if points >= threshold:
            return ReputationTier(name=name, icon=icon, color=color, threshold=threshold)
    # Negative reputation still reads as a newcomer
    threshold, name, icon, color = REPUTATION_TIERS[-1]
    return ReputationTier(name=name, icon=icon, color=color, threshold=threshold)
