"""
agora.engine.voting — Post Vote State Machine
==============================================

States per (post, voter): no vote, ``up``, ``down``.

=========  =======  ========  ===========================
current    pressed  new       owner reputation delta
=========  =======  ========  ===========================
none       up       up        +3
none       down     down      -1
up         up       none      -3  (toggle off)
down       down     none      +1  (toggle off)
up         down     down      -4  (reverse +3, apply -1)
down       up       up        +4  (reverse -1, apply +3)
=========  =======  ========  ===========================

Deltas come from :data:`agora.constants.REPUTATION_VALUES`.  Each
transition yields exactly one net delta so the ledger gets one row.
"""

from __future__ import annotations

from dataclasses import dataclass

from agora.constants import REPUTATION_VALUES
from agora.database.models import VoteType

# Ledger action names
ACTION_UPVOTED = "POST_UPVOTED"
ACTION_DOWNVOTED = "POST_DOWNVOTED"
ACTION_VOTE_REMOVED = "VOTE_REMOVED"
ACTION_VOTE_CHANGED = "VOTE_CHANGED"


@dataclass(frozen=True, slots=True)
class VoteTransition:
    previous: VoteType | None
    new_state: VoteType | None
    reputation_delta: int
    ledger_action: str

    @property
    def removed(self) -> bool:
        return self.previous is not None and self.new_state is None

    @property
    def changed(self) -> bool:
        return self.previous is not None and self.new_state is not None


def vote_value(vote_type: VoteType) -> int:
    if vote_type == VoteType.UP:
        return REPUTATION_VALUES["POST_UPVOTED"]
    return REPUTATION_VALUES["POST_DOWNVOTED"]


def transition(current: VoteType | str | None, pressed: VoteType | str) -> VoteTransition:
    """Apply *pressed* to *current* and return the resulting transition."""
    pressed = VoteType(pressed)
    current = VoteType(current) if current is not None else None

    if current is None:
        action = ACTION_UPVOTED if pressed == VoteType.UP else ACTION_DOWNVOTED
        return VoteTransition(None, pressed, vote_value(pressed), action)

    if current == pressed:
        return VoteTransition(current, None, -vote_value(current), ACTION_VOTE_REMOVED)

    return VoteTransition(
        current,
        pressed,
        vote_value(pressed) - vote_value(current),
        ACTION_VOTE_CHANGED,
    )
