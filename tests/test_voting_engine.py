"""
tests/test_voting_engine.py — Vote State Machine Tests
=======================================================
"""

from __future__ import annotations

import pytest

from agora.database.models import VoteType
from agora.engine.voting import (
    ACTION_DOWNVOTED,
    ACTION_UPVOTED,
    ACTION_VOTE_CHANGED,
    ACTION_VOTE_REMOVED,
    transition,
)


@pytest.mark.parametrize(
    "current, pressed, new_state, delta, action",
    [
        (None, "up", VoteType.UP, 3, ACTION_UPVOTED),
        (None, "down", VoteType.DOWN, -1, ACTION_DOWNVOTED),
        ("up", "up", None, -3, ACTION_VOTE_REMOVED),
        ("down", "down", None, 1, ACTION_VOTE_REMOVED),
        ("up", "down", VoteType.DOWN, -4, ACTION_VOTE_CHANGED),
        ("down", "up", VoteType.UP, 4, ACTION_VOTE_CHANGED),
    ],
)
def test_transition_table(current, pressed, new_state, delta, action):
    step = transition(current, pressed)
    assert step.new_state == new_state
    assert step.reputation_delta == delta
    assert step.ledger_action == action


def test_removed_and_changed_flags():
    assert transition("up", "up").removed
    assert not transition("up", "up").changed
    assert transition("up", "down").changed
    assert not transition(None, "up").removed


def test_unknown_vote_type_rejected():
    with pytest.raises(ValueError):
        transition(None, "sideways")
