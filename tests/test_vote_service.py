"""
tests/test_vote_service.py — Post Voting & Reputation Ledger Tests
===================================================================
"""

from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from agora.constants import topic_view_path
from agora.database.models import Ban, ReputationLedgerEntry, User
from agora.errors import Forbidden, InvalidInput, NotFound
from agora.services import forum_service, vote_service


@pytest.fixture
def post(ctx, users, forum_id):
    """A topic by alice; returns its opening post id and slug."""
    result = forum_service.create_topic(ctx, forum_id, users["alice"], "Votable", "content")
    return result


def _reputation(engine, user_id):
    with Session(engine) as session:
        return session.get(User, user_id).reputation


def _ledger(engine, user_id):
    with Session(engine) as session:
        return session.scalars(
            select(ReputationLedgerEntry)
            .where(ReputationLedgerEntry.user_id == user_id)
            .order_by(ReputationLedgerEntry.id)
        ).all()


class TestVote:
    def test_upvote_then_toggle_off(self, ctx, db_engine, users, post):
        base = _reputation(db_engine, users["alice"])

        first = vote_service.vote(ctx, post["post_id"], users["bob"], "up")
        assert first == {"upvotes": 1, "downvotes": 0, "user_vote": "up"}
        assert _reputation(db_engine, users["alice"]) == base + 3

        second = vote_service.vote(ctx, post["post_id"], users["bob"], "up")
        assert second == {"upvotes": 0, "downvotes": 0, "user_vote": None}
        assert _reputation(db_engine, users["alice"]) == base

    def test_up_to_down_is_one_ledger_row_of_minus_four(self, ctx, db_engine, users, post):
        base = _reputation(db_engine, users["alice"])
        vote_service.vote(ctx, post["post_id"], users["bob"], "up")
        rows_before = len(_ledger(db_engine, users["alice"]))

        result = vote_service.vote(ctx, post["post_id"], users["bob"], "down")

        assert result == {"upvotes": 0, "downvotes": 1, "user_vote": "down"}
        rows = _ledger(db_engine, users["alice"])
        assert len(rows) == rows_before + 1
        assert rows[-1].points == -4
        assert rows[-1].action == "VOTE_CHANGED"
        assert _reputation(db_engine, users["alice"]) == base - 1

    def test_down_to_up(self, ctx, db_engine, users, post):
        base = _reputation(db_engine, users["alice"])
        vote_service.vote(ctx, post["post_id"], users["bob"], "down")
        vote_service.vote(ctx, post["post_id"], users["bob"], "up")
        assert _reputation(db_engine, users["alice"]) == base + 3

    def test_self_vote_forbidden(self, ctx, users, post):
        with pytest.raises(Forbidden):
            vote_service.vote(ctx, post["post_id"], users["alice"], "up")

    def test_invalid_type(self, ctx, users, post):
        with pytest.raises(InvalidInput):
            vote_service.vote(ctx, post["post_id"], users["bob"], "sideways")

    def test_deleted_post_not_found(self, ctx, users, post):
        forum_service.soft_delete_post(ctx, post["post_id"], users["alice"])
        with pytest.raises(NotFound):
            vote_service.vote(ctx, post["post_id"], users["bob"], "up")

    def test_banned_voter(self, ctx, db_engine, users, post):
        with Session(db_engine) as session:
            session.add(Ban(user_id=users["bob"], banned_by=users["mod"], reason="spam"))
            session.commit()
        with pytest.raises(Forbidden):
            vote_service.vote(ctx, post["post_id"], users["bob"], "up")

    def test_reputation_may_go_negative(self, ctx, db_engine, users, forum_id):
        bob_post = forum_service.create_topic(ctx, forum_id, users["bob"], "Hot take", "x")
        with Session(db_engine) as session:
            session.get(User, users["bob"]).reputation = 0
            session.commit()
        vote_service.vote(ctx, bob_post["post_id"], users["alice"], "down")
        assert _reputation(db_engine, users["bob"]) == -1

    def test_invalidates_topic_view(self, ctx, users, post):
        ctx.cache.set(topic_view_path(post["slug"]), {"stale": True})
        vote_service.vote(ctx, post["post_id"], users["bob"], "up")
        assert ctx.cache.get(topic_view_path(post["slug"])) is None

    def test_topic_view_reports_viewer_vote(self, ctx, users, post):
        vote_service.vote(ctx, post["post_id"], users["bob"], "up")
        view = forum_service.get_topic(ctx, post["slug"], viewer_id=users["bob"])
        opening = view["posts"][0]
        assert opening["upvotes"] == 1
        assert opening["user_vote"] == "up"
