"""
tests/test_reconciliation.py — Counter Recount Tests
=====================================================
"""

from __future__ import annotations

import pytest
from conftest import make_forum
from sqlalchemy.orm import Session

from agora.database.models import Forum, Topic, User
from agora.errors import NotFound
from agora.services import forum_service, reconciliation_service


@pytest.fixture
def seeded(ctx, users, forum_id):
    topic = forum_service.create_topic(ctx, forum_id, users["alice"], "Thread", "Opening")
    forum_service.reply(ctx, topic["topic_id"], users["bob"], "reply")
    return topic


class TestRecount:
    def test_consistent_state_needs_no_corrections(self, ctx, seeded):
        report = reconciliation_service.recount_counters(ctx)
        assert report["corrected"] == 0
        assert report["checked"] > 0

    def test_fixes_drifted_counters(self, ctx, db_engine, users, forum_id, seeded):
        with Session(db_engine) as session:
            forum = session.get(Forum, forum_id)
            forum.posts_count = 17
            forum.topics_count = 0
            session.get(Topic, seeded["topic_id"]).replies = 9
            session.get(User, users["alice"]).reputation = 1000
            session.commit()

        report = reconciliation_service.recount_counters(ctx)

        fields = {(c["table"], c["column"]) for c in report["corrections"]}
        assert ("forums", "posts_count") in fields
        assert ("forum_topics", "replies") in fields
        assert ("users", "reputation") in fields
        with Session(db_engine) as session:
            forum = session.get(Forum, forum_id)
            assert (forum.topics_count, forum.posts_count) == (1, 2)
            assert session.get(Topic, seeded["topic_id"]).replies == 1
            assert session.get(User, users["alice"]).reputation == 7

    def test_single_forum_scope_skips_reputation(self, ctx, db_engine, users, forum_id, seeded):
        with Session(db_engine) as session:
            session.get(User, users["alice"]).reputation = 1000
            session.commit()
        report = reconciliation_service.recount_counters(ctx, forum_id=forum_id)
        assert report["corrected"] == 0

    def test_missing_forum(self, ctx):
        with pytest.raises(NotFound):
            reconciliation_service.recount_counters(ctx, forum_id=4040)

    def test_pointer_repaired(self, ctx, db_engine, forum_id, seeded):
        empty = make_forum(db_engine, name="Empty")
        with Session(db_engine) as session:
            session.get(Forum, empty).last_post_id = 12345
            session.commit()
        report = reconciliation_service.recount_counters(ctx, forum_id=empty)
        assert report["corrected"] == 1
        with Session(db_engine) as session:
            assert session.get(Forum, empty).last_post_id is None
