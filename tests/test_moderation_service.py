"""
tests/test_moderation_service.py — Audited Moderation Action Tests
===================================================================
Each successful action appends exactly one moderation log row; failed
actions append none.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from conftest import make_forum
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from agora.database.models import (
    Ban,
    Forum,
    ForumWarning,
    ModerationLogEntry,
    Notification,
    Post,
    Topic,
)
from agora.engine.moderation import (
    BanUser,
    DeletePost,
    DeleteTopic,
    LockTopic,
    MoveTopic,
    PinTopic,
    RestorePost,
    UnbanUser,
    WarnUser,
)
from agora.errors import Conflict, Forbidden, InvalidInput, NotFound
from agora.services import forum_service, moderation_service


def _log_count(engine) -> int:
    with Session(engine) as session:
        return session.scalar(select(func.count()).select_from(ModerationLogEntry))


@pytest.fixture
def topic(ctx, users, forum_id):
    return forum_service.create_topic(ctx, forum_id, users["alice"], "Thread", "Opening")


class TestAuthorization:
    def test_regular_user_forbidden_and_nothing_logged(self, ctx, db_engine, users, topic):
        with pytest.raises(Forbidden):
            moderation_service.moderate(ctx, users["bob"], LockTopic(), topic["topic_id"])
        assert _log_count(db_engine) == 0

    def test_reason_required_for_warn_and_ban(self, ctx, users):
        with pytest.raises(InvalidInput):
            moderation_service.moderate(ctx, users["mod"], WarnUser(), users["bob"], reason="  ")
        with pytest.raises(InvalidInput):
            moderation_service.moderate(ctx, users["mod"], BanUser(), users["bob"])


class TestTopicActions:
    def test_lock_then_admin_still_replies(self, ctx, db_engine, users, topic):
        result = moderation_service.moderate(ctx, users["mod"], LockTopic(), topic["topic_id"])
        assert result["action"] == "lock"
        assert result["target_type"] == "topic"

        with pytest.raises(Forbidden):
            forum_service.reply(ctx, topic["topic_id"], users["bob"], "x")
        assert forum_service.reply(ctx, topic["topic_id"], users["admin"], "noted")

        moderation_service.moderate(ctx, users["mod"], LockTopic(locked=False), topic["topic_id"])
        assert forum_service.reply(ctx, topic["topic_id"], users["bob"], "thanks")
        assert _log_count(db_engine) == 2

    def test_pin(self, ctx, db_engine, users, topic):
        result = moderation_service.moderate(ctx, users["mod"], PinTopic(), topic["topic_id"])
        assert result["action"] == "pin"
        with Session(db_engine) as session:
            assert session.get(Topic, topic["topic_id"]).pinned is True

    def test_move_updates_both_forums(self, ctx, db_engine, users, forum_id, topic):
        forum_service.reply(ctx, topic["topic_id"], users["bob"], "reply")
        hidden = forum_service.reply(ctx, topic["topic_id"], users["bob"], "hidden")
        forum_service.soft_delete_post(ctx, hidden, users["bob"])
        target = make_forum(db_engine, name="Elsewhere")

        result = moderation_service.moderate(
            ctx, users["mod"], MoveTopic(target_forum_id=target), topic["topic_id"], reason="off-topic",
        )

        assert result["details"] == f"Moved from forum {forum_id} to {target}"
        with Session(db_engine) as session:
            src, dst = session.get(Forum, forum_id), session.get(Forum, target)
            assert (src.topics_count, src.posts_count, src.last_post_id) == (0, 0, None)
            assert (dst.topics_count, dst.posts_count) == (1, 2)
            assert dst.last_post_topic_id == topic["topic_id"]

    def test_move_to_same_forum_invalid(self, ctx, db_engine, users, forum_id, topic):
        with pytest.raises(InvalidInput):
            moderation_service.moderate(ctx, users["mod"], MoveTopic(forum_id), topic["topic_id"])
        assert _log_count(db_engine) == 0

    def test_move_to_missing_forum(self, ctx, users, topic):
        with pytest.raises(NotFound):
            moderation_service.moderate(ctx, users["mod"], MoveTopic(9999), topic["topic_id"])

    def test_delete_topic(self, ctx, db_engine, users, forum_id, topic):
        result = moderation_service.moderate(
            ctx, users["mod"], DeleteTopic(), topic["topic_id"], reason="spam",
        )
        assert result["details"] == "Deleted topic: Thread"
        with Session(db_engine) as session:
            assert session.get(Topic, topic["topic_id"]) is None
            assert session.get(Forum, forum_id).topics_count == 0


class TestPostActions:
    def test_delete_then_restore(self, ctx, db_engine, users, forum_id, topic):
        post_id = forum_service.reply(ctx, topic["topic_id"], users["bob"], "rude")

        moderation_service.moderate(ctx, users["mod"], DeletePost(), post_id, reason="rude")
        with Session(db_engine) as session:
            post = session.get(Post, post_id)
            assert post.deleted and post.deleted_by == users["mod"]
            assert session.get(Topic, topic["topic_id"]).last_post_id == topic["post_id"]

        with pytest.raises(InvalidInput):
            moderation_service.moderate(ctx, users["mod"], DeletePost(), post_id)

        moderation_service.moderate(ctx, users["mod"], RestorePost(), post_id)
        with Session(db_engine) as session:
            assert session.get(Topic, topic["topic_id"]).replies == 1
            assert session.get(Forum, forum_id).posts_count == 2
            assert session.get(Topic, topic["topic_id"]).last_post_id == post_id

    def test_restore_live_post_invalid(self, ctx, users, topic):
        with pytest.raises(InvalidInput, match="not deleted"):
            moderation_service.moderate(ctx, users["mod"], RestorePost(), topic["post_id"])

    def test_delete_then_restore_only_post(self, ctx, db_engine, users, forum_id, topic):
        moderation_service.moderate(ctx, users["mod"], DeletePost(), topic["post_id"])
        with Session(db_engine) as session:
            t = session.get(Topic, topic["topic_id"])
            assert t.replies == 0
            assert t.last_post_id is None
            assert session.get(Forum, forum_id).last_post_id is None

        moderation_service.moderate(ctx, users["mod"], RestorePost(), topic["post_id"])
        with Session(db_engine) as session:
            t = session.get(Topic, topic["topic_id"])
            assert t.replies == 0
            assert t.last_post_id == topic["post_id"]
            assert session.get(Forum, forum_id).posts_count == 1

    def test_replies_track_live_posts_through_repeated_restores(
        self, ctx, db_engine, users, topic,
    ):
        first = forum_service.reply(ctx, topic["topic_id"], users["bob"], "one")
        second = forum_service.reply(ctx, topic["topic_id"], users["bob"], "two")
        for post_id in (topic["post_id"], first, second):
            moderation_service.moderate(ctx, users["mod"], DeletePost(), post_id)
        for post_id in (second, topic["post_id"]):
            moderation_service.moderate(ctx, users["mod"], RestorePost(), post_id)

        with Session(db_engine) as session:
            assert session.get(Topic, topic["topic_id"]).replies == 1



class TestUserActions:
    def test_warn_notifies_user(self, ctx, db_engine, users):
        result = moderation_service.moderate(
            ctx, users["mod"], WarnUser(points=2), users["bob"], reason="tone",
        )
        assert result["details"] == "Warning points: 2"
        with Session(db_engine) as session:
            warning = session.scalar(select(ForumWarning))
            assert (warning.user_id, warning.points, warning.reason) == (users["bob"], 2, "tone")
            note = session.scalar(select(Notification).where(Notification.user_id == users["bob"]))
            assert note.type == "warning"
        assert len(moderation_service.list_user_warnings(ctx, users["bob"])) == 1

    def test_ban_twice_conflicts_with_one_log_row(self, ctx, db_engine, users):
        moderation_service.moderate(ctx, users["mod"], BanUser(), users["bob"], reason="spam")
        with pytest.raises(Conflict):
            moderation_service.moderate(ctx, users["mod"], BanUser(), users["bob"], reason="spam")
        assert _log_count(db_engine) == 1
        with Session(db_engine) as session:
            assert session.scalar(select(func.count()).select_from(Ban)) == 1

    def test_expired_ban_allows_new_ban(self, ctx, db_engine, users):
        with Session(db_engine) as session:
            session.add(Ban(
                user_id=users["bob"], banned_by=users["mod"], reason="old",
                expires_at=datetime.now(UTC) - timedelta(hours=1),
            ))
            session.commit()
        moderation_service.moderate(ctx, users["mod"], BanUser(), users["bob"], reason="again")

    def test_unban(self, ctx, db_engine, users, forum_id):
        moderation_service.moderate(ctx, users["mod"], BanUser(), users["bob"], reason="spam")
        with pytest.raises(Forbidden):
            forum_service.create_topic(ctx, forum_id, users["bob"], "T", "b")

        moderation_service.moderate(ctx, users["mod"], UnbanUser(), users["bob"])
        assert forum_service.create_topic(ctx, forum_id, users["bob"], "T", "b")

        with pytest.raises(NotFound):
            moderation_service.moderate(ctx, users["mod"], UnbanUser(), users["bob"])

    def test_missing_user(self, ctx, users):
        with pytest.raises(NotFound):
            moderation_service.moderate(ctx, users["mod"], WarnUser(), 4242, reason="x")

    def test_unban_with_only_expired_ban_is_not_found(self, ctx, db_engine, users):
        with Session(db_engine) as session:
            session.add(Ban(
                user_id=users["bob"], banned_by=users["mod"], reason="old",
                expires_at=datetime.now(UTC) - timedelta(hours=1),
            ))
            session.commit()
        with pytest.raises(NotFound):
            moderation_service.moderate(ctx, users["mod"], UnbanUser(), users["bob"])
        assert _log_count(db_engine) == 0

    def test_expired_warnings_are_not_active(self, ctx, db_engine, users):
        with Session(db_engine) as session:
            session.add(ForumWarning(
                user_id=users["bob"], moderator_id=users["mod"], reason="old",
                expires_at=datetime.now(UTC) - timedelta(days=1),
            ))
            session.commit()
        moderation_service.moderate(ctx, users["mod"], WarnUser(), users["bob"], reason="new")

        active = moderation_service.list_user_warnings(ctx, users["bob"])
        assert [w["reason"] for w in active] == ["new"]
        assert len(moderation_service.list_user_warnings(ctx, users["bob"], active_only=False)) == 2
        assert forum_service.get_user_stats(ctx, users["bob"])["active_warnings"] == 1



class TestModerationLog:
    def test_newest_first_with_username(self, ctx, users, topic):
        moderation_service.moderate(ctx, users["mod"], PinTopic(), topic["topic_id"])
        moderation_service.moderate(ctx, users["admin"], LockTopic(), topic["topic_id"])
        page = moderation_service.list_moderation_log(ctx)
        assert [e["action"] for e in page["logs"]] == ["lock", "pin"]
        assert page["logs"][0]["moderator_username"] == "admin"
        assert page["pagination"]["total"] == 2
