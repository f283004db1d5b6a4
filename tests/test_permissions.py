"""
tests/test_permissions.py — Authorization Predicate Tests
==========================================================
Pure checks over Principal / Forum / ForumPermission rows; no database.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import pytest

from agora.config import AgoraConfig
from agora.engine.permissions import (
    Principal,
    ban_is_active,
    can_modify_post,
    can_moderate,
    can_post,
    can_reply,
)


@pytest.fixture
def cfg():
    return AgoraConfig.defaults()


def _forum(forum_id=1, name="General Discussion", locked=False):
    return SimpleNamespace(id=forum_id, name=name, locked=locked)


def _row(forum_id, group_id, can_post_topics):
    return SimpleNamespace(forum_id=forum_id, group_id=group_id, can_post_topics=can_post_topics)


class TestCanPost:
    def test_admin_posts_anywhere_even_locked(self, cfg):
        admin = Principal(user_id=1, role="admin")
        assert can_post(admin, _forum(locked=True), [], cfg)
        assert can_post(admin, _forum(name="Announcements"), [], cfg)

    def test_locked_forum_denies_moderators(self, cfg):
        mod = Principal(user_id=2, role="moderator", is_moderator_group=True)
        assert not can_post(mod, _forum(locked=True), [], cfg)

    def test_announcements_needs_moderator_or_admin_group(self, cfg):
        forum = _forum(name="Announcements")
        assert not can_post(Principal(user_id=3), forum, [], cfg)
        assert can_post(Principal(user_id=3, is_moderator_group=True), forum, [], cfg)
        assert can_post(Principal(user_id=3, is_admin_group=True), forum, [], cfg)

    def test_announcements_name_is_configurable(self):
        cfg = AgoraConfig.defaults().with_overrides(announcements_forum_name="News")
        user = Principal(user_id=3)
        assert not can_post(user, _forum(name="News"), [], cfg)
        assert can_post(user, _forum(name="Announcements"), [], cfg)

    def test_no_matching_rows_falls_back_to_config(self, cfg):
        user = Principal(user_id=4, group_ids=frozenset({7}))
        rows = [_row(1, 99, False)]
        assert can_post(user, _forum(), rows, cfg)
        closed = cfg.with_overrides(default_forum_permission=False)
        assert not can_post(user, _forum(), rows, closed)

    def test_any_allowing_group_wins(self, cfg):
        user = Principal(user_id=5, group_ids=frozenset({1, 2}))
        rows = [_row(1, 1, False), _row(1, 2, True)]
        assert can_post(user, _forum(), rows, cfg)

    def test_all_matching_rows_deny(self, cfg):
        user = Principal(user_id=5, group_ids=frozenset({1}))
        assert not can_post(user, _forum(), [_row(1, 1, False)], cfg)

    def test_rows_for_other_forums_ignored(self, cfg):
        user = Principal(user_id=5, group_ids=frozenset({1}))
        closed = cfg.with_overrides(default_forum_permission=False)
        assert not can_post(user, _forum(forum_id=1), [_row(2, 1, True)], closed)


class TestReplyAndModify:
    def test_locked_topic_blocks_members_not_admins(self):
        topic = SimpleNamespace(locked=True)
        forum = _forum()
        assert not can_reply(Principal(user_id=1), topic, forum)
        assert not can_reply(Principal(user_id=1, role="moderator"), topic, forum)
        assert can_reply(Principal(user_id=1, role="admin"), topic, forum)

    def test_locked_forum_blocks_replies(self):
        topic = SimpleNamespace(locked=False)
        assert not can_reply(Principal(user_id=1), topic, _forum(locked=True))
        assert can_reply(Principal(user_id=1), topic, _forum())

    def test_modify_author_or_admin(self):
        assert can_modify_post(Principal(user_id=10), 10)
        assert not can_modify_post(Principal(user_id=11), 10)
        assert not can_modify_post(Principal(user_id=11, role="moderator"), 10)
        assert can_modify_post(Principal(user_id=11, role="admin"), 10)

    def test_moderate_by_role_or_group(self):
        assert not can_moderate(Principal(user_id=1))
        assert can_moderate(Principal(user_id=1, role="moderator"))
        assert can_moderate(Principal(user_id=1, role="admin"))
        assert can_moderate(Principal(user_id=1, is_moderator_group=True))
        assert can_moderate(Principal(user_id=1, is_admin_group=True))


class TestBanIsActive:
    NOW = datetime(2026, 1, 1, tzinfo=UTC)

    def test_none_and_inactive(self):
        assert not ban_is_active(None)
        assert not ban_is_active(SimpleNamespace(active=False, expires_at=None))

    def test_permanent(self):
        assert ban_is_active(SimpleNamespace(active=True, expires_at=None), self.NOW)

    def test_expiry(self):
        future = SimpleNamespace(active=True, expires_at=self.NOW + timedelta(days=1))
        past = SimpleNamespace(active=True, expires_at=self.NOW - timedelta(seconds=1))
        assert ban_is_active(future, self.NOW)
        assert not ban_is_active(past, self.NOW)

    def test_naive_expiry_treated_as_utc(self):
        naive = SimpleNamespace(active=True, expires_at=datetime(2026, 1, 2))
        assert ban_is_active(naive, self.NOW)
