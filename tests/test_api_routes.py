"""
tests/test_api_routes.py — FastAPI Route Integration Tests
============================================================
Drives the HTTP surface with the FastAPI TestClient against the
in-memory SQLite context from conftest.

These tests verify:
- Bearer auth guards (401 without a token, 403 for non-moderators)
- Error mapping from service exceptions to status codes
- Response caching of anonymous read views
"""

from __future__ import annotations

import jwt
import pytest
from conftest import auth

from agora.api.deps import JWT_ALGORITHM
from agora.constants import FORUM_LIST_PATH


@pytest.fixture
def topic(client, users, forum_id):
    resp = client.post(
        f"/api/forum/forum/{forum_id}/topic",
        json={"title": "Hello World", "content": "First!"},
        headers=auth(users["alice"]),
    )
    assert resp.status_code == 201
    return resp.json()


# ===========================================================================
# Health endpoint
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


# ===========================================================================
# Auth guards
# ===========================================================================
class TestAuthGuards:
    WRITE_ENDPOINTS = [
        ("post", "/api/forum/forum/1/topic"),
        ("post", "/api/forum/topic/1/reply"),
        ("post", "/api/forum/post/1/vote"),
        ("post", "/api/forum-actions/bookmark/1"),
        ("get", "/api/forum-actions/notifications"),
        ("post", "/api/forum-mod/topic/1/lock"),
    ]

    @pytest.mark.parametrize("method, endpoint", WRITE_ENDPOINTS)
    def test_missing_token_401(self, client, method, endpoint):
        resp = getattr(client, method)(endpoint)
        assert resp.status_code == 401

    def test_bad_signature_401(self, client, forum_id):
        forged = jwt.encode({"sub": "1"}, "not-the-secret-" + "y" * 40, algorithm=JWT_ALGORITHM)
        resp = client.post(
            f"/api/forum/forum/{forum_id}/topic",
            json={"title": "x", "content": "y"},
            headers={"Authorization": f"Bearer {forged}"},
        )
        assert resp.status_code == 401

    def test_moderator_reads_forbidden_for_members(self, client, users):
        assert client.get("/api/forum-mod/logs", headers=auth(users["alice"])).status_code == 403
        assert client.get("/api/forum-mod/logs", headers=auth(users["mod"])).status_code == 200

    def test_recount_admin_only(self, client, users):
        assert client.post("/api/forum-mod/recount", headers=auth(users["mod"])).status_code == 403
        resp = client.post("/api/forum-mod/recount", headers=auth(users["admin"]))
        assert resp.status_code == 200
        assert resp.json()["corrected"] == 0

    def test_rebuild_search_admin_only(self, client, users, topic):
        url = "/api/forum-mod/rebuild-search"
        assert client.post(url, headers=auth(users["mod"])).status_code == 403
        resp = client.post(url, headers=auth(users["admin"]))
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "indexed": 1}


# ===========================================================================
# Forum flow
# ===========================================================================
class TestForumFlow:
    def test_create_and_read_topic(self, client, users, topic):
        assert topic["success"] is True
        assert topic["slug"].startswith("hello-world-")

        page = client.get(f"/api/forum/topic/{topic['slug']}")
        assert page.status_code == 200
        body = page.json()
        assert body["topic"]["title"] == "Hello World"
        assert [p["content"] for p in body["posts"]] == ["First!"]

    def test_reply_and_locked_topic(self, client, users, topic):
        resp = client.post(
            f"/api/forum/topic/{topic['topic_id']}/reply",
            json={"content": "hi"}, headers=auth(users["bob"]),
        )
        assert resp.status_code == 201

        lock = client.post(
            f"/api/forum-mod/topic/{topic['topic_id']}/lock",
            json={"locked": True}, headers=auth(users["mod"]),
        )
        assert lock.status_code == 200
        assert lock.json()["log"]["action"] == "lock"

        blocked = client.post(
            f"/api/forum/topic/{topic['topic_id']}/reply",
            json={"content": "again"}, headers=auth(users["bob"]),
        )
        assert blocked.status_code == 403
        assert blocked.json()["detail"] == "This topic is locked"

    def test_vote_toggle_and_self_vote(self, client, users, topic):
        url = f"/api/forum/post/{topic['post_id']}/vote"
        first = client.post(url, json={"voteType": "up"}, headers=auth(users["bob"]))
        assert first.json() == {"upvotes": 1, "downvotes": 0, "user_vote": "up"}
        second = client.post(url, json={"vote_type": "up"}, headers=auth(users["bob"]))
        assert second.json()["user_vote"] is None

        own = client.post(url, json={"voteType": "up"}, headers=auth(users["alice"]))
        assert own.status_code == 403

    def test_invalid_title_400(self, client, users, forum_id):
        resp = client.post(
            f"/api/forum/forum/{forum_id}/topic",
            json={"title": "  ", "content": "body"}, headers=auth(users["alice"]),
        )
        assert resp.status_code == 400

    def test_unknown_forum_404(self, client, users):
        resp = client.post(
            "/api/forum/forum/9999/topic",
            json={"title": "T", "content": "body"}, headers=auth(users["alice"]),
        )
        assert resp.status_code == 404

    def test_ban_conflict_409(self, client, users):
        url = f"/api/forum-mod/user/{users['bob']}/ban"
        assert client.post(url, json={"reason": "spam"}, headers=auth(users["mod"])).status_code == 200
        again = client.post(url, json={"reason": "spam"}, headers=auth(users["mod"]))
        assert again.status_code == 409
        assert again.json()["detail"] == "User is already banned"

    def test_search_short_query_400(self, client, topic):
        assert client.get("/api/forum/search", params={"q": "hi"}).status_code == 400
        found = client.get("/api/forum/search", params={"q": "first"})
        assert found.json()["pagination"]["total"] == 1


# ===========================================================================
# Caching
# ===========================================================================
class TestResponseCache:
    def test_forum_list_cached_then_invalidated(self, client, ctx, users, forum_id):
        first = client.get("/api/forum").json()
        assert first["categories"][0]["forums"][0]["topics_count"] == 0
        assert ctx.cache.get(FORUM_LIST_PATH) is not None

        client.post(
            f"/api/forum/forum/{forum_id}/topic",
            json={"title": "New", "content": "body"}, headers=auth(users["alice"]),
        )

        assert ctx.cache.get(FORUM_LIST_PATH) is None
        fresh = client.get("/api/forum").json()
        assert fresh["categories"][0]["forums"][0]["topics_count"] == 1

    def test_signed_in_topic_view_not_cached(self, client, ctx, users, topic):
        client.get(f"/api/forum/topic/{topic['slug']}", headers=auth(users["bob"]))
        assert ctx.cache.stats()["keys"] == 0


# ===========================================================================
# Actions
# ===========================================================================
class TestActions:
    def test_subscribe_toggle_and_notifications(self, client, users, topic):
        toggle = client.post(
            f"/api/forum-actions/subscribe/topic/{topic['topic_id']}", headers=auth(users["alice"]),
        )
        assert toggle.json()["subscribed"] is True

        client.post(
            f"/api/forum/topic/{topic['topic_id']}/reply",
            json={"content": "ping"}, headers=auth(users["bob"]),
        )
        notes = client.get("/api/forum-actions/notifications", headers=auth(users["alice"])).json()
        assert notes["unread_count"] == 1

        read_all = client.post("/api/forum-actions/notifications/read-all", headers=auth(users["alice"]))
        assert read_all.status_code == 200

    def test_put_subscription_twice_409(self, client, users, forum_id):
        url = f"/api/forum-actions/subscriptions/forum/{forum_id}"
        assert client.put(url, headers=auth(users["bob"])).status_code == 201
        assert client.put(url, headers=auth(users["bob"])).status_code == 409
        assert client.delete(url, headers=auth(users["bob"])).status_code == 200
        assert client.delete(url, headers=auth(users["bob"])).status_code == 404

    def test_subscription_settings(self, client, users, topic):
        url = f"/api/forum-actions/subscriptions/topic/{topic['topic_id']}"
        assert client.put(url, headers=auth(users["bob"])).status_code == 201

        listed = client.get("/api/forum-actions/subscriptions", headers=auth(users["bob"])).json()
        sub_id = listed["subscriptions"][0]["id"]
        check = client.get(
            f"/api/forum-actions/subscriptions/check/{topic['topic_id']}", headers=auth(users["bob"]),
        ).json()
        assert check["subscribed"] is True

        settings_url = f"/api/forum-actions/subscriptions/{sub_id}"
        body = {"notifyReplies": False}
        assert client.put(settings_url, json=body, headers=auth(users["alice"])).status_code == 403
        resp = client.put(settings_url, json=body, headers=auth(users["bob"]))
        assert resp.status_code == 200
        assert resp.json()["subscription"]["notify_replies"] is False
