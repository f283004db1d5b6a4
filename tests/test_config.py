"""
tests/test_config.py — YAML Config Loader Tests
================================================
"""

from __future__ import annotations

import pytest

from agora.config import FANOUT_NEW_TOPICS, FANOUT_REPLIES, AgoraConfig, load_config


def _write(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_minimal_file_uses_defaults(self, tmp_path):
        cfg = load_config(_write(tmp_path, "community_name: Test Town\n"))
        assert cfg == AgoraConfig.defaults("Test Town")
        assert cfg.default_forum_permission is True
        assert cfg.forum_subscription_fanout == FANOUT_NEW_TOPICS

    def test_overrides_read(self, tmp_path):
        cfg = load_config(_write(tmp_path, (
            "community_name: X\n"
            "announcements_forum_name: News\n"
            "default_forum_permission: false\n"
            "forum_subscription_fanout: replies\n"
            "search_min_query_length: 4\n"
        )))
        assert cfg.announcements_forum_name == "News"
        assert cfg.default_forum_permission is False
        assert cfg.forum_subscription_fanout == FANOUT_REPLIES
        assert cfg.search_min_query_length == 4

    def test_unknown_fanout_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="forum_subscription_fanout"):
            load_config(_write(tmp_path, "community_name: X\nforum_subscription_fanout: all\n"))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")

    def test_missing_required_key(self, tmp_path):
        with pytest.raises(KeyError):
            load_config(_write(tmp_path, "search_min_query_length: 3\n"))

    def test_env_var_path(self, tmp_path, monkeypatch):
        path = _write(tmp_path, "community_name: From Env\n")
        monkeypatch.setenv("AGORA_CONFIG", str(path))
        assert load_config().community_name == "From Env"
