"""
agora.config — YAML Configuration Loader
=========================================

Reads ``config.yaml`` for the forum engine's tunables: the name of the
special-cased announcements forum, the fallback used when no
``forum_permissions`` row matches a user's groups, the forum-level
subscription fan-out policy, search limits, and response cache sizing.

Usage::

    from agora.config import load_config

    cfg = load_config()                    # reads ./config.yaml by default
    print(cfg.announcements_forum_name)    # "Announcements"
    print(cfg.default_forum_permission)    # True  (fail-open)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path

import yaml

# Forum-level subscriber fan-out policies
FANOUT_NEW_TOPICS = "new_topics"
FANOUT_REPLIES = "replies"
FANOUT_OFF = "off"
FANOUT_POLICIES: frozenset[str] = frozenset({FANOUT_NEW_TOPICS, FANOUT_REPLIES, FANOUT_OFF})


@dataclass(frozen=True, slots=True)
class AgoraConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    community_name: str

    # Authorization
    announcements_forum_name: str = "Announcements"
    # Used when no ForumPermission row matches any of the user's groups.
    # True keeps the historical fail-open behaviour; flip to fail closed.
    default_forum_permission: bool = True

    # Notifications
    forum_subscription_fanout: str = FANOUT_NEW_TOPICS

    # Search
    search_min_query_length: int = 3

    # Response cache
    cache_default_ttl: int = 300
    cache_max_entries: int = 2048

    # Slug uniqueness retries on IntegrityError
    slug_retry_attempts: int = 3

    @classmethod
    def defaults(cls, community_name: str = "Agora") -> AgoraConfig:
        """Config with every optional key at its default."""
        return cls(community_name=community_name)

    def with_overrides(self, **kwargs) -> AgoraConfig:
        return replace(self, **kwargs)


def load_config(path: str | Path | None = None) -> AgoraConfig:
    """Read *path* and return an :class:`AgoraConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.  Defaults to the
        ``AGORA_CONFIG`` env var, then ``config.yaml`` in the working
        directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ValueError
        If ``forum_subscription_fanout`` is not a known policy.
    """
    if path is None:
        path = os.getenv("AGORA_CONFIG", "config.yaml")
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    fanout = str(raw.get("forum_subscription_fanout", FANOUT_NEW_TOPICS))
    if fanout not in FANOUT_POLICIES:
        raise ValueError(
            f"Unknown forum_subscription_fanout '{fanout}'. "
            f"Allowed: {sorted(FANOUT_POLICIES)}"
        )

    return AgoraConfig(
        community_name=raw["community_name"],
        announcements_forum_name=raw.get("announcements_forum_name", "Announcements"),
        default_forum_permission=bool(raw.get("default_forum_permission", True)),
        forum_subscription_fanout=fanout,
        search_min_query_length=int(raw.get("search_min_query_length", 3)),
        cache_default_ttl=int(raw.get("cache_default_ttl", 300)),
        cache_max_entries=int(raw.get("cache_max_entries", 2048)),
        slug_retry_attempts=int(raw.get("slug_retry_attempts", 3)),
    )
