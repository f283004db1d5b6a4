"""
agora.engine.permissions — Forum Authorization Predicates
==========================================================

Pure predicates over an already-loaded :class:`Principal`, forum/topic
rows and the forum's permission rows.  No database I/O; the services
load state and then ask these functions.

Posting-a-topic rules, evaluated in order:
  1. role == admin                          → allow
  2. forum locked                           → deny (moderators included)
  3. forum is the announcements forum       → allow only moderator/admin groups
  4. highest ``can_post_topics`` across the user's group rows for this
     forum; no matching row → ``config.default_forum_permission``
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from agora.constants import ROLE_ADMIN, ROLE_MODERATOR

if TYPE_CHECKING:
    from agora.config import AgoraConfig
    from agora.database.models import Ban, Forum, ForumPermission, ForumWarning, Topic


@dataclass(frozen=True, slots=True)
class Principal:
    """The acting user, with group capabilities flattened in."""

    user_id: int
    role: str = "user"
    group_ids: frozenset[int] = field(default_factory=frozenset)
    is_moderator_group: bool = False
    is_admin_group: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_moderator(self) -> bool:
        """Moderator capability via role or via any moderator/admin group."""
        return (
            self.role in (ROLE_ADMIN, ROLE_MODERATOR)
            or self.is_moderator_group
            or self.is_admin_group
        )


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------
def can_post(
    principal: Principal,
    forum: Forum,
    permission_rows: Iterable[ForumPermission],
    config: AgoraConfig,
) -> bool:
    """May *principal* open a new topic in *forum*?"""
    if principal.is_admin:
        return True
    if forum.locked:
        return False
    if forum.name == config.announcements_forum_name:
        return principal.is_moderator_group or principal.is_admin_group

    matching = [
        row.can_post_topics
        for row in permission_rows
        if row.forum_id == forum.id and row.group_id in principal.group_ids
    ]
    if not matching:
        return config.default_forum_permission
    return max(bool(v) for v in matching)


def can_reply(principal: Principal, topic: Topic, forum: Forum) -> bool:
    if principal.is_admin:
        return True
    return not (topic.locked or forum.locked)


def can_modify_post(principal: Principal, author_id: int) -> bool:
    """Author or admin — used for edit, soft delete and topic delete."""
    return principal.is_admin or principal.user_id == author_id


def can_moderate(principal: Principal) -> bool:
    return principal.is_moderator


def _unexpired(expires_at: datetime | None, now: datetime | None) -> bool:
    if expires_at is None:
        return True
    now = now or datetime.now(UTC)
    if expires_at.tzinfo is None:
        # SQLite hands back naive datetimes
        expires_at = expires_at.replace(tzinfo=UTC)
    return expires_at > now


def ban_is_active(ban: Ban | None, now: datetime | None = None) -> bool:
    """A ban restricts only while flagged active and not yet expired."""
    if ban is None or not ban.active:
        return False
    return _unexpired(ban.expires_at, now)


def warning_is_active(warning: ForumWarning, now: datetime | None = None) -> bool:
    """Warnings lapse the same way bans do."""
    return warning.active and _unexpired(warning.expires_at, now)
