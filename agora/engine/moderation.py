"""
agora.engine.moderation — Typed Moderation Actions
===================================================

Each moderation action is its own frozen dataclass carrying only the
payload it needs.  :data:`ModerationAction` is the closed union accepted
by :func:`agora.services.moderation_service.moderate`; there are no
action-name strings to mistype.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from agora.database.models import ModerationActionType, ModerationTarget


@dataclass(frozen=True, slots=True)
class LockTopic:
    locked: bool = True

    @property
    def log_action(self) -> ModerationActionType:
        return ModerationActionType.LOCK if self.locked else ModerationActionType.UNLOCK

    target = ModerationTarget.TOPIC


@dataclass(frozen=True, slots=True)
class PinTopic:
    pinned: bool = True

    @property
    def log_action(self) -> ModerationActionType:
        return ModerationActionType.PIN if self.pinned else ModerationActionType.UNPIN

    target = ModerationTarget.TOPIC


@dataclass(frozen=True, slots=True)
class MoveTopic:
    target_forum_id: int

    log_action = ModerationActionType.MOVE
    target = ModerationTarget.TOPIC


@dataclass(frozen=True, slots=True)
class DeleteTopic:
    log_action = ModerationActionType.DELETE
    target = ModerationTarget.TOPIC


@dataclass(frozen=True, slots=True)
class DeletePost:
    log_action = ModerationActionType.DELETE
    target = ModerationTarget.POST


@dataclass(frozen=True, slots=True)
class RestorePost:
    log_action = ModerationActionType.RESTORE
    target = ModerationTarget.POST


@dataclass(frozen=True, slots=True)
class WarnUser:
    points: int = 1
    expires_at: datetime | None = None

    log_action = ModerationActionType.WARN
    target = ModerationTarget.USER


@dataclass(frozen=True, slots=True)
class BanUser:
    ban_type: str = "temporary"
    expires_at: datetime | None = None

    log_action = ModerationActionType.BAN
    target = ModerationTarget.USER


@dataclass(frozen=True, slots=True)
class UnbanUser:
    log_action = ModerationActionType.UNBAN
    target = ModerationTarget.USER


ModerationAction = (
    LockTopic | PinTopic | MoveTopic | DeleteTopic | DeletePost
    | RestorePost | WarnUser | BanUser | UnbanUser
)

# Actions that require a non-empty reason
REASON_REQUIRED: tuple[type, ...] = (WarnUser, BanUser)
