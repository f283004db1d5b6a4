"""
agora.errors — Forum Engine Error Taxonomy
===========================================

Every service raises one of these.  Business-rule violations
(:class:`NotFound`, :class:`Forbidden`, :class:`Conflict`,
:class:`InvalidInput`) are raised before the first write of an
operation; :class:`StorageFailure` wraps a rolled-back transaction.

The API layer maps ``status_code`` straight onto the HTTP response.
"""

from __future__ import annotations


class ForumError(Exception):
    """Base exception for forum engine errors."""

    status_code: int = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message or self.__class__.__name__


class NotFound(ForumError):
    """Forum, topic, post, poll, or user does not exist."""

    status_code = 404


class Forbidden(ForumError):
    """Locked resource, missing permission, self-vote, or non-owner mutation."""

    status_code = 403


class Conflict(ForumError):
    """Duplicate active ban, existing subscription, or exhausted slug retries."""

    status_code = 409


class InvalidInput(ForumError):
    """Missing title/content, malformed poll, short search query."""

    status_code = 400


class StorageFailure(ForumError):
    """Transaction or commit error; the transaction was rolled back."""

    status_code = 500
