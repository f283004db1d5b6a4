"""
agora.services.poll_service — Topic Polls
==========================================

A poll is attached to a topic at creation time (:func:`create_poll` runs
inside :func:`agora.services.forum_service.create_topic`'s transaction).
Voting keeps ``forum_poll_options.votes`` in step with the
``forum_poll_votes`` rows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import case, delete, select
from sqlalchemy.orm import Session

from agora.constants import MIN_POLL_OPTIONS
from agora.database.engine import transaction
from agora.database.models import Poll, PollOption, PollVote, Topic
from agora.errors import Conflict, InvalidInput, NotFound

if TYPE_CHECKING:
    from agora.context import ForumContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PollSpec:
    question: str
    options: list[str] = field(default_factory=list)
    max_votes: int = 1
    allow_revote: bool = False
    ends_at: datetime | None = None

    def validate(self) -> tuple[str, list[str]]:
        """Return the stripped question and non-blank options, or raise."""
        question = (self.question or "").strip()
        options = [o.strip() for o in self.options if o and o.strip()]
        if not question:
            raise InvalidInput("Poll question is required")
        if len(options) < MIN_POLL_OPTIONS:
            raise InvalidInput(f"A poll needs at least {MIN_POLL_OPTIONS} options")
        if self.max_votes < 1:
            raise InvalidInput("max_votes must be at least 1")
        return question, options


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def create_poll(session: Session, topic: Topic, spec: PollSpec) -> Poll:
    """Attach a poll to *topic* inside the caller's transaction."""
    question, options = spec.validate()
    poll = Poll(
        topic_id=topic.id,
        question=question,
        max_votes=spec.max_votes,
        allow_revote=spec.allow_revote,
        ends_at=spec.ends_at,
    )
    session.add(poll)
    session.flush()
    for idx, text in enumerate(options):
        session.add(PollOption(poll_id=poll.id, option_text=text, order=idx))
    topic.poll_id = poll.id
    return poll


def poll_results(session: Session, poll_id: int) -> list[dict]:
    options = session.scalars(
        select(PollOption)
        .where(PollOption.poll_id == poll_id)
        .order_by(PollOption.order, PollOption.id)
    ).all()
    return [{"id": o.id, "text": o.option_text, "votes": o.votes} for o in options]


def vote_poll(ctx: ForumContext, poll_id: int, user_id: int, option_id: int) -> dict:
    """Record *user_id*'s vote for *option_id*.

    Raises
    ------
    NotFound
        Poll missing, or *option_id* does not belong to it.
    InvalidInput
        The poll has ended.
    Conflict
        The user already voted and the poll does not allow revoting.
    """
    with transaction(ctx.engine) as session:
        poll = session.get(Poll, poll_id)
        if poll is None:
            raise NotFound("Poll not found")
        if poll.ends_at is not None and _as_aware(poll.ends_at) < datetime.now(UTC):
            raise InvalidInput("This poll has ended")

        option = session.scalar(
            select(PollOption).where(PollOption.id == option_id, PollOption.poll_id == poll_id)
        )
        if option is None:
            raise NotFound("Invalid poll option")

        previous = session.scalars(
            select(PollVote).where(PollVote.poll_id == poll_id, PollVote.user_id == user_id)
        ).all()
        if previous and not poll.allow_revote:
            raise Conflict("You have already voted on this poll")

        for old in previous:
            old_option = session.get(PollOption, old.option_id)
            if old_option is not None:
                old_option.votes = case(
                    (PollOption.votes > 0, PollOption.votes - 1), else_=0
                )
        if previous:
            session.flush()
            session.execute(
                delete(PollVote).where(PollVote.poll_id == poll_id, PollVote.user_id == user_id)
            )

        session.add(PollVote(poll_id=poll_id, option_id=option_id, user_id=user_id))
        option.votes = PollOption.votes + 1
        session.flush()

        results = poll_results(session, poll_id)

    logger.info("User %d voted option %d in poll %d", user_id, option_id, poll_id)
    return {"poll_id": poll_id, "user_vote": option_id, "results": results}
