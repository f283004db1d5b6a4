"""
agora.database.seed — Default Groups & Forums Seeder
=====================================================

Baseline rows seeded on first startup so a fresh install has working
permission groups and somewhere to post.

Idempotent — groups are inserted by name only when missing, and the
starter category/forums are created only when no category exists yet.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, func, select
from sqlalchemy.orm import Session

from agora.database.models import Category, Forum, UserGroup

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Default catalogue
# ---------------------------------------------------------------------------
DEFAULT_GROUPS: dict[str, dict] = {
    "Administrators": {
        "description": "Full control over the forum",
        "color": "#ef4444",
        "is_admin": True,
        "is_moderator": True,
    },
    "Moderators": {
        "description": "Lock, pin, move and clean up topics",
        "color": "#3b82f6",
        "is_admin": False,
        "is_moderator": True,
    },
    "Members": {
        "description": "Registered community members",
        "color": "#9ca3af",
        "is_admin": False,
        "is_moderator": False,
    },
}

DEFAULT_CATEGORY = ("General", "Community-wide discussion")
DEFAULT_FORUMS: list[tuple[str, str]] = [
    ("Announcements", "News from the staff"),
    ("General Discussion", "Talk about anything"),
]


def seed_defaults(engine: Engine) -> dict[str, int]:
    """Insert default groups and the starter category.

    Returns ``{"groups": n, "forums": m}`` — how many rows were created.
    """
    created_groups = 0
    created_forums = 0

    with Session(engine) as session:
        existing = set(session.scalars(select(UserGroup.name)).all())
        for name, attrs in DEFAULT_GROUPS.items():
            if name in existing:
                continue
            session.add(UserGroup(name=name, **attrs))
            created_groups += 1

        category_count = session.scalar(select(func.count()).select_from(Category)) or 0
        if category_count == 0:
            name, description = DEFAULT_CATEGORY
            category = Category(name=name, description=description, order=0)
            session.add(category)
            session.flush()
            for idx, (forum_name, forum_desc) in enumerate(DEFAULT_FORUMS):
                session.add(Forum(
                    category_id=category.id,
                    name=forum_name,
                    description=forum_desc,
                    order=idx,
                ))
                created_forums += 1

        session.commit()

    if created_groups or created_forums:
        logger.info(
            "Seeded %d default groups and %d default forums",
            created_groups, created_forums,
        )
    return {"groups": created_groups, "forums": created_forums}
