"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of agora.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from agora.config import AgoraConfig  # noqa: E402
from agora.context import ForumContext  # noqa: E402
from agora.database.engine import enable_sqlite_foreign_keys  # noqa: E402
from agora.database.models import (  # noqa: E402
    Base,
    Category,
    Forum,
    ForumPermission,
    User,
    UserGroup,
    UserGroupMembership,
)
from agora.engine.cache import ResponseCache  # noqa: E402

_bigint_sqlite_registered = False


def _register_bigint_sqlite_compat():
    """Map BigInteger → INTEGER on SQLite so autoincrement works (idempotent)."""
    global _bigint_sqlite_registered
    if _bigint_sqlite_registered:
        return
    from sqlalchemy import BigInteger
    from sqlalchemy.ext.compiler import compiles

    @compiles(BigInteger, "sqlite")
    def _compile_bigint_as_integer(type_, compiler, **kw):
        return "INTEGER"

    _bigint_sqlite_registered = True


_register_bigint_sqlite_compat()


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all forum tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used by the API routes).
    Foreign keys are switched on so topic deletes cascade.
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def config() -> AgoraConfig:
    return AgoraConfig.defaults("Test Forum")


@pytest.fixture
def ctx(db_engine: Engine, config: AgoraConfig) -> ForumContext:
    return ForumContext(engine=db_engine, config=config, cache=ResponseCache())


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session for inspecting state after service calls."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


# ---------------------------------------------------------------------------
# Row factories
# ---------------------------------------------------------------------------
def make_user(engine: Engine, username: str, role: str = "user", reputation: int = 0) -> int:
    with Session(engine) as session:
        user = User(username=username, role=role, reputation=reputation)
        session.add(user)
        session.commit()
        return user.id


def make_group(
    engine: Engine, name: str, is_moderator: bool = False, is_admin: bool = False,
) -> int:
    with Session(engine) as session:
        group = UserGroup(name=name, is_moderator=is_moderator, is_admin=is_admin)
        session.add(group)
        session.commit()
        return group.id


def add_member(engine: Engine, user_id: int, group_id: int) -> None:
    with Session(engine) as session:
        session.add(UserGroupMembership(user_id=user_id, group_id=group_id))
        session.commit()


def make_forum(
    engine: Engine, name: str = "General Discussion", locked: bool = False,
    category_id: int | None = None,
) -> int:
    with Session(engine) as session:
        if category_id is None:
            category = Category(name="General")
            session.add(category)
            session.flush()
            category_id = category.id
        forum = Forum(category_id=category_id, name=name, locked=locked)
        session.add(forum)
        session.commit()
        return forum.id


def set_permission(engine: Engine, forum_id: int, group_id: int, can_post_topics: bool) -> None:
    with Session(engine) as session:
        session.add(ForumPermission(
            forum_id=forum_id, group_id=group_id, can_post_topics=can_post_topics,
        ))
        session.commit()


def make_token(user_id: int) -> str:
    from agora.api.deps import issue_token

    return issue_token(user_id)


@pytest.fixture
def users(db_engine: Engine) -> dict[str, int]:
    """A small cast: two members, a moderator and an admin."""
    return {
        "alice": make_user(db_engine, "alice"),
        "bob": make_user(db_engine, "bob"),
        "mod": make_user(db_engine, "mod", role="moderator"),
        "admin": make_user(db_engine, "admin", role="admin"),
    }


@pytest.fixture
def forum_id(db_engine: Engine) -> int:
    return make_forum(db_engine)


@pytest.fixture
def client(ctx: ForumContext):
    """FastAPI TestClient wired to the in-memory test context.

    The lifespan is not entered (no ``with`` block), so no real database
    is touched; the test context is placed on ``app.state`` directly.
    """
    from fastapi.testclient import TestClient

    from agora.api.main import app

    app.state.ctx = ctx
    yield TestClient(app, raise_server_exceptions=False)
    app.state.ctx = None


def auth(user_id: int) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}
