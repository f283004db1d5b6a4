"""
agora.database.engine — Database Connection, Transactions & Async Helper
=========================================================================

Every compound forum mutation (counters + pointers + ledger + log rows)
runs inside **one** session transaction opened by :func:`transaction`.
Any SQLAlchemy error rolls the whole thing back and surfaces as
:class:`~agora.errors.StorageFailure`; business-rule errors raised inside
the block roll back too and propagate unchanged.

SQLAlchemy + psycopg2 is synchronous.  The FastAPI routes call services
through :func:`run_db`, which ships the call to a worker thread via
``asyncio.to_thread()`` so the event loop stays free.

Usage::

    from agora.database.engine import create_db_engine, init_db, transaction

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    with transaction(engine) as session:
        session.add(Forum(...))
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agora.database.models import Base
from agora.errors import StorageFailure

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """Build a SQLAlchemy :class:`Engine` from *url* or ``DATABASE_URL``.

    The connection pool is sized for a small-to-medium community forum:
    * ``pool_size=5`` — five persistent connections.
    * ``max_overflow=10`` — up to 10 extra connections under load.
    * ``pool_timeout=10`` — fail after 10 s if no connection is available.
    * ``pool_recycle=3600`` — recycle connections after 1 hour.

    PostgreSQL runs each compound operation at READ COMMITTED (the
    server default), which is enough for the single-statement counter updates.

    Raises
    ------
    RuntimeError
        If no URL is given and ``DATABASE_URL`` is not set.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    if url.startswith("sqlite"):
        engine = create_engine(url, echo=False)
        enable_sqlite_foreign_keys(engine)
    else:
        engine = create_engine(
            url,
            echo=False,        # Set True for SQL debugging
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,   # Reconnect stale connections automatically
            pool_timeout=10,
            pool_recycle=3600,
            isolation_level="READ COMMITTED",
        )
    logger.info("Database engine created → %s", engine.url.host or engine.url.database)
    return engine


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """Turn on ``PRAGMA foreign_keys`` for every new SQLite connection.

    Hard topic deletes rely on ``ON DELETE CASCADE`` to remove posts,
    votes, search entries and notifications.  SQLite ignores FK clauses
    unless the pragma is set per connection.
    """

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables and seed the default groups and forums.

    Safe to call on every startup.  Seeding is idempotent.

    .. note::

        In production the schema is managed by Alembic (``alembic upgrade
        head``).  ``create_all`` is retained for dev/test environments.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")

    from agora.database.seed import seed_defaults

    seed_defaults(engine)


# ---------------------------------------------------------------------------
# Session helpers
# ---------------------------------------------------------------------------
@contextmanager
def transaction(engine: Engine) -> Iterator[Session]:
    """All-or-nothing unit of work for a forum operation.

    Commits when the block exits cleanly.  On any exception the session
    is rolled back; storage errors are re-raised as
    :class:`StorageFailure`, everything else propagates as-is.
    Objects stay readable after commit (``expire_on_commit=False``).
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("Transaction rolled back: %s", exc.__class__.__name__)
        raise StorageFailure("Storage operation failed") from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** service function on a background thread.

    Every service call from an async route should go through this::

        result = await run_db(forum_service.reply, ctx, topic_id, principal, body)

    Under the hood it calls :func:`asyncio.to_thread`, which schedules
    *func* on the default ``ThreadPoolExecutor``.
    """
    return await asyncio.to_thread(func, *args, **kwargs)
