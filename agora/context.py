"""
agora.context — Forum Service Context
======================================

One :class:`ForumContext` per process, built by the API lifespan (or by a
test fixture) and passed as the first argument to every service call.
There are no module-level engine or cache singletons.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import Engine

from agora.config import AgoraConfig, load_config
from agora.database.engine import create_db_engine
from agora.engine.cache import ResponseCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ForumContext:
    engine: Engine
    config: AgoraConfig
    cache: ResponseCache


def build_context(
    engine: Engine | None = None,
    config: AgoraConfig | None = None,
) -> ForumContext:
    """Assemble a context, creating whichever collaborators were not supplied."""
    config = config or load_config()
    engine = engine or create_db_engine()
    cache = ResponseCache(
        default_ttl=config.cache_default_ttl,
        max_entries=config.cache_max_entries,
    )
    logger.info("Forum context ready for %s", config.community_name)
    return ForumContext(engine=engine, config=config, cache=cache)


def invalidate_paths(ctx: ForumContext, *paths: str) -> None:
    """Best-effort cache invalidation after a committed mutation.

    Failures are logged and never reach the caller; the write already
    succeeded and a stale cache entry expires on its own.
    """
    for path in paths:
        try:
            ctx.cache.invalidate(path)
        except Exception:
            logger.exception("Cache invalidation failed for %s", path)
