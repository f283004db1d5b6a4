"""
agora.engine.slugs — URL Slug Generation
=========================================

``slugify("Patch Notes!")`` → ``"patch-notes-1729000000123"``.

The numeric suffix is the current time in milliseconds, bumped so it is
strictly increasing within the process.  Two identical titles submitted
in the same millisecond still get distinct slugs; across processes the
``forum_topics.slug`` unique constraint is the backstop.
"""

from __future__ import annotations

import re
import threading
import time

_NON_ALNUM = re.compile(r"[^a-z0-9]+")

_suffix_lock = threading.Lock()
_last_suffix = 0


def _next_suffix(now_ms: int | None = None) -> int:
    global _last_suffix
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    with _suffix_lock:
        _last_suffix = max(now_ms, _last_suffix + 1)
        return _last_suffix


def slug_base(title: str) -> str:
    """Lowercase, collapse non-alphanumeric runs to ``-``, trim hyphens."""
    return _NON_ALNUM.sub("-", title.lower()).strip("-")


def slugify(title: str, now_ms: int | None = None) -> str:
    base = slug_base(title)
    suffix = _next_suffix(now_ms)
    return f"{base}-{suffix}" if base else str(suffix)
