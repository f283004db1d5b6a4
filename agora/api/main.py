"""
agora.api.main — FastAPI application entry point
=================================================

Run with::

    uvicorn agora.api.main:app --reload --port 8000

The lifespan builds the one :class:`~agora.context.ForumContext` for the
process and stores it on ``app.state.ctx``; routes receive it through
:func:`agora.api.deps.get_context`.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from agora.api.routes.actions import router as actions_router  # noqa: E402
from agora.api.routes.forum import router as forum_router  # noqa: E402
from agora.api.routes.moderation import router as moderation_router  # noqa: E402
from agora.context import build_context  # noqa: E402
from agora.database.engine import init_db  # noqa: E402
from agora.errors import ForumError  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — build and tear down the forum context."""
    ctx = build_context()
    init_db(ctx.engine)
    app.state.ctx = ctx
    logger.info("Agora API started — engine ready (%s)", ctx.engine.url.database)
    yield
    ctx.cache.clear()
    ctx.engine.dispose()
    app.state.ctx = None
    logger.info("Agora API shutting down")


app = FastAPI(
    title="Agora Forum API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ForumError)
async def forum_error_handler(request: Request, exc: ForumError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(forum_router, prefix="/api")
app.include_router(actions_router, prefix="/api")
app.include_router(moderation_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
