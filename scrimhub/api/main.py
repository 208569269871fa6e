"""
scrimhub.api.main — FastAPI application entry point
====================================================

Run with::

    uvicorn scrimhub.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from scrimhub.api.deps import get_config, get_engine  # noqa: E402
from scrimhub.api.routes.admin import router as admin_router  # noqa: E402
from scrimhub.api.routes.public import router as public_router  # noqa: E402
from scrimhub.api.routes.scrims import router as scrims_router  # noqa: E402
from scrimhub.api.routes.wallet import router as wallet_router  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Origins the player and admin frontends are served from.

    ``CORS_ALLOW_ORIGINS`` (comma-separated) wins over the single
    ``FRONTEND_URL``; with neither set, cross-origin calls are refused.
    """
    configured = os.getenv("CORS_ALLOW_ORIGINS") or os.getenv("FRONTEND_URL") or ""
    origins: list[str] = []
    for origin in configured.split(","):
        origin = origin.strip().rstrip("/")
        if origin and origin not in origins:
            origins.append(origin)
    return origins


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle: warm the DB engine and read config."""
    engine = get_engine()
    cfg = get_config()
    logger.info(
        "%s API started, engine ready (%s), %d registration attempts",
        cfg.platform_name, engine.url.database, cfg.registration_max_attempts,
    )
    yield
    logger.info("%s API shutting down", cfg.platform_name)


app = FastAPI(
    title="Scrimhub API",
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

# Mount routers
app.include_router(public_router, prefix="/api")
app.include_router(scrims_router, prefix="/api")
app.include_router(wallet_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
