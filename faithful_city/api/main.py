"""
faithful_city.api.main — FastAPI application entry point
=========================================================

Run with::

    uvicorn faithful_city.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.routing import Mount
from starlette.staticfiles import StaticFiles

load_dotenv()

from faithful_city.api.deps import get_config, get_engine  # noqa: E402
from faithful_city.api.routes.families import router as families_router  # noqa: E402
from faithful_city.api.routes.feed import router as feed_router  # noqa: E402
from faithful_city.api.routes.media import router as media_router  # noqa: E402
from faithful_city.api.routes.quiz import router as quiz_router  # noqa: E402
from faithful_city.config import FaithfulCityConfig  # noqa: E402
from faithful_city.engine.changefeed import ChangeFeed  # noqa: E402
from faithful_city.errors import (  # noqa: E402
    ConflictError,
    FaithfulCityError,
    NotFoundError,
    PersistError,
    PolicyError,
    TransportError,
    UploadError,
)

logger = logging.getLogger(__name__)

# Domain error → HTTP status.  Unlisted subclasses fall back to 500.
ERROR_STATUS: dict[type[FaithfulCityError], int] = {
    ConflictError: 409,
    PolicyError: 403,
    NotFoundError: 404,
    UploadError: 502,
    PersistError: 500,
    TransportError: 503,
}


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


def _mount_media(app: FastAPI, cfg: FaithfulCityConfig) -> Mount | None:
    """Serve ``cfg.media_dir`` below ``cfg.media_public_url``.

    Skipped when the public URL is absolute (a CDN in front of a bucket).
    """
    if not cfg.media_public_url.startswith("/"):
        return None
    media_dir = Path(cfg.media_dir)
    media_dir.mkdir(parents=True, exist_ok=True)
    mount = Mount(
        cfg.media_public_url,
        app=StaticFiles(directory=str(media_dir)),
        name="media-files",
    )
    app.router.routes.append(mount)
    logger.info("Serving %s at %s", media_dir.resolve(), cfg.media_public_url)
    return mount


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle: media mount, engine warm-up, change listener."""
    cfg = app.dependency_overrides.get(get_config, get_config)()
    media_mount = _mount_media(app, cfg)

    engine = app.dependency_overrides.get(get_engine, get_engine)()
    feed = ChangeFeed(engine)
    feed.start_listener()
    app.state.change_feed = feed
    logger.info("Faithful City API started, engine ready (%s)", engine.url.database)
    yield
    feed.stop_listener()
    if media_mount is not None:
        app.router.routes.remove(media_mount)
    logger.info("Faithful City API shutting down")


app = FastAPI(
    title="Faithful City API",
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


@app.exception_handler(FaithfulCityError)
async def domain_error_handler(request: Request, exc: FaithfulCityError) -> JSONResponse:
    status_code = ERROR_STATUS.get(type(exc), 500)
    if isinstance(exc, TransportError):
        logger.error("Backend unavailable on %s: %s", request.url.path, exc)
        detail = "Something went wrong. Please try again."
    else:
        detail = str(exc)
    return JSONResponse(status_code=status_code, content={"detail": detail})


# Mount routers
app.include_router(families_router, prefix="/api")
app.include_router(feed_router, prefix="/api")
app.include_router(media_router, prefix="/api")
app.include_router(quiz_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.get("/api/health/listener")
def listener_health(request: Request):
    """Whether live updates are flowing."""
    feed: ChangeFeed | None = getattr(request.app.state, "change_feed", None)
    return {
        "healthy": bool(feed and feed.listener_healthy),
        "failed": bool(feed and feed.listener_failed),
    }
