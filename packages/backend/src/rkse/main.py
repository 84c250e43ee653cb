"""FastAPI application factory.

Learn: create_app() gets its settings and broadcast hub passed in rather
than importing globals, so tests can build an app around their own hub
and the server module can share one hub between the relay and the app.

Route priority: /api/v1/* and /ws first, then everything else falls
through to the static directory (index.html for "/").
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from rkse import __version__
from rkse.api import api_router
from rkse.config import Settings
from rkse.realtime.hub import BroadcastHub

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    settings: Settings = app.state.settings
    logger.info(
        "rkse.starting",
        version=__version__,
        bind=settings.bind,
        static_path=settings.static_path,
    )

    yield

    logger.info("rkse.shutdown", consumers=app.state.hub.consumer_count)


def create_app(settings: Settings, hub: BroadcastHub) -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="RKSE Relay",
        description="Relays model selection events from Redis to WebSocket clients",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.hub = hub

    # Mount API routes
    app.include_router(api_router)

    # Mount WebSocket route
    from rkse.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    # Static files last — the mount at "/" matches every path
    app.mount(
        "/",
        StaticFiles(directory=settings.static_path, html=True, check_dir=False),
        name="static",
    )

    return app
