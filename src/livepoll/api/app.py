"""FastAPI demo application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import HTMLResponse

from livepoll import __version__
from livepoll.config import WatchConfiguration
from livepoll.middleware import FileWatcherMiddleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    logger.info("Starting livepoll demo...")
    yield
    logger.info("Shutting down livepoll demo...")


def create_app(config: WatchConfiguration) -> FastAPI:
    """Create the demo application with live reload installed."""
    app = FastAPI(
        title="livepoll demo",
        description="Page that reloads itself when watched files change",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(FileWatcherMiddleware, config=config)

    @app.get("/", response_class=HTMLResponse)
    async def index() -> str:
        """Demo page."""
        return "<h1>Hello World!</h1>"

    @app.get("/health")
    async def health_check() -> dict:
        """Health check endpoint."""
        return {"status": "healthy", "version": __version__}

    return app
