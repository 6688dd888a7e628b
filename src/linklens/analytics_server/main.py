"""LinkLens Analytics Server - FastAPI application."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from psycopg_pool import AsyncConnectionPool

from linklens import __version__
from linklens.analytics_server.config import settings
from linklens.analytics_server.routes import router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage server lifecycle."""
    logging.getLogger("linklens").setLevel(settings.log_level)

    # Initialize database pool
    app.state.pool = AsyncConnectionPool(
        settings.database_url,
        open=False,
        min_size=1,
        max_size=10,
    )
    await app.state.pool.open(wait=True, timeout=10)
    logger.info("Database pool initialized")

    yield

    # Cleanup
    await app.state.pool.close()
    logger.info("Server shutdown complete")


app = FastAPI(
    title="LinkLens Analytics Server",
    description="Viewer engagement scoring and lead qualification for shared links",
    version=__version__,
    debug=settings.debug,
    lifespan=lifespan,
)

app.include_router(router)


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}
