"""Database connection pool and scoring config dependencies."""

from typing import Annotated, Any

from fastapi import Depends, Request
from psycopg_pool import AsyncConnectionPool

from linklens.analytics.config import ScoringConfig
from linklens.analytics_server.config import settings


def get_pool(request: Request) -> AsyncConnectionPool[Any]:
    """Get the connection pool from app state."""
    return request.app.state.pool


def get_scoring_config() -> ScoringConfig:
    """Scoring thresholds for this deployment."""
    return settings.scoring_config()


Pool = Annotated[AsyncConnectionPool[Any], Depends(get_pool)]
Scoring = Annotated[ScoringConfig, Depends(get_scoring_config)]
