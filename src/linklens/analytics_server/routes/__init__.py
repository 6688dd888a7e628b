"""API routes for the LinkLens Analytics server."""

from fastapi import APIRouter

from linklens.analytics_server.routes.analytics import router as analytics_router
from linklens.analytics_server.routes.sessions import router as sessions_router

router = APIRouter()
router.include_router(sessions_router)
router.include_router(analytics_router)
