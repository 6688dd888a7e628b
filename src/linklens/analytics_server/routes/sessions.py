"""Session routes - the write-back hook called once per closed session."""

import logging
from uuid import uuid4

from fastapi import APIRouter, HTTPException

from linklens.analytics._sanitize import clean_number
from linklens.analytics.scoring import classify_session, refresh_cached_score
from linklens.analytics_server.database import Pool, Scoring
from linklens.analytics_server.models import SessionClose, SessionScore
from linklens.analytics_server.services import contacts as contact_service
from linklens.analytics_server.services import sessions as session_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sessions"])


@router.post("/sessions/close")
async def close_session(
    data: SessionClose,
    pool: Pool,
    config: Scoring,
) -> SessionScore:
    """Score a closed session, cache the score and upsert the viewer's contact.

    The session is scored with its link's content type, never the type the
    caller sent, so the cached score always matches a recompute.
    """
    async with pool.connection() as conn:
        link = await session_service.get_link(conn, data.session.link_id)
        if link is None:
            raise HTTPException(404, "Link not found")

        session = data.session
        if session.session_id is None:
            session = session.model_copy(update={"session_id": str(uuid4())})
        if session.content_type != link.content_type:
            logger.warning(
                "Session %s sent content type %s, link %s is %s",
                session.session_id,
                session.content_type,
                link.id,
                link.content_type,
            )
            session = session.model_copy(update={"content_type": link.content_type})
        if session.total_pages is None and link.total_pages is not None:
            session = session.model_copy(update={"total_pages": link.total_pages})

        session = refresh_cached_score(session, config)
        scored = classify_session(session, config, scope="account")
        duration = clean_number(session.total_duration_seconds, "total_duration_seconds")

        inserted = await session_service.save_session(conn, session)
        if not inserted:
            logger.info("Session %s already closed, contact unchanged", session.session_id)
            return scored
        await contact_service.upsert_contact(
            conn,
            data.account_id,
            scored.viewer_key,
            score=scored.score,
            duration_seconds=duration,
            is_hot_lead=scored.is_hot_lead,
            seen_at=session.started_at,
            viewer_email=session.viewer_email,
            viewer_name=session.viewer_name,
        )

    return scored
