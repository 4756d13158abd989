from __future__ import annotations
import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from motoverse.auth_deps import get_current_user, get_optional_user
from motoverse.db import get_session
from motoverse.models.user import User
from motoverse.schemas.feed import FeedPage, FeedTypeFilter
from motoverse.services.feed import FeedCursor, FeedQuery, InvalidCursor, aggregate_feed

router = APIRouter(prefix="/api/feed", tags=["feed"])
log = structlog.get_logger()

def _clamp_limit(request: Request, limit: int | None) -> int:
    cfg = request.app.state.settings
    if limit is None:
        return cfg.feed_default_limit
    return max(1, min(limit, cfg.feed_max_limit))

async def _run(session: AsyncSession, query: FeedQuery) -> FeedPage:
    try:
        return await aggregate_feed(session, query)
    except SQLAlchemyError:
        log.exception("feed_failed", scope=query.scope)
        raise HTTPException(status_code=500, detail="failed")

def _cursor(raw: str | None) -> FeedCursor | None:
    if not raw:
        return None
    try:
        return FeedCursor.decode(raw)
    except InvalidCursor:
        raise HTTPException(status_code=400, detail=InvalidCursor.code)

@router.get("", response_model=FeedPage)
async def global_feed(
    request: Request,
    type: FeedTypeFilter = Query("all"),
    q: str | None = Query(None, max_length=100),
    cursor: str | None = Query(None),
    limit: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
    viewer: User | None = Depends(get_optional_user),
):
    query = FeedQuery(
        viewer_id=viewer.id if viewer else None,
        scope="global",
        limit=_clamp_limit(request, limit),
        q=q or None,
        type=type,
        cursor=_cursor(cursor),
    )
    return await _run(session, query)

@router.get("/following", response_model=FeedPage)
async def following_feed(
    request: Request,
    type: FeedTypeFilter = Query("all"),
    q: str | None = Query(None, max_length=100),
    cursor: str | None = Query(None),
    limit: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    query = FeedQuery(
        viewer_id=user.id,
        scope="following",
        limit=_clamp_limit(request, limit),
        q=q or None,
        type=type,
        cursor=_cursor(cursor),
    )
    return await _run(session, query)
