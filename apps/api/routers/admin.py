"""Admin moderation and analytics router."""

from __future__ import annotations

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncEngine

from database import DATABASE_ERRORS, get_engine
from routers.auth_scope import AuthContext, require_admin
from routers.store_scope import get_store_context
from services.analytics import get_admin_analytics
from services.moderation import get_stats, get_submissions, review_submission
from services.schema import create_schema
from services.store_context import StoreContext

router = APIRouter(dependencies=[Depends(require_admin)])
logger = logging.getLogger(__name__)


class ReviewStoryRequest(BaseModel):
    decision: str


@router.get("/stories")
async def list_submissions(
    status: Optional[Literal["all", "pending", "approved", "denied"]] = None,
    category: Optional[str] = None,
    limit: int = Query(default=20, ge=0, le=200),
    offset: int = Query(default=0, ge=0),
    stores: StoreContext = Depends(get_store_context),
):
    stories = await get_submissions(
        stores.stories,
        status=status,
        category=category,
        limit=limit,
        offset=offset,
    )
    return {
        "stories": [story.to_dict() for story in stories],
        "limit": limit,
        "offset": offset,
    }


@router.get("/stories/stats")
async def moderation_stats(stores: StoreContext = Depends(get_store_context)):
    return await get_stats(stores.stories)


@router.post("/stories/{story_id}/review")
async def review_story(
    story_id: str,
    request: ReviewStoryRequest,
    auth: AuthContext = Depends(require_admin),
    stores: StoreContext = Depends(get_store_context),
):
    story = await review_submission(stores.stories, story_id, request.decision)
    logger.info("admin=%s reviewed story=%s -> %s", auth.user_id, story.id, story.status)
    return story.to_dict()


@router.get("/analytics")
async def admin_analytics(
    period: str = "week",
    page: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    stores: StoreContext = Depends(get_store_context),
):
    return await get_admin_analytics(
        stores.events,
        period=period,
        page=page,
        start_date=start_date,
        end_date=end_date,
    )


@router.post("/setup-database")
async def setup_database(bind: AsyncEngine = Depends(get_engine)):
    try:
        tables = await create_schema(bind)
    except DATABASE_ERRORS as exc:
        logger.exception("Database setup failed")
        raise HTTPException(status_code=503, detail=f"Database setup failed: {exc}") from exc
    return {"ok": True, "tables": tables}
