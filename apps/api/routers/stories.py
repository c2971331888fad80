"""Public story submission and reading router."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel

from config import settings
from routers.rate_limit import client_address, rate_limit
from routers.store_scope import get_store_context
from services.intake import submit_story, track_event_quietly
from services.moderation import list_approved_stories
from services.records import utc_now
from services.store_context import StoreContext

router = APIRouter()


class SubmitStoryRequest(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None


@router.post("")
async def submit_story_endpoint(
    payload: SubmitStoryRequest,
    request: Request,
    _rate_limit: None = Depends(
        rate_limit(
            "story-submission",
            limit=settings.STORY_SUBMIT_RATE_LIMIT,
            window_seconds=settings.STORY_SUBMIT_RATE_WINDOW_SECONDS,
        )
    ),
    stores: StoreContext = Depends(get_store_context),
):
    story = await submit_story(stores.stories, payload.model_dump())
    await track_event_quietly(
        stores.events,
        {
            "type": "event",
            "eventType": "story_submitted",
            "page": "stories",
            "sessionId": request.headers.get("x-session-id"),
            "timestamp": utc_now().isoformat(),
            "storyId": story.id,
            "category": story.category,
        },
        ip=client_address(request),
    )
    return {
        "story_id": story.id,
        "status": story.status,
        "message": "Story submitted successfully. Thank you for sharing!",
    }


@router.get("")
async def list_stories(
    limit: int = Query(default=20, ge=0, le=100),
    offset: int = Query(default=0, ge=0),
    stores: StoreContext = Depends(get_store_context),
):
    stories = await list_approved_stories(stores.stories, limit=limit, offset=offset)
    return {
        "stories": [story.to_dict() for story in stories],
        "limit": limit,
        "offset": offset,
    }
