"""Public analytics tracking router."""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from routers.rate_limit import client_address, rate_limit
from routers.store_scope import get_store_context
from services.analytics import get_public_summary
from services.errors import StorageError
from services.intake import build_event, track_event_batch
from services.store_context import StoreContext

router = APIRouter()
logger = logging.getLogger(__name__)


class TrackEventRequest(BaseModel):
    """Tracking payload as sent by the site script; extra keys become event data."""

    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    page: Optional[str] = None
    sessionId: Optional[str] = None
    timestamp: Optional[Any] = None
    eventType: Optional[str] = None


class TrackEventBatchRequest(BaseModel):
    events: List[TrackEventRequest] = Field(min_length=1, max_length=500)


@router.post("/track")
async def track(
    payload: TrackEventRequest,
    request: Request,
    _rate_limit: None = Depends(rate_limit("analytics", limit=600, window_seconds=600)),
    stores: StoreContext = Depends(get_store_context),
):
    """Record one event; storage trouble is logged and never fails the caller."""
    event = build_event(payload.model_dump(exclude_none=True), ip=client_address(request))
    try:
        await stores.events.append(event)
    except StorageError as exc:
        logger.warning("Analytics event %s dropped: %s", event.id, exc.message)
        return {"id": event.id, "stored": False}
    return {"id": event.id, "stored": True}


@router.post("/batch")
async def track_batch(
    payload: TrackEventBatchRequest,
    request: Request,
    _rate_limit: None = Depends(rate_limit("analytics-batch", limit=120, window_seconds=600)),
    stores: StoreContext = Depends(get_store_context),
):
    result = await track_event_batch(
        stores.events,
        [item.model_dump(exclude_none=True) for item in payload.events],
        ip=client_address(request),
    )
    return {"accepted": result.accepted, "ids": result.ids}


@router.get("/summary")
async def summary(
    days: int = Query(default=30, ge=0, le=3650),
    page: Optional[str] = None,
    stores: StoreContext = Depends(get_store_context),
):
    return await get_public_summary(stores.events, days=days, page=page)
