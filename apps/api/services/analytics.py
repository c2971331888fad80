"""Windowed aggregation over tracked analytics events."""

from __future__ import annotations

import logging
import math
import re
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from services.errors import StorageError, ValidationError
from services.event_store import EventStore
from services.records import EventRecord, parse_datetime, utc_now

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
DEFAULT_PERIOD = "week"
PERIOD_WINDOWS = {
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
    "total": None,
}
_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def resolve_window(
    period: Optional[str],
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[str, datetime, Optional[datetime]]:
    """Return ``(period, start, end)``; explicit dates beat the rolling period.

    Rolling periods only bound the start, so events stamped slightly ahead by
    client clocks are still counted.
    """
    current = now or utc_now()
    resolved_period = period if period in PERIOD_WINDOWS else DEFAULT_PERIOD

    if start_date and end_date:
        start = parse_datetime(start_date)
        end = parse_datetime(end_date)
        if start is None or end is None:
            raise ValidationError("start_date and end_date must be ISO-8601 dates.")
        if _DATE_ONLY.match(str(end_date).strip()):
            end = end + timedelta(days=1) - timedelta(microseconds=1)
        if end < start:
            raise ValidationError("end_date must not be earlier than start_date.")
        return resolved_period, start, end

    window = PERIOD_WINDOWS[resolved_period]
    start = EPOCH if window is None else current - window
    return resolved_period, start, None


def _bucket_label(timestamp: datetime, period: str) -> str:
    if period == "day":
        return timestamp.strftime("%H:00")
    return timestamp.strftime("%Y-%m-%d")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _empty_report(period: str, start: datetime, end: Optional[datetime]) -> Dict[str, Any]:
    return {
        "period": period,
        "window": {"start": start.isoformat(), "end": end.isoformat() if end else None},
        "stats": {
            "total_events": 0,
            "page_views": 0,
            "unique_sessions": 0,
            "events": 0,
            "page_exits": 0,
        },
        "page_breakdown": {},
        "event_breakdown": {},
        "time_breakdown": {},
        "avg_time_on_page": 0,
        "filtered_count": 0,
        "total_count": 0,
    }


def build_report(
    events: List[EventRecord],
    period: str,
    start: datetime,
    end: Optional[datetime],
    page: Optional[str] = None,
) -> Dict[str, Any]:
    report = _empty_report(period, start, end)
    report["total_count"] = len(events)

    filtered = [
        event for event in events
        if event.timestamp >= start and (end is None or event.timestamp <= end)
    ]
    if page and page != "all":
        filtered = [event for event in filtered if event.page == page]

    page_views = [event for event in filtered if event.type == "page_view"]
    interactions = [event for event in filtered if event.type == "event"]
    exits = [event for event in filtered if event.type == "page_exit"]

    report["stats"] = {
        "total_events": len(filtered),
        "page_views": len(page_views),
        "unique_sessions": len({event.session_id for event in filtered}),
        "events": len(interactions),
        "page_exits": len(exits),
    }
    report["page_breakdown"] = dict(Counter(event.page for event in page_views))
    report["event_breakdown"] = dict(
        Counter(f"{event.page}:{event.event_type}" for event in interactions)
    )
    report["time_breakdown"] = dict(Counter(_bucket_label(event.timestamp, period) for event in filtered))

    durations = [event.time_on_page for event in exits if event.time_on_page is not None]
    if durations:
        report["avg_time_on_page"] = _round_half_up(sum(durations) / len(durations) / 1000)
    report["filtered_count"] = len(filtered)
    return report


async def get_admin_analytics(
    store: EventStore,
    *,
    period: Optional[str] = DEFAULT_PERIOD,
    page: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Admin dashboard report; a failing store yields an empty report."""
    resolved_period, start, end = resolve_window(period, start_date, end_date, now)
    try:
        events = await store.list()
    except StorageError as exc:
        logger.warning("Analytics report degraded to empty: %s", exc.message)
        return _empty_report(resolved_period, start, end)
    return build_report(events, resolved_period, start, end, page)


async def get_public_summary(
    store: EventStore,
    *,
    days: int = 30,
    page: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Page-view counts over the last ``days`` days."""
    if days < 0:
        raise ValidationError("days must be zero or greater.")
    cutoff = (now or utc_now()) - timedelta(days=days)
    try:
        events = await store.list()
    except StorageError as exc:
        logger.warning("Analytics summary degraded to empty: %s", exc.message)
        events = []

    recent = [event for event in events if event.timestamp >= cutoff and (not page or event.page == page)]
    page_stats = Counter(event.page for event in recent if event.type == "page_view")
    return {"page_stats": dict(page_stats), "total_events": len(recent)}
