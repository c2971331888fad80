"""Validation and shaping of inbound story and analytics payloads."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from config import settings
from services.errors import PartialFailure, StorageError, ValidationError
from services.event_store import EventStore
from services.records import (
    EVENT_KINDS,
    EventRecord,
    StoryRecord,
    new_record_id,
    parse_datetime,
    utc_now,
)
from services.story_store import StoryStore

logger = logging.getLogger(__name__)

DEFAULT_STORY_TITLE = "Untitled Story"
DEFAULT_STORY_CATEGORY = "other"
INITIAL_STORY_STATUSES = {"pending", "approved"}

# Keys lifted out of an analytics payload; everything else lands in event_data.
_EVENT_CORE_KEYS = {"action", "type", "page", "sessionId", "session_id", "timestamp", "eventType", "event_type", "ip"}


def _clean_text(value: Any) -> str:
    return str(value or "").strip()


def _resolve_initial_status(initial_status: Optional[str]) -> str:
    status = _clean_text(initial_status or settings.STORY_INITIAL_STATUS).lower()
    if status not in INITIAL_STORY_STATUSES:
        raise ValueError(f"Stories cannot start in status {status!r}")
    return status


async def submit_story(
    store: StoryStore,
    payload: Mapping[str, Any],
    *,
    now: Optional[datetime] = None,
    initial_status: Optional[str] = None,
) -> StoryRecord:
    """Validate, normalize and persist a story submission.

    Storage failures propagate: an explicit submission must never be
    acknowledged unless it was written.
    """
    min_length = max(int(settings.STORY_MIN_CONTENT_LENGTH), 1)
    content = _clean_text(payload.get("content"))
    if len(content) < min_length:
        raise ValidationError(
            f"Story content is required and must be at least {min_length} characters. "
            f"You provided {len(content)} characters.",
            details={"min_length": min_length, "provided_length": len(content)},
        )

    created_at = now or utc_now()
    story = StoryRecord(
        id=new_record_id("story", created_at),
        title=_clean_text(payload.get("title")) or DEFAULT_STORY_TITLE,
        content=content,
        category=_clean_text(payload.get("category")) or DEFAULT_STORY_CATEGORY,
        status=_resolve_initial_status(initial_status),
        timestamp=created_at,
    )
    saved = await store.save(story)
    logger.info("story_submitted id=%s category=%s status=%s", saved.id, saved.category, saved.status)
    return saved


def build_event(
    payload: Mapping[str, Any],
    *,
    ip: Optional[str] = None,
    now: Optional[datetime] = None,
) -> EventRecord:
    """Turn a raw tracking payload into an ``EventRecord`` or raise ``ValidationError``."""
    kind = _clean_text(payload.get("type"))
    page = _clean_text(payload.get("page"))
    raw_timestamp = payload.get("timestamp")

    missing = [
        name
        for name, value in (("type", kind), ("page", page), ("timestamp", _clean_text(raw_timestamp)))
        if not value
    ]
    if missing:
        raise ValidationError(
            "Missing required analytics data.",
            details={"missing": missing},
        )
    if kind not in EVENT_KINDS:
        raise ValidationError(
            f"Unknown analytics event type {kind!r}.",
            details={"allowed": list(EVENT_KINDS)},
        )
    timestamp = parse_datetime(raw_timestamp)
    if timestamp is None:
        raise ValidationError("Analytics timestamp must be an ISO-8601 date-time.")

    session_id = payload.get("sessionId", payload.get("session_id"))
    event_type = payload.get("eventType", payload.get("event_type"))
    event_data = {key: value for key, value in payload.items() if key not in _EVENT_CORE_KEYS}

    return EventRecord(
        id=new_record_id("analytics", now),
        type=kind,
        page=page,
        timestamp=timestamp,
        session_id=_clean_text(session_id),
        event_type=_clean_text(event_type) or None,
        event_data=event_data,
        ip=_clean_text(ip) or "unknown",
    )


async def track_event(
    store: EventStore,
    payload: Mapping[str, Any],
    *,
    ip: Optional[str] = None,
    now: Optional[datetime] = None,
) -> EventRecord:
    event = build_event(payload, ip=ip, now=now)
    return await store.append(event)


async def track_event_quietly(
    store: EventStore,
    payload: Mapping[str, Any],
    *,
    ip: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[EventRecord]:
    """Fire-and-forget tracking for flows that must not fail on analytics."""
    try:
        return await track_event(store, payload, ip=ip, now=now)
    except (ValidationError, StorageError) as exc:
        logger.warning("Analytics tracking skipped: %s", exc.message)
        return None


@dataclass
class BatchResult:
    ids: List[str] = field(default_factory=list)

    @property
    def accepted(self) -> int:
        return len(self.ids)


async def track_event_batch(
    store: EventStore,
    payloads: Sequence[Mapping[str, Any]],
    *,
    ip: Optional[str] = None,
    now: Optional[datetime] = None,
) -> BatchResult:
    """Validate each payload, store the valid ones in order, report every failure."""
    events: List[EventRecord] = []
    positions: Dict[str, int] = {}
    failed: List[Dict[str, Any]] = []

    for index, payload in enumerate(payloads):
        try:
            event = build_event(payload, ip=ip, now=now)
        except ValidationError as exc:
            failed.append({"index": index, "error": exc.message})
            continue
        positions[event.id] = index
        events.append(event)

    stored_ids: List[str] = []
    storage_failed = False
    if events:
        try:
            stored_ids = [event.id for event in await store.append_batch(events)]
        except PartialFailure as exc:
            stored_ids = exc.succeeded
            storage_failed = True
            failed.extend(_remap_failures(exc.failed, positions))
        except StorageError as exc:
            storage_failed = True
            store_failures = (exc.details or {}).get("failed")
            if store_failures:
                failed.extend(_remap_failures(store_failures, positions))
            else:
                failed.extend({"index": positions[event.id], "error": exc.message} for event in events)

    if failed:
        failed.sort(key=lambda item: item["index"])
        if stored_ids:
            raise PartialFailure(stored_ids, failed)
        if storage_failed:
            raise StorageError("Analytics storage is unavailable.", details={"failed": failed})
        raise ValidationError("No analytics events were accepted.", details={"failed": failed})
    return BatchResult(ids=stored_ids)


def _remap_failures(failures: Sequence[Mapping[str, Any]], positions: Mapping[str, int]) -> List[Dict[str, Any]]:
    remapped = []
    for failure in failures:
        event_id = failure.get("id")
        remapped.append(
            {
                "index": positions.get(event_id, failure.get("index", -1)),
                "error": failure.get("error", "storage unavailable"),
            }
        )
    return remapped
