"""Analytics event persistence: bounded memory buffer or one row per event."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.future import select

from database import DATABASE_ERRORS
from models.analytics_event import AnalyticsEvent
from services.errors import PartialFailure, StorageError
from services.records import EventRecord, parse_datetime, utc_now
from services.snapshot import snapshot_for

logger = logging.getLogger(__name__)

DEFAULT_MAX_EVENTS = 10000
DEFAULT_TRIM_TO = 8000


def _text_or(value: Any, default: str) -> str:
    text = str(value).strip() if value is not None else ""
    return text or default


def normalize_event(event: EventRecord, now: Optional[datetime] = None) -> EventRecord:
    """Fill defaults so no blank session, page or event type reaches a store."""
    kind = _text_or(event.type, "event")
    return replace(
        event,
        type=kind,
        page=_text_or(event.page, "unknown"),
        session_id=_text_or(event.session_id, "unknown"),
        event_type=_text_or(event.event_type, kind),
        timestamp=parse_datetime(event.timestamp) or now or utc_now(),
        event_data=dict(event.event_data or {}),
        ip=_text_or(event.ip, "unknown"),
    )


class EventStore(ABC):
    """Append-only log of analytics events."""

    @abstractmethod
    async def append(self, event: EventRecord) -> EventRecord:
        ...

    @abstractmethod
    async def append_batch(self, events: Sequence[EventRecord]) -> List[EventRecord]:
        """Store events in input order, raising ``PartialFailure`` on mixed results."""

    @abstractmethod
    async def list(self) -> List[EventRecord]:
        ...


class MemoryEventStore(EventStore):
    """Bounded FIFO buffer; past ``max_events`` the oldest are dropped to ``trim_to``."""

    def __init__(
        self,
        snapshot_path: Optional[Union[str, Path]] = None,
        max_events: int = DEFAULT_MAX_EVENTS,
        trim_to: int = DEFAULT_TRIM_TO,
    ):
        if max_events <= 0 or trim_to <= 0 or trim_to > max_events:
            raise ValueError("trim_to must be positive and no larger than max_events")
        self._events: List[EventRecord] = []
        self._max_events = max_events
        self._trim_to = trim_to
        self._snapshot = snapshot_for(snapshot_path)

    def hydrate(self) -> int:
        if self._snapshot is None:
            return 0
        for item in self._snapshot.load():
            try:
                self._push(normalize_event(EventRecord.from_dict(item)))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed analytics event in snapshot: %s", exc)
        return len(self._events)

    def _push(self, event: EventRecord) -> None:
        self._events.append(event)
        if len(self._events) > self._max_events:
            dropped = len(self._events) - self._trim_to
            del self._events[:dropped]
            logger.info("Analytics buffer over %s events; dropped %s oldest", self._max_events, dropped)

    def _persist(self) -> None:
        if self._snapshot is not None:
            self._snapshot.write([event.to_dict() for event in self._events])

    async def append(self, event: EventRecord) -> EventRecord:
        stored = normalize_event(event)
        self._push(stored)
        self._persist()
        return stored

    async def append_batch(self, events: Sequence[EventRecord]) -> List[EventRecord]:
        stored = [normalize_event(event) for event in events]
        for event in stored:
            self._push(event)
        self._persist()
        return stored

    async def list(self) -> List[EventRecord]:
        return [replace(event, event_data=dict(event.event_data)) for event in self._events]


def _row_to_record(row: AnalyticsEvent) -> EventRecord:
    return EventRecord(
        id=row.id,
        type=row.type,
        page=row.page,
        session_id=row.session_id,
        event_type=row.event_type,
        event_data=dict(row.event_data or {}),
        ip=row.ip or "unknown",
        timestamp=parse_datetime(row.timestamp),
    )


class DatabaseEventStore(EventStore):
    """Durable events in ``analytics_events``; ``list`` is ordered by timestamp."""

    def __init__(self, session_maker: async_sessionmaker):
        self._session_maker = session_maker

    async def _insert(self, event: EventRecord) -> None:
        async with self._session_maker() as session:
            session.add(
                AnalyticsEvent(
                    id=event.id,
                    type=event.type,
                    page=event.page,
                    session_id=event.session_id,
                    event_type=event.event_type,
                    event_data=event.event_data,
                    ip=event.ip,
                    timestamp=event.timestamp,
                )
            )
            await session.commit()

    async def append(self, event: EventRecord) -> EventRecord:
        stored = normalize_event(event)
        try:
            await self._insert(stored)
        except DATABASE_ERRORS as exc:
            logger.warning("Analytics event %s could not be stored: %s", stored.id, exc)
            raise StorageError("Analytics storage is unavailable.") from exc
        return stored

    async def append_batch(self, events: Sequence[EventRecord]) -> List[EventRecord]:
        stored: List[EventRecord] = []
        failed: List[Dict[str, Any]] = []
        for index, event in enumerate(events):
            normalized = normalize_event(event)
            try:
                await self._insert(normalized)
            except DATABASE_ERRORS as exc:
                logger.warning("Analytics batch item %s (%s) failed: %s", index, normalized.id, exc)
                failed.append({"index": index, "id": normalized.id, "error": "storage unavailable"})
                continue
            stored.append(normalized)

        if failed and not stored:
            raise StorageError("Analytics storage is unavailable.", details={"failed": failed})
        if failed:
            raise PartialFailure([event.id for event in stored], failed)
        return stored

    async def list(self) -> List[EventRecord]:
        try:
            async with self._session_maker() as session:
                result = await session.execute(
                    select(AnalyticsEvent).order_by(AnalyticsEvent.timestamp, AnalyticsEvent.id)
                )
                return [_row_to_record(row) for row in result.scalars().all()]
        except DATABASE_ERRORS as exc:
            raise StorageError("Analytics storage is unavailable.") from exc
