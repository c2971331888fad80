"""Process-wide store wiring, built once at startup and injected into routes."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from config import Settings
from services.event_store import DatabaseEventStore, EventStore, MemoryEventStore
from services.story_store import DatabaseStoryStore, MemoryStoryStore, StoryStore

logger = logging.getLogger(__name__)

STORY_SNAPSHOT_FILE = "stories.json"
EVENT_SNAPSHOT_FILE = "analytics.json"


@dataclass
class StoreContext:
    stories: StoryStore
    events: EventStore
    backend: str


def build_store_context(settings: Settings, session_maker: Optional[async_sessionmaker] = None) -> StoreContext:
    """Construct the configured backend pair; memory stores hydrate from snapshots."""
    backend = (settings.STORE_BACKEND or "database").strip().lower()

    if backend == "memory":
        story_snapshot = event_snapshot = None
        if settings.SNAPSHOT_ENABLED:
            story_snapshot = os.path.join(settings.SNAPSHOT_DIR, STORY_SNAPSHOT_FILE)
            event_snapshot = os.path.join(settings.SNAPSHOT_DIR, EVENT_SNAPSHOT_FILE)
        stories = MemoryStoryStore(snapshot_path=story_snapshot)
        events = MemoryEventStore(
            snapshot_path=event_snapshot,
            max_events=int(settings.ANALYTICS_MAX_EVENTS),
            trim_to=int(settings.ANALYTICS_TRIM_TO),
        )
        hydrated_stories = stories.hydrate()
        hydrated_events = events.hydrate()
        if hydrated_stories or hydrated_events:
            logger.info(
                "Hydrated memory stores from %s: stories=%s events=%s",
                settings.SNAPSHOT_DIR,
                hydrated_stories,
                hydrated_events,
            )
        return StoreContext(stories=stories, events=events, backend="memory")

    if session_maker is None:
        raise ValueError("The database store backend needs a session maker.")
    return StoreContext(
        stories=DatabaseStoryStore(session_maker),
        events=DatabaseEventStore(session_maker),
        backend="database",
    )
