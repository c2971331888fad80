"""Story moderation: admin review queue, decisions and dashboard counts."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from services.errors import ValidationError
from services.records import STORY_STATUSES, StoryRecord, utc_now
from services.story_store import StoryStore

logger = logging.getLogger(__name__)

DECISION_STATUSES = {"approve": "approved", "deny": "denied"}
STATS_WINDOWS = {
    "this_week": timedelta(days=7),
    "this_month": timedelta(days=30),
}


def _is_filter_active(value: Optional[str]) -> bool:
    return bool(value) and value != "all"


def _paginate(stories: Iterable[StoryRecord], limit: int, offset: int) -> List[StoryRecord]:
    if limit < 0 or offset < 0:
        raise ValidationError("limit and offset must be zero or greater.")
    newest_first = sorted(stories, key=lambda story: story.timestamp, reverse=True)
    return newest_first[offset:offset + limit]


async def get_submissions(
    store: StoryStore,
    *,
    status: Optional[str] = None,
    category: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
) -> List[StoryRecord]:
    """Admin view over every story, filtered, newest first, then sliced."""
    stories = await store.list()
    if _is_filter_active(status):
        stories = [story for story in stories if story.status == status]
    if _is_filter_active(category):
        stories = [story for story in stories if story.category == category]
    return _paginate(stories, limit, offset)


async def list_approved_stories(store: StoryStore, *, limit: int = 20, offset: int = 0) -> List[StoryRecord]:
    stories = [story for story in await store.list() if story.status == "approved"]
    return _paginate(stories, limit, offset)


async def review_submission(
    store: StoryStore,
    story_id: str,
    decision: str,
    *,
    now: Optional[datetime] = None,
) -> StoryRecord:
    """Apply an approve/deny decision.

    Repeating the same decision refreshes ``reviewed_at``; reversing an
    earlier decision raises ``InvalidTransitionError``.
    """
    target = DECISION_STATUSES.get(str(decision or "").strip().lower())
    if target is None:
        raise ValidationError(
            "Decision must be 'approve' or 'deny'.",
            details={"allowed": sorted(DECISION_STATUSES)},
        )

    reviewed = await store.update_status(
        story_id,
        target,
        now or utc_now(),
        from_statuses=("pending", target),
    )
    logger.info("story_reviewed id=%s status=%s", story_id, target)
    return reviewed


async def get_stats(store: StoryStore, *, now: Optional[datetime] = None) -> Dict[str, Any]:
    current = now or utc_now()
    stories = await store.list()

    stats: Dict[str, Any] = {"total": len(stories)}
    for status in STORY_STATUSES:
        stats[status] = sum(1 for story in stories if story.status == status)
    for key, window in STATS_WINDOWS.items():
        cutoff = current - window
        stats[key] = sum(1 for story in stories if story.timestamp >= cutoff)
    return stats
