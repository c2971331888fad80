import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from services.errors import InvalidTransitionError, NotFoundError, ValidationError
from services.moderation import get_stats, get_submissions, list_approved_stories, review_submission
from services.records import StoryRecord
from services.story_store import DatabaseStoryStore, MemoryStoryStore


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


async def _seed(store):
    stories = [
        StoryRecord(id="story_a", content="a" * 20, category="breakups", status="pending", timestamp=NOW - timedelta(days=1)),
        StoryRecord(id="story_b", content="b" * 20, category="dating", status="approved", timestamp=NOW - timedelta(hours=2)),
        StoryRecord(id="story_c", content="c" * 20, category="breakups", status="denied", timestamp=NOW - timedelta(days=10)),
        StoryRecord(id="story_d", content="d" * 20, category="other", status="approved", timestamp=NOW - timedelta(days=40)),
        StoryRecord(id="story_e", content="e" * 20, category="breakups", status="pending", timestamp=NOW - timedelta(minutes=5)),
    ]
    for story in stories:
        await store.save(story)
    return store


@pytest.mark.asyncio
async def test_submissions_are_newest_first_with_all_filters_disabled():
    store = await _seed(MemoryStoryStore())
    for status in (None, "all"):
        results = await get_submissions(store, status=status, category="all")
        assert [story.id for story in results] == ["story_e", "story_b", "story_a", "story_c", "story_d"]


@pytest.mark.asyncio
async def test_submissions_filter_then_paginate():
    store = await _seed(MemoryStoryStore())

    pending = await get_submissions(store, status="pending")
    assert [story.id for story in pending] == ["story_e", "story_a"]

    breakups = await get_submissions(store, category="breakups", limit=2, offset=1)
    assert [story.id for story in breakups] == ["story_a", "story_c"]

    assert await get_submissions(store, offset=50) == []


@pytest.mark.asyncio
async def test_negative_pagination_is_rejected():
    with pytest.raises(ValidationError):
        await get_submissions(MemoryStoryStore(), offset=-1)


@pytest.mark.asyncio
async def test_public_listing_only_shows_approved():
    store = await _seed(MemoryStoryStore())
    stories = await list_approved_stories(store)
    assert [story.id for story in stories] == ["story_b", "story_d"]


@pytest.mark.asyncio
async def test_approve_then_query_includes_story():
    store = await _seed(MemoryStoryStore())
    reviewed = await review_submission(store, "story_a", "approve", now=NOW)

    assert reviewed.status == "approved"
    assert reviewed.reviewed_at == NOW
    approved_ids = [story.id for story in await get_submissions(store, status="approved")]
    assert "story_a" in approved_ids


@pytest.mark.asyncio
async def test_deny_then_query_excludes_story():
    store = await _seed(MemoryStoryStore())
    await review_submission(store, "story_e", "deny", now=NOW)

    approved_ids = [story.id for story in await get_submissions(store, status="approved")]
    assert "story_e" not in approved_ids
    assert (await store.get("story_e")).status == "denied"


@pytest.mark.asyncio
async def test_repeating_a_decision_refreshes_reviewed_at():
    store = await _seed(MemoryStoryStore())
    first = await review_submission(store, "story_a", "approve", now=NOW)
    second = await review_submission(store, "story_a", "approve", now=NOW + timedelta(minutes=1))

    assert second.status == "approved"
    assert second.reviewed_at >= first.reviewed_at


@pytest.mark.asyncio
async def test_reversing_a_decision_is_rejected():
    store = await _seed(MemoryStoryStore())
    with pytest.raises(InvalidTransitionError) as excinfo:
        await review_submission(store, "story_b", "deny")

    assert excinfo.value.status_code == 409
    assert excinfo.value.details == {"current_status": "approved", "requested_status": "denied"}
    assert (await store.get("story_b")).status == "approved"


@pytest.mark.asyncio
async def test_review_errors():
    store = await _seed(MemoryStoryStore())
    with pytest.raises(ValidationError):
        await review_submission(store, "story_a", "maybe")
    with pytest.raises(NotFoundError):
        await review_submission(store, "story_missing", "approve")


@pytest.mark.asyncio
async def test_stats_use_rolling_windows():
    store = await _seed(MemoryStoryStore())
    stats = await get_stats(store, now=NOW)

    assert stats == {
        "total": 5,
        "pending": 2,
        "approved": 2,
        "denied": 1,
        "this_week": 3,
        "this_month": 4,
    }
    assert stats["total"] == stats["pending"] + stats["approved"] + stats["denied"]


@pytest.mark.asyncio
async def test_moderation_works_against_database_store(session_maker):
    store = await _seed(DatabaseStoryStore(session_maker))
    await review_submission(store, "story_a", "approve", now=NOW)

    approved = await get_submissions(store, status="approved")
    assert [story.id for story in approved] == ["story_b", "story_a", "story_d"]
    stats = await get_stats(store, now=NOW)
    assert stats["approved"] == 3
    assert stats["pending"] == 1


async def _race_opposite_decisions(store):
    await store.save(StoryRecord(id="story_race", content="r" * 20, timestamp=NOW))
    results = await asyncio.gather(
        review_submission(store, "story_race", "approve", now=NOW),
        review_submission(store, "story_race", "deny", now=NOW),
        return_exceptions=True,
    )
    winners = [result for result in results if isinstance(result, StoryRecord)]
    losers = [result for result in results if isinstance(result, InvalidTransitionError)]
    return winners, losers


@pytest.mark.asyncio
async def test_concurrent_opposite_reviews_keep_first_decision_in_memory():
    store = MemoryStoryStore()
    winners, losers = await _race_opposite_decisions(store)

    assert len(winners) == 1
    assert len(losers) == 1
    assert (await store.get("story_race")).status == winners[0].status


@pytest.mark.asyncio
async def test_concurrent_opposite_reviews_keep_first_decision_in_database(session_maker):
    store = DatabaseStoryStore(session_maker)
    winners, losers = await _race_opposite_decisions(store)

    assert len(winners) == 1
    assert len(losers) == 1
    assert losers[0].details["current_status"] == winners[0].status
    assert (await store.get("story_race")).status == winners[0].status


@pytest.mark.asyncio
async def test_reversing_a_decision_is_rejected_in_database(session_maker):
    store = await _seed(DatabaseStoryStore(session_maker))
    with pytest.raises(InvalidTransitionError):
        await review_submission(store, "story_c", "approve", now=NOW)
    with pytest.raises(NotFoundError):
        await review_submission(store, "story_missing", "deny", now=NOW)

    assert (await store.get("story_c")).status == "denied"
