import json
from datetime import datetime, timedelta, timezone

import pytest

from services.errors import PartialFailure
from services.event_store import DatabaseEventStore, MemoryEventStore, normalize_event
from services.records import EventRecord


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _event(index, **overrides):
    values = {
        "id": f"analytics_{index}",
        "type": "page_view",
        "page": "home",
        "timestamp": NOW + timedelta(seconds=index),
    }
    values.update(overrides)
    return EventRecord(**values)


def test_normalize_event_fills_blank_fields():
    event = normalize_event(
        EventRecord(id="analytics_x", type="event", page="", timestamp=None, session_id="", event_type=None, ip=""),
        now=NOW,
    )
    assert event.page == "unknown"
    assert event.session_id == "unknown"
    assert event.event_type == "event"
    assert event.ip == "unknown"
    assert event.timestamp == NOW
    assert event.event_data == {}


@pytest.mark.asyncio
async def test_memory_batch_keeps_order_and_defaults():
    store = MemoryEventStore()
    await store.append_batch(
        [
            _event(1, session_id=None),
            _event(2, page=None, type="event", event_type=None),
        ]
    )

    first, second = await store.list()
    assert (first.id, second.id) == ("analytics_1", "analytics_2")
    assert first.session_id == "unknown"
    assert second.page == "unknown"
    assert second.event_type == "event"


@pytest.mark.asyncio
async def test_memory_buffer_evicts_oldest_down_to_watermark():
    store = MemoryEventStore()
    await store.append_batch([_event(index) for index in range(10001)])

    events = await store.list()
    assert len(events) == 8000
    assert events[0].id == "analytics_2001"
    assert events[-1].id == "analytics_10000"


@pytest.mark.asyncio
async def test_memory_single_appends_apply_the_same_bound():
    store = MemoryEventStore(max_events=10, trim_to=8)
    for index in range(11):
        await store.append(_event(index))

    assert [event.id for event in await store.list()] == [f"analytics_{index}" for index in range(3, 11)]


@pytest.mark.asyncio
async def test_memory_snapshot_round_trip(tmp_path):
    snapshot = tmp_path / "analytics.json"
    store = MemoryEventStore(snapshot_path=snapshot)
    await store.append(_event(1, event_data={"timeOnPage": 1500}, type="page_exit"))

    assert json.loads(snapshot.read_text(encoding="utf-8"))[0]["event_data"] == {"timeOnPage": 1500}

    restarted = MemoryEventStore(snapshot_path=snapshot)
    assert restarted.hydrate() == 1
    (event,) = await restarted.list()
    assert event.time_on_page == 1500
    assert event.timestamp == NOW + timedelta(seconds=1)


def test_memory_store_rejects_inverted_watermark():
    with pytest.raises(ValueError):
        MemoryEventStore(max_events=10, trim_to=20)


@pytest.mark.asyncio
async def test_database_batch_round_trip(session_maker):
    store = DatabaseEventStore(session_maker)
    await store.append_batch(
        [
            _event(1, session_id="", event_data={"referrer": "direct"}),
            _event(2, type="event", event_type=None, page=""),
        ]
    )

    first, second = await store.list()
    assert first.id == "analytics_1"
    assert first.session_id == "unknown"
    assert first.event_data == {"referrer": "direct"}
    assert second.page == "unknown"
    assert second.event_type == "event"
    assert second.timestamp == NOW + timedelta(seconds=2)


@pytest.mark.asyncio
async def test_memory_list_returns_copies():
    store = MemoryEventStore()
    await store.append(_event(1, event_data={"referrer": "direct"}))

    (listed,) = await store.list()
    listed.page = "tampered"
    listed.event_data["referrer"] = "tampered"

    (stored,) = await store.list()
    assert stored.page == "home"
    assert stored.event_data == {"referrer": "direct"}


@pytest.mark.asyncio
async def test_database_batch_keeps_earlier_rows_when_one_item_fails(session_maker):
    store = DatabaseEventStore(session_maker)
    duplicate = _event(1, page="about")

    with pytest.raises(PartialFailure) as excinfo:
        await store.append_batch([_event(1), _event(2), duplicate, _event(4)])

    assert excinfo.value.succeeded == ["analytics_1", "analytics_2", "analytics_4"]
    assert [(item["index"], item["id"]) for item in excinfo.value.failed] == [(2, "analytics_1")]
    assert excinfo.value.status_code == 207

    stored = await store.list()
    assert [event.id for event in stored] == ["analytics_1", "analytics_2", "analytics_4"]
    assert stored[0].page == "home"
