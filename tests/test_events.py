from __future__ import annotations

import datetime as dt

import pytest

from mnemosyne.errors import InvalidArgumentError, UnsupportedTimeRangeError
from mnemosyne.store import MemoryStore


def test_add_event_normalizes_timestamp(store: MemoryStore) -> None:
    event_id = store.add_event(
        "purchase",
        "Bought a bike",
        metadata={"cost": 450},
        timestamp="2024-03-05T10:00:00Z",
    )

    (event,) = store.search_events()
    assert event["id"] == event_id
    assert event["timestamp"] == "2024-03-05T10:00:00.000000+00:00"
    assert event["metadata"] == {"cost": 450}
    assert event["importance"] == 0.5
    assert event["related_entity_ids"] is None


def test_add_event_validates_inputs(store: MemoryStore) -> None:
    with pytest.raises(InvalidArgumentError, match="Invalid event type"):
        store.add_event("party", "Birthday")
    with pytest.raises(InvalidArgumentError, match="importance"):
        store.add_event("activity", "Walk", importance=1.5)
    with pytest.raises(InvalidArgumentError, match="timestamp"):
        store.add_event("activity", "Walk", timestamp="yesterday-ish")
    assert store.search_events() == []


def test_search_events_by_query_is_literal_substring(store: MemoryStore) -> None:
    store.add_event("maintenance", "Oil change at 100% synthetic", timestamp="2024-01-01")
    store.add_event("maintenance", "Tire rotation", timestamp="2024-01-02")

    assert [e["description"] for e in store.search_events(query="100%")] == [
        "Oil change at 100% synthetic"
    ]
    assert store.search_events(query="_") == []
    assert [e["description"] for e in store.search_events()] == [
        "Tire rotation",
        "Oil change at 100% synthetic",
    ]


def test_search_events_time_range_month(store: MemoryStore) -> None:
    store.add_event("activity", "January walk", timestamp="2024-01-31T23:59:59Z")
    store.add_event("activity", "February walk", timestamp="2024-02-01T00:00:00Z")
    store.add_event("activity", "Late February", timestamp="2024-02-29T23:00:00Z")
    store.add_event("activity", "March walk", timestamp="2024-03-01T00:00:00Z")

    results = store.search_events(time_range="2024-02")

    assert [e["description"] for e in results] == ["Late February", "February walk"]


def test_search_events_relative_range(store: MemoryStore) -> None:
    now = dt.datetime.now(dt.UTC)
    store.add_event("activity", "Recent", timestamp=now - dt.timedelta(days=2))
    store.add_event("activity", "Old", timestamp=now - dt.timedelta(days=20))

    assert [e["description"] for e in store.search_events(time_range="last_week")] == ["Recent"]
    assert len(store.search_events(time_range="last_month")) == 2


def test_search_events_rejects_unknown_range(store: MemoryStore) -> None:
    with pytest.raises(UnsupportedTimeRangeError, match="Unsupported time range format"):
        store.search_events(time_range="next_week")


def test_search_events_by_keywords_ranks_and_filters(store: MemoryStore) -> None:
    store.add_event(
        "illness",
        "Mochi had a vet visit for a cough",
        metadata={"clinic": "City vet"},
        timestamp="2024-04-01",
    )
    store.add_event("activity", "Mochi played in the garden", timestamp="2024-04-02")
    store.add_event("purchase", "Bought vet insurance", timestamp="2024-04-03")

    results = store.search_events(keywords=["vet", "mochi"])
    assert [e["description"] for e in results] == [
        "Mochi had a vet visit for a cough",
        "Bought vet insurance",
        "Mochi played in the garden",
    ]
    assert results[0]["relevance_score"] == 5
    assert sorted(results[0]["matched_keywords"]) == ["mochi", "vet"]

    all_mode = store.search_events(keywords=["vet", "mochi"], match_mode="all")
    assert [e["description"] for e in all_mode] == ["Mochi had a vet visit for a cough"]

    only_illness = store.search_events(keywords=["vet"], event_type="illness")
    assert len(only_illness) == 1


def test_query_entity_timeline_matches_ids_exactly(store: MemoryStore) -> None:
    first = store.add_event("activity", "Sole", [1], timestamp="2024-01-01")
    second = store.add_event("activity", "First of many", [1, 2, 3], timestamp="2024-01-02")
    third = store.add_event("activity", "Middle", [10, 1, 12], timestamp="2024-01-03")
    fourth = store.add_event("activity", "Last", [5, 1], timestamp="2024-01-04")
    store.add_event("activity", "Similar ids only", [10, 11, 21], timestamp="2024-01-05")
    store.add_event("activity", "No entities", timestamp="2024-01-06")

    timeline = store.query_entity_timeline(1)

    assert [e["id"] for e in timeline] == [fourth, third, second, first]
    assert [e["id"] for e in store.query_entity_timeline(1, limit=2)] == [fourth, third]
    assert store.query_entity_timeline(99) == []


def test_delete_event_hides_it(store: MemoryStore) -> None:
    event_id = store.add_event("milestone", "First marathon", [7])

    assert store.delete_event(event_id) == {"deleted": True, "changes": 1}
    assert store.delete_event(event_id) == {"deleted": False, "changes": 0}
    assert store.search_events() == []
    assert store.query_entity_timeline(7) == []


def test_invalid_limit_is_rejected(store: MemoryStore) -> None:
    with pytest.raises(InvalidArgumentError, match="limit"):
        store.search_events(limit=0)


def test_search_events_matches_compact_metadata_json(store: MemoryStore) -> None:
    event_id = store.add_event("illness", "Vet visit", metadata={"cost": 80, "clinic": "City"})

    (event,) = store.search_events(keywords=['"cost":80'])
    assert event["id"] == event_id
    assert event["relevance_score"] == 1
    assert store.search_events(keywords=['"cost": 80']) == []
    assert len(store.search_events(keywords=['80,"clinic"'])) == 1


def test_malformed_stored_json_decodes_to_none(store: MemoryStore) -> None:
    broken = store.add_event("activity", "Broken row", [1], {"place": "park"}, "2024-01-02")
    intact = store.add_event("activity", "Intact row", [1], {"place": "beach"}, "2024-01-01")
    store.conn.execute(
        "UPDATE events SET metadata = ?, related_entity_ids = ? WHERE id = ?",
        ("{not json", "[1,", broken),
    )
    store.conn.commit()

    events = {e["id"]: e for e in store.search_events()}
    assert events[broken]["metadata"] is None
    assert events[broken]["related_entity_ids"] is None
    assert events[intact]["metadata"] == {"place": "beach"}
    assert [e["id"] for e in store.search_events(keywords=["row"])] == [broken, intact]
    assert [e["id"] for e in store.query_entity_timeline(1)] == [intact]


def test_events_are_scoped_per_user(db_path) -> None:
    alice = MemoryStore(db_path, "alice")
    bob = MemoryStore(db_path, "bob")
    try:
        event_id = alice.add_event("milestone", "Moved to Oslo", [1], timestamp="2024-06-01")
        assert bob.search_events() == []
        assert bob.search_events(keywords=["oslo"]) == []
        assert bob.search_events(query="Oslo", time_range="2024-06") == []
        assert bob.query_entity_timeline(1) == []
        assert bob.delete_event(event_id) == {"deleted": False, "changes": 0}
        assert [e["id"] for e in alice.query_entity_timeline(1)] == [event_id]
    finally:
        alice.close()
        bob.close()
