from __future__ import annotations

import pytest

from mnemosyne.errors import InvalidArgumentError
from mnemosyne.store import MemoryStore


def test_create_and_list_entities_newest_first(store: MemoryStore) -> None:
    cat_id = store.create_entity("pet", "Mochi", {"species": "cat", "color": "orange"})
    car_id = store.create_entity("vehicle", "Blue Volvo")

    entities = store.list_entities()

    assert [e["id"] for e in entities] == [car_id, cat_id]
    mochi = entities[1]
    assert mochi["attributes"] == {"species": "cat", "color": "orange"}
    assert mochi["status"] == "active"
    assert entities[0]["attributes"] is None
    assert [e["name"] for e in store.list_entities("pet")] == ["Mochi"]


def test_create_entity_rejects_unknown_type(store: MemoryStore) -> None:
    with pytest.raises(InvalidArgumentError, match="Invalid entity type 'spaceship'"):
        store.create_entity("spaceship", "Rocinante")


def test_update_entity_patches_only_given_fields(store: MemoryStore) -> None:
    entity_id = store.create_entity("pet", "Mochi", {"age": 2})
    before = store.list_entities()[0]

    result = store.update_entity(entity_id, attributes={"age": 3})

    assert result == {"updated": True, "changes": 1}
    after = store.list_entities()[0]
    assert after["name"] == "Mochi"
    assert after["attributes"] == {"age": 3}
    assert after["updated_at"] >= before["updated_at"]


def test_update_entity_without_fields_is_a_no_op(store: MemoryStore) -> None:
    entity_id = store.create_entity("person", "Ana")

    assert store.update_entity(entity_id) == {
        "updated": False,
        "changes": 0,
        "message": "No fields to update",
    }
    assert store.update_entity(9999, name="ghost") == {"updated": False, "changes": 0}


def test_update_entity_validates_status(store: MemoryStore) -> None:
    entity_id = store.create_entity("pet", "Mochi")
    with pytest.raises(InvalidArgumentError, match="Invalid status"):
        store.update_entity(entity_id, status="sold")


def test_delete_entity_marks_inactive(store: MemoryStore) -> None:
    entity_id = store.create_entity("vehicle", "Old Civic")

    assert store.delete_entity(entity_id) == {"deleted": True, "changes": 1}
    assert store.delete_entity(entity_id) == {"deleted": False, "changes": 0}
    assert store.list_entities() == []
    inactive = store.list_entities(status="inactive")
    assert [e["id"] for e in inactive] == [entity_id]
    assert inactive[0]["status"] == "inactive"
    assert [e["id"] for e in store.list_entities(status="all")] == [entity_id]


def test_list_entities_rejects_unknown_status_filter(store: MemoryStore) -> None:
    with pytest.raises(InvalidArgumentError, match="Invalid status filter"):
        store.list_entities(status="archived")


def test_search_entities_weights_name_over_attributes(store: MemoryStore) -> None:
    store.create_entity("pet", "Pepper", {"note": "likes chasing ginger the cat"})
    ginger = store.create_entity("pet", "Ginger", {"species": "cat"})
    store.create_entity("vehicle", "Truck", {"color": "red"})

    results = store.search_entities_by_keywords(["ginger"])

    assert [r["name"] for r in results] == ["Ginger", "Pepper"]
    assert results[0]["id"] == ginger
    assert results[0]["relevance_score"] == 3
    assert results[0]["matched_fields"] == {"name": True, "attributes": False}
    assert results[1]["relevance_score"] == 1


def test_search_entities_restricted_to_fields(store: MemoryStore) -> None:
    store.create_entity("pet", "Ginger", {"species": "cat"})
    store.create_entity("pet", "Pepper", {"favorite": "ginger snaps"})

    results = store.search_entities_by_keywords(["ginger"], search_fields=["attributes"])

    assert [r["name"] for r in results] == ["Pepper"]


def test_search_entities_skips_inactive_and_ignores_tags(store: MemoryStore) -> None:
    gone = store.create_entity("pet", "Biscuit")
    store.delete_entity(gone)
    store.create_entity("pet", "Mochi", tags=["vacation"])

    assert store.search_entities_by_keywords(["biscuit"]) == []
    assert store.search_entities_by_keywords(["vacation"]) == []
    assert store.search_entities_by_keywords(["mochi", "vacation"], match_mode="all") == []
    (mochi,) = store.search_entities_by_keywords(["mochi", "vacation"])
    assert mochi["relevance_score"] == 3
    assert mochi["matched_fields"] == {"name": True, "attributes": False}
    assert mochi["tags"] == ["vacation"]


def test_search_entities_matches_compact_attribute_json(store: MemoryStore) -> None:
    store.create_entity("pet", "Mochi", {"species": "cat", "age": 3})

    (result,) = store.search_entities_by_keywords(['"species":"cat"'])
    assert result["relevance_score"] == 1
    assert result["matched_fields"] == {"name": False, "attributes": True}
    assert store.search_entities_by_keywords(['"species": "cat"']) == []
    assert store.search_entities_by_keywords(['"cat","age":3']) != []


def test_search_fields_reject_tags(store: MemoryStore) -> None:
    with pytest.raises(InvalidArgumentError, match="Invalid search field"):
        store.search_entities_by_keywords(["x"], search_fields=["tags"])


def test_malformed_stored_attributes_decode_to_none(store: MemoryStore) -> None:
    entity_id = store.create_entity("pet", "Mochi", {"species": "cat"})
    store.conn.execute("UPDATE entities SET attributes = ? WHERE id = ?", ("{oops", entity_id))
    store.conn.commit()

    (entity,) = store.list_entities()
    assert entity["attributes"] is None
    (result,) = store.search_entities_by_keywords(["mochi"])
    assert result["attributes"] is None
    assert store.search_entities_by_keywords(["oops"]) == []


def test_entities_are_scoped_per_user(db_path) -> None:
    alice = MemoryStore(db_path, "alice")
    bob = MemoryStore(db_path, "bob")
    try:
        entity_id = alice.create_entity("pet", "Mochi")
        assert bob.list_entities(status="all") == []
        assert bob.search_entities_by_keywords(["mochi"]) == []
        assert bob.update_entity(entity_id, name="Stolen") == {"updated": False, "changes": 0}
        assert bob.delete_entity(entity_id) == {"deleted": False, "changes": 0}
        assert [e["name"] for e in alice.list_entities()] == ["Mochi"]
    finally:
        alice.close()
        bob.close()
