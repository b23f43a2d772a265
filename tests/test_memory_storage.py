"""Tests for MemoryStorage against the storage collaborator contract."""

import pytest

from docspine import MemoryStorage, StorageError, Update
from docspine.core.protocols import StorageCollaborator
from docspine.criteria import Projection, QueryRequest, asc, desc, where
from docspine.modifiers import ModifierKind
from docspine.types import ObjectId


@pytest.fixture
def store():
    storage = MemoryStorage()
    for name, age, team in [("ann", 30, "red"), ("bob", 25, "blue"), ("cy", 41, "red"), ("di", None, "blue")]:
        storage.insert("people", {"_id": name, "name": name, "age": age, "team": team})
    return storage


def names(records):
    return [r["name"] for r in records]


class TestInsert:
    def test_generates_object_id_string(self):
        storage = MemoryStorage()
        identity = storage.insert("things", {"a": 1})
        assert ObjectId.is_valid(identity)
        assert storage.records("things") == [{"_id": identity, "a": 1}]

    def test_keeps_given_id(self):
        storage = MemoryStorage()
        assert storage.insert("things", {"_id": "x"}) == "x"

    def test_duplicate_id(self, store):
        with pytest.raises(StorageError):
            store.insert("people", {"_id": "ann"})

    def test_input_is_copied(self):
        storage = MemoryStorage()
        record = {"_id": "x", "tags": ["a"]}
        storage.insert("things", record)
        record["tags"].append("b")
        assert storage.records("things")[0]["tags"] == ["a"]

    def test_satisfies_protocol(self):
        assert isinstance(MemoryStorage(), StorageCollaborator)


class TestQuery:
    def test_criteria(self, store):
        found = store.query("people", QueryRequest(criteria=where(team="red"), sort=(asc("name"),)))
        assert names(found) == ["ann", "cy"]

    def test_sort_desc_and_tie_break(self, store):
        found = store.query("people", QueryRequest(sort=(asc("team"), desc("name"))))
        assert names(found) == ["di", "bob", "cy", "ann"]

    def test_none_sorts_first(self, store):
        found = store.query("people", QueryRequest(sort=(asc("age"),)))
        assert names(found) == ["di", "bob", "ann", "cy"]

    def test_skip_and_limit(self, store):
        found = store.query("people", QueryRequest(sort=(asc("name"),), skip=1, limit=2))
        assert names(found) == ["bob", "cy"]

    def test_projection(self, store):
        found = store.query(
            "people",
            QueryRequest(criteria=where(name="ann"), projection=Projection(("age",))),
        )
        assert found == [{"_id": "ann", "age": 30}]

    def test_results_are_copies(self, store):
        found = store.query("people", QueryRequest(criteria=where(name="ann")))
        found[0]["age"] = 99
        assert store.query("people", QueryRequest(criteria=where(name="ann")))[0]["age"] == 30

    def test_unknown_collection_is_empty(self, store):
        assert store.query("nothing", QueryRequest()) == []

    def test_count(self, store):
        assert store.count("people", where(team="blue")) == 2
        assert store.count("people", where()) == 4


class TestWrites:
    def test_update_merges_fields(self, store):
        store.update("people", "ann", {"age": 31})
        record = store.query("people", QueryRequest(criteria=where(name="ann")))[0]
        assert record == {"_id": "ann", "name": "ann", "age": 31, "team": "red"}

    def test_update_missing_is_ignored(self, store):
        store.update("people", "zed", {"age": 1})
        assert store.count("people", where()) == 4

    def test_delete(self, store):
        assert store.delete("people", ["ann", "zed", "bob"]) == 2
        assert names(store.records("people")) == ["cy", "di"]

    def test_modify(self, store):
        update = Update.of(ModifierKind.INCREMENT, {"age": 1})
        assert store.modify("people", where(team="red"), update) == 2
        ages = {r["name"]: r["age"] for r in store.records("people")}
        assert ages == {"ann": 31, "bob": 25, "cy": 42, "di": None}


class TestFindAndModify:
    def test_returns_previous_record(self, store):
        request = QueryRequest(criteria=where(name="bob"))
        before = store.find_and_modify("people", request, Update.of(ModifierKind.SET, {"age": 26}))
        assert before["age"] == 25
        assert store.query("people", request)[0]["age"] == 26

    def test_return_new(self, store):
        request = QueryRequest(criteria=where(name="bob"))
        after = store.find_and_modify(
            "people", request, Update.of(ModifierKind.SET, {"age": 26}), return_new=True
        )
        assert after["age"] == 26

    def test_first_by_sort(self, store):
        request = QueryRequest(criteria=where(team="red"), sort=(desc("age"),))
        store.find_and_modify("people", request, Update.of(ModifierKind.SET, {"team": "gold"}))
        assert names(store.query("people", QueryRequest(criteria=where(team="gold")))) == ["cy"]

    def test_no_match(self, store):
        request = QueryRequest(criteria=where(name="zed"))
        assert store.find_and_modify("people", request, Update.unset("age")) is None

    def test_upsert_seeds_from_equalities(self, store):
        request = QueryRequest(criteria=where(name="zed", age__gt=3))
        created = store.find_and_modify(
            "people",
            request,
            Update.of(ModifierKind.INCREMENT, {"visits": 1}),
            upsert=True,
            return_new=True,
        )
        assert created["name"] == "zed"
        assert created["visits"] == 1
        assert "age" not in created
        assert ObjectId.is_valid(created["_id"])
        assert store.count("people", where()) == 5

    def test_upsert_without_return_new(self, store):
        request = QueryRequest(criteria=where(name="zed"))
        result = store.find_and_modify(
            "people", request, Update.of(ModifierKind.SET, {"age": 1}), upsert=True
        )
        assert result is None
        assert store.count("people", where(name="zed")) == 1


class TestInspection:
    def test_collections_lists_non_empty(self, store):
        store.query("empty_one", QueryRequest())
        store.insert("animals", {"_id": "a"})
        assert store.collections() == ["animals", "people"]

    def test_drop(self, store):
        store.drop("people")
        assert store.records("people") == []
        assert store.collections() == []

    def test_clear(self, store):
        store.insert("animals", {"_id": "a"})
        store.clear()
        assert store.collections() == []
