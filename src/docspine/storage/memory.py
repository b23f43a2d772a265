"""
In-memory storage collaborator.

Manifesto:
    Test suites and examples need a store that honors the full collaborator
    contract (criteria, sort, skip/limit, projection, modifiers, atomic
    find-and-modify) without a database server.

Records are deep-copied on the way in and on the way out, so callers never
share mutable state with the store. A single re-entrant lock makes every
call atomic with respect to the others, which is the single-document
atomicity the mapping core relies on for modifiers and find_and_modify.

Sorting:
    Multi-field sorts are applied right-to-left with a stable sort, giving a
    left-to-right tie-break chain. Missing and ``None`` values sort first
    (ascending).

Tags:
    docspine, storage, in-memory, testing
"""

from __future__ import annotations

import copy
import threading
from collections.abc import Iterable
from numbers import Number
from typing import Any

from docspine.core.errors import StorageError
from docspine.core.logging import get_logger
from docspine.criteria import Criteria, QueryRequest, SortKey, lookup
from docspine.modifiers import Update, apply_modifiers
from docspine.types import ObjectId

logger = get_logger(__name__)


def _sort_value(value: Any) -> tuple[int, Any]:
    # storage form is JSON-like: missing, None and containers sort first
    if isinstance(value, bool):
        return (1, int(value))
    if isinstance(value, Number):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    return (0, 0)


def _sorted(records: list[dict[str, Any]], sort: Iterable[SortKey]) -> list[dict[str, Any]]:
    result = list(records)
    for key in reversed(tuple(sort)):
        result.sort(
            key=lambda record, name=key.field: _sort_value(lookup(record, name)),
            reverse=key.descending,
        )
    return result


class MemoryStorage:
    """Dict-backed store implementing ``StorageCollaborator``.

    Example::

        storage = MemoryStorage()
        ctx = MapperContext(storage=storage)
        Person.create(ctx, name="Alice")
        storage.collections()      # ['people']
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[Any, dict[str, Any]]] = {}
        self._lock = threading.RLock()

    def _records(self, collection: str) -> dict[Any, dict[str, Any]]:
        return self._collections.setdefault(collection, {})

    def _matching(self, collection: str, criteria: Criteria) -> list[dict[str, Any]]:
        return [r for r in self._records(collection).values() if criteria.matches(r)]

    # ------------------------------------------------------------------ #
    # StorageCollaborator
    # ------------------------------------------------------------------ #

    def insert(self, collection: str, record: dict[str, Any]) -> Any:
        with self._lock:
            record = copy.deepcopy(record)
            identity = record.get("_id")
            if identity is None:
                identity = record["_id"] = str(ObjectId())
            records = self._records(collection)
            if identity in records:
                raise StorageError(f"duplicate _id {identity!r} in {collection}").with_context(
                    collection=collection, identity=str(identity), operation="insert"
                )
            records[identity] = record
            return identity

    def update(self, collection: str, identity: Any, fields: dict[str, Any]) -> None:
        with self._lock:
            record = self._records(collection).get(identity)
            if record is None:
                logger.debug("update_missed", collection=collection, identity=str(identity))
                return
            record.update(copy.deepcopy(fields))

    def delete(self, collection: str, identities: list[Any]) -> int:
        with self._lock:
            records = self._records(collection)
            removed = 0
            for identity in identities:
                if records.pop(identity, None) is not None:
                    removed += 1
            return removed

    def query(self, collection: str, request: QueryRequest) -> list[dict[str, Any]]:
        with self._lock:
            found = _sorted(self._matching(collection, request.criteria), request.sort)
            start = request.skip or 0
            end = None if request.limit is None else start + request.limit
            found = found[start:end]
            if request.projection is not None:
                found = [request.projection.apply(r) for r in found]
            return copy.deepcopy(found)

    def count(self, collection: str, criteria: Criteria) -> int:
        with self._lock:
            return len(self._matching(collection, criteria))

    def modify(self, collection: str, criteria: Criteria, update: Update) -> int:
        with self._lock:
            records = self._records(collection)
            matched = self._matching(collection, criteria)
            for record in matched:
                records[record["_id"]] = apply_modifiers(record, update)
            return len(matched)

    def find_and_modify(
        self,
        collection: str,
        request: QueryRequest,
        update: Update,
        upsert: bool = False,
        return_new: bool = False,
    ) -> dict[str, Any] | None:
        with self._lock:
            found = _sorted(self._matching(collection, request.criteria), request.sort)
            if found:
                before = found[0]
                after = apply_modifiers(before, update)
                self._records(collection)[before["_id"]] = after
            elif upsert:
                before = None
                seed = {
                    name: value
                    for name, value in request.criteria.equalities().items()
                    if "." not in name
                }
                after = apply_modifiers(seed, update)
                after.setdefault("_id", str(ObjectId()))
                self._records(collection)[after["_id"]] = after
            else:
                return None
            result = after if return_new else before
            if result is None:
                return None
            if request.projection is not None:
                result = request.projection.apply(result)
            return copy.deepcopy(result)

    # ------------------------------------------------------------------ #
    # Inspection helpers
    # ------------------------------------------------------------------ #

    def collections(self) -> list[str]:
        with self._lock:
            return sorted(name for name, records in self._collections.items() if records)

    def records(self, collection: str) -> list[dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(list(self._records(collection).values()))

    def drop(self, collection: str) -> None:
        with self._lock:
            self._collections.pop(collection, None)

    def clear(self) -> None:
        with self._lock:
            self._collections.clear()


__all__ = ["MemoryStorage"]
