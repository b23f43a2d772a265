"""
Canonical collaborator protocols for docspine.

The mapping core never talks to a database driver directly. It consumes two
external collaborators, defined here as structural protocols:

Architecture:
    ::

        protocols.py
        ├── StorageCollaborator: record store (insert/update/delete/query/
        │                        count/modify/find_and_modify)
        └── Validator: "may this document be persisted?"

    Implementations:
        storage/memory.py   MemoryStorage (reference, in-process)
        validation.py       RuleValidator (default validator)

Records crossing the storage boundary are plain dicts in storage form:
identities and ObjectIds as 24-hex strings, dates and datetimes as ISO-8601
strings, custom types via their ``to_storage``. Every call takes the
collection name first.

Guardrails:
    ❌ DON'T: Import a concrete store from domain modules
    ✅ DO: Accept anything matching StorageCollaborator via MapperContext

    ❌ DON'T: Raise from Validator.validate for an invalid document
    ✅ DO: Return (False, errors)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from docspine.criteria import Criteria, QueryRequest
    from docspine.modifiers import Update


@runtime_checkable
class StorageCollaborator(Protocol):
    """Record store consumed by documents, queries and modifiers.

    Single-document atomicity of ``modify`` and ``find_and_modify`` is the
    store's responsibility; the core adds no locking or retry.
    """

    def insert(self, collection: str, record: dict[str, Any]) -> Any:
        """Insert one record and return its identity."""
        ...

    def update(self, collection: str, identity: Any, fields: dict[str, Any]) -> None:
        """Overwrite the given top-level fields of one record."""
        ...

    def delete(self, collection: str, identities: list[Any]) -> int:
        """Delete records by identity; return how many were removed."""
        ...

    def query(self, collection: str, request: QueryRequest) -> list[dict[str, Any]]:
        """Return records matching criteria, sorted, skipped, limited, projected."""
        ...

    def count(self, collection: str, criteria: Criteria) -> int:
        """Count records matching criteria."""
        ...

    def modify(self, collection: str, criteria: Criteria, update: Update) -> int:
        """Apply field-level modifiers to every matching record; return matches."""
        ...

    def find_and_modify(
        self,
        collection: str,
        request: QueryRequest,
        update: Update,
        upsert: bool = False,
        return_new: bool = False,
    ) -> dict[str, Any] | None:
        """Atomically update the first match (or insert when upserting)."""
        ...


@runtime_checkable
class Validator(Protocol):
    """Validation collaborator: decides whether persistence may proceed."""

    def validate(self, document: Any, context: str | None) -> tuple[bool, Any]:
        """Return ``(valid, errors)`` for the document in the given context."""
        ...


__all__ = ["StorageCollaborator", "Validator"]
