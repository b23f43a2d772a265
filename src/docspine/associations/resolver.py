"""
Per-type association resolver.

Owned by ``DocumentSchema`` (``schema.resolver``). Documents never walk the
association table themselves; they ask the resolver to load, dump and
cascade for them.

Responsibilities:
    load_embedded       inline records → embedded documents (hydration)
    dump_embedded       embedded documents → inline records (insert/update)
    embedded_documents  (name, document) pairs, for validation and commit
    cascade_destroy     destroy dependents before the owner is removed

Cascade policy:
    ``dependent="destroy"`` loads every dependent and calls its
    ``destroy()``, so the dependents' own callbacks and cascades run. The
    first dependent that refuses (returns False) or raises stops the cascade
    with ``CascadeFailureError``; the owner's destroy is aborted and the
    owner stays in storage.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any

from docspine.core.errors import CascadeFailureError
from docspine.core.logging import get_logger

if TYPE_CHECKING:
    from docspine.document import BaseDocument
    from docspine.schema import DocumentSchema

logger = get_logger(__name__)


class AssociationResolver:
    """Load/build/cascade behavior for one document type's associations."""

    def __init__(self, schema: DocumentSchema):
        self.schema = schema

    def _embedded(self):
        return [(name, a) for name, a in self.schema.associations.items() if a.embedded]

    def load_embedded(self, owner: BaseDocument, record: Mapping[str, Any]) -> set[str]:
        """Hydrate every embedded association; returns the consumed field names."""
        consumed = set()
        for name, association in self._embedded():
            owner._embedded[name] = association.load(owner, record.get(name))
            consumed.add(name)
        return consumed

    def initialize_embedded(self, owner: BaseDocument) -> None:
        for name, association in self._embedded():
            if name not in owner._embedded:
                owner._embedded[name] = association.load(owner, None)

    def dump_embedded(self, owner: BaseDocument) -> dict[str, Any]:
        return {name: association.dump(owner) for name, association in self._embedded()}

    def embedded_documents(self, owner: BaseDocument) -> Iterator[tuple[str, BaseDocument]]:
        for name, association in self._embedded():
            for document in association.documents(owner):
                yield name, document

    def cascade_destroy(self, owner: BaseDocument) -> int:
        destroyed = 0
        for name, association in self.schema.associations.items():
            if association.dependent != "destroy":
                continue
            for dependent in association.dependents(owner):
                try:
                    ok = dependent.destroy()
                except Exception as exc:
                    raise CascadeFailureError(
                        f"destroying {name} of {type(owner).__name__} failed: {exc}",
                        dependent=dependent,
                        cause=exc,
                    ).with_context(
                        document_type=type(owner).__name__,
                        identity=str(owner.id),
                        operation="destroy",
                    ) from exc
                if not ok:
                    raise CascadeFailureError(
                        f"{type(dependent).__name__} {dependent.id} refused to be destroyed",
                        dependent=dependent,
                    ).with_context(
                        document_type=type(owner).__name__,
                        identity=str(owner.id),
                        operation="destroy",
                    )
                destroyed += 1
            logger.debug(
                "cascade_destroyed",
                owner=type(owner).__name__,
                association=name,
                destroyed=destroyed,
            )
        return destroyed


__all__ = ["AssociationResolver"]
