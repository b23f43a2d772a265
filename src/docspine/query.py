"""
Immutable query builder and execution.

``Query`` is a frozen value: every chaining call returns a new ``Query`` and
leaves the receiver untouched, so partially built queries can be shared and
extended freely::

    adults = Person.query(ctx).where(age__gte=18)
    oldest = adults.sort("-age").limit(5)       # adults is unchanged
    adults.count()
    oldest.all()

Builder (non-mutating)
    where / filter, sort / order, limit, skip / offset, fields / only,
    ignore, reverse, unscoped, plus every named scope of the document type.

Execution
    all, first, last, count, exists, empty, size, to_list, iteration,
    find, find_or_raise, find_by, find_each, paginate, first_or_create,
    first_or_new, delete, destroy, delete_all, destroy_all,
    find_and_modify, and the class-level modifiers (set, unset,
    increment, decrement, push, push_all, pull, pull_all, add_to_set, pop).

The document type's default scope is ANDed into every compiled request
unless ``unscoped()`` was called.
"""

from __future__ import annotations

import functools
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from docspine.core.errors import InvalidArgumentError, NotFoundError
from docspine.core.logging import LogContext, get_logger
from docspine.criteria import (
    Criteria,
    Projection,
    QueryRequest,
    SortKey,
    asc,
    parse_sort,
)
from docspine.modifiers import ModifierKind, Update
from docspine.pagination import Page, paginate

if TYPE_CHECKING:
    from docspine.context import MapperContext
    from docspine.document import Document

logger = get_logger(__name__)


@dataclass(frozen=True)
class Query:
    """Criteria + sort + limit/skip + projection for one document type."""

    document_type: type[Document]
    context: MapperContext | None = field(default=None, compare=False)
    criteria: Criteria = field(default_factory=Criteria)
    sort_keys: tuple[SortKey, ...] = ()
    limit_value: int | None = None
    skip_value: int | None = None
    projection: Projection | None = None
    scoped: bool = True

    # ------------------------------------------------------------------ #
    # Builder
    # ------------------------------------------------------------------ #

    def where(self, conditions: Criteria | Mapping[str, Any] | None = None, **kwargs: Any) -> Query:
        return replace(self, criteria=self.criteria.where(conditions, **kwargs))

    filter = where

    def sort(self, *fields: Any) -> Query:
        keys = [key for spec in fields for key in parse_sort(spec)]
        return replace(self, sort_keys=self.sort_keys + tuple(keys))

    order = sort

    def limit(self, n: int | None) -> Query:
        if n is not None and n < 0:
            raise InvalidArgumentError(f"limit must be >= 0, got {n}")
        return replace(self, limit_value=n)

    def skip(self, n: int | None) -> Query:
        if n is not None and n < 0:
            raise InvalidArgumentError(f"skip must be >= 0, got {n}")
        return replace(self, skip_value=n)

    offset = skip

    def fields(self, *names: str) -> Query:
        return replace(self, projection=Projection(_flatten_names(names)))

    only = fields

    def ignore(self, *names: str) -> Query:
        return replace(self, projection=Projection(_flatten_names(names), exclude=True))

    def reverse(self) -> Query:
        return replace(self, sort_keys=tuple(key.reversed() for key in self.sort_keys))

    def unscoped(self) -> Query:
        return replace(self, scoped=False)

    def using(self, context: MapperContext) -> Query:
        return replace(self, context=context)

    @property
    def criteria_hash(self) -> dict[str, Any]:
        """Snapshot of the builder state (for comparisons and debugging)."""
        return {
            "criteria": self.criteria.to_list(),
            "sort": [(key.field, key.direction.value) for key in self.sort_keys],
            "limit": self.limit_value,
            "skip": self.skip_value,
            "fields": None if self.projection is None else list(self.projection.fields),
            "exclude": None if self.projection is None else self.projection.exclude,
            "scoped": self.scoped,
        }

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        scope = self.document_type.schema.scopes.get(name)
        if scope is None:
            raise AttributeError(
                f"{type(self).__name__} for {self.document_type.__name__} has no attribute or scope {name!r}"
            )
        return functools.partial(scope.apply, self)

    # ------------------------------------------------------------------ #
    # Compilation
    # ------------------------------------------------------------------ #

    def require_context(self) -> MapperContext:
        if self.context is None:
            raise InvalidArgumentError(
                f"{self.document_type.__name__} query has no MapperContext; "
                "build it with Model.query(ctx)"
            )
        return self.context

    def effective_criteria(self) -> Criteria:
        default_scope = self.document_type.schema.default_scope
        if self.scoped and default_scope is not None:
            return default_scope & self.criteria
        return self.criteria

    def compile(self) -> QueryRequest:
        schema = self.document_type.schema
        return QueryRequest(
            criteria=schema.compile_criteria(self.effective_criteria()),
            sort=schema.compile_sort(self.sort_keys),
            limit=self.limit_value,
            skip=self.skip_value,
            projection=schema.compile_projection(self.projection),
        )

    @property
    def collection(self) -> str:
        return self.require_context().collection_for(self.document_type)

    # ------------------------------------------------------------------ #
    # Execution
    # ------------------------------------------------------------------ #

    def _refine(self, conditions: Mapping[str, Any]) -> Query:
        return self.where(conditions) if conditions else self

    def _fetch(self) -> list[dict[str, Any]]:
        context = self.require_context()
        request = self.compile()
        records = context.storage.query(self.collection, request)
        logger.debug(
            "query_executed",
            collection=self.collection,
            predicates=len(request.criteria.predicates),
            returned=len(records),
        )
        return records

    def all(self, **conditions: Any) -> list[Document]:
        query = self._refine(conditions)
        context = query.require_context()
        projected = query.projection is not None
        return [
            self.document_type.from_storage(r, context, projected=projected)
            for r in query._fetch()
        ]

    to_list = all

    def __iter__(self) -> Iterator[Document]:
        return iter(self.all())

    def first(self, **conditions: Any) -> Document | None:
        found = self._refine(conditions).limit(1).all()
        return found[0] if found else None

    def last(self, **conditions: Any) -> Document | None:
        query = self._refine(conditions)
        if not query.sort_keys:
            query = query.sort(asc("_id"))
        return query.reverse().first()

    def count(self, **conditions: Any) -> int:
        query = self._refine(conditions)
        context = query.require_context()
        criteria = self.document_type.schema.compile_criteria(query.effective_criteria())
        return context.storage.count(query.collection, criteria)

    size = count

    def exists(self, **conditions: Any) -> bool:
        return self.count(**conditions) > 0

    def empty(self, **conditions: Any) -> bool:
        return not self.exists(**conditions)

    def find(self, *ids: Any) -> Document | list[Document] | None:
        """One id → document or None; several ids (or a list) → list."""
        single = len(ids) == 1 and not isinstance(ids[0], (list, tuple, set))
        flat = _flatten_ids(ids)
        if not flat:
            return None if single else []
        found = self.where(_id=flat).all()
        if single:
            return found[0] if found else None
        by_id = {doc.id: doc for doc in found}
        return [by_id[i] for i in self._coerce_ids(flat) if i in by_id]

    def find_or_raise(self, *ids: Any) -> Document | list[Document]:
        result = self.find(*ids)
        wanted = self._coerce_ids(_flatten_ids(ids))
        missing = []
        if result is None:
            missing = wanted
        elif isinstance(result, list):
            found = {doc.id for doc in result}
            missing = [i for i in wanted if i not in found]
        if missing:
            raise NotFoundError(
                f"{self.document_type.__name__} not found: {', '.join(map(str, missing))}"
            ).with_context(
                document_type=self.document_type.__name__,
                identity=str(missing[0]),
                operation="find",
            )
        return result

    def find_by(self, **conditions: Any) -> Document | None:
        return self.first(**conditions)

    def find_each(self, batch_size: int | None = None) -> Iterator[Document]:
        """Iterate in batches of ``batch_size`` records (sorted by _id if unsorted)."""
        size = batch_size or self.require_context().settings.find_each_batch_size
        query = self if self.sort_keys else self.sort(asc("_id"))
        start = self.skip_value or 0
        remaining = self.limit_value
        while remaining is None or remaining > 0:
            take = size if remaining is None else min(size, remaining)
            batch = query.skip(start).limit(take).all()
            yield from batch
            if len(batch) < take:
                return
            start += len(batch)
            if remaining is not None:
                remaining -= len(batch)

    def paginate(self, page: int | str = 1, per_page: int | str | None = None) -> Page:
        return paginate(self, page, per_page)

    def first_or_new(self, **attrs: Any) -> Document:
        found = self.first()
        if found is not None:
            return found
        seeded = {**self._seed_attributes(), **attrs}
        document = self.document_type(**seeded)
        return document.bind(self.require_context())

    def first_or_create(self, **attrs: Any) -> Document:
        document = self.first_or_new(**attrs)
        if document.is_new:
            document.save()
        return document

    def _seed_attributes(self) -> dict[str, Any]:
        seeded = {}
        for name, value in self.effective_criteria().equalities().items():
            seeded["id" if name == "_id" else name] = value
        return seeded

    # ------------------------------------------------------------------ #
    # Bulk removal
    # ------------------------------------------------------------------ #

    def delete(self, *ids: Any) -> int:
        """Delete matching records (optionally restricted to ids) without callbacks."""
        query = self.where(_id=_flatten_ids(ids)) if ids else self
        context = query.require_context()
        identities = [r["_id"] for r in query.only("_id")._fetch()]
        if not identities:
            return 0
        removed = context.storage.delete(query.collection, identities)
        logger.debug("documents_deleted", collection=query.collection, removed=removed)
        return removed

    delete_all = delete

    def destroy(self, *ids: Any) -> int:
        """Load and destroy each matching document (callbacks and cascades run)."""
        query = self.where(_id=_flatten_ids(ids)) if ids else self
        destroyed = 0
        with LogContext(collection=query.collection, operation="destroy"):
            for document in query.all():
                if document.destroy():
                    destroyed += 1
            logger.debug("documents_destroyed", destroyed=destroyed)
        return destroyed

    destroy_all = destroy

    # ------------------------------------------------------------------ #
    # Class-level modifiers
    # ------------------------------------------------------------------ #

    def modify(self, update: Update | Mapping[str, Any]) -> int:
        context = self.require_context()
        criteria = self.document_type.schema.compile_criteria(self.effective_criteria())
        return context.modifiers.modify(self.document_type, criteria, Update.from_payload(update))

    def set(self, **fields: Any) -> int:
        return self.modify(Update.of(ModifierKind.SET, fields))

    def unset(self, *names: str) -> int:
        return self.modify(Update.unset(*names))

    def increment(self, **fields: Any) -> int:
        return self.modify(Update.of(ModifierKind.INCREMENT, fields))

    def decrement(self, **fields: Any) -> int:
        return self.modify(Update.decrement(fields))

    def push(self, **fields: Any) -> int:
        return self.modify(Update.of(ModifierKind.PUSH, fields))

    def push_all(self, **fields: Any) -> int:
        return self.modify(Update.of(ModifierKind.PUSH_ALL, fields))

    def pull(self, **fields: Any) -> int:
        return self.modify(Update.of(ModifierKind.PULL, fields))

    def pull_all(self, **fields: Any) -> int:
        return self.modify(Update.of(ModifierKind.PULL_ALL, fields))

    def add_to_set(self, **fields: Any) -> int:
        return self.modify(Update.of(ModifierKind.ADD_TO_SET, fields))

    def pop(self, **fields: Any) -> int:
        return self.modify(Update.of(ModifierKind.POP, fields))

    def find_and_modify(
        self,
        update: Update | Mapping[str, Any],
        *,
        upsert: bool = False,
        return_new: bool = False,
    ) -> Document | None:
        """Update the first match (or insert, when upserting) in one storage call.

        Returns the document as it was before the update, or after it when
        ``return_new`` is set. ``None`` when nothing matched and no upsert
        happened (or when the pre-update image of an upsert is requested).
        """
        context = self.require_context()
        record = context.modifiers.find_and_modify(
            self.document_type,
            self.compile(),
            Update.from_payload(update),
            upsert=upsert,
            return_new=return_new,
        )
        if record is None:
            return None
        return self.document_type.from_storage(
            record, context, projected=self.projection is not None
        )

    def _coerce_ids(self, ids: list[Any]) -> list[Any]:
        definition = self.document_type.schema.keys.get("_id")
        return [definition.coerce(i) if definition else i for i in ids]

    def __repr__(self) -> str:
        return f"<Query {self.document_type.__name__} {self.criteria_hash!r}>"


def _flatten_ids(ids: tuple[Any, ...] | list[Any]) -> list[Any]:
    flat: list[Any] = []
    for item in ids:
        if isinstance(item, (list, tuple, set)):
            flat.extend(item)
        elif item is not None:
            flat.append(item)
    return flat


def _flatten_names(names: tuple[Any, ...]) -> tuple[str, ...]:
    flat: list[str] = []
    for item in names:
        if isinstance(item, str):
            flat.extend(part.strip() for part in item.split(",") if part.strip())
        else:
            flat.extend(item)
    return tuple(flat)


__all__ = ["Query"]
