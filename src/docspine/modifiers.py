"""
Atomic field-level modifiers.

Modifiers change stored records in place through ``storage.modify`` rather
than rewriting whole documents. They are not saves: no callbacks run, no
validation happens, and the change tracker does not record them.

Instance-level::

    person.increment(age=1, score=2.5)
    person.push(tags="vip")
    person.pop(tags=-1)                 # drop the first element

Class-level (every matching record, nothing instantiated)::

    Person.query(ctx).where(active=False).unset("session_token")
    Person.query(ctx).where(team="red").add_to_set(badges=["mvp", "rookie"])

Semantics:
    ┌──────────────┬─────────────────────────────────────────────────────┐
    │ set          │ assign value                                        │
    │ unset        │ remove field                                        │
    │ increment    │ add delta; missing/None counts as 0                 │
    │ decrement    │ increment by -delta                                 │
    │ push         │ append one value; missing/None becomes []           │
    │ push_all     │ append each value                                   │
    │ pull         │ remove every occurrence of a value                  │
    │ pull_all     │ remove every occurrence of each value               │
    │ add_to_set   │ append value(s) not already present                 │
    │ pop          │ positive: remove last element; negative: first      │
    └──────────────┴─────────────────────────────────────────────────────┘

``find_and_modify`` pairs a query with an update and runs both as one
storage-level operation, optionally upserting.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from numbers import Number
from typing import TYPE_CHECKING, Any

from docspine.core.errors import InvalidArgumentError
from docspine.core.logging import get_logger

if TYPE_CHECKING:
    from docspine.context import MapperContext
    from docspine.criteria import Criteria, QueryRequest
    from docspine.document import Document

logger = get_logger(__name__)

_ABSENT = object()


class ModifierKind(str, Enum):
    SET = "set"
    UNSET = "unset"
    INCREMENT = "increment"
    PUSH = "push"
    PUSH_ALL = "push_all"
    PULL = "pull"
    PULL_ALL = "pull_all"
    ADD_TO_SET = "add_to_set"
    POP = "pop"


_PAYLOAD_NAMES = {
    "set": ModifierKind.SET,
    "unset": ModifierKind.UNSET,
    "inc": ModifierKind.INCREMENT,
    "increment": ModifierKind.INCREMENT,
    "push": ModifierKind.PUSH,
    "push_all": ModifierKind.PUSH_ALL,
    "pushAll": ModifierKind.PUSH_ALL,
    "pull": ModifierKind.PULL,
    "pull_all": ModifierKind.PULL_ALL,
    "pullAll": ModifierKind.PULL_ALL,
    "add_to_set": ModifierKind.ADD_TO_SET,
    "addToSet": ModifierKind.ADD_TO_SET,
    "pop": ModifierKind.POP,
}


@dataclass(frozen=True)
class Modifier:
    kind: ModifierKind
    field: str
    operand: Any = None


@dataclass(frozen=True)
class Update:
    """Ordered modifier operations applied as one storage command."""

    modifiers: tuple[Modifier, ...] = ()

    @classmethod
    def of(cls, kind: ModifierKind, fields: Mapping[str, Any]) -> Update:
        if not fields:
            raise InvalidArgumentError(f"{kind.value} needs at least one field")
        return cls(tuple(Modifier(kind, name, value) for name, value in fields.items()))

    @classmethod
    def unset(cls, *names: str) -> Update:
        if not names:
            raise InvalidArgumentError("unset needs at least one field")
        return cls(tuple(Modifier(ModifierKind.UNSET, name) for name in names))

    @classmethod
    def decrement(cls, fields: Mapping[str, Any]) -> Update:
        return cls.of(ModifierKind.INCREMENT, {name: -value for name, value in fields.items()})

    @classmethod
    def from_payload(cls, payload: Update | Mapping[str, Any]) -> Update:
        """Accept ``{"$set": {...}, "$inc": {...}}``; a plain mapping means set."""
        if isinstance(payload, Update):
            return payload
        if not payload:
            raise InvalidArgumentError("update payload is empty")
        if not any(str(key).startswith("$") for key in payload):
            return cls.of(ModifierKind.SET, payload)
        modifiers: list[Modifier] = []
        for operator, fields in payload.items():
            kind = _PAYLOAD_NAMES.get(str(operator).lstrip("$"))
            if kind is None:
                raise InvalidArgumentError(f"unknown update operator {operator!r}")
            if kind is ModifierKind.UNSET and not isinstance(fields, Mapping):
                names = [fields] if isinstance(fields, str) else list(fields)
                modifiers.extend(Modifier(kind, name) for name in names)
            else:
                modifiers.extend(Modifier(kind, name, value) for name, value in fields.items())
        return cls(tuple(modifiers))

    def __and__(self, other: Update) -> Update:
        if not isinstance(other, Update):
            return NotImplemented
        return Update(self.modifiers + other.modifiers)

    @property
    def fields(self) -> list[str]:
        return list(dict.fromkeys(m.field for m in self.modifiers))


# =============================================================================
# Record mutation (shared by storage implementations and in-memory mirrors)
# =============================================================================


def _get(record: dict[str, Any], path: str) -> Any:
    current: Any = record
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _ABSENT
        current = current[part]
    return current


def _set(record: dict[str, Any], path: str, value: Any) -> None:
    *parents, leaf = path.split(".")
    current = record
    for part in parents:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[leaf] = value


def _unset(record: dict[str, Any], path: str) -> None:
    *parents, leaf = path.split(".")
    current: Any = record
    for part in parents:
        current = current.get(part) if isinstance(current, dict) else None
    if isinstance(current, dict):
        current.pop(leaf, None)


def _array(record: dict[str, Any], modifier: Modifier) -> list[Any] | None:
    current = _get(record, modifier.field)
    if current is _ABSENT or current is None:
        return None
    if not isinstance(current, list):
        raise InvalidArgumentError(
            f"cannot {modifier.kind.value} on non-array field {modifier.field!r}"
        )
    return current


def _each(operand: Any) -> list[Any]:
    if isinstance(operand, (list, tuple, set, frozenset)):
        return list(operand)
    return [operand]


def apply_modifiers(record: dict[str, Any], update: Update) -> dict[str, Any]:
    """Return a copy of ``record`` with every modifier applied in order."""
    result = copy.deepcopy(record)
    for modifier in update.modifiers:
        kind, path, operand = modifier.kind, modifier.field, modifier.operand
        if kind is ModifierKind.SET:
            _set(result, path, copy.deepcopy(operand))
        elif kind is ModifierKind.UNSET:
            _unset(result, path)
        elif kind is ModifierKind.INCREMENT:
            current = _get(result, path)
            base = 0 if current is _ABSENT or current is None else current
            if not isinstance(base, Number) or not isinstance(operand, Number):
                raise InvalidArgumentError(f"cannot increment non-numeric field {path!r}")
            _set(result, path, base + operand)
        elif kind in (ModifierKind.PUSH, ModifierKind.PUSH_ALL, ModifierKind.ADD_TO_SET):
            values = _array(result, modifier)
            values = [] if values is None else values
            items = [operand] if kind is ModifierKind.PUSH else _each(operand)
            for item in items:
                if kind is ModifierKind.ADD_TO_SET and item in values:
                    continue
                values.append(copy.deepcopy(item))
            _set(result, path, values)
        elif kind in (ModifierKind.PULL, ModifierKind.PULL_ALL):
            values = _array(result, modifier)
            if values is not None:
                drop = [operand] if kind is ModifierKind.PULL else _each(operand)
                _set(result, path, [v for v in values if v not in drop])
        elif kind is ModifierKind.POP:
            values = _array(result, modifier)
            if values:
                if operand is not None and operand < 0:
                    values.pop(0)
                else:
                    values.pop()
    return result


# =============================================================================
# Executor
# =============================================================================


class ModifierExecutor:
    """Issues modifier commands through a context's storage collaborator."""

    def __init__(self, context: MapperContext):
        self.context = context

    def modify(self, document_type: type[Document], criteria: Criteria, update: Update) -> int:
        """Apply ``update`` to every record matching already-compiled criteria."""
        schema = document_type.schema
        collection = self.context.collection_for(document_type)
        matched = self.context.storage.modify(collection, criteria, schema.compile_update(update))
        logger.debug(
            "modifiers_applied",
            collection=collection,
            kinds=sorted({m.kind.value for m in update.modifiers}),
            matched=matched,
        )
        return matched

    def modify_document(self, document: Document, update: Update) -> bool:
        """Apply ``update`` to one stored document and mirror it in memory."""
        for name in update.fields:
            if "." in name:
                raise InvalidArgumentError(
                    f"instance modifiers take top-level fields, got {name!r}"
                )
        if document.is_new:
            raise InvalidArgumentError("modifiers need a persisted document; save it first")
        matched = 0
        if not document.is_destroyed:
            schema = document.schema
            criteria = schema.compile_criteria(schema.identity_criteria(document.id))
            matched = self.modify(type(document), criteria, update)
        self._mirror(document, update)
        return matched > 0

    def find_and_modify(
        self,
        document_type: type[Document],
        request: QueryRequest,
        update: Update,
        *,
        upsert: bool = False,
        return_new: bool = False,
    ) -> dict[str, Any] | None:
        collection = self.context.collection_for(document_type)
        record = self.context.storage.find_and_modify(
            collection,
            request,
            document_type.schema.compile_update(update),
            upsert,
            return_new,
        )
        logger.debug(
            "find_and_modify",
            collection=collection,
            upsert=upsert,
            return_new=return_new,
            found=record is not None,
        )
        return record

    @staticmethod
    def _mirror(document: Document, update: Update) -> None:
        schema = document.schema
        attributes = document._attributes
        names = [schema.keys.resolve(name) for name in update.fields]
        current = {name: attributes.read(name) for name in names if attributes.has_value(name)}
        local = Update(
            tuple(
                Modifier(m.kind, schema.keys.resolve(m.field), schema.python_operand(m))
                for m in update.modifiers
            )
        )
        mirrored = apply_modifiers(current, local)
        for name in names:
            if name in mirrored:
                attributes.write_untracked(name, mirrored[name])
            else:
                attributes.unset(name)
            attributes.tracker.forget(name)


__all__ = [
    "ModifierKind",
    "Modifier",
    "Update",
    "apply_modifiers",
    "ModifierExecutor",
]
