"""
Immutable criteria, sort and projection value objects.

Everything here is a frozen dataclass. Combining or refining a value always
returns a new one, so criteria can be shared between queries, scopes and
threads without copying.

Conditions use Django-style operator suffixes::

    where(age__gte=21, status__ne="archived", tags=["a", "b"])

    ┌──────────┬──────────────────────────────┐
    │ suffix   │ operator                     │
    ├──────────┼──────────────────────────────┤
    │ (none)   │ EQ  (IN when value is a list) │
    │ __ne     │ NE                           │
    │ __gt     │ GT                           │
    │ __gte    │ GTE                          │
    │ __lt     │ LT                           │
    │ __lte    │ LTE                          │
    │ __in     │ IN                           │
    └──────────┴──────────────────────────────┘

Equality against a stored array matches when the array contains the
operand. ``id`` is shorthand for ``_id``. Dotted names (passed as a mapping,
``where({"address.city": "Boston"})``) address fields of embedded documents.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from docspine.core.errors import InvalidArgumentError

_ABSENT = object()


class Operator(str, Enum):
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    IN = "in"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"

    def reversed(self) -> SortDirection:
        return SortDirection.DESC if self is SortDirection.ASC else SortDirection.ASC


def lookup(record: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted path in a record; ``_ABSENT`` when missing."""
    current: Any = record
    for part in path.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return _ABSENT
    return current


def _compare(value: Any, operand: Any, op: Callable[[Any, Any], bool]) -> bool:
    if value is _ABSENT or value is None or operand is None:
        return False
    try:
        return op(value, operand)
    except TypeError:
        # mismatched types never match an ordering predicate
        return False


def _equals(value: Any, operand: Any) -> bool:
    if value is _ABSENT:
        return operand is None
    if isinstance(value, list) and not isinstance(operand, list):
        return operand in value
    return value == operand


@dataclass(frozen=True)
class Predicate:
    """One (field, operator, value) triple."""

    field: str
    operator: Operator
    value: Any

    def matches(self, record: Mapping[str, Any]) -> bool:
        value = lookup(record, self.field)
        operand = self.value
        if self.operator is Operator.EQ:
            return _equals(value, operand)
        if self.operator is Operator.NE:
            return not _equals(value, operand)
        if self.operator is Operator.IN:
            if isinstance(value, list):
                return any(item in operand for item in value)
            return (None if value is _ABSENT else value) in operand
        if self.operator is Operator.GT:
            return _compare(value, operand, lambda a, b: a > b)
        if self.operator is Operator.GTE:
            return _compare(value, operand, lambda a, b: a >= b)
        if self.operator is Operator.LT:
            return _compare(value, operand, lambda a, b: a < b)
        return _compare(value, operand, lambda a, b: a <= b)

    def with_field(self, name: str) -> Predicate:
        return replace(self, field=name)

    def with_value(self, value: Any) -> Predicate:
        return replace(self, value=value)

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "operator": self.operator.value, "value": self.value}


def parse_condition(name: str, value: Any) -> Predicate:
    """Turn ``age__gte=21`` into ``Predicate("age", GTE, 21)``."""
    field_name, operator = name, Operator.EQ
    head, sep, suffix = name.rpartition("__")
    if sep and head:
        try:
            operator = Operator(suffix)
            field_name = head
        except ValueError:
            pass
    if field_name == "id":
        field_name = "_id"
    if operator is Operator.EQ and isinstance(value, (list, tuple, set, frozenset)):
        operator = Operator.IN
    if operator is Operator.IN:
        if not isinstance(value, (list, tuple, set, frozenset)):
            raise InvalidArgumentError(f"{name!r} needs a list of values")
        value = tuple(value)
    return Predicate(field_name, operator, value)


@dataclass(frozen=True)
class Criteria:
    """Ordered, AND-combined predicates."""

    predicates: tuple[Predicate, ...] = ()

    @classmethod
    def build(cls, conditions: Criteria | Mapping[str, Any] | None = None, **kwargs: Any) -> Criteria:
        if isinstance(conditions, Criteria):
            base = conditions
        else:
            base = cls(tuple(parse_condition(k, v) for k, v in (conditions or {}).items()))
        if kwargs:
            base = base & cls(tuple(parse_condition(k, v) for k, v in kwargs.items()))
        return base

    def where(self, conditions: Criteria | Mapping[str, Any] | None = None, **kwargs: Any) -> Criteria:
        return self & Criteria.build(conditions, **kwargs)

    def __and__(self, other: Criteria) -> Criteria:
        if not isinstance(other, Criteria):
            return NotImplemented
        return Criteria(self.predicates + other.predicates)

    def matches(self, record: Mapping[str, Any]) -> bool:
        return all(p.matches(record) for p in self.predicates)

    def map(self, fn: Callable[[Predicate], Predicate]) -> Criteria:
        return Criteria(tuple(fn(p) for p in self.predicates))

    def equalities(self) -> dict[str, Any]:
        """Field → value for plain EQ predicates (used to seed new records)."""
        return {
            p.field: p.value
            for p in self.predicates
            if p.operator is Operator.EQ and "." not in p.field
        }

    def is_empty(self) -> bool:
        return not self.predicates

    def to_list(self) -> list[dict[str, Any]]:
        return [p.to_dict() for p in self.predicates]


def where(conditions: Criteria | Mapping[str, Any] | None = None, **kwargs: Any) -> Criteria:
    """Build a standalone Criteria (scope declarations, default scopes)."""
    return Criteria.build(conditions, **kwargs)


@dataclass(frozen=True)
class SortKey:
    field: str
    direction: SortDirection = SortDirection.ASC

    def reversed(self) -> SortKey:
        return SortKey(self.field, self.direction.reversed())

    @property
    def descending(self) -> bool:
        return self.direction is SortDirection.DESC


def asc(name: str) -> SortKey:
    return SortKey(name, SortDirection.ASC)


def desc(name: str) -> SortKey:
    return SortKey(name, SortDirection.DESC)


def parse_sort(spec: Any) -> list[SortKey]:
    """Accept ``"name"``, ``"-name"``, ``"name desc"``, ``"a, -b"``, SortKey, tuples."""
    if isinstance(spec, SortKey):
        return [spec]
    if isinstance(spec, tuple) and len(spec) == 2 and isinstance(spec[0], str):
        return [SortKey(_normalize_field(spec[0]), SortDirection(str(spec[1]).lower()))]
    if isinstance(spec, str):
        keys = []
        for part in (p.strip() for p in spec.split(",")):
            if not part:
                continue
            if part.startswith("-"):
                keys.append(desc(_normalize_field(part[1:])))
                continue
            name, _, direction = part.partition(" ")
            direction = direction.strip().lower() or "asc"
            try:
                keys.append(SortKey(_normalize_field(name), SortDirection(direction)))
            except ValueError as exc:
                raise InvalidArgumentError(f"unknown sort direction in {part!r}") from exc
        return keys
    if isinstance(spec, Iterable):
        return [key for item in spec for key in parse_sort(item)]
    raise InvalidArgumentError(f"cannot sort by {spec!r}")


def _normalize_field(name: str) -> str:
    return "_id" if name == "id" else name


@dataclass(frozen=True)
class Projection:
    """Inclusion (``exclude=False``) or exclusion list of fields.

    Inclusion projections always keep ``_id``.
    """

    fields: tuple[str, ...]
    exclude: bool = False

    def apply(self, record: Mapping[str, Any]) -> dict[str, Any]:
        if self.exclude:
            return {k: v for k, v in record.items() if k not in self.fields}
        keep = set(self.fields) | {"_id"}
        return {k: v for k, v in record.items() if k in keep}


@dataclass(frozen=True)
class QueryRequest:
    """Storage-agnostic query handed to the storage collaborator."""

    criteria: Criteria = field(default_factory=Criteria)
    sort: tuple[SortKey, ...] = ()
    limit: int | None = None
    skip: int | None = None
    projection: Projection | None = None


__all__ = [
    "Operator",
    "SortDirection",
    "Predicate",
    "Criteria",
    "SortKey",
    "Projection",
    "QueryRequest",
    "where",
    "asc",
    "desc",
    "parse_condition",
    "parse_sort",
    "lookup",
]
