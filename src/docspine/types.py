"""
Type coercion for declared keys.

Every write to a declared key passes through ``coerce(type, value)``; every
record leaving for storage passes through ``to_storage``; every record coming
back passes through ``from_storage``. Coercion never raises during normal
assignment: strings and booleans degrade to a best-effort value, unparsable
numbers and dates degrade to ``None``.

Coercion table:
    ::

        ┌──────────┬──────────────────────────────────────────────────────┐
        │ str      │ any scalar via str()                                 │
        │ int      │ numeric strings parsed, floats truncated, bad → None │
        │ float    │ numeric strings parsed, bad → None                   │
        │ bool     │ true/false/yes/no/1/0 (any case), 1/0, bool          │
        │ date     │ ISO strings, datetime → date, unix int → date        │
        │ datetime │ ISO strings, date → midnight UTC, unix int           │
        │ list     │ passthrough (tuple/set → list)                       │
        │ dict     │ passthrough (keys stringified)                       │
        │ ObjectId │ parsed from its 24-hex string                        │
        │ custom   │ cls.from_storage(cls.to_storage(value))              │
        │ other    │ passthrough                                          │
        └──────────┴──────────────────────────────────────────────────────┘

Custom types opt in by providing two class-level callables::

    class Money:
        @classmethod
        def to_storage(cls, value): ...      # python → storage form
        @classmethod
        def from_storage(cls, value): ...    # storage form → python

Storage form of built-ins: ObjectId → 24-hex str, date/datetime → ISO-8601.
"""

from __future__ import annotations

import itertools
import math
import os
import random
import struct
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from docspine.core.errors import InvalidArgumentError
from docspine.core.timestamps import ensure_utc, from_iso8601, from_unix

_TRUE_STRINGS = frozenset({"true", "t", "yes", "y", "1", "on"})


class ObjectId:
    """
    12-byte identity: 4-byte timestamp, 5 random bytes, 3-byte counter.

    The canonical form is 24 lowercase hex characters. Ids generated in one
    process sort in creation order.
    """

    __slots__ = ("_id",)

    _counter = itertools.count(random.randint(0, 0xFFFFFF))
    _counter_lock = threading.Lock()
    _random = os.urandom(5)

    def __init__(self, oid: ObjectId | str | bytes | None = None):
        if oid is None:
            self._id = self._generate()
        elif isinstance(oid, ObjectId):
            self._id = oid.binary
        elif isinstance(oid, bytes) and len(oid) == 12:
            self._id = oid
        elif isinstance(oid, str) and self.is_valid(oid):
            self._id = bytes.fromhex(oid)
        else:
            raise InvalidArgumentError(f"{oid!r} is not a valid ObjectId")

    @classmethod
    def _generate(cls) -> bytes:
        with cls._counter_lock:
            count = next(cls._counter) & 0xFFFFFF
        return (
            struct.pack(">I", int(time.time()) & 0xFFFFFFFF)
            + cls._random
            + count.to_bytes(3, "big")
        )

    @classmethod
    def is_valid(cls, value: Any) -> bool:
        if isinstance(value, ObjectId):
            return True
        if not isinstance(value, str) or len(value) != 24:
            return False
        try:
            bytes.fromhex(value)
        except ValueError:
            return False
        return True

    @property
    def binary(self) -> bytes:
        return self._id

    @property
    def generation_time(self) -> datetime:
        return from_unix(struct.unpack(">I", self._id[:4])[0])

    def __str__(self) -> str:
        return self._id.hex()

    def __repr__(self) -> str:
        return f"ObjectId('{self}')"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ObjectId):
            return self._id == other._id
        return NotImplemented

    def __lt__(self, other: ObjectId) -> bool:
        if isinstance(other, ObjectId):
            return self._id < other._id
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._id)

    def __copy__(self) -> ObjectId:
        return self

    def __deepcopy__(self, memo: dict) -> ObjectId:
        return self


# =============================================================================
# Casters
# =============================================================================


def _to_str(value: Any) -> Any:
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _to_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return int(value)
    if isinstance(value, Decimal):
        return int(value) if value.is_finite() else None
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        number = _to_float(text)
        return None if number is None else _to_int(number)
    return None


def _to_float(value: Any) -> float | None:
    if isinstance(value, float):
        return value
    if isinstance(value, str):
        try:
            value = Decimal(value.strip())
        except InvalidOperation:
            return None
    if not isinstance(value, (bool, int, Decimal)):
        return None
    try:
        number = float(value)
    except (OverflowError, ValueError):
        return None
    # out-of-range decimals round to inf rather than raising
    return number if math.isfinite(number) else None


def _to_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        if value == 1:
            return True
        if value == 0:
            return False
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text == "":
            return None
        if text in _TRUE_STRINGS:
            return True
        # Unrecognized strings fall back to False
        return False
    return bool(value)


def _to_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return ensure_utc(datetime(value.year, value.month, value.day))
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return from_unix(value)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            return ensure_utc(from_iso8601(value))
        except ValueError:
            return None
    return None


def _to_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
    moment = _to_datetime(value)
    return None if moment is None else moment.date()


def _to_list(value: Any) -> Any:
    if isinstance(value, (tuple, set, frozenset)):
        return list(value)
    return value


def _to_dict(value: Any) -> Any:
    if isinstance(value, Mapping) and not isinstance(value, dict):
        value = dict(value)
    if isinstance(value, dict) and any(not isinstance(k, str) for k in value):
        return {str(k): v for k, v in value.items()}
    return value


def _to_object_id(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return value
    if ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def dump_value(value: Any) -> Any:
    """Storage form of an untyped value (dynamic fields, list elements)."""
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return ensure_utc(value).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Mapping):
        return {str(k): dump_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [dump_value(v) for v in value]
    if is_custom_type(type(value)):
        return type(value).to_storage(value)
    to_storage = getattr(value, "to_storage", None)
    if callable(to_storage):
        return to_storage()
    return value


def is_custom_type(type_: Any) -> bool:
    """True when ``type_`` provides the to_storage/from_storage pair."""
    return (
        isinstance(type_, type)
        and callable(getattr(type_, "to_storage", None))
        and callable(getattr(type_, "from_storage", None))
    )


# =============================================================================
# Registry
# =============================================================================


@dataclass(frozen=True)
class TypeHandler:
    """Coercion and storage conversions for one declared type."""

    coerce: Callable[[Any], Any]
    to_storage: Callable[[Any], Any] = dump_value
    from_storage: Callable[[Any], Any] | None = None

    def load(self, raw: Any) -> Any:
        return (self.from_storage or self.coerce)(raw)


class TypeRegistry:
    """Maps declared key types to their handlers.

    Unknown types without a to_storage/from_storage pair pass through.
    """

    def __init__(self) -> None:
        self._handlers: dict[Any, TypeHandler] = {}

    def register(self, type_: Any, handler: TypeHandler) -> None:
        self._handlers[type_] = handler

    def handler(self, type_: Any) -> TypeHandler | None:
        handler = self._handlers.get(type_)
        if handler is not None:
            return handler
        if is_custom_type(type_):
            return TypeHandler(
                coerce=lambda v: type_.from_storage(type_.to_storage(v)),
                to_storage=type_.to_storage,
                from_storage=type_.from_storage,
            )
        return None

    def coerce(self, type_: Any, value: Any) -> Any:
        if value is None:
            return None
        handler = self.handler(type_)
        return value if handler is None else handler.coerce(value)

    def to_storage(self, type_: Any, value: Any) -> Any:
        if value is None:
            return None
        handler = self.handler(type_)
        return dump_value(value) if handler is None else handler.to_storage(value)

    def from_storage(self, type_: Any, raw: Any) -> Any:
        if raw is None:
            return None
        handler = self.handler(type_)
        return raw if handler is None else handler.load(raw)


def _datetime_storage(value: Any) -> Any:
    moment = _to_datetime(value)
    return None if moment is None else moment.isoformat()


def _date_storage(value: Any) -> Any:
    day = _to_date(value)
    return None if day is None else day.isoformat()


def _object_id_storage(value: Any) -> Any:
    return str(value) if isinstance(value, ObjectId) else value


registry = TypeRegistry()
registry.register(str, TypeHandler(coerce=_to_str, to_storage=_to_str))
registry.register(int, TypeHandler(coerce=_to_int, to_storage=_to_int))
registry.register(float, TypeHandler(coerce=_to_float, to_storage=_to_float))
registry.register(bool, TypeHandler(coerce=_to_bool, to_storage=_to_bool))
registry.register(date, TypeHandler(coerce=_to_date, to_storage=_date_storage))
registry.register(datetime, TypeHandler(coerce=_to_datetime, to_storage=_datetime_storage))
registry.register(list, TypeHandler(coerce=_to_list))
registry.register(dict, TypeHandler(coerce=_to_dict))
registry.register(ObjectId, TypeHandler(coerce=_to_object_id, to_storage=_object_id_storage))


def coerce(type_: Any, value: Any) -> Any:
    """Convert a raw value to the declared type, never raising."""
    return registry.coerce(type_, value)


def to_storage(type_: Any, value: Any) -> Any:
    return registry.to_storage(type_, value)


def from_storage(type_: Any, raw: Any) -> Any:
    return registry.from_storage(type_, raw)


__all__ = [
    "ObjectId",
    "TypeHandler",
    "TypeRegistry",
    "registry",
    "coerce",
    "to_storage",
    "from_storage",
    "dump_value",
    "is_custom_type",
]
