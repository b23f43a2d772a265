"""Live attribute values of one document instance."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from docspine.dirty import ChangeTracker
from docspine.keys import KeyRegistry
from docspine.types import dump_value

_UNSET = object()


class AttributeStore:
    """
    Declared and dynamic values for one document, plus its ChangeTracker.

    Declared keys are coerced on every write and tracked outside the
    initializing phase. Undeclared names are stored as dynamic fields with no
    coercion and no tracking.
    """

    def __init__(self, keys: KeyRegistry):
        self.keys = keys
        self.tracker = ChangeTracker()
        self._values: dict[str, Any] = {}
        self._dynamic: dict[str, Any] = {}
        # keys filled from defaults that storage has not seen yet
        self._defaulted: set[str] = set()
        # loaded from a projected record; absent keys may still hold stored values
        self.projected = False

    @contextmanager
    def initializing(self) -> Iterator[None]:
        with self.tracker.initializing():
            yield

    def apply_defaults(self) -> None:
        """Fill static defaults for declared keys that hold no value."""
        with self.tracker.initializing():
            for definition in self.keys:
                if definition.name not in self._values and definition.has_static_default:
                    self._values[definition.name] = definition.default_value()
                    self._defaulted.add(definition.name)

    def read(self, name: str) -> Any:
        name = self.keys.resolve(name)
        value = self._values.get(name, _UNSET)
        if value is not _UNSET:
            return value
        definition = self.keys.get(name)
        if definition is None:
            return self._dynamic.get(name)
        if definition.lazy_default:
            value = definition.default_value()
            self._values[name] = value
            self._defaulted.add(name)
            return value
        return None

    def write(self, name: str, value: Any) -> None:
        name = self.keys.resolve(name)
        definition = self.keys.get(name)
        if definition is None:
            self._dynamic[name] = value
            return
        coerced = definition.coerce(value)
        self.tracker.record(name, self._values.get(name), coerced)
        self._values[name] = coerced
        self._defaulted.discard(name)

    def write_untracked(self, name: str, value: Any) -> None:
        name = self.keys.resolve(name)
        definition = self.keys.get(name)
        if definition is None:
            self._dynamic[name] = value
        else:
            self._values[name] = definition.coerce(value)

    def load(self, name: str, raw: Any) -> None:
        """Set a value from its storage form, untracked."""
        definition = self.keys.get(name)
        if definition is None:
            self._dynamic[name] = raw
        else:
            self._values[name] = definition.from_storage(raw)

    def unset(self, name: str) -> None:
        name = self.keys.resolve(name)
        self._values.pop(name, None)
        self._dynamic.pop(name, None)

    def has_value(self, name: str) -> bool:
        name = self.keys.resolve(name)
        return name in self._values or name in self._dynamic

    def materialize(self) -> None:
        """Evaluate lazy defaults so every declared key holds a value."""
        for definition in self.keys:
            self.read(definition.name)

    @property
    def dynamic(self) -> dict[str, Any]:
        return self._dynamic

    @property
    def defaulted(self) -> set[str]:
        if self.projected:
            return set()
        return set(self._defaulted)

    def mark_persisted(self) -> None:
        self._defaulted.clear()

    def reset(self) -> None:
        self._values.clear()
        self._dynamic.clear()
        self._defaulted.clear()
        self.projected = False

    def to_dict(self) -> dict[str, Any]:
        self.materialize()
        values = {d.name: self._values.get(d.name) for d in self.keys}
        values.update(self._dynamic)
        return values

    def to_storage(self) -> dict[str, Any]:
        self.materialize()
        record = {d.name: d.to_storage(self._values.get(d.name)) for d in self.keys}
        for name, value in self._dynamic.items():
            record[name] = dump_value(value)
        return record

    def storage_fields(self, names: set[str] | list[str]) -> dict[str, Any]:
        fields = {}
        for name in names:
            definition = self.keys.get(name)
            if definition is None:
                fields[name] = dump_value(self._dynamic.get(name))
            else:
                fields[definition.name] = definition.to_storage(self.read(definition.name))
        return fields


__all__ = ["AttributeStore"]
