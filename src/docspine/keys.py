"""
Key declarations and their bound accessors.

A ``Key`` placed in a document class body declares a typed field::

    class Person(Document):
        name = Key(str, required=True)
        age = Key(int, default=0)
        tags = Key(list, typecast=str)
        token = Key(str, default=lambda: uuid4().hex)
        first_name = Key(str, alias="fn")

At registration the schema turns each ``Key`` into an immutable
``KeyDefinition`` and builds a ``KeyAccessors`` bundle for it. The bundle
holds explicit ``changed``/``was``/``change``/``reset``/... functions for
the key; documents look them up by name (or alias) instead of dispatching
on ``<name>_changed`` style attribute patterns.

Defaults:
    - Static defaults are deep-copied per instance and applied when the
      document is constructed or hydrated without that key.
    - Zero-argument callables are evaluated lazily on the first read while the
      key is unset. The result is stored without dirty tracking.

Typecast:
    ``typecast=`` is only valid on ``list`` keys and names the element type.
    Every element is coerced with it on write and on load.
"""

from __future__ import annotations

import copy
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from docspine import types
from docspine.core.errors import SchemaError

if TYPE_CHECKING:
    from docspine.document import BaseDocument


@dataclass(frozen=True)
class KeyDefinition:
    """Immutable description of one declared key."""

    name: str
    type: Any = object
    default: Any = None
    required: bool = False
    alias: str | None = None
    typecast: Any = None

    def __post_init__(self) -> None:
        if self.typecast is not None and self.type is not list:
            raise SchemaError(
                f"typecast is only supported on list keys, not {self.name!r}"
            ).with_context(field=self.name)

    @property
    def lazy_default(self) -> bool:
        return callable(self.default)

    @property
    def has_static_default(self) -> bool:
        return self.default is not None and not self.lazy_default

    def default_value(self) -> Any:
        if self.lazy_default:
            return self.coerce(self.default())
        return self.coerce(copy.deepcopy(self.default))

    def coerce(self, value: Any) -> Any:
        value = types.coerce(self.type, value)
        if self.typecast is not None and isinstance(value, list):
            return [types.coerce(self.typecast, item) for item in value]
        return value

    def to_storage(self, value: Any) -> Any:
        if self.typecast is not None and isinstance(value, list):
            return [types.to_storage(self.typecast, item) for item in value]
        return types.to_storage(self.type, value)

    def from_storage(self, raw: Any) -> Any:
        if self.typecast is not None and isinstance(raw, list):
            return [types.from_storage(self.typecast, item) for item in raw]
        return types.from_storage(self.type, raw)

    def operand_to_storage(self, value: Any) -> Any:
        """Storage form of a query or modifier operand for this key.

        A scalar compared against a list key is an element, not a list.
        """
        if self.type is list and not isinstance(value, (list, tuple, set)):
            if self.typecast is not None:
                return types.to_storage(self.typecast, types.coerce(self.typecast, value))
            return types.dump_value(value)
        return self.to_storage(self.coerce(value))


class Key:
    """Class-body key declaration; also the attribute descriptor for it."""

    def __init__(
        self,
        type: Any = object,
        *,
        default: Any = None,
        required: bool = False,
        alias: str | None = None,
        typecast: Any = None,
    ):
        self.type = type
        self.default = default
        self.required = required
        self.alias = alias
        self.typecast = typecast
        self.name: str | None = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def definition(self, name: str | None = None) -> KeyDefinition:
        return KeyDefinition(
            name=name or self.name,
            type=self.type,
            default=self.default,
            required=self.required,
            alias=self.alias,
            typecast=self.typecast,
        )

    def __get__(self, instance: BaseDocument | None, owner: type) -> Any:
        if instance is None:
            return self
        return instance.read(self.name)

    def __set__(self, instance: BaseDocument, value: Any) -> None:
        instance.write(self.name, value)

    def __repr__(self) -> str:
        type_name = getattr(self.type, "__name__", repr(self.type))
        return f"Key({type_name}, name={self.name!r})"


class AliasKey:
    """Descriptor for a key's short alias; reads and writes the real key."""

    def __init__(self, target: str):
        self.target = target

    def __get__(self, instance: BaseDocument | None, owner: type) -> Any:
        if instance is None:
            return self
        return instance.read(self.target)

    def __set__(self, instance: BaseDocument, value: Any) -> None:
        instance.write(self.target, value)


class KeyAccessors:
    """Bound accessor bundle for one declared key."""

    def __init__(self, definition: KeyDefinition):
        self.definition = definition
        self.name = definition.name

    def get(self, document: BaseDocument) -> Any:
        return document._attributes.read(self.name)

    def set(self, document: BaseDocument, value: Any) -> None:
        document._attributes.write(self.name, value)

    def changed(self, document: BaseDocument) -> bool:
        return document._attributes.tracker.is_changed(self.name)

    def was(self, document: BaseDocument) -> Any:
        tracker = document._attributes.tracker
        if tracker.is_changed(self.name):
            return tracker.original(self.name)
        return self.get(document)

    def change(self, document: BaseDocument) -> tuple[Any, Any] | None:
        if not self.changed(document):
            return None
        return (self.was(document), self.get(document))

    def will_change(self, document: BaseDocument) -> None:
        document._attributes.tracker.will_change(self.name, self.get(document))

    def previously_changed(self, document: BaseDocument) -> bool:
        return self.name in document._attributes.tracker.previous_changes

    def previous_change(self, document: BaseDocument) -> tuple[Any, Any] | None:
        return document._attributes.tracker.previous_changes.get(self.name)

    # pending change the next save will write, and the change the last save wrote
    will_save_change = changed
    saved_change = previous_change

    def reset(self, document: BaseDocument) -> None:
        """Restore the tracked original and drop the change entry."""
        tracker = document._attributes.tracker
        if tracker.is_changed(self.name):
            document._attributes.write(self.name, tracker.original(self.name))
            tracker.forget(self.name)

    restore = reset


class KeyRegistry:
    """Ordered key definitions for one document type, with alias lookup."""

    def __init__(self) -> None:
        self._definitions: dict[str, KeyDefinition] = {}
        self._aliases: dict[str, str] = {}

    def register(self, definition: KeyDefinition) -> KeyDefinition:
        alias = definition.alias
        if alias is not None:
            if alias in self._definitions:
                raise SchemaError(f"alias {alias!r} collides with a declared key")
            owner = self._aliases.get(alias)
            if owner is not None and owner != definition.name:
                raise SchemaError(f"alias {alias!r} already maps to {owner!r}")
        if definition.name in self._aliases:
            raise SchemaError(f"key {definition.name!r} collides with an alias")
        previous = self._definitions.get(definition.name)
        if previous is not None and previous.alias:
            self._aliases.pop(previous.alias, None)
        self._definitions[definition.name] = definition
        if alias is not None:
            self._aliases[alias] = definition.name
        return definition

    def remove(self, name: str) -> KeyDefinition:
        definition = self._definitions.pop(self.resolve(name), None)
        if definition is None:
            raise SchemaError(f"no key named {name!r}")
        if definition.alias:
            self._aliases.pop(definition.alias, None)
        return definition

    def resolve(self, name: str) -> str:
        """Map an alias to its key name; other names pass through."""
        return self._aliases.get(name, name)

    def get(self, name: str) -> KeyDefinition | None:
        return self._definitions.get(self.resolve(name))

    def copy(self) -> KeyRegistry:
        clone = KeyRegistry()
        clone._definitions = dict(self._definitions)
        clone._aliases = dict(self._aliases)
        return clone

    def names(self) -> list[str]:
        return list(self._definitions)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.resolve(name) in self._definitions

    def __iter__(self) -> Iterator[KeyDefinition]:
        return iter(list(self._definitions.values()))

    def __len__(self) -> int:
        return len(self._definitions)


__all__ = ["Key", "AliasKey", "KeyDefinition", "KeyAccessors", "KeyRegistry"]
