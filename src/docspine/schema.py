"""
Per-type schema built once at class-definition time.

``DocumentSchema`` owns everything a document type declares: the key
registry and its accessor bundles, associations, scopes, the default scope,
the callback chain and validation rules. ``BaseDocument.__init_subclass__``
fills it from the class body, then locks it.

Architecture:
    ::

        class Person(Document): ...        ──► __init_subclass__
                                                  │
            parent schema (copied) ───────────────┤
            Key / association descriptors ────────┤  register_*()
            @before_save ... decorated methods ───┤
            scopes / default_scope / validations ─┘
                                                  ▼
                                      DocumentSchema (locked)

After locking, ``register_key``/``remove_key``/``add_scope``/... raise
SchemaError. Post-definition changes are possible only inside the explicit
migration block::

    with Person.schema.migration():
        Person.schema.register_key("nickname", Key(str))
        Person.schema.remove_key("legacy_code")

Subclasses start from a copy of the parent's schema, so keys and callbacks
are inherited and never leak back to the parent.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from docspine import naming
from docspine.associations.resolver import AssociationResolver
from docspine.callbacks import Callback, CallbackChain, Phase
from docspine.core.errors import SchemaError
from docspine.core.logging import get_logger
from docspine.criteria import Criteria, Operator, Predicate, Projection, SortKey
from docspine.keys import AliasKey, Key, KeyAccessors, KeyDefinition, KeyRegistry
from docspine.modifiers import Modifier, ModifierKind, Update
from docspine.query import Query
from docspine.scopes import Scope
from docspine.types import coerce, dump_value

if TYPE_CHECKING:
    from docspine.associations.descriptors import Association

logger = get_logger(__name__)

_ELEMENT_KINDS = {
    ModifierKind.PUSH,
    ModifierKind.PUSH_ALL,
    ModifierKind.PULL,
    ModifierKind.PULL_ALL,
    ModifierKind.ADD_TO_SET,
}
_LIST_OPERAND_KINDS = {ModifierKind.PUSH_ALL, ModifierKind.PULL_ALL, ModifierKind.ADD_TO_SET}


class DocumentSchema:
    """Keys, associations, scopes, callbacks and rules for one document type."""

    def __init__(
        self,
        document_type: type,
        parent: DocumentSchema | None = None,
        *,
        reserved: frozenset[str] = frozenset(),
    ):
        self.document_type = document_type
        self.reserved = reserved
        self.keys = parent.keys.copy() if parent else KeyRegistry()
        self.accessors: dict[str, KeyAccessors] = dict(parent.accessors) if parent else {}
        self.associations: dict[str, Association] = dict(parent.associations) if parent else {}
        self.callbacks = parent.callbacks.copy() if parent else CallbackChain()
        self.scopes: dict[str, Scope] = dict(parent.scopes) if parent else {}
        self.default_scope: Criteria | None = parent.default_scope if parent else None
        self.validations: list[Any] = list(parent.validations) if parent else []
        self.timestamps: bool = parent.timestamps if parent else False
        self.collection_name = naming.collection_name(document_type.__name__)
        self.resolver = AssociationResolver(self)
        self._locked = False
        self._migrating = 0

    # ------------------------------------------------------------------ #
    # Registration phase
    # ------------------------------------------------------------------ #

    @property
    def locked(self) -> bool:
        return self._locked and not self._migrating

    def lock(self) -> None:
        self._locked = True

    @contextmanager
    def migration(self) -> Iterator[DocumentSchema]:
        """Explicit schema-migration step: allow mutation inside the block."""
        self._migrating += 1
        logger.info("schema_migration_started", document_type=self.document_type.__name__)
        try:
            yield self
        finally:
            self._migrating -= 1
            logger.info("schema_migration_finished", document_type=self.document_type.__name__)

    def _ensure_mutable(self, action: str) -> None:
        if self.locked:
            raise SchemaError(
                f"{self.document_type.__name__} schema is locked; {action} "
                "must happen in the class body or inside schema.migration()"
            ).with_context(document_type=self.document_type.__name__, operation=action)

    def register_key(self, name: str, key: Key | KeyDefinition) -> KeyDefinition:
        self._ensure_mutable("register_key")
        if name in self.reserved:
            raise SchemaError(
                f"key {name!r} collides with the document API"
            ).with_context(document_type=self.document_type.__name__, field=name)
        if name in self.associations:
            raise SchemaError(f"key {name!r} collides with an association")
        definition = key.definition(name) if isinstance(key, Key) else key
        previous = self.keys.get(name) if name in self.keys else None
        self.keys.register(definition)

        bundle = KeyAccessors(definition)
        if previous is not None and previous.alias and previous.alias != definition.alias:
            self.accessors.pop(previous.alias, None)
            if isinstance(self.document_type.__dict__.get(previous.alias), AliasKey):
                delattr(self.document_type, previous.alias)
        self.accessors[name] = bundle
        if definition.alias:
            if definition.alias in self.reserved:
                raise SchemaError(f"alias {definition.alias!r} collides with the document API")
            self.accessors[definition.alias] = bundle
            setattr(self.document_type, definition.alias, AliasKey(name))

        if not isinstance(self.document_type.__dict__.get(name), Key):
            descriptor = Key(
                definition.type,
                default=definition.default,
                required=definition.required,
                alias=definition.alias,
                typecast=definition.typecast,
            )
            descriptor.name = name
            setattr(self.document_type, name, descriptor)
        return definition

    def remove_key(self, name: str) -> KeyDefinition:
        self._ensure_mutable("remove_key")
        definition = self.keys.remove(name)
        self.accessors.pop(definition.name, None)
        if definition.alias:
            self.accessors.pop(definition.alias, None)
            if definition.alias in self.document_type.__dict__:
                delattr(self.document_type, definition.alias)
        if definition.name in self.document_type.__dict__:
            delattr(self.document_type, definition.name)
        return definition

    def add_association(self, name: str, association: Association) -> None:
        self._ensure_mutable("add_association")
        if name in self.reserved or name in self.keys:
            raise SchemaError(f"association {name!r} collides with a key or the document API")
        if association.name is None:
            association.__set_name__(self.document_type, name)
        if name not in self.document_type.__dict__:
            setattr(self.document_type, name, association)
        self.associations[name] = association
        association.contribute(self)

    def add_scope(self, name: str, source: Criteria | Callable[..., Any]) -> None:
        self._ensure_mutable("add_scope")
        if hasattr(Query, name):
            raise SchemaError(f"scope {name!r} collides with the query API")
        self.scopes[name] = Scope(name, source)

    def set_default_scope(self, criteria: Criteria | None) -> None:
        self._ensure_mutable("set_default_scope")
        if criteria is not None and not isinstance(criteria, Criteria):
            raise SchemaError("default_scope must be a Criteria (use where(...))")
        self.default_scope = criteria

    def add_callback(
        self,
        callback: Callback | Phase | str,
        handler: str | Callable[..., Any] | None = None,
        *,
        when: Any = None,
        unless: Any = None,
    ) -> None:
        self._ensure_mutable("add_callback")
        if not isinstance(callback, Callback):
            callback = Callback(Phase(callback), handler, when, unless)
        self.callbacks.register(callback)

    def add_validation(self, rule: Any) -> None:
        self._ensure_mutable("add_validation")
        self.validations.append(rule)

    # ------------------------------------------------------------------ #
    # Lookups
    # ------------------------------------------------------------------ #

    def accessor(self, name: str) -> KeyAccessors:
        bundle = self.accessors.get(name)
        if bundle is None:
            raise SchemaError(
                f"{self.document_type.__name__} has no key named {name!r}"
            ).with_context(document_type=self.document_type.__name__, field=name)
        return bundle

    def storage_field(self, name: str) -> str:
        if name == "id":
            return "_id"
        head, dot, rest = name.partition(".")
        return self.keys.resolve(head) + dot + rest

    def definition_for(self, field: str) -> KeyDefinition | None:
        if "." in field:
            return None
        return self.keys.get(field)

    def identity_criteria(self, identity: Any) -> Criteria:
        return Criteria((Predicate("_id", Operator.EQ, identity),))

    # ------------------------------------------------------------------ #
    # Compilation to storage form
    # ------------------------------------------------------------------ #

    def _operand(self, definition: KeyDefinition | None, value: Any) -> Any:
        if getattr(type(value), "schema", None) is not None and hasattr(value, "id"):
            value = value.id
        if definition is None:
            return dump_value(value)
        return definition.operand_to_storage(value)

    def compile_predicate(self, predicate: Predicate) -> Predicate:
        name = self.storage_field(predicate.field)
        definition = self.definition_for(name)
        if predicate.operator is Operator.IN:
            value = tuple(self._operand(definition, v) for v in predicate.value)
        else:
            value = self._operand(definition, predicate.value)
        return Predicate(name, predicate.operator, value)

    def compile_criteria(self, criteria: Criteria) -> Criteria:
        return criteria.map(self.compile_predicate)

    def compile_sort(self, sort: Iterable[SortKey]) -> tuple[SortKey, ...]:
        return tuple(SortKey(self.storage_field(s.field), s.direction) for s in sort)

    def compile_projection(self, projection: Projection | None) -> Projection | None:
        if projection is None:
            return None
        return Projection(
            tuple(self.storage_field(f) for f in projection.fields), projection.exclude
        )

    def compile_update(self, update: Update) -> Update:
        return Update(tuple(self._compile_modifier(m, storage=True) for m in update.modifiers))

    def python_operand(self, modifier: Modifier) -> Any:
        """Operand in Python form, for mirroring a modifier in memory."""
        return self._compile_modifier(modifier, storage=False).operand

    def _compile_modifier(self, modifier: Modifier, *, storage: bool) -> Modifier:
        name = self.storage_field(modifier.field)
        definition = self.definition_for(name)
        kind, operand = modifier.kind, modifier.operand

        if kind is ModifierKind.SET:
            if definition is not None:
                operand = definition.coerce(operand)
                operand = definition.to_storage(operand) if storage else operand
            elif storage:
                operand = dump_value(operand)
        elif kind in _ELEMENT_KINDS:

            def element(value: Any) -> Any:
                if definition is None:
                    return dump_value(value) if storage else value
                if storage:
                    return definition.operand_to_storage(value)
                if definition.typecast is not None:
                    return coerce(definition.typecast, value)
                return value

            if kind in _LIST_OPERAND_KINDS and isinstance(operand, (list, tuple, set)):
                operand = [element(v) for v in operand]
            else:
                operand = element(operand)
        return Modifier(kind, name, operand)


__all__ = ["DocumentSchema"]
