"""
Document types: declaration, attributes, lifecycle.

Manifesto:
    - **One registration phase:** class bodies are read once, then the
      schema locks
    - **Explicit context:** every storage call goes through a MapperContext
    - **Honest change history:** changes are committed only when the write
      actually happened
    - **Results, not exceptions:** invalid or halted saves return False;
      only the ``*_or_raise`` variants raise

Architecture:
    ::

        BaseDocument ─── attributes, dirty API, validation, embedded docs
        ├── Document          identity (_id), persistence, queries, modifiers
        └── EmbeddedDocument  stored inline inside a parent document

        Document instance
        ├── _attributes   AttributeStore (values + ChangeTracker)
        ├── _embedded     association name → EmbeddedCollection | document
        ├── _state        NEW → PERSISTED → DESTROYED
        └── _context      MapperContext it was created with / loaded from

Save pipeline:
    ::

        save()
          valid()  before_validation → validator → after_validation
          tracker.clear_changes(
              before_save → around_save[
                  before_create|update → around_create|update[ write ]
                  → after_create|update
              ] → after_save
          )

Examples:
    >>> class Person(Document):
    ...     name = Key(str, required=True)
    ...     age = Key(int, default=0)
    >>> ctx = MapperContext(storage=MemoryStorage())
    >>> alice = Person.create(ctx, name="Alice")
    >>> alice.age = "31"
    >>> alice.changes
    {'age': (0, 31)}
    >>> alice.save()
    True

Guardrails:
    ❌ DON'T: Declare keys after the class statement
    ✅ DO: Use ``with Model.schema.migration():`` for post-hoc schema changes

    ❌ DON'T: Reach for a global connection
    ✅ DO: Pass ``ctx`` to class-level calls; instances remember theirs

Tags:
    document, lifecycle, dirty-tracking, persistence, docspine
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from datetime import datetime
from enum import Enum
from typing import Any

from docspine.associations.descriptors import Association, One
from docspine.attributes import AttributeStore
from docspine.callbacks import HALT, Phase, declared_callbacks
from docspine.context import MapperContext
from docspine.core.errors import (
    InvalidArgumentError,
    NotFoundError,
    PersistenceRejectedError,
    SchemaError,
)
from docspine.core.logging import get_logger
from docspine.core.timestamps import utc_now
from docspine.keys import Key
from docspine.modifiers import ModifierKind, Update
from docspine.query import Query
from docspine.registry import register_document
from docspine.schema import DocumentSchema
from docspine.types import ObjectId
from docspine.validation import RuleValidator, ValidationErrors

logger = get_logger(__name__)

# Framework classes whose public names are off-limits for keys
_API_CLASSES: list[type] = []


class DocumentState(str, Enum):
    NEW = "new"
    PERSISTED = "persisted"
    DESTROYED = "destroyed"


def _reserved_names(cls: type) -> frozenset[str]:
    return frozenset(
        name
        for klass in cls.__mro__
        if klass in _API_CLASSES
        for name in vars(klass)
        if not name.startswith("_")
    )


class BaseDocument:
    """Attributes, change tracking and validation shared by all documents."""

    schema: DocumentSchema
    _embedded_type = False
    _abstract = True

    def __init_subclass__(cls, abstract: bool = False, **kwargs: Any):
        super().__init_subclass__(**kwargs)
        parent = next(
            (
                base.__dict__["schema"]
                for base in cls.__mro__[1:]
                if isinstance(base.__dict__.get("schema"), DocumentSchema)
            ),
            None,
        )
        schema = DocumentSchema(cls, parent, reserved=_reserved_names(cls))
        cls.schema = schema
        cls._abstract = abstract
        cls._declare_identity(schema)

        body = dict(cls.__dict__)
        for name, value in body.items():
            if isinstance(value, Key):
                schema.register_key(name, value)
        for name, value in body.items():
            if isinstance(value, Association):
                schema.add_association(name, value)
            else:
                for callback in declared_callbacks(name, value):
                    schema.add_callback(callback)

        for name, source in body.get("scopes", {}).items():
            schema.add_scope(name, source)
        if "default_scope" in body:
            schema.set_default_scope(body["default_scope"])
        for rule in body.get("validations", ()):
            schema.add_validation(rule)
        if "collection_name" in body:
            schema.collection_name = body["collection_name"]
        if body.get("timestamps"):
            schema.timestamps = True
            for name in ("created_at", "updated_at"):
                if name not in schema.keys:
                    schema.register_key(name, Key(datetime))

        cls.collection_name = schema.collection_name
        schema.lock()
        if not abstract:
            register_document(cls)

    @classmethod
    def _declare_identity(cls, schema: DocumentSchema) -> None:
        """Hook for subclasses that carry an identity key."""

    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #

    def __init__(self, attrs: Mapping[str, Any] | None = None, /, **kwargs: Any):
        cls = type(self)
        if cls._abstract:
            raise SchemaError(f"{cls.__name__} is abstract and cannot be instantiated")
        self._setup()
        values = {**(attrs or {}), **kwargs}
        identity = values.pop("_id", values.pop("id", None))
        with self._attributes.initializing():
            self.schema.resolver.initialize_embedded(self)
            self._attributes.apply_defaults()
            if identity is not None:
                self._attributes.write("_id", identity)
            self._generate_identity()
        self._assign(values)
        self.schema.callbacks.run_after(Phase.AFTER_INITIALIZE, self)

    def _setup(self) -> None:
        self._attributes = AttributeStore(self.schema.keys)
        self._embedded: dict[str, Any] = {}
        # embedded fields a projected load left out
        self._unloaded_embedded: set[str] = set()
        self._association_cache: dict[str, Any] = {}
        self._state = DocumentState.NEW
        self._context: MapperContext | None = None
        self._errors = ValidationErrors()
        self._parent: BaseDocument | None = None

    def _generate_identity(self) -> None:
        """Documents without an identity key have nothing to generate."""

    def _assign(self, values: Mapping[str, Any]) -> None:
        cls = type(self)
        routed = {"id", "_id", *self.schema.associations, *self.schema.accessors}
        for name, value in values.items():
            if name in routed:
                self.write(name, value)
            elif isinstance(getattr(cls, name, None), property):
                setattr(self, name, value)
            else:
                self._attributes.write(name, value)

    @classmethod
    def from_storage(
        cls,
        record: Mapping[str, Any],
        context: MapperContext | None = None,
        *,
        parent: BaseDocument | None = None,
        projected: bool = False,
    ) -> BaseDocument:
        """
        Hydrate a persisted document from its stored record.

        ``projected`` marks a record fetched with a field projection: keys it
        lacks are not treated as defaulted, so saving never overwrites them.
        """
        document = cls.__new__(cls)
        document._setup()
        document._parent = parent
        document._context = context
        document._load(record, projected=projected)
        document._state = DocumentState.PERSISTED
        document.schema.callbacks.run_after(Phase.AFTER_INITIALIZE, document)
        document.schema.callbacks.run_after(Phase.AFTER_FIND, document)
        return document

    def _load(self, record: Mapping[str, Any], *, projected: bool = False) -> None:
        attributes = self._attributes
        with attributes.initializing():
            attributes.reset()
            self._embedded = {}
            self._association_cache.clear()
            consumed = self.schema.resolver.load_embedded(self, record)
            for name, raw in record.items():
                if name not in consumed:
                    attributes.load(name, raw)
            attributes.apply_defaults()
            attributes.projected = projected
            self._unloaded_embedded = set()
            if projected:
                self._unloaded_embedded = {n for n in consumed if n not in record}

    # ------------------------------------------------------------------ #
    # Attribute access
    # ------------------------------------------------------------------ #

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_") or hasattr(type(self), name):
            object.__setattr__(self, name, value)
        else:
            self._attributes.write(name, value)

    def __getattr__(self, name: str) -> Any:
        attributes = self.__dict__.get("_attributes")
        if name.startswith("_") or attributes is None or name not in attributes.dynamic:
            raise AttributeError(
                f"{type(self).__name__!r} object has no attribute {name!r}"
            )
        return attributes.dynamic[name]

    def read(self, name: str) -> Any:
        if name == "id":
            name = "_id"
        if name in self.schema.associations:
            return getattr(self, name)
        return self._attributes.read(name)

    def write(self, name: str, value: Any) -> None:
        if name == "id":
            name = "_id"
        if name in self.schema.associations:
            setattr(self, name, value)
            return
        self._attributes.write(name, value)

    def __getitem__(self, name: str) -> Any:
        return self.read(name)

    def __setitem__(self, name: str, value: Any) -> None:
        self.write(name, value)

    @classmethod
    def keys(cls) -> dict[str, Any]:
        """Declared keys (name → KeyDefinition), inherited ones included."""
        return {definition.name: definition for definition in cls.schema.keys}

    @property
    def id(self) -> Any:
        return self._attributes.read("_id")

    @property
    def attributes(self) -> dict[str, Any]:
        values = self._attributes.to_dict()
        for name, association in self.schema.associations.items():
            if not association.embedded:
                continue
            documents = [d.attributes for d in association.documents(self)]
            if isinstance(association, One):
                values[name] = documents[0] if documents else None
            else:
                values[name] = documents
        return values

    def to_storage(self) -> dict[str, Any]:
        record = self._attributes.to_storage()
        record.update(self.schema.resolver.dump_embedded(self))
        return record

    def embedded_documents(self) -> Iterator[tuple[str, BaseDocument]]:
        return self.schema.resolver.embedded_documents(self)

    # ------------------------------------------------------------------ #
    # State and context
    # ------------------------------------------------------------------ #

    @property
    def is_new(self) -> bool:
        return self._state is DocumentState.NEW

    @property
    def is_persisted(self) -> bool:
        return self._state is DocumentState.PERSISTED

    @property
    def is_destroyed(self) -> bool:
        return self._state is DocumentState.DESTROYED

    @property
    def context(self) -> MapperContext | None:
        if self._context is not None:
            return self._context
        return self._parent.context if self._parent is not None else None

    def bind(self, context: MapperContext) -> BaseDocument:
        self._context = context
        return self

    def _require_context(self) -> MapperContext:
        context = self.context
        if context is None:
            raise InvalidArgumentError(
                f"{type(self).__name__} is not bound to a MapperContext; "
                "pass ctx= or create it through Model.create(ctx, ...)"
            )
        return context

    @property
    def errors(self) -> ValidationErrors:
        return self._errors

    # ------------------------------------------------------------------ #
    # Validation
    # ------------------------------------------------------------------ #

    def valid(self, validation_context: str | None = None) -> bool:
        """Run before_validation, the validator, then after_validation."""
        validation_context = validation_context or ("create" if self.is_new else "update")
        callbacks = self.schema.callbacks
        self._errors = ValidationErrors()
        if callbacks.run_before(Phase.BEFORE_VALIDATION, self) is HALT:
            return False
        context = self.context
        validator = context.validator if context is not None else RuleValidator()
        ok, errors = validator.validate(self, validation_context)
        self._errors = errors
        callbacks.run_after(Phase.AFTER_VALIDATION, self)
        return ok

    # ------------------------------------------------------------------ #
    # Dirty tracking
    # ------------------------------------------------------------------ #

    @property
    def changed(self) -> bool:
        return bool(self._attributes.tracker)

    @property
    def changed_keys(self) -> list[str]:
        return self._attributes.tracker.changed_keys

    @property
    def changes(self) -> dict[str, tuple[Any, Any]]:
        return self._attributes.tracker.changes(self._attributes.read)

    @property
    def changed_attributes(self) -> dict[str, Any]:
        return self._attributes.tracker.changed_attributes

    @property
    def previous_changes(self) -> dict[str, tuple[Any, Any]]:
        return self._attributes.tracker.previous_changes

    def attribute_changed(self, name: str) -> bool:
        return self.schema.accessor(name).changed(self)

    def attribute_was(self, name: str) -> Any:
        return self.schema.accessor(name).was(self)

    def attribute_change(self, name: str) -> tuple[Any, Any] | None:
        return self.schema.accessor(name).change(self)

    def attribute_will_change(self, name: str) -> None:
        self.schema.accessor(name).will_change(self)

    def attribute_previously_changed(self, name: str) -> bool:
        return self.schema.accessor(name).previously_changed(self)

    def attribute_previous_change(self, name: str) -> tuple[Any, Any] | None:
        return self.schema.accessor(name).previous_change(self)

    def will_save_change_to_attribute(self, name: str) -> bool:
        return self.schema.accessor(name).will_save_change(self)

    def saved_change_to_attribute(self, name: str) -> tuple[Any, Any] | None:
        return self.schema.accessor(name).saved_change(self)

    def reset_attribute(self, name: str) -> None:
        self.schema.accessor(name).reset(self)

    def restore_attribute(self, name: str) -> None:
        self.schema.accessor(name).restore(self)

    def _commit_embedded(self) -> None:
        for _, document in self.embedded_documents():
            document._state = DocumentState.PERSISTED
            document._attributes.tracker.clear_changes(document._attributes.read)
            document._attributes.mark_persisted()
            document._commit_embedded()

    # ------------------------------------------------------------------ #
    # Embedded building
    # ------------------------------------------------------------------ #

    def build(self, name: str, **attrs: Any) -> BaseDocument:
        """Build an associated document (embedded single or any collection)."""
        association = self.schema.associations.get(name)
        if association is None:
            raise InvalidArgumentError(f"{type(self).__name__} has no association {name!r}")
        if isinstance(association, One):
            document = association.target(**attrs)
            setattr(self, name, document)
            return document
        return getattr(self, name).build(**attrs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BaseDocument):
            return NotImplemented
        if type(self) is not type(other) or self.id is None:
            return self is other
        return self.id == other.id

    def __hash__(self) -> int:
        if self.id is None:
            return id(self)
        return hash((type(self).__name__, self.id))

    def __repr__(self) -> str:
        shown = ", ".join(f"{k}={v!r}" for k, v in self._attributes.to_dict().items())
        return f"<{type(self).__name__} {shown}>"


class Document(BaseDocument, abstract=True):
    """Top-level document stored in its own collection under an ``_id``."""

    @classmethod
    def _declare_identity(cls, schema: DocumentSchema) -> None:
        if "_id" not in schema.keys:
            schema.register_key("_id", Key(ObjectId))

    def _generate_identity(self) -> None:
        if self._attributes.read("_id") is None:
            self._attributes.write("_id", ObjectId())

    def write(self, name: str, value: Any) -> None:
        if name in ("id", "_id") and not self.is_new:
            definition = self.schema.keys.get("_id")
            if definition.coerce(value) != self.id:
                raise InvalidArgumentError(
                    f"{type(self).__name__} identity cannot change once persisted"
                ).with_context(document_type=type(self).__name__, identity=str(self.id))
        super().write(name, value)

    # ------------------------------------------------------------------ #
    # Class-level entry points
    # ------------------------------------------------------------------ #

    @classmethod
    def query(cls, context: MapperContext) -> Query:
        return Query(cls, context)

    @classmethod
    def unscoped(cls, context: MapperContext) -> Query:
        return Query(cls, context).unscoped()

    @classmethod
    def find(cls, context: MapperContext, *ids: Any) -> Document | list[Document] | None:
        return cls.query(context).find(*ids)

    @classmethod
    def find_or_raise(cls, context: MapperContext, *ids: Any) -> Document | list[Document]:
        return cls.query(context).find_or_raise(*ids)

    @classmethod
    def create(
        cls,
        context: MapperContext,
        attrs: Mapping[str, Any] | list[Mapping[str, Any]] | None = None,
        /,
        **kwargs: Any,
    ) -> Document | list[Document]:
        """Build and save; returns the document even when the save failed."""
        if isinstance(attrs, list):
            return [cls.create(context, item, **kwargs) for item in attrs]
        document = cls(attrs, **kwargs)
        document.save(context)
        return document

    @classmethod
    def create_or_raise(
        cls,
        context: MapperContext,
        attrs: Mapping[str, Any] | list[Mapping[str, Any]] | None = None,
        /,
        **kwargs: Any,
    ) -> Document | list[Document]:
        if isinstance(attrs, list):
            return [cls.create_or_raise(context, item, **kwargs) for item in attrs]
        document = cls(attrs, **kwargs)
        document.save_or_raise(context)
        return document

    @classmethod
    def update(
        cls,
        context: MapperContext,
        identity: Any,
        attrs: Mapping[str, Any] | None = None,
    ) -> Document | list[Document]:
        """``update(ctx, id, attrs)`` or ``update(ctx, {id: attrs, ...})``."""
        if isinstance(identity, Mapping) and attrs is None:
            if not identity:
                raise InvalidArgumentError("update needs at least one id → attributes pair")
            return [cls.update(context, key, value) for key, value in identity.items()]
        if identity is None:
            raise InvalidArgumentError("update needs an id")
        if not attrs:
            raise InvalidArgumentError("update needs attributes")
        document = cls.find_or_raise(context, identity)
        document.update_attributes(**attrs)
        return document

    @classmethod
    def delete_all(cls, context: MapperContext, **conditions: Any) -> int:
        return cls.query(context).where(conditions).delete_all()

    @classmethod
    def destroy_all(cls, context: MapperContext, **conditions: Any) -> int:
        return cls.query(context).where(conditions).destroy_all()

    @classmethod
    def find_and_modify(
        cls,
        context: MapperContext,
        query: Query | Mapping[str, Any] | None,
        update: Update | Mapping[str, Any],
        *,
        upsert: bool = False,
        return_new: bool = False,
    ) -> Document | None:
        if not isinstance(query, Query):
            query = cls.query(context).where(query)
        return query.using(context).find_and_modify(update, upsert=upsert, return_new=return_new)

    # ------------------------------------------------------------------ #
    # Persistence
    # ------------------------------------------------------------------ #

    def _storage_identity(self) -> Any:
        return self.schema.keys.get("_id").to_storage(self.id)

    def save(self, context: MapperContext | None = None, *, validate: bool = True) -> bool:
        """Validate and persist; False when invalid, halted or destroyed."""
        if context is not None:
            self._context = context
        if self.is_destroyed:
            logger.debug("save_skipped", document_type=type(self).__name__, reason="destroyed")
            return False
        context = self._require_context()
        if validate and not self.valid():
            return False
        attributes = self._attributes
        return attributes.tracker.clear_changes(attributes.read, lambda: self._persist(context))

    def _persist(self, context: MapperContext) -> bool:
        callbacks = self.schema.callbacks
        operation = "create" if self.is_new else "update"

        def write() -> None:
            self._stamp(operation == "create")
            if operation == "create":
                self._insert(context)
            else:
                self._update(context)
            self._commit_embedded()

        def body() -> Any:
            return callbacks.run(operation, self, write)

        if callbacks.run("save", self, body) is HALT:
            logger.debug("save_halted", document_type=type(self).__name__, operation=operation)
            return False
        return True

    def _stamp(self, creating: bool) -> None:
        if not self.schema.timestamps:
            return
        now = utc_now()
        if creating and self._attributes.read("created_at") is None:
            self._attributes.write("created_at", now)
        self._attributes.write("updated_at", now)

    def _insert(self, context: MapperContext) -> None:
        collection = context.collection_for(type(self))
        identity = context.storage.insert(collection, self.to_storage())
        if self.id is None:
            self._attributes.write_untracked("_id", identity)
        self._attributes.mark_persisted()
        self._state = DocumentState.PERSISTED
        logger.debug("document_inserted", collection=collection, id=str(self.id))

    def _update(self, context: MapperContext) -> None:
        attributes = self._attributes
        names = set(attributes.tracker.changed_keys) | set(attributes.dynamic) | attributes.defaulted
        fields = attributes.storage_fields(names)
        embedded = self.schema.resolver.dump_embedded(self)
        for name in self._unloaded_embedded:
            embedded.pop(name, None)
        fields.update(embedded)
        fields.pop("_id", None)
        collection = context.collection_for(type(self))
        if fields:
            context.storage.update(collection, self._storage_identity(), fields)
        attributes.mark_persisted()
        logger.debug("document_updated", collection=collection, id=str(self.id), fields=sorted(fields))

    def save_or_raise(self, context: MapperContext | None = None, *, validate: bool = True) -> bool:
        if self.save(context, validate=validate):
            return True
        if self.errors:
            message = f"{type(self).__name__} is invalid: {', '.join(self.errors.full_messages())}"
        else:
            message = f"{type(self).__name__} was not saved"
        raise PersistenceRejectedError(
            message, document=self, errors=self.errors
        ).with_context(document_type=type(self).__name__, identity=str(self.id), operation="save")

    def update_attributes(self, **attrs: Any) -> bool:
        self._assign(attrs)
        return self.save()

    def update_attributes_or_raise(self, **attrs: Any) -> bool:
        self._assign(attrs)
        return self.save_or_raise()

    def update_attribute(self, name: str, value: Any) -> bool:
        """Set one attribute and save without validation."""
        self.write(name, value)
        return self.save(validate=False)

    def reload(self) -> Document:
        """Re-read from storage, dropping unsaved changes."""
        context = self._require_context()
        records = type(self).unscoped(context).where(_id=self.id).limit(1)._fetch()
        if not records:
            raise NotFoundError(
                f"{type(self).__name__} {self.id} no longer exists"
            ).with_context(document_type=type(self).__name__, identity=str(self.id), operation="reload")
        self._load(records[0])
        self._attributes.tracker.discard()
        self._state = DocumentState.PERSISTED
        return self

    def destroy(self, context: MapperContext | None = None) -> bool:
        """Run destroy callbacks, cascade to dependents, then remove."""
        if context is not None:
            self._context = context
        if self.is_destroyed:
            return False
        context = self._require_context()

        def body() -> None:
            self.schema.resolver.cascade_destroy(self)
            self._remove(context)

        if self.schema.callbacks.run("destroy", self, body) is HALT:
            logger.debug("destroy_halted", document_type=type(self).__name__, id=str(self.id))
            return False
        return True

    def delete(self, context: MapperContext | None = None) -> bool:
        """Remove without callbacks or cascades."""
        if context is not None:
            self._context = context
        return self._remove(self._require_context()) > 0

    def _remove(self, context: MapperContext) -> int:
        collection = context.collection_for(type(self))
        removed = 0
        if not self.is_new:
            removed = context.storage.delete(collection, [self._storage_identity()])
        self._state = DocumentState.DESTROYED
        logger.debug("document_destroyed", collection=collection, id=str(self.id), removed=removed)
        return removed

    def touch(self, context: MapperContext | None = None) -> bool:
        """Bump ``updated_at`` (when declared) and run touch callbacks."""
        if context is not None:
            self._context = context
        if self.is_new or self.is_destroyed:
            raise InvalidArgumentError(f"cannot touch a {self._state.value} {type(self).__name__}")
        context = self._require_context()

        def body() -> None:
            if "updated_at" not in self.schema.keys:
                return
            self._attributes.write_untracked("updated_at", utc_now())
            self._attributes.tracker.forget("updated_at")
            context.storage.update(
                context.collection_for(type(self)),
                self._storage_identity(),
                self._attributes.storage_fields(["updated_at"]),
            )

        return self.schema.callbacks.run("touch", self, body) is not HALT

    # ------------------------------------------------------------------ #
    # Atomic modifiers (not saves: no callbacks, no dirty tracking)
    # ------------------------------------------------------------------ #

    def _modify(self, update: Update) -> bool:
        return self._require_context().modifiers.modify_document(self, update)

    def set(self, **fields: Any) -> bool:
        return self._modify(Update.of(ModifierKind.SET, fields))

    def unset(self, *names: str) -> bool:
        return self._modify(Update.unset(*names))

    def increment(self, **fields: Any) -> bool:
        return self._modify(Update.of(ModifierKind.INCREMENT, fields))

    def decrement(self, **fields: Any) -> bool:
        return self._modify(Update.decrement(fields))

    def push(self, **fields: Any) -> bool:
        return self._modify(Update.of(ModifierKind.PUSH, fields))

    def push_all(self, **fields: Any) -> bool:
        return self._modify(Update.of(ModifierKind.PUSH_ALL, fields))

    def pull(self, **fields: Any) -> bool:
        return self._modify(Update.of(ModifierKind.PULL, fields))

    def pull_all(self, **fields: Any) -> bool:
        return self._modify(Update.of(ModifierKind.PULL_ALL, fields))

    def add_to_set(self, **fields: Any) -> bool:
        return self._modify(Update.of(ModifierKind.ADD_TO_SET, fields))

    def pop(self, **fields: Any) -> bool:
        return self._modify(Update.of(ModifierKind.POP, fields))


class EmbeddedDocument(BaseDocument, abstract=True):
    """Document stored inline in its parent's record; saved with the parent."""

    _embedded_type = True

    @property
    def parent(self) -> BaseDocument | None:
        return self._parent

    def save(self, context: MapperContext | None = None, *, validate: bool = True) -> bool:
        if self._parent is None:
            raise InvalidArgumentError(f"{type(self).__name__} has no parent document to save")
        return self._parent.save(context, validate=validate)


_API_CLASSES.extend([BaseDocument, Document, EmbeddedDocument])


__all__ = ["DocumentState", "BaseDocument", "Document", "EmbeddedDocument"]
