"""
Association declarations.

Associations are descriptors placed in a document class body. Registration
(``schema.add_association``) lets each one contribute the keys it needs;
attribute access on an instance loads, builds or assigns related documents.

Kinds:
    ::

        BelongsTo("Author")                    owning reference: author_id
        BelongsTo(polymorphic=True)            + <name>_type with target type name
        Many("Comment")                        referenced: Comment.post_id == self.id
        Many("Comment", as_="commentable")     polymorphic reverse (+ type match)
        Many("Tag", in_="tag_ids")             id array kept on the owner
        Many(Address)                          embedded (target is EmbeddedDocument)
        One(Profile)                           embedded single

Targets may be classes or registered type names. Names are resolved on first
use, so declarations can point at classes defined later in the module.
Whether a ``Many`` is embedded is decided by its resolved target.

Example:
    class Post(Document):
        title = Key(str)
        author = BelongsTo("Author")
        comments = Many("Comment", order="-created_at", dependent="destroy")
        tags = Many("Tag", in_="tag_ids")

    post.author = alice                  # sets post.author_id
    post.comments.create(body="first")   # Comment(post_id=post.id).save()
    post.tags.append(python_tag)         # tag_ids += [python_tag.id]
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any

from docspine import naming
from docspine.associations.proxies import EmbeddedCollection, IdArrayProxy, ManyProxy
from docspine.core.errors import SchemaError
from docspine.keys import Key
from docspine.registry import resolve, type_name
from docspine.types import ObjectId

if TYPE_CHECKING:
    from docspine.document import BaseDocument, Document
    from docspine.query import Query
    from docspine.schema import DocumentSchema


class AssociationKind(str, Enum):
    BELONGS_TO = "belongs_to"
    EMBEDDED_ONE = "embedded_one"
    EMBEDDED_MANY = "embedded_many"
    MANY = "many"
    IN_ARRAY = "in_array"


def _is_embedded_type(target: type) -> bool:
    return bool(getattr(target, "_embedded_type", False))


class Association:
    """Base descriptor: naming, lazy target resolution, no-op hooks."""

    kind: AssociationKind
    dependent: str | None = None

    def __init__(self, target: str | type | None = None):
        self._target = target
        self.name: str | None = None
        self.owner: type | None = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name
        self.owner = owner

    @property
    def target(self) -> type[BaseDocument]:
        if self._target is None:
            return resolve(naming.camelize(self.name))
        return resolve(self._target)

    @property
    def embedded(self) -> bool:
        return self.kind in (AssociationKind.EMBEDDED_ONE, AssociationKind.EMBEDDED_MANY)

    def contribute(self, schema: DocumentSchema) -> None:
        """Register supporting keys on the owning schema."""

    def dependents(self, owner: Document) -> list[Document]:
        return []

    def __repr__(self) -> str:
        target = self._target if isinstance(self._target, str) else getattr(self._target, "__name__", None)
        return f"{type(self).__name__}({target!r}, name={self.name!r})"


class BelongsTo(Association):
    """Owner holds the target's id (and type name when polymorphic)."""

    kind = AssociationKind.BELONGS_TO

    def __init__(
        self,
        target: str | type | None = None,
        *,
        polymorphic: bool = False,
        foreign_key: str | None = None,
    ):
        super().__init__(target)
        self.polymorphic = polymorphic
        self._foreign_key = foreign_key

    @property
    def foreign_key(self) -> str:
        return self._foreign_key or f"{self.name}_id"

    @property
    def type_key(self) -> str:
        return f"{self.name}_type"

    def contribute(self, schema: DocumentSchema) -> None:
        if self.foreign_key not in schema.keys:
            schema.register_key(self.foreign_key, Key(ObjectId))
        if self.polymorphic and self.type_key not in schema.keys:
            schema.register_key(self.type_key, Key(str))

    def target_for(self, document: BaseDocument) -> type[BaseDocument] | None:
        if not self.polymorphic:
            return self.target
        name = document.read(self.type_key)
        return resolve(name) if name else None

    def __get__(self, instance: BaseDocument | None, owner: type) -> Any:
        if instance is None:
            return self
        identity = instance.read(self.foreign_key)
        if identity is None:
            return None
        cached = instance._association_cache.get(self.name)
        if cached is not None and cached.id == identity:
            return cached
        target = self.target_for(instance)
        if target is None:
            return None
        found = target.find(instance._require_context(), identity)
        if found is not None:
            instance._association_cache[self.name] = found
        return found

    def __set__(self, instance: BaseDocument, value: Any) -> None:
        instance._association_cache.pop(self.name, None)
        if value is None:
            instance.write(self.foreign_key, None)
            if self.polymorphic:
                instance.write(self.type_key, None)
            return
        if getattr(type(value), "schema", None) is not None:
            instance.write(self.foreign_key, value.id)
            if self.polymorphic:
                instance.write(self.type_key, type_name(type(value)))
            instance._association_cache[self.name] = value
            return
        instance.write(self.foreign_key, value)


class Many(Association):
    """One-to-many: referenced by foreign key, id array, or embedded."""

    def __init__(
        self,
        target: str | type,
        *,
        foreign_key: str | None = None,
        as_: str | None = None,
        in_: str | None = None,
        order: Any = None,
        limit: int | None = None,
        dependent: str | None = None,
        extension: type | Iterable[type] | None = None,
    ):
        super().__init__(target)
        if dependent not in (None, "destroy"):
            raise SchemaError(f"unsupported dependent policy {dependent!r}; use 'destroy'")
        self._foreign_key = foreign_key
        self.as_ = as_
        self.in_ = in_
        self.order = order
        self.limit = limit
        self.dependent = dependent
        if extension is None:
            self.extensions: tuple[type, ...] = ()
        elif isinstance(extension, type):
            self.extensions = (extension,)
        else:
            self.extensions = tuple(extension)
        self._proxy_class: type | None = None

    @property
    def kind(self) -> AssociationKind:
        if self.in_:
            return AssociationKind.IN_ARRAY
        if _is_embedded_type(self.target):
            return AssociationKind.EMBEDDED_MANY
        return AssociationKind.MANY

    @property
    def foreign_key(self) -> str:
        if self._foreign_key:
            return self._foreign_key
        if self.as_:
            return f"{self.as_}_id"
        return naming.foreign_key(self.owner.__name__)

    @property
    def type_key(self) -> str | None:
        return f"{self.as_}_type" if self.as_ else None

    def contribute(self, schema: DocumentSchema) -> None:
        if self.in_ and self.in_ not in schema.keys:
            schema.register_key(self.in_, Key(list, typecast=ObjectId))

    def scope_query(self, owner: Document) -> Query:
        """Target query restricted to the owner's records (no order/limit)."""
        conditions = {self.foreign_key: owner.id}
        if self.type_key:
            conditions[self.type_key] = type_name(type(owner))
        return self.target.query(owner._require_context()).where(conditions)

    def proxy_class(self, base: type) -> type:
        if not self.extensions:
            return base
        if self._proxy_class is None or base not in self._proxy_class.__mro__:
            name = f"{naming.camelize(self.name)}{base.__name__}"
            self._proxy_class = type(name, (*self.extensions, base), {})
        return self._proxy_class

    def __get__(self, instance: BaseDocument | None, owner: type) -> Any:
        if instance is None:
            return self
        kind = self.kind
        if kind is AssociationKind.EMBEDDED_MANY:
            collection = instance._embedded.get(self.name)
            if collection is None:
                collection = instance._embedded[self.name] = self.load(instance, None)
            return collection
        base = IdArrayProxy if kind is AssociationKind.IN_ARRAY else ManyProxy
        return self.proxy_class(base)(instance, self)

    def __set__(self, instance: BaseDocument, value: Iterable[Any] | None) -> None:
        kind = self.kind
        if kind is AssociationKind.EMBEDDED_MANY:
            instance._embedded[self.name] = self.load(instance, None, value or ())
        elif kind is AssociationKind.IN_ARRAY:
            IdArrayProxy(instance, self).replace(value or ())
        else:
            ManyProxy(instance, self).replace(value or ())

    # embedded storage

    def load(
        self, owner: BaseDocument, raw: Any, documents: Iterable[Any] = ()
    ) -> EmbeddedCollection:
        collection = EmbeddedCollection(owner, self, documents)
        for record in raw or ():
            collection.append(self.target.from_storage(record, None, parent=owner))
        return collection

    def dump(self, owner: BaseDocument) -> list[dict[str, Any]]:
        return [document.to_storage() for document in self.documents(owner)]

    def documents(self, owner: BaseDocument) -> list[BaseDocument]:
        if not self.embedded:
            return []
        return list(owner._embedded.get(self.name) or ())

    def dependents(self, owner: Document) -> list[Document]:
        kind = self.kind
        if kind is AssociationKind.MANY:
            return self.scope_query(owner).all()
        if kind is AssociationKind.IN_ARRAY:
            return list(IdArrayProxy(owner, self))
        return []


class One(Association):
    """Single embedded document stored inline under the association name."""

    kind = AssociationKind.EMBEDDED_ONE

    @property
    def target(self) -> type[BaseDocument]:
        target = super().target
        if not _is_embedded_type(target):
            raise SchemaError(f"One({target.__name__}) needs an EmbeddedDocument target")
        return target

    def _adopt(self, owner: BaseDocument, value: Any) -> BaseDocument | None:
        if value is None:
            return None
        target = self.target
        document = target(value) if isinstance(value, Mapping) else value
        if not isinstance(document, target):
            raise TypeError(f"{self.name} holds a {target.__name__}, not {type(value).__name__}")
        document._parent = owner
        return document

    def __get__(self, instance: BaseDocument | None, owner: type) -> Any:
        if instance is None:
            return self
        return instance._embedded.get(self.name)

    def __set__(self, instance: BaseDocument, value: Any) -> None:
        instance._embedded[self.name] = self._adopt(instance, value)

    def load(self, owner: BaseDocument, raw: Any) -> BaseDocument | None:
        if raw is None:
            return None
        return self.target.from_storage(raw, None, parent=owner)

    def dump(self, owner: BaseDocument) -> dict[str, Any] | None:
        document = owner._embedded.get(self.name)
        return None if document is None else document.to_storage()

    def documents(self, owner: BaseDocument) -> list[BaseDocument]:
        document = owner._embedded.get(self.name)
        return [] if document is None else [document]


__all__ = ["AssociationKind", "Association", "BelongsTo", "Many", "One"]
