"""
Collection proxies returned by ``Many`` associations.

Three shapes, one per storage layout:

    EmbeddedCollection  records stored inline in the owner (a mutable list)
    ManyProxy           target documents pointing back via a foreign key
    IdArrayProxy        owner stores an array of target ids (``in_=``)

``ManyProxy`` and ``IdArrayProxy`` expose their underlying ``Query`` as
``.query`` and delegate unknown attributes to it, so every builder method
and named scope of the target type works through the association::

    author.posts.published().sort("-created_at").first()
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, MutableSequence
from typing import TYPE_CHECKING, Any

from docspine.registry import type_name

if TYPE_CHECKING:
    from docspine.associations.descriptors import Many
    from docspine.document import BaseDocument, Document
    from docspine.query import Query


class EmbeddedCollection(MutableSequence):
    """List of embedded documents owned by (and saved with) one parent."""

    def __init__(self, owner: BaseDocument, association: Many, items: Iterable[Any] = ()):
        self.owner = owner
        self.association = association
        self._items: list[BaseDocument] = []
        for item in items:
            self.append(item)

    def _adopt(self, value: Any) -> BaseDocument:
        target = self.association.target
        document = target(value) if isinstance(value, Mapping) else value
        if not isinstance(document, target):
            raise TypeError(
                f"{self.association.name} holds {target.__name__} documents, "
                f"not {type(value).__name__}"
            )
        document._parent = self.owner
        return document

    def __getitem__(self, index):
        return self._items[index]

    def __setitem__(self, index, value):
        if isinstance(index, slice):
            self._items[index] = [self._adopt(v) for v in value]
        else:
            self._items[index] = self._adopt(value)

    def __delitem__(self, index):
        del self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def insert(self, index: int, value: Any) -> None:
        self._items.insert(index, self._adopt(value))

    def build(self, **attrs: Any) -> BaseDocument:
        document = self.association.target(**attrs)
        self.append(document)
        return self._items[-1]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, EmbeddedCollection):
            return self._items == other._items
        if isinstance(other, list):
            return self._items == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"EmbeddedCollection({self._items!r})"


class _QueryProxy:
    """Shared delegation to the association's query."""

    def __init__(self, owner: Document, association: Many):
        self.owner = owner
        self.association = association

    @property
    def query(self) -> Query:
        raise NotImplementedError

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_") or name in ("query", "owner", "association"):
            raise AttributeError(name)
        return getattr(self.query, name)

    def __iter__(self) -> Iterator[Document]:
        return iter(self.query.all())

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.owner.__class__.__name__}.{self.association.name}>"


class ManyProxy(_QueryProxy):
    """Target documents whose foreign key holds the owner's id."""

    @property
    def query(self) -> Query:
        association = self.association
        query = association.scope_query(self.owner)
        if association.order:
            query = query.sort(association.order)
        if association.limit:
            query = query.limit(association.limit)
        return query

    def _link(self) -> dict[str, Any]:
        association = self.association
        link = {association.foreign_key: self.owner.id}
        if association.type_key:
            link[association.type_key] = type_name(type(self.owner))
        return link

    def __len__(self) -> int:
        count = self.query.count()
        limit = self.association.limit
        return min(count, limit) if limit else count

    def __contains__(self, document: object) -> bool:
        document_id = getattr(document, "id", None)
        if document_id is None:
            return False
        if self.association.limit:
            # only the documents inside the limit window are members
            return any(found.id == document_id for found in self)
        return self.query.where(_id=document_id).exists()

    def build(self, **attrs: Any) -> Document:
        document = self.association.target(**{**attrs, **self._link()})
        return document.bind(self.owner._require_context())

    def create(self, **attrs: Any) -> Document:
        document = self.build(**attrs)
        document.save()
        return document

    def append(self, document: Document) -> bool:
        """Point ``document`` at the owner and save it."""
        for name, value in self._link().items():
            document.write(name, value)
        if document.context is None:
            document.bind(self.owner._require_context())
        return document.save()

    def remove(self, document: Document) -> bool:
        """Clear ``document``'s foreign key (and type) and save it."""
        for name in self._link():
            document.write(name, None)
        return document.save()

    def replace(self, documents: Iterable[Document]) -> None:
        for document in documents:
            self.append(document)


class IdArrayProxy(_QueryProxy):
    """Targets listed by id in one of the owner's list keys."""

    @property
    def ids(self) -> list[Any]:
        return list(self.owner.read(self.association.in_) or [])

    @property
    def query(self) -> Query:
        context = self.owner._require_context()
        return self.association.target.query(context).where(_id=self.ids)

    def __iter__(self) -> Iterator[Document]:
        found = {document.id: document for document in self.query.all()}
        return iter([found[i] for i in self.ids if i in found])

    def __len__(self) -> int:
        return len(self.ids)

    def __contains__(self, document: object) -> bool:
        return getattr(document, "id", None) in self.ids

    def _store(self, ids: list[Any]) -> None:
        self.owner.write(self.association.in_, ids)

    def append(self, document: Document) -> None:
        if document.is_new:
            if document.context is None:
                document.bind(self.owner._require_context())
            document.save()
        ids = self.ids
        if document.id not in ids:
            ids.append(document.id)
            self._store(ids)

    def remove(self, document: Document) -> None:
        self._store([i for i in self.ids if i != document.id])

    def build(self, **attrs: Any) -> Document:
        document = self.association.target(**attrs).bind(self.owner._require_context())
        self._store(self.ids + [document.id])
        return document

    def create(self, **attrs: Any) -> Document:
        document = self.build(**attrs)
        document.save()
        return document

    def replace(self, documents: Iterable[Any]) -> None:
        self._store([getattr(d, "id", d) for d in documents])


__all__ = ["EmbeddedCollection", "ManyProxy", "IdArrayProxy"]
