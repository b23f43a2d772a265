"""
Named query scopes.

Scopes are declared once per document class::

    class Post(Document):
        published = Key(bool, default=False)
        created_at = Key(datetime)

        default_scope = where(deleted=False)
        scopes = {
            "published": where(published=True),
            "by_author": lambda q, author: q.where(author_id=author.id),
            "recent": lambda q: q.where(created_at__gte=utc_now() - timedelta(days=7)),
            "newest": lambda q: q.sort("-created_at").limit(10),
        }

    Post.query(ctx).published().by_author(alice).all()

Two forms, two evaluation times:
    - A ``Criteria`` value is built once, when the class body runs. Any
      time-relative value inside it is frozen at that moment.
    - A callable is invoked on every use with the current query (plus any
      arguments) and may return a Criteria or a refined Query. Use this form
      for anything that must be recomputed per call.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from docspine.core.errors import InvalidArgumentError, SchemaError
from docspine.criteria import Criteria

if TYPE_CHECKING:
    from docspine.query import Query


@dataclass(frozen=True)
class Scope:
    name: str
    source: Criteria | Callable[..., Any]

    def __post_init__(self) -> None:
        if not isinstance(self.source, Criteria) and not callable(self.source):
            raise SchemaError(
                f"scope {self.name!r} must be a Criteria or a callable"
            ).with_context(field=self.name)

    @property
    def deferred(self) -> bool:
        return not isinstance(self.source, Criteria)

    def apply(self, query: Query, *args: Any, **kwargs: Any) -> Query:
        if not self.deferred:
            if args or kwargs:
                raise InvalidArgumentError(f"scope {self.name!r} takes no arguments")
            return query.where(self.source)
        result = self.source(query, *args, **kwargs)
        if isinstance(result, Criteria):
            return query.where(result)
        if result is None:
            return query
        if result.document_type is not query.document_type:
            raise InvalidArgumentError(f"scope {self.name!r} returned a query for another type")
        return result


__all__ = ["Scope"]
