"""Document type registry.

Maps registered type names to document classes so associations can name
their targets as strings and polymorphic references can store the target's
type name.

Tags:
    docspine, registry, polymorphism, lookup
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from docspine.core.errors import SchemaError
from docspine.core.logging import get_logger

if TYPE_CHECKING:
    from docspine.document import BaseDocument

logger = get_logger(__name__)

# Global document registry
_registry: dict[str, type[BaseDocument]] = {}


def register_document(cls: type[BaseDocument]) -> type[BaseDocument]:
    """Register a document class under its class name (last definition wins)."""
    name = type_name(cls)
    previous = _registry.get(name)
    _registry[name] = cls
    logger.debug(
        "document_type_registered",
        name=name,
        collection=getattr(cls.schema, "collection_name", None),
        replaced=previous is not None and previous is not cls,
    )
    return cls


def type_name(cls: type[Any]) -> str:
    return cls.__name__


def get_document(name: str) -> type[BaseDocument]:
    """Get a document class by registered name."""
    if name not in _registry:
        available = ", ".join(sorted(_registry))
        raise SchemaError(f"Document type '{name}' not found. Available: {available}")
    return _registry[name]


def resolve(target: str | type[BaseDocument]) -> type[BaseDocument]:
    """Accept a class or a registered name."""
    if isinstance(target, str):
        return get_document(target)
    return target


def list_documents() -> list[str]:
    """List all registered document type names."""
    return sorted(_registry)


def clear_registry() -> None:
    """Clear registry (for testing)."""
    _registry.clear()


__all__ = [
    "register_document",
    "get_document",
    "resolve",
    "type_name",
    "list_documents",
    "clear_registry",
]
