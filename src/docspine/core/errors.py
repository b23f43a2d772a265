"""
Structured error types for docspine.

Provides the typed error hierarchy raised by the document-mapping core. Every
error carries a category, structured context (document type, collection,
identity, operation) and an optional chained cause, so failures surface in
logs with enough metadata to locate the offending record.

Two outcomes are deliberately *not* exceptions:

- **Validation failure** is reported as ``save() -> False`` plus a
  ``ValidationErrors`` collection attached to the document.
- **Callback halting** is the ``ChainResult.HALT`` control value returned by
  a before-callback; ``save()``/``destroy()`` turn it into a falsy result.

Only the must-succeed variants (``find_or_raise``, ``save_or_raise``,
``create_or_raise``, ``update_attributes_or_raise``) convert those outcomes
into exceptions.

Manifesto:
    - **Typed hierarchy:** One class per failure mode in the taxonomy
    - **Rich context:** Errors know which document and collection failed
    - **Error chaining:** Storage failures keep the original exception
    - **Stdlib interop:** NotFound is a LookupError, InvalidArgument a ValueError

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                        DocspineError                            │
        │                (category, context, cause)                       │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                 │
        │  NotFoundError            PersistenceRejectedError              │
        │  (NOT_FOUND, LookupError) (VALIDATION, carries errors)          │
        │                                                                 │
        │  InvalidArgumentError     CascadeFailureError                   │
        │  (ARGUMENT, ValueError)   (CASCADE, aborts owner destroy)       │
        │                                                                 │
        │  SchemaError              CallbackError        StorageError     │
        │  (SCHEMA)                 (CALLBACK)           (STORAGE)        │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = NotFoundError("Person not found").with_context(
    ...     document_type="Person", identity="65a1f0c2e4b0a1b2c3d4e5f6"
    ... )
    >>> error.category
    <ErrorCategory.NOT_FOUND: 'NOT_FOUND'>
    >>> error.to_dict()["context"]["document_type"]
    'Person'

Guardrails:
    ❌ DON'T: Raise for a failed validation inside ``save()``
    ✅ DO: Return False and attach the error collection

    ❌ DON'T: Raise to stop a callback chain
    ✅ DO: Return ``HALT`` from the before-callback

    ❌ DON'T: Swallow storage exceptions
    ✅ DO: Wrap them in StorageError with cause=

Tags:
    error-handling, exception-hierarchy, error-context, docspine
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    NOT_FOUND = "NOT_FOUND"  # Must-succeed lookups
    VALIDATION = "VALIDATION"  # Persistence rejected by the validator
    ARGUMENT = "ARGUMENT"  # Malformed call signatures
    CASCADE = "CASCADE"  # Dependent destroy could not complete
    SCHEMA = "SCHEMA"  # Declaration / registration problems
    CALLBACK = "CALLBACK"  # Misused continuations
    STORAGE = "STORAGE"  # Storage collaborator failures
    INTERNAL = "INTERNAL"  # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to errors.

    Attributes:
        document_type: Registered name of the document class
        collection: Collection the operation targeted
        identity: Identity of the document involved (string form)
        operation: High-level operation (save, destroy, find, ...)
        field: Key name involved, if any
        metadata: Additional key-value pairs
    """

    document_type: str | None = None
    collection: str | None = None
    identity: str | None = None
    operation: str | None = None
    field: str | None = None

    metadata: dict[str, Any] = dataclasses.field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["document_type", "collection", "identity", "operation", "field"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class DocspineError(Exception):
    """
    Base exception for all docspine errors.

    Subclasses set ``default_category``; callers may override it per
    instance. ``with_context()`` is fluent so context can be attached at the
    raise site::

        raise NotFoundError("Person not found").with_context(identity=str(pk))
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> DocspineError:
        """Add context to this error (fluent API)."""
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


class NotFoundError(DocspineError, LookupError):
    """A must-succeed lookup matched nothing.

    Ordinary lookups (``find``, ``first``) return ``None`` instead.
    """

    default_category = ErrorCategory.NOT_FOUND


class PersistenceRejectedError(DocspineError):
    """
    A bang-variant operation was refused by validation or a halted chain.

    The rejected document and its error collection ride along so callers can
    render messages without re-running validation.
    """

    default_category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        document: Any = None,
        errors: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.document = document
        self.errors = errors

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.errors:
            result["errors"] = self.errors.to_dict()
        return result


class InvalidArgumentError(DocspineError, ValueError):
    """Malformed call signature (missing identity, missing attributes, ...)."""

    default_category = ErrorCategory.ARGUMENT


class CascadeFailureError(DocspineError):
    """A dependent could not be destroyed; the owner's destroy is aborted."""

    default_category = ErrorCategory.CASCADE

    def __init__(self, message: str, *, dependent: Any = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.dependent = dependent


class SchemaError(DocspineError):
    """Invalid declaration, or schema mutation outside a migration block."""

    default_category = ErrorCategory.SCHEMA


class CallbackError(DocspineError):
    """An around-callback invoked its continuation more than once."""

    default_category = ErrorCategory.CALLBACK


class StorageError(DocspineError):
    """The storage collaborator failed or returned an unusable response."""

    default_category = ErrorCategory.STORAGE


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "DocspineError",
    "NotFoundError",
    "PersistenceRejectedError",
    "InvalidArgumentError",
    "CascadeFailureError",
    "SchemaError",
    "CallbackError",
    "StorageError",
]
