"""
Docspine - document-mapping core.

Typed documents over an external document store: key declarations with
coercion, an immutable query builder, change tracking with rollback-safe
commits, associations with cascades, atomic field modifiers and ordered
lifecycle callbacks.

Architecture::

    core/           errors, structlog logging, settings, protocols, timestamps
    types.py        ObjectId + coercion registry
    keys.py         Key declarations, KeyRegistry, per-key accessor bundles
    attributes.py   AttributeStore (live values)
    dirty.py        ChangeTracker
    criteria.py     Criteria / Predicate / SortKey / Projection / QueryRequest
    query.py        Query (immutable builder + execution)
    scopes.py       named scopes
    pagination.py   Page
    associations/   BelongsTo / Many / One, proxies, resolver
    modifiers.py    Update + ModifierExecutor
    callbacks.py    CallbackChain + declaration decorators
    validation.py   RuleValidator + rules
    schema.py       DocumentSchema (single registration phase)
    document.py     BaseDocument / Document / EmbeddedDocument
    context.py      MapperContext
    storage/        MemoryStorage

Quick start::

    from docspine import Document, Key, MapperContext, MemoryStorage

    class Person(Document):
        name = Key(str, required=True)
        age = Key(int, default=0)

    ctx = MapperContext(storage=MemoryStorage())
    Person.create(ctx, name="Alice", age=31)
    Person.query(ctx).where(age__gte=21).sort("-age").first()
"""

from docspine.associations import BelongsTo, Many, One
from docspine.callbacks import (
    CONTINUE,
    HALT,
    ChainResult,
    Phase,
    after_create,
    after_destroy,
    after_find,
    after_initialize,
    after_save,
    after_touch,
    after_update,
    after_validation,
    around_create,
    around_destroy,
    around_save,
    around_touch,
    around_update,
    before_create,
    before_destroy,
    before_save,
    before_touch,
    before_update,
    before_validation,
)
from docspine.context import MapperContext
from docspine.core.errors import (
    CallbackError,
    CascadeFailureError,
    DocspineError,
    InvalidArgumentError,
    NotFoundError,
    PersistenceRejectedError,
    SchemaError,
    StorageError,
)
from docspine.core.settings import DocspineSettings
from docspine.criteria import Criteria, asc, desc, where
from docspine.document import BaseDocument, Document, DocumentState, EmbeddedDocument
from docspine.keys import Key
from docspine.modifiers import Update
from docspine.pagination import Page
from docspine.query import Query
from docspine.storage import MemoryStorage
from docspine.types import ObjectId
from docspine.validation import (
    Custom,
    Exclusion,
    Format,
    Inclusion,
    Length,
    Numericality,
    Presence,
    RuleValidator,
    Uniqueness,
    ValidationErrors,
)

__version__ = "0.1.0"

__all__ = [
    # documents
    "BaseDocument",
    "Document",
    "DocumentState",
    "EmbeddedDocument",
    "Key",
    "ObjectId",
    # associations
    "BelongsTo",
    "Many",
    "One",
    # queries
    "Criteria",
    "Query",
    "Page",
    "where",
    "asc",
    "desc",
    "Update",
    # context
    "MapperContext",
    "DocspineSettings",
    "MemoryStorage",
    # callbacks
    "Phase",
    "ChainResult",
    "CONTINUE",
    "HALT",
    "before_validation",
    "after_validation",
    "before_save",
    "around_save",
    "after_save",
    "before_create",
    "around_create",
    "after_create",
    "before_update",
    "around_update",
    "after_update",
    "before_destroy",
    "around_destroy",
    "after_destroy",
    "before_touch",
    "around_touch",
    "after_touch",
    "after_initialize",
    "after_find",
    # validation
    "ValidationErrors",
    "RuleValidator",
    "Presence",
    "Inclusion",
    "Exclusion",
    "Length",
    "Format",
    "Numericality",
    "Uniqueness",
    "Custom",
    # errors
    "DocspineError",
    "NotFoundError",
    "PersistenceRejectedError",
    "InvalidArgumentError",
    "CascadeFailureError",
    "SchemaError",
    "CallbackError",
    "StorageError",
]
