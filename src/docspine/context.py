"""
Explicit mapper context.

There is no process-wide connection. Every storage-facing entry point takes
a ``MapperContext`` (class-level calls) or uses the one bound to the
document (instance-level calls)::

    ctx = MapperContext(storage=MemoryStorage())
    alice = Person.create(ctx, name="Alice")       # alice is bound to ctx
    alice.increment(age=1)                          # uses alice.context
    Person.query(ctx).where(age__gte=21).all()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from docspine.core.protocols import StorageCollaborator, Validator
from docspine.core.settings import DocspineSettings
from docspine.modifiers import ModifierExecutor
from docspine.validation import RuleValidator

if TYPE_CHECKING:
    from docspine.document import Document


@dataclass
class MapperContext:
    """Storage + validator + settings handed to every storage-facing call."""

    storage: StorageCollaborator
    validator: Validator = field(default_factory=RuleValidator)
    settings: DocspineSettings = field(default_factory=DocspineSettings)

    def collection_for(self, document_type: type[Document]) -> str:
        return f"{self.settings.collection_prefix}{document_type.schema.collection_name}"

    @property
    def modifiers(self) -> ModifierExecutor:
        return ModifierExecutor(self)


__all__ = ["MapperContext"]
