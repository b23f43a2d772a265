"""Storage collaborators shipped with docspine.

Architecture::

    memory.py   MemoryStorage -- in-process reference store (tests, examples)

Any object satisfying ``docspine.core.protocols.StorageCollaborator`` can be
handed to ``MapperContext`` instead.
"""

from docspine.storage.memory import MemoryStorage

__all__ = ["MemoryStorage"]
