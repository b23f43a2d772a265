"""Docspine Core -- infrastructure primitives shared by every mapper module.

Architecture::

    errors.py       Structured error hierarchy (DocspineError and taxonomy)
    logging.py      structlog configuration + get_logger()
    settings.py     DocspineSettings (pydantic-settings, DOCSPINE_ env prefix)
    protocols.py    StorageCollaborator / Validator contracts
    timestamps.py   UTC helpers (stdlib-only)
"""

from docspine.core.errors import (
    CallbackError,
    CascadeFailureError,
    DocspineError,
    ErrorCategory,
    ErrorContext,
    InvalidArgumentError,
    NotFoundError,
    PersistenceRejectedError,
    SchemaError,
    StorageError,
)
from docspine.core.logging import LogContext, configure_logging, get_logger
from docspine.core.protocols import StorageCollaborator, Validator
from docspine.core.settings import DocspineSettings
from docspine.core.timestamps import utc_now

__all__ = [
    "CallbackError",
    "CascadeFailureError",
    "DocspineError",
    "ErrorCategory",
    "ErrorContext",
    "InvalidArgumentError",
    "NotFoundError",
    "PersistenceRejectedError",
    "SchemaError",
    "StorageError",
    "LogContext",
    "configure_logging",
    "get_logger",
    "StorageCollaborator",
    "Validator",
    "DocspineSettings",
    "utc_now",
]
