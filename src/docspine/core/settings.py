"""Environment-driven settings for docspine.

``DocspineSettings`` carries the knobs the mapping core consults at run time:
log configuration, pagination defaults, batch sizes and an optional
collection-name prefix. It is held by ``MapperContext.settings``; nothing
reads it from a global.

Fields are read from ``DOCSPINE_*`` environment variables and a ``.env``
file, e.g. ``DOCSPINE_DEFAULT_PER_PAGE=50``.

Examples:
    >>> from docspine.core.settings import DocspineSettings
    >>> settings = DocspineSettings(collection_prefix="test_")
    >>> settings.default_per_page
    25

Tags:
    settings, configuration, pydantic, environment, docspine
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DocspineSettings(BaseSettings):
    """Settings shared by every mapper context.

    Fields
    ──────
    service_name        : Service name stamped on log records
    log_level           : Structlog log level
    json_logs           : JSON rendering (None → auto-detect tty)
    default_per_page    : Page size used when paginate() gets none
    max_per_page        : Upper bound applied to requested page sizes
    find_each_batch_size: Batch size for Query.find_each()
    collection_prefix   : Prepended to every collection name
    """

    model_config = SettingsConfigDict(
        env_prefix="DOCSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    service_name: str = "docspine"
    log_level: str = "INFO"
    json_logs: bool | None = None

    # ── Queries ──────────────────────────────────────────────────
    default_per_page: int = Field(default=25, ge=1)
    max_per_page: int = Field(default=1000, ge=1)
    find_each_batch_size: int = Field(default=100, ge=1)

    # ── Storage ──────────────────────────────────────────────────
    collection_prefix: str = Field(
        default="",
        description="Prefix applied to collection names (e.g. per-tenant or per-test)",
    )


__all__ = ["DocspineSettings"]
