"""
Shared pytest fixtures and configuration for docspine tests.

This module provides:
- A fresh MemoryStorage + MapperContext per test
- Settings fixtures with small page/batch sizes
- Auto-marking of unit tests

Usage:
    Fixtures are auto-discovered by pytest. Use them as function arguments:

    def test_create(ctx):
        person = Person.create(ctx, name="Alice")
        ...

Document classes are declared at module level in each test module (the
schema is built once per class). Class names must be unique across the test
suite because associations resolve string targets through the global type
registry.
"""

import sys
from pathlib import Path
from typing import Generator

import pytest

# Ensure docspine package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from docspine import MapperContext, MemoryStorage
from docspine.core.logging import clear_context
from docspine.core.settings import DocspineSettings


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark all tests without explicit markers as unit tests."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if "unit" not in markers:
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Storage / Context Fixtures
# =============================================================================


@pytest.fixture
def storage() -> MemoryStorage:
    """Empty in-memory store."""
    return MemoryStorage()


@pytest.fixture
def settings() -> DocspineSettings:
    """Settings independent of the developer's environment and .env file."""
    return DocspineSettings(_env_file=None)


@pytest.fixture
def ctx(storage: MemoryStorage, settings: DocspineSettings) -> MapperContext:
    """Mapper context over the per-test MemoryStorage."""
    return MapperContext(storage=storage, settings=settings)


@pytest.fixture(autouse=True)
def clean_log_context() -> Generator[None, None, None]:
    """No structlog context vars leak between tests."""
    clear_context()
    yield
    clear_context()
