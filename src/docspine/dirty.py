"""
Change tracking for document attributes.

``ChangeTracker`` keeps, per document instance:

- **originals**: key → value at the last clean baseline, only for keys that
  currently differ from it;
- **previous changes**: key → (old, new) captured at the last successful
  commit.

Invariants:
    - An original is recorded the first time a key diverges and is never
      overwritten by later writes.
    - When a key is written back to its original the entry disappears.
    - Writes made while ``initializing()`` is active are not tracked.

Commit protocol::

    tracker.clear_changes(read, operation)
        snapshot = current changes
        result = operation()
        if result is not False:
            previous_changes = snapshot
            originals.clear()

So change history only reflects persistence that actually happened.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any


class ChangeTracker:
    """Per-instance ChangeSet with rollback-safe commit."""

    def __init__(self) -> None:
        self._originals: dict[str, Any] = {}
        self._previous: dict[str, tuple[Any, Any]] = {}
        self._initializing = 0

    @contextmanager
    def initializing(self) -> Iterator[None]:
        self._initializing += 1
        try:
            yield
        finally:
            self._initializing -= 1

    @property
    def is_initializing(self) -> bool:
        return self._initializing > 0

    def record(self, name: str, old: Any, new: Any) -> None:
        if self._initializing:
            return
        if name in self._originals:
            if _same(self._originals[name], new):
                self.forget(name)
        elif not _same(old, new):
            self._originals[name] = copy.deepcopy(old)

    def will_change(self, name: str, current: Any) -> None:
        """Force ``name`` dirty, using its current value as the baseline."""
        if name not in self._originals:
            self._originals[name] = copy.deepcopy(current)

    def forget(self, name: str) -> None:
        self._originals.pop(name, None)

    def is_changed(self, name: str) -> bool:
        return name in self._originals

    def original(self, name: str) -> Any:
        return self._originals[name]

    @property
    def changed_keys(self) -> list[str]:
        return list(self._originals)

    @property
    def changed_attributes(self) -> dict[str, Any]:
        return dict(self._originals)

    @property
    def previous_changes(self) -> dict[str, tuple[Any, Any]]:
        return dict(self._previous)

    def __bool__(self) -> bool:
        return bool(self._originals)

    def changes(self, read: Callable[[str], Any]) -> dict[str, tuple[Any, Any]]:
        """key → (old, new) for keys whose value really differs.

        Keys forced with ``will_change`` and not yet modified are left out.
        """
        result = {}
        for name, original in self._originals.items():
            current = read(name)
            if not _same(original, current):
                result[name] = (original, current)
        return result

    def clear_changes(
        self, read: Callable[[str], Any], operation: Callable[[], Any] | None = None
    ) -> Any:
        snapshot = self.changes(read)
        result = operation() if operation is not None else True
        if result is not False:
            self._previous = snapshot
            self._originals.clear()
        return result

    def discard(self) -> None:
        """Drop every original; previous changes stay as they were."""
        self._originals.clear()

    def reset(self) -> None:
        """Drop every original and previous change."""
        self._originals.clear()
        self._previous = {}


def _same(left: Any, right: Any) -> bool:
    if left is right:
        return True
    if type(left) is not type(right) and (left is None or right is None):
        return False
    return bool(left == right)


__all__ = ["ChangeTracker"]
