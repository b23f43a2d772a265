"""
Lifecycle callback chains.

Callbacks are declared with decorators in a document class body and
collected into the type's ``CallbackChain`` at registration::

    class Order(Document):
        status = Key(str)

        @before_save
        def normalize(self):
            self.status = (self.status or "pending").lower()

        @before_destroy(unless="deletable")
        def guard(self):
            return HALT

        @around_save
        def timed(self, proceed):
            started = time.monotonic()
            proceed()
            self.last_save_ms = (time.monotonic() - started) * 1000

Phase order:
    ::

        save     before_validation → after_validation → before_save →
                 around_save[ before_create|update → around_create|update[write]
                              → after_create|update ] → after_save
        destroy  before_destroy → around_destroy[cascade, delete] → after_destroy
        touch    before_touch → around_touch[write] → after_touch
        hydrate  after_initialize → after_find
        new      after_initialize

Halting:
    A before-callback returns ``HALT`` to stop the chain. Nothing is raised;
    ``save()`` and ``destroy()`` report False. Any other return value
    (including ``None`` and ``False``) continues.

Around callbacks:
    The handler receives ``proceed``. Calling it runs the wrapped behavior
    (and any inner around handlers) and returns its result. Not calling it
    skips the wrapped behavior; the rest of the chain still runs. Calling it
    twice raises CallbackError.

Handlers are stored by method name and looked up on the instance at call
time, so subclass overrides take effect.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from docspine.core.errors import CallbackError
from docspine.core.logging import get_logger

logger = get_logger(__name__)

_MARKER = "__docspine_callbacks__"


class Phase(str, Enum):
    BEFORE_VALIDATION = "before_validation"
    AFTER_VALIDATION = "after_validation"
    BEFORE_SAVE = "before_save"
    AROUND_SAVE = "around_save"
    AFTER_SAVE = "after_save"
    BEFORE_CREATE = "before_create"
    AROUND_CREATE = "around_create"
    AFTER_CREATE = "after_create"
    BEFORE_UPDATE = "before_update"
    AROUND_UPDATE = "around_update"
    AFTER_UPDATE = "after_update"
    BEFORE_DESTROY = "before_destroy"
    AROUND_DESTROY = "around_destroy"
    AFTER_DESTROY = "after_destroy"
    BEFORE_TOUCH = "before_touch"
    AROUND_TOUCH = "around_touch"
    AFTER_TOUCH = "after_touch"
    AFTER_INITIALIZE = "after_initialize"
    AFTER_FIND = "after_find"

    @property
    def is_around(self) -> bool:
        return self.value.startswith("around_")


class ChainResult(Enum):
    CONTINUE = "continue"
    HALT = "halt"


CONTINUE = ChainResult.CONTINUE
HALT = ChainResult.HALT

Guard = str | Callable[[Any], Any] | None


@dataclass(frozen=True)
class Callback:
    """One registered handler with optional guards."""

    phase: Phase
    handler: str | Callable[..., Any]
    when: Guard = None
    unless: Guard = None

    @property
    def key(self) -> Any:
        return self.handler

    def applies(self, document: Any) -> bool:
        if self.when is not None and not _evaluate(self.when, document):
            return False
        if self.unless is not None and _evaluate(self.unless, document):
            return False
        return True

    def invoke(self, document: Any, *args: Any) -> Any:
        if isinstance(self.handler, str):
            return getattr(document, self.handler)(*args)
        return self.handler(document, *args)


def _evaluate(guard: Guard, document: Any) -> bool:
    if isinstance(guard, str):
        value = getattr(document, guard)
        return bool(value() if callable(value) else value)
    return bool(guard(document))


class CallbackChain:
    """Ordered callbacks per phase for one document type."""

    def __init__(self) -> None:
        self._callbacks: dict[Phase, list[Callback]] = {phase: [] for phase in Phase}

    def register(self, callback: Callback) -> None:
        entries = self._callbacks[callback.phase]
        for index, existing in enumerate(entries):
            if existing.key == callback.key:
                entries[index] = callback
                return
        entries.append(callback)

    def remove(self, phase: Phase, handler: str | Callable[..., Any]) -> None:
        self._callbacks[phase] = [c for c in self._callbacks[phase] if c.key != handler]

    def callbacks(self, phase: Phase) -> list[Callback]:
        return list(self._callbacks[phase])

    def copy(self) -> CallbackChain:
        clone = CallbackChain()
        clone._callbacks = {phase: list(entries) for phase, entries in self._callbacks.items()}
        return clone

    def run_before(self, phase: Phase, document: Any) -> ChainResult:
        for callback in self._callbacks[phase]:
            if not callback.applies(document):
                continue
            if callback.invoke(document) is HALT:
                logger.debug(
                    "callback_chain_halted",
                    phase=phase.value,
                    handler=_handler_name(callback),
                    document_type=type(document).__name__,
                )
                return HALT
        return CONTINUE

    def run_after(self, phase: Phase, document: Any) -> None:
        for callback in self._callbacks[phase]:
            if callback.applies(document):
                callback.invoke(document)

    def run_around(self, phase: Phase, document: Any, body: Callable[[], Any]) -> Any:
        """Nest around handlers (first registered outermost) around ``body``."""
        handlers = [c for c in self._callbacks[phase] if c.applies(document)]

        def call(index: int) -> Any:
            if index == len(handlers):
                return body()
            proceed = _Continuation(lambda: call(index + 1), phase)
            returned = handlers[index].invoke(document, proceed)
            if proceed.called:
                return proceed.result
            return HALT if returned is HALT else None

        return call(0)

    def run(self, operation: str, document: Any, body: Callable[[], Any]) -> ChainResult:
        """Run before_/around_/after_<operation> around ``body``.

        ``body`` may itself return HALT (a nested chain halted), which stops
        the after-callbacks of this level too.
        """
        if self.run_before(Phase(f"before_{operation}"), document) is HALT:
            return HALT
        if self.run_around(Phase(f"around_{operation}"), document, body) is HALT:
            return HALT
        self.run_after(Phase(f"after_{operation}"), document)
        return CONTINUE


class _Continuation:
    """``proceed`` handed to around handlers; single use."""

    def __init__(self, target: Callable[[], Any], phase: Phase):
        self._target = target
        self._phase = phase
        self._called = False
        self.result: Any = None

    def __call__(self) -> Any:
        if self._called:
            raise CallbackError(
                f"{self._phase.value} continuation invoked more than once"
            )
        self._called = True
        self.result = self._target()
        return self.result

    @property
    def called(self) -> bool:
        return self._called


def _handler_name(callback: Callback) -> str:
    if isinstance(callback.handler, str):
        return callback.handler
    return getattr(callback.handler, "__name__", repr(callback.handler))


# =============================================================================
# Declaration decorators
# =============================================================================


def _declare(phase: Phase) -> Callable[..., Any]:
    def decorator(fn: Callable[..., Any] | None = None, *, when: Guard = None, unless: Guard = None):
        def mark(func: Callable[..., Any]) -> Callable[..., Any]:
            marks = list(getattr(func, _MARKER, ()))
            marks.append((phase, when, unless))
            setattr(func, _MARKER, marks)
            return func

        if fn is not None:
            return mark(fn)
        return mark

    decorator.__name__ = phase.value
    decorator.__doc__ = f"Register the decorated method as a {phase.value} callback."
    return decorator


def declared_callbacks(name: str, func: Any) -> list[Callback]:
    """Callbacks marked on a class-body function by the decorators below."""
    return [
        Callback(phase=phase, handler=name, when=when, unless=unless)
        for phase, when, unless in getattr(func, _MARKER, ())
    ]


before_validation = _declare(Phase.BEFORE_VALIDATION)
after_validation = _declare(Phase.AFTER_VALIDATION)
before_save = _declare(Phase.BEFORE_SAVE)
around_save = _declare(Phase.AROUND_SAVE)
after_save = _declare(Phase.AFTER_SAVE)
before_create = _declare(Phase.BEFORE_CREATE)
around_create = _declare(Phase.AROUND_CREATE)
after_create = _declare(Phase.AFTER_CREATE)
before_update = _declare(Phase.BEFORE_UPDATE)
around_update = _declare(Phase.AROUND_UPDATE)
after_update = _declare(Phase.AFTER_UPDATE)
before_destroy = _declare(Phase.BEFORE_DESTROY)
around_destroy = _declare(Phase.AROUND_DESTROY)
after_destroy = _declare(Phase.AFTER_DESTROY)
before_touch = _declare(Phase.BEFORE_TOUCH)
around_touch = _declare(Phase.AROUND_TOUCH)
after_touch = _declare(Phase.AFTER_TOUCH)
after_initialize = _declare(Phase.AFTER_INITIALIZE)
after_find = _declare(Phase.AFTER_FIND)


__all__ = [
    "Phase",
    "ChainResult",
    "CONTINUE",
    "HALT",
    "Callback",
    "CallbackChain",
    "declared_callbacks",
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
]
