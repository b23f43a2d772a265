"""
Default validation collaborator.

The mapping core only asks one question before persisting: *may this
document be saved in this context?* ``RuleValidator`` answers it from the
``validations`` list declared on the document class plus implicit presence
checks for keys declared ``required=True``::

    class Task(Document):
        title = Key(str, required=True)
        status = Key(str, default="pending")
        priority = Key(int)

        validations = [
            Inclusion("status", within={"pending", "active", "completed"}),
            Numericality("priority", only_integer=True, allow_none=True),
            Length("title", maximum=120),
            Uniqueness("title", scope="project_id", on="create"),
            Custom("check_deadline"),
        ]

Failures never raise. ``validate()`` returns ``(False, errors)`` and the
document keeps the ``ValidationErrors`` collection on ``doc.errors``.

Every rule accepts ``when=`` / ``unless=`` guards (attribute name or
callable taking the document) and ``on="create" | "update"``.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Iterator
from numbers import Number
from typing import Any

from docspine.core.logging import get_logger

logger = get_logger(__name__)


class ValidationErrors:
    """Field → messages collection attached to a document."""

    BASE = "base"

    def __init__(self) -> None:
        self._messages: dict[str, list[str]] = {}

    def add(self, field: str, message: str) -> None:
        self._messages.setdefault(field, []).append(message)

    def on(self, field: str) -> list[str]:
        return list(self._messages.get(field, []))

    __getitem__ = on

    def clear(self) -> None:
        self._messages.clear()

    def full_messages(self) -> list[str]:
        messages = []
        for field, items in self._messages.items():
            for message in items:
                if field == self.BASE:
                    messages.append(message)
                else:
                    messages.append(f"{field.replace('_', ' ').capitalize()} {message}")
        return messages

    def to_dict(self) -> dict[str, list[str]]:
        return {field: list(items) for field, items in self._messages.items()}

    @property
    def fields(self) -> list[str]:
        return list(self._messages)

    def is_empty(self) -> bool:
        return not self._messages

    def __contains__(self, field: object) -> bool:
        return field in self._messages

    def __iter__(self) -> Iterator[tuple[str, str]]:
        for field, items in self._messages.items():
            for message in items:
                yield field, message

    def __len__(self) -> int:
        return sum(len(items) for items in self._messages.values())

    def __repr__(self) -> str:
        return f"ValidationErrors({self._messages!r})"


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return not value
    return False


def _guard(guard: Any, document: Any) -> bool:
    if isinstance(guard, str):
        value = getattr(document, guard)
        return bool(value() if callable(value) else value)
    return bool(guard(document))


class Rule:
    """Base rule: guards and the per-field check loop."""

    message = "is invalid"

    def __init__(
        self,
        *fields: str,
        when: Any = None,
        unless: Any = None,
        on: str | None = None,
        message: str | None = None,
    ):
        self.fields = fields
        self.when = when
        self.unless = unless
        self.on = on
        if message is not None:
            self.message = message

    def applies(self, document: Any, context: str | None) -> bool:
        if self.on is not None and self.on != context:
            return False
        if self.when is not None and not _guard(self.when, document):
            return False
        if self.unless is not None and _guard(self.unless, document):
            return False
        return True

    def check(self, document: Any, errors: ValidationErrors) -> None:
        for field in self.fields:
            self.check_value(document, field, document.read(field), errors)

    def check_value(self, document: Any, field: str, value: Any, errors: ValidationErrors) -> None:
        raise NotImplementedError


class Presence(Rule):
    message = "can't be blank"

    def check_value(self, document, field, value, errors):
        if is_blank(value):
            errors.add(field, self.message)


class Inclusion(Rule):
    message = "is not included in the list"

    def __init__(self, *fields: str, within: Iterable[Any], allow_none: bool = False, **kwargs: Any):
        super().__init__(*fields, **kwargs)
        self.within = list(within)
        self.allow_none = allow_none

    def check_value(self, document, field, value, errors):
        if value is None and self.allow_none:
            return
        if value not in self.within:
            errors.add(field, self.message)


class Exclusion(Rule):
    message = "is reserved"

    def __init__(self, *fields: str, within: Iterable[Any], **kwargs: Any):
        super().__init__(*fields, **kwargs)
        self.within = list(within)

    def check_value(self, document, field, value, errors):
        if value in self.within:
            errors.add(field, self.message)


class Length(Rule):
    def __init__(
        self,
        *fields: str,
        minimum: int | None = None,
        maximum: int | None = None,
        exact: int | None = None,
        allow_blank: bool = False,
        **kwargs: Any,
    ):
        super().__init__(*fields, **kwargs)
        self.minimum = minimum
        self.maximum = maximum
        self.exact = exact
        self.allow_blank = allow_blank

    def check_value(self, document, field, value, errors):
        if is_blank(value) and self.allow_blank:
            return
        size = len(value) if value is not None else 0
        if self.exact is not None and size != self.exact:
            errors.add(field, f"is the wrong length (should be {self.exact} characters)")
        if self.minimum is not None and size < self.minimum:
            errors.add(field, f"is too short (minimum is {self.minimum} characters)")
        if self.maximum is not None and size > self.maximum:
            errors.add(field, f"is too long (maximum is {self.maximum} characters)")


class Format(Rule):
    def __init__(self, *fields: str, pattern: str | re.Pattern[str], allow_blank: bool = False, **kwargs: Any):
        super().__init__(*fields, **kwargs)
        self.pattern = re.compile(pattern) if isinstance(pattern, str) else pattern
        self.allow_blank = allow_blank

    def check_value(self, document, field, value, errors):
        if is_blank(value) and self.allow_blank:
            return
        if value is None or not self.pattern.search(str(value)):
            errors.add(field, self.message)


class Numericality(Rule):
    def __init__(
        self,
        *fields: str,
        only_integer: bool = False,
        greater_than: float | None = None,
        greater_than_or_equal_to: float | None = None,
        less_than: float | None = None,
        less_than_or_equal_to: float | None = None,
        allow_none: bool = False,
        **kwargs: Any,
    ):
        super().__init__(*fields, **kwargs)
        self.only_integer = only_integer
        self.bounds = [
            (greater_than, lambda v, b: v > b, "must be greater than {}"),
            (greater_than_or_equal_to, lambda v, b: v >= b, "must be greater than or equal to {}"),
            (less_than, lambda v, b: v < b, "must be less than {}"),
            (less_than_or_equal_to, lambda v, b: v <= b, "must be less than or equal to {}"),
        ]
        self.allow_none = allow_none

    def check_value(self, document, field, value, errors):
        if value is None and self.allow_none:
            return
        if isinstance(value, bool) or not isinstance(value, Number):
            errors.add(field, "is not a number")
            return
        if self.only_integer and value != int(value):
            errors.add(field, "must be an integer")
            return
        for bound, test, message in self.bounds:
            if bound is not None and not test(value, bound):
                errors.add(field, message.format(bound))


class Uniqueness(Rule):
    """No other stored document of the type shares the value (within scope)."""

    message = "has already been taken"

    def __init__(self, *fields: str, scope: str | Iterable[str] = (), **kwargs: Any):
        super().__init__(*fields, **kwargs)
        self.scope = (scope,) if isinstance(scope, str) else tuple(scope)

    def check_value(self, document, field, value, errors):
        context = document.context
        if context is None:
            return
        conditions = {field: value}
        conditions.update({name: document.read(name) for name in self.scope})
        query = type(document).query(context).unscoped().where(conditions)
        if document.id is not None:
            query = query.where(_id__ne=document.id)
        if query.exists():
            errors.add(field, self.message)


class Custom(Rule):
    """Run a method name or callable; it adds errors or returns a message.

    ``Custom("check_dates")`` calls ``doc.check_dates(errors)``.
    ``Custom(fn, field="due")`` calls ``fn(doc)``; a returned string is added
    to ``field`` (or ``base``).
    """

    def __init__(self, check: str | Callable[..., Any], *, field: str | None = None, **kwargs: Any):
        super().__init__(**kwargs)
        self.check_fn = check
        self.field = field or ValidationErrors.BASE

    def check(self, document, errors):
        if isinstance(self.check_fn, str):
            result = getattr(document, self.check_fn)(errors)
        else:
            result = self.check_fn(document)
        if isinstance(result, str):
            errors.add(self.field, result)


class RuleValidator:
    """Validator collaborator driven by each document type's declared rules."""

    def validate(self, document: Any, context: str | None) -> tuple[bool, ValidationErrors]:
        errors = ValidationErrors()
        schema = document.schema
        for definition in schema.keys:
            if definition.required and is_blank(document.read(definition.name)):
                errors.add(definition.name, Presence.message)
        for rule in schema.validations:
            if rule.applies(document, context):
                rule.check(document, errors)
        for name, embedded in document.embedded_documents():
            if not embedded.valid(context):
                errors.add(name, "is invalid")
        if errors:
            logger.debug(
                "validation_failed",
                document_type=type(document).__name__,
                fields=errors.fields,
            )
        return errors.is_empty(), errors


__all__ = [
    "ValidationErrors",
    "Rule",
    "Presence",
    "Inclusion",
    "Exclusion",
    "Length",
    "Format",
    "Numericality",
    "Uniqueness",
    "Custom",
    "RuleValidator",
    "is_blank",
]
