"""
Tests for the rule-based validator.

Covers:
- Every built-in rule
- Implicit presence for required keys
- when/unless/on guards
- ValidationErrors collection API
- Invalid documents are not persisted
"""

import pytest

from docspine import (
    Custom,
    Document,
    Exclusion,
    Format,
    Inclusion,
    Key,
    Length,
    Numericality,
    Presence,
    Uniqueness,
    ValidationErrors,
)
from docspine.validation import is_blank


class ValidatedTask(Document):
    title = Key(str, required=True)
    status = Key(str, default="pending")
    code = Key(str)
    priority = Key(int)
    approved_by = Key(str)
    due = Key(int)
    start = Key(int)

    validations = [
        Inclusion("status", within={"pending", "active", "completed"}),
        Exclusion("code", within=["admin", "root"]),
        Length("title", minimum=3, maximum=20),
        Format("code", pattern=r"^[a-z]+$", allow_blank=True),
        Numericality("priority", only_integer=True, greater_than=0, less_than_or_equal_to=5, allow_none=True),
        Presence("approved_by", on="update"),
        Custom("check_window"),
        Custom(lambda task: "must be urgent" if task.priority == 4 else None, field="priority"),
    ]

    def check_window(self, errors):
        if self.due is not None and self.start is not None and self.due < self.start:
            errors.add("due", "must be after start")


class UniqueSlug(Document):
    slug = Key(str)
    owner = Key(str)

    validations = [Uniqueness("slug", scope="owner")]


class ConditionalReview(Document):
    body = Key(str)
    published = Key(bool, default=False)
    moderated = Key(bool, default=False)

    validations = [
        Presence("body", when="published"),
        Length("body", minimum=10, unless=lambda review: review.moderated),
    ]


def task(**attrs):
    values = {"title": "valid title"}
    values.update(attrs)
    return ValidatedTask(**values)


class TestInclusionScenario:
    def test_bogus_status_is_invalid(self):
        document = task(status="bogus")
        assert not document.valid()
        assert document.errors["status"] == ["is not included in the list"]

    def test_allowed_status_is_valid(self):
        assert task(status="active").valid()

    def test_allow_none(self):
        rule = Inclusion("status", within=["a"], allow_none=True)
        errors = ValidationErrors()
        rule.check_value(None, "status", None, errors)
        assert errors.is_empty()


class TestRules:
    def test_required_key_is_implicit_presence(self):
        document = ValidatedTask()
        assert not document.valid()
        assert "can't be blank" in document.errors["title"]

    def test_blank_string_counts_as_missing(self):
        document = task(title="   ")
        assert not document.valid()
        assert "can't be blank" in document.errors["title"]

    def test_exclusion(self):
        document = task(code="admin")
        assert not document.valid()
        assert document.errors["code"] == ["is reserved"]

    @pytest.mark.parametrize(
        "title,message",
        [
            ("ab", "is too short (minimum is 3 characters)"),
            ("x" * 21, "is too long (maximum is 20 characters)"),
        ],
    )
    def test_length(self, title, message):
        document = task(title=title)
        assert not document.valid()
        assert document.errors["title"] == [message]

    def test_exact_length(self):
        errors = ValidationErrors()
        Length("pin", exact=4).check_value(None, "pin", "123", errors)
        assert errors["pin"] == ["is the wrong length (should be 4 characters)"]

    def test_format(self):
        assert task(code="abc").valid()
        assert task(code=None).valid()
        document = task(code="ABC1")
        assert not document.valid()
        assert document.errors["code"] == ["is invalid"]

    @pytest.mark.parametrize(
        "priority,message",
        [
            (0, "must be greater than 0"),
            (9, "must be less than or equal to 5"),
        ],
    )
    def test_numericality_bounds(self, priority, message):
        document = task(priority=priority)
        assert not document.valid()
        assert document.errors["priority"] == [message]

    def test_numericality_types(self):
        errors = ValidationErrors()
        rule = Numericality("n", only_integer=True)
        rule.check_value(None, "n", "7", errors)
        rule.check_value(None, "n", True, errors)
        rule.check_value(None, "m", 2.5, errors)
        assert errors["n"] == ["is not a number", "is not a number"]
        assert errors["m"] == ["must be an integer"]

    def test_custom_method(self):
        document = task(start=5, due=1)
        assert not document.valid()
        assert document.errors["due"] == ["must be after start"]

    def test_custom_callable_message(self):
        document = task(priority=4)
        assert not document.valid()
        assert document.errors["priority"] == ["must be urgent"]

    def test_custom_callable_defaults_to_base(self):
        errors = ValidationErrors()
        Custom(lambda doc: "broken").check(object(), errors)
        assert errors["base"] == ["broken"]
        assert errors.full_messages() == ["broken"]


class TestGuards:
    def test_on_update_only(self, ctx):
        document = ValidatedTask.create(ctx, title="needs approval")
        assert document.is_persisted
        document.title = "still needs approval"
        assert document.save() is False
        assert document.errors["approved_by"] == ["can't be blank"]
        document.approved_by = "lead"
        assert document.save()

    def test_explicit_validation_context(self):
        document = task()
        assert document.valid("create")
        assert not document.valid("update")

    def test_when_guard(self):
        assert ConditionalReview(body="a long enough body").valid()
        assert not ConditionalReview(body=None, published=True).valid()

    def test_unless_guard(self):
        assert not ConditionalReview(body="short").valid()
        assert ConditionalReview(body="short", moderated=True).valid()


class TestUniqueness:
    def test_duplicate_in_scope(self, ctx):
        UniqueSlug.create(ctx, slug="intro", owner="ann")
        duplicate = UniqueSlug.create(ctx, slug="intro", owner="ann")
        assert duplicate.is_new
        assert duplicate.errors["slug"] == ["has already been taken"]

    def test_other_scope_allowed(self, ctx):
        UniqueSlug.create(ctx, slug="intro", owner="ann")
        assert UniqueSlug.create(ctx, slug="intro", owner="bob").is_persisted

    def test_document_does_not_collide_with_itself(self, ctx):
        original = UniqueSlug.create(ctx, slug="intro", owner="ann")
        original.owner = "ann"
        assert original.save()

    def test_without_context_is_skipped(self):
        assert UniqueSlug(slug="intro", owner="ann").valid()


class TestPersistence:
    def test_invalid_document_not_saved(self, ctx, storage):
        document = task(status="bogus").bind(ctx)
        assert document.save() is False
        assert document.is_new
        assert storage.records("validated_tasks") == []

    def test_skip_validation(self, ctx):
        document = task(status="bogus").bind(ctx)
        assert document.save(validate=False)
        assert document.is_persisted

    def test_errors_reset_on_next_validation(self):
        document = task(status="bogus")
        document.valid()
        document.status = "active"
        assert document.valid()
        assert document.errors.is_empty()


class TestValidationErrors:
    def test_collection_api(self):
        errors = ValidationErrors()
        errors.add("first_name", "can't be blank")
        errors.add("first_name", "is too short")
        errors.add("email", "is invalid")
        assert len(errors) == 3
        assert "email" in errors
        assert "phone" not in errors
        assert errors.fields == ["first_name", "email"]
        assert errors.on("phone") == []
        assert errors.to_dict() == {
            "first_name": ["can't be blank", "is too short"],
            "email": ["is invalid"],
        }
        assert errors.full_messages() == [
            "First name can't be blank",
            "First name is too short",
            "Email is invalid",
        ]
        assert list(errors)[0] == ("first_name", "can't be blank")

    def test_clear(self):
        errors = ValidationErrors()
        errors.add("a", "b")
        errors.clear()
        assert not errors

    @pytest.mark.parametrize(
        "value,blank",
        [(None, True), ("", True), ("  ", True), ([], True), ({}, True), (0, False), (False, False), ("x", False)],
    )
    def test_is_blank(self, value, blank):
        assert is_blank(value) is blank
