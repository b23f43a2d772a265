"""
Tests for named scopes and default scopes.

Covers:
- Criteria scopes vs callable scopes (and when each is evaluated)
- Parameterized scopes return exactly the matching subset
- Default scope applies to all() but not unscoped()
- Scopes chain with each other and with builder calls
"""

import itertools

import pytest

from docspine import Criteria, Document, InvalidArgumentError, Key, where

_evaluations = itertools.count()


def _current_generation(query):
    return query.where(generation=next(_evaluations))


class ScopedTask(Document):
    title = Key(str)
    status = Key(str, default="open")
    priority = Key(int, default=0)
    archived = Key(bool, default=False)
    generation = Key(int)

    default_scope = where(archived=False)
    scopes = {
        "open": where(status="open"),
        "with_status": lambda query, status: query.where(status=status),
        "urgent": lambda query: where(priority__gte=5),
        "top": lambda query, n=2: query.sort("-priority").limit(n),
        "current_generation": _current_generation,
        "noop": lambda query: None,
    }


class UnscopedNote(Document):
    body = Key(str)


@pytest.fixture
def tasks(ctx):
    rows = [
        ("write docs", "open", 1, False),
        ("fix bug", "open", 9, False),
        ("review", "done", 5, False),
        ("old idea", "open", 7, True),
        ("deploy", "blocked", 3, False),
    ]
    for title, status, priority, archived in rows:
        ScopedTask.create(ctx, title=title, status=status, priority=priority, archived=archived)


def titles(documents):
    return sorted(d.title for d in documents)


class TestDefaultScope:
    def test_default_scope_applied(self, ctx, tasks):
        assert ScopedTask.query(ctx).count() == 4
        assert "old idea" not in titles(ScopedTask.query(ctx).all())

    def test_unscoped(self, ctx, tasks):
        assert ScopedTask.unscoped(ctx).count() == 5
        assert ScopedTask.query(ctx).unscoped().count() == 5
        assert "old idea" in titles(ScopedTask.unscoped(ctx).all())

    def test_default_scope_not_stored_in_builder(self, ctx):
        assert ScopedTask.query(ctx).criteria.is_empty()

    def test_find_respects_default_scope(self, ctx, tasks):
        archived = ScopedTask.unscoped(ctx).find_by(title="old idea")
        assert ScopedTask.find(ctx, archived.id) is None

    def test_type_without_default_scope(self, ctx):
        UnscopedNote.create(ctx, body="x")
        assert UnscopedNote.query(ctx).effective_criteria() == Criteria()


class TestNamedScopes:
    def test_criteria_scope(self, ctx, tasks):
        assert titles(ScopedTask.query(ctx).open()) == ["fix bug", "write docs"]

    @pytest.mark.parametrize("status", ["open", "done", "blocked"])
    def test_parameterized_scope_is_exact_subset(self, ctx, tasks, status):
        found = ScopedTask.query(ctx).with_status(status).all()
        expected = [t for t in ScopedTask.query(ctx).all() if t.status == status]
        assert titles(found) == titles(expected)
        assert all(t.status == status for t in found)

    def test_callable_returning_criteria(self, ctx, tasks):
        assert titles(ScopedTask.query(ctx).urgent()) == ["fix bug", "review"]

    def test_callable_returning_query(self, ctx, tasks):
        top = ScopedTask.query(ctx).top().all()
        assert [t.title for t in top] == ["fix bug", "review"]
        assert len(ScopedTask.query(ctx).top(3).all()) == 3

    def test_callable_returning_none(self, ctx, tasks):
        assert ScopedTask.query(ctx).noop().count() == 4

    def test_scopes_chain(self, ctx, tasks):
        found = ScopedTask.query(ctx).open().urgent().all()
        assert titles(found) == ["fix bug"]

    def test_scope_after_builder(self, ctx, tasks):
        found = ScopedTask.query(ctx).where(priority__lt=5).with_status("open").all()
        assert titles(found) == ["write docs"]

    def test_scope_does_not_mutate_receiver(self, ctx):
        base = ScopedTask.query(ctx)
        base.open()
        assert base.criteria.is_empty()

    def test_criteria_scope_takes_no_arguments(self, ctx):
        with pytest.raises(InvalidArgumentError):
            ScopedTask.query(ctx).open("extra")

    def test_callable_scope_evaluated_per_call(self, ctx):
        first = ScopedTask.query(ctx).current_generation().criteria.predicates[0].value
        second = ScopedTask.query(ctx).current_generation().criteria.predicates[0].value
        assert second == first + 1

    def test_criteria_scope_captured_once(self, ctx):
        first = ScopedTask.query(ctx).open().criteria
        second = ScopedTask.query(ctx).open().criteria
        assert first == second
        assert ScopedTask.schema.scopes["open"].deferred is False
        assert ScopedTask.schema.scopes["current_generation"].deferred is True
