"""Tests for docspine.criteria value objects."""

import pytest

from docspine.core.errors import InvalidArgumentError
from docspine.criteria import (
    Criteria,
    Operator,
    Predicate,
    Projection,
    SortDirection,
    SortKey,
    asc,
    desc,
    lookup,
    parse_condition,
    parse_sort,
    where,
)


class TestParseCondition:
    @pytest.mark.parametrize(
        "name,field,operator",
        [
            ("age", "age", Operator.EQ),
            ("age__gte", "age", Operator.GTE),
            ("age__gt", "age", Operator.GT),
            ("age__lt", "age", Operator.LT),
            ("age__lte", "age", Operator.LTE),
            ("status__ne", "status", Operator.NE),
            ("first__name", "first__name", Operator.EQ),
        ],
    )
    def test_suffixes(self, name, field, operator):
        predicate = parse_condition(name, 1)
        assert predicate.field == field
        assert predicate.operator is operator

    def test_list_value_means_membership(self):
        predicate = parse_condition("status", ["a", "b"])
        assert predicate.operator is Operator.IN
        assert predicate.value == ("a", "b")

    def test_in_needs_list(self):
        with pytest.raises(InvalidArgumentError):
            parse_condition("status__in", "a")

    def test_id_shorthand(self):
        assert parse_condition("id", "x").field == "_id"


class TestPredicateMatching:
    record = {"name": "Alice", "age": 31, "tags": ["a", "b"], "address": {"city": "Boston"}}

    def test_equality(self):
        assert Predicate("name", Operator.EQ, "Alice").matches(self.record)
        assert not Predicate("name", Operator.EQ, "Bob").matches(self.record)

    def test_equality_against_array_contains(self):
        assert Predicate("tags", Operator.EQ, "a").matches(self.record)
        assert not Predicate("tags", Operator.EQ, "z").matches(self.record)

    def test_missing_field_equals_none(self):
        assert Predicate("nickname", Operator.EQ, None).matches(self.record)
        assert Predicate("nickname", Operator.NE, "x").matches(self.record)

    def test_comparisons(self):
        assert Predicate("age", Operator.GTE, 31).matches(self.record)
        assert not Predicate("age", Operator.GT, 31).matches(self.record)
        assert Predicate("age", Operator.LT, 40).matches(self.record)

    def test_comparison_with_mismatched_type(self):
        assert not Predicate("name", Operator.GT, 3).matches(self.record)

    def test_comparison_on_missing_field(self):
        assert not Predicate("height", Operator.LT, 3).matches(self.record)

    def test_membership(self):
        assert Predicate("age", Operator.IN, (30, 31)).matches(self.record)
        assert Predicate("tags", Operator.IN, ("b", "c")).matches(self.record)
        assert not Predicate("tags", Operator.IN, ("x",)).matches(self.record)

    def test_dotted_path(self):
        assert Predicate("address.city", Operator.EQ, "Boston").matches(self.record)

    def test_lookup_list_index(self):
        assert lookup(self.record, "tags.1") == "b"


class TestCriteria:
    def test_where_returns_new_value(self):
        base = where(age__gte=18)
        refined = base.where(status="active")
        assert len(base.predicates) == 1
        assert len(refined.predicates) == 2

    def test_and_combination(self):
        combined = where(a=1) & where(b=2)
        assert [p.field for p in combined.predicates] == ["a", "b"]

    def test_mapping_conditions(self):
        criteria = Criteria.build({"address.city": "Boston"}, age=3)
        assert [p.field for p in criteria.predicates] == ["address.city", "age"]

    def test_matches_all(self):
        criteria = where(name="Alice", age__gt=30)
        assert criteria.matches({"name": "Alice", "age": 31})
        assert not criteria.matches({"name": "Alice", "age": 30})

    def test_equalities(self):
        criteria = where(name="Alice", age__gt=30, **{"address": "x"})
        assert criteria.equalities() == {"name": "Alice", "address": "x"}

    def test_empty(self):
        assert Criteria().is_empty()
        assert Criteria().matches({"anything": 1})

    def test_frozen(self):
        criteria = where(a=1)
        with pytest.raises(AttributeError):
            criteria.predicates = ()


class TestSort:
    def test_prefix_minus(self):
        assert parse_sort("-age") == [desc("age")]

    def test_direction_words(self):
        assert parse_sort("name desc, age") == [desc("name"), asc("age")]

    def test_tuple(self):
        assert parse_sort(("name", "DESC")) == [SortKey("name", SortDirection.DESC)]

    def test_iterable(self):
        assert parse_sort(["a", "-b"]) == [asc("a"), desc("b")]

    def test_id_shorthand(self):
        assert parse_sort("id") == [asc("_id")]

    def test_unknown_direction(self):
        with pytest.raises(InvalidArgumentError):
            parse_sort("name sideways")

    def test_reversed(self):
        assert asc("a").reversed() == desc("a")
        assert desc("a").descending


class TestProjection:
    def test_inclusion_keeps_id(self):
        record = {"_id": "1", "name": "a", "age": 3}
        assert Projection(("name",)).apply(record) == {"_id": "1", "name": "a"}

    def test_exclusion(self):
        record = {"_id": "1", "name": "a", "age": 3}
        assert Projection(("age",), exclude=True).apply(record) == {"_id": "1", "name": "a"}
