"""Tests for docspine.types -- ObjectId and the coercion table."""

from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from docspine.core.errors import InvalidArgumentError
from docspine.types import ObjectId, coerce, dump_value, from_storage, is_custom_type, to_storage


class Money:
    """Custom type stored as integer cents."""

    def __init__(self, cents):
        self.cents = cents

    def __eq__(self, other):
        return isinstance(other, Money) and other.cents == self.cents

    @classmethod
    def to_storage(cls, value):
        return value.cents if isinstance(value, Money) else int(round(float(value) * 100))

    @classmethod
    def from_storage(cls, value):
        return cls(value)


class TestObjectId:
    def test_generated_is_24_hex(self):
        oid = ObjectId()
        assert len(str(oid)) == 24
        assert ObjectId.is_valid(str(oid))

    def test_parse_round_trip(self):
        oid = ObjectId()
        assert ObjectId(str(oid)) == oid
        assert hash(ObjectId(str(oid))) == hash(oid)

    def test_copy_constructor(self):
        oid = ObjectId()
        assert ObjectId(oid) == oid

    def test_invalid_raises(self):
        with pytest.raises(InvalidArgumentError):
            ObjectId("not-an-id")

    @pytest.mark.parametrize("value", ["", "xyz", "0" * 23, "g" * 24, 42, None])
    def test_is_valid_rejects(self, value):
        assert not ObjectId.is_valid(value)

    def test_generated_ids_are_unique(self):
        first, second = ObjectId(), ObjectId()
        assert first != second

    def test_generation_time(self):
        oid = ObjectId("65a1f0c2e4b0a1b2c3d4e5f6")
        assert oid.generation_time == datetime.fromtimestamp(0x65A1F0C2, UTC)

    def test_repr(self):
        assert repr(ObjectId("65a1f0c2e4b0a1b2c3d4e5f6")) == "ObjectId('65a1f0c2e4b0a1b2c3d4e5f6')"


class TestCoerce:
    """Coercion never raises; bad input degrades."""

    @pytest.mark.parametrize(
        "value,expected",
        [("42", 42), (" 7 ", 7), (3.9, 3), ("3.5", 3), ("abc", None), (True, 1), ([], None)],
    )
    def test_int(self, value, expected):
        assert coerce(int, value) == expected

    @pytest.mark.parametrize("value,expected", [("2.5", 2.5), (1, 1.0), ("nope", None)])
    def test_float(self, value, expected):
        assert coerce(float, value) == expected

    @pytest.mark.parametrize("value", [10**400, "1e400", "-1e400", "inf", "nan", Decimal("1e400")])
    def test_float_out_of_range_is_none(self, value):
        assert coerce(float, value) is None

    @pytest.mark.parametrize("value", ["1e400", "inf", "nan", float("inf"), Decimal("NaN")])
    def test_int_non_finite_is_none(self, value):
        assert coerce(int, value) is None

    def test_big_int_stays_exact(self):
        assert coerce(int, 10**400) == 10**400
        assert coerce(int, str(10**30)) == 10**30

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("true", True),
            ("YES", True),
            ("1", True),
            ("false", False),
            ("no", False),
            ("whatever", False),
            (1, True),
            (0, False),
            ("", None),
        ],
    )
    def test_bool(self, value, expected):
        assert coerce(bool, value) is expected

    def test_str(self):
        assert coerce(str, 12) == "12"
        assert coerce(str, b"hi") == "hi"

    def test_none_stays_none(self):
        for type_ in (str, int, float, bool, date, datetime, list, dict, ObjectId):
            assert coerce(type_, None) is None

    def test_date_from_string(self):
        assert coerce(date, "2024-03-01") == date(2024, 3, 1)

    def test_date_from_datetime(self):
        assert coerce(date, datetime(2024, 3, 1, 12, 0)) == date(2024, 3, 1)

    def test_bad_date_is_none(self):
        assert coerce(date, "not a date") is None

    def test_datetime_from_string_is_utc(self):
        moment = coerce(datetime, "2024-03-01T10:00:00")
        assert moment == datetime(2024, 3, 1, 10, 0, tzinfo=UTC)

    def test_datetime_from_date(self):
        assert coerce(datetime, date(2024, 3, 1)) == datetime(2024, 3, 1, tzinfo=UTC)

    def test_datetime_from_unix(self):
        assert coerce(datetime, 0) == datetime(1970, 1, 1, tzinfo=UTC)

    def test_list_from_tuple(self):
        assert coerce(list, ("a", "b")) == ["a", "b"]

    def test_dict_keys_stringified(self):
        assert coerce(dict, {1: "a"}) == {"1": "a"}

    def test_object_id_from_string(self):
        oid = ObjectId()
        assert coerce(ObjectId, str(oid)) == oid

    def test_object_id_leaves_other_strings(self):
        assert coerce(ObjectId, "custom-id") == "custom-id"

    def test_unknown_type_passthrough(self):
        marker = object()
        assert coerce(object, marker) is marker

    def test_custom_type(self):
        assert is_custom_type(Money)
        assert coerce(Money, "12.34") == Money(1234)


class TestStorageForm:
    def test_object_id_stored_as_hex(self):
        oid = ObjectId()
        assert to_storage(ObjectId, oid) == str(oid)

    def test_datetime_stored_as_iso(self):
        moment = datetime(2024, 3, 1, 10, 0, tzinfo=UTC)
        assert to_storage(datetime, moment) == "2024-03-01T10:00:00+00:00"
        assert from_storage(datetime, "2024-03-01T10:00:00+00:00") == moment

    def test_date_stored_as_iso(self):
        assert to_storage(date, date(2024, 3, 1)) == "2024-03-01"
        assert from_storage(date, "2024-03-01") == date(2024, 3, 1)

    def test_custom_type_storage(self):
        assert to_storage(Money, Money(500)) == 500
        assert from_storage(Money, 500) == Money(500)

    def test_dump_value_nested(self):
        oid = ObjectId()
        dumped = dump_value({"ids": [oid], "when": date(2024, 1, 1), "n": Decimal("1.5")})
        assert dumped == {"ids": [str(oid)], "when": "2024-01-01", "n": 1.5}
