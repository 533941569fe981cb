"""型付き値とバージョンのユニットテスト。"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from loadout.models.errors import InvalidOperationError, InvalidValueError
from loadout.models.values import StackVersion, TypedValue, parse_boolean, parse_number


class TestParsers:
    def test_parse_boolean_is_case_insensitive(self) -> None:
        assert parse_boolean("TRUE") is True
        assert parse_boolean(" false ") is False

    def test_parse_boolean_rejects_other_words(self) -> None:
        with pytest.raises(InvalidValueError):
            parse_boolean("yes")

    def test_parse_number_accepts_decimals(self) -> None:
        assert parse_number("0.25") == Decimal("0.25")

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity", ""])
    def test_parse_number_rejects_non_finite_or_garbage(self, value: str) -> None:
        with pytest.raises(InvalidValueError):
            parse_number(value)


class TestStackVersion:
    def test_parts(self) -> None:
        version = StackVersion.parse("3.11.4")
        assert (version.major, version.minor, version.patch) == (3, 11, 4)

    def test_missing_parts_are_zero(self) -> None:
        version = StackVersion.parse("16")
        assert (version.major, version.minor, version.patch) == (16, 0, 0)

    def test_dotted_non_numeric_prefix_is_accepted(self) -> None:
        version = StackVersion.parse("v1.2")
        assert version.major == 0
        assert version.minor == 2

    @pytest.mark.parametrize("value", ["latest", "", "   "])
    def test_invalid_versions(self, value: str) -> None:
        with pytest.raises(InvalidValueError):
            StackVersion.parse(value)

    def test_compatibility_uses_major(self) -> None:
        assert StackVersion.parse("8.0").is_compatible_with(StackVersion.parse("8.3"))
        assert not StackVersion.parse("8.0").is_compatible_with(StackVersion.parse("9.0"))

    def test_is_newer_than(self) -> None:
        assert StackVersion.parse("3.12").is_newer_than(StackVersion.parse("3.11.9"))
        assert not StackVersion.parse("3.12").is_newer_than(StackVersion.parse("3.12.0"))


class TestTypedValue:
    def test_number_value(self) -> None:
        value = TypedValue.for_number("5432")
        assert value.type == "number"
        assert value.raw_value == "5432"
        assert value.as_number() == Decimal("5432")

    def test_boolean_value(self) -> None:
        assert TypedValue.for_boolean("True").as_bool() is True

    def test_version_value(self) -> None:
        assert TypedValue.for_version("16.4").as_version().minor == 4

    def test_raw_value_is_kept_verbatim(self) -> None:
        assert TypedValue.for_number(" 42 ").raw_value == " 42 "

    @pytest.mark.parametrize(
        ("parameter_type", "raw"),
        [("number", "abc"), ("boolean", "maybe"), ("version", "latest"), ("text", "  "), ("choice", "")],
    )
    def test_invalid_payload_is_rejected(self, parameter_type: str, raw: str) -> None:
        with pytest.raises(InvalidValueError):
            TypedValue.create(parameter_type, raw)  # type: ignore[arg-type]

    def test_equality_includes_type(self) -> None:
        assert TypedValue.for_text("debug") == TypedValue.for_text("debug")
        assert TypedValue.for_text("debug") != TypedValue.for_choice("debug")
        assert hash(TypedValue.for_text("debug")) == hash(TypedValue.for_text("debug"))

    def test_wrong_accessor_raises(self) -> None:
        with pytest.raises(InvalidOperationError):
            TypedValue.for_number("1").as_bool()

    def test_value_is_immutable(self) -> None:
        value = TypedValue.for_text("a")
        with pytest.raises(ValidationError):
            value.raw_value = "b"  # type: ignore[misc]

    def test_str(self) -> None:
        assert str(TypedValue.for_number("1")) == "number: 1"
