"""Tests for reply tokenising, value coercion and GET TYPE parsing."""

import pytest

from nut_client.errors import NUTProtocolError
from nut_client.parser import (
    TYPE_FLOAT,
    TYPE_INTEGER,
    ValueKind,
    VariableValue,
    coerce_value,
    parse_type_response,
    split_line,
)


class TestSplitLine:
    def test_quoted_value_keeps_spaces(self):
        assert split_line('VAR ups1 ups.mfr "American Power Conversion"') == [
            "VAR", "ups1", "ups.mfr", "American Power Conversion",
        ]

    def test_escaped_quote(self):
        assert split_line(r'VAR ups1 ups.id "say \"hi\""') == ["VAR", "ups1", "ups.id", 'say "hi"']

    def test_empty_quoted_value(self):
        assert split_line('VAR ups1 ups.id ""') == ["VAR", "ups1", "ups.id", ""]

    def test_apostrophe_is_literal(self):
        assert split_line('DESC ups1 x "UPS doesn\'t care"') == ["DESC", "ups1", "x", "UPS doesn't care"]

    def test_unterminated_quote(self):
        with pytest.raises(NUTProtocolError):
            split_line('VAR ups1 ups.id "open')


class TestCoerceValue:
    def test_float_for_number(self):
        value, var_type, original = coerce_value("1.50", "NUMBER")
        assert value == VariableValue(ValueKind.FLOAT, 1.5)
        assert var_type == TYPE_FLOAT
        assert original == "NUMBER"

    def test_integer_for_unknown(self):
        value, var_type, original = coerce_value("42", "UNKNOWN")
        assert value.kind is ValueKind.INTEGER
        assert value.data == 42
        assert var_type == TYPE_INTEGER
        assert original == "UNKNOWN"

    def test_negative_integer(self):
        value, _, _ = coerce_value("-7", "NUMBER")
        assert value == VariableValue.integer(-7)

    def test_enabled_disabled_are_booleans(self):
        for declared in ("UNKNOWN", "NUMBER", "ENUM", "STRING"):
            assert coerce_value("enabled", declared)[0] == VariableValue.boolean(True)
            assert coerce_value("disabled", declared)[0] == VariableValue.boolean(False)

    def test_boolean_keeps_declared_type(self):
        value, var_type, original = coerce_value("enabled", "NUMBER")
        assert value.data is True
        assert var_type == "NUMBER"
        assert original == ""

    def test_writeable_string_with_enabled_text_is_still_boolean(self):
        # Known edge case: the boolean literal check wins over a STRING type.
        value, var_type, _ = coerce_value("enabled", "STRING")
        assert value.kind is ValueKind.BOOLEAN
        assert var_type == "STRING"

    def test_string_stays_string(self):
        value, var_type, original = coerce_value("hello", "STRING")
        assert value == VariableValue.string("hello")
        assert var_type == "STRING"
        assert original == ""

    def test_numeric_text_not_coerced_for_string_type(self):
        value, var_type, _ = coerce_value("42", "STRING")
        assert value == VariableValue.string("42")
        assert var_type == "STRING"

    def test_unparseable_number_stays_raw(self):
        value, var_type, original = coerce_value("OL", "UNKNOWN")
        assert value == VariableValue.string("OL")
        assert var_type == "UNKNOWN"
        assert original == ""

    def test_two_dots_stay_raw(self):
        value, var_type, _ = coerce_value("1.2.3", "NUMBER")
        assert value == VariableValue.string("1.2.3")
        assert var_type == "NUMBER"

    def test_one_dot_but_not_a_float(self):
        value, var_type, _ = coerce_value("v1.x", "UNKNOWN")
        assert value.kind is ValueKind.STRING
        assert var_type == "UNKNOWN"

    @pytest.mark.parametrize("raw", [" 42", "4_2", "9223372036854775808", "", "0x10"])
    def test_strict_integer_parsing(self, raw):
        value, var_type, _ = coerce_value(raw, "NUMBER")
        assert value == VariableValue.string(raw)
        assert var_type == "NUMBER"

    def test_int64_bounds(self):
        assert coerce_value("9223372036854775807", "NUMBER")[0].data == 2 ** 63 - 1
        assert coerce_value("-9223372036854775808", "NUMBER")[0].data == -(2 ** 63)

    def test_float_with_exponent(self):
        value, _, _ = coerce_value("1.5e3", "NUMBER")
        assert value == VariableValue.float64(1500.0)

    def test_float_overflow_stays_raw(self):
        value, var_type, _ = coerce_value("1.0e999", "NUMBER")
        assert value.kind is ValueKind.STRING
        assert var_type == "NUMBER"

    def test_str_of_values(self):
        assert str(VariableValue.boolean(True)) == "enabled"
        assert str(VariableValue.integer(3)) == "3"


class TestParseTypeResponse:
    def test_rw_string_with_length(self):
        assert parse_type_response(["RW", "STRING:20"]) == ("STRING", True, 20)

    def test_read_only_enum(self):
        assert parse_type_response(["ENUM"]) == ("ENUM", False, 0)

    def test_rw_without_length(self):
        assert parse_type_response(["RW", "ENUM"]) == ("ENUM", True, 0)

    def test_read_only_number(self):
        assert parse_type_response(["NUMBER"]) == ("NUMBER", False, 0)

    def test_bad_length(self):
        with pytest.raises(NUTProtocolError):
            parse_type_response(["RW", "STRING:abc"])

    def test_rw_without_type(self):
        with pytest.raises(NUTProtocolError):
            parse_type_response(["RW"])

    def test_empty(self):
        with pytest.raises(NUTProtocolError):
            parse_type_response([])
