"""
Tests for key-value coercion.
"""

from schemamcp.core.coercion import coerce_key_value, coerce_keys
from schemamcp.core.types import PropertyType


class TestCoerceKeyValue:
    """Tests for single-value coercion."""

    def test_digit_string_to_int(self):
        assert coerce_key_value("Integer", "201") == 201
        assert coerce_key_value("cds.Int32", "-5") == -5

    def test_uint8_rejects_sign(self):
        assert coerce_key_value("UInt8", "-5") == "-5"
        assert coerce_key_value("UInt8", "5") == 5

    def test_non_digit_string_unchanged(self):
        assert coerce_key_value("Integer", "20x") == "20x"

    def test_int64_number_to_string(self):
        assert coerce_key_value("Int64", 9007199254740993) == "9007199254740993"

    def test_decimal_number_to_string(self):
        assert coerce_key_value(PropertyType.parse("cds.Decimal"), 12.5) == "12.5"

    def test_bool_is_not_a_number(self):
        assert coerce_key_value("Decimal", True) is True

    def test_other_types_pass_through(self):
        assert coerce_key_value("UUID", "a1b2") == "a1b2"
        assert coerce_key_value("String", 42) == 42


class TestCoerceKeys:
    """Tests for coercing a key mapping."""

    def test_only_declared_keys(self):
        key_types = {"ID": PropertyType.parse("cds.Integer")}
        assert coerce_keys(key_types, {"ID": "7", "title": "7"}) == {"ID": 7, "title": "7"}
