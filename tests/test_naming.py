"""
命名正規化單元測試
"""
import pytest

from figma_mapper.naming import (
    compact,
    normalize_property_key,
    parse_variant_name,
    to_kebab_case,
    to_pascal_case,
)


class TestNormalizePropertyKey:

    def test_strips_hash_suffix(self):
        assert normalize_property_key("Button Text#1:0") == "button text"

    def test_collapses_whitespace(self):
        assert normalize_property_key("Show   Left Icon#3") == "show left icon"

    def test_plain_key_lowercased(self):
        assert normalize_property_key("Size") == "size"

    def test_empty_key(self):
        assert normalize_property_key("") == ""

    def test_only_last_suffix_removed(self):
        assert normalize_property_key("A#B#12") == "a#b"


class TestParseVariantName:

    def test_key_value_pairs(self):
        assert parse_variant_name("Variant=Outline, Size=sm, State=Hover") == {
            "variant": "Outline",
            "size": "sm",
            "state": "Hover",
        }

    def test_plain_name_returns_empty(self):
        assert parse_variant_name("Button") == {}

    def test_malformed_parts_skipped(self):
        assert parse_variant_name("Size=lg, junk") == {"size": "lg"}


def test_case_helpers():
    assert to_pascal_case("primary button") == "PrimaryButton"
    assert to_kebab_case("Primary Button / Large") == "primary-button-large"
    assert to_kebab_case("///") == "unnamed"
    assert compact("Arrow-Right") == "arrowright"
