import pytest

from retail_assist.errors import ConflictError, ValidationError
from retail_assist.sku import (
    format_weight,
    generate_base_sku,
    generate_unique_sku,
    parse_weight,
)


class TestBaseSku:
    def test_type_brand_weight_unit(self):
        assert generate_base_sku("BISCUIT", "PARLE", 800, "GRAM") == "BISPAR800G"
        assert generate_base_sku("SUGAR", "TATA", 1, "KILOGRAM") == "SUGTAT1K"

    def test_decimal_point_becomes_underscore(self):
        assert generate_base_sku("OIL", "FORTUNE", 1.5, "LITER") == "OILFOR1_5L"

    def test_unknown_attribute_rejected(self):
        with pytest.raises(ValidationError):
            generate_base_sku("CANDY", "PARLE", 100, "GRAM")


class TestUniqueSku:
    def test_base_used_when_free(self):
        assert generate_unique_sku("BISCUIT", "PARLE", 800, "GRAM", lambda sku: True) == "BISPAR800G"

    def test_first_free_suffix(self):
        taken = {"BISPAR800G", "BISPAR800G01"}
        sku = generate_unique_sku("BISCUIT", "PARLE", 800, "GRAM", lambda s: s not in taken)
        assert sku == "BISPAR800G02"

    def test_exhausted_suffixes_conflict(self):
        with pytest.raises(ConflictError):
            generate_unique_sku("BISCUIT", "PARLE", 800, "GRAM", lambda s: False)


@pytest.mark.parametrize(
    "weight,unit,expected",
    [
        (800, "GRAM", "800g"),
        (1500, "GRAM", "1.5kg"),
        (1, "KILOGRAM", "1kg"),
        (1, "LITER", "1L"),
        (500, "MILLILITER", "500ml"),
        (1, "PIECE", "1 piece"),
        (6, "PIECE", "6 pieces"),
    ],
)
def test_format_weight(weight, unit, expected):
    assert format_weight(weight, unit) == expected


class TestParseWeight:
    def test_parses_value_and_unit(self):
        assert parse_weight("1.5kg") == (1.5, "KILOGRAM")
        assert parse_weight("800 g") == (800.0, "GRAM")
        assert parse_weight("500ML") == (500.0, "MILLILITER")

    @pytest.mark.parametrize("bad", ["", "kg", "12", "1.5 stones", None])
    def test_rejects_bad_input(self, bad):
        with pytest.raises(ValidationError):
            parse_weight(bad)
