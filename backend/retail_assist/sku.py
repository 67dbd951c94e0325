# Overview: SKU generation and weight formatting helpers for the product catalog.

"""
SKU format: [TYPE][BRAND][WEIGHT][UNIT][SEQUENCE]

    BISPAR800G    Parle-G 800g (Biscuit, Parle, 800 Grams)
    SUGTAT1K      Tata Sugar 1kg (Sugar, Tata, 1 Kilogram)
    OILFOR1_5L    Fortune Oil 1.5L (decimal point becomes "_")
    BISPAR800G01  second product with the same base SKU

The sequence suffix is only added when the base SKU is already taken.
"""

from __future__ import annotations

import re
from typing import Callable

from .errors import ConflictError, ValidationError


PRODUCT_TYPE_CODES = {
    "BISCUIT": "BIS",
    "SUGAR": "SUG",
    "SALT": "SAL",
    "NOODLES": "NOO",
    "BREAD": "BRE",
    "OIL": "OIL",
    "RICE": "RIC",
    "FLOUR": "FLO",
    "SPICE": "SPI",
    "DAIRY": "DAI",
}

BRAND_CODES = {
    "PARLE": "PAR",
    "TATA": "TAT",
    "MAGGI": "MAG",
    "BRITANNIA": "BRI",
    "FORTUNE": "FOR",
    "AASHIRVAAD": "AAS",
    "AMUL": "AMU",
    "EVEREST": "EVE",
    "PATANJALI": "PAT",
    "GENERIC": "GEN",
}

UNIT_CODES = {
    "GRAM": "G",
    "KILOGRAM": "K",
    "LITER": "L",
    "MILLILITER": "M",
    "PIECE": "P",
}

UNIT_ALIASES = {
    "g": "GRAM", "gram": "GRAM", "grams": "GRAM",
    "kg": "KILOGRAM", "kilogram": "KILOGRAM", "kilograms": "KILOGRAM",
    "l": "LITER", "liter": "LITER", "liters": "LITER", "litre": "LITER", "litres": "LITER",
    "ml": "MILLILITER", "milliliter": "MILLILITER", "milliliters": "MILLILITER",
    "millilitre": "MILLILITER", "millilitres": "MILLILITER",
    "pc": "PIECE", "piece": "PIECE", "pieces": "PIECE",
}

MAX_SKU_SEQUENCE = 99

_WEIGHT_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*([a-z]+)$")


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def generate_base_sku(product_type: str, brand: str, weight: float, weight_unit: str) -> str:
    try:
        type_code = PRODUCT_TYPE_CODES[product_type]
        brand_code = BRAND_CODES[brand]
        unit_code = UNIT_CODES[weight_unit]
    except KeyError as exc:
        raise ValidationError(f"Unknown product attribute: {exc.args[0]}")

    return f"{type_code}{brand_code}{_format_number(weight).replace('.', '_')}{unit_code}"


def generate_unique_sku(
    product_type: str,
    brand: str,
    weight: float,
    weight_unit: str,
    is_unique: Callable[[str], bool],
) -> str:
    """
    Return the base SKU, or the first free BASE01..BASE99 variant.

    Raises ConflictError when all 99 suffixes are taken.
    """
    base = generate_base_sku(product_type, brand, weight, weight_unit)
    if is_unique(base):
        return base

    for sequence in range(1, MAX_SKU_SEQUENCE + 1):
        candidate = f"{base}{sequence:02d}"
        if is_unique(candidate):
            return candidate

    raise ConflictError(
        "Unable to generate unique SKU - too many similar products",
        details={"base_sku": base},
    )


def format_weight(weight: float, unit: str) -> str:
    if unit == "GRAM":
        return f"{_format_number(weight / 1000)}kg" if weight >= 1000 else f"{_format_number(weight)}g"
    if unit == "KILOGRAM":
        return f"{_format_number(weight)}kg"
    if unit == "LITER":
        return f"{_format_number(weight)}L"
    if unit == "MILLILITER":
        return f"{_format_number(weight / 1000)}L" if weight >= 1000 else f"{_format_number(weight)}ml"
    if unit == "PIECE":
        return f"{_format_number(weight)} {'piece' if weight == 1 else 'pieces'}"
    return f"{_format_number(weight)} {unit.lower()}"


def parse_weight(weight_str: str) -> tuple[float, str]:
    """
    Parse a display weight into (weight, unit).

    "800g" -> (800.0, "GRAM"); "1.5kg" -> (1.5, "KILOGRAM")
    """
    if not isinstance(weight_str, str):
        raise ValidationError("weightString must be a string such as '800g'")

    match = _WEIGHT_RE.match(weight_str.lower().strip())
    if not match:
        raise ValidationError(f"Invalid weight format: {weight_str}")

    value, unit_str = match.groups()
    unit = UNIT_ALIASES.get(unit_str)
    if unit is None:
        raise ValidationError(f"Unknown unit: {unit_str}")

    return float(value), unit
