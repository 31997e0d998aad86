"""Unit normalization - free-text shelf units to one canonical form"""
import re
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Callable, List, Optional, Tuple

_NUMBER = r"(\d+(?:\.\d+)?)"

GRAMS_PATTERN = re.compile(rf"^{_NUMBER}\s*(?:grams?|g)$")
KILOGRAMS_PATTERN = re.compile(rf"^{_NUMBER}\s*(?:kilograms?|kilos?|kg)$")
MILLILITRES_PATTERN = re.compile(rf"^{_NUMBER}\s*ml$")
LITRES_PATTERN = re.compile(rf"^{_NUMBER}\s*(?:liters?|litres?|l)$")
OUNCES_PATTERN = re.compile(rf"^{_NUMBER}\s*(?:ounces?|oz)$")
PINTS_PATTERN = re.compile(rf"^{_NUMBER}\s*pints?$")
QUARTS_PATTERN = re.compile(rf"^{_NUMBER}\s*quarts?$")

OUNCE_IN_GRAMS = Decimal("28.35")
PINT_IN_MILLILITRES = Decimal("473.18")
QUART_IN_MILLILITRES = Decimal("946.35")

_TWO_PLACES = Decimal("0.01")

# Headroom over the quantity's own digits for scaling and rounding
_EXTRA_DIGITS = 10

# Literal spellings the patterns above do not cover
UNIT_ALIASES = {
    "1l": "1000 ml",
    "1 liter": "1000 ml",
    "1 litre": "1000 ml",
    "1 litro": "1000 ml",
    "medio litro": "500 ml",
    "1000ml": "1000 ml",
    "500ml": "500 ml",
    "250ml": "250 ml",
    "1kg": "1000 g",
    "1 kilogram": "1000 g",
    "1 kilo": "1000 g",
    "1/2 kg": "500 g",
    "medio kilo": "500 g",
    "500g": "500 g",
    "100g": "100 g",
    "60g": "60 g",
    "1oz": "28.35 g",
    "1 ounce": "28.35 g",
    "1 pint": "473.18 ml",
    "1 quart": "946.35 ml",
}


def _format_quantity(value: Decimal) -> str:
    """Render without exponent or trailing zeros: 1500, 56.7, 28.35."""
    return format(value.normalize(), "f")


def _scaled(factor: Decimal, suffix: str, rounded: bool = False) -> Callable[[Decimal], str]:
    def convert(quantity: Decimal) -> str:
        value = quantity * factor
        if rounded:
            value = value.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)
        return f"{_format_quantity(value)} {suffix}"
    return convert


# First match wins
_RULES: List[Tuple["re.Pattern[str]", Callable[[Decimal], str]]] = [
    (GRAMS_PATTERN, _scaled(Decimal(1), "g")),
    (KILOGRAMS_PATTERN, _scaled(Decimal(1000), "g")),
    (MILLILITRES_PATTERN, _scaled(Decimal(1), "ml")),
    (LITRES_PATTERN, _scaled(Decimal(1000), "ml")),
    (OUNCES_PATTERN, _scaled(OUNCE_IN_GRAMS, "g", rounded=True)),
    (PINTS_PATTERN, _scaled(PINT_IN_MILLILITRES, "ml", rounded=True)),
    (QUARTS_PATTERN, _scaled(QUART_IN_MILLILITRES, "ml", rounded=True)),
]


def normalize_unit(raw: Optional[str]) -> str:
    """
    Reduce a free-text unit expression to its canonical string.

    "1kg", "1000g" and "1 kilogram" all become "1000 g"; "1L" becomes
    "1000 ml". Unknown units come back trimmed and lower-cased. Empty or
    missing input yields "" and the caller decides whether that is an error.

    Canonical outputs re-parse to themselves, so normalizing twice is the
    same as normalizing once.
    """
    if not raw:
        return ""

    text = raw.strip().lower()
    if not text:
        return ""

    for pattern, convert in _RULES:
        match = pattern.match(text)
        if match:
            digits = match.group(1)
            with localcontext() as ctx:
                ctx.prec = len(digits) + _EXTRA_DIGITS
                return convert(Decimal(digits))

    return UNIT_ALIASES.get(text, text)


def is_canonical_unit(value: str) -> bool:
    return normalize_unit(value) == value
