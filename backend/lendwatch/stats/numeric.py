"""
Arbitrary-precision helpers for chain amounts.

Wei-scale values reach 10**30 and beyond, and the window keeps a running sum
of squares, so every statistics computation runs under NUMERIC_CONTEXT.
"""
from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Context, Decimal, InvalidOperation, localcontext
from typing import Union

NUMERIC_CONTEXT = Context(prec=100, rounding=ROUND_HALF_EVEN)

ETHER_DECIMALS = 18

Numeric = Union[int, str, Decimal]


def numeric_context():
    """Context manager switching to NUMERIC_CONTEXT."""
    return localcontext(NUMERIC_CONTEXT)


def to_decimal(value: Numeric) -> Decimal:
    """
    Convert a chain amount to Decimal without losing precision.

    Accepts ints, Decimals, decimal strings and 0x-prefixed hex strings.

    Raises:
        ValueError: For bools, floats, unparsable strings and non-finite values
    """
    if isinstance(value, bool):
        raise ValueError("Boolean is not a numeric amount")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, str):
        text = value.strip()
        try:
            if text.lower().startswith(("0x", "-0x")):
                result = Decimal(int(text, 16))
            else:
                result = Decimal(text)
        except (ValueError, InvalidOperation) as e:
            raise ValueError(f"Not a numeric amount: {value!r}") from e
    else:
        raise ValueError(f"Unsupported amount type: {type(value).__name__}")

    if not result.is_finite():
        raise ValueError(f"Amount must be finite: {value!r}")
    return result


def scale_amount(raw: Numeric, decimals: int) -> Decimal:
    """Divide a raw integer amount by 10**decimals."""
    with numeric_context():
        return to_decimal(raw) / (Decimal(10) ** int(decimals))


def format_units(raw: Numeric, decimals: int = ETHER_DECIMALS) -> str:
    """Plain string of a scaled amount, e.g. format_units(10**18) == '1'."""
    scaled = scale_amount(raw, decimals)
    with numeric_context():
        if scaled == scaled.to_integral_value():
            return str(int(scaled))
        return format(scaled.normalize(), "f")
