"""
Prime Liquidator Core: Numeric Utilities

Exact decimal parsing, floor quantization against exchange increments and
idempotency fingerprints. Everything here works on `Decimal`; floats never
touch order sizes or prices.
"""

import hashlib
from decimal import Decimal, InvalidOperation, ROUND_FLOOR
from typing import Optional

from core.exceptions import AssetDataError

ZERO = Decimal(0)


def parse_decimal(value: Optional[str], field: str, owner: str) -> Decimal:
    """
    Parse a venue decimal string.

    Args:
        value: Raw string from the API (e.g. "1.23456789")
        field: Field name used in the error message
        owner: Symbol or product id the value belongs to

    Raises:
        AssetDataError: If the value is missing, malformed or not finite
    """
    if value is None or str(value).strip() == "":
        raise AssetDataError(f"missing {field} for {owner}")
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise AssetDataError(f"invalid {field}: {value!r} - {owner}") from exc
    if not parsed.is_finite():
        raise AssetDataError(f"invalid {field}: {value!r} - {owner}")
    return parsed


def floor_quantize(value: Decimal, increment: Decimal) -> Decimal:
    """
    Round value down to the nearest multiple of increment.

    A value that is already a multiple is returned unchanged, so quantizing
    twice yields the same result.
    """
    if increment <= 0:
        raise ValueError(f"increment must be positive, got {increment}")
    if value % increment == 0:
        return value
    steps = (value / increment).to_integral_value(rounding=ROUND_FLOOR)
    return steps * increment


def round_floor(value: Decimal, digits: int) -> Decimal:
    """Round down to a fixed number of decimal places (500.004 -> 500.00 at 2 digits)."""
    exponent = Decimal(1).scaleb(-digits)
    return value.quantize(exponent, rounding=ROUND_FLOOR)


def decimal_to_str(value: Decimal) -> str:
    """Plain, normalized notation: Decimal('1.50') -> '1.5', Decimal('1E+2') -> '100'."""
    if value == 0:
        return "0"
    return format(value.normalize(), "f")


def generate_fingerprint(*params: str) -> str:
    """
    Deterministic idempotency key over an ordered tuple of strings.

    Same ordered tuple, same key. The result is used as the venue client
    order id, so it stays a 32-char hex digest.
    """
    joined = "-".join(params)
    return hashlib.md5(joined.encode("utf-8")).hexdigest()
