"""Symbol normalization and fiat classification utilities.

Single source of truth for how currency symbols are compared: the Prime API
returns symbols in mixed case (`usdc`, `BTC`), configuration may list them in
either, and product ids are always `BASE-QUOTE` in upper case.
"""

from __future__ import annotations

from typing import FrozenSet, Iterable, Optional, Union

# Fiat is the settlement target, never an asset to liquidate.
FIAT_SYMBOLS: FrozenSet[str] = frozenset({"USD", "EUR"})


def normalize_currency(symbol: Optional[str]) -> str:
    """Return the canonical upper-case ticker (`" usdc "` -> `"USDC"`)."""

    if not symbol:
        return ""
    return str(symbol).strip().upper()


def is_fiat(symbol: Optional[str], extra: Iterable[str] = ()) -> bool:
    """True if symbol is a fiat currency (case-insensitive)."""

    ticker = normalize_currency(symbol)
    if not ticker:
        return False
    return ticker in FIAT_SYMBOLS or ticker in {normalize_currency(s) for s in extra}


def product_id_for(symbol: str, fiat_symbol: str) -> str:
    """Trading pair id for selling `symbol` into `fiat_symbol` (e.g. `btc`, `usd` -> `BTC-USD`)."""

    return f"{normalize_currency(symbol)}-{normalize_currency(fiat_symbol)}"


def parse_symbol_list(value: Union[str, Iterable[str], None]) -> FrozenSet[str]:
    """Normalize a comma-separated string or iterable of symbols into a set."""

    if value is None:
        return frozenset()
    items = value.split(",") if isinstance(value, str) else value
    return frozenset(t for t in (normalize_currency(i) for i in items) if t)


__all__ = [
    "FIAT_SYMBOLS",
    "normalize_currency",
    "is_fiat",
    "product_id_for",
    "parse_symbol_list",
]
