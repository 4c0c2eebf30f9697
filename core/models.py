"""
Prime Liquidator Core: Data Model

Balances, wallets and products as returned by the Prime API, plus the
per-cycle Snapshot that ties them together. Numeric fields stay as the
venue's decimal strings; the `*_num()` accessors parse them on demand.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from core.numeric import parse_decimal


@dataclass(frozen=True)
class Balance:
    """One asset's position in the trading sub-account."""
    symbol: str
    amount: str
    holds: str = "0"
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "Balance":
        known = {"symbol", "amount", "holds"}
        return cls(
            symbol=str(payload.get("symbol", "")),
            amount=payload.get("amount"),
            holds=payload.get("holds") or "0",
            extra={k: v for k, v in payload.items() if k not in known},
        )

    def amount_num(self) -> Decimal:
        return parse_decimal(self.amount, "asset amount", self.symbol)

    def holds_num(self) -> Decimal:
        return parse_decimal(self.holds, "asset holds", self.symbol)


@dataclass(frozen=True)
class Wallet:
    id: str
    symbol: str
    type: str = "TRADING"
    name: str = ""

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "Wallet":
        return cls(
            id=str(payload.get("id", "")),
            symbol=str(payload.get("symbol", "")),
            type=str(payload.get("type", "")),
            name=str(payload.get("name", "")),
        )


@dataclass(frozen=True)
class Product:
    """Trading pair with the exchange's quantization and notional bounds."""
    id: str
    base_min_size: str
    base_max_size: str
    base_increment: str
    quote_min_size: str
    quote_max_size: str
    quote_increment: str

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "Product":
        return cls(
            id=str(payload.get("id", "")),
            base_min_size=payload.get("base_min_size"),
            base_max_size=payload.get("base_max_size"),
            base_increment=payload.get("base_increment"),
            quote_min_size=payload.get("quote_min_size"),
            quote_max_size=payload.get("quote_max_size"),
            quote_increment=payload.get("quote_increment"),
        )

    def base_min_size_num(self) -> Decimal:
        return parse_decimal(self.base_min_size, "base min", self.id)

    def base_max_size_num(self) -> Decimal:
        return parse_decimal(self.base_max_size, "base max", self.id)

    def base_increment_num(self) -> Decimal:
        return parse_decimal(self.base_increment, "base increment", self.id)

    def quote_min_size_num(self) -> Decimal:
        return parse_decimal(self.quote_min_size, "quote min", self.id)

    def quote_max_size_num(self) -> Decimal:
        return parse_decimal(self.quote_max_size, "quote max", self.id)

    def quote_increment_num(self) -> Decimal:
        return parse_decimal(self.quote_increment, "quote increment", self.id)


class WalletLookup(Mapping[str, Wallet]):
    """Wallets keyed by upper-cased symbol; lookups are case-insensitive."""

    def __init__(self, wallets: Iterable[Wallet] = ()):
        self._wallets: Dict[str, Wallet] = {}
        for wallet in wallets:
            self.add(wallet)

    def add(self, wallet: Wallet) -> None:
        self._wallets[wallet.symbol.upper()] = wallet

    def lookup(self, symbol: str) -> Optional[Wallet]:
        return self._wallets.get(symbol.upper())

    def __getitem__(self, symbol: str) -> Wallet:
        return self._wallets[symbol.upper()]

    def __iter__(self) -> Iterator[str]:
        return iter(self._wallets)

    def __len__(self) -> int:
        return len(self._wallets)


class ProductLookup(Mapping[str, Product]):
    """Products keyed by product id (e.g. "BTC-USD")."""

    def __init__(self, products: Iterable[Product] = ()):
        self._products: Dict[str, Product] = {}
        for product in products:
            self.add(product)

    def add(self, product: Product) -> None:
        self._products[product.id] = product

    def lookup(self, product_id: str) -> Optional[Product]:
        return self._products.get(product_id)

    def __getitem__(self, product_id: str) -> Product:
        return self._products[product_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._products)

    def __len__(self) -> int:
        return len(self._products)


@dataclass(frozen=True)
class Snapshot:
    """
    Point-in-time view of wallets, products and balances for one poll cycle.

    All three collections come from the same cycle and are consumed read-only.
    """
    wallets: WalletLookup
    products: ProductLookup
    balances: Tuple[Balance, ...]
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def build(cls, wallets: Iterable[Wallet], products: Iterable[Product],
              balances: List[Balance]) -> "Snapshot":
        return cls(
            wallets=WalletLookup(wallets),
            products=ProductLookup(products),
            balances=tuple(balances),
        )
