"""
Prime Liquidator Core: Venue Interfaces

Abstract contracts for the two remote collaborators: the trading venue
(wallets, products, balances, conversions, orders) and the spot price feed.
`PrimeClient` and `ExchangePriceClient` are the network-backed
implementations; tests use in-memory fakes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Generic, List, Optional, TypeVar

from core.models import Balance, Product, Wallet

T = TypeVar("T")

ORDER_SIDE_SELL = "SELL"

ORDER_TYPE_MARKET = "MARKET"
ORDER_TYPE_TWAP = "TWAP"

TIME_IN_FORCE_GOOD_UNTIL_TIME = "GOOD_UNTIL_DATE_TIME"
TIME_IN_FORCE_IMMEDIATE_OR_CANCEL = "IMMEDIATE_OR_CANCEL"

WALLET_TYPE_TRADING = "TRADING"
BALANCE_TYPE_TRADING = "TRADING_BALANCES"


@dataclass
class Page(Generic[T]):
    """One page of a cursor-paginated list call."""
    items: List[T] = field(default_factory=list)
    next_cursor: Optional[str] = None
    has_next: bool = False


class VenueClient(ABC):
    """Trading venue operations the liquidator depends on. Every call is bounded by `timeout` seconds."""

    @abstractmethod
    def list_trading_wallets(self, cursor: Optional[str] = None, *, timeout: float) -> Page[Wallet]:
        ...

    @abstractmethod
    def list_products(self, cursor: Optional[str] = None, *, timeout: float) -> Page[Product]:
        ...

    @abstractmethod
    def list_trading_balances(self, *, timeout: float) -> List[Balance]:
        ...

    @abstractmethod
    def create_conversion(self, source_wallet_id: str, destination_wallet_id: str,
                          source_symbol: str, destination_symbol: str, amount: str,
                          idempotency_key: str, *, timeout: float) -> str:
        """Submit a stablecoin conversion. Returns the venue activity id."""

    @abstractmethod
    def create_order(self, product_id: str, side: str, order_type: str, client_order_id: str,
                     base_quantity: str, limit_price: Optional[str] = None,
                     time_in_force: Optional[str] = None, start_time: Optional[str] = None,
                     expiry_time: Optional[str] = None, *, timeout: float) -> str:
        """Submit an order. Returns the venue order id."""

    @abstractmethod
    def preview_order(self, product_id: str, side: str, order_type: str, client_order_id: str,
                      base_quantity: str, limit_price: Optional[str] = None,
                      time_in_force: Optional[str] = None, start_time: Optional[str] = None,
                      expiry_time: Optional[str] = None, *, timeout: float) -> Dict[str, Any]:
        """Dry-run an order (commission, slippage, order total) without placing it."""


class PriceClient(ABC):
    """Spot price source."""

    @abstractmethod
    def current_price(self, product_id: str, *, timeout: float) -> Decimal:
        ...
