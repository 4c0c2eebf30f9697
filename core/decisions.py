"""
Prime Liquidator Core: Decisions and Outcomes

An OrderDecision is what the engine wants to do with one balance this cycle;
an AssetOutcome is what actually happened to it. Neither is persisted.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from core.models import Wallet


class SkipReason(Enum):
    FIAT = "fiat"
    ZERO_AMOUNT = "zero_amount"
    ZERO_CONVERSION_AMOUNT = "zero_conversion_amount"
    ZERO_ORDER_SIZE = "zero_order_size"
    ZERO_NOTIONAL = "zero_notional"
    BELOW_QUOTE_MIN = "below_quote_min"


@dataclass(frozen=True)
class Skip:
    symbol: str
    reason: SkipReason


@dataclass(frozen=True)
class Convert:
    """Direct stablecoin -> fiat conversion of the full (rounded) amount."""
    symbol: str
    source_wallet: Wallet
    destination_wallet: Wallet
    amount: Decimal


@dataclass(frozen=True)
class MarketOrder:
    symbol: str
    product_id: str
    order_size: Decimal
    value: Decimal
    holds: Decimal


@dataclass(frozen=True)
class TwapOrder:
    symbol: str
    product_id: str
    order_size: Decimal
    value: Decimal
    holds: Decimal
    limit_price: Decimal


OrderDecision = Union[Skip, Convert, MarketOrder, TwapOrder]


class OutcomeStatus(Enum):
    SKIPPED = "skipped"        # no economically or venue-valid action
    SUBMITTED = "submitted"    # venue accepted the order/conversion
    SUPPRESSED = "suppressed"  # equivalent order already live (cache hit)
    DRY_RUN = "dry_run"        # previewed/logged only
    FAILED = "failed"


class ErrorKind(Enum):
    TRANSIENT = "transient"  # network/timeout/non-2xx; next cycle retries
    DATA = "data"            # malformed numbers, missing wallet/product


@dataclass
class AssetOutcome:
    """Result of processing one balance"""
    symbol: str
    status: OutcomeStatus
    decision: Optional[OrderDecision] = None
    reference: Optional[str] = None  # venue order id or conversion activity id
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @property
    def failed(self) -> bool:
        return self.status is OutcomeStatus.FAILED

    @classmethod
    def failure(cls, symbol: str, kind: ErrorKind, error: Exception,
                decision: Optional[OrderDecision] = None) -> "AssetOutcome":
        return cls(symbol=symbol, status=OutcomeStatus.FAILED, decision=decision,
                   error=str(error), error_kind=kind)
