"""
Prime Liquidator Core: Decision Engine

Turns one balance from a snapshot into an OrderDecision:

1. Fiat is never liquidated
2. Zero balances are skipped
3. Stablecoins in the convert set are converted directly to fiat
4. Everything else is sold against `<SYMBOL>-<FIAT>`, sized to the product's
   exchange constraints, via TWAP when the hourly notional justifies it and
   MARKET otherwise

Decisions are then handed to the OrderExecutor. Failures are contained to the
asset being processed.
"""

import logging
from decimal import Decimal
from typing import Optional

from core.config import LiquidatorConfig
from core.decisions import (
    AssetOutcome,
    Convert,
    ErrorKind,
    MarketOrder,
    OrderDecision,
    Skip,
    SkipReason,
    TwapOrder,
)
from core.exceptions import AssetDataError, VenueCallError
from core.execution import OrderExecutor
from core.models import Balance, Product, Snapshot
from core.numeric import ZERO, floor_quantize, round_floor
from core.venue import PriceClient
from infra.symbols import is_fiat, normalize_currency, product_id_for

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = Decimal(3600)


def calculate_order_size(product: Product, amount: Decimal, holds: Decimal) -> Decimal:
    """
    Sellable base quantity for a balance under the product's size constraints.

    available = amount - holds. Above base_max_size the venue maximum is
    returned as is; below base_min_size it is unsellable (0); otherwise it is
    floored to base_increment.
    """
    available = amount - holds
    if available <= 0:
        return ZERO

    base_min = product.base_min_size_num()
    base_max = product.base_max_size_num()
    increment = product.base_increment_num()
    if increment <= 0:
        raise AssetDataError(f"invalid base increment: {product.base_increment!r} - {product.id}")

    if available > base_max:
        return base_max
    if available < base_min:
        return ZERO

    return floor_quantize(available, increment)


def meets_twap_requirements(value: Decimal, min_notional_per_hour: Decimal,
                            duration_seconds: float) -> bool:
    """True if spreading `value` over the TWAP window still clears the hourly notional floor."""
    hours = Decimal(str(duration_seconds)) / SECONDS_PER_HOUR
    if hours <= 0:
        return False
    return value / hours >= min_notional_per_hour


def calculate_twap_limit_price(product: Product, price: Decimal, max_discount: Decimal) -> Decimal:
    """Worst acceptable TWAP price: spot less the max discount, floored to quote_increment."""
    increment = product.quote_increment_num()
    if increment <= 0:
        raise AssetDataError(f"invalid quote increment: {product.quote_increment!r} - {product.id}")
    return floor_quantize(price - price * max_discount, increment)


class Liquidator:
    """
    Per-asset decision engine.

    Args:
        config: Resolved liquidator configuration
        prices: Spot price source
        executor: Submits decisions (cache guarded) to the venue
    """

    def __init__(self, config: LiquidatorConfig, prices: PriceClient, executor: OrderExecutor):
        self.config = config
        self.prices = prices
        self.executor = executor
        self.fiat_symbol = normalize_currency(config.fiat_currency_symbol)

    def decide(self, balance: Balance, snapshot: Snapshot) -> OrderDecision:
        """
        Decide what to do with one balance.

        Raises:
            AssetDataError: Malformed numbers, missing wallet or product
            VenueCallError: Price lookup failed
        """
        symbol = normalize_currency(balance.symbol)

        if is_fiat(symbol, extra=(self.fiat_symbol,)):
            logger.debug(f"Skipping fiat balance {symbol}")
            return Skip(symbol, SkipReason.FIAT)

        amount = balance.amount_num()
        if amount == 0:
            logger.debug(f"Skipping {symbol}: zero balance")
            return Skip(symbol, SkipReason.ZERO_AMOUNT)

        if symbol in self.config.convert_symbols:
            return self._decide_conversion(symbol, amount, snapshot)

        product_id = product_id_for(symbol, self.fiat_symbol)
        price = self.prices.current_price(product_id, timeout=self.config.call_timeout_seconds)

        product = snapshot.products.lookup(product_id)
        if product is None:
            raise AssetDataError(f"unknown product id: {product_id}")

        holds = balance.holds_num()
        order_size = calculate_order_size(product, amount, holds)
        if order_size == 0:
            logger.debug(f"Skipping {symbol}: order size is zero (amount={amount}, holds={holds})")
            return Skip(symbol, SkipReason.ZERO_ORDER_SIZE)

        value = price * order_size
        if value == 0:
            logger.debug(f"Skipping {symbol}: zero notional at price {price}")
            return Skip(symbol, SkipReason.ZERO_NOTIONAL)

        quote_min = product.quote_min_size_num()
        if value < quote_min:
            logger.debug(f"Skipping {symbol}: value {value} below quote min {quote_min}")
            return Skip(symbol, SkipReason.BELOW_QUOTE_MIN)

        if meets_twap_requirements(value, self.config.twap_min_notional_per_hour,
                                   self.config.twap_duration_seconds):
            limit_price = calculate_twap_limit_price(product, price, self.config.twap_max_discount_percent)
            return TwapOrder(symbol=symbol, product_id=product_id, order_size=order_size,
                             value=value, holds=holds, limit_price=limit_price)

        return MarketOrder(symbol=symbol, product_id=product_id, order_size=order_size,
                           value=value, holds=holds)

    def _decide_conversion(self, symbol: str, amount: Decimal, snapshot: Snapshot) -> OrderDecision:
        fiat_wallet = snapshot.wallets.lookup(self.fiat_symbol)
        if fiat_wallet is None:
            raise AssetDataError(f"fiat wallet not found: {self.fiat_symbol}")

        wallet = snapshot.wallets.lookup(symbol)
        if wallet is None:
            raise AssetDataError(f"wallet not found: {symbol}")

        rounded = round_floor(amount, self.config.stablecoin_fiat_digits)
        if rounded == 0:
            logger.debug(f"Skipping {symbol}: {amount} rounds to zero for conversion")
            return Skip(symbol, SkipReason.ZERO_CONVERSION_AMOUNT)

        return Convert(symbol=symbol, source_wallet=wallet, destination_wallet=fiat_wallet, amount=rounded)

    def process_asset(self, balance: Balance, snapshot: Snapshot) -> AssetOutcome:
        """Decide and submit for one balance; errors come back in the outcome."""
        symbol = normalize_currency(balance.symbol)
        decision: Optional[OrderDecision] = None
        try:
            decision = self.decide(balance, snapshot)
            return self.executor.submit(decision)
        except VenueCallError as e:
            logger.warning(f"Transient failure processing {symbol}: {e}")
            return AssetOutcome.failure(symbol, ErrorKind.TRANSIENT, e, decision)
        except AssetDataError as e:
            logger.error(f"Data error processing {symbol}: {e}")
            return AssetOutcome.failure(symbol, ErrorKind.DATA, e, decision)
