"""
Prime Liquidator Core: Execution

Submits decisions to the venue with idempotency:
- Orders carry a deterministic client order id (the fingerprint) and are
  guarded by the in-memory OrderCache; a hit suppresses the submission.
- Conversions carry a fresh idempotency key per call and bypass the cache.
- DRY_RUN previews orders and logs conversions without placing anything.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Optional

from core.config import LiquidatorConfig
from core.decisions import (
    AssetOutcome,
    Convert,
    MarketOrder,
    OrderDecision,
    OutcomeStatus,
    Skip,
    TwapOrder,
)
from core.numeric import decimal_to_str, generate_fingerprint
from core.order_cache import OrderCache
from core.venue import (
    ORDER_SIDE_SELL,
    ORDER_TYPE_MARKET,
    ORDER_TYPE_TWAP,
    TIME_IN_FORCE_GOOD_UNTIL_TIME,
    TIME_IN_FORCE_IMMEDIATE_OR_CANCEL,
    VenueClient,
)

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def generate_client_order_id(product_id: str, side: str, order_type: str, time_in_force: str,
                             order_size: Decimal, holds: Decimal) -> str:
    """
    Deterministic client order id for an order.

    Holds are part of the key so a partial fill (which changes holds) is a
    new order opportunity rather than a duplicate.
    """
    return generate_fingerprint(
        product_id,
        side.upper(),
        order_type.upper(),
        time_in_force.upper(),
        decimal_to_str(order_size),
        decimal_to_str(holds),
    )


class OrderExecutor:
    """
    Venue submission guarded by the idempotency cache.

    Raises VenueCallError on venue failure; the cache is only written after a
    successful submission, so a failed order is retried on the next cycle.
    """

    def __init__(self, venue: VenueClient, cache: OrderCache, config: LiquidatorConfig,
                 now: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.venue = venue
        self.cache = cache
        self.config = config
        self._now = now

    def submit(self, decision: OrderDecision) -> AssetOutcome:
        if isinstance(decision, Skip):
            return AssetOutcome(symbol=decision.symbol, status=OutcomeStatus.SKIPPED, decision=decision)
        if isinstance(decision, Convert):
            return self._submit_conversion(decision)
        if isinstance(decision, TwapOrder):
            start = self._now()
            expiry = start + timedelta(seconds=self.config.twap_duration_seconds)
            return self._submit_order(
                decision,
                order_type=ORDER_TYPE_TWAP,
                time_in_force=TIME_IN_FORCE_GOOD_UNTIL_TIME,
                limit_price=decision.limit_price,
                start_time=start.strftime(TIMESTAMP_FORMAT),
                expiry_time=expiry.strftime(TIMESTAMP_FORMAT),
                ttl_seconds=self.config.twap_duration_seconds,
            )
        if isinstance(decision, MarketOrder):
            return self._submit_order(
                decision,
                order_type=ORDER_TYPE_MARKET,
                time_in_force=TIME_IN_FORCE_IMMEDIATE_OR_CANCEL,
                ttl_seconds=self.config.market_order_cache_ttl_seconds,
            )
        raise TypeError(f"Unsupported decision: {decision!r}")

    def _submit_conversion(self, decision: Convert) -> AssetOutcome:
        source = decision.source_wallet
        destination = decision.destination_wallet
        amount = decimal_to_str(decision.amount)

        if self.config.dry_run:
            logger.info(f"DRY_RUN: would convert {amount} {source.symbol.upper()} -> {destination.symbol.upper()}")
            return AssetOutcome(symbol=decision.symbol, status=OutcomeStatus.DRY_RUN, decision=decision)

        logger.info(f"Converting {source.symbol.upper()} to {destination.symbol.upper()} - amount: {amount}")
        activity_id = self.venue.create_conversion(
            source_wallet_id=source.id,
            destination_wallet_id=destination.id,
            source_symbol=source.symbol.upper(),
            destination_symbol=destination.symbol.upper(),
            amount=amount,
            idempotency_key=str(uuid.uuid4()),
            timeout=self.config.call_timeout_seconds,
        )
        logger.info(
            f"Convert request submitted - {source.symbol.upper()} to {destination.symbol.upper()} "
            f"- amount: {amount} - activity id: {activity_id}"
        )
        return AssetOutcome(symbol=decision.symbol, status=OutcomeStatus.SUBMITTED,
                            decision=decision, reference=activity_id)

    def _submit_order(self, decision, *, order_type: str, time_in_force: str, ttl_seconds: float,
                      limit_price: Optional[Decimal] = None, start_time: Optional[str] = None,
                      expiry_time: Optional[str] = None) -> AssetOutcome:
        client_order_id = generate_client_order_id(
            decision.product_id, ORDER_SIDE_SELL, order_type, time_in_force,
            decision.order_size, decision.holds,
        )

        existing = self.cache.get(client_order_id)
        if existing is not None:
            logger.debug(
                f"Suppressing duplicate {order_type} for {decision.product_id} "
                f"(client order id {client_order_id} -> order {existing})"
            )
            return AssetOutcome(symbol=decision.symbol, status=OutcomeStatus.SUPPRESSED,
                                decision=decision, reference=existing)

        order_args = dict(
            product_id=decision.product_id,
            side=ORDER_SIDE_SELL,
            order_type=order_type,
            client_order_id=client_order_id,
            base_quantity=decimal_to_str(decision.order_size),
            limit_price=decimal_to_str(limit_price) if limit_price is not None else None,
            time_in_force=time_in_force,
            start_time=start_time,
            expiry_time=expiry_time,
            timeout=self.config.call_timeout_seconds,
        )

        if self.config.dry_run:
            preview = self.venue.preview_order(**order_args)
            logger.info(
                f"DRY_RUN: {order_type} preview {decision.product_id} size={order_args['base_quantity']} "
                f"value={decision.value} commission={preview.get('commission')} "
                f"slippage={preview.get('slippage')} total={preview.get('order_total')}"
            )
            return AssetOutcome(symbol=decision.symbol, status=OutcomeStatus.DRY_RUN, decision=decision)

        logger.info(
            f"Create {order_type} order request - asset: {decision.symbol} - value: {decision.value} "
            f"- order size: {order_args['base_quantity']} - holds: {decision.holds}"
        )
        order_id = self.venue.create_order(**order_args)
        self.cache.set(client_order_id, order_id, ttl_seconds=ttl_seconds)
        logger.info(f"Order created - id: {order_id} - client order id: {client_order_id}")

        return AssetOutcome(symbol=decision.symbol, status=OutcomeStatus.SUBMITTED,
                            decision=decision, reference=order_id)
