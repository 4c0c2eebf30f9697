"""
Tests for idempotent order submission.

Verifies:
1. Client order ids are deterministic over (product, side, type, tif, size, holds)
2. A second equivalent submission inside the TTL is suppressed
3. Failed submissions never populate the cache
4. DRY_RUN previews orders and never places or converts
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from core.decisions import Convert, MarketOrder, OutcomeStatus, Skip, SkipReason, TwapOrder
from core.exceptions import VenueCallError
from core.execution import OrderExecutor, generate_client_order_id
from tests.helpers import make_config, make_wallet

FIXED_NOW = datetime(2024, 1, 15, 10, 30, 0, tzinfo=timezone.utc)


def twap_decision(holds="0"):
    return TwapOrder(symbol="BTC", product_id="BTC-USD", order_size=Decimal("1.23456"),
                     value=Decimal("61728"), holds=Decimal(holds), limit_price=Decimal("45000.00"))


def market_decision():
    return MarketOrder(symbol="ETH", product_id="ETH-USD", order_size=Decimal("0.03"),
                       value=Decimal("90"), holds=Decimal("0"))


@pytest.fixture
def executor(venue, cache):
    return OrderExecutor(venue, cache, make_config(), now=lambda: FIXED_NOW)


class TestClientOrderIds:
    """Deterministic client order id generation"""

    def test_same_inputs_same_id(self):
        args = ("BTC-USD", "SELL", "TWAP", "GOOD_UNTIL_DATE_TIME", Decimal("1.5"), Decimal("0"))

        assert generate_client_order_id(*args) == generate_client_order_id(*args)

    def test_id_is_md5_hex(self):
        coid = generate_client_order_id("BTC-USD", "SELL", "MARKET", "IMMEDIATE_OR_CANCEL",
                                        Decimal("1"), Decimal("0"))

        assert len(coid) == 32
        int(coid, 16)

    def test_equivalent_decimals_same_id(self):
        """1.50 and 1.5 are the same size"""
        a = generate_client_order_id("BTC-USD", "SELL", "TWAP", "GOOD_UNTIL_DATE_TIME",
                                     Decimal("1.50"), Decimal("0.0"))
        b = generate_client_order_id("BTC-USD", "SELL", "TWAP", "GOOD_UNTIL_DATE_TIME",
                                     Decimal("1.5"), Decimal("0"))

        assert a == b

    def test_holds_change_after_partial_fill_changes_id(self):
        before = generate_client_order_id("BTC-USD", "SELL", "TWAP", "GOOD_UNTIL_DATE_TIME",
                                          Decimal("1.5"), Decimal("0"))
        after = generate_client_order_id("BTC-USD", "SELL", "TWAP", "GOOD_UNTIL_DATE_TIME",
                                         Decimal("1.5"), Decimal("0.25"))

        assert before != after

    @pytest.mark.parametrize("field_index,replacement", [
        (0, "ETH-USD"),
        (1, "BUY"),
        (2, "MARKET"),
        (3, "IMMEDIATE_OR_CANCEL"),
        (4, Decimal("1.4")),
    ])
    def test_any_field_changes_id(self, field_index, replacement):
        base = ["BTC-USD", "SELL", "TWAP", "GOOD_UNTIL_DATE_TIME", Decimal("1.5"), Decimal("0")]
        changed = list(base)
        changed[field_index] = replacement

        assert generate_client_order_id(*base) != generate_client_order_id(*changed)


class TestOrderSubmission:

    def test_twap_order_shape(self, executor, venue):
        outcome = executor.submit(twap_decision())

        assert outcome.status is OutcomeStatus.SUBMITTED
        assert outcome.reference == "order-1"
        order = venue.orders[0]
        assert order["side"] == "SELL"
        assert order["order_type"] == "TWAP"
        assert order["time_in_force"] == "GOOD_UNTIL_DATE_TIME"
        assert order["base_quantity"] == "1.23456"
        assert order["limit_price"] == "45000"
        assert order["start_time"] == "2024-01-15T10:30:00Z"
        assert order["expiry_time"] == "2024-01-15T11:30:00Z"
        assert order["timeout"] == 10.0
        assert order["client_order_id"] == generate_client_order_id(
            "BTC-USD", "SELL", "TWAP", "GOOD_UNTIL_DATE_TIME", Decimal("1.23456"), Decimal("0"))

    def test_market_order_shape(self, executor, venue):
        outcome = executor.submit(market_decision())

        assert outcome.status is OutcomeStatus.SUBMITTED
        order = venue.orders[0]
        assert order["order_type"] == "MARKET"
        assert order["time_in_force"] == "IMMEDIATE_OR_CANCEL"
        assert order["limit_price"] is None
        assert order["start_time"] is None

    def test_second_submission_suppressed(self, executor, venue, cache):
        """Scenario E: an unchanged decision on the next cycle makes no venue call"""
        first = executor.submit(twap_decision())
        second = executor.submit(twap_decision())

        assert first.status is OutcomeStatus.SUBMITTED
        assert second.status is OutcomeStatus.SUPPRESSED
        assert second.reference == first.reference
        assert venue.call_names() == ["create_order"]
        assert len(cache) == 1

    def test_changed_holds_resubmits(self, executor, venue):
        executor.submit(twap_decision(holds="0"))
        outcome = executor.submit(twap_decision(holds="0.5"))

        assert outcome.status is OutcomeStatus.SUBMITTED
        assert len(venue.orders) == 2

    def test_twap_entry_expires_with_twap_duration(self, executor, venue, clock):
        executor.submit(twap_decision())
        clock.advance(3599)
        assert executor.submit(twap_decision()).status is OutcomeStatus.SUPPRESSED

        clock.advance(2)
        assert executor.submit(twap_decision()).status is OutcomeStatus.SUBMITTED
        assert len(venue.orders) == 2

    def test_market_entry_uses_market_ttl(self, executor, venue, clock):
        executor.submit(market_decision())
        clock.advance(301)

        assert executor.submit(market_decision()).status is OutcomeStatus.SUBMITTED
        assert len(venue.orders) == 2

    def test_failure_is_not_cached(self, executor, venue, cache):
        venue.fail_orders = VenueCallError("POST /order", "timeout")

        with pytest.raises(VenueCallError):
            executor.submit(twap_decision())
        assert len(cache) == 0

        venue.fail_orders = None
        assert executor.submit(twap_decision()).status is OutcomeStatus.SUBMITTED

    def test_skip_passes_through(self, executor, venue):
        outcome = executor.submit(Skip("BTC", SkipReason.ZERO_ORDER_SIZE))

        assert outcome.status is OutcomeStatus.SKIPPED
        assert venue.calls == []


class TestConversions:

    def _convert(self, amount="500.00"):
        return Convert(symbol="USDC", source_wallet=make_wallet("USDC"),
                       destination_wallet=make_wallet("USD"), amount=Decimal(amount))

    def test_conversion_bypasses_cache(self, executor, venue, cache):
        executor.submit(self._convert())
        executor.submit(self._convert())

        assert len(venue.conversions) == 2
        assert len(cache) == 0

    def test_fresh_idempotency_key_each_call(self, executor, venue):
        executor.submit(self._convert())
        executor.submit(self._convert())

        keys = [c["idempotency_key"] for c in venue.conversions]
        assert keys[0] != keys[1]

    def test_conversion_request(self, executor, venue):
        outcome = executor.submit(self._convert("12.34"))

        conversion = venue.conversions[0]
        assert conversion["source_symbol"] == "USDC"
        assert conversion["destination_symbol"] == "USD"
        assert conversion["amount"] == "12.34"
        assert outcome.reference == "activity-1"


class TestDryRun:

    @pytest.fixture
    def dry_executor(self, venue, cache):
        return OrderExecutor(venue, cache, make_config(mode="DRY_RUN"), now=lambda: FIXED_NOW)

    def test_orders_are_previewed(self, dry_executor, venue, cache):
        outcome = dry_executor.submit(twap_decision())

        assert outcome.status is OutcomeStatus.DRY_RUN
        assert venue.orders == []
        assert venue.previews[0]["order_type"] == "TWAP"
        assert len(cache) == 0

    def test_conversions_are_only_logged(self, dry_executor, venue):
        decision = Convert(symbol="USDC", source_wallet=make_wallet("USDC"),
                           destination_wallet=make_wallet("USD"), amount=Decimal("10"))

        outcome = dry_executor.submit(decision)

        assert outcome.status is OutcomeStatus.DRY_RUN
        assert venue.calls == []
