"""Tests for snapshot acquisition and pagination draining."""

import pytest

from core.exceptions import SnapshotUnavailable, VenueCallError
from core.venue import Page
from core.snapshot import fetch_snapshot
from tests.helpers import FakeVenue, make_balance, make_product, make_wallet


def test_drains_all_pages():
    wallets = [make_wallet(f"C{i}") for i in range(7)]
    products = [make_product(f"C{i}-USD") for i in range(5)]
    venue = FakeVenue(wallets=wallets, products=products,
                      balances=[make_balance("C1", "1")], page_size=2)

    snapshot = fetch_snapshot(venue, timeout=3.0)

    assert len(snapshot.wallets) == 7
    assert len(snapshot.products) == 5
    assert snapshot.balances == (make_balance("C1", "1"),)
    assert venue.call_names().count("list_trading_wallets") == 4
    assert venue.call_names().count("list_products") == 3
    assert all(call.kwargs["timeout"] == 3.0 for call in venue.calls)


def test_cursors_are_followed_in_order():
    venue = FakeVenue(wallets=[make_wallet(f"C{i}") for i in range(5)], page_size=2)

    fetch_snapshot(venue, timeout=1.0)

    cursors = [c.kwargs["cursor"] for c in venue.calls if c.method == "list_trading_wallets"]
    assert cursors == [None, "2", "4"]


def test_wallet_lookup_is_case_insensitive():
    venue = FakeVenue(wallets=[make_wallet("usdc")])

    snapshot = fetch_snapshot(venue, timeout=1.0)

    assert snapshot.wallets.lookup("USDC").id == "wallet-usdc"


@pytest.mark.parametrize("failing", ["fail_wallets", "fail_products", "fail_balances"])
def test_any_failure_aborts_snapshot(failing):
    venue = FakeVenue(wallets=[make_wallet("USD")], products=[make_product()])
    setattr(venue, failing, VenueCallError("GET /x", "HTTP 503: unavailable", status_code=503))

    with pytest.raises(SnapshotUnavailable) as exc_info:
        fetch_snapshot(venue, timeout=1.0)

    assert isinstance(exc_info.value.original, VenueCallError)


def test_repeated_cursor_aborts_snapshot():
    class LoopingVenue(FakeVenue):
        def list_trading_wallets(self, cursor=None, *, timeout):
            return Page(items=[make_wallet("BTC")], next_cursor="same", has_next=True)

    with pytest.raises(SnapshotUnavailable, match="repeated pagination cursor"):
        fetch_snapshot(LoopingVenue(), timeout=1.0)
