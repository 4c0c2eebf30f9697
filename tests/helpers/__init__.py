"""Test helpers for the prime-liquidator test suite"""

from tests.helpers.fake_venue import (
    FakeClock,
    FakePriceClient,
    FakeVenue,
    make_balance,
    make_config,
    make_product,
    make_snapshot,
    make_wallet,
)

__all__ = [
    "FakeClock",
    "FakePriceClient",
    "FakeVenue",
    "make_balance",
    "make_config",
    "make_product",
    "make_snapshot",
    "make_wallet",
]
