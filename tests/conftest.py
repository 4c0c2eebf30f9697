"""
Pytest configuration and fixtures for prime-liquidator tests.

This conftest.py provides shared fixtures for all tests.
"""
import pytest

from core.order_cache import OrderCache
from tests.helpers.fake_venue import (
    FakeClock,
    FakePriceClient,
    FakeVenue,
    make_config,
    make_product,
    make_wallet,
)


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return OrderCache(ttl_seconds=3600, max_size=1000, clock=clock)


@pytest.fixture
def venue():
    """Venue with USD/USDC/BTC trading wallets and a BTC-USD product"""
    return FakeVenue(
        wallets=[make_wallet("USD"), make_wallet("USDC"), make_wallet("BTC")],
        products=[make_product("BTC-USD")],
    )


@pytest.fixture
def prices():
    return FakePriceClient({"BTC-USD": "50000", "ETH-USD": "3000"})


@pytest.fixture(autouse=True)
def no_credentials(monkeypatch):
    """Never let a developer's real Prime credentials leak into a test run"""
    monkeypatch.delenv("PRIME_CREDENTIALS", raising=False)
    monkeypatch.delenv("PRIME_CREDENTIALS_FILE", raising=False)
