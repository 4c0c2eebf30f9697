"""
Prime Liquidator Core: Spot Price Feed (Coinbase Exchange)

Last trade price for a product from the public Exchange ticker endpoint.
"""

import logging
import os
from decimal import Decimal, InvalidOperation
from typing import Optional

import requests

from core.exceptions import VenueCallError
from core.venue import PriceClient

logger = logging.getLogger(__name__)

EXCHANGE_BASE = "https://api.exchange.coinbase.com"


class ExchangePriceClient(PriceClient):
    """Public (unauthenticated) ticker lookups. Base URL overridable via COINBASE_EXCHANGE_BASE_URL."""

    def __init__(self, base_url: Optional[str] = None, session: Optional[requests.Session] = None):
        self.base_url = (base_url or os.getenv("COINBASE_EXCHANGE_BASE_URL") or EXCHANGE_BASE).rstrip("/")
        self.session = session or requests.Session()

    def current_price(self, product_id: str, *, timeout: float) -> Decimal:
        """
        Fetch the current price for product_id (e.g. "BTC-USD").

        Raises:
            VenueCallError: On network failure, non-200 status or an unparseable price
        """
        operation = f"ticker {product_id}"
        url = f"{self.base_url}/products/{product_id}/ticker"
        logger.debug(f"Fetching price for {product_id}")

        try:
            response = self.session.get(url, headers={"Accept": "application/json"}, timeout=timeout)
        except requests.exceptions.RequestException as e:
            raise VenueCallError(operation, f"cannot call Exchange ticker: {e}", original=e)

        if response.status_code != 200:
            message = ""
            try:
                payload = response.json()
                if isinstance(payload, dict):
                    message = str(payload.get("message", ""))
            except ValueError:
                message = response.text
            raise VenueCallError(
                operation,
                f"ticker returned {response.status_code}" + (f" - msg: {message}" if message else ""),
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise VenueCallError(operation, f"cannot parse ticker response: {response.text!r}", original=e)

        raw_price = payload.get("price") if isinstance(payload, dict) else None
        try:
            price = Decimal(str(raw_price))
        except (InvalidOperation, ValueError) as e:
            raise VenueCallError(operation, f"unable to parse price: {raw_price!r}", original=e)

        if not price.is_finite() or price <= 0:
            raise VenueCallError(operation, f"invalid price: {raw_price!r}")

        return price
