"""
Prime Liquidator Core: Venue Connector (Coinbase Prime)

Coinbase Prime REST API integration: trading wallets, products and balances
for a portfolio, plus conversions and order placement. Implements
`VenueClient` with HMAC-signed requests.
"""

import base64
import hashlib
import hmac
import json
import logging
import os
import random
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlparse

import requests

from core.exceptions import VenueCallError
from core.models import Balance, Product, Wallet
from core.venue import BALANCE_TYPE_TRADING, Page, VenueClient, WALLET_TYPE_TRADING

logger = logging.getLogger(__name__)

PRIME_BASE = "https://api.prime.coinbase.com/v1"


@dataclass(frozen=True)
class PrimeCredentials:
    access_key: str
    passphrase: str
    signing_key: str
    portfolio_id: str
    svc_account_id: str = ""

    @classmethod
    def from_json(cls, raw: str) -> "PrimeCredentials":
        data = json.loads(raw)
        return cls(
            access_key=data.get("accessKey", ""),
            passphrase=data.get("passphrase", ""),
            signing_key=data.get("signingKey", ""),
            portfolio_id=data.get("portfolioId", ""),
            svc_account_id=data.get("svcAccountId", ""),
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PrimeCredentials":
        """
        Load credentials from PRIME_CREDENTIALS_FILE (path to JSON) or
        PRIME_CREDENTIALS (inline JSON).

        Raises:
            ValueError: If neither is set or the JSON is unusable
        """
        environ = os.environ if environ is None else environ
        secret_file = environ.get("PRIME_CREDENTIALS_FILE")
        if secret_file and os.path.exists(secret_file):
            with open(secret_file, 'r') as f:
                raw = f.read()
            logger.info(f"Loaded Prime credentials from {secret_file}")
        else:
            raw = environ.get("PRIME_CREDENTIALS", "")

        if not raw:
            raise ValueError("PRIME_CREDENTIALS or PRIME_CREDENTIALS_FILE required")

        try:
            creds = cls.from_json(raw)
        except (json.JSONDecodeError, AttributeError) as e:
            raise ValueError(f"Failed to deserialize Prime credentials JSON: {e}")

        if not creds.access_key or not creds.signing_key or not creds.portfolio_id:
            raise ValueError("Prime credentials must include accessKey, signingKey and portfolioId")
        return creds


class PrimeClient(VenueClient):
    """
    Coinbase Prime connector with HMAC authentication.

    Supports:
    - Account data (trading wallets, trading balances)
    - Product metadata (increments, min/max sizes)
    - Execution (conversion, order, order preview)

    GET calls retry 429/5xx/network errors with exponential backoff. POST
    calls are attempted once; the polling loop owns retries for those.
    """

    def __init__(self, credentials: PrimeCredentials, base_url: Optional[str] = None,
                 session: Optional[requests.Session] = None, max_retries: int = 3,
                 min_interval: float = 0.1):
        self.credentials = credentials
        self.base_url = (base_url or os.getenv("PRIME_API_BASE_URL") or PRIME_BASE).rstrip("/")
        self.session = session or requests.Session()
        self.max_retries = max_retries

        # Rate limiting
        self._last_call: Dict[str, float] = {}
        self._min_interval = min_interval

        logger.info(f"Initialized PrimeClient (portfolio={credentials.portfolio_id[:8]}..., base={self.base_url})")

    @property
    def portfolio_id(self) -> str:
        return self.credentials.portfolio_id

    def _rate_limit(self, endpoint: str):
        """Simple per-endpoint spacing"""
        last = self._last_call.get(endpoint, 0)
        elapsed = time.time() - last
        if elapsed < self._min_interval:
            time.sleep(self._min_interval - elapsed)
        self._last_call[endpoint] = time.time()

    def _sign(self, timestamp: str, method: str, path: str, body: str) -> str:
        message = f"{timestamp}{method.upper()}{path}{body}"
        digest = hmac.new(
            self.credentials.signing_key.encode(),
            message.encode(),
            hashlib.sha256,
        ).digest()
        return base64.b64encode(digest).decode()

    def _headers(self, method: str, path: str, body: str = "") -> dict:
        """Generate signed headers for authenticated requests"""
        ts = str(int(time.time()))
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "X-CB-ACCESS-KEY": self.credentials.access_key,
            "X-CB-ACCESS-PASSPHRASE": self.credentials.passphrase,
            "X-CB-ACCESS-SIGNATURE": self._sign(ts, method, path, body),
            "X-CB-ACCESS-TIMESTAMP": ts,
        }

    @staticmethod
    def _error_message(response: Optional[requests.Response]) -> str:
        if response is None:
            return ""
        try:
            payload = response.json()
        except ValueError:
            return response.text
        if isinstance(payload, dict) and payload.get("message"):
            return str(payload["message"])
        return response.text

    def _req(self, method: str, endpoint: str, body: Optional[dict] = None, *,
             timeout: float, query: Optional[Dict[str, Any]] = None,
             max_retries: Optional[int] = None) -> dict:
        """
        Make a signed HTTP request to the Prime API.

        Retries on 429, 5xx and network errors (timeout, connection); never on
        other 4xx. Raises VenueCallError when the call ultimately fails.
        """
        url = self.base_url + endpoint
        # Signature covers the URL path without the query string
        path_for_auth = urlparse(url).path
        body_str = json.dumps(body) if body is not None else ""
        params = {k: v for k, v in (query or {}).items() if v not in (None, "")}
        attempts = max(1, max_retries if max_retries is not None else self.max_retries)
        operation = f"{method.upper()} {endpoint}"

        last_exception: Optional[Exception] = None
        status_code: Optional[int] = None

        for attempt in range(attempts):
            try:
                response = self.session.request(
                    method,
                    url,
                    headers=self._headers(method, path_for_auth, body_str),
                    params=params or None,
                    data=body_str or None,
                    timeout=timeout,
                )
                response.raise_for_status()
                payload = response.json()
                if not isinstance(payload, dict):
                    raise VenueCallError(operation, f"unexpected response body: {type(payload).__name__}")
                return payload

            except requests.exceptions.HTTPError as e:
                status_code = e.response.status_code if e.response is not None else None
                message = self._error_message(e.response)

                if status_code is not None and 400 <= status_code < 500 and status_code != 429:
                    logger.error(f"Prime API client error: {status_code} on {endpoint} - {message}")
                    raise VenueCallError(operation, f"HTTP {status_code}: {message}",
                                         status_code=status_code, original=e)

                logger.warning(f"Prime API {status_code} on {endpoint}, attempt {attempt + 1}/{attempts}")
                last_exception = e

            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
                logger.warning(f"Network error on {endpoint}: {e}, attempt {attempt + 1}/{attempts}")
                last_exception = e

            except requests.exceptions.RequestException as e:
                raise VenueCallError(operation, str(e), original=e)

            except ValueError as e:
                raise VenueCallError(operation, f"unparseable response body: {e}", original=e)

            if attempt < attempts - 1:
                backoff = random.uniform(0, min(30.0, 2 ** attempt))
                logger.info(f"Retrying {endpoint} in {backoff:.1f}s...")
                time.sleep(backoff)

        logger.error(f"All {attempts} attempts exhausted for {endpoint}")
        raise VenueCallError(operation, str(last_exception), status_code=status_code, original=last_exception)

    # ========== Snapshot reads ==========

    def list_trading_wallets(self, cursor: Optional[str] = None, *, timeout: float) -> Page[Wallet]:
        self._rate_limit("wallets")
        response = self._req(
            "GET",
            f"/portfolios/{self.portfolio_id}/wallets",
            query={"type": WALLET_TYPE_TRADING, "cursor": cursor},
            timeout=timeout,
        )
        pagination = response.get("pagination") or {}
        return Page(
            items=[Wallet.from_api(w) for w in response.get("wallets", [])],
            next_cursor=pagination.get("next_cursor") or None,
            has_next=bool(pagination.get("has_next")),
        )

    def list_products(self, cursor: Optional[str] = None, *, timeout: float) -> Page[Product]:
        self._rate_limit("products")
        response = self._req(
            "GET",
            f"/portfolios/{self.portfolio_id}/products",
            query={"cursor": cursor},
            timeout=timeout,
        )
        pagination = response.get("pagination") or {}
        return Page(
            items=[Product.from_api(p) for p in response.get("products", [])],
            next_cursor=pagination.get("next_cursor") or None,
            has_next=bool(pagination.get("has_next")),
        )

    def list_trading_balances(self, *, timeout: float) -> List[Balance]:
        self._rate_limit("balances")
        response = self._req(
            "GET",
            f"/portfolios/{self.portfolio_id}/balances",
            query={"balance_type": BALANCE_TYPE_TRADING},
            timeout=timeout,
        )
        return [Balance.from_api(b) for b in response.get("balances", [])]

    # ========== Execution ==========

    def create_conversion(self, source_wallet_id: str, destination_wallet_id: str,
                          source_symbol: str, destination_symbol: str, amount: str,
                          idempotency_key: str, *, timeout: float) -> str:
        self._rate_limit("conversion")
        body = {
            "portfolio_id": self.portfolio_id,
            "wallet_id": source_wallet_id,
            "source_symbol": source_symbol.upper(),
            "destination": destination_wallet_id,
            "destination_symbol": destination_symbol.upper(),
            "idempotency_key": idempotency_key,
            "amount": amount,
        }
        logger.warning(f"SUBMITTING CONVERSION: {amount} {source_symbol.upper()} -> {destination_symbol.upper()}")
        response = self._req(
            "POST",
            f"/portfolios/{self.portfolio_id}/wallets/{source_wallet_id}/conversion",
            body,
            timeout=timeout,
            max_retries=1,
        )
        return str(response.get("activity_id", ""))

    def _order_body(self, product_id: str, side: str, order_type: str, client_order_id: str,
                    base_quantity: str, limit_price: Optional[str], time_in_force: Optional[str],
                    start_time: Optional[str], expiry_time: Optional[str]) -> dict:
        body = {
            "portfolio_id": self.portfolio_id,
            "product_id": product_id,
            "side": side.upper(),
            "type": order_type.upper(),
            "client_order_id": client_order_id,
            "base_quantity": base_quantity,
        }
        optional = {
            "limit_price": limit_price,
            "time_in_force": time_in_force,
            "start_time": start_time,
            "expiry_time": expiry_time,
        }
        body.update({k: v for k, v in optional.items() if v})
        return body

    def create_order(self, product_id: str, side: str, order_type: str, client_order_id: str,
                     base_quantity: str, limit_price: Optional[str] = None,
                     time_in_force: Optional[str] = None, start_time: Optional[str] = None,
                     expiry_time: Optional[str] = None, *, timeout: float) -> str:
        self._rate_limit("order")
        body = self._order_body(product_id, side, order_type, client_order_id, base_quantity,
                                limit_price, time_in_force, start_time, expiry_time)
        logger.warning(f"PLACING {order_type.upper()} ORDER: {side.upper()} {base_quantity} of {product_id}"
                       + (f" @ limit {limit_price}" if limit_price else ""))
        response = self._req(
            "POST",
            f"/portfolios/{self.portfolio_id}/order",
            body,
            timeout=timeout,
            max_retries=1,
        )
        order_id = response.get("order_id")
        if not order_id:
            raise VenueCallError("POST /order", f"response missing order_id: {response}")
        return str(order_id)

    def preview_order(self, product_id: str, side: str, order_type: str, client_order_id: str,
                      base_quantity: str, limit_price: Optional[str] = None,
                      time_in_force: Optional[str] = None, start_time: Optional[str] = None,
                      expiry_time: Optional[str] = None, *, timeout: float) -> Dict[str, Any]:
        self._rate_limit("order_preview")
        body = self._order_body(product_id, side, order_type, client_order_id, base_quantity,
                                limit_price, time_in_force, start_time, expiry_time)
        return self._req(
            "POST",
            f"/portfolios/{self.portfolio_id}/order_preview",
            body,
            timeout=timeout,
        )
