"""Shared exception types for the liquidation core."""

from typing import List, Optional


class LiquidatorError(Exception):
    """Base class for errors raised by the liquidation core."""


class VenueCallError(LiquidatorError):
    """Raised when a venue or price API call fails (network, timeout, non-2xx).

    Transient by nature: the next poll cycle retries naturally.
    """

    def __init__(self, operation: str, message: str, status_code: Optional[int] = None,
                 original: Optional[Exception] = None):
        super().__init__(f"{operation}: {message}")
        self.operation = operation
        self.status_code = status_code
        self.original = original


class AssetDataError(LiquidatorError):
    """Raised for malformed decimal strings or missing wallet/product lookups.

    Scoped to the single asset being processed.
    """


class SnapshotUnavailable(LiquidatorError):
    """Raised when the wallets/products/balances snapshot cannot be fetched safely."""

    def __init__(self, source: str, original: Optional[Exception] = None):
        super().__init__(f"{source}: {original}" if original else source)
        self.source = source
        self.original = original


class ConfigurationError(LiquidatorError):
    """Raised at startup when configuration values are invalid."""

    def __init__(self, errors: List[str]):
        super().__init__(f"Invalid configuration: {len(errors)} error(s) found")
        self.errors = list(errors)
