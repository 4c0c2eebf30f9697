"""
Prime Liquidator Core: Configuration

Loads config/app.yaml, applies environment overrides and validates the result
before building the immutable `LiquidatorConfig` handed to the loop at
construction. Invalid configuration is fatal at startup.
"""

import logging
import os
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, FrozenSet, Mapping, Optional

import yaml

from core.exceptions import ConfigurationError
from infra.symbols import normalize_currency, parse_symbol_list
from tools.config_validator import APP_CONFIG_FILE, AppSchema, load_yaml_file, validate_app_config

logger = logging.getLogger(__name__)

# env var -> path inside app.yaml
ENV_OVERRIDES = {
    "LIQUIDATOR_MODE": ("app", "mode"),
    "FIAT_CURRENCY_SYMBOL": ("liquidation", "fiat_currency_symbol"),
    "CONVERT_SYMBOLS": ("liquidation", "convert_symbols"),
    "TWAP_DURATION": ("liquidation", "twap", "duration_minutes"),
    "TWAP_MIN_NOTIONAL": ("liquidation", "twap", "min_notional_per_hour"),
    "PRIME_CALL_TIMEOUT": ("exchange", "call_timeout_seconds"),
    "ORDERS_CACHE_SIZE": ("exchange", "orders_cache_size"),
    "LOG_LEVEL": ("logging", "level"),
}


@dataclass(frozen=True)
class LiquidatorConfig:
    """Everything the decision engine, executor and loop need, resolved once."""
    fiat_currency_symbol: str = "USD"
    convert_symbols: FrozenSet[str] = frozenset({"USDC"})
    stablecoin_fiat_digits: int = 2
    twap_duration_seconds: float = 3600.0
    twap_max_discount_percent: Decimal = Decimal("0.10")
    twap_min_notional_per_hour: Decimal = Decimal("100")
    call_timeout_seconds: float = 10.0
    orders_cache_size: int = 1000
    market_order_cache_ttl_seconds: float = 300.0
    snapshot_backoff_seconds: float = 5.0
    asset_pacing_seconds: float = 0.5
    cycle_interval_seconds: float = 5.0
    mode: str = "LIVE"
    log_level: str = "INFO"
    log_file: str = "logs/prime-liquidator.log"
    metrics_enabled: bool = False
    metrics_port: int = 9100
    lock_dir: str = "data"

    @property
    def dry_run(self) -> bool:
        return self.mode == "DRY_RUN"

    @property
    def twap_duration_hours(self) -> Decimal:
        return Decimal(str(self.twap_duration_seconds)) / Decimal(3600)

    @classmethod
    def from_schema(cls, schema: AppSchema) -> "LiquidatorConfig":
        liquidation = schema.liquidation
        return cls(
            fiat_currency_symbol=normalize_currency(liquidation.fiat_currency_symbol),
            convert_symbols=parse_symbol_list(liquidation.convert_symbols),
            stablecoin_fiat_digits=liquidation.stablecoin_fiat_digits,
            twap_duration_seconds=float(liquidation.twap.duration_minutes * 60),
            twap_max_discount_percent=liquidation.twap.max_discount_percent,
            twap_min_notional_per_hour=liquidation.twap.min_notional_per_hour,
            call_timeout_seconds=schema.exchange.call_timeout_seconds,
            orders_cache_size=schema.exchange.orders_cache_size,
            market_order_cache_ttl_seconds=schema.exchange.market_order_cache_ttl_seconds,
            snapshot_backoff_seconds=schema.loop.snapshot_backoff_seconds,
            asset_pacing_seconds=schema.loop.asset_pacing_seconds,
            cycle_interval_seconds=schema.loop.cycle_interval_seconds,
            mode=schema.app.mode,
            log_level=schema.logging.level,
            log_file=schema.logging.file,
            metrics_enabled=schema.monitoring.metrics_enabled,
            metrics_port=schema.monitoring.metrics_port,
            lock_dir=schema.state.lock_dir,
        )


def apply_env_overrides(config: Dict[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    """Return a copy of config with any ENV_OVERRIDES present in environ applied."""
    merged: Dict[str, Any] = {k: (dict(v) if isinstance(v, dict) else v) for k, v in (config or {}).items()}
    for env_name, path in ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if raw is None or raw == "":
            continue
        node = merged
        for key in path[:-1]:
            child = node.get(key)
            child = dict(child) if isinstance(child, dict) else {}
            node[key] = child
            node = child
        node[path[-1]] = raw
        logger.debug(f"Config override from {env_name}: {'.'.join(path)}={raw}")
    return merged


def load_config(config_dir: str = "config", environ: Optional[Mapping[str, str]] = None) -> LiquidatorConfig:
    """
    Load and validate configuration.

    A missing app.yaml falls back to defaults (plus environment overrides).

    Raises:
        ConfigurationError: On malformed YAML or any invalid value
    """
    environ = os.environ if environ is None else environ
    config_path = Path(config_dir) / APP_CONFIG_FILE

    try:
        raw = load_yaml_file(config_path)
    except FileNotFoundError:
        logger.warning(f"{config_path} not found; using defaults")
        raw = {}
    except yaml.YAMLError as e:
        raise ConfigurationError([f"{APP_CONFIG_FILE}: Invalid YAML - {e}"])

    if not isinstance(raw, dict):
        raise ConfigurationError([f"{APP_CONFIG_FILE}: top level must be a mapping"])

    schema, errors = validate_app_config(apply_env_overrides(raw, environ))
    if errors:
        raise ConfigurationError(errors)

    return LiquidatorConfig.from_schema(schema)
