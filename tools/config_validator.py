"""
Configuration Validation Module

Validates app.yaml (after environment overrides) against Pydantic schemas.
Ensures the liquidator configuration is correct before startup.

Usage:
    from tools.config_validator import validate_all_configs

    errors = validate_all_configs("config")
    if errors:
        for error in errors:
            print(f"ERROR: {error}")
        sys.exit(1)
"""
import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import BaseModel, Field, field_validator, ValidationError

logger = logging.getLogger(__name__)

APP_CONFIG_FILE = "app.yaml"


# ===== App Schema =====
class AppSection(BaseModel):
    """Process mode"""
    mode: str = Field(default="LIVE", pattern="^(LIVE|DRY_RUN)$", description="LIVE places orders, DRY_RUN previews")


class TwapConfig(BaseModel):
    """TWAP strategy parameters"""
    duration_minutes: int = Field(default=60, gt=0, description="TWAP duration (minutes)")
    max_discount_percent: Decimal = Field(default=Decimal("0.10"), ge=0, lt=1,
                                          description="Limit price discount below spot (fraction)")
    min_notional_per_hour: Decimal = Field(default=Decimal("100"), ge=0,
                                           description="Minimum notional per hour to choose TWAP over MARKET")


class LiquidationConfig(BaseModel):
    """What to liquidate and into what"""
    fiat_currency_symbol: str = Field(default="USD", min_length=1, description="Settlement currency")
    convert_symbols: List[str] = Field(default_factory=lambda: ["USDC"], description="Stablecoins converted directly")
    stablecoin_fiat_digits: int = Field(default=2, ge=0, le=18, description="Decimal places for conversions")
    twap: TwapConfig = Field(default_factory=TwapConfig)

    @field_validator("convert_symbols", mode="before")
    @classmethod
    def split_convert_symbols(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [s for s in (item.strip() for item in v.split(",")) if s]
        return v


class ExchangeConfig(BaseModel):
    """Venue call parameters"""
    call_timeout_seconds: float = Field(default=10.0, gt=0, description="Per-call deadline (seconds)")
    orders_cache_size: int = Field(default=1000, gt=0, description="Idempotency cache capacity")
    market_order_cache_ttl_seconds: float = Field(default=300.0, gt=0,
                                                  description="Idempotency window for MARKET orders (seconds)")


class LoopConfig(BaseModel):
    """Polling scheduler intervals"""
    snapshot_backoff_seconds: float = Field(default=5.0, ge=0, description="Sleep after a failed snapshot")
    asset_pacing_seconds: float = Field(default=0.5, ge=0, description="Sleep between assets")
    cycle_interval_seconds: float = Field(default=5.0, ge=0, description="Sleep after a full pass")


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    file: str = Field(default="logs/prime-liquidator.log", min_length=1)


class MonitoringConfig(BaseModel):
    metrics_enabled: bool = False
    metrics_port: int = Field(default=9100, gt=0, lt=65536)


class StateConfig(BaseModel):
    lock_dir: str = Field(default="data", min_length=1, description="Directory for the single-instance PID file")


class AppSchema(BaseModel):
    """Complete app.yaml schema"""
    app: AppSection = Field(default_factory=AppSection)
    liquidation: LiquidationConfig = Field(default_factory=LiquidationConfig)
    exchange: ExchangeConfig = Field(default_factory=ExchangeConfig)
    loop: LoopConfig = Field(default_factory=LoopConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    state: StateConfig = Field(default_factory=StateConfig)


# ===== Validation Functions =====
def _format_yaml_error(file_path: Path, error: yaml.YAMLError) -> str:
    """Return enriched message with line/column context for YAML errors."""

    message = f"Malformed YAML in {file_path}: {error}"
    mark = getattr(error, "problem_mark", None)
    if mark is None:
        return message

    line = getattr(mark, "line", None)
    column = getattr(mark, "column", None)
    if line is None or column is None:
        return message

    problem = getattr(error, "problem", str(error))
    return f"Malformed YAML in {file_path}: line {line + 1}, column {column + 1}: {problem}"


def load_yaml_file(file_path: Path) -> Dict[str, Any]:
    """
    Load YAML file and return as dict.

    Raises:
        FileNotFoundError: If file doesn't exist
        yaml.YAMLError: If YAML is malformed
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Config file not found: {file_path}")

    with open(file_path, 'r') as f:
        try:
            return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise yaml.YAMLError(_format_yaml_error(file_path, e))


def validate_app_config(config: Dict[str, Any]) -> Tuple[Optional[AppSchema], List[str]]:
    """
    Validate an app config mapping.

    Returns:
        (schema, errors) - schema is None when errors is non-empty
    """
    try:
        schema = AppSchema(**(config or {}))
    except ValidationError as e:
        errors = []
        for error in e.errors():
            field = " -> ".join(str(loc) for loc in error['loc'])
            errors.append(f"{APP_CONFIG_FILE}: {field}: {error['msg']}")
        return None, errors

    return schema, validate_sanity_checks(schema)


def validate_sanity_checks(schema: AppSchema) -> List[str]:
    """
    Logical consistency checks the per-field schema cannot express.

    Detects:
    - Fiat currency listed as a stablecoin to convert
    """
    errors = []
    fiat = schema.liquidation.fiat_currency_symbol.strip().upper()
    convert = {s.strip().upper() for s in schema.liquidation.convert_symbols}
    if fiat in convert:
        errors.append(
            f"{APP_CONFIG_FILE}: liquidation -> convert_symbols: contains the fiat currency {fiat}"
        )

    if schema.liquidation.twap.duration_minutes < 60:
        logger.warning(
            "TWAP duration %s min is below 60; per-hour notional will be scaled up accordingly",
            schema.liquidation.twap.duration_minutes,
        )

    return errors


def validate_all_configs(config_dir: str = "config") -> List[str]:
    """
    Validate app.yaml in config_dir.

    Returns:
        List of all error messages (empty if all valid)
    """
    config_path = Path(config_dir) / APP_CONFIG_FILE

    try:
        config = load_yaml_file(config_path)
    except FileNotFoundError as e:
        return [f"{APP_CONFIG_FILE}: {e}"]
    except yaml.YAMLError as e:
        return [f"{APP_CONFIG_FILE}: Invalid YAML - {e}"]

    _, errors = validate_app_config(config)

    if not errors:
        logger.info("✅ app.yaml validation passed")
    else:
        logger.error(f"❌ {len(errors)} validation error(s) found")

    return errors


if __name__ == "__main__":
    """Run validation from command line"""
    import sys

    logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')

    config_dir = sys.argv[1] if len(sys.argv) > 1 else "config"

    errors = validate_all_configs(config_dir)

    if errors:
        print("\n❌ Configuration Validation Failed:\n")
        for error in errors:
            print(f"  • {error}")
        print()
        sys.exit(1)
    else:
        print("\n✅ Configuration is valid!\n")
        sys.exit(0)
