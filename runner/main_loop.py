"""
Prime Liquidator Runner: Main Loop

Drives the liquidation cycle:

1. Fetch a snapshot (trading wallets, products, trading balances)
2. For each balance, in snapshot order: decide, then submit through the
   idempotency cache, pacing between assets
3. Sleep and repeat

A failed snapshot backs off and retries; a failed asset never stops its
siblings.
"""

import argparse
import dataclasses
import logging
import signal
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional

from core.config import LiquidatorConfig, load_config
from core.decisions import AssetOutcome, ErrorKind, OutcomeStatus
from core.exceptions import ConfigurationError, SnapshotUnavailable
from core.exchange_prices import ExchangePriceClient
from core.execution import OrderExecutor
from core.liquidator import Liquidator
from core.order_cache import OrderCache
from core.prime_client import PrimeClient, PrimeCredentials
from core.scheduling import FixedIntervalPolicy, SchedulingPolicy
from core.snapshot import fetch_snapshot
from core.venue import PriceClient, VenueClient
from infra.instance_lock import check_single_instance
from infra.metrics import CycleStats, MetricsRecorder

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_SNAPSHOT_FAILED = "snapshot_failed"
STATUS_STOPPED = "stopped"


@dataclass
class CycleReport:
    """Summary of one pass over a snapshot."""
    status: str
    started_at: datetime
    duration_seconds: float = 0.0
    outcomes: List[AssetOutcome] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def snapshot_failed(self) -> bool:
        return self.status == STATUS_SNAPSHOT_FAILED

    def counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for outcome in self.outcomes:
            counts[outcome.status.value] = counts.get(outcome.status.value, 0) + 1
        return counts

    def count(self, status: OutcomeStatus) -> int:
        return sum(1 for o in self.outcomes if o.status is status)

    @property
    def failures(self) -> List[AssetOutcome]:
        return [o for o in self.outcomes if o.failed]


class LiquidationLoop:
    """
    Polling scheduler.

    Responsibilities:
    - Fetch one snapshot per cycle
    - Process every balance independently
    - Pace venue traffic through the scheduling policy
    - Stop cleanly between iterations
    """

    def __init__(self, config: LiquidatorConfig, venue: VenueClient, prices: PriceClient,
                 cache: Optional[OrderCache] = None, policy: Optional[SchedulingPolicy] = None,
                 metrics: Optional[MetricsRecorder] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self.venue = venue
        self.prices = prices
        self.cache = cache if cache is not None else OrderCache(
            ttl_seconds=config.twap_duration_seconds,
            max_size=config.orders_cache_size,
        )
        self.policy = policy if policy is not None else FixedIntervalPolicy.from_config(config)
        self.metrics = metrics if metrics is not None else MetricsRecorder(enabled=False)
        self._sleep = sleep

        self.executor = OrderExecutor(venue, self.cache, config)
        self.liquidator = Liquidator(config, prices, self.executor)

        self._running = True
        self._snapshot_failures = 0

        logger.info(
            f"Initialized LiquidationLoop (mode={config.mode}, fiat={config.fiat_currency_symbol}, "
            f"convert={sorted(config.convert_symbols)}, cache_size={config.orders_cache_size})"
        )

    @property
    def running(self) -> bool:
        return self._running

    @property
    def consecutive_snapshot_failures(self) -> int:
        return self._snapshot_failures

    def stop(self) -> None:
        """Stop before the next iteration; an in-flight call is allowed to finish."""
        if self._running:
            logger.warning("Stop requested - finishing current call and exiting")
        self._running = False

    def _handle_stop(self, signum, frame) -> None:
        logger.warning(f"Received signal {signum}")
        self.stop()

    def install_signal_handlers(self) -> None:
        signal.signal(signal.SIGINT, self._handle_stop)
        signal.signal(signal.SIGTERM, self._handle_stop)

    def run_cycle(self) -> CycleReport:
        """Fetch a snapshot and process every balance in it once."""
        started_at = datetime.now(timezone.utc)
        start = time.monotonic()

        try:
            snapshot = fetch_snapshot(self.venue, timeout=self.config.call_timeout_seconds)
        except SnapshotUnavailable as e:
            self._snapshot_failures += 1
            self.metrics.record_snapshot_failure()
            logger.error(f"Snapshot unavailable ({self._snapshot_failures} consecutive): {e}")
            report = CycleReport(status=STATUS_SNAPSHOT_FAILED, started_at=started_at, error=str(e))
            return self._finish(report, start)

        self._snapshot_failures = 0
        report = CycleReport(status=STATUS_OK, started_at=started_at)

        for index, balance in enumerate(snapshot.balances):
            if index > 0:
                self._sleep(self.policy.asset_pacing_delay())
            if not self._running:
                report.status = STATUS_STOPPED
                break

            try:
                outcome = self.liquidator.process_asset(balance, snapshot)
            except Exception as e:
                logger.exception(f"Unexpected error processing {balance.symbol}: {e}")
                outcome = AssetOutcome.failure(balance.symbol.upper(), ErrorKind.DATA, e)

            report.outcomes.append(outcome)
            self.metrics.record_outcome(
                outcome.status.value,
                outcome.error_kind.value if outcome.error_kind else None,
            )

        return self._finish(report, start)

    def _finish(self, report: CycleReport, start: float) -> CycleReport:
        report.duration_seconds = time.monotonic() - start
        self.metrics.record_cache_size(len(self.cache))
        self.metrics.observe_cycle(CycleStats(
            status=report.status,
            assets=len(report.outcomes),
            submitted=report.count(OutcomeStatus.SUBMITTED),
            suppressed=report.count(OutcomeStatus.SUPPRESSED),
            failed=len(report.failures),
            duration_seconds=report.duration_seconds,
        ))
        if report.status != STATUS_SNAPSHOT_FAILED:
            logger.info(
                f"Cycle {report.status} in {report.duration_seconds:.2f}s - "
                f"{len(report.outcomes)} assets {report.counts()}"
            )
        return report

    def run_forever(self) -> None:
        logger.info("Starting liquidation loop")

        while self._running:
            report = self.run_cycle()
            if not self._running:
                break
            if report.snapshot_failed:
                delay = self.policy.snapshot_retry_delay(self._snapshot_failures)
                logger.info(f"Retrying snapshot in {delay:.1f}s")
            else:
                delay = self.policy.cycle_delay()
            self._sleep(delay)

        logger.info("Liquidation loop stopped cleanly.")


def setup_logging(config: LiquidatorConfig) -> None:
    log_path = Path(config.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[logging.FileHandler(log_path), logging.StreamHandler()],
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point"""
    parser = argparse.ArgumentParser(description="Coinbase Prime liquidation agent")
    parser.add_argument("--config-dir", default="config", help="Config directory")
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    parser.add_argument("--dry-run", action="store_true",
                        help="Preview orders and log conversions without placing anything")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config_dir)
    except ConfigurationError as e:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
        logger.error(str(e))
        for error in e.errors:
            logger.error(f"  - {error}")
        return 1

    if args.dry_run:
        config = dataclasses.replace(config, mode="DRY_RUN")

    setup_logging(config)
    logger.info(f"Starting prime-liquidator in mode={config.mode}")

    instance_lock = check_single_instance(lock_dir=config.lock_dir)
    if not instance_lock:
        logger.error("Another liquidator instance is already running; refusing to start")
        return 1

    try:
        try:
            credentials = PrimeCredentials.from_env()
        except ValueError as e:
            logger.error(f"Cannot load Prime credentials: {e}")
            return 1

        metrics = MetricsRecorder(enabled=config.metrics_enabled, port=config.metrics_port)
        metrics.start()

        loop = LiquidationLoop(
            config,
            venue=PrimeClient(credentials),
            prices=ExchangePriceClient(),
            metrics=metrics,
        )
        loop.install_signal_handlers()

        if args.once:
            report = loop.run_cycle()
            return 0 if report.status == STATUS_OK and not report.failures else 2
        loop.run_forever()
        return 0
    finally:
        instance_lock.release()


if __name__ == "__main__":
    sys.exit(main())
