"""
Scheduling policies for the liquidation loop.

The loop asks the policy how long to wait; it never hardcodes a delay.
"""

from abc import ABC, abstractmethod

from core.config import LiquidatorConfig


class SchedulingPolicy(ABC):

    @abstractmethod
    def snapshot_retry_delay(self, consecutive_failures: int) -> float:
        """Seconds to wait after the Nth consecutive snapshot failure (N >= 1)."""

    @abstractmethod
    def asset_pacing_delay(self) -> float:
        """Seconds to wait between two assets of the same cycle."""

    @abstractmethod
    def cycle_delay(self) -> float:
        """Seconds to wait after a full pass over the snapshot."""


class FixedIntervalPolicy(SchedulingPolicy):
    """Constant delays regardless of how many cycles have failed."""

    def __init__(self, snapshot_backoff: float = 5.0, asset_pacing: float = 0.5,
                 cycle_interval: float = 5.0):
        self.snapshot_backoff = snapshot_backoff
        self.asset_pacing = asset_pacing
        self.cycle_interval = cycle_interval

    @classmethod
    def from_config(cls, config: LiquidatorConfig) -> "FixedIntervalPolicy":
        return cls(
            snapshot_backoff=config.snapshot_backoff_seconds,
            asset_pacing=config.asset_pacing_seconds,
            cycle_interval=config.cycle_interval_seconds,
        )

    def snapshot_retry_delay(self, consecutive_failures: int) -> float:
        return self.snapshot_backoff

    def asset_pacing_delay(self) -> float:
        return self.asset_pacing

    def cycle_delay(self) -> float:
        return self.cycle_interval
