"""
W' balance module for the climb intelligence system.
Integrates the Skiba differential model once per sample to track remaining
anaerobic work capacity above critical power.
"""
import logging
from typing import Optional

from .observable import StateHolder, Subscription
from ..storage.data_models import Sample, WPrimeState, w_prime_status
from ..utils.config import ClimbConfig, get_config

logger = logging.getLogger(__name__)

TAU = 546.0  # Recovery time constant (s)
MAX_DT_SECONDS = 5.0


class WPrimeBalanceModel:
    """
    Differential W' balance integrator.

    The model does nothing until the athlete profile is configured and power has
    been observed; the first powered sample only anchors the clock.
    """

    def __init__(self, config: Optional[ClimbConfig] = None):
        self.config = config or get_config()
        self._balance: Optional[float] = None
        self._last_update: Optional[int] = None
        self._state = StateHolder(WPrimeState(), name="w_prime")

    @property
    def state(self) -> WPrimeState:
        return self._state.value

    @property
    def balance(self) -> float:
        return self._balance if self._balance is not None else self.config.athlete.w_prime_max

    def subscribe(self, callback, emit_current: bool = False) -> Subscription:
        return self._state.subscribe(callback, emit_current=emit_current)

    def update(self, sample: Sample) -> WPrimeState:
        """
        Advance the balance by one sample.

        Args:
            sample: Latest sensor sample

        Returns:
            The published W' state (unchanged when the tick is skipped)
        """
        profile = self.config.athlete
        cp = profile.effective_cp
        w_max = profile.w_prime_max
        if not profile.is_configured or cp <= 0 or w_max <= 0:
            return self.state
        if not sample.has_data or sample.power <= 0:
            return self.state

        if self._balance is None:
            self._balance = w_max
        # W' max may have been lowered since the last tick
        self._balance = min(self._balance, w_max)

        if self._last_update is None:
            self._last_update = sample.timestamp
            return self.state

        dt = max(0.0, min(MAX_DT_SECONDS, (sample.timestamp - self._last_update) / 1000.0))
        self._last_update = sample.timestamp
        if dt <= 0:
            return self.state

        power = sample.power
        recovery = (w_max - self._balance) / TAU
        if power > cp:
            d_w = (recovery - (power - cp)) * dt
            depletion_rate = power - cp
            recovery_rate = 0.0
        else:
            d_w = recovery * dt
            depletion_rate = 0.0
            recovery_rate = recovery

        self._balance = max(0.0, min(w_max, self._balance + d_w))
        state = self._build_state(self._balance, w_max, depletion_rate, recovery_rate)
        self._state.set(state)
        return state

    def reset(self):
        """Refill the balance and forget the last sample time."""
        self._balance = self.config.athlete.w_prime_max
        self._last_update = None
        self._state.set(WPrimeState.from_balance(self._balance, self._balance))
        logger.info("W' balance reset to full")

    def restore(self, balance: float):
        """Restore a checkpointed balance without touching the sample clock."""
        w_max = self.config.athlete.w_prime_max
        self._balance = max(0.0, min(w_max, balance))
        self._state.set(WPrimeState.from_balance(self._balance, w_max))
        logger.info(f"W' balance restored to {self._balance:.0f}J")

    @staticmethod
    def _build_state(balance: float, w_max: float, depletion_rate: float,
                     recovery_rate: float) -> WPrimeState:
        percentage = max(0.0, min(100.0, balance / w_max * 100.0))

        # Net depletion only
        time_to_empty = -1
        if depletion_rate > recovery_rate and depletion_rate > 0:
            time_to_empty = int(balance / (depletion_rate - recovery_rate))

        time_to_full = -1
        if recovery_rate > 0 and balance < w_max:
            time_to_full = int((w_max - balance) / recovery_rate)

        return WPrimeState(
            balance=balance,
            max_balance=w_max,
            percentage=percentage,
            depletion_rate=depletion_rate,
            recovery_rate=recovery_rate,
            time_to_empty=time_to_empty,
            time_to_full=time_to_full,
            status=w_prime_status(percentage)
        )
