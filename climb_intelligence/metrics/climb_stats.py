"""
Climb statistics module for the climb intelligence system.
Accumulates VAM, energy and power/HR/cadence aggregates over the active climb.
"""
import logging
from collections import deque
from typing import Optional

from ..core.observable import StateHolder
from ..storage.data_models import ClimbInfo, ClimbStats, Sample
from ..utils.config import ClimbConfig, get_config

logger = logging.getLogger(__name__)

VAM_WINDOW_MS = 60_000
MIN_ROLLING_SECONDS = 5.0
MIN_OVERALL_SECONDS = 10.0
MAX_DT_SECONDS = 5.0


class ClimbStatsTracker:
    """
    Per-climb performance accumulator.

    Accumulators are keyed on the identity of the active climb and start over
    whenever that identity changes. Off-climb, only instantaneous W/kg is published.
    """

    def __init__(self, config: Optional[ClimbConfig] = None):
        self.config = config or get_config()
        self._state = StateHolder(ClimbStats(), name="climb_stats")
        self._current_climb_id: Optional[str] = None
        self._altitude_window = deque()
        self._reset_accumulators()

    @property
    def state(self) -> ClimbStats:
        return self._state.value

    @property
    def current_climb_id(self) -> Optional[str]:
        return self._current_climb_id

    def subscribe(self, callback, emit_current: bool = False):
        return self._state.subscribe(callback, emit_current=emit_current)

    def reset(self):
        self._current_climb_id = None
        self._reset_accumulators()
        self._state.set(ClimbStats())

    def update(self, sample: Sample, climb: Optional[ClimbInfo]) -> ClimbStats:
        """
        Fold one sample into the stats of the active climb.

        Args:
            sample: Latest sensor sample
            climb: Active climb context, or None

        Returns:
            The published stats snapshot
        """
        weight = self.config.athlete.weight
        if not self.config.athlete.is_configured or weight <= 0:
            return self.state
        if not sample.has_data or sample.timestamp == 0:
            return self.state

        now = sample.timestamp
        instant_w_kg = sample.power / weight if sample.power > 0 else 0.0
        climb_id = climb.id if climb is not None and climb.is_active else None

        if climb_id != self._current_climb_id:
            self._reset_accumulators()
            self._current_climb_id = climb_id
            if climb_id is not None:
                logger.debug(f"Tracking stats for climb {climb_id}")
                self._climb_start_time = now
                self._climb_start_altitude = sample.altitude
                self._altitude_window.append((now, sample.altitude))
            self._last_update_time = now

        if climb_id is None:
            stats = ClimbStats(w_kg=instant_w_kg, is_tracking=False)
        else:
            stats = self._accumulate(sample, now, instant_w_kg)

        self._last_update_time = now
        self._state.set(stats)
        return stats

    def _accumulate(self, sample: Sample, now: int, instant_w_kg: float) -> ClimbStats:
        dt = 0.0
        if self._last_update_time > 0:
            dt = max(0.0, min(MAX_DT_SECONDS, (now - self._last_update_time) / 1000.0))

        if dt > 0 and sample.power > 0:
            self._energy_joules += sample.power * dt

        if sample.power > 0:
            self._power_sum += sample.power
            self._power_count += 1
            self._max_power = max(self._max_power, sample.power)

        if sample.heart_rate > 0:
            self._hr_sum += sample.heart_rate
            self._hr_count += 1
            self._max_hr = max(self._max_hr, sample.heart_rate)

        if sample.cadence > 0:
            self._cadence_sum += sample.cadence
            self._cadence_count += 1

        if instant_w_kg > 0:
            self._w_kg_sum += instant_w_kg
            self._w_kg_count += 1

        self._altitude_window.append((now, sample.altitude))
        while len(self._altitude_window) > 1 and now - self._altitude_window[0][0] > VAM_WINDOW_MS:
            self._altitude_window.popleft()

        vam_rolling = 0
        if len(self._altitude_window) >= 2:
            first_time, first_altitude = self._altitude_window[0]
            last_time, last_altitude = self._altitude_window[-1]
            window_seconds = (last_time - first_time) / 1000.0
            if window_seconds > MIN_ROLLING_SECONDS:
                gain = max(0.0, last_altitude - first_altitude)
                vam_rolling = int(gain / window_seconds * 3600.0)

        elapsed = (now - self._climb_start_time) / 1000.0
        vam_overall = 0
        if elapsed > MIN_OVERALL_SECONDS:
            gain = max(0.0, sample.altitude - self._climb_start_altitude)
            vam_overall = int(gain / elapsed * 3600.0)

        return ClimbStats(
            vam_rolling=vam_rolling,
            vam_overall=vam_overall,
            energy_kj=self._energy_joules / 1000.0,
            elapsed_seconds=max(0, (now - self._climb_start_time) // 1000),
            avg_power=self._power_sum // self._power_count if self._power_count else 0,
            max_power=self._max_power,
            avg_hr=self._hr_sum // self._hr_count if self._hr_count else 0,
            max_hr=self._max_hr,
            avg_cadence=self._cadence_sum // self._cadence_count if self._cadence_count else 0,
            w_kg=instant_w_kg,
            avg_w_kg=self._w_kg_sum / self._w_kg_count if self._w_kg_count else 0.0,
            is_tracking=True
        )

    def _reset_accumulators(self):
        self._altitude_window.clear()
        self._energy_joules = 0.0
        self._power_sum = 0
        self._power_count = 0
        self._max_power = 0
        self._hr_sum = 0
        self._hr_count = 0
        self._max_hr = 0
        self._cadence_sum = 0
        self._cadence_count = 0
        self._w_kg_sum = 0.0
        self._w_kg_count = 0
        self._climb_start_time = 0
        self._climb_start_altitude = 0.0
        self._last_update_time = 0
