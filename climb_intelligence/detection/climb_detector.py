"""
Climb detection module for the climb intelligence system.
Detects climbs from terrain alone with a smoothed-grade state machine:
NOT_CLIMBING -> POTENTIAL_CLIMB -> CONFIRMED_CLIMB, with a flat-distance exit.
"""
import logging
from collections import deque
from dataclasses import replace
from enum import Enum
from typing import Optional

from ..core.observable import StateHolder
from ..storage.data_models import ClimbInfo, Sample, create_detected_climb_id
from ..utils.config import ClimbConfig, DetectionSettings, get_config

logger = logging.getLogger(__name__)

BUFFER_SIZE = 14
SMOOTHING_WINDOW = 7


class DetectionState(Enum):
    NOT_CLIMBING = "NOT_CLIMBING"
    POTENTIAL_CLIMB = "POTENTIAL_CLIMB"
    CONFIRMED_CLIMB = "CONFIRMED_CLIMB"


class ClimbDetector:
    """
    Terrain-based climb state machine.

    A potential climb is opened as soon as the smoothed grade reaches ``min_grade`` and
    is published immediately. It is confirmed only once both ``confirm_distance`` and
    ``min_elevation`` have been covered, and it ends after more than ``end_distance``
    metres below ``min_grade_continue``.
    """

    def __init__(self, config: Optional[ClimbConfig] = None):
        self.config = config or get_config()
        self.settings: DetectionSettings = self.config.detection

        self._grades = deque(maxlen=BUFFER_SIZE)
        self._altitudes = deque(maxlen=BUFFER_SIZE)
        self._distances = deque(maxlen=BUFFER_SIZE)

        self._state = StateHolder(DetectionState.NOT_CLIMBING, name="detection_state")
        self._climb = StateHolder(None, name="detected_climb")
        self._climb_count = 0
        self._clear_climb_tracking()

    @property
    def detection_state(self) -> DetectionState:
        return self._state.value

    @property
    def detected_climb(self) -> Optional[ClimbInfo]:
        return self._climb.value

    def subscribe_state(self, callback, emit_current: bool = False):
        return self._state.subscribe(callback, emit_current=emit_current)

    def subscribe_climb(self, callback, emit_current: bool = False):
        return self._climb.subscribe(callback, emit_current=emit_current)

    def update_settings(self, settings: DetectionSettings):
        """Swap thresholds without touching the detection state."""
        if settings != self.settings:
            logger.info(f"Detection settings changed: {settings.sensitivity.name}"
                        f"{' (custom)' if settings.is_custom else ''}")
            self.settings = settings

    def reset(self):
        """Return to NOT_CLIMBING and drop all buffers and accumulators."""
        self._grades.clear()
        self._altitudes.clear()
        self._distances.clear()
        self._clear_climb_tracking()
        self._climb_count = 0
        self._state.set(DetectionState.NOT_CLIMBING)
        self._climb.set(None)

    def update(self, sample: Sample) -> Optional[ClimbInfo]:
        """
        Feed one sample through the state machine.

        Args:
            sample: Latest sensor sample

        Returns:
            The current detected climb snapshot, or None
        """
        if not sample.has_data:
            return self.detected_climb

        previous_altitude = self._altitudes[-1] if self._altitudes else None
        previous_distance = self._distances[-1] if self._distances else None

        self._grades.append(sample.grade)
        self._altitudes.append(sample.altitude)
        self._distances.append(sample.distance)

        smoothed = self._smoothed_grade(sample.grade)
        state = self.detection_state

        if state == DetectionState.NOT_CLIMBING:
            if smoothed >= self.settings.min_grade:
                self._start_potential(sample, smoothed)
            return self.detected_climb

        if previous_altitude is not None and sample.altitude > previous_altitude:
            self._elevation_gain += sample.altitude - previous_altitude

        if smoothed < self.settings.min_grade_continue:
            if previous_distance is not None:
                self._flat_distance += max(0.0, sample.distance - previous_distance)
            else:
                self._flat_distance += 1.0

            if self._flat_distance > self.settings.end_distance:
                self._end_climb(state)
                return self.detected_climb
        else:
            self._flat_distance = 0.0
            if state == DetectionState.POTENTIAL_CLIMB:
                self._check_confirmation(sample)

        self._max_grade = max(self._max_grade, smoothed)
        self._publish_snapshot(sample)
        return self.detected_climb

    def _smoothed_grade(self, raw_grade: float) -> float:
        if len(self._grades) < SMOOTHING_WINDOW:
            return raw_grade
        recent = list(self._grades)[-SMOOTHING_WINDOW:]
        return sum(recent) / SMOOTHING_WINDOW

    def _start_potential(self, sample: Sample, smoothed: float):
        self._climb_count += 1
        self._start_distance = sample.distance
        self._start_altitude = sample.altitude
        self._start_latitude = sample.latitude
        self._start_longitude = sample.longitude
        self._start_timestamp = sample.timestamp
        self._elevation_gain = 0.0
        self._flat_distance = 0.0
        self._max_grade = smoothed
        self._climb_id = create_detected_climb_id(sample.timestamp)
        self._climb_name = f"Climb {self._climb_count}"

        logger.debug(f"Potential climb at {sample.distance:.0f}m (smoothed grade {smoothed:.1f}%)")
        self._state.set(DetectionState.POTENTIAL_CLIMB)
        self._publish_snapshot(sample)

    def _check_confirmation(self, sample: Sample):
        distance = sample.distance - self._start_distance
        if distance >= self.settings.confirm_distance and self._elevation_gain >= self.settings.min_elevation:
            logger.debug(f"Climb confirmed: {self._climb_name} after {distance:.0f}m, "
                         f"+{self._elevation_gain:.0f}m")
            self._state.set(DetectionState.CONFIRMED_CLIMB)

    def _end_climb(self, state: DetectionState):
        if state == DetectionState.POTENTIAL_CLIMB:
            logger.debug(f"Potential climb {self._climb_name} discarded")
            self._climb.set(None)
        else:
            climb = self.detected_climb
            logger.debug(f"Climb ended: {self._climb_name}")
            if climb is not None:
                self._climb.set(replace(climb, is_active=False))
        self._clear_climb_tracking()
        self._state.set(DetectionState.NOT_CLIMBING)

    def _publish_snapshot(self, sample: Sample):
        length = max(0.0, sample.distance - self._start_distance)
        net_rise = sample.altitude - self._start_altitude
        avg_grade = net_rise / length * 100.0 if length > 0 else 0.0

        self._climb.set(ClimbInfo(
            id=self._climb_id,
            name=self._climb_name,
            length=length,
            elevation=self._elevation_gain,
            avg_grade=avg_grade,
            max_grade=self._max_grade,
            is_active=True,
            is_from_route=False,
            start_latitude=self._start_latitude,
            start_longitude=self._start_longitude,
            start_distance=self._start_distance,
            start_timestamp=self._start_timestamp
        ))

    def _clear_climb_tracking(self):
        self._start_distance = 0.0
        self._start_altitude = 0.0
        self._start_latitude = 0.0
        self._start_longitude = 0.0
        self._start_timestamp = 0
        self._elevation_gain = 0.0
        self._flat_distance = 0.0
        self._max_grade = 0.0
        self._climb_id = ""
        self._climb_name = ""
