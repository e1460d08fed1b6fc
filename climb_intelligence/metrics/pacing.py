"""
Pacing module for the climb intelligence system.
Computes a power target for the current gradient from FTP, pacing mode and
altitude, and grades the rider's actual power against it.
"""
from typing import Optional

from ..core.observable import StateHolder
from ..core.physics import speed_from_power
from ..storage.data_models import ClimbInfo, PacingAdvice, PacingTarget, Sample
from ..utils.config import AthleteProfile, ClimbConfig, PacingMode, get_config


MIN_PACING_GRADE = 1.0  # %
MIN_PROJECTION_SPEED = 0.5  # m/s

# Fraction of FTP each mode aims for on a neutral gradient
BASE_FRACTION = {
    PacingMode.STEADY: 0.90,
    PacingMode.RACE: 1.00,
    PacingMode.SURVIVAL: 0.75,
}

# Allowed target band as fractions of FTP
MODE_BANDS = {
    PacingMode.STEADY: (0.60, 1.05),
    PacingMode.RACE: (0.70, 1.15),
    PacingMode.SURVIVAL: (0.50, 0.90),
}

ALTITUDE_THRESHOLD = 1500.0  # m
ALTITUDE_LOSS_PER_KM = 0.065
MAX_ALTITUDE_LOSS = 0.25


def gradient_factor(grade: float) -> float:
    """Steeper gradients reward pushing, shallow ones still pay aero drag."""
    if grade >= 10.0:
        return 1.05
    if grade >= 6.0:
        return 1.02
    if grade >= 3.0:
        return 1.00
    return 0.97


def altitude_factor(altitude: float) -> float:
    """Aerobic power loss above 1500 m, 6.5% per 1000 m, capped at 25%."""
    if altitude <= ALTITUDE_THRESHOLD:
        return 1.0
    loss = ALTITUDE_LOSS_PER_KM * (altitude - ALTITUDE_THRESHOLD) / 1000.0
    return 1.0 - min(MAX_ALTITUDE_LOSS, loss)


def calculate_target_power(grade: float, altitude: float, profile: AthleteProfile,
                           mode: PacingMode) -> int:
    """
    Target power for a gradient, 0 when no target applies.

    Args:
        grade: Road gradient in %
        altitude: Altitude in metres
        profile: Athlete profile with FTP
        mode: Pacing mode

    Returns:
        Target power in watts, clamped into the mode's FTP band
    """
    if grade < MIN_PACING_GRADE or profile.ftp <= 0:
        return 0

    ftp = profile.ftp
    target = int(ftp * BASE_FRACTION[mode] * gradient_factor(grade) * altitude_factor(altitude))
    low, high = MODE_BANDS[mode]
    return max(int(ftp * low), min(int(ftp * high), target))


def pacing_advice(delta: int, tolerance: int) -> PacingAdvice:
    if delta > tolerance:
        return PacingAdvice.EASE_OFF
    if delta < -tolerance:
        return PacingAdvice.PUSH
    if abs(delta) <= tolerance / 2:
        return PacingAdvice.PERFECT
    return PacingAdvice.STEADY


class PacingCalculator:
    """
    Publishes a PacingTarget per sample.

    Mode and tolerance are read from the configuration on every update.
    """

    def __init__(self, config: Optional[ClimbConfig] = None):
        self.config = config or get_config()
        self._target = StateHolder(PacingTarget(), name="pacing_target")

    @property
    def target(self) -> PacingTarget:
        return self._target.value

    def subscribe(self, callback, emit_current: bool = False):
        return self._target.subscribe(callback, emit_current=emit_current)

    def reset(self):
        self._target.set(PacingTarget(mode=self.config.pacing.mode))

    def update(self, sample: Sample, climb: Optional[ClimbInfo] = None) -> PacingTarget:
        """
        Compute the target for the current terrain.

        Args:
            sample: Latest sensor sample
            climb: Active climb context used for the time projection

        Returns:
            The published target (``target_power`` 0 when pacing does not apply)
        """
        profile = self.config.athlete
        mode = self.config.pacing.mode
        tolerance = self.config.pacing.tolerance_watts

        if not profile.is_configured or not sample.has_data:
            target = PacingTarget(mode=mode)
            self._target.set(target)
            return target

        target_power = calculate_target_power(sample.grade, sample.altitude, profile, mode)
        if target_power <= 0:
            target = PacingTarget(mode=mode)
            self._target.set(target)
            return target

        delta = sample.power - target_power

        projected = 0
        if (climb is not None and climb.is_active and climb.distance_to_top > 0
                and sample.speed > MIN_PROJECTION_SPEED):
            projected = int(climb.distance_to_top / sample.speed)

        target = PacingTarget(
            target_power=target_power,
            range_low=target_power - tolerance,
            range_high=target_power + tolerance,
            delta=delta,
            advice=pacing_advice(delta, tolerance),
            projected_time_seconds=projected,
            target_speed=speed_from_power(target_power, profile.total_mass, sample.grade,
                                          profile.crr, profile.cda, sample.altitude),
            mode=mode
        )
        self._target.set(target)
        return target
