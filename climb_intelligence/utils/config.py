"""
Configuration module for the climb intelligence system.
Settings are read by the engines at update time, so every group can be hot-reloaded.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Any, Optional


def _clamp(value, low, high):
    return max(low, min(high, value))


@dataclass(frozen=True)
class AthleteProfile:
    """Rider-specific configuration."""
    ftp: int = 0  # Functional Threshold Power
    weight: float = 0.0  # Rider mass in kg
    w_prime_max: float = 20000.0  # Anaerobic work capacity in joules
    cda: float = 0.321  # Drag area (m²)
    crr: float = 0.005  # Rolling resistance coefficient
    bike_weight: float = 8.0  # Bike mass in kg
    cp: int = 0  # Critical power, 0 derives it from FTP

    @property
    def effective_cp(self) -> float:
        return float(self.cp) if self.cp > 0 else self.ftp * 0.95

    @property
    def is_configured(self) -> bool:
        return self.ftp > 0 and self.weight > 0

    @property
    def total_mass(self) -> float:
        return self.weight + self.bike_weight


class DetectionSensitivity(Enum):
    """Presets as (min_grade %, min_elevation m, confirm_distance m, end_distance m)."""
    SENSITIVE = (3.0, 10, 100, 100)
    BALANCED = (4.0, 15, 200, 150)
    CONSERVATIVE = (5.0, 25, 300, 200)

    @property
    def min_grade(self) -> float:
        return self.value[0]

    @property
    def min_elevation(self) -> int:
        return self.value[1]

    @property
    def confirm_distance(self) -> int:
        return self.value[2]

    @property
    def end_distance(self) -> int:
        return self.value[3]


@dataclass(frozen=True)
class DetectionSettings:
    """Climb detection thresholds."""
    sensitivity: DetectionSensitivity = DetectionSensitivity.BALANCED
    min_grade: float = 4.0  # Smoothed grade that opens a potential climb
    min_elevation: int = 15  # Elevation gain required to confirm
    confirm_distance: int = 200  # Distance required to confirm
    end_distance: int = 150  # Flat distance that ends a climb
    is_custom: bool = False

    @property
    def min_grade_continue(self) -> float:
        return max(self.min_grade - 1.5, 2.0)

    @classmethod
    def from_sensitivity(cls, sensitivity: DetectionSensitivity, **overrides) -> "DetectionSettings":
        """Build settings from a preset, optionally overriding individual thresholds."""
        values = {
            'min_grade': sensitivity.min_grade,
            'min_elevation': sensitivity.min_elevation,
            'confirm_distance': sensitivity.confirm_distance,
            'end_distance': sensitivity.end_distance,
        }
        for key, value in overrides.items():
            if key not in values:
                raise ValueError(f"Unknown detection setting: {key}")
            if value is not None:
                values[key] = value
        preset = (sensitivity.min_grade, sensitivity.min_elevation,
                  sensitivity.confirm_distance, sensitivity.end_distance)
        current = (values['min_grade'], values['min_elevation'],
                   values['confirm_distance'], values['end_distance'])
        return cls(sensitivity=sensitivity, is_custom=current != preset, **values)


class PacingMode(Enum):
    STEADY = "STEADY"
    RACE = "RACE"
    SURVIVAL = "SURVIVAL"


class PacingTolerance(Enum):
    TIGHT = 5
    NORMAL = 10
    RELAXED = 20


@dataclass(frozen=True)
class PacingSettings:
    """Pacing target configuration."""
    mode: PacingMode = PacingMode.STEADY
    tolerance_watts: int = PacingTolerance.NORMAL.value

    def next_mode(self) -> PacingMode:
        modes = list(PacingMode)
        return modes[(modes.index(self.mode) + 1) % len(modes)]


@dataclass(frozen=True)
class AlertSettings:
    """In-ride alert configuration."""
    enabled: bool = True
    w_prime: bool = True
    steep: bool = True
    summit: bool = True
    climb_start: bool = True
    sound: bool = False
    cooldown_seconds: int = 30  # Minimum gap between two alerts of the same kind
    w_prime_threshold: int = 20  # W' percentage that triggers the low-balance alert
    summit_distance: float = 500.0  # Distance to top that triggers the summit alert


@dataclass(frozen=True)
class StorageSettings:
    """Data storage configuration."""
    data_dir: str = "climb_data"  # Directory for climbs, attempts and checkpoints
    csv_climbs: str = "climbs.csv"
    csv_attempts: str = "attempts.csv"
    checkpoint_file: str = "checkpoint.json"
    backup_enabled: bool = True
    max_backup_files: int = 10
    checkpoint_interval_seconds: float = 60.0
    checkpoint_max_age_seconds: float = 2 * 60 * 60


@dataclass(frozen=True)
class SessionSettings:
    """Ride session configuration."""
    min_attempt_seconds: float = 30.0  # Shorter climb occurrences are never saved


class ClimbConfig:
    """Main configuration class for the climb intelligence system."""

    def __init__(self):
        self.athlete = AthleteProfile()
        self.detection = DetectionSettings()
        self.pacing = PacingSettings()
        self.alerts = AlertSettings()
        self.storage = StorageSettings()
        self.session = SessionSettings()
        self._user_inputs: Dict[str, Any] = {}

    def set_athlete_profile(self, ftp: Optional[int] = None, weight: Optional[float] = None,
                            w_prime_max: Optional[float] = None, cda: Optional[float] = None,
                            crr: Optional[float] = None, bike_weight: Optional[float] = None,
                            cp: Optional[int] = None) -> AthleteProfile:
        """Set athlete profile parameters, clamped to physiologically sensible ranges."""
        changes: Dict[str, Any] = {}
        if ftp is not None:
            changes['ftp'] = int(_clamp(ftp, 50, 600))
        if weight is not None:
            changes['weight'] = float(_clamp(weight, 30.0, 200.0))
        if w_prime_max is not None:
            changes['w_prime_max'] = float(_clamp(w_prime_max, 5000.0, 40000.0))
        if cda is not None:
            changes['cda'] = float(_clamp(cda, 0.15, 0.60))
        if crr is not None:
            changes['crr'] = float(_clamp(crr, 0.002, 0.015))
        if bike_weight is not None:
            changes['bike_weight'] = float(_clamp(bike_weight, 3.0, 25.0))
        if cp is not None:
            changes['cp'] = 0 if cp <= 0 else int(_clamp(cp, 50, 600))

        self.athlete = replace(self.athlete, **changes)
        self._user_inputs.update({f'athlete_{k}': v for k, v in changes.items()})
        return self.athlete

    def set_detection_sensitivity(self, sensitivity) -> DetectionSettings:
        """Switch to a detection preset, dropping any custom thresholds."""
        if isinstance(sensitivity, str):
            try:
                sensitivity = DetectionSensitivity[sensitivity.upper()]
            except KeyError:
                raise ValueError(f"Unknown detection sensitivity: {sensitivity}")
        self.detection = DetectionSettings.from_sensitivity(sensitivity)
        self._user_inputs['detection_sensitivity'] = sensitivity.name
        return self.detection

    def update_detection_settings(self, **kwargs) -> DetectionSettings:
        """Override individual detection thresholds on top of the current preset."""
        overrides = {
            'min_grade': self.detection.min_grade,
            'min_elevation': self.detection.min_elevation,
            'confirm_distance': self.detection.confirm_distance,
            'end_distance': self.detection.end_distance,
        }
        for key, value in kwargs.items():
            if key not in overrides:
                raise ValueError(f"Unknown detection setting: {key}")
            overrides[key] = value
            self._user_inputs[f'detection_{key}'] = value
        self.detection = DetectionSettings.from_sensitivity(self.detection.sensitivity, **overrides)
        return self.detection

    def update_pacing_settings(self, **kwargs) -> PacingSettings:
        """Update pacing mode and tolerance."""
        changes: Dict[str, Any] = {}
        for key, value in kwargs.items():
            if key == 'mode':
                changes['mode'] = PacingMode[value.upper()] if isinstance(value, str) else PacingMode(value)
            elif key == 'tolerance':
                if isinstance(value, str):
                    value = PacingTolerance[value.upper()]
                changes['tolerance_watts'] = PacingTolerance(value).value
            elif key == 'tolerance_watts':
                changes['tolerance_watts'] = int(_clamp(value, 3, 30))
            else:
                raise ValueError(f"Unknown pacing setting: {key}")
            self._user_inputs[f'pacing_{key}'] = value
        self.pacing = replace(self.pacing, **changes)
        return self.pacing

    def update_alert_settings(self, **kwargs) -> AlertSettings:
        """Update alert settings dynamically."""
        self.alerts = self._replace_checked(self.alerts, 'alert', kwargs)
        return self.alerts

    def update_storage_settings(self, **kwargs) -> StorageSettings:
        """Update storage settings dynamically."""
        self.storage = self._replace_checked(self.storage, 'storage', kwargs)
        return self.storage

    def update_session_settings(self, **kwargs) -> SessionSettings:
        """Update ride session settings dynamically."""
        self.session = self._replace_checked(self.session, 'session', kwargs)
        return self.session

    def _replace_checked(self, settings, group: str, kwargs: Dict[str, Any]):
        for key, value in kwargs.items():
            if not hasattr(settings, key):
                raise ValueError(f"Unknown {group} setting: {key}")
            self._user_inputs[f'{group}_{key}'] = value
        return replace(settings, **kwargs)

    def get_summary(self) -> Dict[str, Any]:
        """Get configuration summary."""
        return {
            'athlete_profile': {
                'ftp': self.athlete.ftp,
                'weight': self.athlete.weight,
                'w_prime_max': self.athlete.w_prime_max,
                'cp': self.athlete.effective_cp,
                'total_mass': self.athlete.total_mass
            },
            'detection_settings': {
                'sensitivity': self.detection.sensitivity.name,
                'min_grade': self.detection.min_grade,
                'min_elevation': self.detection.min_elevation,
                'confirm_distance': self.detection.confirm_distance,
                'end_distance': self.detection.end_distance,
                'is_custom': self.detection.is_custom
            },
            'pacing_settings': {
                'mode': self.pacing.mode.name,
                'tolerance_watts': self.pacing.tolerance_watts
            },
            'user_inputs': self._user_inputs
        }

    def validate_configuration(self) -> bool:
        """Validate that required configuration is set."""
        errors = []

        if self.athlete.ftp <= 0:
            errors.append("FTP must be set and greater than 0")

        if self.athlete.weight <= 0:
            errors.append("Rider weight must be greater than 0")

        if self.athlete.w_prime_max <= 0:
            errors.append("W' max must be greater than 0")

        if errors:
            raise ValueError(f"Configuration errors: {'; '.join(errors)}")

        return True


# Global configuration instance
config = ClimbConfig()


def get_config() -> ClimbConfig:
    """Get the global configuration instance."""
    return config


def reset_config() -> ClimbConfig:
    """Reset configuration to defaults."""
    global config
    config = ClimbConfig()
    return config
