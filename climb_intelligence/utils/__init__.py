"""Utility modules for configuration and helper functions."""

from .config import (
    ClimbConfig,
    AthleteProfile,
    DetectionSensitivity,
    DetectionSettings,
    PacingMode,
    PacingTolerance,
    PacingSettings,
    AlertSettings,
    StorageSettings,
    SessionSettings,
    get_config,
    reset_config
)
from .formatting import format_duration, format_delta_ms

__all__ = [
    "ClimbConfig",
    "AthleteProfile",
    "DetectionSensitivity",
    "DetectionSettings",
    "PacingMode",
    "PacingTolerance",
    "PacingSettings",
    "AlertSettings",
    "StorageSettings",
    "SessionSettings",
    "get_config",
    "reset_config",
    "format_duration",
    "format_delta_ms"
]
