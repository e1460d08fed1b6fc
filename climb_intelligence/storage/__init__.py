"""Storage modules for data persistence."""

from .data_models import (
    Sample,
    ClimbSegment,
    ClimbInfo,
    RouteClimb,
    WPrimeStatus,
    WPrimeState,
    ClimbStats,
    PacingAdvice,
    PacingTarget,
    InsightType,
    Priority,
    TacticalInsight,
    ClimbRecord,
    Attempt,
    SaveResult,
    PRComparison,
    AlertEvent,
    CheckpointData
)
from .csv_manager import CSVClimbStore
from .records import ClimbRepository
from .checkpoint import CheckpointManager

__all__ = [
    "Sample",
    "ClimbSegment",
    "ClimbInfo",
    "RouteClimb",
    "WPrimeStatus",
    "WPrimeState",
    "ClimbStats",
    "PacingAdvice",
    "PacingTarget",
    "InsightType",
    "Priority",
    "TacticalInsight",
    "ClimbRecord",
    "Attempt",
    "SaveResult",
    "PRComparison",
    "AlertEvent",
    "CheckpointData",
    "CSVClimbStore",
    "ClimbRepository",
    "CheckpointManager"
]
