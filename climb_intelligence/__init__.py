"""
Climb Intelligence - Real-time climbing analysis for cyclists.

Tracks the anaerobic reserve (W'), detects climbs from live terrain or a
loaded route, computes pacing targets and tactical advice, and keeps a
personal record history for every climb ridden.
"""

from .main import (
    ClimbIntelligence,
    ConnectedSession,
    RideState,
    RideSummary,
    replay_ride
)

from .core.w_prime_balance import WPrimeBalanceModel
from .core.alerts import AlertManager
from .core.fit_parser import load_ride, dataframe_to_samples
from .detection.climb_detector import ClimbDetector
from .detection.route_climbs import RouteClimbTracker, decode_elevation_polyline
from .metrics.pacing import PacingCalculator
from .metrics.climb_stats import ClimbStatsTracker
from .metrics.tactical import TacticalAnalyzer
from .metrics.pr_comparison import PRComparisonEngine
from .storage.csv_manager import CSVClimbStore
from .storage.records import ClimbRepository
from .storage.checkpoint import CheckpointManager
from .storage.data_models import Sample, ClimbInfo, RouteClimb
from .utils.config import ClimbConfig, get_config, reset_config

__version__ = "1.0.0"
__author__ = "Climb Intelligence System"

# Main interface classes
__all__ = [
    # Main interfaces
    "ClimbIntelligence",
    "ConnectedSession",
    "RideState",
    "RideSummary",
    "replay_ride",

    # Engines
    "WPrimeBalanceModel",
    "AlertManager",
    "ClimbDetector",
    "RouteClimbTracker",
    "decode_elevation_polyline",
    "PacingCalculator",
    "ClimbStatsTracker",
    "TacticalAnalyzer",
    "PRComparisonEngine",

    # Ride files
    "load_ride",
    "dataframe_to_samples",

    # Data management
    "CSVClimbStore",
    "ClimbRepository",
    "CheckpointManager",
    "Sample",
    "ClimbInfo",
    "RouteClimb",

    # Configuration
    "ClimbConfig",
    "get_config",
    "reset_config"
]
