"""Metrics modules: pacing, climb statistics, tactics and record comparison."""

from .pacing import PacingCalculator, calculate_target_power, gradient_factor, altitude_factor
from .climb_stats import ClimbStatsTracker
from .tactical import TacticalAnalyzer
from .pr_comparison import PRComparisonEngine

__all__ = [
    "PacingCalculator",
    "calculate_target_power",
    "gradient_factor",
    "altitude_factor",
    "ClimbStatsTracker",
    "TacticalAnalyzer",
    "PRComparisonEngine"
]
