"""Climb detection modules: live terrain detection and route climbs."""

from .climb_detector import ClimbDetector, DetectionState
from .route_climbs import (
    ElevationPoint,
    DecodeResult,
    RouteClimbTracker,
    decode_elevation_polyline,
    smooth_profile,
    extract_climb_profile,
    build_segments,
    categorize_climb,
    build_climb_info
)

__all__ = [
    "ClimbDetector",
    "DetectionState",
    "ElevationPoint",
    "DecodeResult",
    "RouteClimbTracker",
    "decode_elevation_polyline",
    "smooth_profile",
    "extract_climb_profile",
    "build_segments",
    "categorize_climb",
    "build_climb_info"
]
