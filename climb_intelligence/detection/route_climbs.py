"""
Route climb module for the climb intelligence system.
Translates the climbs supplied with a navigation route into ClimbInfo values,
decodes the route elevation profile into 100 m segments and tracks live progress.
"""
import logging
import threading
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

import pandas as pd

from ..core.observable import StateHolder
from ..storage.data_models import ClimbInfo, ClimbSegment, RouteClimb, create_route_climb_id

logger = logging.getLogger(__name__)

DEFAULT_PRECISION = 1.0
ALT_PRECISION = 1e5
SEGMENT_LENGTH = 100.0
SMOOTHING_WINDOW = 5

CATEGORY_LABELS = {1: "HC", 2: "Cat 1", 3: "Cat 2", 4: "Cat 3", 5: "Cat 4"}


@dataclass(frozen=True)
class ElevationPoint:
    distance: float  # m from route start
    elevation: float  # m


@dataclass(frozen=True)
class DecodeResult:
    """Outcome of decoding an elevation polyline; ``error`` is set on failure."""
    points: Tuple[ElevationPoint, ...] = ()
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _decode_with_precision(encoded: str, precision: float) -> List[ElevationPoint]:
    """Decode (distance delta, elevation delta) pairs of a Google encoded polyline."""
    points = []
    index = 0
    distance = 0.0
    elevation = 0.0

    def next_value() -> int:
        nonlocal index
        shift = 0
        result = 0
        while index < len(encoded):
            byte = ord(encoded[index]) - 63
            index += 1
            result |= (byte & 0x1f) << shift
            shift += 5
            if byte < 0x20:
                break
        return ~(result >> 1) if result & 1 else result >> 1

    while index < len(encoded):
        distance += next_value() / precision
        elevation += next_value() / precision
        points.append(ElevationPoint(distance, elevation))

    return points


def decode_elevation_polyline(encoded: Optional[str]) -> DecodeResult:
    """
    Decode a route elevation polyline with automatic precision detection.

    Values are raw metres (precision 1). If that yields implausible distances or
    elevations the standard 1e5 precision is tried before giving up.

    Args:
        encoded: Encoded polyline string

    Returns:
        DecodeResult with the points, or with ``error`` set. Never raises.
    """
    if not encoded:
        return DecodeResult(error="Empty polyline")

    try:
        points = _decode_with_precision(encoded, DEFAULT_PRECISION)
        if not points:
            return DecodeResult(error="Decoded to empty list")

        has_invalid = any(
            p.distance < 0 or p.distance > 1_000_000 or p.elevation < -500 or p.elevation > 9000
            for p in points
        )
        if not has_invalid:
            return DecodeResult(points=tuple(points))

        logger.warning("Default precision gave invalid values, trying alternative")
        alt_points = _decode_with_precision(encoded, ALT_PRECISION)
        alt_invalid = any(p.distance < 0 or p.elevation < -500 for p in alt_points)
        if alt_points and not alt_invalid:
            return DecodeResult(points=tuple(alt_points))
        return DecodeResult(error="Invalid decoded values with both precisions")
    except Exception as e:
        logger.error(f"Elevation polyline decode failed: {e}")
        return DecodeResult(error=str(e) or "Unknown error")


def smooth_profile(points: Sequence[ElevationPoint], window: int = SMOOTHING_WINDOW) -> List[ElevationPoint]:
    """Centred moving average of elevation, truncated at both ends."""
    if len(points) < window:
        return list(points)
    elevations = pd.Series([p.elevation for p in points])
    smoothed = elevations.rolling(window, center=True, min_periods=1).mean()
    return [ElevationPoint(p.distance, float(e)) for p, e in zip(points, smoothed)]


def extract_climb_profile(points: Sequence[ElevationPoint], start_distance: float,
                          length: float) -> List[ElevationPoint]:
    """Cut the climb's range out of the route profile, re-based to the climb start."""
    end_distance = start_distance + length
    return [
        ElevationPoint(p.distance - start_distance, p.elevation)
        for p in points
        if start_distance <= p.distance <= end_distance
    ]


def build_segments(points: Sequence[ElevationPoint], total_length: float,
                   segment_length: float = SEGMENT_LENGTH) -> List[ClimbSegment]:
    """
    Split a climb profile into fixed-length segments.

    Each segment's grade is measured between the last point at or before its start
    and the first point at or after its end (or the final point).
    """
    if len(points) < 2:
        return []

    segments = []
    seg_start = 0.0
    while seg_start < total_length:
        seg_end = min(seg_start + segment_length, total_length)

        start_point = next((p for p in reversed(points) if p.distance <= seg_start), None)
        end_point = next((p for p in points if p.distance >= seg_end), points[-1])

        grade = 0.0
        if start_point is not None and end_point.distance > start_point.distance:
            grade = (end_point.elevation - start_point.elevation) / (end_point.distance - start_point.distance) * 100.0

        start_elevation = start_point.elevation if start_point is not None else 0.0
        segments.append(ClimbSegment(
            start_distance=seg_start,
            end_distance=seg_end,
            grade=grade,
            length=seg_end - seg_start,
            elevation=end_point.elevation - start_elevation
        ))
        seg_start = seg_end

    return segments


def categorize_climb(elevation: float, grade: float) -> int:
    """Climb category from elevation and grade: 1=HC, 2=Cat 1 .. 5=Cat 4."""
    score = elevation * grade
    if score > 8000 or (elevation > 1000 and grade > 7):
        return 1
    if score > 4000 or (elevation > 600 and grade > 6):
        return 2
    if score > 2000 or (elevation > 400 and grade > 5):
        return 3
    if score > 1000 or (elevation > 200 and grade > 4):
        return 4
    return 5


def build_climb_info(index: int, raw: RouteClimb,
                     profile: Sequence[ElevationPoint] = ()) -> ClimbInfo:
    """Translate a raw route climb into a ClimbInfo with its segment breakdown."""
    segments: List[ClimbSegment] = []
    if profile:
        climb_profile = extract_climb_profile(profile, raw.start_distance, raw.length)
        segments = build_segments(climb_profile, raw.length)
    if not segments:
        segments = [ClimbSegment(
            start_distance=0.0,
            end_distance=raw.length,
            grade=raw.grade,
            length=raw.length,
            elevation=raw.total_elevation
        )]

    category = categorize_climb(raw.total_elevation, raw.grade)
    return ClimbInfo(
        id=create_route_climb_id(index, raw.start_distance),
        name=f"{CATEGORY_LABELS[category]} {raw.length / 1000.0:.1f}km",
        category=category,
        length=raw.length,
        elevation=raw.total_elevation,
        avg_grade=raw.grade,
        max_grade=max(s.grade for s in segments),
        segments=tuple(segments),
        distance_to_top=raw.length,
        elevation_to_top=raw.total_elevation,
        progress=0.0,
        is_active=False,
        is_from_route=True,
        start_distance=raw.start_distance
    )


class RouteClimbTracker:
    """
    Holds the climbs of the loaded route and exposes the one the rider is on.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._climbs: Tuple[ClimbInfo, ...] = ()
        self._active = StateHolder(None, name="route_climb")

    @property
    def climbs(self) -> Tuple[ClimbInfo, ...]:
        return self._climbs

    @property
    def has_route(self) -> bool:
        return bool(self._climbs)

    @property
    def active_climb(self) -> Optional[ClimbInfo]:
        return self._active.value

    def subscribe(self, callback, emit_current: bool = False):
        return self._active.subscribe(callback, emit_current=emit_current)

    def load_route(self, climbs: Sequence[RouteClimb], elevation_polyline: Optional[str] = None,
                   current_distance: float = 0.0) -> Tuple[ClimbInfo, ...]:
        """
        Load the climbs of a new route.

        Args:
            climbs: Raw climb definitions in route order
            elevation_polyline: Optional encoded route elevation profile
            current_distance: Rider's current route distance

        Returns:
            The translated climbs
        """
        profile: List[ElevationPoint] = []
        if elevation_polyline:
            result = decode_elevation_polyline(elevation_polyline)
            if result.ok:
                profile = smooth_profile(result.points)
                logger.info(f"Decoded {len(profile)} elevation points")
            else:
                logger.warning(f"Elevation decode failed: {result.error}")

        translated = tuple(build_climb_info(i, raw, profile) for i, raw in enumerate(climbs))
        with self._lock:
            self._climbs = translated
        logger.info(f"Route loaded with {len(translated)} climbs")

        upcoming = next((c for c in translated if current_distance < c.start_distance + c.length), None)
        self._active.set(upcoming)
        return translated

    def clear_route(self):
        with self._lock:
            self._climbs = ()
        self._active.set(None)
        logger.info("Route cleared")

    def locate(self, distance: float) -> Optional[ClimbInfo]:
        """Update live progress for the rider's route distance."""
        climbs = self._climbs
        if not climbs:
            return None

        on_climb = next(
            (c for c in climbs if c.start_distance <= distance < c.start_distance + c.length),
            None
        )
        if on_climb is not None:
            on_distance = distance - on_climb.start_distance
            to_top = on_climb.length - on_distance
            self._active.set(replace(
                on_climb,
                distance_to_top=to_top,
                elevation_to_top=on_climb.elevation * (to_top / on_climb.length),
                progress=max(0.0, min(1.0, on_distance / on_climb.length)),
                is_active=True
            ))
        else:
            upcoming = next((c for c in climbs if c.start_distance > distance), None)
            if upcoming is not None:
                self._active.set(replace(
                    upcoming,
                    distance_to_top=upcoming.length,
                    elevation_to_top=upcoming.elevation,
                    progress=0.0,
                    is_active=False
                ))
            elif self.active_climb is not None:
                self._active.set(None)

        return self.active_climb
