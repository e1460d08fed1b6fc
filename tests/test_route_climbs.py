import pytest

from climb_intelligence.detection.route_climbs import (
    ElevationPoint,
    RouteClimbTracker,
    build_climb_info,
    build_segments,
    categorize_climb,
    decode_elevation_polyline,
    extract_climb_profile,
    smooth_profile,
)
from climb_intelligence.storage.data_models import RouteClimb

CLIMB = RouteClimb(start_distance=1000.0, length=1000.0, total_elevation=80.0, grade=8.0)


def _encode_value(value):
    value = ~(value << 1) if value < 0 else value << 1
    chunks = []
    while value >= 0x20:
        chunks.append(chr((0x20 | (value & 0x1f)) + 63))
        value >>= 5
    chunks.append(chr(value + 63))
    return "".join(chunks)


def _encode(points):
    """Encode absolute (distance, elevation) integer pairs as deltas."""
    encoded = []
    prev_distance = prev_elevation = 0
    for distance, elevation in points:
        encoded.append(_encode_value(distance - prev_distance))
        encoded.append(_encode_value(elevation - prev_elevation))
        prev_distance, prev_elevation = distance, elevation
    return "".join(encoded)


def _route_profile():
    """Flat at 500 m, 8% between 1000 m and 2000 m, flat again to 3000 m."""
    points = []
    for distance in range(0, 3001, 100):
        climbed = min(max(distance - 1000, 0), 1000)
        points.append((distance, 500 + climbed * 8 // 100))
    return points


def test_decode_round_trip():
    result = decode_elevation_polyline(_encode([(0, 500), (100, 508), (200, 503)]))
    assert result.ok
    assert result.points == (
        ElevationPoint(0.0, 500.0),
        ElevationPoint(100.0, 508.0),
        ElevationPoint(200.0, 503.0),
    )


def test_decode_empty():
    result = decode_elevation_polyline("")
    assert not result.ok
    assert result.error == "Empty polyline"
    assert decode_elevation_polyline(None).error == "Empty polyline"


def test_decode_falls_back_to_standard_precision():
    # 2,000,000 m is implausible at precision 1, fine as 20 m at 1e5
    result = decode_elevation_polyline(_encode([(0, 50_000_000), (2_000_000, 50_100_000)]))
    assert result.ok
    assert result.points[1].distance == pytest.approx(20.0)
    assert result.points[1].elevation == pytest.approx(501.0)


def test_smooth_profile_short_input_untouched():
    points = [ElevationPoint(0, 100), ElevationPoint(100, 200)]
    assert smooth_profile(points) == points


def test_smooth_profile_centred_average():
    points = [ElevationPoint(i * 100.0, e) for i, e in enumerate([0, 0, 10, 0, 0, 0])]
    smoothed = smooth_profile(points)
    assert smoothed[2].elevation == pytest.approx(2.0)
    assert smoothed[0].elevation == pytest.approx(10 / 3)


def test_build_segments_from_profile():
    points = [ElevationPoint(float(d), float(e)) for d, e in _route_profile()]
    profile = extract_climb_profile(points, 1000.0, 1000.0)
    assert profile[0] == ElevationPoint(0.0, 500.0)

    segments = build_segments(profile, 1000.0)
    assert len(segments) == 10
    assert all(s.grade == pytest.approx(8.0) for s in segments)
    assert segments[-1].end_distance == 1000.0


def test_build_segments_needs_two_points():
    assert build_segments([ElevationPoint(0, 0)], 500.0) == []


@pytest.mark.parametrize("elevation,grade,category", [
    (1200, 8.0, 1),
    (700, 6.5, 2),
    (500, 6.0, 3),
    (250, 4.5, 4),
    (80, 3.0, 5),
])
def test_categorize_climb(elevation, grade, category):
    assert categorize_climb(elevation, grade) == category


def test_build_climb_info_without_profile():
    climb = build_climb_info(0, CLIMB)
    assert climb.id == "route_0_1000"
    assert climb.name == "Cat 4 1.0km"
    assert climb.is_from_route
    assert len(climb.segments) == 1
    assert climb.max_grade == 8.0


def test_tracker_locates_rider():
    tracker = RouteClimbTracker()
    tracker.load_route([CLIMB], _encode(_route_profile()))
    assert tracker.has_route
    assert len(tracker.climbs[0].segments) == 10

    before = tracker.locate(500.0)
    assert not before.is_active
    assert before.distance_to_top == 1000.0

    on_climb = tracker.locate(1500.0)
    assert on_climb.is_active
    assert on_climb.progress == pytest.approx(0.5)
    assert on_climb.distance_to_top == pytest.approx(500.0)
    assert on_climb.elevation_to_top == pytest.approx(40.0)

    assert tracker.locate(2500.0) is None


def test_tracker_bad_polyline_uses_single_segment():
    tracker = RouteClimbTracker()
    climbs = tracker.load_route([CLIMB], elevation_polyline="")
    assert len(climbs[0].segments) == 1


def test_tracker_initial_upcoming_climb_and_clear():
    tracker = RouteClimbTracker()
    seen = []
    tracker.subscribe(seen.append)
    tracker.load_route([CLIMB], current_distance=200.0)
    assert tracker.active_climb.id == "route_0_1000"

    tracker.clear_route()
    assert not tracker.has_route
    assert tracker.active_climb is None
    assert seen[-1] is None


def test_loading_new_route_replaces_active_climb():
    tracker = RouteClimbTracker()
    tracker.load_route([CLIMB])
    assert tracker.active_climb.id == "route_0_1000"

    tracker.load_route([RouteClimb(start_distance=3000.0, length=500.0, total_elevation=40.0, grade=8.0)])
    assert tracker.active_climb.id == "route_0_3000"

    tracker.load_route([CLIMB], current_distance=5000.0)
    assert tracker.active_climb is None
