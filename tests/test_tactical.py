from climb_intelligence.metrics.tactical import TacticalAnalyzer
from climb_intelligence.storage.data_models import ClimbInfo, ClimbSegment, InsightType, Priority


def _make_climb(grades, avg_grade=8.0):
    segments = tuple(
        ClimbSegment(start_distance=i * 100.0, end_distance=(i + 1) * 100.0,
                     grade=g, length=100.0, elevation=g)
        for i, g in enumerate(grades)
    )
    return ClimbInfo(id="route_0_0", name="Cat 2 1.0km", length=len(grades) * 100.0,
                     avg_grade=avg_grade, max_grade=max(grades), segments=segments,
                     is_active=True, is_from_route=True)


def test_no_segments_no_insights():
    assert TacticalAnalyzer().analyze(ClimbInfo(id="x", length=1000), 0.0) == []


def test_insights_cover_upcoming_terrain():
    climb = _make_climb([5, 5, 14, 20, 3, 6, 7, 7, 7, 7])
    insights = TacticalAnalyzer().analyze(climb, 0.0)
    types = [i.type for i in insights]

    assert types[0] == InsightType.DANGEROUS_SECTION
    assert insights[0].distance_ahead == 300
    assert types.count(InsightType.STEEP_SECTION) == 2
    assert InsightType.RECOVERY_ZONE in types
    assert InsightType.ATTACK_POINT in types
    assert InsightType.GRADIENT_CHANGE in types
    assert InsightType.EASY_SECTION in types
    assert InsightType.FINAL_KICK not in types


def test_insights_sorted_by_priority_then_distance():
    climb = _make_climb([5, 5, 14, 20, 3, 6, 7, 7, 7, 7])
    insights = TacticalAnalyzer().analyze(climb, 0.0)
    keys = [(-i.priority, i.distance_ahead) for i in insights]
    assert keys == sorted(keys)


def test_primary_prefers_critical():
    climb = _make_climb([5, 5, 14, 20, 3, 6, 7, 7, 7, 7])
    primary = TacticalAnalyzer().get_primary_insight(climb, 0.0)
    assert primary.type == InsightType.DANGEROUS_SECTION
    assert primary.priority == Priority.CRITICAL


def test_primary_close_steep_section():
    climb = _make_climb([5, 5, 14, 5, 5, 5, 5, 5, 5, 5], avg_grade=5.9)
    primary = TacticalAnalyzer().get_primary_insight(climb, 0.05)
    assert primary.type == InsightType.STEEP_SECTION
    assert primary.distance_ahead == 150
    assert primary.priority == Priority.HIGH
    assert primary.recommendation.startswith("Steep in 150m")


def test_final_kick_on_easier_finish():
    climb = _make_climb([9, 9, 9, 9, 9, 6, 6, 6, 6, 6])
    insights = TacticalAnalyzer().analyze(climb, 0.6)
    kick = next(i for i in insights if i.type == InsightType.FINAL_KICK)
    assert kick.distance_ahead == 400
    assert kick.recommendation == "Finish is easier, go all out!"


def test_nothing_past_the_top():
    climb = _make_climb([5, 14, 20])
    assert TacticalAnalyzer().analyze(climb, 1.0) == []
    assert TacticalAnalyzer().get_primary_insight(climb, 1.0) is None
