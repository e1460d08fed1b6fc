"""
Tactical analysis module for the climb intelligence system.
Looks ahead over the segments of the active climb and produces prioritized advice:
steep sections, recovery zones, attack points, the final kick and so on.
"""
from typing import List, Optional

from ..storage.data_models import ClimbInfo, InsightType, Priority, TacticalInsight

FINAL_KICK_WINDOW = 500.0


class TacticalAnalyzer:
    """Stateless segment lookahead; every call recomputes from the climb snapshot."""

    def analyze(self, climb: ClimbInfo, current_progress: float) -> List[TacticalInsight]:
        """
        Analyze the climb from the rider's position.

        Args:
            climb: Climb with its segment breakdown
            current_progress: Progress along the climb, 0.0-1.0

        Returns:
            Insights sorted by descending priority, closest first within a priority
        """
        if not climb.segments:
            return []

        current_distance = current_progress * climb.length
        upcoming = [s for s in climb.segments if s.start_distance > current_distance]
        pairs = list(zip(upcoming, upcoming[1:]))
        insights: List[TacticalInsight] = []

        # Steep sections
        for seg in [s for s in upcoming if s.grade > 12.0][:2]:
            ahead = seg.start_distance - current_distance
            if ahead < 100:
                recommendation = "Steep NOW: shift down, stay seated"
            elif ahead < 300:
                recommendation = f"Steep in {int(ahead)}m: ease off 10W now"
            else:
                recommendation = f"Steep section at {int(ahead)}m: plan your effort"
            insights.append(TacticalInsight(
                type=InsightType.STEEP_SECTION,
                distance_ahead=ahead,
                description=f"{int(seg.grade)}% for {int(seg.length)}m",
                recommendation=recommendation,
                priority=Priority.HIGH if ahead < 200 else Priority.MEDIUM
            ))

        # Recovery zones after a hard segment
        for seg, next_seg in pairs:
            if seg.grade > 8.0 and next_seg.grade < 5.0:
                ahead = next_seg.start_distance - current_distance
                insights.append(TacticalInsight(
                    type=InsightType.RECOVERY_ZONE,
                    distance_ahead=ahead,
                    description=f"{int(next_seg.grade)}% for {int(next_seg.length)}m",
                    recommendation=f"Recovery zone at {int(ahead)}m: use it to rebuild W'",
                    priority=Priority.MEDIUM
                ))

        # First moderate segment before a wall
        for seg, next_seg in pairs:
            if seg.grade < 6.0 and next_seg.grade > 10.0:
                insights.append(TacticalInsight(
                    type=InsightType.ATTACK_POINT,
                    distance_ahead=seg.start_distance - current_distance,
                    description="Flat before steep, good attack point",
                    recommendation="Surge here to gap rivals before the wall",
                    priority=Priority.LOW
                ))
                break

        insight = self._final_kick(climb, current_distance)
        if insight is not None:
            insights.append(insight)

        dangerous = next((s for s in upcoming if s.grade > 18.0), None)
        if dangerous is not None:
            insights.append(TacticalInsight(
                type=InsightType.DANGEROUS_SECTION,
                distance_ahead=dangerous.start_distance - current_distance,
                description=f"Max {int(dangerous.grade)}% gradient!",
                recommendation="Extreme gradient: consider standing, lowest gear",
                priority=Priority.CRITICAL
            ))

        # Sudden ramps
        for seg, next_seg in pairs:
            if next_seg.grade - seg.grade > 4.0:
                ahead = next_seg.start_distance - current_distance
                if ahead < 500:
                    insights.append(TacticalInsight(
                        type=InsightType.GRADIENT_CHANGE,
                        distance_ahead=ahead,
                        description=f"{int(seg.grade)}% -> {int(next_seg.grade)}%",
                        recommendation=f"Grade ramps up in {int(ahead)}m: prepare to shift",
                        priority=Priority.HIGH if ahead < 150 else Priority.MEDIUM
                    ))

        # Easier ground, only worth calling out on a hard climb
        if climb.avg_grade > 6.0:
            easy = next((s for s in upcoming if s.grade < 4.0 and s.length > 50), None)
            if easy is not None:
                ahead = easy.start_distance - current_distance
                if ahead < 800:
                    insights.append(TacticalInsight(
                        type=InsightType.EASY_SECTION,
                        distance_ahead=ahead,
                        description=f"{int(easy.grade)}% for {int(easy.length)}m",
                        recommendation=f"Easier section at {int(ahead)}m: recover here",
                        priority=Priority.LOW
                    ))

        insights.sort(key=lambda i: (-i.priority, i.distance_ahead))
        return insights

    def get_primary_insight(self, climb: ClimbInfo, current_progress: float) -> Optional[TacticalInsight]:
        """The single most actionable insight: CRITICAL, else a close HIGH, else the first."""
        insights = self.analyze(climb, current_progress)
        for insight in insights:
            if insight.priority == Priority.CRITICAL:
                return insight
        for insight in insights:
            if insight.priority == Priority.HIGH and insight.distance_ahead < 300:
                return insight
        return insights[0] if insights else None

    @staticmethod
    def _final_kick(climb: ClimbInfo, current_distance: float) -> Optional[TacticalInsight]:
        remaining = climb.length - current_distance
        if not 100.0 <= remaining <= FINAL_KICK_WINDOW:
            return None

        final_segments = [s for s in climb.segments if s.end_distance >= climb.length - FINAL_KICK_WINDOW]
        if final_segments:
            final_grade = sum(s.grade for s in final_segments) / len(final_segments)
        else:
            final_grade = climb.avg_grade

        if final_grade < climb.avg_grade:
            recommendation = "Finish is easier, go all out!"
        elif final_grade > climb.avg_grade + 2:
            recommendation = "Finish is steep, save something for the end"
        else:
            recommendation = "Consistent finish, maintain effort"

        return TacticalInsight(
            type=InsightType.FINAL_KICK,
            distance_ahead=remaining,
            description=f"Final {int(remaining)}m at {int(final_grade)}%",
            recommendation=recommendation,
            priority=Priority.HIGH
        )
