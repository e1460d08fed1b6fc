"""
Live personal record comparison for the active climb.
"""
import logging
from typing import Optional

from ..core.observable import StateHolder
from ..storage.data_models import PRComparison
from ..utils.formatting import format_delta_ms

logger = logging.getLogger(__name__)


class PRComparisonEngine:
    """
    Compares the elapsed time on the current climb with the stored record.

    The record is looked up once per climb and cached until the climb changes.
    """

    def __init__(self, repository):
        self.repository = repository
        self._comparison = StateHolder(PRComparison(), name="pr_comparison")
        self._climb_id: Optional[str] = None
        self._pr_time_ms: Optional[int] = None

    @property
    def comparison(self) -> PRComparison:
        return self._comparison.value

    @property
    def delta_formatted(self) -> str:
        return format_delta_ms(self.comparison.delta_ms)

    def subscribe(self, callback, emit_current: bool = False):
        return self._comparison.subscribe(callback, emit_current=emit_current)

    def update(self, climb_id: str, current_time_ms: int) -> PRComparison:
        if climb_id != self._climb_id:
            self._climb_id = climb_id
            self._pr_time_ms = self._load_pr_time(climb_id)

        if self._pr_time_ms is None:
            comparison = PRComparison(current_time_ms=current_time_ms)
        else:
            delta = current_time_ms - self._pr_time_ms
            comparison = PRComparison(
                has_pr=True,
                pr_time_ms=self._pr_time_ms,
                current_time_ms=current_time_ms,
                delta_ms=delta,
                is_ahead=delta < 0
            )
        self._comparison.set(comparison)
        return comparison

    def invalidate(self):
        """Force the record to be reloaded on the next update."""
        self._climb_id = None
        self._pr_time_ms = None

    def reset(self):
        self.invalidate()
        self._comparison.set(PRComparison())

    def _load_pr_time(self, climb_id: str) -> Optional[int]:
        try:
            pr = self.repository.get_pr(climb_id)
        except Exception as e:
            logger.warning(f"Failed to get PR for {climb_id}: {e}")
            return None
        return pr.time_ms if pr is not None else None
