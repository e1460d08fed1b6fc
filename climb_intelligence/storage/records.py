"""
Record store for the climb intelligence system.
Saves timed attempts and keeps exactly one personal record flag per climb.
"""
import logging
import threading
from typing import List, Optional

from .csv_manager import CSVClimbStore
from .data_models import Attempt, ClimbRecord, SaveResult, current_millis

logger = logging.getLogger(__name__)


class ClimbRepository:
    """
    Attempt persistence with PR bookkeeping on top of a table store.

    The store only needs ``get_climb``, ``insert_climb``, ``get_fastest_attempt``,
    ``insert_attempt``, ``clear_pr`` and ``mark_as_pr``.
    """

    def __init__(self, store: Optional[CSVClimbStore] = None):
        self.store = store if store is not None else CSVClimbStore()
        self._lock = threading.Lock()

    def save_attempt(self, climb_id: str, metadata: ClimbRecord, time_ms: int,
                     avg_power: int = 0, avg_hr: int = 0, normalized_power: int = 0,
                     max_hr: int = 0, date: Optional[int] = None) -> SaveResult:
        """
        Persist an attempt and recompute the PR flag for its climb.

        Args:
            climb_id: Climb the attempt belongs to
            metadata: Static climb data, stored only the first time the climb is seen
            time_ms: Ascent time in milliseconds
            avg_power: Average power over the ascent
            avg_hr: Average heart rate over the ascent
            normalized_power: Normalized power, 0 when unknown
            max_hr: Maximum heart rate, 0 when unknown
            date: Attempt time in ms since epoch, now when omitted

        Returns:
            SaveResult; ``is_pr`` is True only when an existing record was beaten
        """
        with self._lock:
            if self.store.get_climb(climb_id) is None:
                self.store.insert_climb(metadata)

            fastest = self.store.get_fastest_attempt(climb_id)
            becomes_pr = fastest is None or time_ms < fastest.time_ms
            beat_record = fastest is not None and time_ms < fastest.time_ms
            improved_by = fastest.time_ms - time_ms if beat_record else 0

            attempt = Attempt(
                climb_id=climb_id,
                time_ms=time_ms,
                date=date if date is not None else current_millis(),
                avg_power=avg_power,
                normalized_power=normalized_power,
                avg_hr=avg_hr,
                max_hr=max_hr,
                is_pr=becomes_pr
            )
            attempt_id = self.store.insert_attempt(attempt)

            if becomes_pr:
                self.store.clear_pr(climb_id)
                self.store.mark_as_pr(attempt_id)

        if beat_record:
            logger.info(f"New PR on {climb_id}: {time_ms}ms, {improved_by}ms faster")
        else:
            logger.info(f"Saved attempt {attempt_id} on {climb_id}: {time_ms}ms")
        return SaveResult(attempt_id=attempt_id, is_pr=beat_record, improved_by_ms=improved_by)

    def get_pr(self, climb_id: str) -> Optional[Attempt]:
        return self.store.get_pr(climb_id)

    def get_attempts(self, climb_id: str) -> List[Attempt]:
        return self.store.get_attempts(climb_id)

    def get_all_climbs(self) -> List[ClimbRecord]:
        return self.store.get_all_climbs()

    def get_recent_attempts(self, limit: int = 50) -> List[Attempt]:
        return self.store.get_recent_attempts(limit)

    def find_nearby_climb(self, latitude: float, longitude: float,
                          radius_m: float = 200.0) -> Optional[ClimbRecord]:
        return self.store.find_nearby_climb(latitude, longitude, radius_m)
