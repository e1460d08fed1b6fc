"""
Main module for the climb intelligence system.
Wires the live sample stream through every engine and owns their lifecycle:
connected sessions, ride state handling, attempt saving and checkpoints.
"""
import logging
import threading
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Set

from .core.alerts import AlertManager
from .core.fit_parser import dataframe_to_samples, load_ride
from .core.observable import StateHolder, Subscription, SubscriptionGroup
from .core.w_prime_balance import WPrimeBalanceModel
from .detection.climb_detector import ClimbDetector, DetectionState
from .detection.route_climbs import RouteClimbTracker
from .metrics.climb_stats import ClimbStatsTracker
from .metrics.pacing import PacingCalculator
from .metrics.pr_comparison import PRComparisonEngine
from .metrics.tactical import TacticalAnalyzer
from .storage.checkpoint import CheckpointManager
from .storage.csv_manager import CSVClimbStore
from .storage.data_models import (
    AlertEvent, ClimbInfo, ClimbRecord, ClimbStats, InsightType, RouteClimb, Sample,
    SaveResult, TacticalInsight, create_occurrence_id
)
from .storage.records import ClimbRepository
from .utils.config import ClimbConfig, PacingMode, get_config
from .utils.formatting import format_duration

logger = logging.getLogger(__name__)

STEEP_ALERT_DISTANCE = 300.0  # m


class RideState(Enum):
    RECORDING = "RECORDING"
    PAUSED = "PAUSED"
    IDLE = "IDLE"


@dataclass
class ClimbOccurrence:
    """One ascent of a climb within the current ride."""
    occurrence_id: str
    record_id: str  # climb id attempts are stored under
    climb: ClimbInfo
    started_at: int  # ms, sample clock
    last_stats: ClimbStats = field(default_factory=ClimbStats)
    confirmed: bool = False
    summit_alerted: bool = False

    @property
    def eligible(self) -> bool:
        """Route climbs always count, detected ones only once confirmed."""
        return self.climb.is_from_route or self.confirmed


@dataclass
class RideSummary:
    """What happened during one ride."""
    started_at: int = 0
    ended_at: int = 0
    samples: int = 0
    climbs: List[str] = field(default_factory=list)
    attempts: List[SaveResult] = field(default_factory=list)
    final_w_prime_balance: float = 0.0
    final_w_prime_percentage: float = 100.0
    min_w_prime_percentage: float = 100.0

    @property
    def pr_count(self) -> int:
        return sum(1 for a in self.attempts if a.is_pr)


class ConnectedSession:
    """
    Subscriptions created for one connection cycle.

    Closing the session cancels every handle; a closed session forwards nothing.
    """

    def __init__(self, app: "ClimbIntelligence"):
        self._app = app
        self._subscriptions = SubscriptionGroup()
        self._closed = False

    @property
    def is_open(self) -> bool:
        return not self._closed

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    def add(self, subscription: Optional[Subscription]) -> Optional[Subscription]:
        if self._closed:
            if subscription is not None:
                subscription.cancel()
            return None
        return self._subscriptions.add(subscription)

    def push_sample(self, sample: Sample) -> bool:
        if self._closed:
            return False
        self._app.push_sample(sample)
        return True

    def close(self):
        if self._closed:
            return
        self._closed = True
        self._subscriptions.cancel_all()
        logger.info("Session closed")

    def __enter__(self) -> "ConnectedSession":
        return self

    def __exit__(self, exc_type, exc, tb):
        self._app._release_session(self)


class RideStateMonitor:
    """Reacts to RECORDING / PAUSED / IDLE transitions of the host ride."""

    def __init__(self, app: "ClimbIntelligence"):
        self._app = app
        self._lock = threading.Lock()
        self._recording = False
        self.state = RideState.IDLE

    @property
    def is_recording(self) -> bool:
        return self._recording

    def handle(self, state: RideState):
        logger.debug(f"Ride state: {state.name}")
        with self._lock:
            previous_recording = self._recording
            self.state = state
            if state == RideState.RECORDING:
                self._recording = True
            elif state == RideState.IDLE:
                self._recording = False

        if state == RideState.RECORDING and not previous_recording:
            self._app._start_ride()
        elif state == RideState.PAUSED:
            self._app.checkpoint.save_checkpoint(self._app.w_prime.balance)
        elif state == RideState.IDLE and previous_recording:
            self._app._end_ride()


class ClimbIntelligence:
    """
    Application context owning every engine.

    Engines receive the shared configuration, store and clock through their
    constructors; nothing is reached through globals once the context exists.
    """

    def __init__(self, config: Optional[ClimbConfig] = None, data_dir: Optional[str] = None,
                 repository: Optional[ClimbRepository] = None,
                 alert_sink: Optional[Callable[[AlertEvent], None]] = None,
                 checkpoint_path: Optional[str] = None,
                 clock: Callable[[], float] = time.time):
        self.config = config or get_config()
        self.clock = clock

        self.repository = repository or ClimbRepository(CSVClimbStore(data_dir, self.config))
        if checkpoint_path is None and data_dir is not None:
            checkpoint_path = str(Path(data_dir) / self.config.storage.checkpoint_file)
        self.checkpoint = CheckpointManager(checkpoint_path, self.config, clock=clock)

        self.w_prime = WPrimeBalanceModel(self.config)
        self.detector = ClimbDetector(self.config)
        self.route = RouteClimbTracker()
        self.pacing = PacingCalculator(self.config)
        self.stats = ClimbStatsTracker(self.config)
        self.tactical = TacticalAnalyzer()
        self.pr_comparison = PRComparisonEngine(self.repository)
        self.alerts = AlertManager(self.config, alert_sink, clock=self._ride_time)
        self.ride_monitor = RideStateMonitor(self)

        self._samples: StateHolder[Sample] = StateHolder(Sample(), name="sample")
        self._ride_state: StateHolder[RideState] = StateHolder(RideState.IDLE, name="ride_state")
        self._active_climb: StateHolder[Optional[ClimbInfo]] = StateHolder(None, name="active_climb")

        self._pipeline_lock = threading.RLock()
        self._saved_lock = threading.Lock()
        self._saved_occurrences: Set[str] = set()
        self._occurrence: Optional[ClimbOccurrence] = None
        self._session: Optional[ConnectedSession] = None

        self.ride_summary = RideSummary()
        self.last_ride_summary: Optional[RideSummary] = None

        logger.info("Climb intelligence initialized")

    # Lifecycle

    @property
    def session(self) -> Optional[ConnectedSession]:
        return self._session

    @property
    def active_climb(self) -> Optional[ClimbInfo]:
        return self._active_climb.value

    @property
    def last_sample(self) -> Sample:
        return self._samples.value

    def _ride_time(self) -> float:
        """Seconds on the sample clock, falling back to the host clock before any data."""
        sample = self._samples.value
        if sample.has_data:
            return sample.timestamp / 1000.0
        return self.clock()

    def subscribe_active_climb(self, callback, emit_current: bool = False) -> Subscription:
        return self._active_climb.subscribe(callback, emit_current=emit_current)

    def connect(self) -> ConnectedSession:
        """Start forwarding samples and ride state into the engines."""
        if self._session is not None and self._session.is_open:
            return self._session

        session = ConnectedSession(self)
        session.add(self._samples.subscribe(self._on_sample))
        session.add(self._ride_state.subscribe(self.ride_monitor.handle))
        if self.ride_monitor.is_recording:
            session.add(self.alerts.start_monitoring(self.w_prime))
        self._session = session
        logger.info("Session connected")
        return session

    def disconnect(self):
        """Stop forwarding; engines keep their state until the next connection."""
        self.alerts.stop_monitoring()
        if self._session is not None:
            self._session.close()
            self._session = None

    def _release_session(self, session: ConnectedSession):
        """Close ``session``; only the current session takes the app offline."""
        if session is self._session:
            self.disconnect()
        else:
            session.close()

    def shutdown(self):
        """Emergency stop: persist the W' balance synchronously if a ride is recording."""
        if self.ride_monitor.is_recording:
            self.checkpoint.emergency_save(self.w_prime.balance)
        self.checkpoint.stop_periodic()
        self.disconnect()
        logger.info("Climb intelligence shut down")

    def restore_checkpoint(self) -> bool:
        try:
            return self.checkpoint.try_restore(self.w_prime)
        except Exception as e:
            logger.warning(f"Failed to restore checkpoint: {e}")
            return False

    # Host inputs

    def push_sample(self, sample: Sample):
        """Deliver one sensor sample; ignored unless a session is connected."""
        self._samples.set(sample)

    def set_ride_state(self, state: RideState):
        self._ride_state.set(state)

    def load_route(self, climbs: Sequence[RouteClimb], elevation_polyline: Optional[str] = None):
        with self._pipeline_lock:
            translated = self.route.load_route(climbs, elevation_polyline,
                                               current_distance=self.last_sample.distance)
            self._active_climb.set(self.route.active_climb)
        return translated

    def clear_route(self):
        with self._pipeline_lock:
            self.route.clear_route()
            self._active_climb.set(self.detector.detected_climb)

    def cycle_pacing_mode(self) -> PacingMode:
        mode = self.config.pacing.next_mode()
        self.config.update_pacing_settings(mode=mode)
        logger.info(f"Pacing mode: {mode.name}")
        self.alerts.notify("pacing-mode", "Pacing mode", mode.name)
        return mode

    def reset_w_prime(self):
        self.w_prime.reset()
        self.alerts.notify("wprime-reset", "W' reset", "Anaerobic reserve set to full")

    # Queries

    def current_insights(self) -> List[TacticalInsight]:
        climb = self.active_climb
        if climb is None:
            return []
        return self.tactical.analyze(climb, climb.progress)

    def primary_insight(self) -> Optional[TacticalInsight]:
        climb = self.active_climb
        if climb is None:
            return None
        return self.tactical.get_primary_insight(climb, climb.progress)

    # Sample pipeline

    def _on_sample(self, sample: Sample):
        with self._pipeline_lock:
            recording = self.ride_monitor.is_recording
            self.detector.update_settings(self.config.detection)

            w_prime = self.w_prime.update(sample)
            if recording:
                self.ride_summary.samples += 1
                self.ride_summary.min_w_prime_percentage = min(
                    self.ride_summary.min_w_prime_percentage, w_prime.percentage)

            detected = self.detector.update(sample)
            if self.route.has_route:
                active = self.route.locate(sample.distance)
            else:
                active = detected
            self._active_climb.set(active)

            self.pacing.update(sample, active)
            if recording:
                self._track_occurrence(sample, active)
            stats = self.stats.update(sample, active)

            occurrence = self._occurrence
            if occurrence is not None:
                if stats.is_tracking:
                    occurrence.last_stats = stats
                self._climb_feedback(sample, occurrence)

    def _track_occurrence(self, sample: Sample, climb: Optional[ClimbInfo]):
        climb_id = climb.id if climb is not None and climb.is_active else None
        occurrence = self._occurrence

        if occurrence is not None and occurrence.climb.id != climb_id:
            self._occurrence = None
            self._complete_occurrence(occurrence, sample.timestamp)

        if climb_id is None:
            return

        if self._occurrence is None:
            self._occurrence = ClimbOccurrence(
                occurrence_id=create_occurrence_id(climb_id, sample.timestamp),
                record_id=self._resolve_record_id(climb),
                climb=climb,
                started_at=sample.timestamp
            )
            logger.info(f"Climb started: {climb.name}")
            if climb.is_from_route:
                self._announce_climb(climb)
        else:
            self._occurrence.climb = climb

        occurrence = self._occurrence
        if (not occurrence.confirmed
                and self.detector.detection_state == DetectionState.CONFIRMED_CLIMB):
            occurrence.confirmed = True
            # Detected climbs announce on confirmation
            if not climb.is_from_route:
                self._announce_climb(climb)

    def _announce_climb(self, climb: ClimbInfo):
        self.ride_summary.climbs.append(climb.name)
        self.alerts.dispatch_climb_started(climb.name, climb.length / 1000.0, climb.avg_grade)

    def _resolve_record_id(self, climb: ClimbInfo) -> str:
        """Detected climbs reuse the id of a stored climb starting at the same spot."""
        if climb.is_from_route or (climb.start_latitude == 0.0 and climb.start_longitude == 0.0):
            return climb.id
        try:
            nearby = self.repository.find_nearby_climb(climb.start_latitude, climb.start_longitude)
        except Exception as e:
            logger.warning(f"Nearby climb lookup failed: {e}")
            return climb.id
        return nearby.id if nearby is not None else climb.id

    def _climb_feedback(self, sample: Sample, occurrence: ClimbOccurrence):
        elapsed_ms = max(0, sample.timestamp - occurrence.started_at)
        self.pr_comparison.update(occurrence.record_id, elapsed_ms)

        climb = occurrence.climb
        if not climb.is_from_route:
            return

        summit_distance = self.config.alerts.summit_distance
        if not occurrence.summit_alerted and 0 < climb.distance_to_top <= summit_distance:
            occurrence.summit_alerted = True
            self.alerts.dispatch_summit_approaching(int(climb.distance_to_top))

        insight = self.tactical.get_primary_insight(climb, climb.progress)
        if (insight is not None
                and insight.type in (InsightType.STEEP_SECTION, InsightType.DANGEROUS_SECTION)
                and insight.distance_ahead < STEEP_ALERT_DISTANCE):
            upcoming = climb.progress * climb.length + insight.distance_ahead
            segment = min(climb.segments, key=lambda s: abs(s.start_distance - upcoming))
            grade = segment.grade
            self.alerts.dispatch_steep_ahead(int(insight.distance_ahead), grade)

    # Attempt saving

    def _claim_occurrence(self, occurrence_id: str) -> bool:
        """Atomically mark an occurrence as saved; False if it already was."""
        with self._saved_lock:
            if occurrence_id in self._saved_occurrences:
                return False
            self._saved_occurrences.add(occurrence_id)
            return True

    def _complete_occurrence(self, occurrence: ClimbOccurrence, ended_at: int) -> Optional[SaveResult]:
        elapsed_ms = ended_at - occurrence.started_at
        logger.info(f"Climb completed: {occurrence.climb.name} in {elapsed_ms / 1000:.0f}s")

        if elapsed_ms < self.config.session.min_attempt_seconds * 1000:
            logger.debug(f"Not saving {occurrence.occurrence_id}: too short")
            return None
        if not occurrence.eligible:
            logger.debug(f"Not saving {occurrence.occurrence_id}: never confirmed")
            return None
        if not self._claim_occurrence(occurrence.occurrence_id):
            logger.debug(f"Occurrence {occurrence.occurrence_id} already saved")
            return None

        metadata = replace(ClimbRecord.from_climb(occurrence.climb, created_at=ended_at),
                           id=occurrence.record_id)
        stats = occurrence.last_stats
        try:
            result = self.repository.save_attempt(
                occurrence.record_id,
                metadata,
                elapsed_ms,
                avg_power=stats.avg_power,
                avg_hr=stats.avg_hr,
                max_hr=stats.max_hr,
                date=ended_at
            )
        except Exception as e:
            logger.error(f"Failed to save attempt on {occurrence.record_id}: {e}")
            return None

        self.ride_summary.attempts.append(result)
        self.pr_comparison.invalidate()
        if result.is_pr:
            self.alerts.dispatch_pr(format_duration(result.improved_by_ms / 1000))
        return result

    # Ride lifecycle

    def _start_ride(self):
        with self._saved_lock:
            self._saved_occurrences.clear()
        self.ride_summary = RideSummary(started_at=int(self.clock() * 1000))
        if self._session is not None:
            self._session.add(self.alerts.start_monitoring(self.w_prime))
        self.checkpoint.start_periodic(lambda: self.w_prime.balance)
        logger.info("Ride started")

    def _end_ride(self):
        self.alerts.stop_monitoring()
        self.checkpoint.stop_periodic()
        self.checkpoint.clear()

        with self._pipeline_lock:
            occurrence = self._occurrence
            self._occurrence = None
            if occurrence is not None:
                self._complete_occurrence(occurrence, self.last_sample.timestamp)

            summary = self.ride_summary
            summary.ended_at = int(self.clock() * 1000)
            summary.final_w_prime_balance = self.w_prime.state.balance
            summary.final_w_prime_percentage = self.w_prime.state.percentage
            self.last_ride_summary = summary

            self.w_prime.reset()
            self.detector.reset()
            self.alerts.reset()
            self.stats.reset()
            self.pacing.reset()
            self.pr_comparison.reset()
            self._active_climb.set(self.route.active_climb if self.route.has_route else None)

        logger.info(f"Ride ended: {len(summary.climbs)} climbs, {len(summary.attempts)} attempts saved")


def replay_ride(file_path: str, app: Optional[ClimbIntelligence] = None,
                data_dir: Optional[str] = None) -> RideSummary:
    """
    Convenience function to push a recorded ride through a full session.

    Args:
        file_path: FIT or CSV ride file
        app: Optional configured ClimbIntelligence instance
        data_dir: Data directory used when no app is given

    Returns:
        RideSummary of the replayed ride
    """
    df = load_ride(file_path)
    if app is None:
        app = ClimbIntelligence(data_dir=data_dir)

    with app.connect():
        app.set_ride_state(RideState.RECORDING)
        for sample in dataframe_to_samples(df):
            app.push_sample(sample)
        app.set_ride_state(RideState.IDLE)

    return app.last_ride_summary or RideSummary()
