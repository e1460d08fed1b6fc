"""
Data models for the climb intelligence system.
Defines live samples, climb descriptions and the snapshots each engine publishes.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum, IntEnum
from typing import Dict, Optional, Any, Tuple

from ..utils.config import PacingMode


@dataclass(frozen=True)
class Sample:
    """One sensor tick from the host data source."""
    power: int = 0  # W
    heart_rate: int = 0  # bpm
    cadence: int = 0  # rpm
    speed: float = 0.0  # m/s
    altitude: float = 0.0  # m
    grade: float = 0.0  # %
    distance: float = 0.0  # m, monotonic within a ride
    latitude: float = 0.0
    longitude: float = 0.0
    timestamp: int = 0  # ms since epoch
    has_data: bool = False  # False until the first real sample arrives

    @property
    def speed_kmh(self) -> float:
        return self.speed * 3.6


@dataclass(frozen=True)
class ClimbSegment:
    """Fixed-length sub-interval of a climb, distances relative to the climb start."""
    start_distance: float = 0.0
    end_distance: float = 0.0
    grade: float = 0.0
    length: float = 0.0
    elevation: float = 0.0


@dataclass(frozen=True)
class ClimbInfo:
    """A climb known from the loaded route or detected live from terrain."""
    id: str = ""
    name: str = ""
    category: int = 0  # 1=HC .. 5=Cat 4, 0=uncategorized
    length: float = 0.0
    elevation: float = 0.0
    avg_grade: float = 0.0
    max_grade: float = 0.0
    segments: Tuple[ClimbSegment, ...] = ()
    distance_to_top: float = 0.0
    elevation_to_top: float = 0.0
    progress: float = 0.0
    is_active: bool = False
    is_from_route: bool = False
    start_latitude: float = 0.0
    start_longitude: float = 0.0
    start_distance: float = 0.0  # route-relative, route climbs only
    start_timestamp: int = 0  # ms, detected climbs only

    @property
    def distance_to_top_km(self) -> float:
        return self.distance_to_top / 1000.0

    @property
    def progress_percent(self) -> float:
        return max(0.0, min(100.0, self.progress * 100.0))

    @property
    def category_label(self) -> str:
        return {1: "HC", 2: "1", 3: "2", 4: "3", 5: "4"}.get(self.category, "")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (segments excluded)."""
        return {
            'id': self.id,
            'name': self.name,
            'category': self.category,
            'length': self.length,
            'elevation': self.elevation,
            'avg_grade': self.avg_grade,
            'max_grade': self.max_grade,
            'distance_to_top': self.distance_to_top,
            'elevation_to_top': self.elevation_to_top,
            'progress': self.progress,
            'is_active': self.is_active,
            'is_from_route': self.is_from_route,
            'start_latitude': self.start_latitude,
            'start_longitude': self.start_longitude,
            'start_distance': self.start_distance,
            'start_timestamp': self.start_timestamp
        }


@dataclass(frozen=True)
class RouteClimb:
    """Raw climb definition supplied with a route, before translation to ClimbInfo."""
    start_distance: float
    length: float
    total_elevation: float
    grade: float


class WPrimeStatus(Enum):
    FRESH = "FRESH"  # > 90%
    GOOD = "GOOD"  # 70-90%
    WORKING = "WORKING"  # 50-70%
    DEPLETING = "DEPLETING"  # 30-50%
    CRITICAL = "CRITICAL"  # 10-30%
    EMPTY = "EMPTY"  # <= 10%


def w_prime_status(percentage: float) -> WPrimeStatus:
    """Bucket a W' percentage into its status."""
    if percentage > 90:
        return WPrimeStatus.FRESH
    if percentage > 70:
        return WPrimeStatus.GOOD
    if percentage > 50:
        return WPrimeStatus.WORKING
    if percentage > 30:
        return WPrimeStatus.DEPLETING
    if percentage > 10:
        return WPrimeStatus.CRITICAL
    return WPrimeStatus.EMPTY


@dataclass(frozen=True)
class WPrimeState:
    """Anaerobic work capacity balance snapshot."""
    balance: float = 20000.0
    max_balance: float = 20000.0
    percentage: float = 100.0
    depletion_rate: float = 0.0
    recovery_rate: float = 0.0
    time_to_empty: int = -1  # seconds, -1 when not depleting
    time_to_full: int = -1  # seconds, -1 when not recovering
    status: WPrimeStatus = WPrimeStatus.FRESH

    @classmethod
    def from_balance(cls, balance: float, max_balance: float) -> "WPrimeState":
        pct = max(0.0, min(100.0, balance / max_balance * 100.0)) if max_balance > 0 else 0.0
        return cls(
            balance=balance,
            max_balance=max_balance,
            percentage=pct,
            status=w_prime_status(pct)
        )


@dataclass(frozen=True)
class ClimbStats:
    """Performance accumulated over the active climb."""
    vam_rolling: int = 0  # m/h over the last 60 s
    vam_overall: int = 0  # m/h since the climb started
    energy_kj: float = 0.0
    elapsed_seconds: int = 0
    avg_power: int = 0
    max_power: int = 0
    avg_hr: int = 0
    max_hr: int = 0
    avg_cadence: int = 0
    w_kg: float = 0.0  # instantaneous
    avg_w_kg: float = 0.0
    is_tracking: bool = False


class PacingAdvice(Enum):
    EASE_OFF = "EASE_OFF"
    STEADY = "STEADY"
    PUSH = "PUSH"
    PERFECT = "PERFECT"


@dataclass(frozen=True)
class PacingTarget:
    """Power target for the current terrain and how the rider compares to it."""
    target_power: int = 0  # 0 = no target
    range_low: int = 0
    range_high: int = 0
    delta: int = 0  # actual - target
    advice: PacingAdvice = PacingAdvice.STEADY
    projected_time_seconds: int = 0
    target_speed: float = 0.0  # m/s expected when holding the target on this grade
    mode: PacingMode = PacingMode.STEADY

    @property
    def has_target(self) -> bool:
        return self.target_power > 0


class InsightType(Enum):
    STEEP_SECTION = "STEEP_SECTION"
    EASY_SECTION = "EASY_SECTION"
    GRADIENT_CHANGE = "GRADIENT_CHANGE"
    ATTACK_POINT = "ATTACK_POINT"
    RECOVERY_ZONE = "RECOVERY_ZONE"
    FINAL_KICK = "FINAL_KICK"
    DANGEROUS_SECTION = "DANGEROUS_SECTION"


class Priority(IntEnum):
    LOW = 0
    MEDIUM = 1
    HIGH = 2
    CRITICAL = 3


@dataclass(frozen=True)
class TacticalInsight:
    """Advisory about upcoming terrain on the active climb."""
    type: InsightType
    distance_ahead: float  # m
    description: str
    recommendation: str
    priority: Priority


@dataclass
class ClimbRecord:
    """Static climb metadata persisted the first time a climb is attempted."""
    id: str
    name: str
    latitude: float = 0.0
    longitude: float = 0.0
    length: float = 0.0
    elevation: float = 0.0
    avg_grade: float = 0.0
    max_grade: float = 0.0
    category: int = 0
    created_at: int = 0  # ms since epoch

    @classmethod
    def from_climb(cls, climb: ClimbInfo, created_at: Optional[int] = None) -> "ClimbRecord":
        return cls(
            id=climb.id,
            name=climb.name,
            latitude=climb.start_latitude,
            longitude=climb.start_longitude,
            length=climb.length,
            elevation=climb.elevation,
            avg_grade=climb.avg_grade,
            max_grade=climb.max_grade,
            category=climb.category,
            created_at=created_at if created_at is not None else current_millis()
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for CSV storage."""
        return {
            'id': self.id,
            'name': self.name,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'length': self.length,
            'elevation': self.elevation,
            'avg_grade': self.avg_grade,
            'max_grade': self.max_grade,
            'category': self.category,
            'created_at': self.created_at
        }


@dataclass
class Attempt:
    """One timed ascent of a climb."""
    climb_id: str
    time_ms: int
    id: int = 0  # assigned on insert
    date: int = 0  # ms since epoch
    avg_power: int = 0
    normalized_power: int = 0
    avg_hr: int = 0
    max_hr: int = 0
    is_pr: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for CSV storage."""
        return {
            'id': self.id,
            'climb_id': self.climb_id,
            'date': self.date,
            'time_ms': self.time_ms,
            'avg_power': self.avg_power,
            'normalized_power': self.normalized_power,
            'avg_hr': self.avg_hr,
            'max_hr': self.max_hr,
            'is_pr': self.is_pr
        }


@dataclass(frozen=True)
class SaveResult:
    """Outcome of saving an attempt."""
    attempt_id: int
    is_pr: bool  # beat an existing record; False for the first attempt on a climb
    improved_by_ms: int = 0


@dataclass(frozen=True)
class PRComparison:
    """Live comparison of the current ascent against the stored record."""
    has_pr: bool = False
    pr_time_ms: int = 0
    current_time_ms: int = 0
    delta_ms: int = 0
    is_ahead: bool = False


@dataclass(frozen=True)
class AlertEvent:
    """Fire-and-forget advisory handed to the host notification sink."""
    alert_id: str
    title: str
    detail: str
    urgent: bool = False
    sound: bool = False
    auto_dismiss_seconds: int = 5


@dataclass(frozen=True)
class CheckpointData:
    """Crash-recovery snapshot of the W' balance."""
    w_prime_balance: float = 0.0
    was_recording: bool = False
    timestamp: int = 0  # ms since epoch
    version: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'version': self.version,
            'w_prime_balance': self.w_prime_balance,
            'was_recording': self.was_recording,
            'timestamp': self.timestamp
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CheckpointData":
        """Build from a stored record, ignoring unknown fields."""
        return cls(
            w_prime_balance=float(data['w_prime_balance']),
            was_recording=bool(data.get('was_recording', False)),
            timestamp=int(data['timestamp']),
            version=int(data.get('version', 1))
        )


def current_millis() -> int:
    """Wall clock in milliseconds since epoch."""
    return int(datetime.now().timestamp() * 1000)


def create_route_climb_id(index: int, start_distance: float) -> str:
    """Create a route climb ID, stable across rides of the same route."""
    return f"route_{index}_{int(start_distance)}"


def create_detected_climb_id(start_timestamp: int) -> str:
    """Create an ID for a climb detected live from terrain."""
    return f"detected_{start_timestamp}"


def create_occurrence_id(climb_id: str, started_at: int) -> str:
    """Identify one ascent of a climb within a ride."""
    return f"{climb_id}@{started_at}"
