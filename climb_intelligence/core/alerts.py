"""
In-ride alerts for the climb intelligence system.
Decides when to raise advisories and hands them to a host-supplied sink.
"""
import logging
import threading
import time
from typing import Callable, Dict, Optional

from .observable import Subscription
from ..storage.data_models import AlertEvent, WPrimeState, WPrimeStatus
from ..utils.config import ClimbConfig, get_config

logger = logging.getLogger(__name__)

ALERT_WPRIME = "climb_wprime"
ALERT_STEEP = "climb_steep"
ALERT_SUMMIT = "climb_summit"
ALERT_CLIMB_START = "climb_started"
ALERT_PR = "climb_pr"

URGENT_DISMISS_SECONDS = 8
NORMAL_DISMISS_SECONDS = 5


def log_sink(event: AlertEvent):
    """Default sink: write the alert to the log."""
    logger.info(f"[{event.alert_id}] {event.title}: {event.detail}")


class AlertManager:
    """
    Raises alerts with a per-kind cooldown.

    Cooldown timestamps are checked and updated together under a lock so two
    threads can never both pass the cooldown for the same kind.
    """

    def __init__(self, config: Optional[ClimbConfig] = None,
                 sink: Optional[Callable[[AlertEvent], None]] = None,
                 clock: Callable[[], float] = time.time):
        self.config = config or get_config()
        self.sink = sink or log_sink
        self.clock = clock
        self._lock = threading.Lock()
        self._last_alert: Dict[str, float] = {}
        self._monitor: Optional[Subscription] = None

    @property
    def is_monitoring(self) -> bool:
        return self._monitor is not None

    def start_monitoring(self, w_prime_model) -> Subscription:
        """Watch the W' balance and warn when it runs low."""
        self.stop_monitoring()
        self._monitor = w_prime_model.subscribe(self._on_w_prime)
        logger.debug("Alert monitoring started")
        return self._monitor

    def stop_monitoring(self):
        if self._monitor is not None:
            self._monitor.cancel()
            self._monitor = None
            logger.debug("Alert monitoring stopped")

    def reset(self):
        with self._lock:
            self._last_alert.clear()

    def _on_w_prime(self, state: WPrimeState):
        settings = self.config.alerts
        if not settings.enabled or not settings.w_prime:
            return
        low = (state.percentage <= settings.w_prime_threshold
               or state.status in (WPrimeStatus.CRITICAL, WPrimeStatus.EMPTY))
        if low:
            self._dispatch_with_cooldown(
                ALERT_WPRIME,
                "W' critical",
                f"Anaerobic reserve at {state.percentage:.0f}%, ease off to recover",
                urgent=True
            )

    def dispatch_climb_started(self, name: str, length_km: float, avg_grade: float) -> bool:
        settings = self.config.alerts
        if not settings.enabled or not settings.climb_start:
            return False
        return self._dispatch_with_cooldown(
            ALERT_CLIMB_START,
            "Climb started",
            f"{name}: {length_km:.1f}km at {avg_grade:.1f}%"
        )

    def dispatch_summit_approaching(self, distance_m: int) -> bool:
        settings = self.config.alerts
        if not settings.enabled or not settings.summit:
            return False
        return self._dispatch_with_cooldown(
            ALERT_SUMMIT,
            "Summit approaching",
            f"{distance_m}m to the top"
        )

    def dispatch_steep_ahead(self, distance_m: int, grade: float) -> bool:
        settings = self.config.alerts
        if not settings.enabled or not settings.steep:
            return False
        return self._dispatch_with_cooldown(
            ALERT_STEEP,
            "Steep section ahead",
            f"{grade:.0f}% in {distance_m}m",
            urgent=grade > 18.0
        )

    def dispatch_pr(self, time_delta: str) -> bool:
        """Announce a new personal record; PR alerts are never rate limited."""
        if not self.config.alerts.enabled:
            return False
        return self._send(AlertEvent(
            alert_id=ALERT_PR,
            title="New PR!",
            detail=f"Beat your record by {time_delta}",
            urgent=True,
            sound=self.config.alerts.sound,
            auto_dismiss_seconds=URGENT_DISMISS_SECONDS
        ))

    def notify(self, alert_id: str, title: str, detail: str) -> bool:
        """Short confirmation for a rider action, shown regardless of alert settings."""
        return self._send(AlertEvent(alert_id=alert_id, title=title, detail=detail,
                                     auto_dismiss_seconds=2))

    def _dispatch_with_cooldown(self, alert_id: str, title: str, detail: str,
                                urgent: bool = False) -> bool:
        now = self.clock()
        cooldown = self.config.alerts.cooldown_seconds
        with self._lock:
            last = self._last_alert.get(alert_id)
            if last is not None and now - last < cooldown:
                return False
            self._last_alert[alert_id] = now

        return self._send(AlertEvent(
            alert_id=alert_id,
            title=title,
            detail=detail,
            urgent=urgent,
            sound=self.config.alerts.sound,
            auto_dismiss_seconds=URGENT_DISMISS_SECONDS if urgent else NORMAL_DISMISS_SECONDS
        ))

    def _send(self, event: AlertEvent) -> bool:
        try:
            self.sink(event)
            return True
        except Exception as e:
            logger.error(f"Failed to dispatch alert {event.alert_id}: {e}")
            return False
