"""
Current-value snapshot holders.

Every engine publishes its latest immutable snapshot through a ``StateHolder``.
Readers either poll ``value`` or subscribe a callback; subscriptions return a
``Subscription`` handle that the owner cancels when it stops listening.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Subscription:
    """Handle for one registered callback. Cancelling twice is harmless."""

    def __init__(self, cancel: Callable[[], None], name: str = ""):
        self._cancel = cancel
        self._lock = threading.Lock()
        self.name = name
        self.cancelled = False

    def cancel(self) -> None:
        with self._lock:
            if self.cancelled:
                return
            self.cancelled = True
        self._cancel()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()


class StateHolder(Generic[T]):
    """Atomically swapped snapshot with change notification."""

    def __init__(self, initial: T, name: str = ""):
        self._value = initial
        self._name = name
        self._lock = threading.Lock()
        self._subscribers: List[Callable[[T], None]] = []

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        """Publish a new snapshot and notify subscribers outside the lock."""
        with self._lock:
            self._value = value
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(value)
            except Exception as e:
                logger.warning(f"Subscriber of {self._name or 'state'} failed: {e}")

    def subscribe(self, callback: Callable[[T], None], emit_current: bool = False) -> Subscription:
        """Register ``callback`` for future snapshots, optionally replaying the current one."""
        with self._lock:
            self._subscribers.append(callback)
            current = self._value

        def _remove() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        if emit_current:
            try:
                callback(current)
            except Exception as e:
                logger.warning(f"Subscriber of {self._name or 'state'} failed: {e}")
        return Subscription(_remove, name=self._name)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)


class SubscriptionGroup:
    """Owns the subscriptions of one lifecycle scope and cancels them together."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: List[Subscription] = []

    def add(self, subscription: Optional[Subscription]) -> Optional[Subscription]:
        if subscription is not None:
            with self._lock:
                self._subscriptions.append(subscription)
        return subscription

    def cancel_all(self) -> None:
        with self._lock:
            subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            subscription.cancel()

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)
