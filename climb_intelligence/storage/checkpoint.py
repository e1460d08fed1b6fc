"""
Crash-recovery checkpoints for the W' balance.
Snapshots are written to a small JSON file atomically, periodically from a
background thread while a ride is recording and synchronously on shutdown.
"""
import json
import logging
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from .data_models import CheckpointData
from ..utils.config import ClimbConfig, get_config

logger = logging.getLogger(__name__)


class CheckpointManager:
    """
    Durable single-slot checkpoint store.

    A checkpoint older than ``max_age_seconds`` or one that cannot be parsed is
    treated as absent and deleted.
    """

    def __init__(self, path: Optional[str] = None, config: Optional[ClimbConfig] = None,
                 clock: Callable[[], float] = time.time):
        self.config = config or get_config()
        storage = self.config.storage
        self.path = Path(path) if path else Path(storage.data_dir) / storage.checkpoint_file
        self.max_age_seconds = storage.checkpoint_max_age_seconds
        self.interval_seconds = storage.checkpoint_interval_seconds
        self.clock = clock

        self._write_lock = threading.Lock()
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def save_checkpoint(self, balance: float, was_recording: bool = True) -> bool:
        """Write a checkpoint; failures are logged and reported as False."""
        checkpoint = CheckpointData(
            w_prime_balance=balance,
            was_recording=was_recording,
            timestamp=self._now_ms()
        )
        try:
            self._write(checkpoint)
            logger.debug(f"Checkpoint saved: {balance:.0f}J")
            return True
        except Exception as e:
            logger.warning(f"Failed to save checkpoint: {e}")
            return False

    def emergency_save(self, balance: float) -> bool:
        """Synchronous save on the shutdown path; the file is fsynced before returning."""
        self.stop_periodic()
        try:
            self._write(CheckpointData(w_prime_balance=balance, was_recording=True,
                                       timestamp=self._now_ms()))
            logger.info("Emergency checkpoint saved")
            return True
        except Exception as e:
            logger.error(f"Emergency checkpoint failed: {e}")
            return False

    def load(self) -> Optional[CheckpointData]:
        """Return the stored checkpoint if it is readable and fresh enough."""
        if not self.path.exists():
            return None
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                checkpoint = CheckpointData.from_dict(json.load(f))
        except Exception as e:
            logger.warning(f"Discarding unreadable checkpoint: {e}")
            self.clear()
            return None

        age_ms = self._now_ms() - checkpoint.timestamp
        if age_ms > self.max_age_seconds * 1000:
            logger.info(f"Discarding stale checkpoint (age: {age_ms // 1000}s)")
            self.clear()
            return None
        return checkpoint

    def try_restore(self, model) -> bool:
        """
        Restore the W' model from the checkpoint.

        Args:
            model: Object with a ``restore(balance)`` method

        Returns:
            True if a fresh checkpoint was applied
        """
        checkpoint = self.load()
        if checkpoint is None:
            return False
        model.restore(checkpoint.w_prime_balance)
        logger.info(f"Restored checkpoint (age: {(self._now_ms() - checkpoint.timestamp) // 1000}s)")
        return True

    def clear(self):
        try:
            with self._write_lock:
                self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to clear checkpoint: {e}")

    def start_periodic(self, balance_provider: Callable[[], float]):
        """Save every ``interval_seconds`` on a daemon thread until stopped."""
        self.stop_periodic()
        stop_event = threading.Event()

        def run():
            while not stop_event.wait(self.interval_seconds):
                try:
                    balance = balance_provider()
                except Exception as e:
                    logger.warning(f"Checkpoint balance unavailable: {e}")
                    continue
                self.save_checkpoint(balance)

        self._stop_event = stop_event
        self._thread = threading.Thread(target=run, name="checkpoint", daemon=True)
        self._thread.start()

    def stop_periodic(self):
        if self._stop_event is not None:
            self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=self.interval_seconds + 1.0)
        self._stop_event = None
        self._thread = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _write(self, checkpoint: CheckpointData):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._write_lock:
            fd, tmp_path = tempfile.mkstemp(prefix=".checkpoint-", dir=str(self.path.parent))
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(checkpoint.to_dict(), f)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
