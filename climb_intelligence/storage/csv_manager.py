"""
CSV storage manager for the climb intelligence system.
Persists climbs and timed attempts to CSV tables with backup functionality.
"""
import logging
import shutil
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from .data_models import Attempt, ClimbRecord, current_millis
from ..utils.config import ClimbConfig, get_config

logger = logging.getLogger(__name__)

CLIMB_COLUMNS = ['id', 'name', 'latitude', 'longitude', 'length', 'elevation',
                 'avg_grade', 'max_grade', 'category', 'created_at']
ATTEMPT_COLUMNS = ['id', 'climb_id', 'date', 'time_ms', 'avg_power', 'normalized_power',
                   'avg_hr', 'max_hr', 'is_pr']

EARTH_RADIUS_M = 6371000.0


def haversine_distance(lat1, lon1, lat2, lon2):
    """Great-circle distance in metres; accepts numpy arrays."""
    lat1, lon1, lat2, lon2 = map(np.radians, (lat1, lon1, lat2, lon2))
    a = np.sin((lat2 - lat1) / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin((lon2 - lon1) / 2) ** 2
    return 2 * EARTH_RADIUS_M * np.arcsin(np.sqrt(a))


class CSVClimbStore:
    """
    Manages CSV storage for climbs and attempts.

    Every table access runs under one lock, so read-modify-write sequences from the
    ride thread and the checkpoint thread never interleave.
    """

    def __init__(self, data_dir: Optional[str] = None, config: Optional[ClimbConfig] = None):
        self.config = config or get_config()
        storage = self.config.storage
        self.data_dir = Path(data_dir) if data_dir else Path(storage.data_dir)
        self.data_dir.mkdir(exist_ok=True, parents=True)

        self.climbs_file = self.data_dir / storage.csv_climbs
        self.attempts_file = self.data_dir / storage.csv_attempts

        self.backup_dir = self.data_dir / "backups"
        if storage.backup_enabled:
            self.backup_dir.mkdir(exist_ok=True)

        self._lock = threading.RLock()
        logger.info(f"CSV storage initialized: {self.data_dir}")

    # Climbs

    def get_climb(self, climb_id: str) -> Optional[ClimbRecord]:
        with self._lock:
            df = self._read_climbs()
        match = df[df['id'] == climb_id]
        if match.empty:
            return None
        return self._row_to_climb(match.iloc[0])

    def insert_climb(self, climb: ClimbRecord) -> bool:
        """
        Insert climb metadata unless the climb is already stored.

        Returns:
            True if inserted, False if the climb already existed
        """
        with self._lock:
            df = self._read_climbs()
            if climb.id in df['id'].values:
                return False
            new_data = pd.DataFrame([climb.to_dict()], columns=CLIMB_COLUMNS)
            combined = new_data if df.empty else pd.concat([df, new_data], ignore_index=True)
            self._write(combined, self.climbs_file, "climbs")
        logger.info(f"Stored climb: {climb.id} ({climb.name})")
        return True

    def get_all_climbs(self) -> List[ClimbRecord]:
        """All stored climbs, newest first."""
        with self._lock:
            df = self._read_climbs()
        df = df.sort_values('created_at', ascending=False, kind='stable')
        return [self._row_to_climb(row) for _, row in df.iterrows()]

    def delete_climb(self, climb_id: str) -> bool:
        with self._lock:
            df = self._read_climbs()
            if climb_id not in df['id'].values:
                return False
            self._write(df[df['id'] != climb_id], self.climbs_file, "climbs")
        return True

    def find_nearby_climb(self, latitude: float, longitude: float,
                          radius_m: float = 200.0) -> Optional[ClimbRecord]:
        """Closest stored climb whose start lies within ``radius_m``."""
        with self._lock:
            df = self._read_climbs()
        if df.empty:
            return None

        distances = haversine_distance(latitude, longitude,
                                       df['latitude'].to_numpy(dtype=float),
                                       df['longitude'].to_numpy(dtype=float))
        nearest = int(np.argmin(distances))
        if distances[nearest] > radius_m:
            return None
        return self._row_to_climb(df.iloc[nearest])

    # Attempts

    def insert_attempt(self, attempt: Attempt) -> int:
        """
        Append an attempt and assign it the next integer id.

        Returns:
            The new attempt id
        """
        with self._lock:
            df = self._read_attempts()
            attempt_id = int(df['id'].max()) + 1 if not df.empty else 1
            record = attempt.to_dict()
            record['id'] = attempt_id
            if not record['date']:
                record['date'] = current_millis()
            new_data = pd.DataFrame([record], columns=ATTEMPT_COLUMNS)
            combined = new_data if df.empty else pd.concat([df, new_data], ignore_index=True)
            self._write(combined, self.attempts_file, "attempts")
        attempt.id = attempt_id
        return attempt_id

    def get_attempts(self, climb_id: str) -> List[Attempt]:
        """Attempts on a climb, newest first."""
        with self._lock:
            df = self._read_attempts()
        df = df[df['climb_id'] == climb_id]
        return self._to_attempts(df.sort_values(['date', 'id'], ascending=False))

    def get_recent_attempts(self, limit: int = 50) -> List[Attempt]:
        with self._lock:
            df = self._read_attempts()
        return self._to_attempts(df.sort_values(['date', 'id'], ascending=False).head(limit))

    def get_fastest_attempt(self, climb_id: str) -> Optional[Attempt]:
        with self._lock:
            df = self._read_attempts()
        df = df[df['climb_id'] == climb_id]
        if df.empty:
            return None
        return self._row_to_attempt(df.sort_values(['time_ms', 'id']).iloc[0])

    def get_pr(self, climb_id: str) -> Optional[Attempt]:
        with self._lock:
            df = self._read_attempts()
        df = df[(df['climb_id'] == climb_id) & df['is_pr']]
        if df.empty:
            return None
        return self._row_to_attempt(df.iloc[0])

    def clear_pr(self, climb_id: str):
        with self._lock:
            df = self._read_attempts()
            mask = df['climb_id'] == climb_id
            if not df.loc[mask, 'is_pr'].any():
                return
            df.loc[mask, 'is_pr'] = False
            self._write(df, self.attempts_file, "attempts")

    def mark_as_pr(self, attempt_id: int):
        with self._lock:
            df = self._read_attempts()
            mask = df['id'] == attempt_id
            if not mask.any():
                logger.warning(f"Cannot mark missing attempt {attempt_id} as PR")
                return
            df.loc[mask, 'is_pr'] = True
            self._write(df, self.attempts_file, "attempts")

    def delete_attempt(self, attempt_id: int) -> bool:
        with self._lock:
            df = self._read_attempts()
            if attempt_id not in df['id'].values:
                return False
            self._write(df[df['id'] != attempt_id], self.attempts_file, "attempts")
        logger.info(f"Deleted attempt {attempt_id}")
        return True

    def get_storage_stats(self) -> Dict[str, Any]:
        """Get statistics about stored data."""
        stats = {
            'climbs_count': 0,
            'attempts_count': 0,
            'pr_count': 0,
            'date_range': None,
            'storage_size_mb': 0.0,
            'backup_count': 0
        }

        try:
            with self._lock:
                climbs = self._read_climbs()
                attempts = self._read_attempts()
            stats['climbs_count'] = len(climbs)
            stats['attempts_count'] = len(attempts)
            stats['pr_count'] = int(attempts['is_pr'].sum()) if not attempts.empty else 0

            if not attempts.empty:
                dates = pd.to_datetime(attempts['date'], unit='ms')
                stats['date_range'] = {
                    'earliest': dates.min(),
                    'latest': dates.max()
                }

            for path in (self.climbs_file, self.attempts_file):
                if path.exists():
                    stats['storage_size_mb'] += path.stat().st_size / (1024 * 1024)

            if self.config.storage.backup_enabled and self.backup_dir.exists():
                stats['backup_count'] = len(list(self.backup_dir.glob("*.csv")))

        except Exception as e:
            logger.error(f"Error getting storage stats: {e}")

        return stats

    # Table access

    def _read_climbs(self) -> pd.DataFrame:
        if not self.climbs_file.exists():
            return pd.DataFrame(columns=CLIMB_COLUMNS)
        return pd.read_csv(self.climbs_file, dtype={'id': str, 'name': str}, keep_default_na=False)

    def _read_attempts(self) -> pd.DataFrame:
        if not self.attempts_file.exists():
            return pd.DataFrame(columns=ATTEMPT_COLUMNS)
        df = pd.read_csv(self.attempts_file, dtype={'climb_id': str})
        df['is_pr'] = df['is_pr'].astype(bool)
        return df

    def _write(self, df: pd.DataFrame, file_path: Path, file_type: str):
        if self.config.storage.backup_enabled and file_path.exists():
            self._create_backup(file_path, file_type)
        df.to_csv(file_path, index=False)

    @staticmethod
    def _row_to_climb(row) -> ClimbRecord:
        return ClimbRecord(
            id=str(row['id']),
            name=str(row['name']),
            latitude=float(row['latitude']),
            longitude=float(row['longitude']),
            length=float(row['length']),
            elevation=float(row['elevation']),
            avg_grade=float(row['avg_grade']),
            max_grade=float(row['max_grade']),
            category=int(row['category']),
            created_at=int(row['created_at'])
        )

    @staticmethod
    def _row_to_attempt(row) -> Attempt:
        return Attempt(
            id=int(row['id']),
            climb_id=str(row['climb_id']),
            date=int(row['date']),
            time_ms=int(row['time_ms']),
            avg_power=int(row['avg_power']),
            normalized_power=int(row['normalized_power']),
            avg_hr=int(row['avg_hr']),
            max_hr=int(row['max_hr']),
            is_pr=bool(row['is_pr'])
        )

    def _to_attempts(self, df: pd.DataFrame) -> List[Attempt]:
        return [self._row_to_attempt(row) for _, row in df.iterrows()]

    def _create_backup(self, file_path: Path, file_type: str):
        """Create a backup of the specified file."""
        try:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
            backup_path = self.backup_dir / f"{file_type}_{timestamp}.csv"
            shutil.copy2(file_path, backup_path)
            self._cleanup_old_backups(file_type)
        except Exception as e:
            logger.warning(f"Could not create backup: {e}")

    def _cleanup_old_backups(self, file_type: str):
        """Remove old backup files, keeping only the most recent ones."""
        try:
            backup_files = sorted(self.backup_dir.glob(f"{file_type}_*.csv"), reverse=True)
            for old_backup in backup_files[self.config.storage.max_backup_files:]:
                old_backup.unlink()
        except Exception as e:
            logger.warning(f"Could not cleanup old backups: {e}")
