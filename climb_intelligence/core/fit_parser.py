#!/usr/bin/env python3
"""
Ride file replay source.

Parses recorded rides (FIT via fitparse, or CSV exports) into a 1 Hz
pd.DataFrame with the columns every engine consumes, and turns that frame into
the Sample stream a live sensor source would have produced:

    timestamp, power, heart_rate, cadence, speed, distance, altitude,
    grade, latitude, longitude

Gaps are bridged the way a head unit holds values: power for up to 3 s,
heart rate/cadence/speed for up to 5 s, distance/altitude for up to 10 s.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import numpy as np
import pandas as pd
from fitparse import FitFile

from ..storage.data_models import Sample

logger = logging.getLogger(__name__)

RIDE_COLUMNS = [
    "timestamp",
    "power",
    "heart_rate",
    "cadence",
    "speed",
    "distance",
    "altitude",
    "grade",
    "latitude",
    "longitude",
]

SEMICIRCLES_TO_DEGREES = 180.0 / 2 ** 31
GRADE_WINDOW_SECONDS = 10
MIN_GRADE_DISTANCE = 5.0  # m travelled in the window before a grade is derived
MAX_ABS_GRADE = 30.0


def _empty_ride() -> pd.DataFrame:
    return pd.DataFrame(columns=RIDE_COLUMNS).astype({"timestamp": "datetime64[ns]"})


def _extract_record_fields(record) -> Dict[str, Optional[float]]:
    data: Dict[str, Any] = {col: None for col in RIDE_COLUMNS}
    alt_raw = alt_enh = None
    speed_raw = speed_enh = None
    for field in record:
        name = field.name
        value = field.value
        if value is None:
            continue
        if name == "timestamp":
            if isinstance(value, datetime):
                if value.tzinfo is None:
                    value = value.replace(tzinfo=timezone.utc)
                value = value.astimezone(timezone.utc).replace(tzinfo=None)
            data["timestamp"] = value
        elif name in ("power", "heart_rate", "cadence", "distance", "grade"):
            data[name] = float(value)
        elif name == "speed":
            speed_raw = float(value)
        elif name == "enhanced_speed":
            speed_enh = float(value)
        elif name == "altitude":
            alt_raw = float(value)
        elif name == "enhanced_altitude":
            alt_enh = float(value)
        elif name == "position_lat":
            data["latitude"] = float(value) * SEMICIRCLES_TO_DEGREES
        elif name == "position_long":
            data["longitude"] = float(value) * SEMICIRCLES_TO_DEGREES
    # Prefer enhanced fields
    data["altitude"] = alt_enh if alt_enh is not None else alt_raw
    data["speed"] = speed_enh if speed_enh is not None else speed_raw
    return data


def parse_fit_file(file_path: str) -> pd.DataFrame:
    """Parse a FIT file into a 1 Hz ride DataFrame.

    Raises FileNotFoundError for a missing file; unreadable content yields an
    empty frame with a logged warning.
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"FIT file not found: {file_path}")

    try:
        fit = FitFile(file_path)
    except Exception as e:
        logger.warning(f"Failed to open FIT file {file_path}: {e}")
        return _empty_ride()

    records: List[Dict[str, Any]] = []
    try:
        for message in fit.get_messages("record"):
            row = _extract_record_fields(message)
            if row["timestamp"] is not None:
                records.append(row)
    except Exception as e:
        logger.warning(f"Failed to parse records in {file_path}: {e}")

    if not records:
        return _empty_ride()

    df = pd.DataFrame.from_records(records, columns=RIDE_COLUMNS)
    df["timestamp"] = pd.to_datetime(df["timestamp"])
    logger.info(f"Parsed {len(df)} records from {Path(file_path).name}")
    return _prepare_ride(df)


def load_ride_csv(file_path: str) -> pd.DataFrame:
    """Load a CSV ride export with the standard columns.

    A missing timestamp column is replaced by a synthetic 1 s timeline.
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"Ride CSV not found: {file_path}")

    df = pd.read_csv(file_path)
    if df.empty:
        return _empty_ride()

    if "timestamp" in df.columns:
        df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True).dt.tz_localize(None)
    else:
        start = pd.Timestamp.now().floor("s")
        df["timestamp"] = pd.date_range(start, periods=len(df), freq="1s")

    for col in RIDE_COLUMNS:
        if col not in df.columns:
            df[col] = np.nan
    return _prepare_ride(df[RIDE_COLUMNS])


def load_ride(file_path: str) -> pd.DataFrame:
    """Load a ride file, choosing the parser from the extension."""
    if Path(file_path).suffix.lower() == ".fit":
        return parse_fit_file(file_path)
    return load_ride_csv(file_path)


def _prepare_ride(df: pd.DataFrame) -> pd.DataFrame:
    """Resample to 1 Hz, bridge short gaps and derive grade when missing."""
    df = df.sort_values("timestamp").drop_duplicates("timestamp")
    df = df.set_index("timestamp")
    for col in RIDE_COLUMNS[1:]:
        df[col] = pd.to_numeric(df[col], errors="coerce")

    full_index = pd.date_range(df.index.min(), df.index.max(), freq="1s")
    df = df.reindex(full_index)

    df["power"] = df["power"].ffill(limit=3)
    for col in ("heart_rate", "cadence", "speed"):
        df[col] = df[col].interpolate(method="time", limit=5, limit_area="inside")
    for col in ("distance", "altitude", "latitude", "longitude"):
        df[col] = df[col].interpolate(method="time", limit=10, limit_area="inside")

    if df["grade"].isna().all():
        df["grade"] = derive_grade(df["altitude"], df["distance"])

    df.index.name = "timestamp"
    return df.reset_index()


def derive_grade(altitude: pd.Series, distance: pd.Series,
                 window: int = GRADE_WINDOW_SECONDS) -> pd.Series:
    """Grade in % from altitude and distance change over a rolling window."""
    rise = altitude.diff(window)
    run = distance.diff(window)
    grade = np.where(run > MIN_GRADE_DISTANCE, rise / run * 100.0, np.nan)
    grade = pd.Series(grade, index=altitude.index).clip(-MAX_ABS_GRADE, MAX_ABS_GRADE)
    # First window has no history; carry the first computed grade back
    return grade.bfill(limit=window).fillna(0.0)


def dataframe_to_samples(df: pd.DataFrame) -> Iterator[Sample]:
    """Yield one Sample per row, as a live source would push them."""
    if df.empty:
        return

    frame = df.copy()
    for col in ("power", "heart_rate", "cadence", "speed", "grade"):
        frame[col] = frame[col].fillna(0)
    for col in ("distance", "altitude", "latitude", "longitude"):
        frame[col] = frame[col].ffill().fillna(0.0)
    frame["distance"] = frame["distance"].cummax()
    timestamps = (pd.to_datetime(frame["timestamp"]) - pd.Timestamp("1970-01-01")) // pd.Timedelta(milliseconds=1)

    for row, ts in zip(frame.itertuples(index=False), timestamps):
        yield Sample(
            power=max(0, int(row.power)),
            heart_rate=max(0, int(row.heart_rate)),
            cadence=max(0, int(row.cadence)),
            speed=max(0.0, float(row.speed)),
            altitude=float(row.altitude),
            grade=float(row.grade),
            distance=float(row.distance),
            latitude=float(row.latitude),
            longitude=float(row.longitude),
            timestamp=int(ts),
            has_data=True
        )
