import pandas as pd
import pytest

from climb_intelligence.core import fit_parser
from climb_intelligence.core.fit_parser import (
    RIDE_COLUMNS,
    dataframe_to_samples,
    derive_grade,
    load_ride,
    load_ride_csv,
    parse_fit_file,
)

START = pd.Timestamp("2025-01-01 06:00:00")
START_MS = 1_735_711_200_000


class FakeField:
    def __init__(self, name, value):
        self.name = name
        self.value = value


class FakeMessage:
    def __init__(self, fields):
        self._fields = fields

    def __iter__(self):
        return iter(self._fields)


def _make_fit_file(seconds, skip=()):
    class FakeFitFile:
        def __init__(self, path):
            self.path = path

        def get_messages(self, kind):
            if kind != 'record':
                return
            for second in range(seconds):
                if second in skip:
                    continue
                yield FakeMessage([
                    FakeField('timestamp', (START + pd.Timedelta(seconds=second)).to_pydatetime()),
                    FakeField('power', 250),
                    FakeField('heart_rate', 150),
                    FakeField('cadence', 85),
                    FakeField('speed', 4.0),
                    FakeField('enhanced_speed', 5.0),
                    FakeField('distance', second * 5.0),
                    FakeField('altitude', 1.0),
                    FakeField('enhanced_altitude', 100.0 + second * 0.5),
                    FakeField('position_lat', 536870912),
                    FakeField('position_long', None),
                ])
    return FakeFitFile


@pytest.fixture
def fit_path(tmp_path):
    path = tmp_path / "ride.fit"
    path.write_bytes(b"\x0e\x10")
    return path


def test_parse_fit_file(monkeypatch, fit_path):
    monkeypatch.setattr(fit_parser, "FitFile", _make_fit_file(30, skip={5}))
    df = parse_fit_file(str(fit_path))

    assert list(df.columns) == RIDE_COLUMNS
    assert len(df) == 30
    # Gap bridged: power held, distance interpolated
    assert df.loc[5, 'power'] == 250
    assert df.loc[5, 'distance'] == pytest.approx(25.0)
    # Enhanced fields win
    assert df.loc[0, 'speed'] == 5.0
    assert df.loc[0, 'altitude'] == 100.0
    assert df.loc[0, 'latitude'] == pytest.approx(45.0)
    # Grade derived from altitude over distance
    assert df['grade'].iloc[-1] == pytest.approx(10.0)
    assert df['grade'].iloc[0] == pytest.approx(10.0)


def test_parse_fit_file_missing():
    with pytest.raises(FileNotFoundError):
        parse_fit_file("does_not_exist.fit")


def test_parse_fit_file_unreadable(monkeypatch, fit_path):
    def broken(path):
        raise ValueError("bad header")

    monkeypatch.setattr(fit_parser, "FitFile", broken)
    df = parse_fit_file(str(fit_path))
    assert df.empty
    assert list(df.columns) == RIDE_COLUMNS


def test_load_ride_dispatches_on_extension(monkeypatch, fit_path):
    monkeypatch.setattr(fit_parser, "FitFile", _make_fit_file(12))
    assert len(load_ride(str(fit_path))) == 12


def test_load_ride_csv(tmp_path):
    path = tmp_path / "ride.csv"
    pd.DataFrame({
        'timestamp': pd.date_range(START, periods=20, freq="1s"),
        'power': [200] * 20,
        'distance': [i * 5.0 for i in range(20)],
        'altitude': [100.0 + i * 0.25 for i in range(20)],
    }).to_csv(path, index=False)

    df = load_ride_csv(str(path))
    assert len(df) == 20
    assert df['grade'].iloc[-1] == pytest.approx(5.0)
    assert df['heart_rate'].isna().all()


def test_load_ride_csv_without_timestamps(tmp_path):
    path = tmp_path / "ride.csv"
    pd.DataFrame({'power': [150, 160, 170]}).to_csv(path, index=False)
    df = load_ride_csv(str(path))
    assert len(df) == 3
    assert (df['timestamp'].diff().dropna() == pd.Timedelta(seconds=1)).all()


def test_derive_grade_ignores_short_runs():
    altitude = pd.Series([100.0] * 15)
    distance = pd.Series([0.0] * 15)
    assert (derive_grade(altitude, distance) == 0.0).all()


def test_dataframe_to_samples(monkeypatch, fit_path):
    monkeypatch.setattr(fit_parser, "FitFile", _make_fit_file(30))
    samples = list(dataframe_to_samples(parse_fit_file(str(fit_path))))

    assert len(samples) == 30
    first = samples[0]
    assert first.has_data
    assert first.timestamp == START_MS
    assert first.power == 250
    assert first.longitude == 0.0
    assert samples[1].timestamp - first.timestamp == 1000
    distances = [s.distance for s in samples]
    assert distances == sorted(distances)


def test_dataframe_to_samples_empty():
    assert list(dataframe_to_samples(pd.DataFrame(columns=RIDE_COLUMNS))) == []
