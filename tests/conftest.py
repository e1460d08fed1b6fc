import pytest

from climb_intelligence.storage.csv_manager import CSVClimbStore
from climb_intelligence.storage.data_models import Sample
from climb_intelligence.storage.records import ClimbRepository
from climb_intelligence.utils.config import ClimbConfig

RIDE_START_MS = 1_700_000_000_000


@pytest.fixture
def config():
    """Configured rider: FTP 250 W, 70 kg, CP 238 W, W' 20 kJ."""
    cfg = ClimbConfig()
    cfg.set_athlete_profile(ftp=250, weight=70.0, cp=238, w_prime_max=20000.0)
    return cfg


@pytest.fixture
def make_sample():
    """Build a Sample at ``second`` seconds into the ride."""
    def _make(second=0, power=200, grade=0.0, altitude=100.0, distance=None,
              speed=5.0, heart_rate=140, cadence=85, latitude=45.0, longitude=6.0):
        return Sample(
            power=power,
            heart_rate=heart_rate,
            cadence=cadence,
            speed=speed,
            altitude=altitude,
            grade=grade,
            distance=distance if distance is not None else second * speed,
            latitude=latitude,
            longitude=longitude,
            timestamp=RIDE_START_MS + int(second * 1000),
            has_data=True
        )
    return _make


@pytest.fixture
def store(tmp_path, config):
    return CSVClimbStore(str(tmp_path / "data"), config)


@pytest.fixture
def repository(store):
    return ClimbRepository(store)
