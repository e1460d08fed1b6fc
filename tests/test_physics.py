import numpy as np
import pytest

from climb_intelligence.core.physics import (
    SEA_LEVEL_AIR_DENSITY,
    air_density,
    gravity_force,
    power_required,
    speed_from_power,
)

MASS = 78.0
CRR = 0.005
CDA = 0.321


def test_air_density_drops_with_altitude():
    assert air_density(0) == pytest.approx(SEA_LEVEL_AIR_DENSITY)
    assert air_density(2000) < air_density(1000) < air_density(0)


def test_gravity_force_zero_on_flat_and_accepts_arrays():
    forces = gravity_force(MASS, np.array([0.0, 5.0, 10.0]))
    assert forces[0] == pytest.approx(0.0)
    assert forces[1] < forces[2]


def test_power_required_on_flat():
    # 10 m/s at sea level: rolling 3.83 N + aero 19.66 N
    power = power_required(MASS, 0.0, CRR, CDA, 0.0, 10.0)
    assert power == pytest.approx(234.9, abs=1.0)


@pytest.mark.parametrize("grade", [0.0, 4.0, 8.0, 12.0])
@pytest.mark.parametrize("speed", [1.0, 3.0, 6.0, 10.0, 15.0])
def test_speed_from_power_inverts_power_required(grade, speed):
    power = float(power_required(MASS, grade, CRR, CDA, 500.0, speed))
    assert speed_from_power(power, MASS, grade, CRR, CDA, 500.0) == pytest.approx(speed, abs=0.1)


def test_speed_from_power_slower_on_steeper_grade():
    flat = speed_from_power(250, MASS, 2.0, CRR, CDA, 0.0)
    steep = speed_from_power(250, MASS, 10.0, CRR, CDA, 0.0)
    assert steep < flat


def test_speed_from_power_non_positive_power():
    assert speed_from_power(0, MASS, 5.0, CRR, CDA, 0.0) == 0.0
    assert speed_from_power(-50, MASS, 5.0, CRR, CDA, 0.0) == 0.0
