#!/usr/bin/env python3
"""
Cycling force-balance model.

Resistive forces on a rider climbing a grade and the power needed to hold a speed:

    F_gravity = m * g * sin(atan(grade / 100))
    F_rolling = m * g * Crr * cos(atan(grade / 100))
    F_aero    = 0.5 * rho(altitude) * CdA * v^2
    P         = (F_gravity + F_rolling + F_aero) * v

All functions are pure and accept numpy arrays as well as scalars, except the
iterative ``speed_from_power`` solver which works on scalars.
"""

from __future__ import annotations

import numpy as np

GRAVITY = 9.81  # m/s²
SEA_LEVEL_AIR_DENSITY = 1.225  # kg/m³
AIR_DENSITY_DECAY = 0.0001185  # 1/m

# Solver settings
SOLVER_MAX_ITERATIONS = 20
SOLVER_TOLERANCE_WATTS = 0.1
SOLVER_INITIAL_SPEED = 3.0  # m/s
MIN_SOLVER_SPEED = 0.1  # m/s
MAX_SOLVER_SPEED = 30.0  # m/s


def air_density(altitude_m):
    """Air density adjusted for altitude."""
    return SEA_LEVEL_AIR_DENSITY * np.exp(-AIR_DENSITY_DECAY * altitude_m)


def gravity_force(total_mass_kg, grade_percent):
    """Gravity component along the road."""
    angle = np.arctan(np.asarray(grade_percent) / 100.0)
    return total_mass_kg * GRAVITY * np.sin(angle)


def rolling_resistance(total_mass_kg, grade_percent, crr):
    """Rolling resistance force."""
    angle = np.arctan(np.asarray(grade_percent) / 100.0)
    return total_mass_kg * GRAVITY * crr * np.cos(angle)


def aero_drag(cda, altitude_m, speed_ms):
    """Aerodynamic drag force in still air."""
    return 0.5 * air_density(altitude_m) * cda * np.square(speed_ms)


def total_force(total_mass_kg, grade_percent, crr, cda, altitude_m, speed_ms):
    """Total resistive force at the given conditions."""
    return (
        gravity_force(total_mass_kg, grade_percent)
        + rolling_resistance(total_mass_kg, grade_percent, crr)
        + aero_drag(cda, altitude_m, speed_ms)
    )


def power_required(total_mass_kg, grade_percent, crr, cda, altitude_m, speed_ms):
    """Power needed to hold ``speed_ms`` on the grade."""
    return total_force(total_mass_kg, grade_percent, crr, cda, altitude_m, speed_ms) * speed_ms


def speed_from_power(power_watts: float, total_mass_kg: float, grade_percent: float,
                     crr: float, cda: float, altitude_m: float) -> float:
    """Invert ``power_required`` for speed with Newton's method.

    Returns 0.0 for non-positive power. The iterate is clamped to [0.1, 30] m/s and
    stops once the power error is under 0.1 W or after 20 iterations.
    """
    if power_watts <= 0:
        return 0.0

    rho = float(air_density(altitude_m))
    speed = SOLVER_INITIAL_SPEED
    for _ in range(SOLVER_MAX_ITERATIONS):
        force = float(total_force(total_mass_kg, grade_percent, crr, cda, altitude_m, speed))
        error = force * speed - power_watts
        if abs(error) < SOLVER_TOLERANCE_WATTS:
            break

        # dP/dv = F + v * dF/dv, only the aero term depends on speed
        d_force = rho * cda * speed
        d_power = force + speed * d_force
        if d_power <= 0:
            break
        speed = float(np.clip(speed - error / d_power, MIN_SOLVER_SPEED, MAX_SOLVER_SPEED))

    return speed
