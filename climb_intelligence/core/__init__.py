"""Core modules: physics, W' balance, snapshot holders, alerts and ride replay."""

from .observable import StateHolder, Subscription, SubscriptionGroup
from .physics import (
    air_density,
    gravity_force,
    rolling_resistance,
    aero_drag,
    total_force,
    power_required,
    speed_from_power
)
from .w_prime_balance import WPrimeBalanceModel
from .alerts import AlertManager
from .fit_parser import parse_fit_file, load_ride_csv, load_ride, dataframe_to_samples

__all__ = [
    "StateHolder",
    "Subscription",
    "SubscriptionGroup",
    "air_density",
    "gravity_force",
    "rolling_resistance",
    "aero_drag",
    "total_force",
    "power_required",
    "speed_from_power",
    "WPrimeBalanceModel",
    "AlertManager",
    "parse_fit_file",
    "load_ride_csv",
    "load_ride",
    "dataframe_to_samples"
]
