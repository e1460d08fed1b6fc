import pytest

from climb_intelligence.core.w_prime_balance import TAU, WPrimeBalanceModel
from climb_intelligence.storage.data_models import WPrimeStatus
from climb_intelligence.utils.config import ClimbConfig


def test_unconfigured_profile_is_ignored(make_sample):
    model = WPrimeBalanceModel(ClimbConfig())
    model.update(make_sample(0, power=500))
    state = model.update(make_sample(1, power=500))
    assert state.balance == 20000.0
    assert state.percentage == 100.0


def test_first_sample_only_anchors_clock(config, make_sample):
    model = WPrimeBalanceModel(config)
    state = model.update(make_sample(0, power=400))
    assert state.balance == 20000.0


def test_depletion_above_cp(config, make_sample):
    model = WPrimeBalanceModel(config)
    model.update(make_sample(0, power=338))
    state = model.update(make_sample(1, power=338))

    # 100 W over CP for 1 s with a full tank
    assert state.balance == pytest.approx(19900.0)
    assert state.percentage == pytest.approx(99.5)
    assert state.depletion_rate == 100
    assert state.time_to_empty == 199
    assert state.time_to_full == -1


def test_recovery_below_cp(config, make_sample):
    model = WPrimeBalanceModel(config)
    model.update(make_sample(0, power=738))
    model.update(make_sample(1, power=738))
    model.update(make_sample(2, power=738))
    depleted = model.balance
    assert depleted == pytest.approx(19000.0, abs=2.0)

    state = model.update(make_sample(3, power=100))
    expected = depleted + (20000.0 - depleted) / TAU
    assert state.balance == pytest.approx(expected)
    assert state.recovery_rate > 0
    assert state.time_to_full > 0
    assert state.time_to_empty == -1


def test_long_gap_is_clamped(config, make_sample):
    model = WPrimeBalanceModel(config)
    model.update(make_sample(0, power=338))
    state = model.update(make_sample(60, power=338))
    assert state.balance == pytest.approx(19500.0)


def test_zero_power_samples_are_skipped(config, make_sample):
    model = WPrimeBalanceModel(config)
    model.update(make_sample(0, power=338))
    before = model.state
    assert model.update(make_sample(1, power=0)) == before


def test_balance_never_goes_negative(config, make_sample):
    model = WPrimeBalanceModel(config)
    for second in range(60):
        state = model.update(make_sample(second, power=1200))
    assert state.balance == 0.0
    assert state.status == WPrimeStatus.EMPTY


def test_reset_and_restore(config, make_sample):
    model = WPrimeBalanceModel(config)
    model.update(make_sample(0, power=900))
    model.update(make_sample(5, power=900))
    assert model.balance < 20000.0

    model.reset()
    assert model.state.percentage == 100.0

    model.restore(12000.0)
    assert model.balance == 12000.0
    assert model.state.percentage == pytest.approx(60.0)

    model.restore(50000.0)
    assert model.balance == 20000.0


def test_subscribers_receive_updates(config, make_sample):
    model = WPrimeBalanceModel(config)
    seen = []
    subscription = model.subscribe(seen.append)
    model.update(make_sample(0, power=338))
    model.update(make_sample(1, power=338))
    subscription.cancel()
    model.update(make_sample(2, power=338))
    assert len(seen) == 1


def test_riding_at_cp_holds_full_balance(config, make_sample):
    model = WPrimeBalanceModel(config)
    for second in range(120):
        state = model.update(make_sample(second, power=238))
    assert state.balance == 20000.0
    assert state.status == WPrimeStatus.FRESH
