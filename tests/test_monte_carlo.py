import math
import threading

import pytest

from models import FireInputs, InvalidInputError
from monte_carlo import (
    Mulberry32, MonteCarloRunner, NormalSampler, SimulationCancelled,
    draw_return, hash_seed, input_seed, path_seed, run_monte_carlo
)


def test_same_inputs_same_result(inputs):
    first = run_monte_carlo(inputs, 50)
    second = run_monte_carlo(inputs, 50)
    assert first.to_dict() == second.to_dict()


def test_result_shape(inputs):
    result = run_monte_carlo(inputs, 40)
    assert result.ages == list(range(30, 91))
    assert result.num_simulations == 40
    for band in (result.percentiles.p10, result.percentiles.p50, result.percentiles.p90):
        assert len(band) == len(result.ages)
    assert sum(d['count'] for d in result.fire_age_distribution) == 40
    assert 0 <= result.success_rate <= 100


def test_percentiles_are_ordered(inputs):
    p = run_monte_carlo(inputs, 100).percentiles
    for values in zip(p.p10, p.p25, p.p50, p.p75, p.p90):
        assert list(values) == sorted(values)


def test_target_age_pins_every_path(inputs):
    result = run_monte_carlo(inputs, 30, target_fire_age=45)
    assert result.fire_age_distribution == [{'age': 45, 'count': 30}]
    assert result.median_fire_age == 45
    assert result.target_fire_age == 45


def test_target_age_changes_the_seed(inputs):
    assert input_seed(inputs) != input_seed(inputs, 45)


def test_nothing_to_grow(make_inputs):
    result = run_monte_carlo(make_inputs(
        assets={'invested_assets': 0, 'cash_savings': 0},
        fire_goals={'monthly_investment': 0},
    ), 20)
    assert result.success_rate == 0
    assert result.median_fire_age == 90
    assert all(v == 0 for v in result.percentiles.p90)


def test_parallel_matches_serial(inputs):
    serial = run_monte_carlo(inputs, 24)
    parallel = run_monte_carlo(inputs, 24, workers=2)
    assert parallel.to_dict() == serial.to_dict()


def test_cancelled_batch_raises(inputs):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(SimulationCancelled):
        run_monte_carlo(inputs, 50, cancel_event=cancel)


def test_cancelled_parallel_batch_raises(inputs):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(SimulationCancelled):
        run_monte_carlo(inputs, 400, workers=2, cancel_event=cancel)


def test_parallel_batch_after_cancel_still_runs(inputs):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(SimulationCancelled):
        run_monte_carlo(inputs, 400, workers=2, cancel_event=cancel)
    # A fresh batch isn't affected by the abandoned pool
    assert run_monte_carlo(inputs, 24, workers=2).to_dict() == run_monte_carlo(inputs, 24).to_dict()


def test_lognormal_distribution(inputs):
    normal = run_monte_carlo(inputs, 30)
    lognormal = run_monte_carlo(inputs, 30, distribution='lognormal')
    assert lognormal.percentiles.p50 != normal.percentiles.p50
    # Can't lose more than everything
    assert draw_return(0.05, 0.3, -10.0, 'lognormal') > -1


@pytest.mark.parametrize('kwargs', [
    {'num_simulations': 0},
    {'num_simulations': 10, 'distribution': 'cauchy'},
    {'num_simulations': 10, 'target_fire_age': 120},
])
def test_invalid_arguments(inputs, kwargs):
    with pytest.raises(InvalidInputError):
        run_monte_carlo(inputs, **kwargs)


def test_invalid_inputs(make_inputs):
    with pytest.raises(InvalidInputError):
        run_monte_carlo(make_inputs(personal_info={'current_age': 95}), 10)


# =============================================================================
# RANDOM NUMBERS
# =============================================================================

def test_mulberry32_is_reproducible():
    a, b = Mulberry32(42), Mulberry32(42)
    draws = [a.random() for _ in range(100)]
    assert draws == [b.random() for _ in range(100)]
    assert all(0 <= x < 1 for x in draws)
    assert draws != [Mulberry32(43).random() for _ in range(100)]


def test_normal_sampler_moments():
    sampler = NormalSampler(Mulberry32(7))
    draws = [sampler.next() for _ in range(5000)]
    mean = sum(draws) / len(draws)
    std = math.sqrt(sum((d - mean) ** 2 for d in draws) / len(draws))
    assert abs(mean) < 0.1
    assert std == pytest.approx(1.0, abs=0.1)


def test_hash_seed():
    assert hash_seed('') == 0
    assert hash_seed('a') == 97
    assert hash_seed('ab') == 31 * 97 + 98
    assert 0 <= hash_seed('x' * 1000) <= 0xFFFFFFFF


def test_seed_ignores_key_order():
    forward = {
        'personal_info': {'current_age': 30, 'life_expectancy': 90},
        'assets': {'invested_assets': 100_000},
        'investment_strategy': {
            'annual_volatility': 0.12,
            'portfolio_allocation': {'equity': 0.6, 'bonds': 0.3, 'cash': 0.1},
        },
    }
    backward = {
        'investment_strategy': {
            'portfolio_allocation': {'cash': 0.1, 'bonds': 0.3, 'equity': 0.6},
            'annual_volatility': 0.12,
        },
        'assets': {'invested_assets': 100_000},
        'personal_info': {'life_expectancy': 90, 'current_age': 30},
    }
    a = FireInputs.from_dict(forward)
    b = FireInputs.from_dict(backward)
    # The allocation dict keeps its insertion order, only the encoding sorts it
    assert list(a.investment_strategy.portfolio_allocation) != list(b.investment_strategy.portfolio_allocation)
    assert a.canonical_json() == b.canonical_json()
    assert input_seed(a) == input_seed(b)
    assert run_monte_carlo(a, 10).to_dict() == run_monte_carlo(b, 10).to_dict()


def test_path_seeds_differ_by_index():
    seeds = {path_seed(12345, i) for i in range(1000)}
    assert len(seeds) == 1000
    assert path_seed(12345, 3) == path_seed(12345, 3)


# =============================================================================
# BACKGROUND RUNNER
# =============================================================================

def test_runner_matches_direct_run(inputs):
    runner = MonteCarloRunner()
    try:
        result = runner.submit(inputs, 20).result(timeout=60)
    finally:
        runner.shutdown()
    assert result.to_dict() == run_monte_carlo(inputs, 20).to_dict()
    assert runner.latest_result is result


def test_runner_keeps_only_the_newest_result(inputs, make_inputs):
    newer_inputs = make_inputs(fire_goals={'monthly_investment': 1_500})
    runner = MonteCarloRunner()
    try:
        older = runner.submit(inputs, 200)
        newer = runner.submit(newer_inputs, 20)
        newer_result = newer.result(timeout=60)
        older.result(timeout=60)
    finally:
        runner.shutdown()
    assert newer_result is not None
    assert runner.latest_result is newer_result
    assert newer_result.to_dict() == run_monte_carlo(newer_inputs, 20).to_dict()
