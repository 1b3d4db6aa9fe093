import pytest

from financial import (
    InvalidInputError, OutstandingDebt, PensionEntry, RecurringIncomeEntry,
    annuity_pv, compute_required_portfolio, debt_present_value,
    geometric_return, net_return, portfolio_stats, real_return,
    recurring_income_real, required_portfolio, survives_drawdown
)
from models import FutureIncome


# =============================================================================
# RATES
# =============================================================================

def test_geometric_return_applies_volatility_drag():
    assert geometric_return(0.07, 0.12) == pytest.approx(0.0628)
    assert geometric_return(0.0, 0.0) == 0.0


def test_geometric_return_can_go_negative():
    assert geometric_return(0.01, 0.5) == pytest.approx(-0.115)
    # Fees push an already negative figure further down
    assert net_return(geometric_return(0.01, 0.5), 0.01, 0.0) == pytest.approx(-0.125)


def test_net_return_takes_fees_then_tax():
    assert net_return(0.07, 0.002, 0.26) == pytest.approx(0.068 * 0.74)


def test_real_return_is_floored():
    assert real_return(0.05, 0.02) == pytest.approx(1.05 / 1.02 - 1)
    assert real_return(0.0, 0.05) == 0.001


def test_portfolio_stats_single_class():
    stats = portfolio_stats({'equity': 1.0})
    assert stats['return'] == pytest.approx(0.08)
    assert stats['volatility'] == pytest.approx(0.16)


def test_portfolio_stats_diversification_lowers_volatility():
    stats = portfolio_stats({'equity': 0.6, 'bonds': 0.4})
    assert stats['return'] == pytest.approx(0.6 * 0.08 + 0.4 * 0.025)
    assert stats['volatility'] < 0.6 * 0.16 + 0.4 * 0.045


def test_portfolio_stats_return_overrides():
    stats = portfolio_stats({'equity': 0.5, 'cash': 0.5}, {'equity': 0.10})
    assert stats['return'] == pytest.approx(0.5 * 0.10 + 0.5 * 0.015)


# =============================================================================
# ANNUITIES
# =============================================================================

def test_annuity_pv_known_values():
    assert annuity_pv(10, 0.05) == pytest.approx(7.7217, abs=1e-4)
    assert annuity_pv(3, 0.0) == 3
    assert annuity_pv(3, 0.002) == pytest.approx(2.9880, abs=1e-4)


def test_annuity_pv_edge_cases():
    assert annuity_pv(0, 0.05) == 0.0
    assert annuity_pv(-2, 0.05) == 0.0
    # Tiny rates are treated as undiscounted
    assert annuity_pv(5, 0.00005) == 5.0


def test_annuity_pv_high_rate():
    assert annuity_pv(5, 0.20) == pytest.approx(2.9906, abs=1e-4)


def test_annuity_pv_grows_with_years():
    values = [annuity_pv(n, 0.04) for n in range(1, 40)]
    assert all(a < b for a, b in zip(values, values[1:]))


def test_annuity_pv_shrinks_with_rate():
    values = [annuity_pv(20, r) for r in (0.001, 0.01, 0.03, 0.05, 0.10, 0.20)]
    assert all(a > b for a, b in zip(values, values[1:]))


def test_debt_present_value():
    debts = [OutstandingDebt(monthly_payment=500, years_left=10)]
    assert debt_present_value(debts, 0.05) == pytest.approx(6000 * 7.7217, abs=1)
    assert debt_present_value(debts, 0.0) == 60000
    assert debt_present_value([OutstandingDebt(500, 0)], 0.05) == 0.0


def test_recurring_income_real_deflates_growth():
    income = RecurringIncomeEntry(12000, start_age=40, annual_growth_rate=0.02,
                                  include_in_fire=True, reference_age=30)
    assert recurring_income_real([income], 39, 0.02) == 0.0
    assert recurring_income_real([income], 45, 0.02) == pytest.approx(12000)


# =============================================================================
# REQUIRED PORTFOLIO
# =============================================================================

def test_no_pension_is_expenses_over_swr():
    assert required_portfolio(30000, [], 50, 0.04, 0.03) == pytest.approx(750000)


def test_pension_already_paying_is_a_perpetuity_of_the_gap():
    pensions = [PensionEntry(12000, 40)]
    assert required_portfolio(30000, pensions, 50, 0.04, 0.03) == pytest.approx(450000)


def test_pension_covering_expenses_needs_nothing():
    pensions = [PensionEntry(36000, 50)]
    assert required_portfolio(30000, pensions, 50, 0.04, 0.03) == 0.0


def test_later_pension_needs_a_bigger_portfolio():
    targets = [
        required_portfolio(30000, [PensionEntry(12000, start)], 50, 0.04, 0.03)
        for start in (55, 60, 70)
    ]
    assert 450000 < targets[0] < targets[1] < targets[2] < 750000


def test_second_pension_lowers_the_target():
    single = required_portfolio(30000, [PensionEntry(12000, 67)], 50, 0.04, 0.03)
    dual = required_portfolio(30000, [PensionEntry(12000, 67), PensionEntry(6000, 60)],
                              50, 0.04, 0.03)
    assert dual < single


@pytest.mark.parametrize('swr', [0, -0.01])
def test_non_positive_swr_is_rejected(swr):
    with pytest.raises(InvalidInputError):
        required_portfolio(30000, [], 50, swr, 0.03)


def test_real_return_at_minus_one_is_rejected():
    with pytest.raises(InvalidInputError):
        required_portfolio(30000, [], 50, 0.04, -1.0, life_expectancy=90)


def test_alias_matches():
    assert compute_required_portfolio is required_portfolio


def test_horizon_zero_expenses():
    assert required_portfolio(0, [], 50, 0.04, 0.03, life_expectancy=90) == 0.0


def test_horizon_matches_finite_annuity():
    value = required_portfolio(30000, [], 50, 0.04, 0.03, life_expectancy=90)
    assert value == pytest.approx(30000 * annuity_pv(41, 0.03), rel=1e-6)
    # A closed horizon needs less than a perpetuity
    assert value < required_portfolio(30000, [], 50, 0.04, 0.03)


def test_horizon_counts_only_eligible_recurring_income():
    def solve(include):
        income = RecurringIncomeEntry(10000, start_age=55, include_in_fire=include,
                                      reference_age=30)
        return required_portfolio(30000, [], 50, 0.04, 0.03, life_expectancy=90,
                                  inflation=0.0, recurring_incomes=[income])

    baseline = required_portfolio(30000, [], 50, 0.04, 0.03, life_expectancy=90)
    assert solve(False) == pytest.approx(baseline)
    assert solve(True) < baseline


# =============================================================================
# DRAWDOWN
# =============================================================================

def test_drawdown_comfortable_portfolio_survives():
    assert survives_drawdown(1_000_000, 30000, 0.02, 0.05, [], 60, 0, 90, [], [], [])


def test_drawdown_tiny_portfolio_fails():
    assert not survives_drawdown(50000, 60000, 0.02, 0.05, [], 60, 0, 90, [], [], [])


def test_drawdown_with_pension():
    pensions = [PensionEntry(18000, 67)]
    assert survives_drawdown(800_000, 40000, 0.02, 0.05, pensions, 60, 0, 90, [], [], [])


def test_drawdown_two_pensions_make_the_difference():
    pensions = [PensionEntry(10000, 60), PensionEntry(15000, 67)]
    assert survives_drawdown(500_000, 30000, 0.02, 0.05, pensions, 50, 0, 90, [], [], [])
    assert not survives_drawdown(500_000, 30000, 0.02, 0.05, [], 50, 0, 90, [], [], [])


def test_drawdown_debt_payments_drain_portfolio():
    debts = [OutstandingDebt(monthly_payment=5000, years_left=30)]
    assert survives_drawdown(1_000_000, 30000, 0.02, 0.05, [], 55, 0, 90, [], [], [])
    assert not survives_drawdown(1_000_000, 30000, 0.02, 0.05, [], 55, 0, 90, debts, [], [])


def test_drawdown_bridge_income():
    bridge = [FutureIncome(amount=1_000_000, years_from_now=3, include_in_fire=True)]
    assert survives_drawdown(400_000, 30000, 0.02, 0.05, [], 50, 0, 90, [], bridge, [])
    assert not survives_drawdown(400_000, 30000, 0.02, 0.05, [], 50, 0, 90, [], [], [])
