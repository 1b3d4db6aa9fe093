"""
Financial Math

Shared building blocks for the projection and Monte Carlo engines:
- Annuity present values
- The "required portfolio" solver (how much do I need at age X?)
- A forward drawdown simulation used to verify bridge retirements
- Rate helpers (net, real and geometric returns, allocation statistics)

All functions here are pure: same inputs, same outputs, no I/O.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from config import (
    ANNUITY_EPSILON, ASSET_CLASSES, ASSET_CORRELATIONS,
    BISECTION_ITERATIONS, MIN_REAL_RETURN, PORTFOLIO_CEILING
)


# =============================================================================
# DATA STRUCTURES
# =============================================================================

class InvalidInputError(ValueError):
    """Raised when inputs break the engine's contract (e.g. inverted ages)."""


@dataclass(frozen=True)
class PensionEntry:
    """A pension in annual terms. Amount is in today's currency."""
    annual_amount: float
    start_age: int


@dataclass(frozen=True)
class RecurringIncomeEntry:
    """
    A recurring income stream in annual terms.

    The amount is quoted at reference_age (the simulation start age) and grows
    at its own rate from then on, independently of inflation.
    """
    annual_amount: float
    start_age: int
    annual_growth_rate: float = 0.0
    include_in_fire: bool = False
    reference_age: int = 0


@dataclass(frozen=True)
class OutstandingDebt:
    """A debt that still has payments left."""
    monthly_payment: float
    years_left: int


# =============================================================================
# RATE HELPERS
# =============================================================================

def geometric_return(arithmetic_return: float, volatility: float) -> float:
    """
    Apply volatility drag: geometric return ~ arithmetic - sigma^2 / 2.

    A portfolio averaging 7% with 12% volatility compounds closer to 6.3%.
    Negative results are kept: a low-return, high-volatility mix shrinks.
    """
    return arithmetic_return - volatility ** 2 / 2


def net_return(gross_return: float, annual_fees: float, capital_gains_tax: float) -> float:
    """Return after fees, then after a flat capital-gains tax."""
    return (gross_return - annual_fees) * (1 - capital_gains_tax)


def real_return(nominal_return: float, inflation: float) -> float:
    """Inflation-adjusted return, floored so the solver never divides by ~0."""
    return max(MIN_REAL_RETURN, (1 + nominal_return) / (1 + inflation) - 1)


def portfolio_stats(allocation: Dict[str, float],
                    asset_returns: Optional[Dict[str, float]] = None) -> Dict[str, float]:
    """
    Blend per-class returns and volatilities into portfolio figures.

    Uses the variance-covariance approach:
        sigma_p^2 = sum_i sum_j w_i w_j sigma_i sigma_j rho_ij

    Args:
        allocation: Weight per asset class (fractions summing to 1)
        asset_returns: Optional per-class return overrides

    Returns:
        Dict with 'return' and 'volatility'
    """
    asset_returns = asset_returns or {}
    keys = list(ASSET_CLASSES)

    weighted_return = sum(
        allocation.get(k, 0.0) * asset_returns.get(k, ASSET_CLASSES[k]['return'])
        for k in keys
    )

    variance = 0.0
    for i in keys:
        for j in keys:
            variance += (
                allocation.get(i, 0.0) * allocation.get(j, 0.0)
                * ASSET_CLASSES[i]['volatility'] * ASSET_CLASSES[j]['volatility']
                * ASSET_CORRELATIONS[i][j]
            )

    return {'return': weighted_return, 'volatility': math.sqrt(variance)}


# =============================================================================
# ANNUITIES
# =============================================================================

def annuity_pv(n: float, r: float) -> float:
    """
    Present value of n unit payments at periodic rate r.

    Example:
        >>> round(annuity_pv(10, 0.05), 4)
        7.7217
    """
    if n <= 0:
        return 0.0
    if r < ANNUITY_EPSILON:
        return float(n)
    return (1 - (1 + r) ** -n) / r


def debt_present_value(debts: Sequence[OutstandingDebt], rate: float) -> float:
    """PV of the remaining fixed nominal payments on outstanding debts."""
    total = 0.0
    for debt in debts:
        if debt.years_left <= 0:
            continue
        annual_payment = debt.monthly_payment * 12
        if rate > 0.001:
            total += annual_payment * (1 - (1 + rate) ** -debt.years_left) / rate
        else:
            total += annual_payment * debt.years_left
    return total


# =============================================================================
# REQUIRED PORTFOLIO
# =============================================================================

def recurring_income_real(incomes: Sequence[RecurringIncomeEntry], age: int,
                          inflation: float) -> float:
    """Sum of active recurring incomes at an age, in today's currency."""
    total = 0.0
    for inc in incomes:
        if age < inc.start_age:
            continue
        years = age - inc.reference_age
        total += inc.annual_amount * ((1 + inc.annual_growth_rate) / (1 + inflation)) ** years
    return total


def _segment_required(ret_expenses_today: float, pensions: List[PensionEntry],
                      fire_age: int, swr: float, real_ret: float) -> float:
    """Closed-form target: annuity per pension gap, perpetuity afterwards."""
    active = [p for p in pensions if p.annual_amount > 0]
    if not active:
        return ret_expenses_today / swr

    total_pension = sum(p.annual_amount for p in active)
    breakpoints = sorted({p.start_age for p in active if p.start_age > fire_age})

    # Once every pension is paying, the remaining shortfall is a perpetuity
    needed = max(0.0, ret_expenses_today - total_pension) / swr
    if not breakpoints:
        return needed

    ages = [fire_age] + breakpoints
    for i in range(len(ages) - 1, 0, -1):
        seg_start, seg_end = ages[i - 1], ages[i]
        duration = seg_end - seg_start

        active_pension = sum(p.annual_amount for p in active if p.start_age <= seg_start)
        withdrawal = max(0.0, ret_expenses_today - active_pension)

        needed = (withdrawal * annuity_pv(duration, real_ret)
                  + needed / (1 + real_ret) ** duration)

    return needed


def _horizon_required(ret_expenses_today: float, pensions: List[PensionEntry],
                      fire_age: int, swr: float, real_ret: float, life_expectancy: int,
                      inflation: float,
                      recurring_incomes: Sequence[RecurringIncomeEntry]) -> float:
    """Bisection target: smallest portfolio that survives to life expectancy."""
    if ret_expenses_today <= 0:
        return 0.0

    active = [p for p in pensions if p.annual_amount > 0]
    eligible = [inc for inc in recurring_incomes if inc.include_in_fire]

    # Withdrawals don't depend on the starting portfolio, so compute them once
    withdrawals = []
    for age in range(fire_age, life_expectancy + 1):
        pension_income = sum(p.annual_amount for p in active if age >= p.start_age)
        extra = recurring_income_real(eligible, age, inflation)
        withdrawals.append(max(0.0, ret_expenses_today - pension_income - extra))

    def survives_from(start_portfolio: float) -> bool:
        portfolio = start_portfolio
        for withdrawal in withdrawals:
            portfolio = portfolio * (1 + real_ret) - withdrawal
            if portfolio < 0:
                return False
        return True

    low = 0.0
    high = max(ret_expenses_today / max(0.01, swr), ret_expenses_today) * 2
    while not survives_from(high) and high < PORTFOLIO_CEILING:
        high *= 2

    for _ in range(BISECTION_ITERATIONS):
        mid = (low + high) / 2
        if survives_from(mid):
            high = mid
        else:
            low = mid

    return high


def required_portfolio(
    ret_expenses_today: float,
    pensions: Sequence[PensionEntry],
    fire_age: int,
    swr: float,
    real_ret: float,
    life_expectancy: Optional[int] = None,
    inflation: float = 0.0,
    recurring_incomes: Sequence[RecurringIncomeEntry] = ()
) -> float:
    """
    Portfolio needed at fire_age, in today's currency.

    Without a life expectancy the closed-form segment method is used: each
    stretch between pension start ages is funded as an annuity, and the
    shortfall left once every pension pays is funded as a perpetuity at the SWR.

    With a life expectancy, a finite-horizon bisection finds the smallest
    portfolio that never goes negative, which also lets bridge-eligible
    recurring incomes take part.

    Args:
        ret_expenses_today: Annual retirement spending in today's currency
        pensions: Pensions with independent start ages
        fire_age: Candidate retirement age
        swr: Safe withdrawal rate
        real_ret: Real (inflation-adjusted) return
        life_expectancy: Closes the horizon and switches to bisection
        inflation: Used to deflate recurring incomes
        recurring_incomes: Only those with include_in_fire count

    Returns:
        Required portfolio, never negative

    Raises:
        InvalidInputError: if swr is not positive or real_ret is -100% or below
    """
    if swr <= 0:
        raise InvalidInputError("swr must be positive")
    if real_ret <= -1:
        raise InvalidInputError("real_return must be above -100%")
    pensions = list(pensions)
    if life_expectancy is None:
        return _segment_required(ret_expenses_today, pensions, fire_age, swr, real_ret)
    return _horizon_required(ret_expenses_today, pensions, fire_age, swr, real_ret,
                             life_expectancy, inflation, recurring_incomes)


compute_required_portfolio = required_portfolio


# =============================================================================
# DRAWDOWN SIMULATION
# =============================================================================

def survives_drawdown(
    start_portfolio: float,
    ret_expenses: float,
    inflation: float,
    net_ret: float,
    pensions: Sequence[PensionEntry],
    fire_age: int,
    fire_year_index: int,
    life_expectancy: int,
    debts: Sequence[OutstandingDebt],
    future_incomes: Sequence,
    future_expenses: Sequence,
    recurring_incomes: Sequence[RecurringIncomeEntry] = ()
) -> bool:
    """
    Forward-simulate retirement from fire_age to life_expectancy.

    This is an exact simulation rather than an annuity shortcut: bridge
    incomes arrive at specific years, and only a year-by-year walk can tell
    whether the portfolio survives until they do.

    Args:
        start_portfolio: Nominal portfolio at retirement
        ret_expenses: Nominal first-year retirement spending
        inflation: Annual inflation (expenses and pensions grow by this)
        net_ret: Nominal net return on the portfolio
        pensions: Pensions, inflated from simulation start
        fire_age: Age at retirement
        fire_year_index: Years since simulation start at retirement
        life_expectancy: Last simulated age (inclusive)
        debts: Debts still outstanding at retirement
        future_incomes: One-time incomes ({amount, years_from_now})
        future_expenses: One-time expenses ({amount, years_from_now})
        recurring_incomes: Recurring streams, grown from simulation start

    Returns:
        True if the portfolio never goes negative
    """
    portfolio = start_portfolio
    expenses = ret_expenses

    for y in range(life_expectancy - fire_age + 1):
        age = fire_age + y
        abs_year = fire_year_index + y

        pension_income = sum(
            p.annual_amount * (1 + inflation) ** abs_year
            for p in pensions if age >= p.start_age
        )
        recurring = sum(
            inc.annual_amount * (1 + inc.annual_growth_rate) ** abs_year
            for inc in recurring_incomes if age >= inc.start_age
        )
        debt_payments = sum(d.monthly_payment * 12 for d in debts if d.years_left > y)

        one_time = sum(e.amount for e in future_incomes if e.years_from_now == abs_year)
        one_time -= sum(e.amount for e in future_expenses if e.years_from_now == abs_year)

        withdrawal = max(0.0, expenses + debt_payments - pension_income - recurring)
        portfolio += portfolio * net_ret - withdrawal + one_time
        if portfolio < 0:
            return False

        expenses *= (1 + inflation)

    return True
