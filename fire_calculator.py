"""
FIRE Projection Engine

This is the core logic that walks a household from today to life expectancy,
one year at a time:
1. Accumulating: salary pays the bills, contributions and returns grow the portfolio
2. Retired: the portfolio (plus pensions and other income) pays the bills

Each accumulating year ends with a FIRE check. Retirement starts the first year
the portfolio covers the required target, or, failing that, the first year a
known future income (inheritance, severance...) provably bridges the gap.
"""

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import List, Optional, Tuple, Union

from config import BAND_SPREAD, COAST_TARGET_AGE
from financial import (
    OutstandingDebt, PensionEntry, RecurringIncomeEntry,
    debt_present_value, geometric_return, net_return, real_return,
    required_portfolio, survives_drawdown
)
from models import FireInputs, FireResult, YearlyProjection

logger = logging.getLogger(__name__)


# =============================================================================
# PROJECTION CONTEXT
# =============================================================================
# Everything that depends only on the inputs is computed once up front, so a
# simulated year only has to deal with the portfolio.

@dataclass(frozen=True)
class CustomAccount:
    annual_contribution: float   # Includes employer match
    net_return: float            # Deterministic growth rate
    mean_return: float           # Centre of the Monte Carlo draw


@dataclass(frozen=True)
class DebtYear:
    payments: float                             # Paid during this year
    outstanding: Tuple[OutstandingDebt, ...]    # Still owed after this year
    balance: float                              # Amortized balance at year end


@dataclass(frozen=True)
class ProjectionContext:
    current_age: int
    life_expectancy: int
    start_year: int

    # Rates
    swr: float
    inflation: float
    net_return: float
    mean_return: float
    real_return: float
    volatility: float

    # Spending
    base_annual_expenses: float
    post_retirement_ratio: float

    # Starting position
    starting_portfolio: float
    starting_custom_balances: Tuple[float, ...]
    monthly_salary: float
    monthly_additional_income: float
    salary_growth: float

    # Savings
    annual_investment: float
    annual_own_savings: float     # Excludes employer match
    custom_accounts: Tuple[CustomAccount, ...]

    # Income streams and events
    pensions: Tuple[PensionEntry, ...]
    recurring: Tuple[RecurringIncomeEntry, ...]
    future_incomes: tuple
    future_expenses: tuple

    # Per-year schedules, indexed by years since start
    debt_schedule: Tuple[DebtYear, ...]
    debt_pvs: Tuple[float, ...] = ()
    required_targets: Tuple[float, ...] = ()
    real_estate_values: Tuple[float, ...] = ()

    @property
    def years(self) -> int:
        return self.life_expectancy - self.current_age + 1

    @property
    def ret_expenses_today(self) -> float:
        return self.base_annual_expenses * self.post_retirement_ratio

    @property
    def fire_number_base_today(self) -> float:
        return self.ret_expenses_today / self.swr

    @property
    def starting_total(self) -> float:
        return self.starting_portfolio + sum(self.starting_custom_balances)

    def required_today(self, age: int) -> float:
        """Required portfolio at a retirement age, in today's currency."""
        i = age - self.current_age
        if 0 <= i < len(self.required_targets):
            return self.required_targets[i]
        return self._solve_required(age)

    def _solve_required(self, age: int) -> float:
        # Bridge-eligible recurring income only works with a closed horizon
        if any(inc.include_in_fire for inc in self.recurring):
            return required_portfolio(
                self.ret_expenses_today, self.pensions, age, self.swr, self.real_return,
                life_expectancy=self.life_expectancy,
                inflation=self.inflation,
                recurring_incomes=self.recurring,
            )
        return required_portfolio(
            self.ret_expenses_today, self.pensions, age, self.swr, self.real_return
        )

    def pension_income(self, i: int) -> float:
        """Nominal pension income in year i (inflation-indexed from today)."""
        age = self.current_age + i
        return sum(
            p.annual_amount * (1 + self.inflation) ** i
            for p in self.pensions if age >= p.start_age
        )

    def recurring_income(self, i: int) -> float:
        age = self.current_age + i
        return sum(
            inc.annual_amount * (1 + inc.annual_growth_rate) ** i
            for inc in self.recurring if age >= inc.start_age
        )

    def one_time_flow(self, i: int) -> float:
        """One-time incomes minus one-time expenses scheduled for year i."""
        incomes = sum(e.amount for e in self.future_incomes if e.years_from_now == i)
        expenses = sum(e.amount for e in self.future_expenses if e.years_from_now == i)
        return incomes - expenses


def _build_debt_schedule(debts, years: int) -> Tuple[DebtYear, ...]:
    remaining = [(d.monthly_payment, d.remaining_years, d.balance, d.interest_rate)
                 for d in debts]
    schedule = []
    for _ in range(years):
        payments = 0.0
        ticked = []
        for payment, years_left, balance, rate in remaining:
            if years_left <= 0:
                continue
            payments += payment * 12
            balance = max(0.0, balance * (1 + rate) - payment * 12)
            ticked.append((payment, years_left - 1, balance, rate))
        remaining = ticked

        still_owed = [d for d in remaining if d[1] > 0]
        schedule.append(DebtYear(
            payments=payments,
            outstanding=tuple(OutstandingDebt(d[0], d[1]) for d in still_owed),
            balance=sum(d[2] for d in still_owed),
        ))
    return tuple(schedule)


def build_context(inputs: FireInputs, start_year: Optional[int] = None) -> ProjectionContext:
    """Precompute rates and schedules for one set of inputs."""
    person = inputs.personal_info
    income = inputs.income
    expenses = inputs.expenses
    assets = inputs.assets
    strategy = inputs.investment_strategy
    goals = inputs.fire_goals

    inflation = expenses.annual_inflation_rate
    fees = strategy.annual_fees
    tax = strategy.capital_gains_tax_rate
    gross, volatility = strategy.blended_return_and_volatility()
    net = net_return(geometric_return(gross, volatility), fees, tax)

    custom_accounts = tuple(
        CustomAccount(
            annual_contribution=(a.monthly_contribution + a.employer_match) * 12,
            net_return=net_return(geometric_return(a.expected_annual_return, volatility), fees, tax),
            mean_return=net_return(a.expected_annual_return, fees, tax),
        )
        for a in assets.custom_assets
    )

    recurring = [
        RecurringIncomeEntry(
            annual_amount=r.monthly_amount * 12,
            start_age=r.start_age,
            annual_growth_rate=r.annual_growth_rate,
            include_in_fire=r.include_in_fire,
            reference_age=person.current_age,
        )
        for r in goals.recurring_incomes if r.monthly_amount > 0
    ]
    # Rental income behaves like a recurring income that is already paying
    recurring += [
        RecurringIncomeEntry(
            annual_amount=prop.monthly_net_income * 12,
            start_age=person.current_age,
            annual_growth_rate=inflation if prop.rental_growth_rate is None else prop.rental_growth_rate,
            include_in_fire=True,
            reference_age=person.current_age,
        )
        for prop in assets.real_estate_assets if prop.monthly_net_income > 0
    ]

    years = person.life_expectancy - person.current_age + 1
    debt_schedule = _build_debt_schedule(assets.debts, years)
    own_savings = goals.monthly_investment + sum(a.monthly_contribution for a in assets.custom_assets)

    ctx = ProjectionContext(
        current_age=person.current_age,
        life_expectancy=person.life_expectancy,
        start_year=start_year if start_year is not None else date.today().year,
        swr=goals.safe_withdrawal_rate,
        inflation=inflation,
        net_return=net,
        mean_return=net_return(gross, fees, tax),
        real_return=real_return(net, inflation),
        volatility=volatility,
        base_annual_expenses=expenses.monthly_expenses * 12,
        post_retirement_ratio=expenses.post_retirement_expense_ratio,
        starting_portfolio=assets.invested_assets + assets.cash_savings,
        starting_custom_balances=tuple(a.balance for a in assets.custom_assets),
        monthly_salary=income.monthly_net_salary,
        monthly_additional_income=income.additional_monthly_income,
        salary_growth=income.annual_salary_growth,
        annual_investment=goals.monthly_investment * 12,
        annual_own_savings=own_savings * 12,
        custom_accounts=custom_accounts,
        pensions=tuple(
            PensionEntry(p.monthly_amount * 12, p.start_age)
            for p in income.pensions if p.monthly_amount > 0
        ),
        recurring=tuple(recurring),
        future_incomes=goals.future_incomes,
        future_expenses=goals.future_expenses,
        debt_schedule=debt_schedule,
        debt_pvs=tuple(debt_present_value(d.outstanding, net) for d in debt_schedule),
        real_estate_values=tuple(
            sum(prop.property_value * (1 + prop.annual_appreciation) ** i
                for prop in assets.real_estate_assets)
            for i in range(years)
        ),
    )

    targets = tuple(ctx._solve_required(ctx.current_age + i) for i in range(years))
    return replace(ctx, required_targets=targets)


# =============================================================================
# SIMULATION STATE
# =============================================================================

@dataclass(frozen=True)
class FireEvent:
    """Why and when retirement started."""
    fire_age: int
    year_index: int
    retirement_expenses: float       # Nominal, first retired year
    bridge_gap: float = 0.0          # Shortfall vs standard target (nominal)
    bridge_income_total: float = 0.0
    pension_credit_today: float = 0.0
    debt_cost_today: float = 0.0


@dataclass(frozen=True)
class Accumulating:
    portfolio: float                 # Main portfolio, excluding custom accounts
    optimistic: float
    pessimistic: float
    custom_balances: Tuple[float, ...]
    salary: float                    # Monthly
    additional_income: float         # Monthly
    living_expenses: float           # Annual, nominal
    cumulative_contributions: float
    cumulative_growth: float

    @property
    def total(self) -> float:
        return self.portfolio + sum(self.custom_balances)


@dataclass(frozen=True)
class Retired:
    portfolio: float
    optimistic: float
    pessimistic: float
    retirement_expenses: float       # Annual, nominal, grows with inflation
    cumulative_contributions: float
    cumulative_growth: float
    fire: FireEvent


SimulationState = Union[Accumulating, Retired]


def initial_state(ctx: ProjectionContext) -> Accumulating:
    total = ctx.starting_total
    return Accumulating(
        portfolio=ctx.starting_portfolio,
        optimistic=total,
        pessimistic=total,
        custom_balances=ctx.starting_custom_balances,
        salary=ctx.monthly_salary,
        additional_income=ctx.monthly_additional_income,
        living_expenses=ctx.base_annual_expenses,
        cumulative_contributions=total,
        cumulative_growth=0.0,
    )


# =============================================================================
# FIRE CHECK
# =============================================================================

def check_fire(ctx: ProjectionContext, i: int, portfolio: float,
               living_expenses: float) -> Optional[FireEvent]:
    """
    Decide whether retirement can start after year i.

    1. Standard check: portfolio covers the required target (inflated to
       today's nominal terms) plus the present value of remaining debt.
    2. Bridge check: only if a bridge-eligible one-time income is still ahead.
       Simulate the whole drawdown with every scheduled event and retire if the
       portfolio never runs dry.

    Returns:
        FireEvent if retirement starts now, otherwise None
    """
    age = ctx.current_age + i
    inflation_multiplier = (1 + ctx.inflation) ** i
    req_today = ctx.required_today(age)
    debt_pv = ctx.debt_pvs[i]
    adjusted_required = max(0.0, req_today * inflation_multiplier + debt_pv)
    retirement_expenses = living_expenses * ctx.post_retirement_ratio

    pension_credit = max(0.0, ctx.fire_number_base_today - req_today)
    debt_cost = debt_pv / inflation_multiplier

    if portfolio >= adjusted_required:
        return FireEvent(
            fire_age=age,
            year_index=i,
            retirement_expenses=retirement_expenses,
            pension_credit_today=pension_credit,
            debt_cost_today=debt_cost,
        )

    bridge_incomes = [e for e in ctx.future_incomes
                      if e.include_in_fire and e.years_from_now > i]
    if not bridge_incomes:
        return None

    survives = survives_drawdown(
        portfolio,
        retirement_expenses,
        ctx.inflation,
        ctx.net_return,
        ctx.pensions,
        age,
        i,
        ctx.life_expectancy,
        ctx.debt_schedule[i].outstanding,
        # Every future event happens on schedule, bridge-eligible or not
        [e for e in ctx.future_incomes if e.years_from_now > i],
        [e for e in ctx.future_expenses if e.years_from_now > i],
        ctx.recurring,
    )
    if not survives:
        return None

    return FireEvent(
        fire_age=age,
        year_index=i,
        retirement_expenses=retirement_expenses,
        bridge_gap=adjusted_required - portfolio,
        bridge_income_total=sum(e.amount for e in bridge_incomes),
        pension_credit_today=pension_credit,
        debt_cost_today=debt_cost,
    )


# =============================================================================
# YEAR STEP
# =============================================================================

def step_year(ctx: ProjectionContext, state: SimulationState,
              i: int) -> Tuple[SimulationState, YearlyProjection]:
    """Advance one year. Returns the new state and that year's projection."""
    if isinstance(state, Retired):
        return _step_retired(ctx, state, i)
    return _step_accumulating(ctx, state, i)


def _step_accumulating(ctx: ProjectionContext, state: Accumulating,
                       i: int) -> Tuple[SimulationState, YearlyProjection]:
    age = ctx.current_age + i
    debt = ctx.debt_schedule[i]
    one_time = ctx.one_time_flow(i)

    # Step 1: Grow the main portfolio and add this year's savings
    growth = state.portfolio * ctx.net_return
    portfolio = state.portfolio + growth + ctx.annual_investment + one_time

    # Step 2: Custom accounts grow at their own rates
    custom_growth = [b * acct.net_return
                     for b, acct in zip(state.custom_balances, ctx.custom_accounts)]
    custom_balances = tuple(
        b + g + acct.annual_contribution
        for b, g, acct in zip(state.custom_balances, custom_growth, ctx.custom_accounts)
    )

    contribution = ctx.annual_investment + sum(a.annual_contribution for a in ctx.custom_accounts)
    total_growth = growth + sum(custom_growth)
    total = portfolio + sum(custom_balances)

    # Display bands, never used for the FIRE decision
    optimistic = state.optimistic * (1 + ctx.net_return + BAND_SPREAD) + contribution + one_time
    pessimistic = state.pessimistic * (1 + ctx.net_return - BAND_SPREAD) + contribution + one_time

    cumulative_contributions = state.cumulative_contributions + contribution
    cumulative_growth = state.cumulative_growth + total_growth
    earned = (state.salary + state.additional_income) * 12

    projection = YearlyProjection(
        year=ctx.start_year + i,
        age=age,
        portfolio_value=max(0.0, total),
        portfolio_optimistic=max(0.0, optimistic),
        portfolio_pessimistic=max(0.0, pessimistic),
        annual_contributions=contribution,
        annual_investment_growth=total_growth,
        annual_expenses=state.living_expenses + max(0.0, -one_time),
        annual_debt_payments=debt.payments,
        passive_income=max(0.0, total) * ctx.swr,
        total_income=earned + ctx.pension_income(i) + ctx.recurring_income(i),
        cumulative_contributions=cumulative_contributions,
        cumulative_growth=cumulative_growth,
        savings_rate=ctx.annual_own_savings / earned * 100 if earned > 0 else 0.0,
        is_retired=False,
        remaining_debt_balance=debt.balance,
        real_estate_value=ctx.real_estate_values[i],
    )

    event = check_fire(ctx, i, total, state.living_expenses)
    if event is not None:
        logger.debug("FIRE reached at age %d (bridge gap %.0f)", event.fire_age, event.bridge_gap)
        # Custom accounts merge into the drawdown portfolio
        return Retired(
            portfolio=total,
            optimistic=optimistic,
            pessimistic=pessimistic,
            retirement_expenses=event.retirement_expenses,
            cumulative_contributions=cumulative_contributions,
            cumulative_growth=cumulative_growth,
            fire=event,
        ), projection

    return Accumulating(
        portfolio=portfolio,
        optimistic=optimistic,
        pessimistic=pessimistic,
        custom_balances=custom_balances,
        salary=state.salary * (1 + ctx.salary_growth),
        additional_income=state.additional_income * (1 + ctx.inflation),
        living_expenses=state.living_expenses * (1 + ctx.inflation),
        cumulative_contributions=cumulative_contributions,
        cumulative_growth=cumulative_growth,
    ), projection


def _step_retired(ctx: ProjectionContext, state: Retired,
                  i: int) -> Tuple[SimulationState, YearlyProjection]:
    debt = ctx.debt_schedule[i]
    one_time = ctx.one_time_flow(i)
    pension = ctx.pension_income(i)
    recurring = ctx.recurring_income(i)

    # Pensions and other income cover what they can; the portfolio covers the rest
    withdrawal = max(0.0, state.retirement_expenses + debt.payments - pension - recurring)

    growth = state.portfolio * ctx.net_return
    portfolio = state.portfolio + growth - withdrawal + one_time
    optimistic = state.optimistic * (1 + ctx.net_return + BAND_SPREAD) - withdrawal + one_time
    pessimistic = state.pessimistic * (1 + ctx.net_return - BAND_SPREAD) - withdrawal + one_time
    cumulative_growth = state.cumulative_growth + growth

    projection = YearlyProjection(
        year=ctx.start_year + i,
        age=ctx.current_age + i,
        portfolio_value=max(0.0, portfolio),
        portfolio_optimistic=max(0.0, optimistic),
        portfolio_pessimistic=max(0.0, pessimistic),
        annual_contributions=0.0,
        annual_investment_growth=growth,
        annual_expenses=state.retirement_expenses + max(0.0, -one_time),
        annual_debt_payments=debt.payments,
        passive_income=max(0.0, portfolio) * ctx.swr,
        total_income=pension + recurring,
        cumulative_contributions=state.cumulative_contributions,
        cumulative_growth=cumulative_growth,
        savings_rate=0.0,
        is_retired=True,
        remaining_debt_balance=debt.balance,
        real_estate_value=ctx.real_estate_values[i],
    )

    return replace(
        state,
        portfolio=portfolio,
        optimistic=optimistic,
        pessimistic=pessimistic,
        retirement_expenses=state.retirement_expenses * (1 + ctx.inflation),
        cumulative_growth=cumulative_growth,
    ), projection


# =============================================================================
# DERIVED FIGURES
# =============================================================================

def coast_fire_age(ctx: ProjectionContext, projections: List[YearlyProjection],
                   target_age: int = COAST_TARGET_AGE) -> Optional[int]:
    """
    Earliest age whose portfolio, left alone, grows into the target by target_age.

    Returns None if no projected year gets there.
    """
    target = ctx.required_today(target_age) * (1 + ctx.inflation) ** (target_age - ctx.current_age)
    for p in projections:
        if p.age > target_age:
            break
        if p.portfolio_value * (1 + ctx.net_return) ** (target_age - p.age) >= target:
            return p.age
    return None


def barista_fire_income(ctx: ProjectionContext) -> float:
    """Monthly side income needed on top of today's passive income."""
    post_retirement_monthly = ctx.base_annual_expenses / 12 * ctx.post_retirement_ratio
    passive_monthly = ctx.starting_total * ctx.swr / 12
    return max(0.0, post_retirement_monthly - passive_monthly)


def retirement_success_rate(projections: List[YearlyProjection]) -> float:
    """Percent of retired years that still have money left."""
    retired = [p for p in projections if p.is_retired]
    if not retired:
        return 100.0
    funded = sum(1 for p in retired if p.portfolio_value > 0)
    return funded / len(retired) * 100


# =============================================================================
# ENTRY POINT
# =============================================================================

def compute_projection(inputs: FireInputs, start_year: Optional[int] = None,
                       coast_target_age: int = COAST_TARGET_AGE) -> FireResult:
    """
    Run the deterministic projection from today to life expectancy.

    Args:
        inputs: Household inputs
        start_year: Calendar year of the first projected year (default: this year)
        coast_target_age: Reference age for Coast FIRE

    Returns:
        FireResult with the summary figures and every yearly projection

    Raises:
        InvalidInputError: if the inputs break the engine's contract
    """
    inputs.validate()
    ctx = build_context(inputs, start_year)

    state: SimulationState = initial_state(ctx)
    projections: List[YearlyProjection] = []
    for i in range(ctx.years):
        state, projection = step_year(ctx, state, i)
        projections.append(projection)

    fire = state.fire if isinstance(state, Retired) else None
    # Never reaching FIRE is a valid outcome, not an error
    fire_age = fire.fire_age if fire else ctx.life_expectancy
    years_to_fire = fire_age - ctx.current_age

    debt_cost_today = fire.debt_cost_today if fire else 0.0
    fire_number_today = ctx.required_today(fire_age) + debt_cost_today
    fire_number = fire_number_today * (1 + ctx.inflation) ** years_to_fire

    emergency_fund_target = inputs.expenses.monthly_expenses * inputs.assets.emergency_fund_months
    monthly_income = ctx.monthly_salary + ctx.monthly_additional_income
    monthly_savings = ctx.annual_own_savings / 12

    return FireResult(
        fire_number=fire_number,
        fire_number_today=fire_number_today,
        fire_number_base_today=ctx.fire_number_base_today,
        fire_age=fire_age,
        fire_year=ctx.start_year + years_to_fire,
        fire_reached=fire is not None,
        years_to_fire=years_to_fire,
        current_savings_rate=monthly_savings / monthly_income * 100 if monthly_income > 0 else 0.0,
        monthly_savings=monthly_savings,
        coast_fire_age=coast_fire_age(ctx, projections, coast_target_age),
        barista_fire_income=barista_fire_income(ctx),
        yearly_projections=projections,
        total_contributions=state.cumulative_contributions,
        total_growth=state.cumulative_growth,
        portfolio_at_retirement=projections[years_to_fire].portfolio_value,
        portfolio_at_end=projections[-1].portfolio_value,
        retirement_years=ctx.life_expectancy - fire_age,
        success_rate=retirement_success_rate(projections),
        bridge_gap=fire.bridge_gap if fire else 0.0,
        bridge_income_total=fire.bridge_income_total if fire else 0.0,
        pension_credit_today=fire.pension_credit_today if fire else 0.0,
        debt_cost_today=debt_cost_today,
        emergency_fund_target=emergency_fund_target,
        emergency_fund_shortfall=max(0.0, emergency_fund_target - inputs.assets.cash_savings),
    )
