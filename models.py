"""
Data Structures

Inputs and outputs of the FIRE engines.

Inputs are frozen dataclasses grouped the way the household thinks about them
(personal info, income, expenses, assets, investment strategy, goals).
FireInputs.from_dict() builds them from the plain nested dicts used in
config.py and by the API.
"""

import json
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Dict, List, Optional, Tuple, Union, get_args, get_origin

from config import FIRE_TYPES, RISK_PROFILES
from financial import InvalidInputError, portfolio_stats


def _coerce(cls, name: str, value: Any, tp: Any) -> Any:
    """Convert a plain JSON value to a field's declared type."""
    if get_origin(tp) is Union:
        if value is None:
            return None
        tp = next(a for a in get_args(tp) if a is not type(None))
    try:
        if tp is bool:
            if not isinstance(value, (bool, int)):
                raise TypeError(type(value).__name__)
            return bool(value)
        if tp in (int, float):
            if isinstance(value, bool):
                raise TypeError("bool")
            if tp is int and isinstance(value, float) and not value.is_integer():
                raise ValueError(value)
            return tp(value)
        if tp is str:
            return str(value)
        if get_origin(tp) is dict:
            return {str(k): float(v) for k, v in value.items()}
    except (TypeError, ValueError, AttributeError, OverflowError) as e:
        raise InvalidInputError(f"{cls.__name__}.{name}: invalid value {value!r}") from e
    return value


def _section(data: Any, key: str) -> dict:
    section = data.get(key)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise InvalidInputError(f"{key} must be an object")
    return section


def _pick(cls, data: Optional[dict], **nested):
    """Build a dataclass from a dict, ignoring unknown keys and converting types."""
    data = data or {}
    if not isinstance(data, dict):
        raise InvalidInputError(f"{cls.__name__} entries must be objects")
    types = {f.name: f.type for f in fields(cls)}
    kwargs = {k: _coerce(cls, k, v, types[k])
              for k, v in data.items() if k in types and k not in nested}
    kwargs.update(nested)
    return cls(**kwargs)


def _pick_all(cls, items) -> tuple:
    if items is None:
        return ()
    if not isinstance(items, (list, tuple)):
        raise InvalidInputError(f"{cls.__name__} entries must be a list")
    return tuple(_pick(cls, item) for item in items)


# =============================================================================
# INPUTS
# =============================================================================

@dataclass(frozen=True)
class PersonalInfo:
    current_age: int = 30
    life_expectancy: int = 90


@dataclass(frozen=True)
class Pension:
    monthly_amount: float = 0.0   # Today's currency, inflation-indexed
    start_age: int = 67
    name: str = ''


@dataclass(frozen=True)
class IncomeInfo:
    monthly_net_salary: float = 0.0
    annual_salary_growth: float = 0.0
    additional_monthly_income: float = 0.0
    pensions: Tuple[Pension, ...] = ()


@dataclass(frozen=True)
class ExpensesInfo:
    monthly_expenses: float = 0.0
    annual_inflation_rate: float = 0.0
    post_retirement_expense_ratio: float = 1.0  # Can exceed 1.0


@dataclass(frozen=True)
class CustomAsset:
    """An account with its own balance, contribution and return rate."""
    name: str = ''
    balance: float = 0.0
    monthly_contribution: float = 0.0
    expected_annual_return: float = 0.0
    employer_match: float = 0.0   # Monthly, added on top of the contribution
    asset_type: str = 'other'


@dataclass(frozen=True)
class Debt:
    name: str = ''
    balance: float = 0.0
    interest_rate: float = 0.0
    monthly_payment: float = 0.0
    remaining_years: int = 0


@dataclass(frozen=True)
class RealEstateAsset:
    """
    A property held outside the portfolio.

    The value is tracked for display only; the net rental income counts as a
    recurring income that starts now.
    """
    name: str = ''
    property_value: float = 0.0
    monthly_net_income: float = 0.0
    annual_appreciation: float = 0.0
    rental_growth_rate: Optional[float] = None   # None = grows with inflation


@dataclass(frozen=True)
class AssetsInfo:
    invested_assets: float = 0.0
    cash_savings: float = 0.0
    custom_assets: Tuple[CustomAsset, ...] = ()
    debts: Tuple[Debt, ...] = ()
    emergency_fund_months: float = 0.0
    real_estate_assets: Tuple[RealEstateAsset, ...] = ()


@dataclass(frozen=True)
class InvestmentStrategy:
    expected_annual_return: float = 0.07   # Gross
    annual_volatility: float = 0.12
    annual_fees: float = 0.0
    capital_gains_tax_rate: float = 0.0
    # Optional: derive return and volatility from an allocation instead
    portfolio_allocation: Optional[Dict[str, float]] = None
    asset_returns: Optional[Dict[str, float]] = None

    def blended_return_and_volatility(self) -> Tuple[float, float]:
        """Gross return and volatility, from the allocation if one is set."""
        if self.portfolio_allocation:
            stats = portfolio_stats(self.portfolio_allocation, self.asset_returns)
            return stats['return'], stats['volatility']
        return self.expected_annual_return, self.annual_volatility

    def with_risk_profile(self, profile: str) -> 'InvestmentStrategy':
        """Switch to one of the preset allocations in config.RISK_PROFILES."""
        if profile not in RISK_PROFILES:
            raise InvalidInputError(f"Unknown risk profile: {profile}")
        allocation = dict(RISK_PROFILES[profile]['allocation'])
        stats = portfolio_stats(allocation)
        return replace(
            self,
            portfolio_allocation=allocation,
            asset_returns=None,
            expected_annual_return=stats['return'],
            annual_volatility=stats['volatility'],
        )


@dataclass(frozen=True)
class FutureExpense:
    amount: float = 0.0
    years_from_now: int = 0
    name: str = ''


@dataclass(frozen=True)
class FutureIncome:
    """A one-time income (inheritance, severance...)."""
    amount: float = 0.0
    years_from_now: int = 0
    include_in_fire: bool = False   # May bridge an early retirement
    name: str = ''


@dataclass(frozen=True)
class RecurringIncome:
    monthly_amount: float = 0.0
    start_age: int = 0
    annual_growth_rate: float = 0.0
    include_in_fire: bool = False
    name: str = ''


@dataclass(frozen=True)
class FireGoals:
    safe_withdrawal_rate: float = 0.04
    monthly_investment: float = 0.0
    future_expenses: Tuple[FutureExpense, ...] = ()
    future_incomes: Tuple[FutureIncome, ...] = ()
    recurring_incomes: Tuple[RecurringIncome, ...] = ()


@dataclass(frozen=True)
class FireInputs:
    """Everything one projection run needs. Immutable."""
    personal_info: PersonalInfo = field(default_factory=PersonalInfo)
    income: IncomeInfo = field(default_factory=IncomeInfo)
    expenses: ExpensesInfo = field(default_factory=ExpensesInfo)
    assets: AssetsInfo = field(default_factory=AssetsInfo)
    investment_strategy: InvestmentStrategy = field(default_factory=InvestmentStrategy)
    fire_goals: FireGoals = field(default_factory=FireGoals)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FireInputs':
        """
        Build inputs from nested plain dicts (see config.DEFAULT_INPUTS).

        Numbers sent as strings ("40") are converted to the field type.

        Raises:
            InvalidInputError: if a value can't be converted
        """
        if not isinstance(data, dict):
            raise InvalidInputError("inputs must be an object")
        income = _section(data, 'income')
        assets = _section(data, 'assets')
        goals = _section(data, 'fire_goals')

        return cls(
            personal_info=_pick(PersonalInfo, _section(data, 'personal_info')),
            income=_pick(IncomeInfo, income,
                         pensions=_pick_all(Pension, income.get('pensions'))),
            expenses=_pick(ExpensesInfo, _section(data, 'expenses')),
            assets=_pick(
                AssetsInfo, assets,
                custom_assets=_pick_all(CustomAsset, assets.get('custom_assets')),
                debts=_pick_all(Debt, assets.get('debts')),
                real_estate_assets=_pick_all(RealEstateAsset, assets.get('real_estate_assets')),
            ),
            investment_strategy=_pick(InvestmentStrategy, _section(data, 'investment_strategy')),
            fire_goals=_pick(
                FireGoals, goals,
                future_expenses=_pick_all(FutureExpense, goals.get('future_expenses')),
                future_incomes=_pick_all(FutureIncome, goals.get('future_incomes')),
                recurring_incomes=_pick_all(RecurringIncome, goals.get('recurring_incomes')),
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def canonical_json(self) -> str:
        """Key-sorted encoding, so field order never changes the result."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(',', ':'))

    def with_risk_profile(self, profile: str) -> 'FireInputs':
        return replace(self, investment_strategy=self.investment_strategy.with_risk_profile(profile))

    def with_fire_type(self, fire_type: str) -> 'FireInputs':
        """Lean, regular or fat FIRE: sets the post-retirement spending ratio."""
        if fire_type not in FIRE_TYPES:
            raise InvalidInputError(f"Unknown FIRE type: {fire_type}")
        expenses = replace(self.expenses,
                           post_retirement_expense_ratio=FIRE_TYPES[fire_type]['multiplier'])
        return replace(self, expenses=expenses)

    def validate(self) -> None:
        """
        Fail fast on inputs the engines can't make sense of.

        Raises:
            InvalidInputError: describing the first problem found
        """
        person = self.personal_info
        strategy = self.investment_strategy
        goals = self.fire_goals

        if person.current_age < 0:
            raise InvalidInputError("current_age must be non-negative")
        if person.life_expectancy <= person.current_age:
            raise InvalidInputError("life_expectancy must exceed current_age")
        if goals.safe_withdrawal_rate <= 0:
            raise InvalidInputError("safe_withdrawal_rate must be positive")
        if self.expenses.annual_inflation_rate <= -1:
            raise InvalidInputError("annual_inflation_rate must be above -100%")
        if self.expenses.monthly_expenses < 0:
            raise InvalidInputError("monthly_expenses must be non-negative")
        if strategy.annual_volatility < 0 or strategy.annual_fees < 0:
            raise InvalidInputError("volatility and fees must be non-negative")
        if not 0 <= strategy.capital_gains_tax_rate < 1:
            raise InvalidInputError("capital_gains_tax_rate must be in [0, 1)")
        if strategy.portfolio_allocation:
            total = sum(strategy.portfolio_allocation.values())
            if abs(total - 1.0) > 1e-6:
                raise InvalidInputError(f"portfolio_allocation sums to {total}, not 1")

        if any(p.monthly_amount < 0 for p in self.income.pensions):
            raise InvalidInputError("pension amounts must be non-negative")
        if any(r.monthly_amount < 0 for r in goals.recurring_incomes):
            raise InvalidInputError("recurring income amounts must be non-negative")
        events = goals.future_expenses + goals.future_incomes
        if any(e.years_from_now < 0 for e in events):
            raise InvalidInputError("years_from_now must be non-negative")
        if any(d.remaining_years < 0 or d.monthly_payment < 0 for d in self.assets.debts):
            raise InvalidInputError("debt terms must be non-negative")


# =============================================================================
# OUTPUTS
# =============================================================================

@dataclass(frozen=True)
class YearlyProjection:
    """One simulated year. Portfolio values are floored at zero for display."""
    year: int
    age: int
    portfolio_value: float
    portfolio_optimistic: float
    portfolio_pessimistic: float
    annual_contributions: float
    annual_investment_growth: float
    annual_expenses: float          # Living expenses plus one-time outflows
    annual_debt_payments: float
    passive_income: float           # portfolio x SWR
    total_income: float
    cumulative_contributions: float
    cumulative_growth: float
    savings_rate: float             # Percent
    is_retired: bool
    remaining_debt_balance: float = 0.0
    real_estate_value: float = 0.0


@dataclass(frozen=True)
class FireResult:
    fire_number: float              # Nominal target at the FIRE age
    fire_number_today: float        # Adjusted for pensions and debts
    fire_number_base_today: float   # Plain expenses / SWR
    fire_age: int
    fire_year: int
    fire_reached: bool
    years_to_fire: int
    current_savings_rate: float
    monthly_savings: float
    coast_fire_age: Optional[int]
    barista_fire_income: float      # Monthly
    yearly_projections: List[YearlyProjection]
    total_contributions: float
    total_growth: float
    portfolio_at_retirement: float
    portfolio_at_end: float
    retirement_years: int
    success_rate: float             # Percent of retired years still funded
    bridge_gap: float               # Nominal shortfall bridged (0 = no bridge)
    bridge_income_total: float
    pension_credit_today: float
    debt_cost_today: float
    emergency_fund_target: float
    emergency_fund_shortfall: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PercentileBands:
    p10: List[float]
    p25: List[float]
    p50: List[float]
    p75: List[float]
    p90: List[float]


@dataclass(frozen=True)
class MonteCarloResult:
    ages: List[int]
    percentiles: PercentileBands
    success_rate: float             # Percent of paths funded at life expectancy
    fire_age_distribution: List[Dict[str, int]]
    median_fire_age: int
    num_simulations: int
    target_fire_age: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
