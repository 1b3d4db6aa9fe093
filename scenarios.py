"""
What-If Scenarios

Each scenario tweaks one input (invest a bit more, cut spending, assume lower
returns...) and re-runs the projection, so you can see how many years the
change buys or costs you.

Why scenarios matter:
- Small monthly changes compound into years of difference
- Return assumptions dominate long horizons, so it pays to test both sides
"""

from dataclasses import dataclass, replace
from typing import Dict, Optional

from fire_calculator import compute_projection
from models import FireInputs, FireResult, InvalidInputError


# =============================================================================
# SCENARIO MODIFIERS
# =============================================================================

def invest_more(inputs: FireInputs, extra_monthly: float) -> FireInputs:
    """Add a fixed amount to the monthly investment."""
    goals = inputs.fire_goals
    return replace(inputs, fire_goals=replace(
        goals, monthly_investment=goals.monthly_investment + extra_monthly))


def with_return(inputs: FireInputs, annual_return: float) -> FireInputs:
    """Assume a different gross return (drops any allocation-derived figure)."""
    return replace(inputs, investment_strategy=replace(
        inputs.investment_strategy,
        expected_annual_return=annual_return,
        portfolio_allocation=None,
        asset_returns=None,
    ))


def cut_expenses(inputs: FireInputs, fraction: float) -> FireInputs:
    """Spend `fraction` less every month, today and in retirement."""
    expenses = inputs.expenses
    return replace(inputs, expenses=replace(
        expenses, monthly_expenses=expenses.monthly_expenses * (1 - fraction)))


def with_swr(inputs: FireInputs, swr: float) -> FireInputs:
    return replace(inputs, fire_goals=replace(inputs.fire_goals, safe_withdrawal_rate=swr))


# =============================================================================
# SCENARIO REGISTRY
# =============================================================================

WHAT_IF_SCENARIOS = {
    'invest_200_more': {
        'name': 'Invest 200/month more',
        'description': 'A modest bump to the monthly investment',
        'apply': lambda inputs: invest_more(inputs, 200),
    },
    'invest_500_more': {
        'name': 'Invest 500/month more',
        'description': 'A serious bump to the monthly investment',
        'apply': lambda inputs: invest_more(inputs, 500),
    },
    'lower_returns': {
        'name': 'Lower returns (5%)',
        'description': 'Markets disappoint: 5% gross every year',
        'apply': lambda inputs: with_return(inputs, 0.05),
    },
    'higher_returns': {
        'name': 'Higher returns (9%)',
        'description': 'Markets surprise: 9% gross every year',
        'apply': lambda inputs: with_return(inputs, 0.09),
    },
    'cut_expenses_10': {
        'name': 'Cut expenses 10%',
        'description': 'Trim monthly spending by a tenth',
        'apply': lambda inputs: cut_expenses(inputs, 0.10),
    },
    'safer_swr': {
        'name': 'Safer withdrawal rate (3.5%)',
        'description': 'Plan to withdraw 3.5% instead of your current rate',
        'apply': lambda inputs: with_swr(inputs, 0.035),
    },
}


# =============================================================================
# COMPARISON
# =============================================================================

@dataclass(frozen=True)
class ScenarioOutcome:
    """A scenario's result next to the baseline."""
    key: str
    name: str
    result: FireResult
    years_to_fire_change: int   # Negative = FIRE sooner than the baseline


def run_scenario(inputs: FireInputs, key: str, baseline: Optional[FireResult] = None,
                 start_year: Optional[int] = None) -> ScenarioOutcome:
    """Run one named scenario and compare it with the baseline."""
    if key not in WHAT_IF_SCENARIOS:
        raise InvalidInputError(f"Unknown scenario: {key}")
    scenario = WHAT_IF_SCENARIOS[key]
    if baseline is None:
        baseline = compute_projection(inputs, start_year=start_year)
    result = compute_projection(scenario['apply'](inputs), start_year=start_year)
    return ScenarioOutcome(
        key=key,
        name=scenario['name'],
        result=result,
        years_to_fire_change=result.years_to_fire - baseline.years_to_fire,
    )


def run_all_scenarios(inputs: FireInputs,
                      start_year: Optional[int] = None) -> Dict[str, ScenarioOutcome]:
    """
    Run every what-if scenario against the same baseline.

    Returns:
        Outcomes keyed like WHAT_IF_SCENARIOS
    """
    baseline = compute_projection(inputs, start_year=start_year)
    return {
        key: run_scenario(inputs, key, baseline, start_year)
        for key in WHAT_IF_SCENARIOS
    }


def scenario_summary(outcome: ScenarioOutcome) -> Dict[str, object]:
    """JSON-ready headline figures for one scenario."""
    return {
        "name": outcome.name,
        "fire_age": outcome.result.fire_age,
        "fire_reached": outcome.result.fire_reached,
        "years_to_fire": outcome.result.years_to_fire,
        "years_to_fire_change": outcome.years_to_fire_change,
        "fire_number_today": outcome.result.fire_number_today,
    }
