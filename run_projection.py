#!/usr/bin/env python3
"""
FIRE Projection Runner

This is the main entry point that ties everything together:
- Loads your parameters from config.py
- Runs the deterministic projection and the what-if scenarios
- Runs the Monte Carlo simulation
- Prints the results

Run with: python run_projection.py
"""

from typing import Dict

from config import DEFAULT_INPUTS, DEFAULT_NUM_SIMULATIONS
from fire_calculator import compute_projection
from models import FireInputs, FireResult, MonteCarloResult
from monte_carlo import run_monte_carlo
from scenarios import ScenarioOutcome, run_all_scenarios


def format_currency(amount: float) -> str:
    """Format a number as euros with thousands separators."""
    return f"€{amount:,.0f}"


# =============================================================================
# REPORT SECTIONS
# =============================================================================

def print_inputs(inputs: FireInputs):
    """Print the household situation."""
    person = inputs.personal_info
    strategy = inputs.investment_strategy
    goals = inputs.fire_goals
    assets = inputs.assets

    starting = assets.invested_assets + assets.cash_savings + sum(a.balance for a in assets.custom_assets)
    print(f"\nAge:                {person.current_age} (planning to {person.life_expectancy})")
    print(f"Starting Portfolio: {format_currency(starting)}")
    print(f"Monthly Expenses:   {format_currency(inputs.expenses.monthly_expenses)}")
    print(f"Monthly Investment: {format_currency(goals.monthly_investment)}")
    print(f"Expected Return:    {strategy.expected_annual_return:.1%} (fees {strategy.annual_fees:.2%}, "
          f"tax {strategy.capital_gains_tax_rate:.0%})")
    print(f"Inflation:          {inputs.expenses.annual_inflation_rate:.1%}")
    print(f"Withdrawal Rate:    {goals.safe_withdrawal_rate:.1%}")

    if inputs.income.pensions:
        print("\nPensions:")
        for p in inputs.income.pensions:
            print(f"  From age {p.start_age}: {format_currency(p.monthly_amount)}/month ({p.name})")

    if goals.future_incomes:
        print("\nFuture Incomes:")
        for e in goals.future_incomes:
            bridge = " [bridge]" if e.include_in_fire else ""
            print(f"  In {e.years_from_now} years: {format_currency(e.amount)} ({e.name}){bridge}")


def print_fire_summary(result: FireResult):
    """Print the deterministic FIRE figures."""
    print("\n" + "=" * 60)
    print("FIRE PROJECTION")
    print("=" * 60)

    if result.fire_reached:
        print(f"\nFIRE age:          {result.fire_age} ({result.fire_year}, in {result.years_to_fire} years)")
    else:
        print(f"\nFIRE not reached before age {result.fire_age}")
    print(f"FIRE number:       {format_currency(result.fire_number)} "
          f"({format_currency(result.fire_number_today)} in today's money)")
    print(f"Plain target:      {format_currency(result.fire_number_base_today)} (expenses / SWR)")
    if result.pension_credit_today > 0:
        print(f"Pension credit:    -{format_currency(result.pension_credit_today)}")
    if result.debt_cost_today > 0:
        print(f"Remaining debts:   +{format_currency(result.debt_cost_today)}")
    if result.bridge_gap > 0:
        print(f"Bridge strategy:   {format_currency(result.bridge_gap)} short, "
              f"covered by {format_currency(result.bridge_income_total)} of future income")

    coast = result.coast_fire_age if result.coast_fire_age is not None else "not reached"
    print(f"\nSavings rate:      {result.current_savings_rate:.1f}%")
    print(f"Coast FIRE age:    {coast}")
    print(f"Barista income:    {format_currency(result.barista_fire_income)}/month")
    print(f"Retirement funded: {result.success_rate:.0f}% of retired years")


def print_snapshots(result: FireResult, step: int = 10):
    """Print portfolio values every few years, plus the FIRE year."""
    print("\nPortfolio snapshots:")
    for p in result.yearly_projections:
        if (p.age - result.yearly_projections[0].age) % step == 0 or p.age == result.fire_age:
            phase = "retired" if p.is_retired else "working"
            print(f"  Age {p.age}: {format_currency(p.portfolio_value):>15}  ({phase})")


def print_monte_carlo_summary(mc: MonteCarloResult):
    """Print Monte Carlo results."""
    print("\n" + "=" * 60)
    print(f"MONTE CARLO SIMULATION ({mc.num_simulations:,} runs)")
    print("=" * 60)

    print(f"\nSuccess Rate:      {mc.success_rate:.1f}%")
    print(f"Median FIRE age:   {mc.median_fire_age}")

    final_age = mc.ages[-1]
    print(f"\nFinal Portfolio Distribution (at age {final_age}):")
    print(f"  10th percentile: {format_currency(mc.percentiles.p10[-1]):>15}  (pessimistic)")
    print(f"  25th percentile: {format_currency(mc.percentiles.p25[-1]):>15}")
    print(f"  50th percentile: {format_currency(mc.percentiles.p50[-1]):>15}  (median)")
    print(f"  75th percentile: {format_currency(mc.percentiles.p75[-1]):>15}")
    print(f"  90th percentile: {format_currency(mc.percentiles.p90[-1]):>15}  (optimistic)")


def print_scenario_comparison(outcomes: Dict[str, ScenarioOutcome]):
    """Print years to FIRE under each what-if scenario."""
    print("\n" + "=" * 60)
    print("WHAT-IF SCENARIOS")
    print("=" * 60)
    print(f"\n{'Scenario':<32} {'FIRE age':>10} {'Change':>12}")
    print("-" * 60)

    for outcome in outcomes.values():
        change = outcome.years_to_fire_change
        if change == 0:
            label = "same"
        else:
            label = f"{abs(change)} yrs {'sooner' if change < 0 else 'later'}"
        age = outcome.result.fire_age if outcome.result.fire_reached else "never"
        print(f"{outcome.name:<32} {age:>10} {label:>12}")

    print("-" * 60)


# =============================================================================
# MAIN
# =============================================================================

def main():
    """Run the full analysis."""
    inputs = FireInputs.from_dict(DEFAULT_INPUTS)

    print("\n" + "=" * 60)
    print("FIRE PROJECTION RESULTS")
    print("=" * 60)
    print_inputs(inputs)

    result = compute_projection(inputs)
    print_fire_summary(result)
    print_snapshots(result)
    print_scenario_comparison(run_all_scenarios(inputs))

    print(f"\nRunning Monte Carlo simulation ({DEFAULT_NUM_SIMULATIONS} runs)...")
    mc = run_monte_carlo(inputs, DEFAULT_NUM_SIMULATIONS)
    print_monte_carlo_summary(mc)

    print("\n" + "=" * 60)
    print("ANALYSIS COMPLETE")
    print("=" * 60 + "\n")


if __name__ == "__main__":
    main()
