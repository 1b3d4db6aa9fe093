import pytest

from api import merge_params
from models import FireInputs

BASE_INPUTS = {
    'personal_info': {'current_age': 30, 'life_expectancy': 90},
    'income': {'monthly_net_salary': 3_000, 'annual_salary_growth': 0.0, 'pensions': []},
    'expenses': {'monthly_expenses': 2_000, 'annual_inflation_rate': 0.02},
    'assets': {'invested_assets': 50_000, 'cash_savings': 10_000, 'emergency_fund_months': 6},
    'investment_strategy': {
        'expected_annual_return': 0.07,
        'annual_volatility': 0.12,
        'annual_fees': 0.0,
        'capital_gains_tax_rate': 0.0,
    },
    'fire_goals': {'safe_withdrawal_rate': 0.04, 'monthly_investment': 1_000},
}


@pytest.fixture
def make_inputs():
    """Build FireInputs from the base household plus per-section overrides."""
    def _make(**sections) -> FireInputs:
        return FireInputs.from_dict(merge_params(BASE_INPUTS, sections))
    return _make


@pytest.fixture
def inputs(make_inputs):
    return make_inputs()
