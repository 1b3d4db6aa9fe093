import pytest

from config import FIRE_TYPES, RISK_PROFILES
from financial import portfolio_stats
from models import FireInputs, InvalidInputError


# =============================================================================
# TYPE CONVERSION
# =============================================================================

def test_numbers_sent_as_strings_are_converted():
    inputs = FireInputs.from_dict({
        'personal_info': {'current_age': '40', 'life_expectancy': '85'},
        'expenses': {'monthly_expenses': '2500.50'},
        'fire_goals': {'safe_withdrawal_rate': '0.035'},
    })
    assert inputs.personal_info.current_age == 40
    assert isinstance(inputs.personal_info.current_age, int)
    assert inputs.expenses.monthly_expenses == 2500.5
    assert inputs.fire_goals.safe_withdrawal_rate == 0.035


def test_integral_floats_are_accepted_for_ages():
    inputs = FireInputs.from_dict({'personal_info': {'current_age': 40.0}})
    assert inputs.personal_info.current_age == 40


@pytest.mark.parametrize('section', [
    {'personal_info': {'current_age': 'abc'}},
    {'personal_info': {'current_age': 40.5}},
    {'personal_info': {'current_age': True}},
    {'expenses': {'monthly_expenses': [2000]}},
    {'expenses': {'monthly_expenses': None}},
    {'investment_strategy': {'portfolio_allocation': 'equity'}},
    {'fire_goals': {'future_incomes': [{'amount': 1000, 'include_in_fire': 'yes'}]}},
])
def test_unconvertible_values_are_rejected(section):
    with pytest.raises(InvalidInputError):
        FireInputs.from_dict(section)


@pytest.mark.parametrize('data', [
    {'income': {'pensions': 'none'}},
    {'income': {'pensions': ['not an object']}},
    {'assets': {'debts': {'monthly_payment': 500}}},
    {'personal_info': 40},
])
def test_malformed_sections_are_rejected(data):
    with pytest.raises(InvalidInputError):
        FireInputs.from_dict(data)


def test_non_dict_inputs_are_rejected():
    with pytest.raises(InvalidInputError):
        FireInputs.from_dict(['personal_info'])


def test_unknown_keys_are_ignored():
    inputs = FireInputs.from_dict({'personal_info': {'current_age': 35, 'nickname': 'Sam'}})
    assert inputs.personal_info.current_age == 35


def test_optional_allocation_stays_none():
    inputs = FireInputs.from_dict({'investment_strategy': {'portfolio_allocation': None}})
    assert inputs.investment_strategy.portfolio_allocation is None


# =============================================================================
# PRESETS
# =============================================================================

@pytest.mark.parametrize('fire_type', sorted(FIRE_TYPES))
def test_fire_type_sets_the_spending_ratio(inputs, fire_type):
    adjusted = inputs.with_fire_type(fire_type)
    assert adjusted.expenses.post_retirement_expense_ratio == FIRE_TYPES[fire_type]['multiplier']
    assert adjusted.expenses.monthly_expenses == inputs.expenses.monthly_expenses


def test_lean_fire_ratio(inputs):
    assert inputs.with_fire_type('lean').expenses.post_retirement_expense_ratio == 0.7


def test_risk_profile_sets_the_allocation(inputs):
    strategy = inputs.with_risk_profile('aggressive').investment_strategy
    assert strategy.portfolio_allocation == RISK_PROFILES['aggressive']['allocation']
    assert strategy.asset_returns is None
    stats = portfolio_stats(RISK_PROFILES['aggressive']['allocation'])
    assert strategy.blended_return_and_volatility() == pytest.approx(
        (stats['return'], stats['volatility']))
    # Fees and tax are the household's own
    assert strategy.annual_fees == inputs.investment_strategy.annual_fees


def test_riskier_profiles_expect_more(inputs):
    returns = [inputs.with_risk_profile(p).investment_strategy.expected_annual_return
               for p in ('conservative', 'moderate', 'aggressive')]
    assert returns[0] < returns[1] < returns[2]


def test_presets_leave_the_original_alone(inputs):
    inputs.with_risk_profile('conservative')
    inputs.with_fire_type('fat')
    assert inputs.investment_strategy.portfolio_allocation is None
    assert inputs.expenses.post_retirement_expense_ratio == 1.0


def test_unknown_presets_are_rejected(inputs):
    with pytest.raises(InvalidInputError):
        inputs.with_risk_profile('yolo')
    with pytest.raises(InvalidInputError):
        inputs.with_fire_type('obese')


def test_preset_allocations_are_valid(inputs):
    for profile in RISK_PROFILES:
        inputs.with_risk_profile(profile).validate()
