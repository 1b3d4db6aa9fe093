"""
Configuration for FIRE projections.

This file contains the default household inputs and the engine constants.
Tweak these values to see how changes affect your outcomes.

All rates are fractions: 0.04 means 4%.
"""

# =============================================================================
# DEFAULT HOUSEHOLD
# =============================================================================

DEFAULT_INPUTS = {
    'personal_info': {
        'current_age': 30,
        'life_expectancy': 90,
    },

    'income': {
        'monthly_net_salary': 2_500,
        'annual_salary_growth': 0.02,
        'additional_monthly_income': 0,
        # Each pension is inflation-indexed from today and starts independently
        'pensions': [
            {'name': 'State Pension', 'monthly_amount': 800, 'start_age': 67},
        ],
    },

    'expenses': {
        'monthly_expenses': 1_800,
        'annual_inflation_rate': 0.025,
        'post_retirement_expense_ratio': 1.0,   # 1.0 = keep today's lifestyle
    },

    'assets': {
        'invested_assets': 20_000,
        'cash_savings': 10_000,
        'custom_assets': [],
        'debts': [],
        'emergency_fund_months': 6,
        'real_estate_assets': [],
    },

    'investment_strategy': {
        'expected_annual_return': 0.06,   # Gross, before fees and tax
        'annual_volatility': 0.12,        # Standard deviation for Monte Carlo
        'annual_fees': 0.003,             # TER
        'capital_gains_tax_rate': 0.26,
        'portfolio_allocation': None,     # e.g. {'equity': 0.6, 'bonds': 0.3, 'cash': 0.1}
        'asset_returns': None,            # Per-class overrides for ASSET_CLASSES
    },

    'fire_goals': {
        'safe_withdrawal_rate': 0.04,
        'monthly_investment': 700,
        # One-time events, keyed by years from now
        'future_expenses': [],
        'future_incomes': [],
        'recurring_incomes': [],
    },
}


# =============================================================================
# ENGINE CONSTANTS
# =============================================================================

COAST_TARGET_AGE = 65          # Reference age for Coast FIRE
BAND_SPREAD = 0.02             # Optimistic/pessimistic return offset
MIN_REAL_RETURN = 0.001        # Floor for the real return used by the solver
ANNUITY_EPSILON = 1e-4         # Below this rate, annuities are undiscounted

# Finite-horizon solver
BISECTION_ITERATIONS = 60
PORTFOLIO_CEILING = 1_000_000_000

# Monte Carlo
DEFAULT_NUM_SIMULATIONS = 500
MAX_SIMULATIONS = 10_000


# =============================================================================
# ASSET CLASSES
# =============================================================================
# Long-run nominal estimates before fees, used to derive a blended return and
# volatility from a portfolio allocation.

ASSET_CLASSES = {
    'equity': {'return': 0.08, 'volatility': 0.16},
    'bonds': {'return': 0.025, 'volatility': 0.045},
    'cash': {'return': 0.015, 'volatility': 0.01},
}

# Symmetric correlation matrix (row/column order follows ASSET_CLASSES)
ASSET_CORRELATIONS = {
    'equity': {'equity': 1.00, 'bonds': 0.10, 'cash': 0.00},
    'bonds': {'equity': 0.10, 'bonds': 1.00, 'cash': 0.30},
    'cash': {'equity': 0.00, 'bonds': 0.30, 'cash': 1.00},
}


# =============================================================================
# PRESETS
# =============================================================================

# Allocation presets (weights are fractions of the portfolio)
RISK_PROFILES = {
    'conservative': {
        'name': 'Conservative',
        'description': 'Capital preservation: low risk, steady growth',
        'allocation': {'equity': 0.25, 'bonds': 0.55, 'cash': 0.20},
    },
    'moderate': {
        'name': 'Moderate',
        'description': 'Balanced growth: diversified risk and reward',
        'allocation': {'equity': 0.60, 'bonds': 0.30, 'cash': 0.10},
    },
    'aggressive': {
        'name': 'Aggressive',
        'description': 'Maximum growth: high volatility, high potential',
        'allocation': {'equity': 0.85, 'bonds': 0.10, 'cash': 0.05},
    },
}

# Retirement lifestyle, as a multiple of today's spending
FIRE_TYPES = {
    'lean': {'name': 'Lean FIRE', 'multiplier': 0.7},
    'regular': {'name': 'Regular FIRE', 'multiplier': 1.0},
    'fat': {'name': 'Fat FIRE', 'multiplier': 1.3},
}
