#!/usr/bin/env python3
"""
Flask API for FIRE Projections

Provides endpoints to run the projection, the Monte Carlo simulation, the
required-portfolio solver and the what-if scenarios with custom parameters.
"""

import copy
import logging

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from config import DEFAULT_INPUTS, DEFAULT_NUM_SIMULATIONS, MAX_SIMULATIONS
from export_data import build_export
from financial import PensionEntry, RecurringIncomeEntry, compute_required_portfolio
from fire_calculator import compute_projection
from models import FireInputs, InvalidInputError
from monte_carlo import run_monte_carlo
from scenarios import run_all_scenarios, scenario_summary

logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)


def merge_params(base: dict, overrides: dict) -> dict:
    """Recursively merge user overrides into a copy of the defaults."""
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_params(merged[key], value)
        else:
            merged[key] = value
    return merged


def request_params() -> dict:
    """The JSON body as a dict (empty if none was sent)."""
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise InvalidInputError("Request body must be a JSON object")
    return body


def inputs_from_request(user_params: dict) -> FireInputs:
    """
    Start with defaults, override with whatever sections the user sent.

    Optional 'risk_profile' and 'fire_type' presets are applied last.
    """
    sections = {k: v for k, v in user_params.items() if k in DEFAULT_INPUTS}
    inputs = FireInputs.from_dict(merge_params(DEFAULT_INPUTS, sections))
    if user_params.get('risk_profile'):
        inputs = inputs.with_risk_profile(str(user_params['risk_profile']))
    if user_params.get('fire_type'):
        inputs = inputs.with_fire_type(str(user_params['fire_type']))
    return inputs


def _as_int(value, name: str) -> int:
    if isinstance(value, bool):
        raise InvalidInputError(f"{name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"{name} must be an integer") from e


def _optional_int(value, name: str):
    return _as_int(value, name) if value is not None else None


def _simulation_count(user_params: dict) -> int:
    # Get simulation count (default 500, capped at MAX_SIMULATIONS)
    count = _as_int(user_params.get('num_simulations', DEFAULT_NUM_SIMULATIONS), 'num_simulations')
    return min(count, MAX_SIMULATIONS)


def _target_age(user_params: dict):
    return _optional_int(user_params.get('target_fire_age'), 'target_fire_age')


def _start_year(user_params: dict):
    return _optional_int(user_params.get('start_year'), 'start_year')


@app.errorhandler(InvalidInputError)
def handle_invalid_input(e):
    return jsonify({"error": str(e)}), 400


@app.errorhandler(Exception)
def handle_unexpected(e):
    if isinstance(e, HTTPException):
        return e
    logger.exception("Request failed")
    return jsonify({"error": str(e)}), 500


@app.route('/api/defaults', methods=['GET'])
def get_defaults():
    """Return default inputs so the frontend can initialize its forms."""
    return jsonify(DEFAULT_INPUTS)


@app.route('/api/projection', methods=['POST'])
def projection():
    """Deterministic year-by-year projection."""
    user_params = request_params()
    result = compute_projection(inputs_from_request(user_params),
                                start_year=_start_year(user_params))
    return jsonify(result.to_dict())


@app.route('/api/monte-carlo', methods=['POST'])
def monte_carlo():
    """Monte Carlo percentile bands and success rate."""
    user_params = request_params()
    result = run_monte_carlo(
        inputs_from_request(user_params),
        num_simulations=_simulation_count(user_params),
        target_fire_age=_target_age(user_params),
        distribution=user_params.get('distribution', 'normal'),
    )
    return jsonify(result.to_dict())


@app.route('/api/required-portfolio', methods=['POST'])
def required_portfolio():
    """What portfolio do I need if I retire at a given age?"""
    body = request_params()
    try:
        pensions = [PensionEntry(float(p['annual_amount']), int(p['start_age']))
                    for p in body.get('pensions', [])]
        recurring = [RecurringIncomeEntry(**r) for r in body.get('recurring_incomes', [])]
        value = compute_required_portfolio(
            float(body['annual_expenses']),
            pensions,
            int(body['fire_age']),
            float(body['swr']),
            float(body['real_return']),
            life_expectancy=_optional_int(body.get('life_expectancy'), 'life_expectancy'),
            inflation=float(body.get('inflation', 0.0)),
            recurring_incomes=recurring,
        )
    except InvalidInputError:
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidInputError(f"Bad required-portfolio request: {e}") from e
    return jsonify({"required_portfolio": value})


@app.route('/api/scenarios', methods=['POST'])
def scenarios():
    """Years to FIRE under each what-if scenario, next to the baseline."""
    user_params = request_params()
    outcomes = run_all_scenarios(inputs_from_request(user_params),
                                 start_year=_start_year(user_params))
    return jsonify({key: scenario_summary(outcome) for key, outcome in outcomes.items()})


@app.route('/api/simulate', methods=['POST'])
def simulate():
    """Projection and Monte Carlo in one response (same shape as export_data)."""
    user_params = request_params()
    result = build_export(
        inputs_from_request(user_params),
        num_simulations=_simulation_count(user_params),
        target_fire_age=_target_age(user_params),
        start_year=_start_year(user_params),
    )
    return jsonify(result)


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    print("Starting FIRE Projection API on http://localhost:5000")
    app.run(debug=True, port=5000)
