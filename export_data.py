#!/usr/bin/env python3
"""
Export FIRE projection data to JSON for visualization.

Runs the deterministic projection and the Monte Carlo simulation, and exports:
- The inputs used
- FIRE summary figures and the yearly projection rows
- Monte Carlo percentile trajectories (10th, 25th, 50th, 75th, 90th)
- Monte Carlo summary statistics
"""

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional

from config import DEFAULT_INPUTS, DEFAULT_NUM_SIMULATIONS
from fire_calculator import compute_projection
from models import FireInputs, FireResult, MonteCarloResult
from monte_carlo import run_monte_carlo


def projection_summary(result: FireResult) -> Dict[str, Any]:
    """FireResult without the yearly rows."""
    summary = result.to_dict()
    summary.pop('yearly_projections')
    return summary


def monte_carlo_export(mc: MonteCarloResult) -> Dict[str, Any]:
    percentiles = asdict(mc.percentiles)
    percentiles['ages'] = mc.ages
    return {
        "percentiles": percentiles,
        "summary": {
            "success_rate": mc.success_rate,
            "median_fire_age": mc.median_fire_age,
            "num_simulations": mc.num_simulations,
            "target_fire_age": mc.target_fire_age,
            "fire_age_distribution": mc.fire_age_distribution,
            "median_final": mc.percentiles.p50[-1],
            "percentile_10_final": mc.percentiles.p10[-1],
            "percentile_90_final": mc.percentiles.p90[-1],
        },
    }


def build_export(
    inputs: FireInputs,
    num_simulations: int = DEFAULT_NUM_SIMULATIONS,
    target_fire_age: Optional[int] = None,
    start_year: Optional[int] = None
) -> Dict[str, Any]:
    """Run both engines and bundle the results into one JSON-ready dict."""
    result = compute_projection(inputs, start_year=start_year)
    mc = run_monte_carlo(inputs, num_simulations, target_fire_age)

    return {
        "params": inputs.to_dict(),
        "projection": {
            "summary": projection_summary(result),
            "yearly": [asdict(p) for p in result.yearly_projections],
        },
        "monte_carlo": monte_carlo_export(mc),
    }


def run_and_export(
    params: dict,
    num_simulations: int = DEFAULT_NUM_SIMULATIONS,
    output_path: str = "visualization/data.json",
    target_fire_age: Optional[int] = None
) -> Dict[str, Any]:
    """
    Run both engines and write the export to a JSON file.

    Relative paths are resolved next to this file.
    """
    print(f"Running projection and {num_simulations} simulations...")
    export_data = build_export(FireInputs.from_dict(params), num_simulations, target_fire_age)

    output_file = Path(output_path)
    if not output_file.is_absolute():
        output_file = Path(__file__).parent / output_file
    output_file.parent.mkdir(parents=True, exist_ok=True)
    with open(output_file, 'w') as f:
        json.dump(export_data, f, indent=2)

    summary = export_data["projection"]["summary"]
    mc_summary = export_data["monte_carlo"]["summary"]
    print(f"\nExported to {output_file}")
    print(f"FIRE age: {summary['fire_age']}")
    print(f"Monte Carlo success rate: {mc_summary['success_rate']:.1f}%")
    print(f"Median FIRE age (Monte Carlo): {mc_summary['median_fire_age']}")

    return export_data


if __name__ == "__main__":
    run_and_export(DEFAULT_INPUTS, num_simulations=DEFAULT_NUM_SIMULATIONS)
