import argparse
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import pandas as pd

from scenario import (PARAMETER_SCHEMA_NAMES, Scenario, ScenarioError, apply_scenario, load_scenario,
                      parameter_range)
from simulation import run_scenario

logger = logging.getLogger(__name__)

LOW_POINT = 0.1  # Fraction of the parameter range
HIGH_POINT = 0.9

METRICS = [
    "warming_final",
    "peak_emissions_gt",
    "peak_emissions_year",
    "emissions_2050",
    "grid_intensity_2050",
    "damages_2100",
    "peak_burden",
    "adjusted_demand_2050",
    "capital_stock_2100",
    "robots_per_1000_2050",
    "population_2100",
]


@dataclass
class Perturbation:
    parameter: str
    level: str  # "low" or "high"
    value: float


def _build_perturbations(parameters: List[str]) -> List[Perturbation]:
    perturbations = []
    for name in parameters:
        lo, hi = parameter_range(name)
        for level, point in (("low", LOW_POINT), ("high", HIGH_POINT)):
            value = lo + point * (hi - lo)
            perturbations.append(Perturbation(parameter=name, level=level, value=value))
    return perturbations


def _metrics(metrics: Dict[str, Optional[float]]) -> Dict[str, Optional[float]]:
    return {name: metrics.get(name) for name in METRICS}


def run_sweep(scenario: Optional[Scenario] = None, parameters: Optional[List[str]] = None) -> pd.DataFrame:
    """Baseline plus a low and a high run per parameter; every run resolves its own parameters."""
    scenario = scenario or Scenario()
    parameters = list(parameters or PARAMETER_SCHEMA_NAMES)
    unknown = [name for name in parameters if name not in PARAMETER_SCHEMA_NAMES]
    if unknown:
        raise ScenarioError(f"Unknown sweep parameter(s): {', '.join(unknown)}")

    results = []
    baseline = _metrics(run_scenario(apply_scenario(scenario)))
    baseline.update({"parameter": "baseline", "level": "baseline", "value": float("nan")})
    results.append(baseline)

    for perturbation in _build_perturbations(parameters):
        logger.info(f"Sweep {perturbation.parameter}={perturbation.value:.4g} ({perturbation.level})")
        params = apply_scenario(scenario, {perturbation.parameter: perturbation.value})
        metrics = _metrics(run_scenario(params))
        metrics.update({
            "parameter": perturbation.parameter,
            "level": perturbation.level,
            "value": perturbation.value,
        })
        results.append(metrics)

    return pd.DataFrame(results)


def _summarize(results: pd.DataFrame) -> pd.DataFrame:
    """Sensitivity |high - low| / |baseline| per parameter and metric, ranked by warming."""
    baseline = results[results["level"] == "baseline"].iloc[0]
    runs = results[results["level"] != "baseline"]
    low = runs[runs["level"] == "low"].set_index("parameter")[METRICS].astype(float)
    high = runs[runs["level"] == "high"].set_index("parameter")[METRICS].astype(float)

    base = baseline[METRICS].astype(float).abs()
    base = base.where(base > 0)
    sensitivity = (high - low).abs().div(base, axis=1)
    sensitivity.columns = [f"{metric}_sensitivity" for metric in METRICS]
    sensitivity = sensitivity.sort_values("warming_final_sensitivity", ascending=False)
    return sensitivity.reset_index()


def main() -> None:
    parser = argparse.ArgumentParser(description="Tier-1 parameter sensitivity sweep")
    parser.add_argument("--scenario", type=str, help="Scenario JSON file to perturb around")
    parser.add_argument("--param", action="append", help="Parameter name (can be repeated)")
    parser.add_argument("--csv", type=str, default="sweep_results.csv", help="Output CSV path")
    parser.add_argument("--quiet", action="store_true", help="Only log warnings")

    args = parser.parse_args()
    logging.basicConfig(level=logging.WARNING if args.quiet else logging.INFO,
                        format="%(levelname)s %(name)s: %(message)s")

    try:
        scenario = load_scenario(args.scenario) if args.scenario else None
        results = run_sweep(scenario, args.param)
    except ScenarioError as exc:
        logger.error(str(exc))
        raise SystemExit(1)

    summary = _summarize(results)

    pd.set_option("display.max_columns", None)
    print("\nSENSITIVITY SUMMARY (|high - low| / |baseline|)")
    print(summary.to_string(index=False))

    if args.csv:
        results.to_csv(args.csv, index=False)
        print(f"\nSaved raw results: {args.csv}")


if __name__ == "__main__":
    main()
