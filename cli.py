import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

import numpy as np

from scenario import PARAMETER_SCHEMA_NAMES, ScenarioError, apply_scenario, describe_parameters, load_scenario
from simulation import ERAS, SimulationResult, find_crossovers, run_simulation, scenario_metrics, value_at

logger = logging.getLogger(__name__)

FORMATS = ("summary", "json", "forecast", "csv")

CSV_COLUMNS = {
    "Year": "year",
    "Population": "population",
    "Demand_TWh": "electricity_twh",
    "Temperature_Anomaly": "temperature_c",
    "Emissions_Gt": "emissions_gt",
    "Dependency": "dependency_ratio",
    "Robots_Per_1000": "robots_per_1000",
    "LCOE_Solar": "solar_lcoe",
    "LCOE_Gas": "gas_lcoe",
}


def _fmt(value: Optional[float], pattern: str = "{:.2f}", missing: str = "N/A") -> str:
    return missing if value is None else pattern.format(value)


def _pct(value: Optional[float], digits: int = 1) -> str:
    return "N/A" if value is None else f"{value * 100:.{digits}f}%"


# ------------------------------------------------------------------ #
# Output formatters
# ------------------------------------------------------------------ #
def format_summary(metrics: Dict[str, Any]) -> str:
    last = metrics["end_year"]
    lines = [
        f"=== Energy Simulation Results ({metrics['scenario']}) ===",
        "",
        "Climate:",
        f"  Warming by {last}:     {metrics['warming_final']:.2f}°C",
        f"  Peak emissions year: {metrics['peak_emissions_year']} ({metrics['peak_emissions_gt']:.1f} Gt)",
        f"  Grid below 100 kg/MWh: {metrics['grid_below_100_year'] or 'Not reached'}",
        "",
        "Energy Transitions:",
        f"  Solar beats gas:     {metrics['solar_below_gas_year'] or 'Already'}",
        f"  Solar+battery beats gas: {metrics['solar_battery_below_gas_year'] or 'Already'}",
        f"  Coal uneconomic:     {metrics['coal_uneconomic_year'] or 'Already'}",
        "",
        "Demographics:",
        f"  Population peak:     {metrics['pop_peak_year']}",
        f"  Population peak size: {metrics['pop_peak'] / 1e9:.2f}B",
        f"  College share 2050:  {_pct(metrics['college_share_2050'])}",
        f"  Dependency 2075:     {_pct(metrics['dependency_2075'], 0)}",
        "",
        "Economy:",
        f"  K/Y ratio 2025:      {_fmt(metrics['capital_output_ratio_2025'])}",
        f"  Interest rate 2025:  {_pct(metrics['interest_rate_2025'])}",
        f"  Robots/1000 (2050):  {_fmt(metrics['robots_per_1000_2050'], '{:.1f}')}",
        f"  Peak energy burden:  {_pct(metrics['peak_burden'])} of GDP ({metrics['peak_burden_year']})",
        "",
        "Resources:",
        f"  Copper peak year:    {metrics['copper_peak_year']}",
        f"  Lithium reserves consumed: {_pct(metrics['lithium_reserve_ratio_final'], 0)}",
        f"  Farmland 2050:       {_fmt(metrics['farmland_2050'], '{:.0f}')} Mha",
        "",
    ]
    return "\n".join(lines)


def _json_default(value: Any) -> Any:
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, np.ndarray):
        return value.tolist()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def format_json(result: SimulationResult, metrics: Dict[str, Any]) -> str:
    payload = {
        "scenario": result.params.name,
        "parameters": result.params.tier1(),
        "metrics": metrics,
        "crossovers": [c.__dict__ for c in find_crossovers(result.frame)],
        "years": result.years,
        "series": result.frame.to_dict(orient="list"),
        "capacity": result.capacity.to_frame().to_dict(orient="list"),
        "demographics": result.demographics.global_frame.to_dict(orient="list"),
        "demand": result.demand.global_frame.to_dict(orient="list"),
        "resources": result.resources.frame.to_dict(orient="list"),
    }
    return json.dumps(payload, indent=2, default=_json_default)


def format_forecast(result: SimulationResult, metrics: Dict[str, Any]) -> str:
    frame = result.frame
    params = result.params
    last = int(frame["Year"].iloc[-1])
    per_capita = frame["Demand_TWh"] * 1e9 / frame["Population"] / 365.0

    lines = [
        "# Century Forecast",
        "",
        f"**Scenario:** {params.name}",
        f"**Parameters:** Carbon price ${params.carbon_price:g}/ton, "
        f"Climate sensitivity {params.climate.climate_sensitivity:g}°C",
        "",
        "---",
        "",
        "## Global Headline Metrics",
        "",
        "| Era | Electricity (kWh/person·day) | GMST (°C) | Old-Age Dependency | Robots/1000 Workers |",
        "|-----|------------------------------|-----------|--------------------|---------------------|",
    ]
    for start, end in ERAS:
        end = min(end, last)
        mask = (frame["Year"] >= start) & (frame["Year"] <= end)
        if not mask.any():
            continue
        energy = float(per_capita[mask].mean())
        dependency = float(frame.loc[mask, "Dependency"].mean())
        temp = value_at(frame, "Temperature_Anomaly", end)
        robots = value_at(frame, "Robots_Per_1000", end)
        lines.append(f"| {start}-{end} | {energy:.1f} | {_fmt(temp)} | {dependency * 100:.0f}% | {_fmt(robots, '{:.0f}')} |")

    lines += [
        "",
        "---",
        "",
        "## Key Transition Points",
        "",
        f"- **Solar beats gas LCOE:** {metrics['solar_below_gas_year'] or 'Already happened'}",
        f"- **Grid below 100 kg CO₂/MWh:** {metrics['grid_below_100_year'] or 'Not reached'}",
        f"- **Peak global emissions:** {metrics['peak_emissions_year']}",
        f"- **Peak copper demand:** {metrics['copper_peak_year']}",
        f"- **Population peak:** {metrics['pop_peak_year']}",
        f"- **China college workers peak:** {metrics.get('china_college_peak_year', 'N/A')}",
        "",
        "---",
        "",
        "## End-of-Century Summary",
        "",
        f"- **Population:** {frame['Population'].iloc[-1] / 1e9:.2f}B",
        f"- **Warming:** {frame['Temperature_Anomaly'].iloc[-1]:.2f}°C above preindustrial",
        f"- **Electricity demand:** {frame['Demand_TWh'].iloc[-1]:.0f} TWh",
        f"- **Per-capita electricity:** {per_capita.iloc[-1]:.1f} kWh/person/day",
        f"- **Robots per 1000 workers:** {frame['Robots_Per_1000'].iloc[-1]:.0f}",
        f"- **Dependency ratio:** {frame['Dependency'].iloc[-1] * 100:.0f}%",
        "",
    ]
    return "\n".join(lines)


def format_csv(result: SimulationResult) -> str:
    table = result.frame[list(CSV_COLUMNS)].rename(columns=CSV_COLUMNS)
    return table.to_csv(index=False, float_format="%.4f")


# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Energy–economy–climate century simulation")
    parser.add_argument("--scenario", type=str, help="Scenario JSON file")
    parser.add_argument("--format", choices=FORMATS, default="summary", help="Output format")
    parser.add_argument("--output", type=str, help="Write output to this path instead of stdout")
    parser.add_argument("--describe", action="store_true", help="Print the parameter schema as JSON and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    tier1 = parser.add_argument_group("Tier-1 parameters (override the scenario)")
    for name in PARAMETER_SCHEMA_NAMES:
        tier1.add_argument(f"--{name.replace('_', '-')}", dest=name, type=float, default=None)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.describe:
        output = json.dumps(describe_parameters(), indent=2)
    else:
        cli_params = {name: getattr(args, name) for name in PARAMETER_SCHEMA_NAMES
                      if getattr(args, name) is not None}
        try:
            scenario = load_scenario(args.scenario) if args.scenario else None
            params = apply_scenario(scenario, cli_params)
        except ScenarioError as exc:
            logger.error(f"Error loading scenario: {exc}")
            return 1

        result = run_simulation(params)
        metrics = scenario_metrics(result)
        if args.format == "json":
            output = format_json(result, metrics)
        elif args.format == "forecast":
            output = format_forecast(result, metrics)
        elif args.format == "csv":
            output = format_csv(result)
        else:
            output = format_summary(metrics)

    if args.output:
        with open(args.output, "w", encoding="utf-8") as handle:
            handle.write(output)
        print(f"Saved {args.format if not args.describe else 'schema'}: {args.output}")
    else:
        sys.stdout.write(output)
        if not output.endswith("\n"):
            sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
