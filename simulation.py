"""
Energy–economy–climate simulation, 2025 onward, one step per year.

Year loop order (fixed):
    capacity snapshot -> LCOE -> expanded demand -> dispatch -> emissions
    -> climate -> damages -> energy burden -> investment -> next-year capacity

Damages and energy burden feed back into GDP with a one-year lag. Because
GDP has to be known before the loop starts, a low-fidelity estimate pass runs
the same climate and burden functions on approximate emissions and costs, and
the demand model is re-run with those lagged feedbacks.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from capacity import CapacityState
from capital import CapitalChain, savings_rates
from climate import (REGIONS, ClimateChain, electricity_emissions, fuel_emissions, global_damage,
                     regional_damages)
from costs import CostModel
from demand import DemandData, energy_burden_damage, energy_cost, run_demand_model
from demographics import DemographicsData, run_demographics
from dispatch import DISPATCH_SOURCES, dispatch
from expansion import DemandExpansion
from resources import ResourceData, run_resource_model
from scenario import EffectiveParams

logger = logging.getLogger(__name__)

# Estimate-pass approximations
ESTIMATE_GRID_INTENSITY = 340.0  # kg/MWh in 2025
ESTIMATE_GRID_DECLINE = 0.03
ESTIMATE_LCOE = 80.0  # $/MWh grid average in 2025
ESTIMATE_LCOE_DECLINE = 0.015
ESTIMATE_CARBON_SHARE = 0.4  # t CO2 per MWh of average grid output
ESTIMATE_CARBON_DECLINE = 0.02
ESTIMATE_FUEL_PRICE = 40.0  # $/MWh
ESTIMATE_FUEL_CARBON = 0.25  # t CO2 per MWh of average fuel

ERAS = [(2025, 2029), (2030, 2039), (2040, 2049), (2050, 2059), (2060, 2069), (2070, 2079), (2080, 2100)]
GRID_THRESHOLDS = (200, 100, 50)

REGION_LABELS = {"oecd": "OECD", "china": "China", "em": "EM", "row": "ROW"}
SOURCE_LABELS = {
    "solar": "Solar", "wind": "Wind", "gas": "Gas", "coal": "Coal", "nuclear": "Nuclear",
    "hydro": "Hydro", "battery": "Battery", "solar_plus_battery": "Solar_Plus_Battery",
}

UNITS: Dict[str, str] = {
    "Year": "year",
    "Population": "persons",
    "Working_Population": "persons",
    "Dependency": "old / working",
    "Base_Demand_TWh": "TWh",
    "Robot_Load_TWh": "TWh",
    "Expansion_Multiplier": "multiplier",
    "Uncapped_Demand_TWh": "TWh",
    "Demand_Ceiling_TWh": "TWh",
    "Demand_TWh": "TWh",
    "Electrification_Rate": "fraction",
    "Gas_EROEI": "ratio",
    "Coal_EROEI": "ratio",
    "Gen_Total": "TWh",
    "Shortfall_TWh": "TWh",
    "Grid_Intensity": "kg CO2/MWh",
    "Electricity_Emissions_Gt": "Gt CO2/yr",
    "NonElectric_Emissions_Gt": "Gt CO2/yr",
    "Land_Use_Emissions_Gt": "Gt CO2/yr",
    "Emissions_Gt": "Gt CO2/yr",
    "Cumulative_Emissions_Gt": "Gt CO2",
    "CO2_ppm": "ppm",
    "Equilibrium_Temperature": "°C",
    "Temperature_Anomaly": "°C",
    "Global_Damage": "fraction of GDP",
    "Gross_GDP": "$T",
    "Net_GDP": "$T",
    "Energy_Cost": "$T",
    "Energy_Burden": "fraction of GDP",
    "Energy_Burden_Damage": "fraction of GDP",
    "Capital_Stock": "$T",
    "Investment": "$T",
    "Savings_Rate": "fraction",
    "Stability_Factor": "multiplier",
    "Interest_Rate": "fraction",
    "Robots_Per_1000": "robots per 1000 workers",
    "Capital_Per_Worker": "$K per effective worker",
}
for _name, _label in SOURCE_LABELS.items():
    UNITS[f"LCOE_{_label}"] = "$/kWh" if _name == "battery" else "$/MWh"
    if _name in DISPATCH_SOURCES:
        UNITS[f"Gen_{_label}"] = "TWh"
    if _name != "solar_plus_battery":
        UNITS[f"Capacity_{_label}"] = "GWh" if _name == "battery" else "GW"
for _label in REGION_LABELS.values():
    UNITS[f"Damage_{_label}"] = "fraction of GDP"
    UNITS[f"Savings_Rate_{_label}"] = "fraction"


@dataclass
class SimulationResult:
    params: EffectiveParams
    frame: pd.DataFrame  # One row per year
    capacity: CapacityState
    demographics: DemographicsData
    demand: DemandData
    resources: ResourceData
    estimate: pd.DataFrame  # Feedback estimate pass

    @property
    def years(self) -> List[int]:
        return self.params.years


@dataclass
class Crossover:
    event: str
    year: int
    description: str


class EnergySimulation:
    """One deterministic run for a resolved parameter set."""

    def __init__(self, params: Optional[EffectiveParams] = None):
        self.params = params or EffectiveParams()

    # ------------------------------------------------------------------ #
    # Feedback estimate
    # ------------------------------------------------------------------ #
    def _estimate_feedback(self, demand: DemandData) -> pd.DataFrame:
        """Approximate damages and burden so pass-2 GDP can see lagged feedback."""
        p = self.params
        chain = ClimateChain(p.climate)
        frame = demand.global_frame
        elec = frame["Electricity_Demand"].to_numpy()
        elec_rate = frame["Electrification_Rate"].to_numpy()
        total_final = frame["Total_Final_Energy"].to_numpy()
        gdp = frame["GDP"].to_numpy()

        rows = []
        for i, year in enumerate(demand.years):
            grid = ESTIMATE_GRID_INTENSITY * math.exp(-ESTIMATE_GRID_DECLINE * i)
            nonelec = p.climate.nonelec_emissions_2025 * (1.0 - elec_rate[i]) / (1.0 - p.demand.electrification_2025)
            climate = chain.step(elec[i] * grid / 1e6 + nonelec)
            damages = chain.damages()

            avg_lcoe = (ESTIMATE_LCOE * math.exp(-ESTIMATE_LCOE_DECLINE * i)
                        + p.carbon_price * ESTIMATE_CARBON_SHARE * math.exp(-ESTIMATE_CARBON_DECLINE * i))
            fuel_price = ESTIMATE_FUEL_PRICE + p.carbon_price * ESTIMATE_FUEL_CARBON
            cost = (elec[i] * avg_lcoe + (total_final[i] - elec[i]) * fuel_price) / 1e6
            burden = energy_burden_damage(cost, gdp[i], p.burden)

            row = {"Year": year, "Temperature_Anomaly": climate["Temperature_Anomaly"],
                   "Emissions_Gt": climate["Emissions_Gt"], "Energy_Cost": cost,
                   "Energy_Burden": burden["burden"], "Energy_Burden_Damage": burden["damage"]}
            for region in REGIONS:
                row[f"Damage_{REGION_LABELS[region]}"] = damages[region]
            rows.append(row)
        return pd.DataFrame(rows)

    # ------------------------------------------------------------------ #
    # Main loop
    # ------------------------------------------------------------------ #
    def run(self) -> SimulationResult:
        p = self.params
        years = p.years

        demographics = run_demographics(p.demographics, p.start_year, p.end_year)
        demand_initial = run_demand_model(demographics, p.demand, p.burden)
        estimate = self._estimate_feedback(demand_initial)
        damage_fractions = {region: estimate[f"Damage_{REGION_LABELS[region]}"].to_numpy() for region in REGIONS}
        demand = run_demand_model(
            demographics, p.demand, p.burden,
            damage_fractions=damage_fractions,
            burden_fractions=estimate["Energy_Burden_Damage"].to_numpy(),
        )

        sources = p.energy_sources
        carbon_intensity = {name: source.carbon_intensity for name, source in sources.items()}
        capacity = CapacityState(sources, p.capacity, p.dispatch)
        costs = CostModel(sources, p.carbon_price)
        climate = ClimateChain(p.climate)
        capital = CapitalChain(p.capital)
        expansion = DemandExpansion(p.expansion)

        demand_global = demand.global_frame
        demo_global = demographics.global_frame
        prev_generation: Optional[Dict[str, float]] = None
        results = []

        for i, year in enumerate(years):
            last_year = i == len(years) - 1
            row: Dict[str, Any] = {
                "Year": year,
                "Population": float(demo_global["Population"].iloc[i]),
                "Working_Population": float(demo_global["Working"].iloc[i]),
                "Dependency": float(demo_global["Dependency"].iloc[i]),
                "Electrification_Rate": float(demand_global["Electrification_Rate"].iloc[i]),
            }

            # 1. Capacities
            snapshot = capacity.snapshot(i)
            for name in capacity.history:
                row[f"Capacity_{SOURCE_LABELS[name]}"] = capacity.installed(name, i)

            # 2. LCOEs (fossil extraction lags dispatch by one year)
            cumulative = {name: capacity.cumulative_deployment(name, i) for name in capacity.history}
            lcoe = costs.step(cumulative, prev_generation)
            for name, value in lcoe.items():
                row[f"LCOE_{SOURCE_LABELS[name]}"] = value
            row["Gas_EROEI"] = costs.eroei["gas"]
            row["Coal_EROEI"] = costs.eroei["coal"]

            # 3. Demand with automation load and cost-driven expansion
            cohorts = {
                region: {
                    "young": frame["Young"].iloc[i],
                    "working": frame["Working"].iloc[i],
                    "old": frame["Old"].iloc[i],
                    "population": frame["Population"].iloc[i],
                }
                for region, frame in demographics.regions.items()
            }
            regional_savings, global_savings = savings_rates(cohorts, p.capital)
            effective_workers = float(demo_global["Effective_Workers"].iloc[i])
            robots = capital.robots(effective_workers, i)
            row.update(expansion.step(
                base_demand=float(demand_global["Electricity_Demand"].iloc[i]),
                cheapest_lcoe=min(lcoe["solar"], lcoe["wind"]),
                robots_per_1000=robots,
                workers=row["Working_Population"],
                savings_rate=global_savings,
            ))
            demand_twh = row["Demand_TWh"]

            # 4. Dispatch
            result = dispatch(demand_twh, lcoe, snapshot, carbon_intensity, p.dispatch)
            for name, twh in result.generation.items():
                row[f"Gen_{SOURCE_LABELS[name]}"] = twh
            row["Gen_Total"] = result.total
            row["Shortfall_TWh"] = result.shortfall
            row["Grid_Intensity"] = result.grid_intensity

            # 5. Emissions, climate and damages
            fuel_demand = demand.fuel_demand(i)
            elec_emissions = electricity_emissions(result.generation, carbon_intensity)
            nonelec_emissions = fuel_emissions(fuel_demand, p.demand.fuel_intensity)
            row["Electricity_Emissions_Gt"] = elec_emissions
            row["NonElectric_Emissions_Gt"] = nonelec_emissions
            row["Land_Use_Emissions_Gt"] = 0.0
            row.update(climate.step(elec_emissions + nonelec_emissions))

            damages = climate.damages()
            gross = demand.regional_gdp(i)
            for region in REGIONS:
                row[f"Damage_{REGION_LABELS[region]}"] = damages[region]
            damage = global_damage(gross, damages)
            gross_gdp = sum(gross.values())
            net_gdp = gross_gdp * (1.0 - damage)
            row["Global_Damage"] = damage
            row["Gross_GDP"] = gross_gdp
            row["Net_GDP"] = net_gdp

            # 6. Energy cost and burden
            cost = energy_cost(result.generation, lcoe, fuel_demand, p.carbon_price, p.demand)
            burden = energy_burden_damage(cost["total"], gross_gdp, p.burden)
            row["Energy_Cost"] = cost["total"]
            row["Energy_Burden"] = burden["burden"]
            row["Energy_Burden_Damage"] = burden["damage"]

            # 7. Investment, capital and next year's capacity
            for region, rate in regional_savings.items():
                row[f"Savings_Rate_{REGION_LABELS[region]}"] = rate
            row.update(capital.step(net_gdp, gross_gdp, global_savings, damage,
                                    effective_workers, i, accumulate=not last_year))
            if not last_year:
                capacity.advance(demand_twh, row["Investment"])

            prev_generation = result.generation
            results.append(row)

        frame = pd.DataFrame(results)

        # Land-use flux is only known once the whole run exists; temperature is not re-solved
        resources = run_resource_model(
            years,
            demo_global["Population"].to_numpy(),
            demand_global["GDP"].to_numpy(),
            capacity,
            temperature=frame["Temperature_Anomaly"].to_numpy(),
            params=p.resources,
        )
        flux = resources.net_flux.to_numpy()
        frame["Land_Use_Emissions_Gt"] = flux
        frame["Emissions_Gt"] = frame["Electricity_Emissions_Gt"] + frame["NonElectric_Emissions_Gt"] + flux
        frame["Cumulative_Emissions_Gt"] = p.climate.cumulative_co2_2025 + np.cumsum(frame["Emissions_Gt"].to_numpy())

        logger.debug(
            f"Run '{p.name}' finished: {years[0]}-{years[-1]}, "
            f"T={frame['Temperature_Anomaly'].iloc[-1]:.2f}°C"
        )
        return SimulationResult(
            params=p,
            frame=frame,
            capacity=capacity,
            demographics=demographics,
            demand=demand,
            resources=resources,
            estimate=estimate,
        )


def run_simulation(params: Optional[EffectiveParams] = None) -> SimulationResult:
    return EnergySimulation(params).run()


# ------------------------------------------------------------------ #
# Derived metrics
# ------------------------------------------------------------------ #
def _first_crossing(years: List[int], condition: np.ndarray) -> Optional[int]:
    for i in range(1, len(years)):
        if condition[i] and not condition[i - 1]:
            return years[i]
    return None


def find_crossovers(frame: pd.DataFrame) -> List[Crossover]:
    """First years in which clean sources undercut fossil ones."""
    years = frame["Year"].tolist()
    gas = frame["LCOE_Gas"].to_numpy()
    coal = frame["LCOE_Coal"].to_numpy()
    solar = frame["LCOE_Solar"].to_numpy()
    wind = frame["LCOE_Wind"].to_numpy()
    firmed = frame["LCOE_Solar_Plus_Battery"].to_numpy()

    checks = [
        ("solar_below_gas", solar < gas, "Solar LCOE falls below gas"),
        ("solar_battery_below_gas", firmed < gas, "Firmed solar LCOE falls below gas"),
        ("coal_uneconomic", coal > np.minimum(solar, wind), "Coal costs more than the cheapest renewable"),
        ("wind_below_gas", wind < gas, "Wind LCOE falls below gas"),
    ]
    crossovers = []
    for event, condition, description in checks:
        year = _first_crossing(years, condition)
        if year is not None:
            crossovers.append(Crossover(event=event, year=year, description=description))
    return crossovers


def era_averages(frame: pd.DataFrame, column: str) -> Dict[str, float]:
    averages = {}
    for start, end in ERAS:
        mask = (frame["Year"] >= start) & (frame["Year"] <= end)
        if mask.any():
            averages[f"{start}-{end}"] = float(frame.loc[mask, column].mean())
    return averages


def value_at(frame: pd.DataFrame, column: str, year: int) -> Optional[float]:
    match = frame.loc[frame["Year"] == year, column]
    if match.empty:
        return None
    return float(match.iloc[0])


def _first_year_below(frame: pd.DataFrame, column: str, threshold: float) -> Optional[int]:
    below = frame.loc[frame[column] < threshold, "Year"]
    return int(below.iloc[0]) if not below.empty else None


def _peak(frame: pd.DataFrame, column: str):
    idx = int(frame[column].to_numpy().argmax())
    return int(frame["Year"].iloc[idx]), float(frame[column].iloc[idx])


def scenario_metrics(result: SimulationResult) -> Dict[str, Any]:
    """Flatten a run into milestone years and headline values."""
    frame = result.frame
    res = result.resources.frame
    demo = result.demographics.global_frame
    demand = result.demand.global_frame
    last = int(frame["Year"].iloc[-1])

    def at(column, year, source=frame):
        return value_at(source, column, year)

    metrics: Dict[str, Any] = {"scenario": result.params.name, "end_year": last}
    crossings = {c.event: c.year for c in find_crossovers(frame)}
    for event in ("solar_below_gas", "solar_battery_below_gas", "coal_uneconomic", "wind_below_gas"):
        metrics[f"{event}_year"] = crossings.get(event)
    for threshold in GRID_THRESHOLDS:
        metrics[f"grid_below_{threshold}_year"] = _first_year_below(frame, "Grid_Intensity", threshold)

    metrics["peak_emissions_year"], metrics["peak_emissions_gt"] = _peak(frame, "Emissions_Gt")
    metrics["warming_final"] = float(frame["Temperature_Anomaly"].iloc[-1])
    metrics["peak_burden_year"], metrics["peak_burden"] = _peak(frame, "Energy_Burden")
    metrics["pop_peak_year"], metrics["pop_peak"] = _peak(demo, "Population")
    if "china" in result.demographics.regions:
        metrics["china_college_peak_year"], _ = _peak(result.demographics.regions["china"], "Working_College")
    metrics["final_energy_per_capita_day_2025"] = at("Final_Energy_Per_Capita_Day", 2025, demand)

    for year in (2025, 2050, 2075, 2100):
        metrics[f"temperature_{year}"] = at("Temperature_Anomaly", year)
        metrics[f"damages_{year}"] = at("Global_Damage", year)
        metrics[f"grid_intensity_{year}"] = at("Grid_Intensity", year)
        metrics[f"emissions_{year}"] = at("Emissions_Gt", year)
        metrics[f"energy_burden_{year}"] = at("Energy_Burden", year)
        metrics[f"energy_cost_{year}"] = at("Energy_Cost", year)
        metrics[f"base_demand_{year}"] = at("Base_Demand_TWh", year)
        metrics[f"adjusted_demand_{year}"] = at("Demand_TWh", year)
        metrics[f"robot_load_{year}"] = at("Robot_Load_TWh", year)
        metrics[f"expansion_multiplier_{year}"] = at("Expansion_Multiplier", year)
        metrics[f"electrification_{year}"] = at("Electrification_Rate", year)
        metrics[f"population_{year}"] = at("Population", year)
        metrics[f"dependency_{year}"] = at("Dependency", year)
        metrics[f"college_share_{year}"] = at("College_Share", year, demo)
        metrics[f"capital_stock_{year}"] = at("Capital_Stock", year)
        metrics[f"interest_rate_{year}"] = at("Interest_Rate", year)
        metrics[f"savings_rate_{year}"] = at("Savings_Rate", year)
        metrics[f"robots_per_1000_{year}"] = at("Robots_Per_1000", year)
        metrics[f"capital_per_worker_{year}"] = at("Capital_Per_Worker", year)
        metrics[f"final_energy_per_capita_day_{year}"] = at("Final_Energy_Per_Capita_Day", year, demand)
        metrics[f"farmland_{year}"] = at("Farmland_Mha", year, res)
        metrics[f"forest_{year}"] = at("Forest_Mha", year, res)
        metrics[f"land_net_flux_{year}"] = at("Land_Net_Flux", year, res)
        stock = metrics[f"capital_stock_{year}"]
        gdp = at("Gross_GDP", year)
        metrics[f"capital_output_ratio_{year}"] = stock / gdp if stock is not None and gdp else None

    metrics["copper_peak_year"], metrics["copper_peak_mt"] = _peak(res, "Copper_Demand")
    metrics["lithium_peak_year"], metrics["lithium_peak_mt"] = _peak(res, "Lithium_Demand")
    metrics["copper_reserve_ratio_final"] = float(res["Copper_Reserve_Ratio"].iloc[-1])
    metrics["lithium_reserve_ratio_final"] = float(res["Lithium_Reserve_Ratio"].iloc[-1])
    metrics["cumulative_sequestration_final"] = float(res["Cumulative_Sequestration_Gt"].iloc[-1])

    for era, value in era_averages(frame, "Temperature_Anomaly").items():
        metrics[f"temperature_era_{era}"] = value
    return metrics


def run_scenario(params: Optional[EffectiveParams] = None) -> Dict[str, Any]:
    return scenario_metrics(run_simulation(params))
