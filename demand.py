import math
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

import pandas as pd

from demographics import DemographicsData

SECTORS = ("transport", "buildings", "industry")
FUELS = ("oil", "gas", "coal", "biomass", "hydrogen", "biofuel")
FUEL_TRANSITION_YEARS = 75.0


@dataclass(frozen=True)
class RegionEconomy:
    gdp2025: float  # $T
    tfp_growth: float
    tfp_decay: float  # Catch-up convergence
    energy_intensity: float  # MWh of final energy per $1000 GDP
    intensity_decline: float  # Annual efficiency improvement


def _default_economies() -> Dict[str, RegionEconomy]:
    return {
        "oecd": RegionEconomy(58.0, 0.015, 0.0, 0.70, 0.003),
        "china": RegionEconomy(18.0, 0.035, 0.015, 2.04, 0.008),
        "em": RegionEconomy(35.0, 0.025, 0.008, 0.93, 0.005),
        "row": RegionEconomy(8.0, 0.030, 0.010, 1.53, 0.004),
    }


@dataclass(frozen=True)
class SectorParams:
    share2025: float  # Share of non-electric final energy
    electrification2025: float
    electrification_target: float
    electrification_speed: float


def _default_sectors() -> Dict[str, SectorParams]:
    return {
        "transport": SectorParams(0.45, 0.02, 0.85, 0.06),
        "buildings": SectorParams(0.30, 0.35, 0.95, 0.05),
        "industry": SectorParams(0.25, 0.30, 0.70, 0.04),
    }


def _default_fuels2025() -> Dict[str, Dict[str, float]]:
    return {
        "transport": {"oil": 0.92, "gas": 0.05, "biofuel": 0.03},
        "buildings": {"gas": 0.55, "oil": 0.15, "coal": 0.10, "biomass": 0.20},
        "industry": {"gas": 0.35, "coal": 0.35, "oil": 0.20, "biomass": 0.10},
    }


def _default_fuels2100() -> Dict[str, Dict[str, float]]:
    return {
        "transport": {"oil": 0.60, "hydrogen": 0.30, "biofuel": 0.10},
        "buildings": {"gas": 0.30, "hydrogen": 0.20, "biomass": 0.50},
        "industry": {"gas": 0.40, "coal": 0.10, "hydrogen": 0.40, "biomass": 0.10},
    }


def _default_fuel_intensity() -> Dict[str, float]:
    # kg CO2 / MWh; biomass, hydrogen and biofuel treated as carbon-neutral
    return {"oil": 267.0, "gas": 202.0, "coal": 341.0, "biomass": 0.0, "hydrogen": 0.0, "biofuel": 0.0}


def _default_fuel_prices() -> Dict[str, float]:
    # $/MWh thermal
    return {"oil": 50.0, "gas": 25.0, "coal": 15.0, "biomass": 40.0, "hydrogen": 80.0, "biofuel": 60.0}


@dataclass(frozen=True)
class DemandParams:
    economies: Dict[str, RegionEconomy] = field(default_factory=_default_economies)
    electrification_2025: float = 0.25
    electrification_target: float = 0.65
    electrification_speed: float = 0.08
    demographic_factor: float = 0.015  # Growth impact of dependency change
    labor_elasticity: float = 0.65
    efficiency_multiplier: float = 1.0
    persistent_damage_fraction: float = 0.25  # Share of climate damage that compounds
    sectors: Dict[str, SectorParams] = field(default_factory=_default_sectors)
    fuels2025: Dict[str, Dict[str, float]] = field(default_factory=_default_fuels2025)
    fuels2100: Dict[str, Dict[str, float]] = field(default_factory=_default_fuels2100)
    fuel_intensity: Dict[str, float] = field(default_factory=_default_fuel_intensity)
    fuel_prices: Dict[str, float] = field(default_factory=_default_fuel_prices)
    min_sector_nonelectric: float = 0.05

    @classmethod
    def from_dict(cls, data: Dict) -> "DemandParams":
        data = dict(data)
        data["economies"] = {k: RegionEconomy(**v) for k, v in data["economies"].items()}
        data["sectors"] = {k: SectorParams(**v) for k, v in data["sectors"].items()}
        return cls(**data)


@dataclass(frozen=True)
class BurdenParams:
    threshold: float = 0.08  # Energy cost share of GDP above which growth suffers
    max_burden: float = 0.14  # Historical peak (1970s)
    elasticity: float = 1.5
    max_damage: float = 0.30
    persistent_fraction: float = 0.25


@dataclass
class DemandData:
    years: List[int]
    regions: Dict[str, pd.DataFrame]
    global_frame: pd.DataFrame

    def fuel_demand(self, year_index: int) -> Dict[str, float]:
        row = self.global_frame.iloc[year_index]
        return {fuel: float(row[f"Fuel_{fuel.capitalize()}"]) for fuel in FUELS}

    def regional_gdp(self, year_index: int) -> Dict[str, float]:
        return {region: float(frame["GDP"].iloc[year_index]) for region, frame in self.regions.items()}


# ------------------------------------------------------------------ #
# Electrification and fuel mix
# ------------------------------------------------------------------ #
def electrification_rate(t: int, params: DemandParams) -> float:
    gap = params.electrification_target - params.electrification_2025
    return params.electrification_target - gap * math.exp(-params.electrification_speed * t)


def sector_electrification(sector: str, t: int, params: DemandParams) -> float:
    s = params.sectors[sector]
    return s.electrification_target - (s.electrification_target - s.electrification2025) * math.exp(
        -s.electrification_speed * t)


def fuel_mix(sector: str, t: int, params: DemandParams) -> Dict[str, float]:
    """Linear interpolation between the 2025 and 2100 fuel shares."""
    start = params.fuels2025[sector]
    end = params.fuels2100[sector]
    progress = min(1.0, t / FUEL_TRANSITION_YEARS)
    return {
        fuel: start.get(fuel, 0.0) + (end.get(fuel, 0.0) - start.get(fuel, 0.0)) * progress
        for fuel in FUELS
    }


# ------------------------------------------------------------------ #
# Energy cost and burden
# ------------------------------------------------------------------ #
def energy_cost(generation: Mapping[str, float], lcoe: Mapping[str, float],
                fuel_demand: Mapping[str, float], carbon_price: float,
                params: DemandParams) -> Dict[str, float]:
    """Annual spend on electricity and fuels, $T."""
    electricity = sum(twh * lcoe[name] for name, twh in generation.items())
    fuels = 0.0
    for fuel, twh in fuel_demand.items():
        carbon_cost = params.fuel_intensity.get(fuel, 0.0) / 1000.0 * carbon_price
        fuels += twh * (params.fuel_prices.get(fuel, 0.0) + carbon_cost)
    return {
        "electricity": electricity / 1e6,
        "non_electric": fuels / 1e6,
        "total": (electricity + fuels) / 1e6,
    }


def energy_burden_damage(cost: float, gdp: float, params: BurdenParams) -> Dict[str, float]:
    """Burden is cost / GDP; above the threshold, growth loses elasticity x excess."""
    burden = cost / gdp if gdp > 0 else 0.0
    if burden <= params.threshold:
        return {"burden": burden, "damage": 0.0}
    damage = min(params.max_damage, (burden - params.threshold) * params.elasticity)
    return {"burden": burden, "damage": damage}


# ------------------------------------------------------------------ #
# Regional GDP and final energy
# ------------------------------------------------------------------ #
def run_demand_model(
    demographics: DemographicsData,
    params: Optional[DemandParams] = None,
    burden: Optional[BurdenParams] = None,
    damage_fractions: Optional[Mapping[str, Sequence[float]]] = None,
    burden_fractions: Optional[Sequence[float]] = None,
) -> DemandData:
    """Project regional GDP and energy demand.

    ``damage_fractions`` (per region) and ``burden_fractions`` (global) are
    read with a one-year lag; a persistent share of each compounds into GDP.
    """
    params = params or DemandParams()
    burden = burden or BurdenParams()
    years = demographics.years
    baseline_dependency = float(demographics.global_frame["Dependency"].iloc[0])

    gdp = {region: econ.gdp2025 for region, econ in params.economies.items()}
    intensity = {region: econ.energy_intensity for region, econ in params.economies.items()}
    regional_rows: Dict[str, List[Dict[str, float]]] = {region: [] for region in params.economies}
    global_rows: List[Dict[str, float]] = []

    demo = {
        region: {
            "working": demographics.regions[region]["Working"].to_numpy(),
            "effective": demographics.regions[region]["Effective_Workers"].to_numpy(),
            "dependency": demographics.regions[region]["Dependency"].to_numpy(),
        }
        for region in params.economies
    }
    population = demographics.global_frame["Population"].to_numpy()

    for t, year in enumerate(years):
        elec_rate = electrification_rate(t, params)
        sector_rates = {sector: sector_electrification(sector, t, params) for sector in SECTORS}
        mixes = {sector: fuel_mix(sector, t, params) for sector in SECTORS}

        totals = {"GDP": 0.0, "Electricity_Demand": 0.0, "Total_Final_Energy": 0.0,
                  "NonElectric_Energy": 0.0, "Working": 0.0}
        global_sectors = {sector: {"Total": 0.0, "Electric": 0.0, "NonElectric": 0.0} for sector in SECTORS}
        global_fuels = {fuel: 0.0 for fuel in FUELS}

        for region, econ in params.economies.items():
            d = demo[region]
            working = d["working"][t]
            effective = d["effective"][t]
            effective_prev = d["effective"][t - 1] if t > 0 else effective
            labor_growth = (effective - effective_prev) / effective_prev if t > 0 and effective_prev > 0 else 0.0
            demographic_adj = params.demographic_factor * (baseline_dependency - d["dependency"][t])
            tfp = econ.tfp_growth * (1.0 - econ.tfp_decay) ** t
            growth = tfp + params.labor_elasticity * labor_growth + demographic_adj

            if t > 0:
                lagged_damage = damage_fractions[region][t - 1] if damage_fractions is not None else 0.0
                lagged_burden = burden_fractions[t - 1] if burden_fractions is not None else 0.0
                gdp[region] *= (
                    (1.0 + growth)
                    * (1.0 - lagged_damage * params.persistent_damage_fraction)
                    * (1.0 - lagged_burden * burden.persistent_fraction)
                )
                intensity[region] *= 1.0 - econ.intensity_decline * params.efficiency_multiplier

            total_energy = gdp[region] * intensity[region] * 1000.0  # TWh
            elec = total_energy * elec_rate
            nonelec = total_energy - elec

            row = {
                "Year": year,
                "GDP": gdp[region],
                "Growth_Rate": growth,
                "Energy_Intensity": intensity[region],
                "Electricity_Demand": elec,
                "Total_Final_Energy": total_energy,
                "NonElectric_Energy": nonelec,
                "GDP_Per_Working": gdp[region] * 1e12 / working if working > 0 else 0.0,
                "Electricity_Per_Working": elec * 1e9 / working if working > 0 else 0.0,
            }

            fuels = {fuel: 0.0 for fuel in FUELS}
            for sector in SECTORS:
                rate = sector_rates[sector]
                sector_nonelec = nonelec * params.sectors[sector].share2025
                sector_total = sector_nonelec / max(params.min_sector_nonelectric, 1.0 - rate)
                sector_elec = sector_total * rate
                label = sector.capitalize()
                row[f"{label}_Total"] = sector_total
                row[f"{label}_Electric"] = sector_elec
                row[f"{label}_NonElectric"] = sector_nonelec
                row[f"{label}_Electrification"] = rate
                global_sectors[sector]["Total"] += sector_total
                global_sectors[sector]["Electric"] += sector_elec
                global_sectors[sector]["NonElectric"] += sector_nonelec
                for fuel, share in mixes[sector].items():
                    fuels[fuel] += sector_nonelec * share

            for fuel, twh in fuels.items():
                row[f"Fuel_{fuel.capitalize()}"] = twh
                global_fuels[fuel] += twh
            regional_rows[region].append(row)

            totals["GDP"] += gdp[region]
            totals["Electricity_Demand"] += elec
            totals["Total_Final_Energy"] += total_energy
            totals["NonElectric_Energy"] += nonelec
            totals["Working"] += working

        pop = population[t]
        global_row = {
            "Year": year,
            "GDP": totals["GDP"],
            "Electricity_Demand": totals["Electricity_Demand"],
            "Electrification_Rate": elec_rate,
            "Total_Final_Energy": totals["Total_Final_Energy"],
            "NonElectric_Energy": totals["NonElectric_Energy"],
            "GDP_Per_Working": totals["GDP"] * 1e12 / totals["Working"] if totals["Working"] > 0 else 0.0,
            "Electricity_Per_Working": (
                totals["Electricity_Demand"] * 1e9 / totals["Working"] if totals["Working"] > 0 else 0.0),
            # kWh per person per day
            "Final_Energy_Per_Capita_Day": totals["Total_Final_Energy"] * 1e9 / pop / 365.0 if pop > 0 else 0.0,
        }
        for sector, values in global_sectors.items():
            for key, value in values.items():
                global_row[f"{sector.capitalize()}_{key}"] = value
        for fuel, twh in global_fuels.items():
            global_row[f"Fuel_{fuel.capitalize()}"] = twh
        global_rows.append(global_row)

    return DemandData(
        years=list(years),
        regions={region: pd.DataFrame(rows) for region, rows in regional_rows.items()},
        global_frame=pd.DataFrame(global_rows),
    )
