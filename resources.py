import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import pandas as pd

from capacity import CapacityState

MINERAL_SOURCES = ("solar", "wind", "battery", "nuclear")

# Year-0 additions are inferred from a prior-year installed base
PRIOR_YEAR_FRACTION: Dict[str, float] = {"solar": 0.8, "wind": 0.85, "battery": 0.7, "nuclear": 0.98}


@dataclass(frozen=True)
class MineralParams:
    learning_rate: float  # Annual intensity decline
    recycling_base: float
    recycling_max: float
    recycling_halfway: float  # Mt in use at which recycling is halfway to max
    per_mw_solar: float = 0.0  # kg per MW
    per_mw_wind: float = 0.0
    per_mw_nuclear: float = 0.0
    per_gwh_battery: float = 0.0  # kg per GWh
    reserves: Optional[float] = None  # Mt


def _default_minerals() -> Dict[str, MineralParams]:
    return {
        "copper": MineralParams(0.02, 0.15, 0.50, 500.0, per_mw_solar=2800.0, per_mw_wind=3500.0,
                                per_gwh_battery=800.0, reserves=880.0),
        "lithium": MineralParams(0.03, 0.05, 0.30, 20.0, per_gwh_battery=600.0, reserves=22.0),
        "rare_earths": MineralParams(0.01, 0.01, 0.20, 10.0, per_mw_wind=200.0, reserves=130.0),
        "steel": MineralParams(0.01, 0.35, 0.70, 5000.0, per_mw_solar=35000.0, per_mw_wind=120000.0,
                               per_mw_nuclear=60000.0),
    }


@dataclass(frozen=True)
class FoodParams:
    calories_2025: float = 2800.0  # kcal/person/day
    calories_growth: float = 0.002
    protein_share_2025: float = 0.11
    protein_share_max: float = 0.16
    protein_gdp_halfway: float = 15000.0  # $ GDP per capita
    glp1_halfway_year: float = 2040.0
    glp1_max_penetration: float = 0.15
    glp1_calorie_reduction: float = 0.20
    glp1_steepness: float = 0.2
    grain_per_protein: float = 6.0  # kg feed grain per kg protein
    calories_per_kg_grain: float = 3400.0
    calories_per_kg_protein: float = 4000.0


@dataclass(frozen=True)
class LandParams:
    farmland_2025: float = 4800.0  # Mha
    yield_growth_rate: float = 0.01
    yield_2025: float = 4.0  # t grain / ha
    nonfood_multiplier: float = 4.9
    urban_per_capita: float = 0.04  # ha
    urban_wealth_elasticity: float = 0.3
    forest_2025: float = 4000.0  # Mha
    forest_loss_rate: float = 0.002
    reforestation_rate: float = 0.5  # Share of released farmland regrowing forest
    total_land: float = 13000.0  # Mha ice-free
    desert_2025: float = 4150.0
    desertification_rate: float = 0.001
    desertification_climate_coeff: float = 0.002  # Per °C above 1.5
    forest_carbon_density: float = 150.0  # t C / ha
    sequestration_rate: float = 7.5  # t CO2 / ha / yr
    immediate_release: float = 0.5  # Share of deforestation carbon released at once
    decay_rate: float = 0.05  # Deferred pool decay per year
    baseline_temperature: float = 1.2


@dataclass(frozen=True)
class ResourceParams:
    minerals: Dict[str, MineralParams] = field(default_factory=_default_minerals)
    food: FoodParams = field(default_factory=FoodParams)
    land: LandParams = field(default_factory=LandParams)
    mineral_learning_multiplier: float = 1.0

    @classmethod
    def from_dict(cls, data: Dict) -> "ResourceParams":
        data = dict(data)
        data["minerals"] = {k: MineralParams(**v) for k, v in data["minerals"].items()}
        data["food"] = FoodParams(**data["food"])
        data["land"] = LandParams(**data["land"])
        return cls(**data)


@dataclass
class ResourceData:
    years: List[int]
    frame: pd.DataFrame

    @property
    def net_flux(self) -> pd.Series:
        return self.frame["Land_Net_Flux"]


# ------------------------------------------------------------------ #
# Minerals
# ------------------------------------------------------------------ #
def recycling_rate(mineral: MineralParams, stock_in_use: float) -> float:
    if not mineral.recycling_max:
        return 0.0
    return mineral.recycling_base + (mineral.recycling_max - mineral.recycling_base) * (
        1.0 - math.exp(-stock_in_use / mineral.recycling_halfway))


def mineral_demand(mineral: MineralParams, added: Dict[str, float], t: int,
                   stock_in_use: float, learning_multiplier: float = 1.0) -> Dict[str, float]:
    """Gross and recycled mineral demand (Mt) for one year's capacity additions.

    ``added`` holds GW for generators and GWh for battery.
    """
    intensity = (1.0 - mineral.learning_rate * learning_multiplier) ** t
    kg = (
        added["solar"] * 1000.0 * mineral.per_mw_solar
        + added["wind"] * 1000.0 * mineral.per_mw_wind
        + added["nuclear"] * 1000.0 * mineral.per_mw_nuclear
        + added["battery"] * mineral.per_gwh_battery
    ) * intensity
    gross = kg / 1e9
    rate = recycling_rate(mineral, stock_in_use)
    recycled = gross * rate
    return {
        "demand": max(0.0, gross - recycled),
        "gross": gross,
        "recycled": recycled,
        "intensity": intensity,
        "recycling_rate": rate,
    }


# ------------------------------------------------------------------ #
# Food and land
# ------------------------------------------------------------------ #
def glp1_adoption(year: int, food: FoodParams) -> float:
    return food.glp1_max_penetration / (1.0 + math.exp(-food.glp1_steepness * (year - food.glp1_halfway_year)))


def food_demand(population: float, gdp_per_capita: float, year: int, t: int, food: FoodParams) -> Dict[str, float]:
    adoption = glp1_adoption(year, food)
    effect = adoption * food.glp1_calorie_reduction
    calories = food.calories_2025 * (1.0 + food.calories_growth) ** t * (1.0 - effect)
    # Bennett's law: richer diets shift toward protein
    protein_share = food.protein_share_2025 + (food.protein_share_max - food.protein_share_2025) * (
        gdp_per_capita / (gdp_per_capita + food.protein_gdp_halfway))

    total_pcal = population * calories * 365.0 / 1e15
    protein_pcal = total_pcal * protein_share
    direct_grain = (total_pcal - protein_pcal) * 1e15 / food.calories_per_kg_grain / 1e9
    protein_grain = protein_pcal * 1e15 / food.calories_per_kg_protein * food.grain_per_protein / 1e9
    return {
        "calories_per_capita": calories,
        "total_calories": total_pcal,
        "protein_share": protein_share,
        "grain": direct_grain + protein_grain,
        "glp1_adoption": adoption,
        "glp1_effect": effect,
    }


def land_use(grain: float, population: float, wealth_ratio: float, t: int,
             temperature: float, land: LandParams) -> Dict[str, float]:
    crop_yield = land.yield_2025 * (1.0 + land.yield_growth_rate) ** t
    farmland = grain / crop_yield * land.nonfood_multiplier
    urban = population * land.urban_per_capita * wealth_ratio ** land.urban_wealth_elasticity / 1e6

    released = max(0.0, land.farmland_2025 - farmland)
    pressure = max(0.0, farmland - land.farmland_2025) / land.farmland_2025
    loss_multiplier = 0.5 if released > 0 else 1.0 + pressure
    forest = land.forest_2025 * (1.0 - land.forest_loss_rate * loss_multiplier) ** t + released * land.reforestation_rate

    climate_factor = 1.0 + land.desertification_climate_coeff * max(0.0, temperature - 1.5)
    expansion = land.desert_2025 * land.desertification_rate * climate_factor * t if t > 0 else 0.0
    desert = max(0.0, land.total_land - farmland - urban - forest + expansion)
    return {"farmland": farmland, "urban": urban, "forest": forest, "desert": desert, "yield": crop_yield}


def forest_carbon(forest_change: float, decay_pool: float, land: LandParams) -> Dict[str, float]:
    """Net land-use CO2 flux (Gt, positive = emission) from one year's forest change (Mha)."""
    sequestration = forest_change * 1e6 * land.sequestration_rate / 1e9 if forest_change > 0 else 0.0
    lost = -forest_change if forest_change < 0 else 0.0
    released = lost * 1e6 * land.forest_carbon_density * 3.67 / 1e9
    immediate = released * land.immediate_release
    decay = decay_pool * land.decay_rate
    return {
        "sequestration": sequestration,
        "deforestation": immediate,
        "decay": decay,
        "net_flux": immediate + decay - sequestration,
        "decay_pool": decay_pool + released * (1.0 - land.immediate_release) - decay,
    }


def run_resource_model(
    years: Sequence[int],
    population: Sequence[float],
    gdp: Sequence[float],
    capacity: CapacityState,
    temperature: Optional[Sequence[float]] = None,
    params: Optional[ResourceParams] = None,
) -> ResourceData:
    """Minerals, food, land and forest carbon for each simulated year.

    ``temperature`` is the simulated series; land use in year t reads year t-1.
    """
    params = params or ResourceParams()
    gdp_per_capita_2025 = gdp[0] * 1e12 / population[0]

    stock = {name: 0.0 for name in params.minerals}
    decay_pool = 0.0
    cumulative_sequestration = 0.0
    prev_forest: Optional[float] = None
    rows = []

    for i, year in enumerate(years):
        pop = population[i]
        gdp_per_capita = gdp[i] * 1e12 / pop if pop > 0 else 0.0
        row: Dict[str, float] = {"Year": year}

        current = {name: capacity.installed(name, i) for name in MINERAL_SOURCES}
        if i > 0:
            prev = {name: capacity.installed(name, i - 1) for name in MINERAL_SOURCES}
        else:
            prev = {name: current[name] * PRIOR_YEAR_FRACTION[name] for name in MINERAL_SOURCES}
        added = {name: max(0.0, current[name] - prev[name]) for name in MINERAL_SOURCES}

        for name, mineral in params.minerals.items():
            result = mineral_demand(mineral, added, i, stock[name], params.mineral_learning_multiplier)
            stock[name] += result["demand"]
            label = "".join(part.capitalize() for part in name.split("_"))
            row[f"{label}_Demand"] = result["demand"]
            row[f"{label}_Gross"] = result["gross"]
            row[f"{label}_Recycled"] = result["recycled"]
            row[f"{label}_Cumulative"] = stock[name]
            row[f"{label}_Reserve_Ratio"] = stock[name] / mineral.reserves if mineral.reserves else 0.0

        food = food_demand(pop, gdp_per_capita, year, i, params.food)
        row.update({
            "Calories_Per_Capita": food["calories_per_capita"],
            "Total_Calories_Pcal": food["total_calories"],
            "Protein_Share": food["protein_share"],
            "Grain_Mt": food["grain"],
            "GLP1_Adoption": food["glp1_adoption"],
        })

        temp = temperature[i - 1] if temperature is not None and i > 0 else params.land.baseline_temperature
        wealth_ratio = gdp_per_capita / gdp_per_capita_2025 if gdp_per_capita_2025 > 0 else 1.0
        land = land_use(food["grain"], pop, wealth_ratio, i, temp, params.land)
        forest_change = land["forest"] - prev_forest if prev_forest is not None else 0.0
        prev_forest = land["forest"]

        carbon = forest_carbon(forest_change, decay_pool, params.land)
        decay_pool = carbon["decay_pool"]
        cumulative_sequestration += carbon["sequestration"]

        row.update({
            "Farmland_Mha": land["farmland"],
            "Urban_Mha": land["urban"],
            "Forest_Mha": land["forest"],
            "Desert_Mha": land["desert"],
            "Crop_Yield": land["yield"],
            "Forest_Change_Mha": forest_change,
            "Sequestration_Gt": carbon["sequestration"],
            "Deforestation_Emissions_Gt": carbon["deforestation"],
            "Decay_Emissions_Gt": carbon["decay"],
            "Land_Net_Flux": carbon["net_flux"],
            "Cumulative_Sequestration_Gt": cumulative_sequestration,
        })
        rows.append(row)

    return ResourceData(years=list(years), frame=pd.DataFrame(rows))
