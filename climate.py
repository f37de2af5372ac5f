import math
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

REGIONS = ("oecd", "china", "em", "row")


def _default_regional_damage() -> Dict[str, float]:
    return {"oecd": 0.8, "china": 1.0, "em": 1.3, "row": 1.8}


@dataclass(frozen=True)
class ClimateParams:
    """Cumulative-carbon climate response and damage function parameters."""

    preindustrial_ppm: float = 280.0
    cumulative_co2_2025: float = 2400.0  # Gt CO2 since preindustrial
    airborne_fraction: float = 0.45
    ppm_per_gt: float = 0.128  # ppm per Gt CO2 remaining airborne
    temperature_lag: float = 10.0  # Years for 63% approach to equilibrium
    climate_sensitivity: float = 3.0  # °C per doubling
    current_temp: float = 1.2  # °C anomaly in 2024

    # Damages (DICE-style quadratic with a tipping-point amplifier)
    damage_coeff: float = 0.00236  # Fraction of GDP per °C²
    regional_damage: Dict[str, float] = field(default_factory=_default_regional_damage)
    tipping_threshold: float = 2.5  # °C
    tipping_multiplier: float = 1.25
    tipping_steepness: float = 4.0
    max_damage: float = 0.30

    nonelec_emissions_2025: float = 25.0  # Gt CO2 outside the power sector


@dataclass
class ClimateState:
    cumulative: float  # Gt CO2
    temperature: float  # °C


# ------------------------------------------------------------------ #
# Emissions
# ------------------------------------------------------------------ #
def electricity_emissions(generation: Mapping[str, float], carbon_intensity: Mapping[str, float]) -> float:
    """Power-sector emissions in Gt CO2 from TWh and kg/MWh."""
    return sum(generation.get(name, 0.0) * carbon_intensity.get(name, 0.0) for name in ("gas", "coal")) / 1e6


def fuel_emissions(fuel_demand: Mapping[str, float], fuel_intensity: Mapping[str, float]) -> float:
    """Non-electric emissions in Gt CO2 from fuel TWh and kg/MWh."""
    return sum(twh * fuel_intensity.get(fuel, 0.0) for fuel, twh in fuel_demand.items()) / 1e6


# ------------------------------------------------------------------ #
# Physics and damages
# ------------------------------------------------------------------ #
def co2_ppm(cumulative: float, params: ClimateParams) -> float:
    return params.preindustrial_ppm + cumulative * params.airborne_fraction * params.ppm_per_gt


def equilibrium_temperature(ppm: float, params: ClimateParams) -> float:
    return params.climate_sensitivity * math.log2(ppm / params.preindustrial_ppm)


def lagged_temperature(previous: float, equilibrium: float, params: ClimateParams) -> float:
    return previous + (equilibrium - previous) / params.temperature_lag


def tipping_factor(temperature: float, params: ClimateParams) -> float:
    """Smooth amplifier rising from 1 to ``tipping_multiplier`` around the threshold."""
    logistic = 1.0 / (1.0 + math.exp(-params.tipping_steepness * (temperature - params.tipping_threshold)))
    return 1.0 + (params.tipping_multiplier - 1.0) * logistic


def climate_damage(temperature: float, region: str, params: ClimateParams) -> float:
    """Fraction of regional GDP lost, capped at ``max_damage``."""
    damage = (
        params.damage_coeff * temperature ** 2
        * params.regional_damage[region]
        * tipping_factor(temperature, params)
    )
    return min(damage, params.max_damage)


def regional_damages(temperature: float, params: ClimateParams) -> Dict[str, float]:
    return {region: climate_damage(temperature, region, params) for region in params.regional_damage}


def global_damage(gross_gdp: Mapping[str, float], damages: Mapping[str, float]) -> float:
    """GDP-weighted damage fraction, 1 - sum(net) / sum(gross)."""
    gross = sum(gross_gdp.values())
    if gross <= 0:
        return 0.0
    net = sum(gdp * (1.0 - damages[region]) for region, gdp in gross_gdp.items())
    return 1.0 - net / gross


class ClimateChain:
    """Cumulative emissions -> concentration -> lagged temperature.

    Cumulative emissions and last year's temperature are the only state; each
    :meth:`step` consumes one year of emissions.
    """

    def __init__(self, params: Optional[ClimateParams] = None):
        self.params = params or ClimateParams()
        self.state = ClimateState(
            cumulative=self.params.cumulative_co2_2025,
            temperature=self.params.current_temp,
        )

    def step(self, emissions: float) -> Dict[str, float]:
        """Add one year of emissions (Gt CO2) and return the climate diagnostics."""
        self.state.cumulative += emissions
        ppm = co2_ppm(self.state.cumulative, self.params)
        t_eq = equilibrium_temperature(ppm, self.params)
        self.state.temperature = lagged_temperature(self.state.temperature, t_eq, self.params)

        return {
            "Emissions_Gt": emissions,
            "Cumulative_Emissions_Gt": self.state.cumulative,
            "CO2_ppm": ppm,
            "Equilibrium_Temperature": t_eq,
            "Temperature_Anomaly": self.state.temperature,
        }

    def damages(self) -> Dict[str, float]:
        return regional_damages(self.state.temperature, self.params)
