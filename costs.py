import math
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

SOURCES = ("solar", "wind", "gas", "coal", "nuclear", "hydro", "battery")
FOSSIL_SOURCES = ("gas", "coal")
LEARNING_SOURCES = ("solar", "wind", "nuclear", "hydro", "battery")

# Year-0 generation used to normalise fossil extraction before any dispatch
# has happened (TWh). Extraction in year t is prev_generation / bootstrap
# x extraction_rate.
BOOTSTRAP_GENERATION_TWH: Dict[str, float] = {"gas": 2500.0, "coal": 3000.0}

DEPLETION_BETA = 0.5
MIN_EROEI = 1.1
MIN_REMAINING_RESERVES = 0.01

STORAGE_HOURS = 4.0
STORAGE_LIFETIME_YEARS = 15.0
STORAGE_ROUND_TRIP = 0.85


@dataclass(frozen=True)
class EnergySourceParams:
    """Cost and growth parameters for one generation (or storage) technology."""

    cost0: float  # $/MWh in 2025 ($/kWh for battery)
    alpha: float = 0.0  # Learning exponent (Wright's law)
    capacity2025: float = 0.0  # GW (GWh for battery)
    growth_rate: float = 0.0  # Desired annual capacity growth
    carbon_intensity: float = 0.0  # kg CO2 / MWh
    eroei0: Optional[float] = None  # Fossil only
    reserves: Optional[float] = None  # Fossil only, Gt-equivalent units
    extraction_rate: Optional[float] = None  # Reserve units per bootstrap year

    @property
    def is_fossil(self) -> bool:
        return self.eroei0 is not None


def default_energy_sources() -> Dict[str, EnergySourceParams]:
    return {
        "solar": EnergySourceParams(cost0=35.0, alpha=0.36, capacity2025=1500.0, growth_rate=0.25),
        "wind": EnergySourceParams(cost0=35.0, alpha=0.23, capacity2025=1000.0, growth_rate=0.18),
        "gas": EnergySourceParams(
            cost0=45.0, capacity2025=2500.0, growth_rate=0.01, carbon_intensity=400.0,
            eroei0=30.0, reserves=200.0, extraction_rate=2.0,
        ),
        "coal": EnergySourceParams(
            cost0=40.0, capacity2025=2100.0, growth_rate=-0.02, carbon_intensity=900.0,
            eroei0=25.0, reserves=500.0, extraction_rate=3.0,
        ),
        "nuclear": EnergySourceParams(cost0=90.0, alpha=0.0, capacity2025=400.0, growth_rate=0.02),
        "hydro": EnergySourceParams(cost0=40.0, alpha=0.0, capacity2025=1400.0, growth_rate=0.01),
        "battery": EnergySourceParams(cost0=140.0, alpha=0.26, capacity2025=2000.0, growth_rate=0.35),
    }


@dataclass(frozen=True)
class DepletionState:
    eroei: float
    net_energy_fraction: float
    remaining: float


# ------------------------------------------------------------------ #
# Cost curves
# ------------------------------------------------------------------ #
def learning_curve(cost0: float, cumulative: float, alpha: float) -> float:
    """Wright's law: cost falls by 2^-alpha with every doubling of deployment.

    ``cumulative`` is normalised so that 1.0 is the 2025 installed base.
    """
    if cumulative <= 0:
        return cost0
    return cost0 * cumulative ** (-alpha)


def depletion(reserves: float, extracted: float, eroei0: float, beta: float = DEPLETION_BETA) -> DepletionState:
    remaining = max(reserves - extracted, MIN_REMAINING_RESERVES)
    eroei = max(eroei0 * (remaining / reserves) ** beta, MIN_EROEI)
    return DepletionState(eroei=eroei, net_energy_fraction=1.0 - 1.0 / eroei, remaining=remaining)


def fossil_lcoe(source: EnergySourceParams, eroei: float, carbon_price: float) -> float:
    """Extraction cost scaled by falling EROEI plus the carbon charge ($/MWh)."""
    extraction_cost = source.cost0 * source.eroei0 / eroei
    return extraction_cost + source.carbon_intensity / 1000.0 * carbon_price


def storage_adder(battery_cost_kwh: float) -> float:
    """$/MWh added to solar output when firmed by four hours of storage."""
    return (
        battery_cost_kwh * STORAGE_HOURS
        / (365.0 * STORAGE_LIFETIME_YEARS * STORAGE_ROUND_TRIP)
        * 1000.0
    )


# ------------------------------------------------------------------ #
# Stateful cost model
# ------------------------------------------------------------------ #
class CostModel:
    """Per-year LCOE for every source.

    Learning sources read cumulative deployment from the capacity history;
    fossil sources track their own cumulative extraction, accrued from the
    previous year's dispatched generation.
    """

    def __init__(self, sources: Mapping[str, EnergySourceParams], carbon_price: float):
        self.sources = sources
        self.carbon_price = carbon_price
        self.extracted: Dict[str, float] = {name: 0.0 for name in FOSSIL_SOURCES}
        self.eroei: Dict[str, float] = {name: sources[name].eroei0 for name in FOSSIL_SOURCES}

    def accrue_extraction(self, prev_generation: Optional[Mapping[str, float]] = None) -> None:
        for name in FOSSIL_SOURCES:
            bootstrap = BOOTSTRAP_GENERATION_TWH[name]
            generation = bootstrap
            if prev_generation is not None:
                generation = prev_generation.get(name, 0.0)
            self.extracted[name] += generation / bootstrap * self.sources[name].extraction_rate

    def step(self, cumulative_deployment: Mapping[str, float],
             prev_generation: Optional[Mapping[str, float]] = None) -> Dict[str, float]:
        """Return this year's LCOEs.

        ``cumulative_deployment`` maps each learning source to its cumulative
        installed base (same units as ``capacity2025``). ``prev_generation``
        is last year's dispatch in TWh, or None in the first year.
        """
        self.accrue_extraction(prev_generation)

        lcoe: Dict[str, float] = {}
        for name in LEARNING_SOURCES:
            source = self.sources[name]
            base = source.capacity2025
            normalised = cumulative_deployment[name] / base if base > 0 else 0.0
            lcoe[name] = learning_curve(source.cost0, normalised, source.alpha)

        for name in FOSSIL_SOURCES:
            source = self.sources[name]
            state = depletion(source.reserves, self.extracted[name], source.eroei0)
            self.eroei[name] = state.eroei
            lcoe[name] = fossil_lcoe(source, state.eroei, self.carbon_price)

        lcoe["solar_plus_battery"] = lcoe["solar"] + storage_adder(lcoe["battery"])

        if not all(math.isfinite(v) for v in lcoe.values()):
            raise ValueError(f"Non-finite LCOE computed: {lcoe}")
        return lcoe
