import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)

HOURS_PER_YEAR = 8760.0
SHORTFALL_TOLERANCE_TWH = 0.1

# Dispatch order before sorting; ties in LCOE keep this order.
DISPATCH_SOURCES = ("nuclear", "hydro", "solar", "solar_plus_battery", "wind", "gas", "coal")
SOLAR_SOURCES = ("solar", "solar_plus_battery")


def _default_capacity_factor() -> Dict[str, float]:
    return {
        "solar": 0.20,
        "wind": 0.30,
        "solar_plus_battery": 0.20,
        "hydro": 0.42,
        "gas": 0.50,
        "coal": 0.60,
        "nuclear": 0.90,
    }


def _default_max_penetration() -> Dict[str, float]:
    return {
        "solar": 0.40,  # Bare solar, no storage
        "wind": 0.35,
        "solar_plus_battery": 0.80,  # Shared ceiling for all solar
        "hydro": 0.20,
        "gas": 1.0,
        "coal": 1.0,
        "nuclear": 0.30,
    }


@dataclass(frozen=True)
class DispatchParams:
    capacity_factor: Dict[str, float] = field(default_factory=_default_capacity_factor)
    max_penetration: Dict[str, float] = field(default_factory=_default_max_penetration)
    storage_hours: float = 4.0  # Battery GWh -> GW
    battery_solar_share: float = 0.5  # Max fraction of solar that storage can firm
    firmed_solar_per_battery_gw: float = 2.0


@dataclass
class DispatchResult:
    demand: float  # TWh
    generation: Dict[str, float]  # TWh per dispatch source
    shortfall: float  # TWh of unmet demand
    grid_intensity: float  # kg CO2 / MWh of dispatched energy

    @property
    def total(self) -> float:
        return self.demand - self.shortfall

    @property
    def order(self) -> List[str]:
        return list(self.generation)


def max_generation(capacity_gw: float, capacity_factor: float) -> float:
    """Annual generation ceiling in TWh for a GW fleet."""
    return capacity_gw * capacity_factor * HOURS_PER_YEAR / 1000.0


def dispatch(
    demand: float,
    lcoe: Mapping[str, float],
    capacity: Mapping[str, float],
    carbon_intensity: Mapping[str, float],
    params: Optional[DispatchParams] = None,
) -> DispatchResult:
    """Merit-order dispatch of one year's electricity demand.

    ``capacity`` holds GW per source with battery in GW (GWh / storage hours).
    Bare solar and solar+battery draw on one shared solar counter so that
    total solar never exceeds its combined penetration ceiling.
    """
    params = params or DispatchParams()
    cf = params.capacity_factor
    pen = params.max_penetration

    firmable_gw = min(capacity["solar"] * params.battery_solar_share,
                      capacity["battery"] * params.firmed_solar_per_battery_gw)
    limits = {
        "nuclear": max_generation(capacity["nuclear"], cf["nuclear"]),
        "hydro": max_generation(capacity["hydro"], cf["hydro"]),
        "solar": max_generation(capacity["solar"], cf["solar"]),
        "solar_plus_battery": max_generation(firmable_gw, cf["solar_plus_battery"]),
        "wind": max_generation(capacity["wind"], cf["wind"]),
        "gas": max_generation(capacity["gas"], cf["gas"]),
        "coal": max_generation(capacity["coal"], cf["coal"]),
    }

    merit_order = sorted(DISPATCH_SOURCES, key=lambda name: lcoe[name])

    generation: Dict[str, float] = {}
    remaining = demand
    total_solar = 0.0

    for name in merit_order:
        if name == "solar":
            room = min(pen["solar"] * demand - total_solar,
                       pen["solar_plus_battery"] * demand - total_solar)
        elif name == "solar_plus_battery":
            room = pen["solar_plus_battery"] * demand - total_solar
        else:
            room = pen[name] * demand

        allocation = min(remaining, limits[name], max(0.0, room))
        allocation = max(0.0, allocation)
        generation[name] = allocation
        remaining -= allocation
        if name in SOLAR_SOURCES:
            total_solar += allocation

    shortfall = max(0.0, remaining)
    if shortfall > SHORTFALL_TOLERANCE_TWH:
        logger.warning(f"Dispatch shortfall: {shortfall:.1f} TWh of {demand:.1f} TWh unmet")

    dispatched = demand - shortfall
    fossil_kg = sum(generation[name] * carbon_intensity.get(name, 0.0) for name in ("gas", "coal"))
    grid_intensity = fossil_kg / dispatched if dispatched > 0 else 0.0

    return DispatchResult(
        demand=demand,
        generation=generation,
        shortfall=shortfall,
        grid_intensity=grid_intensity,
    )
