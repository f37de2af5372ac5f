import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

import pandas as pd

from costs import EnergySourceParams
from dispatch import HOURS_PER_YEAR, DispatchParams

logger = logging.getLogger(__name__)

CAPACITY_SOURCES = ("solar", "wind", "battery", "nuclear", "hydro", "gas", "coal")
CLEAN_SOURCES = ("solar", "wind", "battery", "nuclear", "hydro")
BACKUP_SOURCES = ("gas",)  # Exempt from demand and investment ceilings
PHASEOUT_SOURCES = ("coal",)  # No new build, forced decline
CAPEX_LEARNING_SOURCES = ("solar", "wind", "battery")


def _default_max_growth() -> Dict[str, float]:
    # Supply-chain limit on positive growth, fraction of installed per year
    return {"solar": 0.30, "wind": 0.20, "battery": 0.40, "nuclear": 0.05,
            "hydro": 0.02, "gas": 0.05, "coal": 0.0}


def _default_penetration_limits() -> Dict[str, float]:
    return {"solar": 0.80, "wind": 0.35, "nuclear": 0.30, "hydro": 0.20}


def _default_capex() -> Dict[str, float]:
    # $M per GW ($M per GWh for battery)
    return {"solar": 800.0, "wind": 1200.0, "battery": 150.0, "nuclear": 6000.0,
            "hydro": 2000.0, "gas": 800.0, "coal": 2000.0}


def _default_lifetime() -> Dict[str, float]:
    return {"solar": 30, "wind": 25, "battery": 15, "nuclear": 60,
            "hydro": 80, "gas": 40, "coal": 45}


def _default_allocation() -> Dict[str, float]:
    # Share of the clean-energy budget per technology
    return {"solar": 0.40, "wind": 0.25, "battery": 0.20, "nuclear": 0.10, "hydro": 0.05}


@dataclass(frozen=True)
class CapacityParams:
    max_growth_rate: Dict[str, float] = field(default_factory=_default_max_growth)
    penetration_limits: Dict[str, float] = field(default_factory=_default_penetration_limits)
    capex: Dict[str, float] = field(default_factory=_default_capex)
    lifetime: Dict[str, float] = field(default_factory=_default_lifetime)
    allocation: Dict[str, float] = field(default_factory=_default_allocation)
    capex_learning: float = 0.98  # Annual CAPEX multiplier for learning sources
    clean_share_start: float = 0.15  # Clean share of investment in 2025
    clean_share_gain: float = 0.15  # Additional share reached after ramp
    clean_share_ramp_years: float = 25.0
    storage_hours: float = 4.0
    battery_solar_share: float = 0.5


@dataclass
class SourceHistory:
    installed: List[float]
    additions: List[float]
    retirements: List[float]


# ------------------------------------------------------------------ #
# Ceilings
# ------------------------------------------------------------------ #
def max_useful_capacity(demand: float, params: CapacityParams,
                        dispatch_params: DispatchParams) -> Dict[str, float]:
    """Capacity beyond which extra build cannot be dispatched (GW, GWh for battery)."""
    cf = dispatch_params.capacity_factor
    ceiling: Dict[str, float] = {}
    for name, limit in params.penetration_limits.items():
        ceiling[name] = demand * limit / (cf[name] * HOURS_PER_YEAR) * 1000.0
    ceiling["battery"] = ceiling["solar"] * params.battery_solar_share * params.storage_hours
    for name in BACKUP_SOURCES:
        ceiling[name] = math.inf
    for name in PHASEOUT_SOURCES:
        ceiling[name] = 0.0
    return ceiling


def clean_investment_share(year_index: int, params: CapacityParams) -> float:
    ramp = min(1.0, year_index / params.clean_share_ramp_years)
    return params.clean_share_start + params.clean_share_gain * ramp


def investment_capacity(investment: float, year_index: int, params: CapacityParams) -> Dict[str, float]:
    """New capacity the clean-energy budget can buy this year.

    ``investment`` is total investment in $T; the result is GW (GWh battery).
    """
    budget = investment * clean_investment_share(year_index, params) * 1000.0  # $B
    affordable: Dict[str, float] = {}
    for name in CLEAN_SOURCES:
        capex = params.capex[name]
        if name in CAPEX_LEARNING_SOURCES:
            capex *= params.capex_learning ** year_index
        affordable[name] = budget * params.allocation[name] / capex * 1000.0
    for name in BACKUP_SOURCES:
        affordable[name] = math.inf
    for name in PHASEOUT_SOURCES:
        affordable[name] = 0.0
    return affordable


# ------------------------------------------------------------------ #
# State machine
# ------------------------------------------------------------------ #
class CapacityState:
    """Installed capacity history per source, one entry per simulated year.

    Invariant: installed[t] == installed[t-1] + additions[t] - retirements[t]
    and installed[t] >= 0. Only :meth:`advance` extends the history.
    """

    def __init__(
        self,
        sources: Mapping[str, EnergySourceParams],
        params: Optional[CapacityParams] = None,
        dispatch_params: Optional[DispatchParams] = None,
    ):
        self.sources = sources
        self.params = params or CapacityParams()
        self.dispatch_params = dispatch_params or DispatchParams()
        self.history: Dict[str, SourceHistory] = {
            name: SourceHistory([sources[name].capacity2025], [0.0], [0.0])
            for name in CAPACITY_SOURCES
        }

    def __len__(self) -> int:
        return len(self.history["solar"].installed)

    def installed(self, source: str, year_index: int) -> float:
        return self.history[source].installed[year_index]

    def snapshot(self, year_index: int) -> Dict[str, float]:
        """Installed GW per source with battery converted from GWh to GW."""
        snap = {name: hist.installed[year_index] for name, hist in self.history.items()}
        snap["battery"] = snap["battery"] / self.params.storage_hours
        return snap

    def cumulative_deployment(self, source: str, year_index: int) -> float:
        """2025 base plus every addition up to and including ``year_index``."""
        additions = self.history[source].additions[: year_index + 1]
        return self.sources[source].capacity2025 + sum(additions)

    def retirement(self, source: str, year_index: int) -> float:
        lifetime = self.params.lifetime[source]
        if year_index < lifetime:
            return 0.0
        return self.history[source].installed[year_index - 1] / lifetime

    def advance(self, demand: float, investment: Optional[float] = None) -> int:
        """Append the next year's capacity for every source.

        ``demand`` is the current year's electricity demand (TWh) and
        ``investment`` the current year's estimated investment ($T). Returns
        the index of the appended year.
        """
        year_index = len(self)
        ceiling = max_useful_capacity(demand, self.params, self.dispatch_params)
        affordable = (
            investment_capacity(investment, year_index, self.params)
            if investment is not None
            else {name: math.inf for name in CAPACITY_SOURCES}
        )

        for name in CAPACITY_SOURCES:
            hist = self.history[name]
            prev = hist.installed[-1]
            retirement = self.retirement(name, year_index)
            desired = prev * self.sources[name].growth_rate

            if desired < 0:
                # Managed decline is booked as early retirement
                additions = 0.0
                retirement += -desired
            else:
                additions = min(desired, prev * self.params.max_growth_rate[name])
                if name not in BACKUP_SOURCES:
                    additions = min(additions, max(0.0, ceiling[name] - prev), affordable[name])
                additions = max(0.0, additions)

            installed = prev + additions - retirement
            if installed < 0:
                logger.debug(f"{name}: retirement capped at the installed base (year index {year_index})")
                retirement = prev + additions
                installed = 0.0

            hist.installed.append(installed)
            hist.additions.append(additions)
            hist.retirements.append(retirement)

        return year_index

    def to_frame(self) -> pd.DataFrame:
        """Wide table of installed, additions and retirements per source."""
        columns = {}
        for name, hist in self.history.items():
            label = name.capitalize()
            columns[f"Installed_{label}"] = hist.installed
            columns[f"Additions_{label}"] = hist.additions
            columns[f"Retirements_{label}"] = hist.retirements
        return pd.DataFrame(columns)
