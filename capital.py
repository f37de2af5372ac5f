import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Tuple

logger = logging.getLogger(__name__)


def _default_savings_premium() -> Dict[str, float]:
    return {"oecd": 0.0, "china": 0.15, "em": -0.05, "row": -0.08}


@dataclass(frozen=True)
class CapitalParams:
    """Cobb-Douglas capital accumulation with demographic savings."""

    alpha: float = 0.33  # Capital share of output
    depreciation: float = 0.05
    savings_young: float = 0.0
    savings_working: float = 0.45
    savings_old: float = -0.05  # Retirees dissave
    savings_premium: Dict[str, float] = field(default_factory=_default_savings_premium)
    stability_lambda: float = 2.0  # Uncertainty sensitivity of investment
    automation_share_2025: float = 0.02  # Share of capital in automation
    automation_growth: float = 0.03
    max_automation_share: float = 0.20
    robots_per_capital_unit: float = 8.6  # Robots/1000 workers per $1000 automation capital per worker
    initial_capital_stock: float = 420.0  # $T
    fallback_interest_rate: float = 0.05


# ------------------------------------------------------------------ #
# Savings, investment and returns
# ------------------------------------------------------------------ #
def savings_rates(cohorts: Mapping[str, Mapping[str, float]], params: CapitalParams) -> Tuple[Dict[str, float], float]:
    """Regional and population-weighted global savings rates.

    ``cohorts`` maps region -> {"young", "working", "old", "population"} in
    absolute persons for one year.
    """
    regional: Dict[str, float] = {}
    total_pop = 0.0
    weighted = 0.0
    for region, c in cohorts.items():
        pop = c["population"]
        if pop <= 0:
            regional[region] = params.savings_premium[region]
            continue
        base = (
            c["young"] * params.savings_young
            + c["working"] * params.savings_working
            + c["old"] * params.savings_old
        ) / pop
        regional[region] = base + params.savings_premium[region]
        total_pop += pop
        weighted += regional[region] * pop

    global_rate = weighted / total_pop if total_pop > 0 else 0.0
    return regional, global_rate


def stability_factor(uncertainty: float, params: CapitalParams) -> float:
    """Phi = 1 / (1 + lambda * u^2); uncertainty is a damage fraction."""
    return 1.0 / (1.0 + params.stability_lambda * uncertainty * uncertainty)


def investment(gdp: float, savings_rate: float, stability: float) -> float:
    return gdp * savings_rate * stability


def update_capital(capital: float, invest: float, params: CapitalParams) -> float:
    return (1.0 - params.depreciation) * capital + invest


def interest_rate(gdp: float, capital: float, params: CapitalParams) -> float:
    """Marginal product of capital net of depreciation."""
    if capital <= 0:
        logger.debug("Capital stock non-positive, using fallback interest rate")
        return params.fallback_interest_rate
    return params.alpha * gdp / capital - params.depreciation


def robot_density(capital: float, effective_workers: float, year_index: int, params: CapitalParams) -> float:
    """Robots per 1000 workers from the automation slice of the capital stock."""
    if effective_workers <= 0:
        return 0.0
    share = min(
        params.automation_share_2025 * (1.0 + params.automation_growth) ** year_index,
        params.max_automation_share,
    )
    dollars_per_worker = capital * share * 1e12 / effective_workers
    return dollars_per_worker / 1000.0 * params.robots_per_capital_unit


def capital_per_worker(capital: float, effective_workers: float) -> float:
    """$K of capital per effective worker."""
    if effective_workers <= 0:
        return 0.0
    return capital * 1e12 / effective_workers / 1000.0


class CapitalChain:
    """Capital stock carried across years; the only producer of robot density."""

    def __init__(self, params: CapitalParams):
        self.params = params
        self.stock = params.initial_capital_stock

    def robots(self, effective_workers: float, year_index: int) -> float:
        return robot_density(self.stock, effective_workers, year_index, self.params)

    def step(self, net_gdp: float, gross_gdp: float, savings_rate: float,
             damage: float, effective_workers: float, year_index: int,
             accumulate: bool = True) -> Dict[str, float]:
        """Record this year's capital diagnostics, then accumulate for next year."""
        phi = stability_factor(damage, self.params)
        invest = investment(net_gdp, savings_rate, phi)
        row = {
            "Capital_Stock": self.stock,
            "Investment": invest,
            "Savings_Rate": savings_rate,
            "Stability_Factor": phi,
            "Interest_Rate": interest_rate(gross_gdp, self.stock, self.params),
            "Robots_Per_1000": self.robots(effective_workers, year_index),
            "Capital_Per_Worker": capital_per_worker(self.stock, effective_workers),
        }
        if accumulate:
            self.stock = update_capital(self.stock, invest, self.params)
        return row
