import math
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class ExpansionParams:
    """Automation load and cost-driven demand expansion."""

    energy_per_robot_mwh: float = 10.0  # MWh per robot-unit per year
    robot_cap: float = 500.0  # Max robots per 1000 workers
    baseline_lcoe: float = 50.0  # 2025 grid-average $/MWh
    expansion_coefficient: float = 0.25  # Demand gain per halving of cheapest clean cost
    min_lcoe: float = 5.0
    base_max_demand_growth: float = 0.025  # Infrastructure ceiling at the base savings rate
    base_investment_rate: float = 0.22


def expansion_multiplier(cheapest_lcoe: float, params: ExpansionParams) -> float:
    """1 + coefficient * log2(baseline / cost); never below 1."""
    cost_ratio = params.baseline_lcoe / max(params.min_lcoe, cheapest_lcoe)
    return 1.0 + params.expansion_coefficient * math.log2(max(1.0, cost_ratio))


def robot_load(robots_per_1000: float, workers: float, params: ExpansionParams) -> float:
    """Electricity drawn by the robot fleet, TWh."""
    total_robots = robots_per_1000 / 1000.0 * workers
    return total_robots * params.energy_per_robot_mwh / 1e6


def infrastructure_ceiling(previous_demand: float, savings_rate: float, params: ExpansionParams) -> float:
    growth = params.base_max_demand_growth * savings_rate / params.base_investment_rate
    return previous_demand * (1.0 + growth)


class DemandExpansion:
    """Adjusted electricity demand, capped by how fast infrastructure can grow."""

    def __init__(self, params: Optional[ExpansionParams] = None):
        self.params = params or ExpansionParams()
        self.previous_demand: Optional[float] = None

    def step(self, base_demand: float, cheapest_lcoe: float, robots_per_1000: float,
             workers: float, savings_rate: float) -> Dict[str, float]:
        """``robots_per_1000`` comes from the capital chain; ``workers`` is the raw working population."""
        density = min(robots_per_1000, self.params.robot_cap)
        load = robot_load(density, workers, self.params)
        multiplier = expansion_multiplier(cheapest_lcoe, self.params)
        uncapped = (base_demand + load) * multiplier

        if self.previous_demand is None:
            self.previous_demand = base_demand
        ceiling = infrastructure_ceiling(self.previous_demand, savings_rate, self.params)
        demand = min(uncapped, ceiling)
        self.previous_demand = demand

        return {
            "Base_Demand_TWh": base_demand,
            "Robot_Load_TWh": load,
            "Expansion_Multiplier": multiplier,
            "Uncapped_Demand_TWh": uncapped,
            "Demand_Ceiling_TWh": ceiling,
            "Demand_TWh": demand,
        }
