"""
Test Capital Accumulation and Demand Expansion

1. Demographic savings rates and the stability factor
2. Capital stock recursion, interest rate, robot density
3. Demand expansion: robot load, cost multiplier, infrastructure ceiling
"""

import pytest

from capital import (CapitalChain, CapitalParams, capital_per_worker, interest_rate, robot_density,
                     savings_rates, stability_factor, update_capital)
from expansion import DemandExpansion, ExpansionParams, expansion_multiplier, infrastructure_ceiling, robot_load


def test_savings_rates_follow_age_structure():
    params = CapitalParams()
    cohorts = {
        "oecd": {"young": 20.0, "working": 60.0, "old": 20.0, "population": 100.0},
        "china": {"young": 20.0, "working": 60.0, "old": 20.0, "population": 100.0},
    }
    regional, global_rate = savings_rates(cohorts, params)

    base = (60.0 * 0.45 - 20.0 * 0.05) / 100.0
    assert regional["oecd"] == pytest.approx(base)
    assert regional["china"] == pytest.approx(base + 0.15)
    assert global_rate == pytest.approx(base + 0.075)

    aging = {"oecd": {"young": 10.0, "working": 45.0, "old": 45.0, "population": 100.0}}
    older, _ = savings_rates(aging, params)
    assert older["oecd"] < regional["oecd"]


def test_stability_factor():
    params = CapitalParams()
    assert stability_factor(0.0, params) == 1.0
    assert stability_factor(0.1, params) == pytest.approx(1.0 / 1.02)
    assert stability_factor(0.3, params) < stability_factor(0.1, params)


def test_capital_chain_accumulates():
    print("=" * 80)
    print("CAPITAL CHAIN TEST")
    print("=" * 80)

    params = CapitalParams()
    chain = CapitalChain(params)
    row = chain.step(net_gdp=100.0, gross_gdp=102.0, savings_rate=0.25, damage=0.0,
                     effective_workers=3.5e9, year_index=0)

    print(f"\nCapital 2025: ${row['Capital_Stock']:.0f}T, investment ${row['Investment']:.1f}T")
    print(f"Interest rate: {row['Interest_Rate'] * 100:.2f}%  Robots/1000: {row['Robots_Per_1000']:.1f}")

    assert row["Capital_Stock"] == pytest.approx(420.0)
    assert row["Investment"] == pytest.approx(25.0)
    assert row["Interest_Rate"] == pytest.approx(0.33 * 102.0 / 420.0 - 0.05)
    assert chain.stock == pytest.approx(update_capital(420.0, 25.0, params))

    frozen = chain.stock
    chain.step(100.0, 100.0, 0.25, 0.0, 3.5e9, 1, accumulate=False)
    assert chain.stock == frozen

    print("✓ Capital chain test passed")


def test_interest_rate_fallback():
    params = CapitalParams()
    assert interest_rate(100.0, 0.0, params) == params.fallback_interest_rate


def test_robot_density():
    params = CapitalParams()
    density = robot_density(420.0, 3.5e9, 0, params)
    expected = 420.0 * 0.02 * 1e12 / 3.5e9 / 1000.0 * 8.6
    assert density == pytest.approx(expected)
    assert robot_density(420.0, 0.0, 0, params) == 0.0
    # Automation share saturates
    assert robot_density(420.0, 3.5e9, 500, params) == pytest.approx(expected * 0.20 / 0.02)
    assert capital_per_worker(420.0, 3.5e9) == pytest.approx(120.0)


def test_expansion_multiplier():
    params = ExpansionParams()
    assert expansion_multiplier(50.0, params) == 1.0
    assert expansion_multiplier(80.0, params) == 1.0
    assert expansion_multiplier(25.0, params) == pytest.approx(1.25)
    # Costs below the floor are clamped
    assert expansion_multiplier(1.0, params) == pytest.approx(expansion_multiplier(5.0, params))


def test_robot_load_and_ceiling():
    params = ExpansionParams()
    assert robot_load(100.0, 3.5e9, params) == pytest.approx(3500.0)
    assert infrastructure_ceiling(1000.0, 0.22, params) == pytest.approx(1025.0)
    assert infrastructure_ceiling(1000.0, 0.44, params) == pytest.approx(1050.0)


def test_demand_expansion_caps_growth():
    expansion = DemandExpansion()
    first = expansion.step(base_demand=30000.0, cheapest_lcoe=25.0, robots_per_1000=1000.0,
                           workers=3.5e9, savings_rate=0.22)
    # Density is clamped to the robot cap
    assert first["Robot_Load_TWh"] == pytest.approx(robot_load(500.0, 3.5e9, ExpansionParams()))
    assert first["Demand_TWh"] == pytest.approx(30000.0 * 1.025)
    assert first["Uncapped_Demand_TWh"] > first["Demand_TWh"]

    second = expansion.step(30000.0, 25.0, 1000.0, 3.5e9, 0.22)
    assert second["Demand_TWh"] == pytest.approx(first["Demand_TWh"] * 1.025)

    print("✓ Demand expansion test passed")


if __name__ == "__main__":
    test_savings_rates_follow_age_structure()
    test_stability_factor()
    test_capital_chain_accumulates()
    test_interest_rate_fallback()
    test_robot_density()
    test_expansion_multiplier()
    test_robot_load_and_ceiling()
    test_demand_expansion_caps_growth()
