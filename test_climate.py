"""
Test Climate Chain

Cumulative emissions -> CO2 ppm -> equilibrium temperature -> lagged
temperature -> capped regional damages.
"""

import math

import pytest

from climate import (ClimateChain, ClimateParams, climate_damage, co2_ppm, electricity_emissions,
                     equilibrium_temperature, fuel_emissions, global_damage, lagged_temperature,
                     regional_damages, tipping_factor)


def test_concentration_and_equilibrium():
    params = ClimateParams()
    assert co2_ppm(0.0, params) == pytest.approx(280.0)
    assert co2_ppm(2400.0, params) == pytest.approx(280.0 + 2400 * 0.45 * 0.128)
    # One doubling gives the climate sensitivity
    assert equilibrium_temperature(560.0, params) == pytest.approx(3.0)


def test_lag_converges_to_equilibrium():
    params = ClimateParams()
    temp = 1.2
    for _ in range(200):
        temp = lagged_temperature(temp, 2.0, params)
    assert temp == pytest.approx(2.0, abs=1e-6)
    assert lagged_temperature(1.0, 2.0, params) == pytest.approx(1.1)


def test_chain_cumulates_emissions():
    print("=" * 80)
    print("CLIMATE CHAIN TEST")
    print("=" * 80)

    chain = ClimateChain()
    first = chain.step(40.0)
    second = chain.step(40.0)

    print(f"\nYear 1: {first['Temperature_Anomaly']:.3f}°C, {first['CO2_ppm']:.1f} ppm")
    print(f"Year 2: {second['Temperature_Anomaly']:.3f}°C, {second['CO2_ppm']:.1f} ppm")

    assert first["Cumulative_Emissions_Gt"] == pytest.approx(2440.0)
    assert second["Cumulative_Emissions_Gt"] == pytest.approx(2480.0)
    assert second["CO2_ppm"] > first["CO2_ppm"]
    assert first["Temperature_Anomaly"] == pytest.approx(
        1.2 + (first["Equilibrium_Temperature"] - 1.2) / 10.0)

    print("✓ Climate chain test passed")


def test_step_returns_fresh_rows():
    chain = ClimateChain()
    first = chain.step(40.0)
    snapshot = dict(first)
    second = chain.step(40.0)
    assert second is not first
    assert first == snapshot


def test_zero_emissions_keeps_concentration():
    chain = ClimateChain()
    first = chain.step(0.0)
    second = chain.step(0.0)
    assert first["CO2_ppm"] == pytest.approx(second["CO2_ppm"])

    for _ in range(300):
        last = chain.step(0.0)
    assert last["Temperature_Anomaly"] == pytest.approx(last["Equilibrium_Temperature"], abs=1e-6)


def test_tipping_factor_bounds():
    params = ClimateParams()
    assert 1.0 < tipping_factor(0.0, params) < 1.01
    assert tipping_factor(params.tipping_threshold, params) == pytest.approx(1.125)
    assert tipping_factor(10.0, params) == pytest.approx(1.25, abs=1e-6)


def test_damage_bounded_and_regional():
    params = ClimateParams()
    for temperature in (0.0, 1.5, 3.0, 6.0, 20.0):
        for region, value in regional_damages(temperature, params).items():
            assert 0.0 <= value <= params.max_damage
    assert climate_damage(0.0, "oecd", params) == 0.0
    assert climate_damage(20.0, "row", params) == params.max_damage
    assert climate_damage(2.0, "row", params) > climate_damage(2.0, "oecd", params)


def test_global_damage_weighted():
    gdp = {"oecd": 60.0, "row": 40.0}
    damages = {"oecd": 0.01, "row": 0.05}
    assert global_damage(gdp, damages) == pytest.approx((0.6 + 2.0) / 100.0)
    assert global_damage({}, {}) == 0.0


def test_emission_accounting():
    generation = {"gas": 1000.0, "coal": 1000.0, "solar": 5000.0}
    intensity = {"gas": 400.0, "coal": 900.0}
    assert electricity_emissions(generation, intensity) == pytest.approx(1.3)
    assert fuel_emissions({"oil": 10000.0}, {"oil": 260.0}) == pytest.approx(2.6)
    assert math.isclose(fuel_emissions({}, {}), 0.0)


if __name__ == "__main__":
    test_concentration_and_equilibrium()
    test_lag_converges_to_equilibrium()
    test_chain_cumulates_emissions()
    test_step_returns_fresh_rows()
    test_zero_emissions_keeps_concentration()
    test_tipping_factor_bounds()
    test_damage_bounded_and_regional()
    test_global_damage_weighted()
    test_emission_accounting()
