"""
Test Full Simulation Runs

Verifies the integrated 2025-2100 loop:
1. One row per year, 2025 anchors (solar LCOE, capacities)
2. Energy conservation and penetration limits in every year's dispatch
3. Coal capacity declines every year
4. End-of-century warming in a plausible band
5. One-year lags: extraction, investment-limited capacity, GDP feedback
6. Determinism and the carbon-price response
7. Derived metrics, crossovers and era averages
"""

import functools
import logging

import numpy as np
import pandas as pd
import pytest

from capacity import investment_capacity
from costs import BOOTSTRAP_GENERATION_TWH, depletion
from demand import run_demand_model
from dispatch import DISPATCH_SOURCES
from scenario import Scenario, apply_scenario
from simulation import (REGION_LABELS, SOURCE_LABELS, find_crossovers, run_simulation, scenario_metrics,
                        value_at)


@functools.lru_cache(maxsize=None)
def _run(carbon_price=None, end_year=2100):
    cli = {"carbon_price": carbon_price} if carbon_price is not None else {}
    return run_simulation(apply_scenario(Scenario(end_year=end_year), cli))


def test_default_run_shape():
    print("=" * 80)
    print("DEFAULT SIMULATION TEST")
    print("=" * 80)

    result = _run()
    frame = result.frame

    print(f"\nYears: {frame['Year'].iloc[0]}-{frame['Year'].iloc[-1]} ({len(frame)} rows)")
    print(f"Warming 2100: {frame['Temperature_Anomaly'].iloc[-1]:.2f}°C")
    print(f"Emissions 2025: {frame['Emissions_Gt'].iloc[0]:.1f} Gt -> 2100: {frame['Emissions_Gt'].iloc[-1]:.1f} Gt")

    assert len(frame) == 76
    assert list(frame["Year"]) == list(range(2025, 2101))
    assert frame["LCOE_Solar"].iloc[0] == pytest.approx(35.0)
    assert frame["Capacity_Solar"].iloc[0] == pytest.approx(1500.0)
    assert not frame.isna().any().any()
    assert len(result.capacity) == 76

    print("✓ Default run shape test passed")


def test_dispatch_conserves_energy_every_year():
    frame = _run().frame
    generation = sum(frame[f"Gen_{SOURCE_LABELS[name]}"] for name in DISPATCH_SOURCES)
    np.testing.assert_allclose(generation + frame["Shortfall_TWh"], frame["Demand_TWh"], rtol=1e-9)

    solar = frame["Gen_Solar"] + frame["Gen_Solar_Plus_Battery"]
    assert (solar <= 0.8 * frame["Demand_TWh"] + 1e-6).all()
    assert (frame["Gen_Solar"] <= 0.4 * frame["Demand_TWh"] + 1e-6).all()
    assert (frame["Gen_Wind"] <= 0.35 * frame["Demand_TWh"] + 1e-6).all()
    assert (frame["Grid_Intensity"] >= 0).all()


def test_coal_capacity_strictly_decreasing():
    coal = _run().frame["Capacity_Coal"].to_numpy()
    assert (np.diff(coal) < 0).all()


def test_capacity_never_negative():
    capacity = _run().capacity.to_frame()
    assert (capacity >= 0).all().all()


def test_warming_in_plausible_band():
    warming = _run().frame["Temperature_Anomaly"].iloc[-1]
    assert 2.0 <= warming <= 3.5


def test_cumulative_emissions_include_land_use():
    result = _run()
    frame = result.frame
    expected = result.params.climate.cumulative_co2_2025 + frame["Emissions_Gt"].cumsum()
    np.testing.assert_allclose(frame["Cumulative_Emissions_Gt"], expected)
    np.testing.assert_allclose(
        frame["Emissions_Gt"],
        frame["Electricity_Emissions_Gt"] + frame["NonElectric_Emissions_Gt"] + frame["Land_Use_Emissions_Gt"])


def test_damages_are_bounded_fractions():
    frame = _run().frame
    for column in ("Global_Damage", "Damage_OECD", "Damage_China", "Damage_EM", "Damage_ROW"):
        assert ((frame[column] >= 0) & (frame[column] <= 0.30)).all()
    assert (frame["Net_GDP"] <= frame["Gross_GDP"]).all()


def test_extraction_lags_dispatch_by_one_year():
    result = _run()
    frame = result.frame

    for name, label in (("gas", "Gas"), ("coal", "Coal")):
        source = result.params.energy_sources[name]
        generation = frame[f"Gen_{label}"].to_numpy()
        # Year 0 extracts at the bootstrap rate; year t adds year t-1's dispatch
        drawn = np.concatenate([[BOOTSTRAP_GENERATION_TWH[name]], generation[:-1]])
        extracted = np.cumsum(drawn / BOOTSTRAP_GENERATION_TWH[name] * source.extraction_rate)
        expected = [depletion(source.reserves, value, source.eroei0).eroei for value in extracted]
        np.testing.assert_allclose(frame[f"{label}_EROEI"], expected, rtol=1e-9)


def test_capacity_follows_previous_year_investment():
    print("=" * 80)
    print("INVESTMENT LAG TEST")
    print("=" * 80)

    # Expensive solar so the investment budget is the binding limit every year
    scenario = Scenario(end_year=2040, overrides={"capacity": {"capex": {"solar": 100000.0}}})
    result = run_simulation(apply_scenario(scenario))
    frame = result.frame
    params = result.params
    history = result.capacity.history["solar"]

    for t in range(len(frame) - 1):
        affordable = investment_capacity(frame["Investment"].iloc[t], t + 1, params.capacity)["solar"]
        desired = frame["Capacity_Solar"].iloc[t] * params.energy_sources["solar"].growth_rate
        assert affordable < desired
        assert history.additions[t + 1] == pytest.approx(affordable)
        assert frame["Capacity_Solar"].iloc[t + 1] == pytest.approx(
            frame["Capacity_Solar"].iloc[t] + affordable - history.retirements[t + 1])

    print(f"\nSolar additions 2026: {history.additions[1]:.1f} GW, 2040: {history.additions[-1]:.1f} GW")
    print("✓ Investment lag test passed")


def test_feedback_gdp_reads_previous_year():
    result = _run()
    params = result.params
    first_pass = run_demand_model(result.demographics, params.demand, params.burden)

    gdp = result.demand.global_frame["GDP"].to_numpy()
    initial = first_pass.global_frame["GDP"].to_numpy()
    assert gdp[0] == pytest.approx(initial[0])
    assert (gdp[1:] < initial[1:]).all()

    # 2026 GDP carries exactly the 2025 estimate of damage and burden
    burden = result.estimate["Energy_Burden_Damage"].iloc[0]
    for region, frame in result.demand.regions.items():
        damage = result.estimate[f"Damage_{REGION_LABELS[region]}"].iloc[0]
        factor = ((1.0 - damage * params.demand.persistent_damage_fraction)
                  * (1.0 - burden * params.burden.persistent_fraction))
        assert frame["GDP"].iloc[0] == pytest.approx(first_pass.regions[region]["GDP"].iloc[0])
        assert frame["GDP"].iloc[1] == pytest.approx(first_pass.regions[region]["GDP"].iloc[1] * factor)


def test_deterministic():
    params = apply_scenario(Scenario(end_year=2050))
    first = run_simulation(params).frame
    second = run_simulation(params).frame
    pd.testing.assert_frame_equal(first, second)


def test_carbon_price_response():
    print("=" * 80)
    print("CARBON PRICE TEST")
    print("=" * 80)

    low = _run(35.0).frame
    high = _run(70.0).frame

    assert high["LCOE_Gas"].iloc[0] - low["LCOE_Gas"].iloc[0] == pytest.approx(14.0)
    assert high["LCOE_Coal"].iloc[0] - low["LCOE_Coal"].iloc[0] == pytest.approx(31.5)
    assert high["LCOE_Solar"].iloc[0] == pytest.approx(low["LCOE_Solar"].iloc[0])

    t_low = low["Temperature_Anomaly"].iloc[-1]
    t_high = high["Temperature_Anomaly"].iloc[-1]
    print(f"\nWarming 2100: ${35}/t -> {t_low:.3f}°C, ${70}/t -> {t_high:.3f}°C")
    assert t_high <= t_low + 1e-9

    print("✓ Carbon price test passed")


def test_short_horizon():
    result = _run(end_year=2040)
    assert len(result.frame) == 16
    metrics = scenario_metrics(result)
    assert metrics["end_year"] == 2040
    assert metrics["temperature_2050"] is None
    assert metrics["temperature_2025"] == pytest.approx(result.frame["Temperature_Anomaly"].iloc[0])


def test_metrics_and_crossovers():
    result = _run()
    metrics = scenario_metrics(result)

    assert metrics["scenario"] == "default"
    assert metrics["warming_final"] == pytest.approx(result.frame["Temperature_Anomaly"].iloc[-1])
    assert 2025 <= metrics["peak_emissions_year"] <= 2100
    assert metrics["pop_peak"] > 8e9
    assert metrics["capital_output_ratio_2025"] == pytest.approx(420.0 / result.frame["Gross_GDP"].iloc[0])
    assert "temperature_era_2025-2029" in metrics
    assert value_at(result.frame, "Year", 2050) == 2050.0

    for crossover in find_crossovers(result.frame):
        assert 2026 <= crossover.year <= 2100
        assert metrics[f"{crossover.event}_year"] == crossover.year

    print("✓ Metrics test passed")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    test_default_run_shape()
    test_dispatch_conserves_energy_every_year()
    test_coal_capacity_strictly_decreasing()
    test_capacity_never_negative()
    test_warming_in_plausible_band()
    test_cumulative_emissions_include_land_use()
    test_damages_are_bounded_fractions()
    test_extraction_lags_dispatch_by_one_year()
    test_capacity_follows_previous_year_investment()
    test_feedback_gdp_reads_previous_year()
    test_deterministic()
    test_carbon_price_response()
    test_short_horizon()
    test_metrics_and_crossovers()
