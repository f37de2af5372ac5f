"""
Test Scenario Resolution

1. Deep merge: mappings merge, lists and scalars replace, inputs untouched
2. Loading from JSON files with clear errors for bad input
3. Precedence: defaults < overrides < scenario params < CLI params
4. Parameter schema description
"""

import json
import logging

import pytest

from scenario import (PARAMETER_SCHEMA_NAMES, PRIMARY_PARAMETERS, EffectiveParams, Scenario, ScenarioError,
                      apply_scenario, deep_merge, default_params_dict, describe_parameters, load_scenario,
                      validate_params)


def test_deep_merge_semantics():
    base = {"a": {"x": 1, "y": [1, 2, 3]}, "b": 2}
    override = {"a": {"y": [9]}, "c": 3}
    merged = deep_merge(base, override)

    assert merged == {"a": {"x": 1, "y": [9]}, "b": 2, "c": 3}
    assert base["a"]["y"] == [1, 2, 3]

    merged["a"]["x"] = 100
    assert base["a"]["x"] == 1


def test_default_resolution():
    params = apply_scenario()
    assert isinstance(params, EffectiveParams)
    assert params.carbon_price == 35.0
    assert params.years[0] == 2025 and params.years[-1] == 2100
    assert len(params.tier1()) == len(PARAMETER_SCHEMA_NAMES)
    assert params.tier1()["solar_alpha"] == pytest.approx(0.36)


def test_defaults_not_mutated_between_runs():
    apply_scenario(Scenario(params={"climate_sensitivity": 4.5},
                            overrides={"climate": {"regional_damage": {"row": 3.0}}}))
    fresh = apply_scenario()
    assert fresh.climate.climate_sensitivity == 3.0
    assert fresh.climate.regional_damage["row"] == 1.8
    assert default_params_dict()["climate"]["regional_damage"]["row"] == 1.8


def test_overrides_and_precedence():
    scenario = load_scenario({
        "name": "mixed",
        "params": {"carbon_price": 70},
        "overrides": {
            "climate": {"regional_damage": {"row": 2.5}, "climate_sensitivity": 4.0},
            "energy_sources": {"solar": {"cost0": 30.0}},
        },
    })
    params = apply_scenario(scenario)
    assert params.name == "mixed"
    assert params.carbon_price == 70.0
    assert params.climate.regional_damage["row"] == 2.5
    assert params.climate.regional_damage["oecd"] == 0.8
    assert params.climate.climate_sensitivity == 4.0
    assert params.energy_sources["solar"].cost0 == 30.0
    assert params.energy_sources["solar"].alpha == pytest.approx(0.36)

    # Explicit Tier-1 value beats the override; CLI beats the scenario
    scenario.params["climate_sensitivity"] = 2.5
    params = apply_scenario(scenario, {"carbon_price": 100.0})
    assert params.climate.climate_sensitivity == 2.5
    assert params.carbon_price == 100.0


def test_load_from_file(tmp_path):
    path = tmp_path / "scenario.json"
    path.write_text(json.dumps({"name": "file", "end_year": 2060, "params": {"solar_growth": 0.3}}))
    scenario = load_scenario(str(path))
    assert scenario.name == "file"
    assert scenario.end_year == 2060
    assert apply_scenario(scenario).energy_sources["solar"].growth_rate == 0.3


def test_load_errors(tmp_path):
    with pytest.raises(ScenarioError):
        load_scenario(str(tmp_path / "missing.json"))

    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    with pytest.raises(ScenarioError):
        load_scenario(str(bad))

    with pytest.raises(ScenarioError):
        load_scenario({"params": {"not_a_parameter": 1}})
    with pytest.raises(ScenarioError):
        load_scenario({"params": {"carbon_price": "high"}})
    with pytest.raises(ScenarioError):
        load_scenario({"overrides": {"weather": {}}})
    with pytest.raises(ScenarioError):
        load_scenario({"end_year": 2025})
    listing = tmp_path / "list.json"
    listing.write_text("[1, 2, 3]")
    with pytest.raises(ScenarioError):
        load_scenario(str(listing))


def test_bad_override_field():
    scenario = load_scenario({"overrides": {"climate": {"no_such_field": 1.0}}})
    with pytest.raises(ScenarioError):
        apply_scenario(scenario)

    scenario = load_scenario({"overrides": {"energy_sources": {"geothermal": {"cost0": 60.0}}}})
    with pytest.raises(ScenarioError):
        apply_scenario(scenario)

    # Wrong-typed leaves fail at resolution, before any year runs
    scenario = load_scenario({"overrides": {"climate": {"climate_sensitivity": "3.0"}}})
    with pytest.raises(ScenarioError, match="climate.climate_sensitivity"):
        apply_scenario(scenario)

    scenario = load_scenario({"overrides": {"capacity": {"capex": 5}}})
    with pytest.raises(ScenarioError, match="capacity.capex"):
        apply_scenario(scenario)

    scenario = load_scenario({"overrides": {"energy_sources": {"gas": {"reserves": True}}}})
    with pytest.raises(ScenarioError, match="energy_sources.gas.reserves"):
        apply_scenario(scenario)

    scenario = load_scenario({"overrides": {"dispatch": {"max_penetration": {"wind": None}}}})
    with pytest.raises(ScenarioError, match="dispatch.max_penetration.wind"):
        apply_scenario(scenario)


def test_well_typed_overrides_accepted():
    scenario = load_scenario({"overrides": {
        "capacity": {"lifetime": {"solar": 25}},
        "energy_sources": {"solar": {"eroei0": None}},
    }})
    params = apply_scenario(scenario)
    assert params.capacity.lifetime["solar"] == 25
    assert params.energy_sources["solar"].eroei0 is None


def test_out_of_range_warns(caplog):
    with caplog.at_level(logging.WARNING, logger="scenario"):
        clean = validate_params({"carbon_price": 500})
    assert clean["carbon_price"] == 500.0
    assert "outside suggested range" in caplog.text

    with pytest.raises(ScenarioError):
        validate_params({"carbon_price": True})


def test_describe_parameters():
    schema = describe_parameters()
    params = schema["parameters"]

    assert set(params) == set(PARAMETER_SCHEMA_NAMES)
    for name in PRIMARY_PARAMETERS:
        assert params[name]["primary"] is True
    assert params["carbon_price"]["default"] == 35.0
    assert params["carbon_price"]["min"] == 0
    assert "Temperature_Anomaly" in schema["outputs"]
    assert "overrides" in schema["scenario_format"]

    json.dumps(schema)
    print("✓ Parameter schema serializes")


if __name__ == "__main__":
    test_deep_merge_semantics()
    test_default_resolution()
    test_defaults_not_mutated_between_runs()
    test_overrides_and_precedence()
    test_bad_override_field()
    test_well_typed_overrides_accepted()
    test_describe_parameters()
