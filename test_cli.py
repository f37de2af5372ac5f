"""
Test Command-Line Interface

Output formats, Tier-1 flags, schema description and error exit codes.
"""

import json

import pytest

from cli import CSV_COLUMNS, build_parser, main


@pytest.fixture
def short_scenario(tmp_path):
    path = tmp_path / "short.json"
    path.write_text(json.dumps({"name": "short", "end_year": 2035}))
    return str(path)


def test_parser_exposes_tier1_flags():
    args = build_parser().parse_args(["--carbon-price", "70", "--solar-alpha", "0.3"])
    assert args.carbon_price == 70.0
    assert args.solar_alpha == 0.3
    assert args.format == "summary"


def test_summary_output(short_scenario, capsys):
    assert main(["--scenario", short_scenario]) == 0
    out = capsys.readouterr().out
    assert "Energy Simulation Results (short)" in out
    assert "Warming by 2035" in out


def test_csv_output(short_scenario, tmp_path):
    output = tmp_path / "run.csv"
    assert main(["--scenario", short_scenario, "--format", "csv", "--output", str(output)]) == 0

    lines = output.read_text().strip().splitlines()
    assert lines[0].split(",") == list(CSV_COLUMNS.values())
    assert len(lines) == 1 + 11
    assert lines[1].startswith("2025")


def test_json_output(short_scenario, capsys):
    assert main(["--scenario", short_scenario, "--format", "json", "--carbon-price", "50"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["scenario"] == "short"
    assert payload["parameters"]["carbon_price"] == 50.0
    assert payload["years"][0] == 2025 and payload["years"][-1] == 2035
    assert len(payload["series"]["Temperature_Anomaly"]) == 11


def test_forecast_output(short_scenario, capsys):
    assert main(["--scenario", short_scenario, "--format", "forecast"]) == 0
    out = capsys.readouterr().out
    assert out.startswith("# Century Forecast")
    assert "| 2025-2029 |" in out
    assert "End-of-Century Summary" in out


def test_describe(capsys):
    assert main(["--describe"]) == 0
    schema = json.loads(capsys.readouterr().out)
    assert "carbon_price" in schema["parameters"]


def test_bad_scenario_returns_error(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"params": {"warp_drive": 1}}))
    assert main(["--scenario", str(bad)]) == 1
    assert main(["--scenario", str(tmp_path / "missing.json")]) == 1

    wrong_type = tmp_path / "wrong_type.json"
    wrong_type.write_text(json.dumps({"overrides": {"climate": {"climate_sensitivity": "3.0"}}}))
    assert main(["--scenario", str(wrong_type)]) == 1

    print("✓ CLI error handling test passed")


if __name__ == "__main__":
    test_parser_exposes_tier1_flags()
