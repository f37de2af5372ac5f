"""
Test Sensitivity Sweep

Baseline plus low/high runs per parameter, and the sensitivity summary.
"""

import pytest

from scenario import Scenario, ScenarioError, parameter_range
from sweep_harness import METRICS, _build_perturbations, _summarize, run_sweep


def test_perturbations_span_range():
    perturbations = _build_perturbations(["carbon_price"])
    lo, hi = parameter_range("carbon_price")
    assert [p.level for p in perturbations] == ["low", "high"]
    assert perturbations[0].value == pytest.approx(lo + 0.1 * (hi - lo))
    assert perturbations[1].value == pytest.approx(lo + 0.9 * (hi - lo))


def test_sweep_and_summary():
    print("=" * 80)
    print("SENSITIVITY SWEEP TEST")
    print("=" * 80)

    results = run_sweep(Scenario(end_year=2050), ["climate_sensitivity"])
    assert len(results) == 3
    assert list(results["level"]) == ["baseline", "low", "high"]
    assert set(METRICS) <= set(results.columns)

    summary = _summarize(results)
    print(summary.to_string(index=False))

    assert list(summary["parameter"]) == ["climate_sensitivity"]
    assert summary["warming_final_sensitivity"].iloc[0] > 0

    print("✓ Sweep test passed")


def test_unknown_parameter_rejected():
    with pytest.raises(ScenarioError):
        run_sweep(Scenario(end_year=2030), ["not_a_knob"])


if __name__ == "__main__":
    test_perturbations_span_range()
    test_sweep_and_summary()
    test_unknown_parameter_rejected()
