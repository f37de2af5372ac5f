"""
Scenario loading and parameter resolution.

A scenario document is JSON with four optional sections::

    {
      "name": "high_carbon_price",
      "description": "Carbon price doubled",
      "end_year": 2100,
      "params": {"carbon_price": 70},
      "overrides": {"climate": {"regional_damage": {"row": 2.0}}}
    }

``params`` holds flat Tier-1 knobs (see ``PARAMETER_SCHEMA``). ``overrides``
deep-merges onto the per-module parameter records: mappings merge key by key,
lists and scalars replace. Explicit Tier-1 values win over overrides.

Everything is resolved once, in :func:`apply_scenario`, into an immutable
:class:`EffectiveParams` record that the simulation reads.
"""

import copy
import json
import logging
import numbers
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from capacity import CapacityParams
from capital import CapitalParams
from climate import ClimateParams
from costs import SOURCES, EnergySourceParams, default_energy_sources
from demand import BurdenParams, DemandParams
from demographics import DemographicsParams
from dispatch import DispatchParams
from expansion import ExpansionParams
from resources import ResourceParams

logger = logging.getLogger(__name__)

START_YEAR = 2025
DEFAULT_END_YEAR = 2100
MAX_END_YEAR = 2200
DEFAULT_CARBON_PRICE = 35.0

OVERRIDE_SECTIONS = (
    "energy_sources", "capacity", "dispatch", "climate", "capital",
    "expansion", "demographics", "demand", "burden", "resources",
)
SCENARIO_KEYS = ("name", "description", "end_year", "params", "overrides")


class ScenarioError(ValueError):
    """Raised when a scenario document or parameter set is malformed."""


# ------------------------------------------------------------------ #
# Tier-1 parameter schema
# ------------------------------------------------------------------ #
# name: (record path, min, max, unit, description)
_TIER1: Dict[str, Tuple[Tuple[str, ...], float, float, str, str]] = {
    "carbon_price": (("carbon_price",), 0, 200, "$/ton CO2", "Carbon price applied to fossil generation and fuels"),
    "solar_alpha": (("energy_sources", "solar", "alpha"), 0.1, 0.5, "dimensionless",
                    "Solar learning exponent (Wright's law)"),
    "solar_growth": (("energy_sources", "solar", "growth_rate"), 0.05, 0.40, "fraction/yr",
                     "Desired annual solar capacity growth"),
    "electrification_target": (("demand", "electrification_target"), 0.40, 0.90, "fraction",
                               "Long-run electricity share of final energy"),
    "efficiency_multiplier": (("demand", "efficiency_multiplier"), 0.5, 2.0, "multiplier",
                              "Scales the energy-intensity decline rates"),
    "climate_sensitivity": (("climate", "climate_sensitivity"), 2.0, 4.5, "°C per doubling",
                            "Equilibrium climate sensitivity"),
    "wind_alpha": (("energy_sources", "wind", "alpha"), 0.1, 0.4, "dimensionless", "Wind learning exponent"),
    "wind_growth": (("energy_sources", "wind", "growth_rate"), 0.05, 0.30, "fraction/yr",
                    "Desired annual wind capacity growth"),
    "battery_alpha": (("energy_sources", "battery", "alpha"), 0.1, 0.4, "dimensionless",
                      "Battery learning exponent"),
    "nuclear_growth": (("energy_sources", "nuclear", "growth_rate"), 0.0, 0.10, "fraction/yr",
                       "Desired annual nuclear capacity growth"),
    "nuclear_cost0": (("energy_sources", "nuclear", "cost0"), 50, 150, "$/MWh", "Nuclear LCOE in 2025"),
    "hydro_growth": (("energy_sources", "hydro", "growth_rate"), 0.0, 0.05, "fraction/yr",
                     "Desired annual hydro capacity growth"),
    "damage_coeff": (("climate", "damage_coeff"), 0.001, 0.01, "fraction/°C²", "Quadratic damage coefficient"),
    "tipping_threshold": (("climate", "tipping_threshold"), 1.5, 4.0, "°C",
                          "Temperature at which damages amplify"),
    "nonelec_emissions_2025": (("climate", "nonelec_emissions_2025"), 15, 35, "Gt CO2/yr",
                               "Non-electric emissions in 2025, used by the feedback estimate"),
    "savings_working": (("capital", "savings_working"), 0.20, 0.60, "fraction",
                        "Savings rate of the working-age cohort"),
    "automation_growth": (("capital", "automation_growth"), 0.01, 0.10, "fraction/yr",
                          "Growth of the automation share of capital"),
    "stability_lambda": (("capital", "stability_lambda"), 0.5, 5.0, "dimensionless",
                         "Investment sensitivity to damage uncertainty"),
    "fertility_floor_multiplier": (("demographics", "fertility_floor_multiplier"), 0.5, 1.5, "multiplier",
                                   "Scales regional fertility floors"),
    "life_expectancy_growth": (("demographics", "life_expectancy_growth"), 0.0, 0.3, "years/yr",
                               "Annual life-expectancy gain"),
    "migration_multiplier": (("demographics", "migration_multiplier"), 0.0, 3.0, "multiplier",
                             "Scales regional net migration"),
    "mineral_learning_multiplier": (("resources", "mineral_learning_multiplier"), 0.5, 2.0, "multiplier",
                                    "Scales mineral intensity learning rates"),
    "glp1_max_penetration": (("resources", "food", "glp1_max_penetration"), 0.0, 0.40, "fraction",
                             "Long-run GLP-1 adoption share"),
    "yield_growth_rate": (("resources", "land", "yield_growth_rate"), 0.0, 0.03, "fraction/yr",
                          "Annual crop-yield improvement"),
}

PARAMETER_SCHEMA_NAMES = tuple(_TIER1)


def parameter_range(name: str) -> Tuple[float, float]:
    _, lo, hi, _, _ = _TIER1[name]
    return float(lo), float(hi)


PRIMARY_PARAMETERS = (
    "carbon_price", "solar_alpha", "solar_growth", "electrification_target",
    "efficiency_multiplier", "climate_sensitivity",
)


# ------------------------------------------------------------------ #
# Records
# ------------------------------------------------------------------ #
@dataclass(frozen=True)
class EffectiveParams:
    """Every parameter one run reads, resolved once before the run starts."""

    name: str = "default"
    description: str = ""
    start_year: int = START_YEAR
    end_year: int = DEFAULT_END_YEAR
    carbon_price: float = DEFAULT_CARBON_PRICE
    energy_sources: Dict[str, EnergySourceParams] = field(default_factory=default_energy_sources)
    capacity: CapacityParams = field(default_factory=CapacityParams)
    dispatch: DispatchParams = field(default_factory=DispatchParams)
    climate: ClimateParams = field(default_factory=ClimateParams)
    capital: CapitalParams = field(default_factory=CapitalParams)
    expansion: ExpansionParams = field(default_factory=ExpansionParams)
    demographics: DemographicsParams = field(default_factory=DemographicsParams)
    demand: DemandParams = field(default_factory=DemandParams)
    burden: BurdenParams = field(default_factory=BurdenParams)
    resources: ResourceParams = field(default_factory=ResourceParams)

    @property
    def years(self):
        return list(range(self.start_year, self.end_year + 1))

    def tier1(self) -> Dict[str, float]:
        """Resolved value of every Tier-1 parameter."""
        data = asdict(self)
        return {name: _get_path(data, entry[0]) for name, entry in _TIER1.items()}


@dataclass
class Scenario:
    name: str = "default"
    description: str = ""
    params: Dict[str, float] = field(default_factory=dict)
    overrides: Dict[str, Any] = field(default_factory=dict)
    end_year: int = DEFAULT_END_YEAR


def _get_path(data: Mapping, path: Tuple[str, ...]) -> Any:
    for key in path:
        data = data[key]
    return data


def _set_path(data: Dict, path: Tuple[str, ...], value: Any) -> None:
    for key in path[:-1]:
        data = data.setdefault(key, {})
    data[path[-1]] = value


def default_params_dict() -> Dict[str, Any]:
    """Plain-dict form of the default :class:`EffectiveParams`, minus identity fields."""
    data = asdict(EffectiveParams())
    for key in ("name", "description", "start_year", "end_year"):
        data.pop(key)
    return data


def describe_parameters() -> Dict[str, Any]:
    """Machine-readable description of Tier-1 inputs, outputs and the scenario format."""
    defaults = EffectiveParams().tier1()
    parameters = {}
    for name, (path, lo, hi, unit, description) in _TIER1.items():
        parameters[name] = {
            "type": "number",
            "default": defaults[name],
            "min": lo,
            "max": hi,
            "unit": unit,
            "tier": 1,
            "primary": name in PRIMARY_PARAMETERS,
            "path": ".".join(path),
            "description": description,
        }

    # Imported here to avoid a cycle; simulation imports this module
    from simulation import UNITS

    return {
        "parameters": parameters,
        "outputs": dict(UNITS),
        "scenario_format": {
            "name": "string",
            "description": "string",
            "end_year": f"integer, {START_YEAR + 1}-{MAX_END_YEAR}",
            "params": "mapping of Tier-1 parameter name to number",
            "overrides": {section: "mapping deep-merged onto the section's defaults"
                          for section in OVERRIDE_SECTIONS},
        },
    }


# ------------------------------------------------------------------ #
# Merging and loading
# ------------------------------------------------------------------ #
def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` onto ``base`` without mutating either.

    Nested mappings merge key by key; lists and scalars are replaced.
    """
    merged = copy.deepcopy(dict(base))
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def validate_params(params: Mapping[str, Any]) -> Dict[str, float]:
    """Check Tier-1 names and types; warn (not fail) on out-of-range values."""
    if not isinstance(params, Mapping):
        raise ScenarioError(f"'params' must be a mapping, got {type(params).__name__}")

    clean: Dict[str, float] = {}
    for name, value in params.items():
        if name not in _TIER1:
            raise ScenarioError(f"Unknown parameter '{name}'")
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            raise ScenarioError(f"Parameter '{name}' must be a number, got {value!r}")
        _, lo, hi, unit, _ = _TIER1[name]
        if not lo <= value <= hi:
            logger.warning(f"Parameter {name}={value} outside suggested range [{lo}, {hi}] {unit}")
        clean[name] = float(value)
    return clean


def scenario_from_dict(data: Mapping[str, Any]) -> Scenario:
    if not isinstance(data, Mapping):
        raise ScenarioError("Scenario document must be a JSON object")

    for key in data:
        if key not in SCENARIO_KEYS:
            logger.warning(f"Ignoring unrecognized scenario key '{key}'")

    overrides = data.get("overrides") or {}
    if not isinstance(overrides, Mapping):
        raise ScenarioError("'overrides' must be a mapping")
    for section, value in overrides.items():
        if section not in OVERRIDE_SECTIONS:
            raise ScenarioError(f"Unknown override section '{section}'")
        if not isinstance(value, Mapping):
            raise ScenarioError(f"Override section '{section}' must be a mapping")

    end_year = data.get("end_year", DEFAULT_END_YEAR)
    if isinstance(end_year, bool) or not isinstance(end_year, int) or not START_YEAR < end_year <= MAX_END_YEAR:
        raise ScenarioError(f"'end_year' must be an integer in ({START_YEAR}, {MAX_END_YEAR}], got {end_year!r}")

    return Scenario(
        name=str(data.get("name", "default")),
        description=str(data.get("description", "")),
        params=validate_params(data.get("params") or {}),
        overrides=copy.deepcopy(dict(overrides)),
        end_year=end_year,
    )


def load_scenario(source: Union[str, Path, Mapping[str, Any]]) -> Scenario:
    """Load a scenario from a JSON file path or an already-parsed mapping."""
    if isinstance(source, Mapping):
        return scenario_from_dict(source)

    path = Path(source)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ScenarioError(f"Cannot read scenario file {path}: {exc}") from exc
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ScenarioError(f"Invalid JSON in {path}: {exc}") from exc

    scenario = scenario_from_dict(data)
    logger.debug(f"Loaded scenario '{scenario.name}' from {path}")
    return scenario


def _check_types(data: Mapping[str, Any], defaults: Mapping[str, Any], path: Tuple[str, ...] = ()) -> None:
    """Compare merged values against the defaults' shape.

    Mappings must stay mappings and numbers must stay real numbers (``None``
    is allowed where the default is ``None``). Keys absent from the defaults
    are left to the record constructors.
    """
    for key, default in defaults.items():
        if key not in data:
            continue
        value = data[key]
        where = ".".join(path + (key,))
        if isinstance(default, Mapping):
            if not isinstance(value, Mapping):
                raise ScenarioError(f"Override '{where}' must be a mapping, got {value!r}")
            _check_types(value, default, path + (key,))
        elif default is None and value is None:
            continue
        elif isinstance(value, bool) or not isinstance(value, numbers.Real):
            raise ScenarioError(f"Override '{where}' must be a number, got {value!r}")


def _build(data: Dict[str, Any], scenario: Scenario) -> EffectiveParams:
    _check_types(data, default_params_dict())
    sources = data["energy_sources"]
    if set(sources) != set(SOURCES):
        raise ScenarioError(f"energy_sources must define exactly {sorted(SOURCES)}")
    try:
        return EffectiveParams(
            name=scenario.name,
            description=scenario.description,
            end_year=scenario.end_year,
            carbon_price=float(data["carbon_price"]),
            energy_sources={name: EnergySourceParams(**values) for name, values in sources.items()},
            capacity=CapacityParams(**data["capacity"]),
            dispatch=DispatchParams(**data["dispatch"]),
            climate=ClimateParams(**data["climate"]),
            capital=CapitalParams(**data["capital"]),
            expansion=ExpansionParams(**data["expansion"]),
            demographics=DemographicsParams.from_dict(data["demographics"]),
            demand=DemandParams.from_dict(data["demand"]),
            burden=BurdenParams(**data["burden"]),
            resources=ResourceParams.from_dict(data["resources"]),
        )
    except (TypeError, KeyError, AttributeError) as exc:
        raise ScenarioError(f"Invalid override in scenario '{scenario.name}': {exc}") from exc


def apply_scenario(scenario: Optional[Scenario] = None,
                   cli_params: Optional[Mapping[str, Any]] = None) -> EffectiveParams:
    """Resolve defaults, overrides, scenario params and CLI params (in that order)."""
    scenario = scenario or Scenario()
    explicit = dict(scenario.params)
    explicit.update(validate_params(cli_params or {}))

    data = deep_merge(default_params_dict(), scenario.overrides)
    for name, value in explicit.items():
        _set_path(data, _TIER1[name][0], value)

    params = _build(data, scenario)
    logger.debug(f"Resolved scenario '{params.name}' with {len(explicit)} explicit parameter(s)")
    return params
