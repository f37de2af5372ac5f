import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

START_YEAR = 2025

YOUNG_MORTALITY = 0.001
WORKING_MORTALITY = 0.003
YOUNG_COHORT_YEARS = 20.0
WORKING_COHORT_YEARS = 45.0


@dataclass(frozen=True)
class RegionDemographics:
    pop2025: float
    fertility: float  # TFR in 2025
    fertility_floor: float  # Long-term convergence target
    fertility_decay: float  # Annual convergence rate
    life_expectancy: float
    young: float  # 0-19 share
    working: float  # 20-64 share
    old: float  # 65+ share
    migration_rate: float  # Net migration as fraction of population


@dataclass(frozen=True)
class EducationParams:
    enrollment_2025: float
    enrollment_target: float
    enrollment_growth: float
    college_share_2025: float  # Share of workers with a degree
    wage_premium_2025: float
    premium_target: float
    premium_decay: float
    life_bonus_college: float  # Years
    life_penalty_noncollege: float


def _default_regions() -> Dict[str, RegionDemographics]:
    return {
        "oecd": RegionDemographics(1.4e9, 1.6, 1.4, 0.005, 82.0, 0.18, 0.59, 0.23, 0.003),
        "china": RegionDemographics(1.4e9, 1.05, 0.85, 0.012, 78.0, 0.16, 0.68, 0.16, 0.0),
        "em": RegionDemographics(3.5e9, 2.1, 1.4, 0.02, 72.0, 0.27, 0.63, 0.10, -0.001),
        "row": RegionDemographics(2.0e9, 3.5, 1.6, 0.03, 65.0, 0.40, 0.54, 0.06, -0.001),
    }


def _default_education() -> Dict[str, EducationParams]:
    return {
        "oecd": EducationParams(0.55, 0.65, 0.008, 0.40, 1.5, 1.4, 0.003, 3.0, 3.0),
        "china": EducationParams(0.60, 0.70, 0.012, 0.22, 1.8, 1.5, 0.004, 2.0, 2.0),
        "em": EducationParams(0.35, 0.55, 0.015, 0.18, 2.0, 1.6, 0.005, 2.0, 2.0),
        "row": EducationParams(0.15, 0.40, 0.020, 0.08, 2.2, 1.7, 0.006, 1.0, 1.0),
    }


@dataclass(frozen=True)
class DemographicsParams:
    regions: Dict[str, RegionDemographics] = field(default_factory=_default_regions)
    education: Dict[str, EducationParams] = field(default_factory=_default_education)
    fertility_floor_multiplier: float = 1.0
    migration_multiplier: float = 1.0
    life_expectancy_growth: float = 0.1  # Years gained per year
    migrant_working_share: float = 0.8
    migrant_college_share: float = 0.7
    migrant_young_share: float = 0.15
    migrant_old_share: float = 0.05

    @classmethod
    def from_dict(cls, data: Dict) -> "DemographicsParams":
        data = dict(data)
        data["regions"] = {k: RegionDemographics(**v) for k, v in data["regions"].items()}
        data["education"] = {k: EducationParams(**v) for k, v in data["education"].items()}
        return cls(**data)


@dataclass
class DemographicsData:
    years: List[int]
    regions: Dict[str, pd.DataFrame]
    global_frame: pd.DataFrame

    def population_peak(self) -> Dict[str, float]:
        pop = self.global_frame["Population"]
        idx = int(pop.to_numpy().argmax())
        return {"year": self.years[idx], "population": float(pop.iloc[idx])}


@dataclass
class _RegionState:
    young: float  # Absolute persons
    working_college: float
    working_noncollege: float
    old_college: float
    old_noncollege: float
    life_expectancy: float

    @property
    def working(self) -> float:
        return self.working_college + self.working_noncollege

    @property
    def old(self) -> float:
        return self.old_college + self.old_noncollege

    @property
    def population(self) -> float:
        return self.young + self.working + self.old


# ------------------------------------------------------------------ #
# Projections
# ------------------------------------------------------------------ #
def project_fertility(tfr0: float, floor: float, decay: float, t: int) -> float:
    return floor + (tfr0 - floor) * math.exp(-decay * t)


def project_enrollment(edu: EducationParams, t: int) -> float:
    return edu.enrollment_target - (edu.enrollment_target - edu.enrollment_2025) * math.exp(-edu.enrollment_growth * t)


def project_wage_premium(edu: EducationParams, t: int) -> float:
    return edu.premium_target + (edu.wage_premium_2025 - edu.premium_target) * math.exp(-edu.premium_decay * t)


def birth_rate(tfr: float, young_share: float, working_share: float) -> float:
    """Crude birth rate; women 15-49 approximated from the young and working cohorts."""
    women_childbearing = young_share * 0.25 + working_share * 0.65
    return tfr * women_childbearing * 0.5 / 32.0


def _age_region(state: _RegionState, tfr: float, t: int, edu: EducationParams,
                migration_rate: float, params: DemographicsParams) -> _RegionState:
    pop = state.population
    if pop <= 0:
        return state

    births = birth_rate(tfr, state.young / pop, state.working / pop) * pop
    aging_young = state.young / YOUNG_COHORT_YEARS
    aging_working = state.working / WORKING_COHORT_YEARS
    young_deaths = state.young * YOUNG_MORTALITY
    working_deaths = state.working * WORKING_MORTALITY

    enrollment = project_enrollment(edu, t)
    college_of_working = state.working_college / state.working if state.working > 0 else 0.5

    # Elderly mortality differs by education
    remaining_base = max(15.0, state.life_expectancy - 55.0)
    remaining_college = remaining_base + edu.life_bonus_college * 0.5
    remaining_noncollege = max(10.0, remaining_base - edu.life_penalty_noncollege * 0.5)
    old_deaths_college = min(state.old_college / remaining_college, state.old_college)
    old_deaths_noncollege = min(state.old_noncollege / remaining_noncollege, state.old_noncollege)

    working_college = max(0.0, state.working_college + aging_young * enrollment
                          - aging_working * college_of_working - working_deaths * college_of_working)
    working_noncollege = max(0.0, state.working_noncollege + aging_young * (1 - enrollment)
                             - aging_working * (1 - college_of_working) - working_deaths * (1 - college_of_working))
    old_college = max(0.0, state.old_college + aging_working * college_of_working - old_deaths_college)
    old_noncollege = max(0.0, state.old_noncollege + aging_working * (1 - college_of_working) - old_deaths_noncollege)
    young = max(0.0, state.young + births - aging_young - young_deaths)

    migration = pop * migration_rate
    working_migrants = migration * params.migrant_working_share
    old_migrants = migration * params.migrant_old_share

    return _RegionState(
        young=young + migration * params.migrant_young_share,
        working_college=working_college + working_migrants * params.migrant_college_share,
        working_noncollege=working_noncollege + working_migrants * (1 - params.migrant_college_share),
        old_college=old_college + old_migrants * 0.5,
        old_noncollege=old_noncollege + old_migrants * 0.5,
        life_expectancy=state.life_expectancy,
    )


def run_demographics(params: Optional[DemographicsParams] = None,
                     start_year: int = START_YEAR, end_year: int = 2100) -> DemographicsData:
    """Project regional cohorts and education from ``start_year`` to ``end_year`` inclusive."""
    params = params or DemographicsParams()
    years = list(range(start_year, end_year + 1))

    states: Dict[str, _RegionState] = {}
    for region, demo in params.regions.items():
        edu = params.education[region]
        working = demo.pop2025 * demo.working
        old = demo.pop2025 * demo.old
        states[region] = _RegionState(
            young=demo.pop2025 * demo.young,
            working_college=working * edu.college_share_2025,
            working_noncollege=working * (1 - edu.college_share_2025),
            old_college=old * edu.college_share_2025 * 0.5,
            old_noncollege=old * (1 - edu.college_share_2025 * 0.5),
            life_expectancy=demo.life_expectancy,
        )

    rows: Dict[str, List[Dict[str, float]]] = {region: [] for region in params.regions}
    for t, year in enumerate(years):
        for region, demo in params.regions.items():
            edu = params.education[region]
            state = states[region]
            floor = demo.fertility_floor * params.fertility_floor_multiplier
            tfr = project_fertility(demo.fertility, floor, demo.fertility_decay, t)
            premium = project_wage_premium(edu, t)
            working = state.working

            rows[region].append({
                "Year": year,
                "Population": state.population,
                "Young": state.young,
                "Working": working,
                "Old": state.old,
                "Fertility": tfr,
                "Dependency": state.old / working if working > 0 else 0.0,
                "Working_College": state.working_college,
                "Working_NonCollege": state.working_noncollege,
                "Old_College": state.old_college,
                "Old_NonCollege": state.old_noncollege,
                "College_Share": state.working_college / working if working > 0 else 0.0,
                "Enrollment_Rate": project_enrollment(edu, t),
                "Wage_Premium": premium,
                "Effective_Workers": state.working_noncollege + state.working_college * premium,
                "Life_Expectancy": state.life_expectancy,
            })

            if year < years[-1]:
                migration_rate = demo.migration_rate * params.migration_multiplier
                aged = _age_region(state, tfr, t, edu, migration_rate, params)
                aged.life_expectancy = demo.life_expectancy + (t + 1) * params.life_expectancy_growth
                states[region] = aged

    regions = {region: pd.DataFrame(region_rows) for region, region_rows in rows.items()}

    summed = ["Population", "Young", "Working", "Old", "Working_College", "Working_NonCollege",
              "Old_College", "Old_NonCollege", "Effective_Workers"]
    global_frame = sum(frame[summed] for frame in regions.values())
    global_frame.insert(0, "Year", years)
    working = global_frame["Working"].to_numpy()
    with np.errstate(divide="ignore", invalid="ignore"):
        global_frame["Dependency"] = np.where(working > 0, global_frame["Old"].to_numpy() / working, 0.0)
        global_frame["College_Share"] = np.where(
            working > 0, global_frame["Working_College"].to_numpy() / working, 0.0)

    return DemographicsData(years=years, regions=regions, global_frame=global_frame)
