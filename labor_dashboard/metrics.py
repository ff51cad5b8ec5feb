"""Headline metrics: population, labor-force participation, fertility and
dependency ratio, each with a year-over-year trend.

All functions take frames already restricted to the scope's countries
(see :func:`labor_dashboard.scope.filter_geo`) and a target year.  Any
zero denominator resolves to ``0`` so no NaN ever reaches the payload.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from typing import Dict, Optional, Tuple

import pandas as pd

from .config import (
    AGE_TOTAL,
    DEPENDENT_AGE_BANDS,
    LABOR_FORCE_UNIT,
    LABOR_SEXES,
    METRIC_LABELS,
    SEX_TOTAL,
    WORKING_AGE_BANDS,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def rows_for_year(df: pd.DataFrame, year: Optional[int]) -> pd.DataFrame:
    """Rows of ``df`` whose ``year`` equals ``year`` (none when year is None)."""
    if year is None or df.empty:
        return df.iloc[0:0]
    mask = df["year"].eq(year).fillna(False).astype(bool)
    return df.loc[mask]


def safe_ratio(numerator: float, denominator: float) -> float:
    if not denominator or pd.isna(denominator):
        return 0.0
    return float(numerator) / float(denominator)


def percent_change(current: float, previous: Optional[float]) -> float:
    """Signed percent change; ``0`` when the base is zero or missing."""
    if previous is None or pd.isna(previous) or previous == 0:
        return 0.0
    return (float(current) - float(previous)) / float(previous) * 100


def to_number(value) -> Optional[float]:
    """Convert pandas/numpy scalars to a JSON-safe float (NaN -> None)."""
    if value is None or pd.isna(value):
        return None
    number = float(value)
    return None if math.isnan(number) else number


def format_count(value: float) -> str:
    if value >= 1_000_000_000:
        return f"{value / 1_000_000_000:.1f}B"
    if value >= 1_000_000:
        return f"{value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"{value / 1_000:.1f}K"
    return f"{value:.0f}"


def format_percent(value: float) -> str:
    return f"{value:.1f}%"


def format_rate(value: float) -> str:
    return f"{value:.2f}"


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------


def total_population(population: pd.DataFrame, year: Optional[int]) -> float:
    df = rows_for_year(population, year)
    mask = (df["sex"] == SEX_TOTAL) & (df["age"] == AGE_TOTAL)
    return float(df.loc[mask, "population"].sum())


def working_age_population(population: pd.DataFrame, year: Optional[int]) -> float:
    """Working-age population summed over ``sex='Total'`` rows."""
    df = rows_for_year(population, year)
    mask = (df["sex"] == SEX_TOTAL) & df["age"].isin(WORKING_AGE_BANDS)
    return float(df.loc[mask, "population"].sum())


def total_labor_force(labor: pd.DataFrame, year: Optional[int]) -> float:
    """Labor force of both sexes in persons (stored in thousands)."""
    df = rows_for_year(labor, year)
    df = df[df["sex"].isin(LABOR_SEXES)]
    return float(df["labour_force"].sum()) * LABOR_FORCE_UNIT


def labor_force_rate(
    population: pd.DataFrame, labor: pd.DataFrame, year: Optional[int]
) -> float:
    """Participation rate in percent.

    The numerator sums both sexes' labor force while the denominator is
    the ``sex='Total'`` working-age population.
    """
    return (
        safe_ratio(
            total_labor_force(labor, year),
            working_age_population(population, year),
        )
        * 100
    )


def fertility_mean(fertility: pd.DataFrame, year: Optional[int]) -> Tuple[float, int]:
    """Unweighted mean fertility rate and the number of rates it averages."""
    rates = rows_for_year(fertility, year)["fertility_rate"].dropna()
    if rates.empty:
        return 0.0, 0
    return float(rates.mean()), int(rates.size)


def dependency_ratios(population: pd.DataFrame, year: Optional[int]) -> pd.Series:
    """Per-country dependency ratio (dependent / working-age * 100).

    Only countries with at least one ``sex='Total'`` age-band row for the
    year appear.  A country without working-age population gets ``0``.
    """
    df = rows_for_year(population, year)
    bands = WORKING_AGE_BANDS + DEPENDENT_AGE_BANDS
    df = df[(df["sex"] == SEX_TOTAL) & df["age"].isin(bands)]
    if df.empty:
        return pd.Series(dtype=float, name="dependency_ratio")

    df = df.assign(
        working=df["population"].where(df["age"].isin(WORKING_AGE_BANDS), 0),
        dependent=df["population"].where(df["age"].isin(DEPENDENT_AGE_BANDS), 0),
    )
    grouped = df.groupby("geo")[["working", "dependent"]].sum()
    ratios = [
        safe_ratio(row.dependent, row.working) * 100
        for row in grouped.itertuples()
    ]
    return pd.Series(ratios, index=grouped.index, dtype=float, name="dependency_ratio")


def dependency_mean(population: pd.DataFrame, year: Optional[int]) -> Tuple[float, int]:
    """Mean of per-country dependency ratios (not a pooled ratio)."""
    ratios = dependency_ratios(population, year)
    if ratios.empty:
        return 0.0, 0
    return float(ratios.mean()), int(ratios.size)


def _mean_trend(current: Tuple[float, int], previous: Tuple[float, int]) -> float:
    if not current[1] or not previous[1]:
        return 0.0
    return percent_change(current[0], previous[0])


# ---------------------------------------------------------------------------
# Metric results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MetricResult:
    label: str
    value: str
    trend: float
    rawValue: float

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


def compute_metrics(
    population: pd.DataFrame,
    labor: pd.DataFrame,
    fertility: pd.DataFrame,
    year: Optional[int],
) -> Dict[str, MetricResult]:
    """Compute the four headline metrics for ``year`` against ``year - 1``."""
    prev = year - 1 if year is not None else None

    pop_now = total_population(population, year)
    pop_prev = total_population(population, prev)

    lfr_now = labor_force_rate(population, labor, year)
    lfr_prev = labor_force_rate(population, labor, prev)

    fert_now = fertility_mean(fertility, year)
    fert_prev = fertility_mean(fertility, prev)

    dep_now = dependency_mean(population, year)
    dep_prev = dependency_mean(population, prev)

    logger.debug(
        "Metrics for %s: population=%s rate=%.3f fertility=%.3f dependency=%.3f",
        year,
        pop_now,
        lfr_now,
        fert_now[0],
        dep_now[0],
    )

    return {
        "populationTotal": MetricResult(
            label=METRIC_LABELS["populationTotal"],
            value=format_count(pop_now),
            trend=percent_change(pop_now, pop_prev),
            rawValue=pop_now,
        ),
        "laborForceRate": MetricResult(
            label=METRIC_LABELS["laborForceRate"],
            value=format_percent(lfr_now),
            trend=percent_change(lfr_now, lfr_prev),
            rawValue=lfr_now,
        ),
        "fertilityRate": MetricResult(
            label=METRIC_LABELS["fertilityRate"],
            value=format_rate(fert_now[0]),
            trend=_mean_trend(fert_now, fert_prev),
            rawValue=fert_now[0],
        ),
        "dependencyRatio": MetricResult(
            label=METRIC_LABELS["dependencyRatio"],
            value=format_percent(dep_now[0]),
            trend=_mean_trend(dep_now, dep_prev),
            rawValue=dep_now[0],
        ),
    }
