"""Chart-ready series for the dashboard.

Reshapes the scoped population, labor, fertility and geo tables into the
lists of plain dicts the presentation layer plots: fertility trend, labor
force by gender, population pyramid, dependency ratio by country, the
labor-force distribution map and the selector lists.
"""

from __future__ import annotations

from typing import Dict, List, Optional

import pandas as pd

from .config import (
    AGE_BANDS,
    AGE_TOTAL,
    LABOR_FORCE_UNIT,
    LABOR_SEXES,
    SEX_FEMALES,
    SEX_MALES,
    SEX_TOTAL,
    TOP_LABOR_FORCE_COUNTRIES,
    UNKNOWN_REGION,
    WORKING_AGE_BANDS,
)
from .metrics import dependency_ratios, rows_for_year, to_number
from .scope import Scope

Series = List[Dict[str, object]]


def _short_age_label(band: str) -> str:
    return band.replace("From ", "").replace(" years", "")


def _text_or(value, default: Optional[str]) -> Optional[str]:
    if value is None or pd.isna(value):
        return default
    return str(value)


def _country_rows(df: pd.DataFrame, scope: Scope) -> pd.DataFrame:
    if scope.single_country:
        return df[df["geo"] == scope.country]
    return df


# ---------------------------------------------------------------------------
# Time series
# ---------------------------------------------------------------------------


def fertility_trend_series(fertility: pd.DataFrame, scope: Scope) -> Series:
    """One ``{year, rate}`` point per year, ascending.

    Across several countries the rate is the unweighted mean of the
    countries reporting that year; a year nobody reports gets ``None``.
    """
    df = _country_rows(fertility, scope).dropna(subset=["year"])
    if df.empty:
        return []

    grouped = df.groupby("year")["fertility_rate"].agg(["mean", "count"])
    return [
        {
            "year": int(year),
            "rate": to_number(row["mean"]) if row["count"] > 0 else None,
        }
        for year, row in grouped.sort_index().iterrows()
    ]


def labor_force_by_gender_series(
    population: pd.DataFrame, labor: pd.DataFrame, scope: Scope
) -> Series:
    """Participation rate per year for males and females.

    Each country's rate is ``labour_force * 1000 / working-age population``
    of the same sex; the year's value is the mean over countries, leaving
    out countries whose working-age population is zero.
    """
    lab = _country_rows(labor, scope)
    lab = lab[lab["sex"].isin(LABOR_SEXES)].dropna(subset=["year"])
    if lab.empty:
        return []

    numer = (
        lab.groupby(["year", "geo", "sex"], as_index=False)["labour_force"].sum()
    )
    numer["labour_force"] = numer["labour_force"] * LABOR_FORCE_UNIT

    pop = _country_rows(population, scope)
    pop = pop[pop["sex"].isin(LABOR_SEXES) & pop["age"].isin(WORKING_AGE_BANDS)]
    denom = (
        pop.dropna(subset=["year"])
        .groupby(["year", "geo", "sex"], as_index=False)["population"]
        .sum()
        .rename(columns={"population": "working_age"})
    )

    merged = numer.merge(denom, on=["year", "geo", "sex"], how="left")
    merged = merged[merged["working_age"].fillna(0) > 0]
    merged = merged.assign(
        rate=merged["labour_force"] / merged["working_age"] * 100
    )
    rates = merged.groupby(["year", "sex"])["rate"].mean()

    series: Series = []
    for year in sorted(numer["year"].unique()):
        point: Dict[str, object] = {"year": int(year)}
        for sex, key in ((SEX_MALES, "male"), (SEX_FEMALES, "female")):
            point[key] = to_number(rates.get((year, sex)))
        series.append(point)
    return series


# ---------------------------------------------------------------------------
# Single-year views
# ---------------------------------------------------------------------------


def population_pyramid_series(
    population: pd.DataFrame, scope: Scope, year: Optional[int]
) -> Series:
    """Male/female population per canonical age band for one year.

    Across several countries each band is divided by the number of
    countries reporting that band; a single country keeps raw counts.
    Male values are negated for mirrored bars.
    """
    df = rows_for_year(_country_rows(population, scope), year)
    df = df[df["sex"].isin((SEX_MALES, SEX_FEMALES)) & df["age"].isin(AGE_BANDS)]
    if df.empty:
        return []

    sums = df.groupby(["age", "sex"])["population"].sum()
    contributors = df.groupby("age")["geo"].nunique()

    series: Series = []
    for band in AGE_BANDS:
        divisor = 1 if scope.single_country else int(contributors.get(band, 0))
        male = float(sums.get((band, SEX_MALES), 0.0))
        female = float(sums.get((band, SEX_FEMALES), 0.0))
        if divisor:
            male, female = male / divisor, female / divisor
        else:
            male, female = 0.0, 0.0
        series.append(
            {
                "age": _short_age_label(band),
                "ageBand": band,
                "male": -male if male else 0.0,
                "female": female,
                "country": scope.country,
                "year": int(year),
            }
        )
    return series


def dependency_ratio_series(
    population: pd.DataFrame, geo: pd.DataFrame, year: Optional[int]
) -> Series:
    """Per-country dependency ratio with coordinates, highest first.

    Every in-scope geo record gets a point; one without population rows
    for the year reads ``0``.  The full sorted list is returned; callers
    slice the top N they show.
    """
    ratios = dependency_ratios(population, year)
    geo_lookup = geo.dropna(subset=["geo"]).drop_duplicates(subset=["geo"]).set_index("geo")
    codes = list(geo_lookup.index) + [
        code for code in ratios.index if code not in geo_lookup.index
    ]

    series: Series = []
    for code in codes:
        info = geo_lookup.loc[code] if code in geo_lookup.index else None
        series.append(
            {
                "country": str(code),
                "region": _text_or(
                    info["un_region"] if info is not None else None, UNKNOWN_REGION
                ),
                "dependencyRatio": float(ratios.get(code, 0.0)),
                "year": int(year) if year is not None else None,
                "latitude": to_number(info["latitude"]) if info is not None else None,
                "longitude": to_number(info["longitude"]) if info is not None else None,
            }
        )
    series.sort(key=lambda item: (-item["dependencyRatio"], item["country"]))
    return series


def labor_force_map_series(
    geo: pd.DataFrame,
    population: pd.DataFrame,
    labor: pd.DataFrame,
    fertility: pd.DataFrame,
    year: Optional[int],
) -> Series:
    """Labor force, fertility and population per located country for the map.

    Countries without coordinates are skipped; missing measures read 0.
    """
    located = geo.dropna(subset=["geo", "latitude", "longitude"])
    located = located[(located["latitude"] != 0) & (located["longitude"] != 0)]
    if located.empty:
        return []

    lab = rows_for_year(labor, year)
    lab = lab[lab["sex"].isin(LABOR_SEXES)]
    labor_by_geo = lab.groupby("geo")["labour_force"].sum() * LABOR_FORCE_UNIT

    fertility_by_geo = rows_for_year(fertility, year).groupby("geo")[
        "fertility_rate"
    ].mean()

    pop = rows_for_year(population, year)
    pop = pop[(pop["sex"] == SEX_TOTAL) & (pop["age"] == AGE_TOTAL)]
    population_by_geo = pop.groupby("geo")["population"].sum()

    series: Series = []
    for row in located.drop_duplicates(subset=["geo"]).itertuples(index=False):
        series.append(
            {
                "geo": row.geo,
                "region": _text_or(row.un_region, UNKNOWN_REGION),
                "laborForce": to_number(labor_by_geo.get(row.geo)) or 0.0,
                "fertilityRate": to_number(fertility_by_geo.get(row.geo)) or 0.0,
                "population": to_number(population_by_geo.get(row.geo)) or 0.0,
                "latitude": float(row.latitude),
                "longitude": float(row.longitude),
            }
        )
    return series


def top_labor_force_countries(
    labor: pd.DataFrame,
    year: Optional[int],
    top_n: int = TOP_LABOR_FORCE_COUNTRIES,
) -> Series:
    """Countries with the largest labor force (persons) for the year."""
    lab = rows_for_year(labor, year)
    lab = lab[lab["sex"].isin(LABOR_SEXES)]
    if lab.empty:
        return []
    totals = (lab.groupby("geo")["labour_force"].sum() * LABOR_FORCE_UNIT).reset_index()
    totals = totals.sort_values(
        ["labour_force", "geo"], ascending=[False, True]
    ).head(top_n)
    return [
        {"country": str(row.geo), "value": float(row.labour_force)}
        for row in totals.itertuples(index=False)
    ]


# ---------------------------------------------------------------------------
# Selector lists
# ---------------------------------------------------------------------------


def region_list(geo: pd.DataFrame) -> Series:
    regions = sorted(geo["un_region"].dropna().astype(str).unique())
    return [{"region": region} for region in regions]


def country_list(geo: pd.DataFrame) -> Series:
    rows = geo.dropna(subset=["geo"]).drop_duplicates(subset=["geo"]).sort_values("geo")
    return [
        {
            "geo": str(row.geo),
            "un_region": _text_or(row.un_region, None),
            "latitude": to_number(row.latitude),
            "longitude": to_number(row.longitude),
        }
        for row in rows.itertuples(index=False)
    ]


def available_years(*frames: pd.DataFrame) -> List[int]:
    """Sorted union of the ``year`` values found in the given frames."""
    years = set()
    for df in frames:
        years.update(int(year) for year in df["year"].dropna().unique())
    return sorted(years)
