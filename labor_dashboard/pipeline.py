"""Core pipeline logic: build the consolidated dashboard payload.

This module is the single place where the dashboard aggregation is
assembled.  It loads the geo, population, labor and fertility tables
from any :class:`~labor_dashboard.data_source.DataSource`, resolves the
effective year, restricts the tables to the requested scope and hands
them to the metric and chart helpers.

The primary entry point is :func:`build_dashboard_payload`, shared by the
HTTP endpoint in :mod:`labor_dashboard.api` and the client-side refresh path in
:mod:`labor_dashboard.client`, so both always produce identical output.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from .charts import (
    available_years,
    country_list,
    dependency_ratio_series,
    fertility_trend_series,
    labor_force_by_gender_series,
    labor_force_map_series,
    population_pyramid_series,
    region_list,
    top_labor_force_countries,
)
from .config import (
    DASHBOARD_TABLES,
    FERTILITY_TABLE,
    GEO_TABLE,
    LABOR_TABLE,
    POPULATION_TABLE,
)
from .data_source import DataSource, load_tables
from .metrics import compute_metrics
from .scope import Scope, filter_geo

# Module‑level logger
logger = logging.getLogger(__name__)


def resolve_effective_year(requested: Optional[int], years: List[int]) -> Optional[int]:
    """Return ``requested`` if data exists for it, else the latest year.

    ``None`` is returned only when no table holds any year at all.
    """
    if not years:
        return None
    if requested is not None and requested in years:
        return requested
    return max(years)


def build_dashboard_payload(source: DataSource, scope: Scope) -> Dict[str, object]:
    """Compute metrics, chart series and metadata for one scope.

    Parameters
    ----------
    source : DataSource
        Where the tables are read from.  All tables are fetched up front,
        concurrently; any failure aborts the whole payload.
    scope : Scope
        Requested region, year and country.  The year falls back to the
        latest available one when absent or unknown.

    Returns
    -------
    Dict[str, object]
        ``{"metrics": ..., "chartData": ..., "metadata": ...}`` made only
        of JSON-serialisable values.
    """
    tables = load_tables(source, DASHBOARD_TABLES)
    geo = tables[GEO_TABLE]

    years = available_years(
        tables[POPULATION_TABLE], tables[FERTILITY_TABLE], tables[LABOR_TABLE]
    )
    year = resolve_effective_year(scope.year, years)
    if year != scope.year:
        logger.info("Requested year %s unavailable, using %s", scope.year, year)

    codes = scope.geo_codes(geo)
    scoped = {table: filter_geo(df, codes) for table, df in tables.items()}
    population = scoped[POPULATION_TABLE]
    labor = scoped[LABOR_TABLE]
    fertility = scoped[FERTILITY_TABLE]
    scoped_geo = scoped[GEO_TABLE]

    metrics = compute_metrics(population, labor, fertility, year)

    chart_data = {
        "fertilityData": fertility_trend_series(fertility, scope),
        "laborForceData": labor_force_by_gender_series(population, labor, scope),
        "populationPyramidData": population_pyramid_series(population, scope, year),
        "dependencyRatioData": dependency_ratio_series(population, scoped_geo, year),
        "laborForceMapData": labor_force_map_series(
            scoped_geo, population, labor, fertility, year
        ),
        "topCountries": top_labor_force_countries(labor, year),
        "regions": region_list(geo),
        "countries": country_list(geo),
        "years": years,
    }

    total_countries = len(chart_data["countries"]) if codes is None else len(codes)
    metadata = {
        "selectedRegion": scope.region,
        "selectedYear": year,
        "requestedYear": scope.year,
        "selectedCountry": scope.country,
        "totalCountries": total_countries,
        "dataPoints": {
            "fertility": len(chart_data["fertilityData"]),
            "laborForce": len(chart_data["laborForceData"]),
            "population": len(chart_data["populationPyramidData"]),
            "dependency": len(chart_data["dependencyRatioData"]),
        },
    }

    logger.info(
        "Dashboard payload built: region=%s year=%s country=%s points=%s",
        scope.region,
        year,
        scope.country,
        metadata["dataPoints"],
    )

    return {
        "metrics": {key: result.to_dict() for key, result in metrics.items()},
        "chartData": chart_data,
        "metadata": metadata,
    }
