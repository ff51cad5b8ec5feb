"""Labor-force forecasts: per-country series and per-year rankings."""

from __future__ import annotations

from typing import Dict, List, Optional

import pandas as pd

from .config import PREDICTIONS_TABLE, TOP_PREDICTION_COUNTRIES
from .data_source import DataSource
from .metrics import to_number
from .pipeline import resolve_effective_year


def _valid(predictions: pd.DataFrame) -> pd.DataFrame:
    return predictions.dropna(
        subset=["geo", "time_period", "predicted_labour_force"]
    )


def prediction_years(predictions: pd.DataFrame) -> List[int]:
    return sorted(int(year) for year in predictions["time_period"].dropna().unique())


def prediction_countries(predictions: pd.DataFrame) -> List[str]:
    return sorted(str(geo) for geo in predictions["geo"].dropna().unique())


def prediction_series(predictions: pd.DataFrame, country: str) -> List[Dict[str, object]]:
    """Forecast participation rate of one country, oldest period first."""
    df = _valid(predictions)
    df = df[df["geo"] == country].sort_values("time_period")
    return [
        {
            "year": int(row.time_period),
            "predictedLaborForce": to_number(row.predicted_labour_force),
        }
        for row in df.itertuples(index=False)
    ]


def prediction_ranking(
    predictions: pd.DataFrame,
    year: Optional[int],
    top_n: int = TOP_PREDICTION_COUNTRIES,
) -> List[Dict[str, object]]:
    """Countries with the highest forecast for ``year``."""
    if year is None:
        return []
    df = _valid(predictions)
    df = df[df["time_period"].eq(year).fillna(False).astype(bool)]
    df = df.sort_values(
        ["predicted_labour_force", "geo"], ascending=[False, True]
    ).head(top_n)
    return [
        {
            "country": str(row.geo),
            "predictedLaborForce": to_number(row.predicted_labour_force),
        }
        for row in df.itertuples(index=False)
    ]


def build_predictions_payload(
    source: DataSource,
    year: Optional[int] = None,
    country: Optional[str] = None,
) -> Dict[str, object]:
    """Forecast years, one country's series and the ranking for one year.

    The year falls back to the latest forecast period and the country to
    the first one alphabetically when not given or unknown.
    """
    predictions = source.fetch_rows(PREDICTIONS_TABLE)
    years = prediction_years(predictions)
    countries = prediction_countries(predictions)

    selected_year = resolve_effective_year(year, years)
    if country not in countries:
        country = countries[0] if countries else None

    return {
        "years": years,
        "selectedYear": selected_year,
        "countries": countries,
        "selectedCountry": country,
        "series": prediction_series(predictions, country) if country else [],
        "ranking": prediction_ranking(predictions, selected_year),
    }
