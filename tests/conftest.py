import pandas as pd
import pytest

from labor_dashboard.config import (
    FERTILITY_TABLE,
    GEO_TABLE,
    LABOR_TABLE,
    POPULATION_TABLE,
    PREDICTIONS_TABLE,
    WORKING_AGE_BANDS,
)
from labor_dashboard.data_source import FrameDataSource

YOUNG = "From 0 to 4 years"
OLD = "From 65 to 69 years"


def _population_rows(geo, year, total, working_per_band, young, old):
    rows = [
        {"geo": geo, "year": year, "sex": "Total", "age": "Total", "population": total},
        {"geo": geo, "year": year, "sex": "Total", "age": YOUNG, "population": young},
        {"geo": geo, "year": year, "sex": "Total", "age": OLD, "population": old},
    ]
    rows += [
        {"geo": geo, "year": year, "sex": "Total", "age": band, "population": working_per_band}
        for band in WORKING_AGE_BANDS
    ]
    return rows


def _sex_rows(geo, year, sex, working_per_band, young):
    rows = [{"geo": geo, "year": year, "sex": sex, "age": YOUNG, "population": young}]
    rows += [
        {"geo": geo, "year": year, "sex": sex, "age": band, "population": working_per_band}
        for band in WORKING_AGE_BANDS
    ]
    return rows


@pytest.fixture
def frames():
    """Two countries (FR, DE) with data, one (PL) without, over 2018-2020.

    2020: FR working-age 600k, dependent 400k; DE working-age 1.2M,
    dependent 600k.  Labor force (thousands): FR 300/250, DE 600/500.
    """
    geo = pd.DataFrame(
        [
            {"geo": "FR", "un_region": "Western Europe", "latitude": 46.2, "longitude": 2.2},
            {"geo": "DE", "un_region": "Western Europe", "latitude": 51.1, "longitude": 10.4},
            {"geo": "PL", "un_region": "Eastern Europe", "latitude": 52.0, "longitude": 19.1},
        ]
    )

    population_rows = []
    population_rows += _population_rows("FR", 2020, 1_000_000, 60_000, 200_000, 200_000)
    population_rows += _population_rows("DE", 2020, 2_000_000, 120_000, 300_000, 300_000)
    population_rows += _population_rows("FR", 2019, 950_000, 50_000, 200_000, 150_000)
    population_rows += _population_rows("DE", 2019, 2_000_000, 110_000, 300_000, 300_000)
    population_rows += _sex_rows("FR", 2020, "Males", 30_000, 100_000)
    population_rows += _sex_rows("FR", 2020, "Females", 30_000, 100_000)
    population_rows += _sex_rows("DE", 2020, "Males", 50_000, 150_000)
    population_rows += _sex_rows("DE", 2020, "Females", 60_000, 150_000)
    population_rows += _sex_rows("FR", 2019, "Males", 25_000, 90_000)
    population_rows += _sex_rows("FR", 2019, "Females", 25_000, 90_000)
    population = pd.DataFrame(population_rows)

    labor = pd.DataFrame(
        [
            {"geo": "FR", "year": 2020, "sex": "Males", "labour_force": 300},
            {"geo": "FR", "year": 2020, "sex": "Females", "labour_force": 250},
            {"geo": "DE", "year": 2020, "sex": "Males", "labour_force": 600},
            {"geo": "DE", "year": 2020, "sex": "Females", "labour_force": 500},
            {"geo": "FR", "year": 2019, "sex": "Males", "labour_force": 280},
            {"geo": "FR", "year": 2019, "sex": "Females", "labour_force": 240},
            {"geo": "DE", "year": 2019, "sex": "Males", "labour_force": 590},
            {"geo": "DE", "year": 2019, "sex": "Females", "labour_force": 480},
        ]
    )

    fertility = pd.DataFrame(
        [
            {"geo": "FR", "year": 2018, "fertility_rate": None},
            {"geo": "FR", "year": 2019, "fertility_rate": 1.85},
            {"geo": "DE", "year": 2019, "fertility_rate": 1.54},
            {"geo": "FR", "year": 2020, "fertility_rate": 1.80},
            {"geo": "DE", "year": 2020, "fertility_rate": None},
        ]
    )

    predictions = pd.DataFrame(
        [
            {"geo": "FR", "time_period": 2025, "predicted_labour_force": 72.5},
            {"geo": "FR", "time_period": 2030, "predicted_labour_force": 73.1},
            {"geo": "DE", "time_period": 2025, "predicted_labour_force": 76.0},
            {"geo": "DE", "time_period": 2030, "predicted_labour_force": None},
            {"geo": "PL", "time_period": 2030, "predicted_labour_force": 70.2},
        ]
    )

    return {
        GEO_TABLE: geo,
        POPULATION_TABLE: population,
        LABOR_TABLE: labor,
        FERTILITY_TABLE: fertility,
        PREDICTIONS_TABLE: predictions,
    }


@pytest.fixture
def source(frames):
    return FrameDataSource(frames)


@pytest.fixture
def tables(source):
    """Prepared (typed) tables as the pipeline sees them."""
    return {
        table: source.fetch_rows(table)
        for table in (GEO_TABLE, POPULATION_TABLE, LABOR_TABLE, FERTILITY_TABLE, PREDICTIONS_TABLE)
    }


def _assert_close(left, right, tol=1e-6):
    """Recursive equality with a float tolerance."""
    if isinstance(left, dict):
        assert isinstance(right, dict) and left.keys() == right.keys()
        for key in left:
            _assert_close(left[key], right[key], tol)
    elif isinstance(left, list):
        assert isinstance(right, list) and len(left) == len(right)
        for a, b in zip(left, right):
            _assert_close(a, b, tol)
    elif isinstance(left, float) or isinstance(right, float):
        assert left is not None and right is not None
        assert abs(float(left) - float(right)) <= tol
    else:
        assert left == right


@pytest.fixture
def assert_close():
    return _assert_close
