"""Testing table access: frames, CSV exports and PostgREST"""

import threading

import pandas as pd
import pytest
import requests

from labor_dashboard.config import (
    DASHBOARD_TABLES,
    FERTILITY_TABLE,
    GEO_TABLE,
    LABOR_TABLE,
    POPULATION_TABLE,
    PREDICTIONS_TABLE,
)
from labor_dashboard.data_source import (
    CsvDataSource,
    DataSource,
    FrameDataSource,
    PostgrestDataSource,
    apply_filters,
    load_tables,
    prepare_table,
)
from labor_dashboard.errors import DashboardError, DataStoreError


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    """Serves queued responses and records each request."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.headers = {}
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def test_prepare_table_coerces_types():
    raw = pd.DataFrame(
        {
            "geo": [" FR ", "DE"],
            "year": ["2020", "n/a"],
            "sex": ["Males", "Females"],
            "labour_force": ["300", "bad"],
            "extra": [1, 2],
        }
    )
    df = prepare_table(LABOR_TABLE, raw)
    assert list(df.columns) == ["geo", "year", "sex", "labour_force"]
    assert df["geo"].tolist() == ["FR", "DE"]
    assert df["year"].dtype == "Int64"
    assert pd.isna(df.loc[1, "year"])
    assert df.loc[0, "labour_force"] == 300.0
    assert pd.isna(df.loc[1, "labour_force"])


def test_prepare_table_missing_column():
    with pytest.raises(KeyError):
        prepare_table(LABOR_TABLE, pd.DataFrame({"geo": ["FR"]}))


def test_apply_filters(tables):
    labor = tables[LABOR_TABLE]
    assert len(apply_filters(labor, {"year": 2020})) == 4
    assert set(apply_filters(labor, {"geo": ["FR"], "sex": "Males"})["year"]) == {2019, 2020}
    assert apply_filters(labor, None) is labor


def test_frame_source(source):
    df = source.fetch_rows(POPULATION_TABLE, {"geo": "DE", "year": 2019})
    assert set(df["geo"]) == {"DE"}
    assert not source.fetch_rows(PREDICTIONS_TABLE).empty
    with pytest.raises(DataStoreError):
        source.fetch_rows("unknown")


def test_frame_source_missing_table():
    df = FrameDataSource({}).fetch_rows(GEO_TABLE)
    assert df.empty
    assert list(df.columns) == ["geo", "un_region", "latitude", "longitude"]


def test_csv_source(tmp_path, frames):
    frames[FERTILITY_TABLE].to_csv(tmp_path / "fertility_rows.csv", index=False)
    source = CsvDataSource(tmp_path)
    df = source.fetch_rows(FERTILITY_TABLE, {"geo": ["FR"]})
    assert df["year"].tolist() == [2018, 2019, 2020]
    assert pd.isna(df.loc[0, "fertility_rate"])


def test_csv_source_missing_file(tmp_path):
    with pytest.raises(DataStoreError) as excinfo:
        CsvDataSource(tmp_path).fetch_rows(LABOR_TABLE)
    assert excinfo.value.table == LABOR_TABLE


def test_csv_source_empty_file(tmp_path):
    (tmp_path / "labor_rows.csv").write_text("", encoding="utf-8")
    df = CsvDataSource(tmp_path).fetch_rows(LABOR_TABLE)
    assert df.empty
    assert "labour_force" in df.columns


def test_postgrest_requires_credentials():
    with pytest.raises(DashboardError):
        PostgrestDataSource("", "key")


def test_postgrest_paginates():
    rows = [
        {"geo": "FR", "year": 2020, "fertility_rate": 1.8},
        {"geo": "DE", "year": 2020, "fertility_rate": 1.5},
        {"geo": "PL", "year": 2020, "fertility_rate": 1.3},
    ]
    session = FakeSession([FakeResponse(rows[:2]), FakeResponse(rows[2:])])
    source = PostgrestDataSource(
        "https://db.test/", "anon", page_size=2, timeout=5, session_factory=lambda: session
    )
    df = source.fetch_rows(FERTILITY_TABLE, {"year": 2020, "geo": ["FR", "DE", "PL"]})

    assert df["geo"].tolist() == ["FR", "DE", "PL"]
    assert session.headers["apikey"] == "anon"
    assert session.headers["Authorization"] == "Bearer anon"

    first, second = session.calls
    assert first["url"] == "https://db.test/rest/v1/fertility"
    assert first["headers"]["Range"] == "0-1"
    assert second["headers"]["Range"] == "2-3"
    assert first["timeout"] == 5
    assert first["params"]["select"] == "geo,year,fertility_rate"
    assert first["params"]["year"] == "eq.2020"
    assert first["params"]["geo"] == "in.(FR,DE,PL)"


def test_postgrest_empty_table():
    session = FakeSession([FakeResponse([])])
    source = PostgrestDataSource("https://db.test", "anon", session_factory=lambda: session)
    df = source.fetch_rows(GEO_TABLE)
    assert df.empty
    assert len(session.calls) == 1


@pytest.mark.parametrize(
    "response",
    [
        requests.ConnectionError("connection refused"),
        FakeResponse({"message": "boom"}, status_code=500),
        FakeResponse(ValueError("Expecting value")),
        FakeResponse({"message": "not a list"}),
    ],
)
def test_postgrest_errors(response):
    session = FakeSession([response])
    source = PostgrestDataSource("https://db.test", "anon", session_factory=lambda: session)
    with pytest.raises(DataStoreError) as excinfo:
        source.fetch_rows(LABOR_TABLE)
    assert excinfo.value.table == LABOR_TABLE


def test_load_tables(source):
    tables = load_tables(source, DASHBOARD_TABLES)
    assert set(tables) == set(DASHBOARD_TABLES)
    assert not tables[POPULATION_TABLE].empty


def test_load_tables_fails_as_a_unit(source):
    class PartlyBroken(DataSource):
        def fetch_rows(self, table, filters=None):
            if table == LABOR_TABLE:
                raise DataStoreError("labor unavailable", table=table)
            return source.fetch_rows(table, filters)

    with pytest.raises(DataStoreError, match="labor unavailable"):
        load_tables(PartlyBroken(), DASHBOARD_TABLES)


def test_postgrest_session_per_thread():
    source = PostgrestDataSource("https://db.test", "anon")
    sessions = {}

    def grab(name):
        sessions[name] = (source.session, source.session)

    workers = [threading.Thread(target=grab, args=(name,)) for name in ("a", "b")]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join()

    first_a, second_a = sessions["a"]
    first_b, _ = sessions["b"]
    assert first_a is second_a
    assert first_a is not first_b
    assert first_b.headers["apikey"] == "anon"
    assert source.session.headers["Authorization"] == "Bearer anon"
