"""
Access to the tables behind the dashboard.

Every aggregation reads its input through the small ``fetch_rows``
interface defined by :class:`DataSource`, so the same pipeline runs
against the hosted Supabase (PostgREST) backend, a directory of CSV
exports, or in-memory frames.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional

import pandas as pd
import requests

from .config import (
    CSV_SUFFIX,
    DASHBOARD_DATA_DIR,
    DEFAULT_SEP,
    MAX_FETCH_WORKERS,
    NUMERIC_COLUMNS,
    SUPABASE_KEY,
    SUPABASE_PAGE_SIZE,
    SUPABASE_TIMEOUT,
    SUPABASE_URL,
    TABLE_COLUMNS,
    TABLE_KEYS,
    YEAR_COLUMNS,
)
from .errors import DashboardError, DataStoreError

logger = logging.getLogger(__name__)

Filters = Mapping[str, object]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def ensure_columns(df: pd.DataFrame, required: List[str]) -> None:
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise KeyError(f"Missing expected columns: {missing}")


def _strip(series: pd.Series) -> pd.Series:
    return series.where(series.isna(), series.astype(str).str.strip())


def prepare_table(table: str, raw: pd.DataFrame) -> pd.DataFrame:
    """Select the known columns of ``table`` and coerce their types.

    Text columns are stripped, measures become floats and year columns
    become nullable integers.  Unparseable values turn into missing
    values rather than errors.
    """
    columns = TABLE_COLUMNS[table]
    if raw.empty and not len(raw.columns):
        return pd.DataFrame(columns=columns)
    ensure_columns(raw, columns)

    df = raw[columns].copy()
    for col in columns:
        if col in YEAR_COLUMNS:
            df[col] = pd.to_numeric(df[col], errors="coerce").astype("Int64")
        elif col in NUMERIC_COLUMNS:
            df[col] = pd.to_numeric(df[col], errors="coerce").astype(float)
        else:
            df[col] = _strip(df[col].astype(object))
    return df.reset_index(drop=True)


def apply_filters(df: pd.DataFrame, filters: Optional[Filters]) -> pd.DataFrame:
    """Apply equality / membership filters to a frame in memory."""
    if not filters:
        return df
    mask = pd.Series(True, index=df.index, dtype=bool)
    for col, value in filters.items():
        if isinstance(value, (list, tuple, set, frozenset)):
            mask &= df[col].isin(list(value))
        else:
            mask &= df[col] == value
    mask = mask.fillna(False)
    return df.loc[mask].reset_index(drop=True)


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


class DataSource:
    """Read-only access to the dashboard tables."""

    def fetch_rows(
        self, table: str, filters: Optional[Filters] = None
    ) -> pd.DataFrame:
        raise NotImplementedError


class FrameDataSource(DataSource):
    """Serve tables from DataFrames already held in memory."""

    def __init__(self, frames: Mapping[str, pd.DataFrame]):
        self._frames = {
            table: prepare_table(table, df) for table, df in frames.items()
        }

    def fetch_rows(
        self, table: str, filters: Optional[Filters] = None
    ) -> pd.DataFrame:
        if table not in TABLE_COLUMNS:
            raise DataStoreError(f"Unknown table {table!r}", table=table)
        df = self._frames.get(table)
        if df is None:
            df = pd.DataFrame(columns=TABLE_COLUMNS[table])
        return apply_filters(df.copy(), filters)


class CsvDataSource(DataSource):
    """Serve tables from ``<table>_rows.csv`` exports in one directory."""

    def __init__(self, directory: str | Path, sep: str = DEFAULT_SEP):
        self.directory = Path(directory)
        self.sep = sep

    def table_path(self, table: str) -> Path:
        return self.directory / f"{table}{CSV_SUFFIX}"

    def fetch_rows(
        self, table: str, filters: Optional[Filters] = None
    ) -> pd.DataFrame:
        if table not in TABLE_COLUMNS:
            raise DataStoreError(f"Unknown table {table!r}", table=table)
        path = self.table_path(table)
        try:
            raw = pd.read_csv(path, sep=self.sep)
        except (OSError, pd.errors.ParserError) as exc:
            raise DataStoreError(
                f"Could not read {table} from {path}: {exc}", table=table
            ) from exc
        except pd.errors.EmptyDataError:
            raw = pd.DataFrame(columns=TABLE_COLUMNS[table])
        return apply_filters(prepare_table(table, raw), filters)


class PostgrestDataSource(DataSource):
    """Query Supabase tables over the PostgREST HTTP interface.

    Filters are pushed down as ``eq.``/``in.`` operators and results are
    paged with ``Range`` headers until a short page is returned.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = SUPABASE_TIMEOUT,
        page_size: int = SUPABASE_PAGE_SIZE,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ):
        if not base_url or not api_key:
            raise DashboardError("Supabase URL and API key are required.")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.page_size = page_size
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        }
        self._session_factory = session_factory
        self._local = threading.local()

    @property
    def session(self) -> requests.Session:
        """Session of the calling thread, created on first use."""
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._session_factory()
            session.headers.update(self._headers)
            self._local.session = session
        return session

    def _params(self, table: str, filters: Optional[Filters]) -> Dict[str, str]:
        params = {
            "select": ",".join(TABLE_COLUMNS[table]),
            "order": ",".join(f"{key}.asc" for key in TABLE_KEYS[table]),
        }
        for col, value in (filters or {}).items():
            if isinstance(value, (list, tuple, set, frozenset)):
                joined = ",".join(str(v) for v in value)
                params[col] = f"in.({joined})"
            else:
                params[col] = f"eq.{value}"
        return params

    def fetch_rows(
        self, table: str, filters: Optional[Filters] = None
    ) -> pd.DataFrame:
        if table not in TABLE_COLUMNS:
            raise DataStoreError(f"Unknown table {table!r}", table=table)
        url = f"{self.base_url}/rest/v1/{table}"
        params = self._params(table, filters)

        records: List[dict] = []
        start = 0
        while True:
            headers = {
                "Range-Unit": "items",
                "Range": f"{start}-{start + self.page_size - 1}",
            }
            try:
                response = self.session.get(
                    url, params=params, headers=headers, timeout=self.timeout
                )
                response.raise_for_status()
                page = response.json()
            except requests.RequestException as exc:
                raise DataStoreError(
                    f"Query on {table} failed: {exc}", table=table
                ) from exc
            except ValueError as exc:
                raise DataStoreError(
                    f"Invalid JSON returned for {table}: {exc}", table=table
                ) from exc

            if not isinstance(page, list):
                raise DataStoreError(
                    f"Unexpected payload for {table}: {type(page).__name__}",
                    table=table,
                )
            records.extend(page)
            if len(page) < self.page_size:
                break
            start += self.page_size

        logger.info("Fetched %d rows from %s", len(records), table)
        raw = pd.DataFrame.from_records(records, columns=TABLE_COLUMNS[table])
        return prepare_table(table, raw)


def source_from_env() -> DataSource:
    """Build the configured source: CSV exports if set, otherwise Supabase."""
    if DASHBOARD_DATA_DIR:
        logger.info("Using CSV data directory %s", DASHBOARD_DATA_DIR)
        return CsvDataSource(DASHBOARD_DATA_DIR)
    return PostgrestDataSource(SUPABASE_URL, SUPABASE_KEY)


def load_tables(
    source: DataSource,
    tables: Iterable[str],
    filters: Optional[Mapping[str, Filters]] = None,
) -> Dict[str, pd.DataFrame]:
    """Fetch several tables concurrently and wait for all of them.

    The first failure is re-raised once the pool shuts down; no partial
    result is returned.
    """
    tables = list(tables)
    filters = filters or {}
    with ThreadPoolExecutor(max_workers=min(MAX_FETCH_WORKERS, len(tables) or 1)) as pool:
        futures = {
            table: pool.submit(source.fetch_rows, table, filters.get(table))
            for table in tables
        }
        return {table: future.result() for table, future in futures.items()}
