"""Data manager for snapshotting the dashboard tables to disk.

This module copies the tables served by a data source (usually the
hosted Supabase backend) into a local directory of CSV files and reads
them back as a :class:`~labor_dashboard.data_source.CsvDataSource`.  It
adds a small amount of resilience around caching and uses ``logging``
instead of printing directly to stdout.  The snapshot directory includes
a version tag to make it easy to invalidate old snapshots when the table
layout changes.
"""

import os
import tempfile
import logging
from pathlib import Path
from typing import Dict, Iterable, Optional
from functools import lru_cache

import pandas as pd

from .config import CSV_SUFFIX, TABLE_COLUMNS
from .data_source import CsvDataSource, DataSource, load_tables

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Cache setup
# ---------------------------------------------------------------------------
# A version tag embedded in the snapshot directory name.  Bump this value
# whenever the table layout in ``config.TABLE_COLUMNS`` changes.
CACHE_VERSION: str = "v1"

SNAPSHOT_TABLES = tuple(TABLE_COLUMNS)


def _resolve_cache_dir() -> Path:
    """Select a writable directory for snapshots.

    The lookup order is:

    1. The ``DATA_CACHE_DIR`` environment variable, if set.
    2. A ``data`` folder at the repository root.
    3. A temporary directory in ``/tmp``.

    Each candidate path is tested for writability by creating and
    deleting a sentinel file.  The first path that succeeds is returned.
    """
    candidates: list[Path] = []
    env = os.getenv("DATA_CACHE_DIR")
    if env:
        candidates.append(Path(env).expanduser().resolve())

    candidates.append(Path(__file__).resolve().parent.parent / "data")
    candidates.append(Path(tempfile.gettempdir()) / "labor_dashboard_cache")

    for path in candidates:
        try:
            path.mkdir(parents=True, exist_ok=True)
            test_file = path / ".write_test"
            test_file.write_text("ok", encoding="utf-8")
            test_file.unlink()
            return path
        except OSError as exc:
            logger.debug("Cache directory %s not writable: %s", path, exc)
            continue

    fallback = Path(tempfile.gettempdir()) / "labor_dashboard_cache"
    fallback.mkdir(parents=True, exist_ok=True)
    return fallback


@lru_cache(maxsize=1)
def snapshot_dir() -> Path:
    """Versioned snapshot directory, e.g. ``data/snapshot_v1``."""
    return _resolve_cache_dir() / f"snapshot_{CACHE_VERSION}"


def _atomic_to_csv(df: pd.DataFrame, path: Path) -> None:
    """Write a DataFrame to CSV atomically.

    The CSV is first written to a temporary file in the same directory
    and then renamed to the final location, so an interrupted write never
    leaves a truncated table behind.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    df.to_csv(tmp_path, index=False)
    tmp_path.replace(path)


def snapshot_paths(directory: Path, tables: Iterable[str] = SNAPSHOT_TABLES) -> Dict[str, Path]:
    return {table: directory / f"{table}{CSV_SUFFIX}" for table in tables}


def snapshot_exists(directory: Optional[Path] = None) -> bool:
    directory = directory or snapshot_dir()
    return all(path.exists() for path in snapshot_paths(directory).values())


def save_snapshot(source: DataSource, directory: Optional[Path] = None) -> Path:
    """Fetch every table from ``source`` and write it under ``directory``.

    All tables are fetched before anything is written, so a failed fetch
    leaves the previous snapshot untouched.
    """
    directory = directory or snapshot_dir()
    tables = load_tables(source, SNAPSHOT_TABLES)
    for table, path in snapshot_paths(directory).items():
        _atomic_to_csv(tables[table], path)
    logger.info(
        "Snapshot updated in %s: %s",
        directory,
        ", ".join(f"{table}={len(df)}" for table, df in tables.items()),
    )
    return directory


def load_snapshot(
    source: Optional[DataSource] = None,
    directory: Optional[Path] = None,
    force_refresh: bool = False,
) -> DataSource:
    """
    Return a CSV source over the snapshot, refreshing it from ``source``.

    Parameters
    ----------
    source : DataSource, optional
        Source to copy from when the snapshot is missing or a refresh is
        forced.
    directory : Path, optional
        Snapshot directory; defaults to :func:`snapshot_dir`.
    force_refresh : bool, optional
        If ``True``, re-fetch from ``source`` even if a snapshot exists.

    Returns
    -------
    DataSource
        A CSV source over the snapshot files, or ``source`` itself when
        the snapshot cannot be written.
    """
    directory = directory or snapshot_dir()

    if not force_refresh and snapshot_exists(directory):
        logger.info("Loading tables from snapshot directory %s", directory)
        return CsvDataSource(directory)

    if source is None:
        raise FileNotFoundError(
            f"No snapshot in {directory} and no source to build one from."
        )

    logger.info("Building snapshot from %s", type(source).__name__)
    try:
        save_snapshot(source, directory)
    except OSError as exc:
        logger.warning(
            "Could not write snapshot to %s: %s; serving %s directly",
            directory,
            exc,
            type(source).__name__,
        )
        return source
    return CsvDataSource(directory)
