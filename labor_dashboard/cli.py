"""Command-line entry point: serve the API, print a payload, snapshot tables."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import List, Optional

from .config import DEFAULT_COUNTRY, DEFAULT_REGION
from .data_manager import load_snapshot, snapshot_dir
from .data_source import CsvDataSource, DataSource, source_from_env
from .pipeline import build_dashboard_payload
from .scope import Scope

logger = logging.getLogger(__name__)


def _resolve_source(data_dir: Optional[str]) -> DataSource:
    if data_dir:
        return CsvDataSource(data_dir)
    return source_from_env()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="labor-dashboard",
        description=(
            "Aggregate population, labor and fertility tables into the "
            "labor-market dashboard payload."
        ),
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    payload = sub.add_parser("payload", help="Print the dashboard payload as JSON.")
    payload.add_argument("--region", default=DEFAULT_REGION)
    payload.add_argument(
        "--year",
        default=None,
        help="Year to show (default: latest year with data).",
    )
    payload.add_argument("--country", default=DEFAULT_COUNTRY)
    payload.add_argument(
        "--data-dir",
        default=None,
        help="Directory of <table>_rows.csv exports (default: Supabase from env).",
    )
    payload.add_argument("--indent", type=int, default=2)

    snapshot = sub.add_parser(
        "snapshot", help="Copy the tables into the local snapshot directory."
    )
    snapshot.add_argument(
        "--dir",
        default=None,
        help="Snapshot directory (default: versioned cache directory).",
    )
    snapshot.add_argument(
        "--data-dir",
        default=None,
        help="Copy from CSV exports instead of Supabase.",
    )
    snapshot.add_argument(
        "--force",
        action="store_true",
        help="Refresh even if a snapshot already exists.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "serve":
        import uvicorn

        from .api import create_app

        uvicorn.run(create_app(), host=args.host, port=args.port)
    elif args.command == "payload":
        scope = Scope.from_params(args.region, args.year, args.country)
        payload = build_dashboard_payload(_resolve_source(args.data_dir), scope)
        print(json.dumps(payload, indent=args.indent))
    elif args.command == "snapshot":
        directory = Path(args.dir) if args.dir else snapshot_dir()
        load_snapshot(
            _resolve_source(args.data_dir), directory, force_refresh=args.force
        )
        print(f"Snapshot available in {directory}")


if __name__ == "__main__":
    main()
