"""
eventlog-loader CLI (flat-layout friendly).

Usage
-----
eventlog-loader -f events.xml -b mybase -ch tcp://localhost:9000 -t default -u default -p secret
eventlog-loader -f events.xml -b mybase --convert-only
eventlog-loader -b mybase --load-only
eventlog-loader -f events.xml -b mybase --backend duckdb --work-dir data

Flags fall back to settings (``.env`` / environment, see ``infra.config``).
Every failure exits with status 1.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from contracts.errors import EventLogLoaderError
from infra.config import Settings, StoreConfig, ValidationError, get_settings
from infra.logging_config import setup_logging
from runner import RunConfig, run_pipeline

logger = logging.getLogger("eventlog_loader.cli")

_DUCKDB_DEFAULT_FILE = "eventlog.duckdb"


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="eventlog-loader",
        description="Convert a 1C event log XML export into ';'-delimited text and load it into ClickHouse.",
    )
    p.add_argument("-f", "--file", default=None, help="Input EventLog XML file.")
    p.add_argument("-b", "--database-name", default=None, help="Destination identifier (file and table prefix).")
    p.add_argument("-ch", "--clickhouse-dsn", default=None, help="Store address, e.g. tcp://localhost:9000.")
    p.add_argument("-t", "--clickhouse-db", default=None, help="Store database name.")
    p.add_argument("-u", "--user", default=None, help="Store user name.")
    p.add_argument("-p", "--password", default=None, help="Store password.")
    p.add_argument("--backend", default=None, choices=["clickhouse", "duckdb"], help="Store backend.")
    p.add_argument("--work-dir", default=None, help="Directory for <id>_eventlog.csv (or WORK_DIR env var).")
    mode = p.add_mutually_exclusive_group()
    mode.add_argument("--load-only", action="store_true", help="Load an existing <id>_eventlog.csv.")
    mode.add_argument("--convert-only", action="store_true", help="Stop after writing <id>_eventlog.csv.")
    p.add_argument("--log-level", default=None, help="DEBUG|INFO|WARNING|ERROR")
    p.add_argument("--json-logs", action="store_true", default=None, help="Emit JSON log lines.")
    return p


def _store_config(args: argparse.Namespace, settings: Settings, work_dir: Path) -> StoreConfig:
    base = settings.store
    backend = args.backend or base.backend
    address = args.clickhouse_dsn or base.address
    if backend == "duckdb" and not args.clickhouse_dsn and address == StoreConfig().address:
        address = str(work_dir / _DUCKDB_DEFAULT_FILE)
    return StoreConfig(
        backend=backend,
        address=address,
        database=args.clickhouse_db or base.database,
        username=args.user or base.username,
        password=args.password if args.password is not None else base.password,
    )


def build_run_config(args: argparse.Namespace, settings: Settings) -> RunConfig:
    work_dir = Path(args.work_dir or settings.loader.work_dir)
    return RunConfig(
        destination_id=args.database_name,
        store=_store_config(args, settings, work_dir),
        input_path=Path(args.file) if args.file else None,
        work_dir=work_dir,
        load_only=bool(args.load_only),
        convert_only=bool(args.convert_only),
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.database_name or (not args.file and not args.load_only):
        parser.print_usage(sys.stderr)
        return 1

    try:
        settings = get_settings(reload=True)
    except ValidationError as exc:
        print(f"invalid configuration: {exc}", file=sys.stderr)
        return 1

    setup_logging(level=args.log_level, json_logs=args.json_logs)

    try:
        config = build_run_config(args, settings)
        result = run_pipeline(config)
    except ValidationError as exc:
        logger.error("[config] %s", exc)
        return 1
    except EventLogLoaderError as exc:
        logger.error("%s", exc.describe())
        return 1

    if result.load is None:
        logger.info("Done: %s", result.csv_path)
    else:
        logger.info("Done: %s rows in %s", result.rows_loaded, result.table)
    return 0


def run() -> None:
    """Console-script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
