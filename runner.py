"""
runner.py

Event log pipeline runner (XML -> intermediate file -> store).

Pipeline:
  EventLog XML
    -> xml_mapper (22-column EventRecord stream)
      -> writer_csv  (<id>_eventlog.csv, ';'-delimited, with header)
        -> reader_csv (raw rows)
          -> load_eventlog (<id>_events, one atomic batch)

The intermediate file is always re-read from disk before loading, so a run that
fails in the store can be resumed with ``load_only`` against the same file.

Each stage must succeed before the next starts; the first error aborts the run
and is raised to the caller unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from apps.worker.load_eventlog import LoadStats, load_rows
from contracts.errors import ConfigError
from contracts.event_record import record_field_names
from contracts.interfaces import StoreClientFactory
from contracts.schema import EVENT_FIELDS, validate_field_map
from infra.config import StoreConfig
from infra.logging_config import clear_run_context, set_run_context
from infra.pipeline_paths import PipelinePaths
from pipeline.reader_csv import read_eventlog_csv
from pipeline.writer_csv import HEADER, write_eventlog_csv
from pipeline.xml_mapper import parse_eventlog
from version import ENGINE_NAME, ENGINE_VERSION, SCHEMA_VERSION

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunConfig:
    """Everything one run needs; built by the CLI (or a test) and passed in."""

    destination_id: str
    store: StoreConfig
    input_path: Path | None = None
    work_dir: Path = Path(".")
    load_only: bool = False
    convert_only: bool = False


@dataclass(frozen=True)
class RunResult:
    csv_path: Path
    table: str
    rows_written: int | None
    load: LoadStats | None

    @property
    def rows_loaded(self) -> int:
        return self.load.rows_loaded if self.load is not None else 0


def check_field_map() -> None:
    """Fail fast if the record, the file header and the table columns disagree."""
    validate_field_map(EVENT_FIELDS, record_field_names(), HEADER)


def run_pipeline(config: RunConfig, *, client_factory: StoreClientFactory | None = None) -> RunResult:
    if config.load_only and config.convert_only:
        raise ConfigError("load_only and convert_only are mutually exclusive")
    if not config.load_only and config.input_path is None:
        raise ConfigError("an input XML file is required unless load_only is set")

    check_field_map()
    paths = PipelinePaths.for_destination(config.destination_id, work_dir=config.work_dir)
    csv_path = paths.csv_path()
    table = paths.table_name()

    set_run_context(destination=config.destination_id, table=table)
    try:
        logger.info(
            "Starting %s %s (schema v%s) destination=%s",
            ENGINE_NAME,
            ENGINE_VERSION,
            SCHEMA_VERSION,
            config.destination_id,
        )

        rows_written: int | None = None
        if config.input_path is not None and not config.load_only:
            # Parse fully first so a malformed document never truncates an existing file.
            records = parse_eventlog(config.input_path, config.destination_id)
            rows_written = write_eventlog_csv(records, csv_path)
            logger.info("%s rows written to %s", rows_written, csv_path)

        if config.convert_only:
            return RunResult(csv_path=csv_path, table=table, rows_written=rows_written, load=None)

        rows = read_eventlog_csv(csv_path)
        stats = load_rows(
            rows,
            table=table,
            store_config=config.store,
            client_factory=client_factory,
        )
        logger.info("%s rows loaded into table %s", stats.rows_loaded, table)
        return RunResult(csv_path=csv_path, table=table, rows_written=rows_written, load=stats)
    finally:
        clear_run_context()
