"""
apps.worker.load_eventlog

Load raw event log rows into the analytical store.

One run walks the load state machine (see ``apps.backend.load_state``):
connect, ensure the destination table, coerce every row, then commit the whole
batch in a single insert. Connect and table creation share one fixed deadline;
the batch send itself is not time-limited.

All rows are coerced before anything is sent, so a bad row aborts the run with
nothing written.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pyarrow as pa

from apps.backend.clickhouse_store import connect_clickhouse
from apps.backend.duckdb_store import connect_duckdb
from apps.backend.load_state import (
    STATE_BATCHING,
    STATE_COMMITTED,
    STATE_CONNECTED,
    STATE_SCHEMA_ENSURED,
    LoadEvent,
    LoadStateMachine,
)
from contracts.errors import ConfigError, EventLogLoaderError, SchemaError
from contracts.interfaces import StoreClient, StoreClientFactory
from contracts.schema import EVENTLOG_SCHEMA
from contracts.storage_cast import cast_row
from infra.config import StoreConfig
from pipeline.reader_csv import read_eventlog_csv

logger = logging.getLogger(__name__)

SCHEMA_DEADLINE_SECONDS = 10.0

STORE_FACTORIES: dict[str, StoreClientFactory] = {
    "clickhouse": connect_clickhouse,
    "duckdb": connect_duckdb,
}


@dataclass(frozen=True)
class LoadStats:
    table: str
    backend: str
    rows_loaded: int
    state: str
    events: tuple[LoadEvent, ...]


class _Deadline:
    def __init__(self, seconds: float, clock: Callable[[], float]) -> None:
        self._clock = clock
        self._expires_at = clock() + seconds
        self.seconds = seconds

    def remaining(self) -> float:
        return max(0.0, self._expires_at - self._clock())

    def check(self, step: str) -> None:
        if self.remaining() <= 0.0:
            raise SchemaError(f"{step} exceeded the {self.seconds:g}s connect/schema deadline")


def resolve_client_factory(backend: str) -> StoreClientFactory:
    try:
        return STORE_FACTORIES[backend]
    except KeyError as exc:
        raise ConfigError(f"unknown store backend {backend!r}") from exc


@contextmanager
def open_store(factory: StoreClientFactory, config: StoreConfig, timeout_s: float) -> Iterator[StoreClient]:
    """Connect through *factory* and always release the client."""
    client = factory(config, timeout_s)
    try:
        yield client
    finally:
        client.close()


def coerce_rows(rows: Iterable[Sequence[str]], schema: pa.Schema = EVENTLOG_SCHEMA) -> list[tuple[Any, ...]]:
    """Cast every raw row; the first failure carries its 1-based row index."""
    return [cast_row(row, schema, row_index=i) for i, row in enumerate(rows, start=1)]


def load_rows(
    rows: Iterable[Sequence[str]],
    *,
    table: str,
    store_config: StoreConfig,
    client_factory: StoreClientFactory | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> LoadStats:
    """Load *rows* into *table*, all or nothing.

    Raises StoreConnectionError, SchemaError, CoercionError or LoadError; the
    state machine ends in ``failed`` in each case.
    """
    machine = LoadStateMachine(table=table)
    factory = client_factory or resolve_client_factory(store_config.backend)
    deadline = _Deadline(SCHEMA_DEADLINE_SECONDS, clock)
    inserted = 0
    try:
        with open_store(factory, store_config, deadline.remaining()) as client:
            machine.advance(STATE_CONNECTED)
            deadline.check("connect")

            client.ensure_table(table, EVENTLOG_SCHEMA, timeout_s=deadline.remaining())
            deadline.check("create table")
            machine.advance(STATE_SCHEMA_ENSURED)

            machine.advance(STATE_BATCHING)
            batch = coerce_rows(rows)
            inserted = client.insert_batch(table, EVENTLOG_SCHEMA, batch)
            machine.advance(STATE_COMMITTED)
    except EventLogLoaderError as exc:
        machine.fail(exc.describe())
        raise

    logger.info("Loaded %s rows into %s (%s)", inserted, table, store_config.backend)
    return LoadStats(
        table=table,
        backend=store_config.backend,
        rows_loaded=inserted,
        state=machine.state,
        events=tuple(machine.events),
    )


def load_csv(
    path: str | Path,
    *,
    table: str,
    store_config: StoreConfig,
    client_factory: StoreClientFactory | None = None,
) -> LoadStats:
    """Read the intermediate file at *path* and load it into *table*."""
    rows = read_eventlog_csv(path)
    return load_rows(rows, table=table, store_config=store_config, client_factory=client_factory)
