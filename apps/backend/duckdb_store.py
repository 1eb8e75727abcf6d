"""In-process DuckDB store.

Used for local runs without a ClickHouse server and by the test-suite for the
atomicity and idempotency checks. The batch is materialised as an Arrow table,
registered as a view and copied with one ``INSERT ... SELECT`` inside an
explicit transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import duckdb
import pyarrow as pa

from apps.backend.db_metrics import measure_query, query_name
from contracts.errors import ConfigError, LoadError, SchemaError, StoreConnectionError
from infra.config import StoreConfig

logger = logging.getLogger(__name__)

_BATCH_VIEW = "_eventlog_batch"


def quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def duckdb_type(field_type: pa.DataType) -> str:
    if pa.types.is_string(field_type) or pa.types.is_large_string(field_type):
        return "VARCHAR"
    if pa.types.is_timestamp(field_type):
        return "TIMESTAMP"
    if pa.types.is_integer(field_type):
        names = {8: "TINYINT", 16: "SMALLINT", 32: "INTEGER", 64: "BIGINT"}
        base = names[field_type.bit_width]
        return f"U{base}" if pa.types.is_unsigned_integer(field_type) else base
    raise SchemaError(f"no DuckDB type for {field_type}")


def rows_to_table(rows: Sequence[tuple[Any, ...]], schema: pa.Schema) -> pa.Table:
    """Pivot coerced row tuples into an Arrow table typed by *schema*."""
    columns = list(zip(*rows, strict=True)) if rows else [() for _ in schema]
    arrays = [pa.array(list(col), type=field.type) for col, field in zip(columns, schema, strict=True)]
    return pa.Table.from_arrays(arrays, schema=schema)


class DuckDBStore:
    backend = "duckdb"

    def __init__(self, connection: duckdb.DuckDBPyConnection) -> None:
        self.connection = connection

    def ensure_table(self, table: str, schema: pa.Schema, *, timeout_s: float) -> None:
        # DuckDB runs in-process; the caller enforces the deadline.
        columns = ",\n".join(f"    {quote_ident(f.name)} {duckdb_type(f.type)} NOT NULL" for f in schema)
        sql = f"CREATE TABLE IF NOT EXISTS {quote_ident(table)} (\n{columns}\n)"
        try:
            with measure_query(query_name(sql, backend=self.backend)):
                self.connection.execute(sql)
        except duckdb.Error as exc:
            raise SchemaError(f"create table {table} failed: {exc}") from exc

    def insert_batch(self, table: str, schema: pa.Schema, rows: Sequence[tuple[Any, ...]]) -> int:
        if not rows:
            return 0
        try:
            batch = rows_to_table(rows, schema)
        except (pa.ArrowException, ValueError) as exc:
            raise LoadError(f"cannot build batch for {table}: {exc}") from exc

        cols = ", ".join(quote_ident(name) for name in schema.names)
        sql = f"INSERT INTO {quote_ident(table)} ({cols}) SELECT {cols} FROM {_BATCH_VIEW}"
        con = self.connection
        con.register(_BATCH_VIEW, batch)
        try:
            con.begin()
            try:
                with measure_query(query_name(sql, backend=self.backend)):
                    con.execute(sql)
                con.commit()
            except duckdb.Error:
                con.rollback()
                raise
        except duckdb.Error as exc:
            raise LoadError(f"batch insert into {table} failed ({len(rows)} rows): {exc}") from exc
        finally:
            con.unregister(_BATCH_VIEW)
        return len(rows)

    def close(self) -> None:
        self.connection.close()


def connect_duckdb(config: StoreConfig, timeout_s: float) -> DuckDBStore:
    """Open (or create) the DuckDB database named by ``config.address``."""
    target = config.address or ":memory:"
    if "://" in target:
        raise ConfigError(f"duckdb backend expects a file path or :memory:, got {target!r}")
    try:
        con = duckdb.connect(target, read_only=False)
    except duckdb.Error as exc:
        raise StoreConnectionError(f"cannot open DuckDB database {target}: {exc}") from exc
    logger.info("Opened DuckDB database %s", target)
    return DuckDBStore(con)
