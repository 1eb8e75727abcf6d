"""
clickhouse_store.py

ClickHouse adapter for the store loader (native protocol, clickhouse-driver).

Connection handling
-------------------
The driver connects lazily, so ``connect_clickhouse`` forces the handshake with
a trivial query: unreachable servers and rejected credentials surface as
``StoreConnectionError`` before any schema work starts.

Atomicity
---------
ClickHouse has no multi-statement transactions; an INSERT is atomic per data
block. The whole batch is therefore sent as exactly one block
(``insert_block_size`` = batch size), so either every row becomes visible or
none does.

Timeouts
--------
The handshake and the CREATE TABLE round trip share the caller's window: every
socket operation is bounded by the remaining seconds. The batch send then
runs with the driver's usual send/receive timeout.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from typing import Any
from urllib.parse import urlsplit

import pyarrow as pa
from clickhouse_driver import Client
from clickhouse_driver import errors as ch_errors

from apps.backend.db_metrics import measure_query, query_name
from contracts.errors import ConfigError, LoadError, SchemaError, StoreConnectionError
from contracts.schema import ORDER_BY_COLUMN
from infra.config import StoreConfig

logger = logging.getLogger(__name__)

DEFAULT_PORT = 9000
# clickhouse-driver's own send/receive default, restored for the insert.
LOAD_IO_TIMEOUT_S = 300.0
_DRIVER_ERRORS = (ch_errors.Error, OSError, EOFError)


def parse_address(address: str) -> tuple[str, int]:
    """Split a DSN/address (``tcp://host:port``, ``host:port``, ``host``) into host and port."""
    text = str(address or "").strip()
    if not text:
        raise ConfigError("store address is empty")
    if "://" not in text:
        text = f"tcp://{text}"
    parts = urlsplit(text)
    try:
        port = parts.port or DEFAULT_PORT
    except ValueError as exc:
        raise ConfigError(f"invalid store address {address!r}: {exc}") from exc
    if not parts.hostname:
        raise ConfigError(f"invalid store address {address!r}: missing host")
    return parts.hostname, port


def quote_ident(name: str) -> str:
    return "`" + name.replace("\\", "\\\\").replace("`", "\\`") + "`"


def clickhouse_type(field_type: pa.DataType) -> str:
    """Map an Arrow column type to its ClickHouse column type."""
    if pa.types.is_string(field_type) or pa.types.is_large_string(field_type):
        return "String"
    if pa.types.is_timestamp(field_type):
        return "DateTime('UTC')" if field_type.unit == "s" else "DateTime64(3, 'UTC')"
    if pa.types.is_integer(field_type):
        prefix = "UInt" if pa.types.is_unsigned_integer(field_type) else "Int"
        return f"{prefix}{field_type.bit_width}"
    raise SchemaError(f"no ClickHouse type for {field_type}")


def create_table_sql(table: str, schema: pa.Schema) -> str:
    columns = ",\n".join(f"    {quote_ident(f.name)} {clickhouse_type(f.type)}" for f in schema)
    return (
        f"CREATE TABLE IF NOT EXISTS {quote_ident(table)} (\n{columns}\n)\n"
        f"ENGINE = MergeTree()\nORDER BY {quote_ident(ORDER_BY_COLUMN)}"
    )


def insert_sql(table: str, schema: pa.Schema) -> str:
    cols = ", ".join(quote_ident(name) for name in schema.names)
    return f"INSERT INTO {quote_ident(table)} ({cols}) VALUES"


class ClickHouseStore:
    """StoreClient backed by a clickhouse-driver ``Client``."""

    backend = "clickhouse"

    def __init__(self, client: Any) -> None:
        self._client = client

    def _set_io_timeout(self, seconds: float) -> None:
        connection = self._client.connection
        connection.send_receive_timeout = seconds
        if connection.socket is not None:
            connection.socket.settimeout(seconds)

    def ensure_table(self, table: str, schema: pa.Schema, *, timeout_s: float) -> None:
        sql = create_table_sql(table, schema)
        settings = {"max_execution_time": max(1, math.ceil(timeout_s))}
        try:
            self._set_io_timeout(max(timeout_s, 0.001))
            with measure_query(query_name(sql, backend=self.backend)):
                self._client.execute(sql, settings=settings)
        except _DRIVER_ERRORS as exc:
            raise SchemaError(f"create table {table} failed: {exc}") from exc
        finally:
            self._set_io_timeout(LOAD_IO_TIMEOUT_S)

    def insert_batch(self, table: str, schema: pa.Schema, rows: Sequence[tuple[Any, ...]]) -> int:
        if not rows:
            return 0
        sql = insert_sql(table, schema)
        try:
            with measure_query(query_name(sql, backend=self.backend)):
                self._client.execute(
                    sql,
                    list(rows),
                    types_check=True,
                    settings={"insert_block_size": len(rows)},
                )
        except (*_DRIVER_ERRORS, TypeError, ValueError) as exc:
            raise LoadError(f"batch insert into {table} failed ({len(rows)} rows): {exc}") from exc
        return len(rows)

    def close(self) -> None:
        try:
            self._client.disconnect()
        except _DRIVER_ERRORS as exc:
            logger.debug("ClickHouse disconnect failed: %s", exc)


def connect_clickhouse(config: StoreConfig, timeout_s: float) -> ClickHouseStore:
    """Open a ClickHouse connection and complete the handshake within *timeout_s*."""
    host, port = parse_address(config.address)
    window = max(timeout_s, 0.001)
    client = Client(
        host=host,
        port=port,
        database=config.database or "default",
        user=config.username or "default",
        password=config.password,
        connect_timeout=window,
        send_receive_timeout=window,
        sync_request_timeout=window,
    )
    try:
        client.execute("SELECT 1")
    except _DRIVER_ERRORS as exc:
        try:
            client.disconnect()
        except _DRIVER_ERRORS:
            logger.debug("ClickHouse disconnect after failed handshake also failed")
        raise StoreConnectionError(
            f"cannot connect to ClickHouse at {host}:{port} (database={config.database!r}, "
            f"user={config.username!r}): {exc}"
        ) from exc
    logger.info("Connected to ClickHouse %s:%s database=%s", host, port, config.database)
    return ClickHouseStore(client)
