"""
Protocol definitions for dependency injection.

The loader talks to the analytical store only through ``StoreClient``, which
enables:
- swapping ClickHouse for the in-process DuckDB store
- fake clients in tests

Usage:
    from contracts.interfaces import StoreClient, StoreClientFactory
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Protocol, runtime_checkable

import pyarrow as pa


@runtime_checkable
class StoreClient(Protocol):
    """An open connection to the analytical store."""

    backend: str

    def ensure_table(self, table: str, schema: pa.Schema, *, timeout_s: float) -> None:
        """Create *table* if it does not exist (never alters an existing one)."""
        ...

    def insert_batch(self, table: str, schema: pa.Schema, rows: Sequence[tuple[Any, ...]]) -> int:
        """Insert all *rows* as one atomic operation and return the row count."""
        ...

    def close(self) -> None:
        """Release the connection."""
        ...


# (store config, connect timeout in seconds) -> connected client
StoreClientFactory = Callable[[Any, float], StoreClient]
