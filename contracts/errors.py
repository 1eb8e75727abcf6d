"""Error taxonomy for the event log pipeline.

Every failure aborts the run. Each error knows the phase it belongs to so the
operator can tell which step to re-run (the intermediate file survives any
failure after the write phase).
"""

from __future__ import annotations


class EventLogLoaderError(Exception):
    """Base class for all pipeline failures."""

    phase: str = "pipeline"

    def describe(self) -> str:
        """Return a one-line operator message including the phase."""
        return f"[{self.phase}] {self}"


class ConfigError(EventLogLoaderError):
    """Raised for invalid run configuration (e.g. unusable destination id)."""

    phase = "config"


class MalformedInputError(EventLogLoaderError):
    """Raised when the source document cannot be parsed into the expected shape."""

    phase = "parse"


class WriteError(EventLogLoaderError):
    """Raised when the intermediate file cannot be created or written."""

    phase = "write"


class ReadError(EventLogLoaderError):
    """Raised when the intermediate file cannot be opened or parsed."""

    phase = "read"


class StoreConnectionError(EventLogLoaderError):
    """Raised when the analytical store is unreachable or rejects credentials."""

    phase = "connect"


class SchemaError(EventLogLoaderError):
    """Raised when the destination table cannot be ensured (error or deadline)."""

    phase = "schema"


class CoercionError(EventLogLoaderError):
    """Raised when a raw field cannot be converted to its column type.

    ``row_index`` is 1-based and counts data rows (the header is not a row).
    """

    phase = "coerce"

    def __init__(self, message: str, *, row_index: int | None = None, column: str | None = None) -> None:
        self.message = message
        self.row_index = row_index
        self.column = column
        prefix = ""
        if row_index is not None:
            prefix = f"row {row_index}: "
        if column:
            prefix = f"{prefix}{column}: "
        super().__init__(f"{prefix}{message}")


class LoadError(EventLogLoaderError):
    """Raised when the batch send/commit is rejected by transport or server."""

    phase = "commit"


__all__ = [
    "CoercionError",
    "ConfigError",
    "EventLogLoaderError",
    "LoadError",
    "MalformedInputError",
    "ReadError",
    "SchemaError",
    "StoreConnectionError",
    "WriteError",
]
