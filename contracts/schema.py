"""Canonical event log schema.

The column order below is load-bearing: the intermediate file header, every
data row, the destination table and the insert statement all bind values by
position. ``validate_field_map`` checks that every consumer agrees on it.
"""

from __future__ import annotations

from collections.abc import Sequence

import pyarrow as pa

from contracts.errors import SchemaError

# Second resolution matches the store's DateTime column.
EVENT_TS = pa.timestamp("s")
PORT = pa.uint16()

# -----------------------------
# Destination table: <id>_events
# -----------------------------
EVENTLOG_SCHEMA = pa.schema([
    pa.field("DatabaseName", pa.string()),       # injected destination identifier
    pa.field("Level", pa.string()),
    pa.field("Date", EVENT_TS),                  # table is ordered by this column
    pa.field("ApplicationName", pa.string()),
    pa.field("ApplicationPresentation", pa.string()),
    pa.field("Event", pa.string()),
    pa.field("EventPresentation", pa.string()),
    pa.field("User", pa.string()),
    pa.field("UserName", pa.string()),
    pa.field("Computer", pa.string()),
    pa.field("Metadata", pa.string()),
    pa.field("MetadataPresentation", pa.string()),
    pa.field("Comment", pa.string()),
    pa.field("Data", pa.string()),
    pa.field("DataPresentation", pa.string()),
    pa.field("TransactionStatus", pa.string()),
    pa.field("TransactionID", pa.string()),
    pa.field("Connection", pa.string()),
    pa.field("Session", pa.string()),
    pa.field("ServerName", pa.string()),
    pa.field("Port", PORT),
    pa.field("SyncPort", PORT),
])

EVENT_FIELDS: tuple[str, ...] = tuple(EVENTLOG_SCHEMA.names)

# Fields read from each source <Event> element (everything but the injected id).
SOURCE_FIELDS: tuple[str, ...] = EVENT_FIELDS[1:]

ORDER_BY_COLUMN = "Date"


def validate_field_map(*name_lists: Sequence[str]) -> None:
    """Fail fast if any consumer disagrees with the canonical column order."""
    expected = list(EVENT_FIELDS)
    for names in name_lists:
        got = list(names)
        if got == expected:
            continue
        mismatches = [
            f"#{i + 1}: expected {exp!r}, got {act!r}"
            for i, (exp, act) in enumerate(zip(expected, got, strict=False))
            if exp != act
        ]
        if len(got) != len(expected):
            mismatches.append(f"expected {len(expected)} columns, got {len(got)}")
        raise SchemaError("Field map mismatch: " + "; ".join(mismatches))
