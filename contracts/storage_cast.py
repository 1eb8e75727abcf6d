"""Casting helpers from raw text rows to store column types.

The intermediate file carries text only. This module is the storage boundary:
each raw value is converted to the Python type the store expects for its
Arrow column type, and any mismatch is surfaced as a ``CoercionError`` rather
than silently truncated.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import UTC, date, datetime
from typing import Any

import pyarrow as pa

from contracts.errors import CoercionError

# Non-nullable store columns fall back to their type default for empty text.
EPOCH = datetime(1970, 1, 1)
# Last second representable by a 32-bit unsigned epoch (ClickHouse DateTime).
DATETIME_MAX = datetime(2106, 2, 7, 6, 28, 15)

# ASCII digits only; int() alone would also accept "1_000" and non-latin digits.
_INT_RE = re.compile(r"[+-]?[0-9]+")


def _parse_datetime(txt: str) -> datetime | None:
    if txt.endswith(("Z", "z")):
        txt = txt[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(txt)
    except ValueError:
        try:
            return datetime.combine(date.fromisoformat(txt), datetime.min.time())
        except ValueError:
            return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(UTC).replace(tzinfo=None)
    return dt


def _int_bounds(field_type: pa.DataType) -> tuple[int, int]:
    bits = field_type.bit_width
    if pa.types.is_unsigned_integer(field_type):
        return 0, (1 << bits) - 1
    return -(1 << (bits - 1)), (1 << (bits - 1)) - 1


def cast_value(value: Any, field_type: pa.DataType) -> Any:
    """
    Cast a single raw value to match an Arrow field type.
    Returns Python values suitable for the store driver and pa.array(..., type=...).
    """
    if value is None:
        value = ""

    # Strings pass through untouched (no trimming).
    if pa.types.is_string(field_type) or pa.types.is_large_string(field_type):
        return str(value)

    txt = str(value).strip()

    # Integers (range-checked against the column width)
    if pa.types.is_integer(field_type):
        if txt == "":
            return 0
        if not _INT_RE.fullmatch(txt):
            raise CoercionError(f"cannot cast {value!r} to {field_type}")
        number = int(txt)
        low, high = _int_bounds(field_type)
        if not low <= number <= high:
            raise CoercionError(f"{number} is out of range for {field_type} ({low}..{high})")
        return number

    # Timestamp (naive UTC; inputs without an offset are taken as UTC)
    if pa.types.is_timestamp(field_type):
        if txt == "":
            return EPOCH
        dt = _parse_datetime(txt)
        if dt is None:
            raise CoercionError(f"cannot cast {value!r} to datetime")
        if field_type.unit == "s":
            dt = dt.replace(microsecond=0)
            if not EPOCH <= dt <= DATETIME_MAX:
                raise CoercionError(
                    f"{dt.isoformat()} is out of range for {field_type} ({EPOCH} .. {DATETIME_MAX} UTC)"
                )
        return dt

    raise CoercionError(f"unsupported column type {field_type}")


def cast_row(row: Sequence[str], schema: pa.Schema, *, row_index: int) -> tuple[Any, ...]:
    """
    Cast one raw positional row into a storage row matching *schema*.

    Raises CoercionError (bound to ``row_index``) when the field count differs
    from the schema or any value cannot be converted.
    """
    if len(row) != len(schema):
        raise CoercionError(
            f"expected {len(schema)} fields, got {len(row)}",
            row_index=row_index,
        )
    out: list[Any] = []
    for raw, field in zip(row, schema, strict=True):
        try:
            out.append(cast_value(raw, field.type))
        except CoercionError as exc:
            raise CoercionError(exc.message, row_index=row_index, column=field.name) from exc
    return tuple(out)
