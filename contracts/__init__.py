"""Contracts and canonical schema.

The contracts package defines:
- the canonical 22-column event schema (Arrow) and its field-order check
- the flat ``EventRecord`` shared by every pipeline stage
- text -> column type casting used at load time
- the error taxonomy
- Protocol definitions for store clients

Main exports:
- EventRecord, EVENT_FIELDS, EVENTLOG_SCHEMA, validate_field_map
- cast_row, cast_value
- EventLogLoaderError and its subclasses
"""

from contracts import errors
from contracts import event_record
from contracts import schema
from contracts import storage_cast

# Explicit re-exports to satisfy ruff F401
__all__ = [
    "EVENTLOG_SCHEMA",
    "EVENT_FIELDS",
    "SOURCE_FIELDS",
    "CoercionError",
    "ConfigError",
    "EventLogLoaderError",
    "EventRecord",
    "LoadError",
    "MalformedInputError",
    "ReadError",
    "SchemaError",
    "StoreConnectionError",
    "WriteError",
    "cast_row",
    "cast_value",
    "validate_field_map",
]

# Re-export for convenience
EVENTLOG_SCHEMA = schema.EVENTLOG_SCHEMA
EVENT_FIELDS = schema.EVENT_FIELDS
SOURCE_FIELDS = schema.SOURCE_FIELDS
validate_field_map = schema.validate_field_map

EventRecord = event_record.EventRecord

cast_row = storage_cast.cast_row
cast_value = storage_cast.cast_value

CoercionError = errors.CoercionError
ConfigError = errors.ConfigError
EventLogLoaderError = errors.EventLogLoaderError
LoadError = errors.LoadError
MalformedInputError = errors.MalformedInputError
ReadError = errors.ReadError
SchemaError = errors.SchemaError
StoreConnectionError = errors.StoreConnectionError
WriteError = errors.WriteError
