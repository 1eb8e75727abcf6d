"""Project version constants.

These constants are logged at the start of every run so that a loaded table
and its intermediate file can be traced back to a specific loader/schema
version.
"""

ENGINE_NAME: str = "eventlog-loader"
ENGINE_VERSION: str = "0.1.0"

SCHEMA_VERSION: int = 1
