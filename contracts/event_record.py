"""The canonical flat event record."""

from __future__ import annotations

from dataclasses import astuple, dataclass, fields

from contracts.schema import EVENT_FIELDS


@dataclass(frozen=True)
class EventRecord:
    """One flattened event log entry.

    All values are text; coercion to column types happens at load time.
    Field declaration order is the canonical column order.
    """

    DatabaseName: str
    Level: str = ""
    Date: str = ""
    ApplicationName: str = ""
    ApplicationPresentation: str = ""
    Event: str = ""
    EventPresentation: str = ""
    User: str = ""
    UserName: str = ""
    Computer: str = ""
    Metadata: str = ""
    MetadataPresentation: str = ""
    Comment: str = ""
    Data: str = ""
    DataPresentation: str = ""
    TransactionStatus: str = ""
    TransactionID: str = ""
    Connection: str = ""
    Session: str = ""
    ServerName: str = ""
    Port: str = ""
    SyncPort: str = ""

    def to_row(self) -> list[str]:
        """Return field values in canonical column order."""
        return list(astuple(self))

    @classmethod
    def from_row(cls, row: list[str] | tuple[str, ...]) -> EventRecord:
        if len(row) != len(EVENT_FIELDS):
            raise ValueError(f"EventRecord needs {len(EVENT_FIELDS)} values, got {len(row)}")
        return cls(*row)


def record_field_names() -> tuple[str, ...]:
    return tuple(f.name for f in fields(EventRecord))
