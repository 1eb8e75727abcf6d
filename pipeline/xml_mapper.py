"""Schema mapper: XML event log export -> flat ``EventRecord`` values.

Expected document shape::

    <EventLog>
      <Event>
        <Level>Error</Level>
        <Date>2024-01-01T10:00:00</Date>
        ...
      </Event>
      ...
    </EventLog>

The document is streamed (iterparse) so large exports are not held in memory
as a tree. Element names are matched without their namespace. Any of the 21
source fields may be absent; absent fields map to ``""``. Values are copied as
text, untrimmed; coercion to column types happens at load time.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import IO, Any

from contracts.errors import MalformedInputError
from contracts.event_record import EventRecord
from contracts.schema import SOURCE_FIELDS

logger = logging.getLogger(__name__)

ROOT_TAG = "EventLog"
EVENT_TAG = "Event"


def _local(tag: Any) -> str:
    """Strip a ``{namespace}`` prefix from an element tag."""
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _char_data(element: ET.Element) -> str:
    """Return the element's own character data (text plus child tails)."""
    parts = [element.text or ""]
    parts.extend(child.tail or "" for child in element)
    return "".join(parts)


def map_event(element: ET.Element | Mapping[str, Any], database_name: str) -> EventRecord:
    """Map one source event (XML element or name->text mapping) to an EventRecord."""
    values = dict.fromkeys(SOURCE_FIELDS, "")
    if isinstance(element, Mapping):
        for name in SOURCE_FIELDS:
            v = element.get(name)
            values[name] = "" if v is None else str(v)
    else:
        # Repeated field elements: the last one wins.
        for child in element:
            name = _local(child.tag)
            if name in values:
                values[name] = _char_data(child)
    return EventRecord(DatabaseName=database_name, **values)


def iter_events(source: str | Path | IO[bytes], database_name: str) -> Iterator[EventRecord]:
    """
    Stream EventRecords in document order.

    Only direct ``<Event>`` children of the ``<EventLog>`` root are mapped;
    other elements are ignored.

    Raises MalformedInputError if the document cannot be opened, is not
    well-formed XML, or its root element is not ``<EventLog>``.
    """
    depth = 0
    root: ET.Element | None = None
    count = 0
    try:
        for event, elem in ET.iterparse(source, events=("start", "end")):
            if event == "start":
                depth += 1
                if depth == 1:
                    root = elem
                    if _local(elem.tag) != ROOT_TAG:
                        raise MalformedInputError(
                            f"expected root element <{ROOT_TAG}>, got <{_local(elem.tag)}>"
                        )
                continue

            depth -= 1
            if depth == 1 and _local(elem.tag) == EVENT_TAG:
                count += 1
                yield map_event(elem, database_name)
                if root is not None:
                    root.clear()
    except ET.ParseError as exc:
        raise MalformedInputError(f"invalid XML in {_source_name(source)}: {exc}") from exc
    except OSError as exc:
        raise MalformedInputError(f"cannot open {_source_name(source)}: {exc}") from exc

    logger.debug("Mapped %s events from %s", count, _source_name(source))


def parse_eventlog(source: str | Path | IO[bytes], database_name: str) -> list[EventRecord]:
    """Parse a whole document into an ordered list of EventRecords."""
    return list(iter_events(source, database_name))


def _source_name(source: Any) -> str:
    if isinstance(source, (str, Path)):
        return str(source)
    return str(getattr(source, "name", "<stream>"))
