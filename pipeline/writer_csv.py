"""Delimited writer for the intermediate event log file.

This is the durability checkpoint between transformation and load: the file
is left on disk whatever happens downstream, so the load phase can be
re-attempted from it alone.

Layout:
  header row with the 22 canonical column names, then one row per record,
  ``;``-separated, UTF-8, ``\\n`` line endings, csv-module minimal quoting.
  Rows carrying a carriage return are written fully quoted: the csv module
  only quotes characters of the line terminator, and readers treat a bare
  ``\\r`` as a line break.
"""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterable
from pathlib import Path

from contracts.errors import WriteError
from contracts.event_record import EventRecord
from contracts.schema import EVENT_FIELDS

logger = logging.getLogger(__name__)

DELIMITER = ";"
LINE_TERMINATOR = "\n"
HEADER: tuple[str, ...] = EVENT_FIELDS


def _has_carriage_return(row: list[str]) -> bool:
    return any("\r" in field for field in row)


def write_eventlog_csv(records: Iterable[EventRecord], path: str | Path) -> int:
    """
    Write *records* (in order) to *path*, creating or truncating it.

    Returns the number of data rows written. The file is flushed and closed on
    every exit path; a partially written file is left in place on failure.
    """
    out_path = Path(path)
    written = 0
    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with out_path.open("w", encoding="utf-8", newline="") as fh:
            writer = csv.writer(fh, delimiter=DELIMITER, lineterminator=LINE_TERMINATOR)
            quoted = csv.writer(
                fh,
                delimiter=DELIMITER,
                lineterminator=LINE_TERMINATOR,
                quoting=csv.QUOTE_ALL,
            )
            writer.writerow(HEADER)
            for record in records:
                row = record.to_row()
                (quoted if _has_carriage_return(row) else writer).writerow(row)
                written += 1
    except (OSError, csv.Error) as exc:
        raise WriteError(f"failed writing {out_path} after {written} rows: {exc}") from exc

    logger.info("Wrote %s rows to %s with %r delimiter", written, out_path, DELIMITER)
    return written
