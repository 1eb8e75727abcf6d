"""Reader for the intermediate event log file.

Rows are returned as raw text lists; the header row is skipped. Field counts
are not enforced here (hand-edited or truncated files are read as-is); the
loader rejects rows that do not bind to the 22 columns.
"""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterator
from pathlib import Path

from contracts.errors import ReadError
from pipeline.writer_csv import DELIMITER

logger = logging.getLogger(__name__)


def iter_eventlog_rows(path: str | Path) -> Iterator[list[str]]:
    """Yield raw data rows from *path*, skipping the header row."""
    in_path = Path(path)
    line = 0
    try:
        with in_path.open("r", encoding="utf-8", newline="") as fh:
            reader = csv.reader(fh, delimiter=DELIMITER, strict=True)
            header_seen = False
            for row in reader:
                line = reader.line_num
                if not row:
                    # blank line
                    continue
                if not header_seen:
                    header_seen = True
                    continue
                yield row
    except FileNotFoundError as exc:
        raise ReadError(f"intermediate file not found: {in_path}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ReadError(f"cannot read {in_path}: {exc}") from exc
    except csv.Error as exc:
        raise ReadError(f"malformed delimited data in {in_path} near line {line + 1}: {exc}") from exc


def read_eventlog_csv(path: str | Path) -> list[list[str]]:
    """Read all raw data rows from *path* (header skipped)."""
    rows = list(iter_eventlog_rows(path))
    logger.debug("Read %s rows from %s", len(rows), path)
    return rows
