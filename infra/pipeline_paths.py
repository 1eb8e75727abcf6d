"""Naming conventions derived from the destination identifier.

Both the intermediate file and the destination table are named
deterministically from the caller-supplied destination identifier. All code
that needs either name should go through :class:`infra.pipeline_paths.PipelinePaths`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from contracts.errors import ConfigError

CSV_SUFFIX = "_eventlog.csv"
TABLE_SUFFIX = "_events"

# The identifier ends up inside a file name and a quoted SQL identifier.
_FORBIDDEN = re.compile(r"[\s/\\`\"'.;\x00]")


def _p(path: str | Path) -> Path:
    return path if isinstance(path, Path) else Path(str(path))


def validate_destination_id(destination_id: str) -> str:
    """Return *destination_id* or raise ConfigError if it is unusable."""
    text = str(destination_id or "")
    if not text:
        raise ConfigError("destination identifier is required")
    bad = _FORBIDDEN.search(text)
    if bad:
        raise ConfigError(
            f"destination identifier {text!r} contains forbidden character {bad.group(0)!r}"
        )
    return text


@dataclass(frozen=True)
class PipelinePaths:
    """
    Central naming conventions for one destination identifier.

    Rules:
      - The CLI may override the *work directory* (where the file is written)
      - File and table names are always ``<id>_eventlog.csv`` / ``<id>_events``
    """

    destination_id: str
    work_dir: Path = Path(".")

    def __post_init__(self) -> None:
        validate_destination_id(self.destination_id)
        if not isinstance(self.work_dir, Path):
            raise TypeError(f"work_dir must be a pathlib.Path (got {type(self.work_dir)})")

    def csv_filename(self) -> str:
        return f"{self.destination_id}{CSV_SUFFIX}"

    def csv_path(self) -> Path:
        return self.work_dir / self.csv_filename()

    def table_name(self) -> str:
        return f"{self.destination_id}{TABLE_SUFFIX}"

    @classmethod
    def for_destination(cls, destination_id: str, *, work_dir: str | Path | None = None) -> PipelinePaths:
        """Preferred constructor for runner/CLI."""
        return cls(destination_id=destination_id, work_dir=_p(work_dir) if work_dir else Path("."))
