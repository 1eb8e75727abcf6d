"""End-to-end pipeline runs: XML -> intermediate file -> DuckDB store."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import duckdb
import pytest

from contracts.errors import ConfigError, MalformedInputError, StoreConnectionError
from infra.config import StoreConfig
from infra.logging_config import get_run_context
from runner import RunConfig, check_field_map, run_pipeline

_SCENARIO_XML = """<?xml version="1.0" encoding="UTF-8"?>
<EventLog>
  <Event>
    <Level>Error</Level>
    <Date>2024-01-01T10:00:00</Date>
    <Port>1541</Port>
  </Event>
</EventLog>
"""


def _config(tmp_path: Path, destination: str = "mybase", **overrides: Any) -> RunConfig:
    src = tmp_path / "events.xml"
    if not src.exists():
        src.write_text(_SCENARIO_XML, encoding="utf-8")
    values: dict[str, Any] = {
        "destination_id": destination,
        "store": StoreConfig(backend="duckdb", address=str(tmp_path / "eventlog.duckdb")),
        "input_path": src,
        "work_dir": tmp_path,
    }
    values.update(overrides)
    return RunConfig(**values)


def _query(tmp_path: Path, sql: str) -> list[tuple[Any, ...]]:
    con = duckdb.connect(str(tmp_path / "eventlog.duckdb"))
    try:
        return con.execute(sql).fetchall()
    finally:
        con.close()


def test_scenario_end_to_end(tmp_path: Path) -> None:
    result = run_pipeline(_config(tmp_path))

    assert result.csv_path == tmp_path / "mybase_eventlog.csv"
    assert result.table == "mybase_events"
    assert result.rows_written == 1
    assert result.rows_loaded == 1

    lines = result.csv_path.read_text(encoding="utf-8").splitlines()
    assert lines[1] == "mybase;Error;2024-01-01T10:00:00;;;;;;;;;;;;;;;;;;1541;"
    assert _query(tmp_path, 'SELECT "Port" FROM "mybase_events"') == [(1541,)]


def test_same_destination_twice_creates_one_table(tmp_path: Path) -> None:
    run_pipeline(_config(tmp_path, "db1"))
    run_pipeline(_config(tmp_path, "db1"))

    tables = _query(tmp_path, "SELECT table_name FROM information_schema.tables WHERE table_name LIKE 'db1%'")
    assert tables == [("db1_events",)]


def test_convert_only_skips_the_store(tmp_path: Path) -> None:
    result = run_pipeline(_config(tmp_path, convert_only=True))

    assert result.load is None
    assert result.rows_loaded == 0
    assert result.csv_path.exists()
    assert not (tmp_path / "eventlog.duckdb").exists()


def test_load_only_reuses_existing_file(tmp_path: Path) -> None:
    run_pipeline(_config(tmp_path, convert_only=True))

    result = run_pipeline(_config(tmp_path, input_path=None, load_only=True))

    assert result.rows_written is None
    assert result.rows_loaded == 1


def test_load_only_ignores_input_path(tmp_path: Path) -> None:
    run_pipeline(_config(tmp_path, convert_only=True))
    before = (tmp_path / "mybase_eventlog.csv").read_bytes()

    result = run_pipeline(_config(tmp_path, input_path=tmp_path / "missing.xml", load_only=True))

    assert result.rows_written is None
    assert result.rows_loaded == 1
    assert (tmp_path / "mybase_eventlog.csv").read_bytes() == before


def test_store_failure_keeps_intermediate_file(tmp_path: Path) -> None:
    def _refuse(cfg: StoreConfig, timeout_s: float) -> Any:
        raise StoreConnectionError("connection refused")

    with pytest.raises(StoreConnectionError):
        run_pipeline(_config(tmp_path), client_factory=_refuse)

    assert (tmp_path / "mybase_eventlog.csv").exists()
    assert get_run_context() == {}


def test_malformed_xml_does_not_touch_existing_file(tmp_path: Path) -> None:
    run_pipeline(_config(tmp_path, convert_only=True))
    before = (tmp_path / "mybase_eventlog.csv").read_text(encoding="utf-8")

    bad = tmp_path / "bad.xml"
    bad.write_text("<EventLog><Event>", encoding="utf-8")
    with pytest.raises(MalformedInputError):
        run_pipeline(_config(tmp_path, input_path=bad))

    assert (tmp_path / "mybase_eventlog.csv").read_text(encoding="utf-8") == before


def test_input_required_unless_load_only(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        run_pipeline(_config(tmp_path, input_path=None))


def test_modes_are_exclusive(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        run_pipeline(_config(tmp_path, load_only=True, convert_only=True))


def test_bad_destination_id_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        run_pipeline(_config(tmp_path, "my base"))


def test_field_map_check_passes() -> None:
    check_field_map()
