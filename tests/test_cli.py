"""CLI argument handling and exit codes."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

import cli
from infra.config import Settings, clear_settings_cache


@pytest.fixture(autouse=True)
def _isolated(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    for key in ("CLICKHOUSE_DSN", "CLICKHOUSE_DB", "CLICKHOUSE_USER", "CLICKHOUSE_PASSWORD", "STORE_BACKEND"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    root = logging.getLogger()
    handlers = list(root.handlers)
    yield
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
    clear_settings_cache()


def _xml(tmp_path: Path) -> Path:
    src = tmp_path / "events.xml"
    src.write_text(
        "<EventLog><Event><Level>Error</Level><Date>2024-01-01T10:00:00</Date><Port>1541</Port></Event></EventLog>",
        encoding="utf-8",
    )
    return src


def test_missing_destination_prints_usage(capsys: pytest.CaptureFixture[str], tmp_path: Path) -> None:
    assert cli.main(["-f", str(_xml(tmp_path))]) == 1
    assert "usage: eventlog-loader" in capsys.readouterr().err


def test_missing_file_without_load_only_prints_usage(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["-b", "mybase"]) == 1
    assert "usage:" in capsys.readouterr().err


def test_convert_only_writes_file(tmp_path: Path) -> None:
    code = cli.main(["-f", str(_xml(tmp_path)), "-b", "mybase", "--convert-only", "--work-dir", str(tmp_path / "out")])

    assert code == 0
    assert (tmp_path / "out" / "mybase_eventlog.csv").exists()


def test_duckdb_backend_full_run(tmp_path: Path) -> None:
    code = cli.main(["-f", str(_xml(tmp_path)), "-b", "mybase", "--backend", "duckdb", "--work-dir", str(tmp_path)])

    assert code == 0
    assert (tmp_path / "eventlog.duckdb").exists()


def test_pipeline_error_exits_1(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level("ERROR")

    code = cli.main(["-f", str(tmp_path / "missing.xml"), "-b", "mybase", "--convert-only"])

    assert code == 1
    assert any(r.getMessage().startswith("[parse]") for r in caplog.records)


def test_flags_override_settings() -> None:
    settings = Settings.from_env(
        env={"CLICKHOUSE_DSN": "env-host:9000", "CLICKHOUSE_USER": "env_user", "CLICKHOUSE_PASSWORD": "envpw"},
        env_file=".missing.env",
    )
    args = cli.build_parser().parse_args(
        ["-f", "in.xml", "-b", "db1", "-ch", "tcp://flag-host:9440", "-t", "logs", "-p", ""]
    )

    config = cli.build_run_config(args, settings)

    assert config.destination_id == "db1"
    assert config.input_path == Path("in.xml")
    assert config.store.address == "tcp://flag-host:9440"
    assert config.store.database == "logs"
    assert config.store.username == "env_user"
    assert config.store.password == ""


def test_duckdb_default_address_lives_in_work_dir() -> None:
    settings = Settings.from_env(env={}, env_file=".missing.env")
    args: Any = cli.build_parser().parse_args(["-b", "db1", "--load-only", "--backend", "duckdb", "--work-dir", "data"])

    config = cli.build_run_config(args, settings)

    assert config.load_only is True
    assert config.store.backend == "duckdb"
    assert config.store.address == str(Path("data") / "eventlog.duckdb")


def test_load_and_convert_only_are_exclusive() -> None:
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["-b", "db1", "--load-only", "--convert-only"])
