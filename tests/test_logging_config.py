from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator

import pytest

from infra.config import clear_settings_cache
from infra.logging_config import (
    JsonFormatter,
    TextFormatter,
    clear_run_context,
    get_run_context,
    set_run_context,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _reset() -> Iterator[None]:
    clear_settings_cache()
    clear_run_context()
    yield
    clear_run_context()
    clear_settings_cache()


def _record(msg: str, *args: object, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("runner", logging.INFO, __file__, 10, msg, args, None)
    record.__dict__.update(extra)
    return record


def test_json_formatter_merges_extra_and_run_context() -> None:
    set_run_context(destination="mybase", table="mybase_events")
    out = JsonFormatter(extra_fields={"service": "eventlog-loader"}).format(
        _record("%s rows loaded into table %s", 1, "mybase_events", phase="commit")
    )

    payload = json.loads(out)
    assert payload["message"] == "1 rows loaded into table mybase_events"
    assert payload["level"] == "INFO"
    assert payload["phase"] == "commit"
    assert payload["service"] == "eventlog-loader"
    assert payload["destination"] == "mybase"
    assert payload["timestamp"].endswith("Z")


def test_json_formatter_includes_exception() -> None:
    try:
        raise ValueError("bad port")
    except ValueError:
        record = logging.LogRecord("runner", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

    payload = json.loads(JsonFormatter().format(record))
    assert "ValueError: bad port" in payload["exception"]


def test_run_context_accumulates_and_clears() -> None:
    set_run_context(destination="db1")
    set_run_context(table="db1_events")
    assert get_run_context() == {"destination": "db1", "table": "db1_events"}

    clear_run_context()
    assert get_run_context() == {}


def test_setup_logging_override_installs_one_handler(monkeypatch: pytest.MonkeyPatch) -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    monkeypatch.setenv("EVENTLOG_LOG_JSON", "1")
    try:
        setup_logging(level="debug", override_root_handlers=True)

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert root.level == logging.DEBUG
        assert logging.getLogger("clickhouse_driver").level == logging.WARNING

        setup_logging(json_logs=False, override_root_handlers=True)
        assert isinstance(root.handlers[0].formatter, TextFormatter)
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
        for h in saved_handlers:
            root.addHandler(h)
        root.setLevel(saved_level)
