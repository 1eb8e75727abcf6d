"""Unit tests for the load state machine."""

from __future__ import annotations

import pytest

from apps.backend.load_state import (
    STATE_BATCHING,
    STATE_COMMITTED,
    STATE_CONNECTED,
    STATE_DISCONNECTED,
    STATE_FAILED,
    STATE_SCHEMA_ENSURED,
    LoadStateMachine,
)


def test_happy_path_moves_forward() -> None:
    machine = LoadStateMachine(table="mybase_events")
    for state in (STATE_CONNECTED, STATE_SCHEMA_ENSURED, STATE_BATCHING, STATE_COMMITTED):
        machine.advance(state)

    assert machine.state == STATE_COMMITTED
    assert machine.is_terminal
    assert [(e.from_state, e.to_state) for e in machine.events] == [
        (STATE_DISCONNECTED, STATE_CONNECTED),
        (STATE_CONNECTED, STATE_SCHEMA_ENSURED),
        (STATE_SCHEMA_ENSURED, STATE_BATCHING),
        (STATE_BATCHING, STATE_COMMITTED),
    ]


def test_skipping_a_state_is_illegal() -> None:
    machine = LoadStateMachine(table="t")
    with pytest.raises(RuntimeError, match="disconnected -> batching"):
        machine.advance(STATE_BATCHING)
    assert machine.state == STATE_DISCONNECTED


@pytest.mark.parametrize(
    "reached",
    [
        (),
        (STATE_CONNECTED,),
        (STATE_CONNECTED, STATE_SCHEMA_ENSURED),
        (STATE_CONNECTED, STATE_SCHEMA_ENSURED, STATE_BATCHING),
    ],
)
def test_failed_reachable_from_every_non_terminal_state(reached: tuple[str, ...]) -> None:
    machine = LoadStateMachine(table="t")
    for state in reached:
        machine.advance(state)

    machine.fail("boom")

    assert machine.state == STATE_FAILED
    assert machine.events[-1].reason == "boom"


def test_no_re_entry_after_terminal_state() -> None:
    machine = LoadStateMachine(table="t")
    machine.fail("connect refused")

    with pytest.raises(RuntimeError):
        machine.advance(STATE_CONNECTED)
    with pytest.raises(RuntimeError):
        machine.fail("again")


def test_committed_cannot_fail() -> None:
    machine = LoadStateMachine(table="t")
    for state in (STATE_CONNECTED, STATE_SCHEMA_ENSURED, STATE_BATCHING, STATE_COMMITTED):
        machine.advance(state)
    with pytest.raises(RuntimeError):
        machine.fail("late")
