"""Load state machine for one store-loader run.

States move strictly forward:

    disconnected -> connected -> schema_ensured -> batching -> committed

``failed`` is reachable from every non-terminal state. No state is re-entered;
a new run starts from a fresh machine. Every transition is appended to an
in-memory event list (and logged) so a failed run reports where it stopped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime

logger = logging.getLogger(__name__)

STATE_DISCONNECTED = "disconnected"
STATE_CONNECTED = "connected"
STATE_SCHEMA_ENSURED = "schema_ensured"
STATE_BATCHING = "batching"
STATE_COMMITTED = "committed"
STATE_FAILED = "failed"

TERMINAL_STATES = frozenset({STATE_COMMITTED, STATE_FAILED})

_NEXT_STATE = {
    STATE_DISCONNECTED: STATE_CONNECTED,
    STATE_CONNECTED: STATE_SCHEMA_ENSURED,
    STATE_SCHEMA_ENSURED: STATE_BATCHING,
    STATE_BATCHING: STATE_COMMITTED,
}


@dataclass(frozen=True)
class LoadEvent:
    """One recorded transition."""

    from_state: str
    to_state: str
    at: datetime
    reason: str | None = None


@dataclass
class LoadStateMachine:
    """Tracks the loader's progress through a single run."""

    table: str
    state: str = STATE_DISCONNECTED
    events: list[LoadEvent] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def advance(self, to_state: str) -> None:
        """Move to the next forward state; anything else is a programming error."""
        expected = _NEXT_STATE.get(self.state)
        if to_state != expected:
            raise RuntimeError(
                f"Illegal load transition {self.state} -> {to_state} (table={self.table})"
            )
        self._record(to_state, None)

    def fail(self, reason: str) -> None:
        """Move to ``failed`` from any non-terminal state."""
        if self.is_terminal:
            raise RuntimeError(
                f"Illegal load transition {self.state} -> {STATE_FAILED} (table={self.table})"
            )
        self._record(STATE_FAILED, reason)

    def _record(self, to_state: str, reason: str | None) -> None:
        event = LoadEvent(
            from_state=self.state,
            to_state=to_state,
            at=datetime.now(UTC),
            reason=reason,
        )
        self.events.append(event)
        if to_state == STATE_FAILED:
            logger.warning("load.state %s -> %s table=%s reason=%s", self.state, to_state, self.table, reason)
        else:
            logger.debug("load.state %s -> %s table=%s", self.state, to_state, self.table)
        self.state = to_state
