# File: src/caixapilot/controller/state.py
"""Cash register screen state machine.

LOADING -> NO_SESSION | OPEN
NO_SESSION -> OPENING -> OPEN | NO_SESSION
OPEN -> MOVEMENT_IN_PROGRESS -> OPEN
OPEN -> CLOSING -> NO_SESSION | OPEN

`reduce` is pure: it takes the current state and one event and returns the
next state, raising InvalidStateError for events the current phase does not
accept. All I/O lives in the controller, which only reports outcomes here.
"""

import enum
from dataclasses import dataclass, replace
from decimal import Decimal

from caixapilot.core.errors import InvalidStateError
from caixapilot.core.reconciliation import apply_movement
from caixapilot.models.cash_session_schemas import CashSessionRead
from caixapilot.models.enums import MovementType


class Phase(str, enum.Enum):
    LOADING = "loading"
    NO_SESSION = "no_session"
    OPENING = "opening"
    OPEN = "open"
    MOVEMENT_IN_PROGRESS = "movement_in_progress"
    CLOSING = "closing"


# Phases with a network call outstanding
BUSY_PHASES = frozenset({Phase.LOADING, Phase.OPENING, Phase.MOVEMENT_IN_PROGRESS, Phase.CLOSING})


@dataclass(frozen=True)
class ControllerState:
    phase: Phase = Phase.LOADING
    session: CashSessionRead | None = None
    # Session came from (or only exists in) the local cache
    offline: bool = False
    reachable: bool | None = None
    notice: str | None = None
    last_error: str | None = None

    @property
    def busy(self) -> bool:
        return self.phase in BUSY_PHASES


# Events


@dataclass(frozen=True)
class LoadRequested:
    pass


@dataclass(frozen=True)
class ProbeResult:
    reachable: bool


@dataclass(frozen=True)
class SessionLoaded:
    session: CashSessionRead | None
    offline: bool = False


@dataclass(frozen=True)
class OpenRequested:
    opening_balance: Decimal
    terminal_id: str


@dataclass(frozen=True)
class OpenSucceeded:
    session: CashSessionRead
    offline: bool
    notice: str


@dataclass(frozen=True)
class OpenFailed:
    error: str


@dataclass(frozen=True)
class MovementRequested:
    type: MovementType
    amount: Decimal


@dataclass(frozen=True)
class MovementSucceeded:
    type: MovementType
    amount: Decimal
    notice: str


@dataclass(frozen=True)
class MovementFailed:
    error: str


@dataclass(frozen=True)
class CloseRequested:
    pass


@dataclass(frozen=True)
class CloseSucceeded:
    notice: str


@dataclass(frozen=True)
class CloseFailed:
    error: str


def _expect(state: ControllerState, event: object, *phases: Phase) -> None:
    if state.phase not in phases:
        raise InvalidStateError(
            f"{type(event).__name__} not allowed while {state.phase.value}",
            details={"phase": state.phase.value, "event": type(event).__name__},
        )


def _on_load_requested(state: ControllerState, event: LoadRequested) -> ControllerState:
    _expect(state, event, Phase.LOADING, Phase.NO_SESSION, Phase.OPEN)
    return replace(state, phase=Phase.LOADING, notice=None, last_error=None)


def _on_probe_result(state: ControllerState, event: ProbeResult) -> ControllerState:
    return replace(state, reachable=event.reachable)


def _on_session_loaded(state: ControllerState, event: SessionLoaded) -> ControllerState:
    _expect(state, event, Phase.LOADING)
    if event.session is None:
        return replace(state, phase=Phase.NO_SESSION, session=None, offline=False)
    return replace(state, phase=Phase.OPEN, session=event.session, offline=event.offline)


def _on_open_requested(state: ControllerState, event: OpenRequested) -> ControllerState:
    _expect(state, event, Phase.NO_SESSION)
    return replace(state, phase=Phase.OPENING, notice=None, last_error=None)


def _on_open_succeeded(state: ControllerState, event: OpenSucceeded) -> ControllerState:
    _expect(state, event, Phase.OPENING)
    return replace(
        state,
        phase=Phase.OPEN,
        session=event.session,
        offline=event.offline,
        notice=event.notice,
    )


def _on_open_failed(state: ControllerState, event: OpenFailed) -> ControllerState:
    _expect(state, event, Phase.OPENING)
    return replace(state, phase=Phase.NO_SESSION, session=None, last_error=event.error)


def _on_movement_requested(state: ControllerState, event: MovementRequested) -> ControllerState:
    _expect(state, event, Phase.OPEN)
    return replace(state, phase=Phase.MOVEMENT_IN_PROGRESS, notice=None, last_error=None)


def _on_movement_succeeded(state: ControllerState, event: MovementSucceeded) -> ControllerState:
    _expect(state, event, Phase.MOVEMENT_IN_PROGRESS)
    # Mirror the server-side increment so the live totals stay current
    session = apply_movement(state.session, event.type, event.amount)
    return replace(state, phase=Phase.OPEN, session=session, notice=event.notice)


def _on_movement_failed(state: ControllerState, event: MovementFailed) -> ControllerState:
    _expect(state, event, Phase.MOVEMENT_IN_PROGRESS)
    return replace(state, phase=Phase.OPEN, last_error=event.error)


def _on_close_requested(state: ControllerState, event: CloseRequested) -> ControllerState:
    _expect(state, event, Phase.OPEN)
    return replace(state, phase=Phase.CLOSING, notice=None, last_error=None)


def _on_close_succeeded(state: ControllerState, event: CloseSucceeded) -> ControllerState:
    _expect(state, event, Phase.CLOSING)
    return replace(
        state,
        phase=Phase.NO_SESSION,
        session=None,
        offline=False,
        notice=event.notice,
    )


def _on_close_failed(state: ControllerState, event: CloseFailed) -> ControllerState:
    _expect(state, event, Phase.CLOSING)
    return replace(state, phase=Phase.OPEN, last_error=event.error)


_HANDLERS = {
    LoadRequested: _on_load_requested,
    ProbeResult: _on_probe_result,
    SessionLoaded: _on_session_loaded,
    OpenRequested: _on_open_requested,
    OpenSucceeded: _on_open_succeeded,
    OpenFailed: _on_open_failed,
    MovementRequested: _on_movement_requested,
    MovementSucceeded: _on_movement_succeeded,
    MovementFailed: _on_movement_failed,
    CloseRequested: _on_close_requested,
    CloseSucceeded: _on_close_succeeded,
    CloseFailed: _on_close_failed,
}


def reduce(state: ControllerState, event: object) -> ControllerState:
    """Next state for `event`; raises InvalidStateError if it is not accepted."""
    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f"Unknown controller event: {event!r}")
    return handler(state, event)
