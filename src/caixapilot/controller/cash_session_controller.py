# File: src/caixapilot/controller/cash_session_controller.py
"""Orchestrates open / movement / close for one terminal's cash drawer.

Paths:
- Load: probe; unreachable -> offline cache; reachable -> backend, falling
  back to the cache if the backend call fails.
- Open: probe; unreachable -> offline session. Reachable -> backend open;
  a NetworkUnreachableError degrades to an offline session, a backend
  rejection is surfaced unless the ANY_ERROR policy is configured.
- Movement / Close: backend only, errors surfaced, state untouched on
  failure. Closing a locally opened session reconciles it locally.
"""

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from caixapilot.client.cash_session_service import CashSessionService
from caixapilot.controller.state import (
    CloseFailed,
    CloseRequested,
    CloseSucceeded,
    ControllerState,
    LoadRequested,
    MovementFailed,
    MovementRequested,
    MovementSucceeded,
    OpenFailed,
    OpenRequested,
    OpenSucceeded,
    Phase,
    ProbeResult,
    SessionLoaded,
    reduce,
)
from caixapilot.core.connectivity import ConnectivityChecker
from caixapilot.core.drawer import CashDrawer, NullDrawer
from caixapilot.core.errors import (
    InvalidStateError,
    NetworkUnreachableError,
    ServiceError,
    ValidationError,
)
from caixapilot.core.logging import get_logger
from caixapilot.core.offline_cache import (
    OfflineSessionRepository,
    close_session_locally,
    make_offline_session,
)
from caixapilot.core.reconciliation import ReconciliationSummary, summarize
from caixapilot.core.settings import DEFAULT_TERMINAL_ID
from caixapilot.core.validators import (
    sanitize_html,
    validate_currency,
    validate_identifier,
    validate_positive_amount,
)
from caixapilot.models.cash_session_schemas import CashSessionRead, CountedAmounts
from caixapilot.models.enums import OPERATOR_MOVEMENT_TYPES, MovementType, OpenFallbackPolicy

logger = get_logger(__name__)

NOTICE_OPENED = "Caixa aberto"
NOTICE_OPENED_OFFLINE = "Caixa aberto em modo offline (ainda não registrado no servidor)"
NOTICE_SANGRIA = "Sangria registrada"
NOTICE_SUPRIMENTO = "Suprimento registrado"
NOTICE_CLOSED = "Caixa fechado"
NOTICE_CLOSED_OFFLINE = "Caixa fechado em modo offline (não registrado no servidor)"
MESSAGE_UNEXPECTED_ERROR = "Erro inesperado ao comunicar com o servidor"


@dataclass(frozen=True)
class OperationResult:
    """What the operator is told after a successful operation."""

    message: str
    offline: bool = False
    session: CashSessionRead | None = None
    summary: ReconciliationSummary | None = None


def _coerce_counted(counted: Any) -> CountedAmounts:
    if counted is None:
        return CountedAmounts()
    if isinstance(counted, CountedAmounts):
        return counted
    try:
        return CountedAmounts.model_validate(dict(counted))
    except (TypeError, ValueError) as exc:
        raise ValidationError("Valores contados inválidos", details={"error": str(exc)}) from exc


class CashSessionController:
    """Cash register controller for one company/operator/terminal."""

    def __init__(
        self,
        *,
        service: CashSessionService,
        connectivity: ConnectivityChecker,
        offline_repository: OfflineSessionRepository,
        company_id: str,
        user_id: str,
        terminal_id: str = DEFAULT_TERMINAL_ID,
        drawer: CashDrawer | None = None,
        fallback_policy: OpenFallbackPolicy = OpenFallbackPolicy.NETWORK_ONLY,
    ):
        self.service = service
        self.connectivity = connectivity
        self.offline_repository = offline_repository
        self.company_id = validate_identifier(company_id, "company_id")
        self.user_id = validate_identifier(user_id, "user_id")
        self.terminal_id = validate_identifier(terminal_id or DEFAULT_TERMINAL_ID, "terminal_id")
        self.drawer = drawer or NullDrawer()
        self.fallback_policy = fallback_policy
        self._state = ControllerState()
        self._side_effects: set[asyncio.Task] = set()

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def session(self) -> CashSessionRead | None:
        return self._state.session

    def _dispatch(self, event: object) -> ControllerState:
        self._state = reduce(self._state, event)
        return self._state

    def _require_open(self) -> CashSessionRead:
        if self._state.phase is not Phase.OPEN or self._state.session is None:
            raise InvalidStateError(
                "Nenhum caixa aberto",
                details={"phase": self._state.phase.value},
            )
        return self._state.session

    # Cache write failures are logged, never raised
    def _remember(self, session: CashSessionRead) -> None:
        try:
            self.offline_repository.save(session)
        except OSError as exc:
            logger.error("cash_session.cache_save_failed", session_id=session.id, error=str(exc))

    def _forget(self, terminal_id: str) -> None:
        try:
            self.offline_repository.clear(self.company_id, terminal_id)
        except OSError as exc:
            logger.error("cash_session.cache_clear_failed", terminal_id=terminal_id, error=str(exc))

    # Load

    async def load(self) -> ControllerState:
        """Resolve the current session on mount."""
        self._dispatch(LoadRequested())

        reachable = await self.connectivity.can_reach_server()
        self._dispatch(ProbeResult(reachable))

        if not reachable:
            cached = self.offline_repository.load(self.company_id, self.terminal_id)
            logger.info(
                "cash_session.load.offline",
                cached_session_id=cached.id if cached else None,
            )
            return self._dispatch(SessionLoaded(cached, offline=cached is not None))

        try:
            remote = await self.service.get_current_session(self.company_id, self.terminal_id)
        except ServiceError as exc:
            cached = self.offline_repository.load(self.company_id, self.terminal_id)
            logger.warning(
                "cash_session.load.backend_failed",
                code=exc.code,
                cached_session_id=cached.id if cached else None,
            )
            return self._dispatch(SessionLoaded(cached, offline=cached is not None))

        if remote is not None:
            self._remember(remote)
            return self._dispatch(SessionLoaded(remote, offline=False))

        cached = self.offline_repository.load(self.company_id, self.terminal_id)
        if cached is not None and cached.is_offline:
            # Opened while offline; the backend has never seen it
            logger.info("cash_session.load.pending_offline_session", session_id=cached.id)
            return self._dispatch(SessionLoaded(cached, offline=True))
        if cached is not None:
            # Closed elsewhere; the backend is authoritative for server ids
            self._forget(self.terminal_id)
        return self._dispatch(SessionLoaded(None))

    # Open

    async def open(
        self, opening_balance: Decimal | int | str, terminal_id: str | None = None
    ) -> OperationResult:
        """Open the drawer. Succeeds online or, when degraded, offline.

        Only an unreachable server degrades to an offline session by default.
        A backend rejection (409 already open, 422, 5xx) is raised and the
        controller returns to NO_SESSION. Configure OpenFallbackPolicy.ANY_ERROR
        (CAIXA_OPEN_FALLBACK=any_error) to open offline on every backend error
        instead, so that Open always appears to succeed.
        """
        try:
            balance = validate_currency(opening_balance)
        except ValueError as exc:
            raise ValidationError(str(exc), details={"field": "opening_balance"}) from exc
        terminal = validate_identifier(terminal_id or self.terminal_id, "terminal_id")

        self._dispatch(OpenRequested(balance, terminal))

        reachable = await self.connectivity.can_reach_server()
        self._dispatch(ProbeResult(reachable))
        if not reachable:
            return self._open_offline(balance, terminal, reason="unreachable")

        try:
            session = await self.service.open(
                company_id=self.company_id,
                user_id=self.user_id,
                opening_balance=balance,
                terminal_id=terminal,
            )
        except NetworkUnreachableError:
            return self._open_offline(balance, terminal, reason="network_error")
        except ServiceError as exc:
            if self.fallback_policy is OpenFallbackPolicy.ANY_ERROR:
                logger.warning(
                    "cash_session.open.backend_error_downgraded",
                    code=exc.code,
                    status_code=exc.status_code,
                )
                return self._open_offline(balance, terminal, reason="backend_error")
            self._dispatch(OpenFailed(exc.message))
            logger.warning("cash_session.open.rejected", code=exc.code, status_code=exc.status_code)
            raise
        except Exception as exc:
            self._dispatch(OpenFailed(MESSAGE_UNEXPECTED_ERROR))
            logger.error("cash_session.open.error", error=str(exc), exc_info=True)
            raise

        self.terminal_id = terminal
        self._remember(session)
        self._dispatch(OpenSucceeded(session, offline=False, notice=NOTICE_OPENED))
        logger.info("cash_session.open.online", session_id=session.id)
        return OperationResult(message=NOTICE_OPENED, offline=False, session=session)

    def _open_offline(self, balance: Decimal, terminal: str, reason: str) -> OperationResult:
        session = make_offline_session(self.company_id, self.user_id, balance, terminal)
        self.terminal_id = terminal
        self._remember(session)
        self._dispatch(OpenSucceeded(session, offline=True, notice=NOTICE_OPENED_OFFLINE))
        logger.warning("cash_session.open.offline", session_id=session.id, reason=reason)
        return OperationResult(message=NOTICE_OPENED_OFFLINE, offline=True, session=session)

    # Movements

    async def register_movement(
        self,
        movement_type: MovementType | str,
        amount: Decimal | int | str,
        description: str | None = None,
    ) -> OperationResult:
        """Register a sangria/suprimento on the backend and kick the drawer."""
        session = self._require_open()

        try:
            kind = MovementType(movement_type)
        except ValueError as exc:
            raise ValidationError(
                "Tipo de movimentação inválido", details={"type": str(movement_type)}
            ) from exc
        if kind not in OPERATOR_MOVEMENT_TYPES:
            raise ValidationError(
                "Tipo de movimentação inválido", details={"type": kind.value}
            )
        try:
            value = validate_positive_amount(amount)
        except ValueError as exc:
            raise ValidationError(str(exc), details={"field": "amount"}) from exc

        if session.is_offline:
            raise InvalidStateError(
                "Caixa aberto offline: movimentações exigem conexão com o servidor",
                details={"session_id": session.id},
            )

        self._dispatch(MovementRequested(kind, value))
        try:
            await self.service.register_movement(
                company_id=self.company_id,
                user_id=self.user_id,
                session_id=session.id,
                type=kind,
                amount=value,
                description=sanitize_html(description),
            )
        except ServiceError as exc:
            self._dispatch(MovementFailed(exc.message))
            logger.warning(
                "cash_session.movement.failed",
                session_id=session.id,
                movement_type=kind.value,
                code=exc.code,
            )
            raise
        except Exception as exc:
            self._dispatch(MovementFailed(MESSAGE_UNEXPECTED_ERROR))
            logger.error(
                "cash_session.movement.error",
                session_id=session.id,
                movement_type=kind.value,
                error=str(exc),
                exc_info=True,
            )
            raise

        notice = NOTICE_SANGRIA if kind is MovementType.SANGRIA else NOTICE_SUPRIMENTO
        state = self._dispatch(MovementSucceeded(kind, value, notice))
        self._remember(state.session)
        self._kick_drawer()
        logger.info(
            "cash_session.movement.registered",
            session_id=session.id,
            movement_type=kind.value,
            amount=str(value),
        )
        return OperationResult(message=notice, offline=False, session=state.session)

    def _kick_drawer(self) -> None:
        task = asyncio.get_running_loop().create_task(self._open_drawer())
        self._side_effects.add(task)
        task.add_done_callback(self._side_effects.discard)

    async def _open_drawer(self) -> None:
        # Fire-and-forget: no acknowledgment, no retry
        try:
            await self.drawer.open()
        except Exception as exc:
            logger.warning("drawer.open_failed", error=type(exc).__name__, detail=str(exc))

    async def wait_for_side_effects(self) -> None:
        """Let pending drawer commands finish (used before process exit)."""
        if self._side_effects:
            await asyncio.gather(*list(self._side_effects))

    # Close

    def reconciliation(self, counted: Any = None) -> ReconciliationSummary:
        """Live worksheet for the open session."""
        return summarize(self._require_open(), _coerce_counted(counted))

    async def close(self, counted: Any = None, notes: str | None = None) -> OperationResult:
        """Close with the counted amounts; the backend persists the difference."""
        session = self._require_open()
        amounts = _coerce_counted(counted)
        clean_notes = sanitize_html(notes)
        summary = summarize(session, amounts)

        self._dispatch(CloseRequested())

        if session.is_offline:
            closed = close_session_locally(session, amounts, self.user_id, clean_notes)
            self._forget(session.terminal_id)
            self._dispatch(CloseSucceeded(NOTICE_CLOSED_OFFLINE))
            logger.warning(
                "cash_session.close.offline",
                session_id=session.id,
                difference=str(summary.difference),
                level=summary.level.value,
            )
            return OperationResult(
                message=NOTICE_CLOSED_OFFLINE, offline=True, session=closed, summary=summary
            )

        try:
            closed = await self.service.close(
                session_id=session.id,
                company_id=self.company_id,
                user_id=self.user_id,
                counted=amounts,
                notes=clean_notes,
            )
        except ServiceError as exc:
            self._dispatch(CloseFailed(exc.message))
            logger.warning("cash_session.close.failed", session_id=session.id, code=exc.code)
            raise
        except Exception as exc:
            self._dispatch(CloseFailed(MESSAGE_UNEXPECTED_ERROR))
            logger.error(
                "cash_session.close.error", session_id=session.id, error=str(exc), exc_info=True
            )
            raise

        self._forget(session.terminal_id)
        self._dispatch(CloseSucceeded(NOTICE_CLOSED))
        logger.info(
            "cash_session.close.online",
            session_id=session.id,
            difference=str(closed.difference if closed.difference is not None else summary.difference),
            level=summary.level.value,
        )
        return OperationResult(message=NOTICE_CLOSED, offline=False, session=closed, summary=summary)


