"""Helper functions for cash session lifecycle on the backend."""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from caixapilot.core.errors import ConflictError, InvalidStateError, NotFoundError
from caixapilot.core.logging import get_logger
from caixapilot.core.reconciliation import movement_field, summarize, to_money
from caixapilot.models.cash_movement import CashMovement
from caixapilot.models.cash_session import CashSession
from caixapilot.models.cash_session_schemas import (
    CashMovementCreate,
    CashSessionClose,
    CashSessionOpen,
)
from caixapilot.models.enums import MovementType, SessionStatus
from caixapilot.utils.datetime import now_utc

logger = get_logger(__name__)


async def get_session_or_404(
    db: AsyncSession,
    session_id: str,
    company_id: str | None = None,
    for_update: bool = False,
) -> CashSession:
    """Load a session by id, scoped to a company when given."""
    stmt = select(CashSession).where(CashSession.id == session_id)
    if company_id:
        stmt = stmt.where(CashSession.company_id == company_id)
    if for_update:
        stmt = stmt.with_for_update()

    result = await db.execute(stmt)
    session = result.scalar_one_or_none()
    if session is None:
        raise NotFoundError("CashSession", session_id)
    return session


def _require_open(session: CashSession) -> None:
    if not session.is_open:
        raise InvalidStateError(
            "Caixa já está fechado",
            details={"session_id": session.id, "status": session.status},
        )


async def open_session(db: AsyncSession, payload: CashSessionOpen) -> CashSession:
    """Open a session, refusing a second open session on the same terminal.

    The explicit lookup gives a readable error; the partial unique index
    catches the race where two requests pass the lookup concurrently.
    """
    existing = await CashSession.find_open(db, payload.company_id, payload.terminal_id)
    if existing is not None:
        raise ConflictError(
            f"Terminal {payload.terminal_id} já possui um caixa aberto",
            details={
                "company_id": payload.company_id,
                "terminal_id": payload.terminal_id,
                "session_id": existing.id,
            },
        )

    session = CashSession(
        company_id=payload.company_id,
        terminal_id=payload.terminal_id,
        status=SessionStatus.ABERTO.value,
        opened_by=payload.user_id,
        opened_at=now_utc(),
        opening_balance=payload.opening_balance,
    )
    db.add(session)

    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError(
            f"Terminal {payload.terminal_id} já possui um caixa aberto",
            details={"company_id": payload.company_id, "terminal_id": payload.terminal_id},
        ) from exc

    db.add(
        CashMovement(
            company_id=payload.company_id,
            session_id=session.id,
            type=MovementType.ABERTURA.value,
            amount=payload.opening_balance,
            performed_by=payload.user_id,
            description="Abertura de caixa",
        )
    )
    await db.flush()

    logger.info(
        "cash_session.opened",
        session_id=session.id,
        company_id=session.company_id,
        terminal_id=session.terminal_id,
        opening_balance=str(session.opening_balance),
    )
    return session


async def register_movement(
    db: AsyncSession, session_id: str, payload: CashMovementCreate
) -> CashMovement:
    """Record a sangria/suprimento and bump the matching accumulator."""
    session = await get_session_or_404(db, session_id, payload.company_id, for_update=True)
    _require_open(session)

    field = movement_field(payload.type)
    current: Decimal = to_money(getattr(session, field))
    setattr(session, field, current + payload.amount)

    movement = CashMovement(
        company_id=payload.company_id,
        session_id=session.id,
        type=payload.type.value,
        amount=payload.amount,
        performed_by=payload.user_id,
        description=payload.description,
    )
    db.add(movement)
    await db.flush()

    logger.info(
        "cash_session.movement_registered",
        session_id=session.id,
        movement_type=payload.type.value,
        amount=str(payload.amount),
        new_total=str(getattr(session, field)),
    )
    return movement


async def close_session(
    db: AsyncSession, session_id: str, payload: CashSessionClose
) -> CashSession:
    """Close a session, persisting the authoritative difference.

    Money fields are frozen from here on: every mutating path checks the
    status first.
    """
    session = await get_session_or_404(db, session_id, payload.company_id, for_update=True)
    _require_open(session)

    summary = summarize(session, payload.counted)

    session.status = SessionStatus.FECHADO.value
    session.closed_by = payload.user_id
    session.closed_at = now_utc()
    session.counted_dinheiro = payload.counted_dinheiro
    session.counted_debito = payload.counted_debito
    session.counted_credito = payload.counted_credito
    session.counted_pix = payload.counted_pix
    session.closing_balance = summary.total_counted
    session.difference = summary.difference
    session.notes = payload.notes

    db.add(
        CashMovement(
            company_id=payload.company_id,
            session_id=session.id,
            type=MovementType.FECHAMENTO.value,
            amount=summary.total_counted,
            performed_by=payload.user_id,
            description=f"Fechamento - Diferença: {summary.difference}",
        )
    )
    await db.flush()

    logger.info(
        "cash_session.closed",
        session_id=session.id,
        total_expected=str(summary.total_expected),
        total_counted=str(summary.total_counted),
        difference=str(summary.difference),
        level=summary.level.value,
    )
    return session


async def list_movements(db: AsyncSession, session_id: str, company_id: str) -> list[CashMovement]:
    """Movement history for one session, oldest first."""
    await get_session_or_404(db, session_id, company_id)
    stmt = (
        select(CashMovement)
        .where(CashMovement.session_id == session_id)
        .order_by(CashMovement.created_at.asc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())
