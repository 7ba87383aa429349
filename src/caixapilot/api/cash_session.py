"""Cash session endpoints (current, open, movements, close)."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from caixapilot.api import cash_session_helpers as helpers
from caixapilot.core.db import get_db
from caixapilot.core.logging import get_logger
from caixapilot.models.cash_session import CashSession
from caixapilot.models.cash_session_schemas import (
    CashMovementCreate,
    CashMovementRead,
    CashSessionClose,
    CashSessionOpen,
    CashSessionRead,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/cash-sessions", tags=["cash-sessions"])


@router.get("/current", response_model=CashSessionRead | None)
async def get_current_session(
    company_id: str = Query(..., min_length=1, max_length=64),
    terminal_id: str | None = Query(None, max_length=32),
    db: AsyncSession = Depends(get_db),
):
    """Current open session for a company, optionally for a single terminal.

    Returns null when no session is open.
    """
    return await CashSession.find_open(db, company_id, terminal_id)


@router.post("", response_model=CashSessionRead, status_code=status.HTTP_201_CREATED)
async def open_session(
    payload: CashSessionOpen,
    db: AsyncSession = Depends(get_db),
):
    """Open a new cash session on a terminal.

    409 when the terminal already has an open session.
    """
    return await helpers.open_session(db, payload)


@router.post(
    "/{session_id}/movements",
    response_model=CashMovementRead,
    status_code=status.HTTP_201_CREATED,
)
async def register_movement(
    session_id: str,
    payload: CashMovementCreate,
    db: AsyncSession = Depends(get_db),
):
    """Register a sangria (withdrawal) or suprimento (injection)."""
    return await helpers.register_movement(db, session_id, payload)


@router.get("/{session_id}/movements", response_model=list[CashMovementRead])
async def list_movements(
    session_id: str,
    company_id: str = Query(..., min_length=1, max_length=64),
    db: AsyncSession = Depends(get_db),
):
    """Movement history of a session (abertura, sangrias, suprimentos, fechamento)."""
    return await helpers.list_movements(db, session_id, company_id)


@router.post("/{session_id}/close", response_model=CashSessionRead)
async def close_session(
    session_id: str,
    payload: CashSessionClose,
    db: AsyncSession = Depends(get_db),
):
    """Close a session with the operator's counted amounts.

    The difference (counted - expected) is computed and frozen here.
    """
    return await helpers.close_session(db, session_id, payload)
