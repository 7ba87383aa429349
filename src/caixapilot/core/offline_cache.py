# File: src/caixapilot/core/offline_cache.py
"""Local fallback store for the open cash session of a terminal.

One slot per (company, terminal): saving replaces whatever was there, it is
not a queue. Reads never raise; anything missing, corrupt, foreign or
already closed reads as "no session".
"""

import secrets
from decimal import Decimal

from pydantic import ValidationError as PydanticValidationError

from caixapilot.core.logging import get_logger
from caixapilot.core.kv_store import KeyValueStore
from caixapilot.core.reconciliation import summarize, to_money
from caixapilot.core.settings import DEFAULT_TERMINAL_ID
from caixapilot.models.cash_session_schemas import (
    OFFLINE_ID_PREFIX,
    CashSessionRead,
    CountedAmounts,
)
from caixapilot.models.enums import SessionStatus
from caixapilot.utils.datetime import epoch_ms, now_utc

logger = get_logger(__name__)

LOCAL_SESSION_NAMESPACE = "as_offline_cash_session"


def new_offline_id() -> str:
    """Locally generated session id, e.g. offline_1760790000000_3f9a1c."""
    return f"{OFFLINE_ID_PREFIX}{epoch_ms()}_{secrets.token_hex(3)}"


def make_offline_session(
    company_id: str,
    user_id: str,
    opening_balance: Decimal | int | str,
    terminal_id: str = DEFAULT_TERMINAL_ID,
) -> CashSessionRead:
    """Build a fresh open session that exists only on this terminal."""
    opened_at = now_utc()
    return CashSessionRead(
        id=new_offline_id(),
        company_id=company_id,
        terminal_id=terminal_id or DEFAULT_TERMINAL_ID,
        status=SessionStatus.ABERTO,
        opened_at=opened_at,
        opened_by=user_id,
        opening_balance=to_money(opening_balance),
        created_at=opened_at,
    )


def close_session_locally(
    session: CashSessionRead,
    counted: CountedAmounts,
    closed_by: str,
    notes: str | None = None,
) -> CashSessionRead:
    """Reconcile and close a session without the backend."""
    summary = summarize(session, counted)
    return session.model_copy(
        update={
            "status": SessionStatus.FECHADO,
            "closed_at": now_utc(),
            "closed_by": closed_by,
            "counted_dinheiro": to_money(counted.dinheiro),
            "counted_debito": to_money(counted.debito),
            "counted_credito": to_money(counted.credito),
            "counted_pix": to_money(counted.pix),
            "closing_balance": summary.total_counted,
            "difference": summary.difference,
            "notes": notes,
        }
    )


class OfflineSessionRepository:
    """Single-slot session cache on top of a KeyValueStore."""

    def __init__(self, store: KeyValueStore, namespace: str = LOCAL_SESSION_NAMESPACE):
        self.store = store
        self.namespace = namespace

    def slot_key(self, company_id: str, terminal_id: str = DEFAULT_TERMINAL_ID) -> str:
        return f"{self.namespace}:{company_id}:{terminal_id}"

    def save(self, session: CashSessionRead) -> None:
        """Serialize the session into its slot, overwriting any previous value."""
        key = self.slot_key(session.company_id, session.terminal_id)
        self.store.set(key, session.model_dump_json())
        logger.debug("offline_cache.saved", key=key, session_id=session.id)

    def load(
        self, company_id: str, terminal_id: str = DEFAULT_TERMINAL_ID
    ) -> CashSessionRead | None:
        """Cached open session for this company/terminal, or None."""
        key = self.slot_key(company_id, terminal_id)
        raw = self.store.get(key)
        if not raw:
            return None

        try:
            session = CashSessionRead.model_validate_json(raw)
        except (PydanticValidationError, ValueError):
            logger.warning("offline_cache.corrupt", key=key)
            return None

        if session.company_id != company_id or session.terminal_id != terminal_id:
            logger.warning("offline_cache.mismatch", key=key, session_id=session.id)
            return None
        if session.status != SessionStatus.ABERTO:
            return None
        return session

    def clear(self, company_id: str, terminal_id: str = DEFAULT_TERMINAL_ID) -> None:
        self.store.delete(self.slot_key(company_id, terminal_id))
