"""CashSession model: one drawer shift on one terminal."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Index, Integer, Numeric, String, select, text
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column, relationship

from caixapilot.core.db import Base
from caixapilot.core.settings import DEFAULT_TERMINAL_ID
from caixapilot.models.enums import SessionStatus
from caixapilot.utils.datetime import now_utc

if TYPE_CHECKING:
    from caixapilot.models.cash_movement import CashMovement


def _money_column(nullable: bool = False) -> Mapped[Decimal]:
    if nullable:
        return mapped_column(Numeric(12, 2), nullable=True)
    return mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))


class CashSession(Base):
    """Cash session model for shift tracking and reconciliation."""

    __tablename__ = "cash_sessions"
    __table_args__ = (
        # At most one open session per (company, terminal)
        Index(
            "uq_cash_sessions_one_open_per_terminal",
            "company_id",
            "terminal_id",
            unique=True,
            postgresql_where=text("status = 'aberto'"),
            sqlite_where=text("status = 'aberto'"),
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    company_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    terminal_id: Mapped[str] = mapped_column(
        String(32), nullable=False, default=DEFAULT_TERMINAL_ID
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=SessionStatus.ABERTO.value,
        index=True,
    )

    opened_by: Mapped[str] = mapped_column(String(64), nullable=False)
    opened_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now_utc
    )
    closed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    opening_balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # Per payment method accumulators (fed by the sales subsystem)
    total_dinheiro: Mapped[Decimal] = _money_column()
    total_debito: Mapped[Decimal] = _money_column()
    total_credito: Mapped[Decimal] = _money_column()
    total_pix: Mapped[Decimal] = _money_column()
    total_voucher: Mapped[Decimal] = _money_column()
    total_outros: Mapped[Decimal] = _money_column()
    total_vendas: Mapped[Decimal] = _money_column()
    sales_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Movement accumulators
    total_sangria: Mapped[Decimal] = _money_column()
    total_suprimento: Mapped[Decimal] = _money_column()

    # Closing worksheet (null until closed)
    counted_dinheiro: Mapped[Decimal | None] = _money_column(nullable=True)
    counted_debito: Mapped[Decimal | None] = _money_column(nullable=True)
    counted_credito: Mapped[Decimal | None] = _money_column(nullable=True)
    counted_pix: Mapped[Decimal | None] = _money_column(nullable=True)
    closing_balance: Mapped[Decimal | None] = _money_column(nullable=True)
    difference: Mapped[Decimal | None] = _money_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now_utc
    )

    movements: Mapped[list["CashMovement"]] = relationship(
        "CashMovement",
        back_populates="session",
        order_by="CashMovement.created_at",
        lazy="selectin",
    )

    @property
    def is_open(self) -> bool:
        return self.status == SessionStatus.ABERTO.value

    @staticmethod
    async def find_open(
        db: AsyncSession,
        company_id: str,
        terminal_id: str | None = None,
        for_update: bool = False,
    ) -> "CashSession | None":
        """Most recently opened open session for a company (optionally one terminal).

        Args:
            db: Database session
            company_id: Company partition
            terminal_id: Restrict to this terminal when given
            for_update: Lock the row (PostgreSQL) while the caller mutates it

        Returns:
            The open session if found, None otherwise
        """
        stmt = select(CashSession).where(
            CashSession.company_id == company_id,
            CashSession.status == SessionStatus.ABERTO.value,
        )
        if terminal_id:
            stmt = stmt.where(CashSession.terminal_id == terminal_id)
        stmt = stmt.order_by(CashSession.opened_at.desc()).limit(1)
        if for_update:
            stmt = stmt.with_for_update()

        result = await db.execute(stmt)
        return result.scalars().first()

    def __repr__(self) -> str:
        return (
            f"<CashSession(id={self.id}, company_id={self.company_id}, "
            f"terminal_id={self.terminal_id}, status={self.status})>"
        )
