"""CashMovement database model."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from caixapilot.core.db import Base
from caixapilot.utils.datetime import now_utc

if TYPE_CHECKING:
    from caixapilot.models.cash_session import CashSession


class CashMovement(Base):
    """
    A single movement of money tied to one cash session.
    Attributes:
        id: Unique identifier (UUID v4 as string)
        session_id: Owning cash session
        type: sangria, suprimento, abertura or fechamento
        amount: Amount in reais (non-negative, two decimals)
        description: Optional text description
        performed_by: Operator that registered the movement
        created_at: When the movement was recorded
    """

    __tablename__ = "cash_movements"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    company_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    session_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("cash_sessions.id"),
        nullable=False,
        index=True,
    )

    session: Mapped["CashSession"] = relationship(
        "CashSession",
        back_populates="movements",
    )

    type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    description: Mapped[str | None] = mapped_column(String(255), nullable=True)

    performed_by: Mapped[str] = mapped_column(String(64), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=now_utc,
    )

    def __repr__(self) -> str:
        """String representation of the CashMovement."""
        return (
            f"<CashMovement(id={self.id}, session_id={self.session_id}, "
            f"type={self.type}, amount={self.amount})>"
        )
