# File: src/caixapilot/models/cash_session_schemas.py
"""Pydantic schemas for the cash session API and local cache."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from caixapilot.core.reconciliation import to_money
from caixapilot.core.settings import DEFAULT_TERMINAL_ID
from caixapilot.core.validators import (
    sanitize_html,
    validate_currency,
    validate_identifier,
    validate_positive_amount,
)
from caixapilot.models.enums import OPERATOR_MOVEMENT_TYPES, MovementType, SessionStatus

OFFLINE_ID_PREFIX = "offline_"

ACCUMULATOR_FIELDS = (
    "total_dinheiro",
    "total_debito",
    "total_credito",
    "total_pix",
    "total_voucher",
    "total_outros",
    "total_sangria",
    "total_suprimento",
    "total_vendas",
)

CLOSING_FIELDS = (
    "counted_dinheiro",
    "counted_debito",
    "counted_credito",
    "counted_pix",
    "closing_balance",
    "difference",
)


def is_offline_id(session_id: str | None) -> bool:
    """True for ids generated locally while the backend was unreachable."""
    return bool(session_id) and session_id.startswith(OFFLINE_ID_PREFIX)


class CountedAmounts(BaseModel):
    """Amounts physically counted by the operator at closing."""

    dinheiro: Decimal | None = Field(None, ge=0, decimal_places=2)
    debito: Decimal | None = Field(None, ge=0, decimal_places=2)
    credito: Decimal | None = Field(None, ge=0, decimal_places=2)
    pix: Decimal | None = Field(None, ge=0, decimal_places=2)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="before")
    @classmethod
    def accept_column_names(cls, data):
        """Also accept the closing column names (counted_dinheiro, ...)."""
        if not isinstance(data, dict):
            return data
        normalized = {}
        for key, value in data.items():
            method = key.removeprefix("counted_")
            if method in normalized and key != method:
                # Method key wins over the column alias
                continue
            normalized[method] = value
        return normalized

    @field_validator("dinheiro", "debito", "credito", "pix")
    @classmethod
    def validate_currency_fields(cls, v: Decimal | None) -> Decimal | None:
        if v is None:
            return None
        return validate_currency(v)


class CashSessionOpen(BaseModel):
    """Schema for opening a cash session."""

    company_id: str = Field(..., max_length=64)
    user_id: str = Field(..., max_length=64)
    opening_balance: Decimal = Field(..., ge=0, decimal_places=2)
    terminal_id: str = Field(DEFAULT_TERMINAL_ID, max_length=32)

    @field_validator("opening_balance")
    @classmethod
    def validate_currency_fields(cls, v: Decimal) -> Decimal:
        """Validate currency values."""
        return validate_currency(v)

    @field_validator("company_id", "user_id", "terminal_id")
    @classmethod
    def validate_identifiers(cls, v: str) -> str:
        return validate_identifier(v)


class CashMovementCreate(BaseModel):
    """Schema for registering a sangria or suprimento."""

    company_id: str = Field(..., max_length=64)
    user_id: str = Field(..., max_length=64)
    type: MovementType
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    description: str | None = Field(None, max_length=255)

    @field_validator("type")
    @classmethod
    def validate_operator_type(cls, v: MovementType) -> MovementType:
        """Only sangria and suprimento can be registered by an operator."""
        if v not in OPERATOR_MOVEMENT_TYPES:
            raise ValueError("Movement type must be 'sangria' or 'suprimento'")
        return v

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        return validate_positive_amount(v)

    @field_validator("company_id", "user_id")
    @classmethod
    def validate_identifiers(cls, v: str) -> str:
        return validate_identifier(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str | None:
        """Sanitize description field."""
        return sanitize_html(v)


class CashSessionClose(BaseModel):
    """Schema for closing a cash session with counted values."""

    company_id: str = Field(..., max_length=64)
    user_id: str = Field(..., max_length=64)
    counted_dinheiro: Decimal = Field(Decimal("0.00"), ge=0, decimal_places=2)
    counted_debito: Decimal = Field(Decimal("0.00"), ge=0, decimal_places=2)
    counted_credito: Decimal = Field(Decimal("0.00"), ge=0, decimal_places=2)
    counted_pix: Decimal = Field(Decimal("0.00"), ge=0, decimal_places=2)
    notes: str | None = Field(None, max_length=1000)

    @field_validator("counted_dinheiro", "counted_debito", "counted_credito", "counted_pix")
    @classmethod
    def validate_currency_fields(cls, v: Decimal) -> Decimal:
        """Validate currency values."""
        return validate_currency(v)

    @field_validator("company_id", "user_id")
    @classmethod
    def validate_identifiers(cls, v: str) -> str:
        return validate_identifier(v)

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v: str | None) -> str | None:
        """Sanitize notes field."""
        return sanitize_html(v)

    @property
    def counted(self) -> CountedAmounts:
        return CountedAmounts(
            dinheiro=self.counted_dinheiro,
            debito=self.counted_debito,
            credito=self.counted_credito,
            pix=self.counted_pix,
        )


class CashSessionRead(BaseModel):
    """A cash session as served by the backend and cached on the terminal."""

    id: str
    company_id: str
    terminal_id: str
    status: SessionStatus

    opened_at: datetime
    opened_by: str
    closed_at: datetime | None = None
    closed_by: str | None = None

    opening_balance: Decimal
    total_dinheiro: Decimal = Decimal("0.00")
    total_debito: Decimal = Decimal("0.00")
    total_credito: Decimal = Decimal("0.00")
    total_pix: Decimal = Decimal("0.00")
    total_voucher: Decimal = Decimal("0.00")
    total_outros: Decimal = Decimal("0.00")
    total_sangria: Decimal = Decimal("0.00")
    total_suprimento: Decimal = Decimal("0.00")
    total_vendas: Decimal = Decimal("0.00")
    sales_count: int = 0

    counted_dinheiro: Decimal | None = None
    counted_debito: Decimal | None = None
    counted_credito: Decimal | None = None
    counted_pix: Decimal | None = None
    closing_balance: Decimal | None = None
    difference: Decimal | None = None
    notes: str | None = None

    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @field_validator("opening_balance", *ACCUMULATOR_FIELDS, *CLOSING_FIELDS)
    @classmethod
    def quantize_money(cls, v: Decimal | None) -> Decimal | None:
        """Keep every amount at two-decimal fixed point."""
        if v is None:
            return None
        return to_money(v)

    @property
    def is_offline(self) -> bool:
        return is_offline_id(self.id)

    @property
    def is_open(self) -> bool:
        return self.status == SessionStatus.ABERTO


class CashMovementRead(BaseModel):
    """A registered cash movement."""

    id: str
    session_id: str
    company_id: str
    type: MovementType
    amount: Decimal
    description: str | None = None
    performed_by: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
