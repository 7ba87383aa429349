# File: src/caixapilot/core/reconciliation.py
"""Cash drawer reconciliation arithmetic.

Pure functions over a session's accumulated totals, shared by the terminal
(live "expected so far" display, closing worksheet) and the backend (the
authoritative difference persisted at close).

Everything is computed in Decimal and quantized to cents, so thousands of
small movements never accumulate float drift. Sessions are read by attribute,
which lets the same code run over ORM rows and pydantic models.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from caixapilot.models.enums import DifferenceLevel, MovementType

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# |difference| below this is an exact match
EXACT_TOLERANCE = Decimal("0.01")
# |difference| from EXACT_TOLERANCE up to (not including) this is a warning
ALERT_THRESHOLD = Decimal("5.00")

COUNTED_METHODS = ("dinheiro", "debito", "credito", "pix")

MOVEMENT_FIELDS = {
    MovementType.SANGRIA: "total_sangria",
    MovementType.SUPRIMENTO: "total_suprimento",
}


def to_money(value: Any) -> Decimal:
    """Convert a number (or None) to a cent-quantized Decimal.

    Floats go through their shortest repr, so 0.1 becomes Decimal("0.10")
    rather than the binary expansion.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise ValueError(f"Invalid amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def _field(session: Any, name: str) -> Decimal:
    return to_money(getattr(session, name, None))


def expected_cash(session: Any) -> Decimal:
    """Cash the drawer should physically hold right now.

    opening_balance + total_dinheiro + total_suprimento - total_sangria
    """
    return (
        _field(session, "opening_balance")
        + _field(session, "total_dinheiro")
        + _field(session, "total_suprimento")
        - _field(session, "total_sangria")
    )


def total_expected(session: Any) -> Decimal:
    """Expected value across all counted payment methods."""
    return (
        _field(session, "opening_balance")
        + _field(session, "total_dinheiro")
        + _field(session, "total_debito")
        + _field(session, "total_credito")
        + _field(session, "total_pix")
        + _field(session, "total_suprimento")
        - _field(session, "total_sangria")
    )


def _counted_value(counted: Any, method: str) -> Decimal:
    if counted is None:
        return ZERO
    if isinstance(counted, Mapping):
        value = counted.get(method)
        if value is None:
            value = counted.get(f"counted_{method}")
        return to_money(value)
    value = getattr(counted, method, None)
    if value is None:
        value = getattr(counted, f"counted_{method}", None)
    return to_money(value)


def total_counted(counted: Any) -> Decimal:
    """Sum of the operator's counted amounts; missing entries count as zero.

    Accepts a CountedAmounts-like object or a mapping keyed either by method
    ("dinheiro") or by column name ("counted_dinheiro").
    """
    return sum((_counted_value(counted, method) for method in COUNTED_METHODS), ZERO)


def difference(session: Any, counted: Any) -> Decimal:
    """Counted minus expected. Negative means the drawer is short."""
    return total_counted(counted) - total_expected(session)


def classify(value: Decimal | int | str) -> DifferenceLevel:
    """Classify a closing difference (symmetric for shortages and surpluses)."""
    magnitude = abs(to_money(value))
    if magnitude < EXACT_TOLERANCE:
        return DifferenceLevel.EXACT
    if magnitude < ALERT_THRESHOLD:
        return DifferenceLevel.WARNING
    return DifferenceLevel.ALERT


@dataclass(frozen=True)
class ReconciliationSummary:
    """Closing worksheet figures."""

    expected_cash: Decimal
    total_expected: Decimal
    total_counted: Decimal
    difference: Decimal
    level: DifferenceLevel

    def to_dict(self) -> dict[str, str]:
        return {
            "expected_cash": str(self.expected_cash),
            "total_expected": str(self.total_expected),
            "total_counted": str(self.total_counted),
            "difference": str(self.difference),
            "level": self.level.value,
        }


def summarize(session: Any, counted: Any = None) -> ReconciliationSummary:
    """Build the worksheet for a session and (possibly partial) counted amounts."""
    counted_total = total_counted(counted)
    expected_total = total_expected(session)
    diff = counted_total - expected_total
    return ReconciliationSummary(
        expected_cash=expected_cash(session),
        total_expected=expected_total,
        total_counted=counted_total,
        difference=diff,
        level=classify(diff),
    )


def movement_field(movement_type: MovementType | str) -> str:
    """Accumulator column a sangria/suprimento increments."""
    try:
        return MOVEMENT_FIELDS[MovementType(movement_type)]
    except (KeyError, ValueError) as exc:
        raise ValueError(f"Movement type {movement_type!r} does not touch the drawer totals") from exc


def apply_movement(session: Any, movement_type: MovementType | str, amount: Any):
    """Return a copy of a pydantic session with the movement added to its accumulator."""
    value = to_money(amount)
    if value <= ZERO:
        raise ValueError("Amount must be greater than zero")
    field = movement_field(movement_type)
    return session.model_copy(update={field: _field(session, field) + value})
