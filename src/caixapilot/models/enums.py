"""
Enums for domain models.
Enums provide type safety and clarity. Validation for categorical fields.
"""

import enum


class SessionStatus(str, enum.Enum):
    """Cash session lifecycle states."""

    ABERTO = "aberto"
    FECHADO = "fechado"


class MovementType(str, enum.Enum):
    """Cash movement kinds.

    Operators register SANGRIA (withdrawal) and SUPRIMENTO (injection).
    ABERTURA and FECHAMENTO are audit rows written by the backend.
    """

    SANGRIA = "sangria"
    SUPRIMENTO = "suprimento"
    ABERTURA = "abertura"
    FECHAMENTO = "fechamento"


OPERATOR_MOVEMENT_TYPES = frozenset({MovementType.SANGRIA, MovementType.SUPRIMENTO})


class DifferenceLevel(str, enum.Enum):
    """Closing difference classification."""

    EXACT = "exact"
    WARNING = "warning"
    ALERT = "alert"


class OpenFallbackPolicy(str, enum.Enum):
    """Which failures of a remote open degrade to an offline session."""

    NETWORK_ONLY = "network_only"
    ANY_ERROR = "any_error"
