"""Runtime configuration read from environment variables."""

import os
from pathlib import Path

from caixapilot.models.enums import OpenFallbackPolicy

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

DATABASE_URL = os.getenv("DATABASE_URL", "")

LOG_LEVEL = os.getenv("CAIXA_LOG_LEVEL", "INFO").upper()

# Backend base URL used by terminals (service client + connectivity probe)
API_URL = os.getenv("CAIXA_API_URL", "http://localhost:8000").rstrip("/")

# Hard cap for the reachability check, in seconds
PROBE_TIMEOUT_SECONDS = float(os.getenv("CAIXA_PROBE_TIMEOUT", "1.0"))

# Timeout for regular service calls, in seconds
SERVICE_TIMEOUT_SECONDS = float(os.getenv("CAIXA_SERVICE_TIMEOUT", "10.0"))

DEFAULT_TERMINAL_ID = os.getenv("CAIXA_DEFAULT_TERMINAL", "01")

OFFLINE_STORE_PATH = Path(
    os.getenv("CAIXA_OFFLINE_STORE", str(Path.home() / ".caixapilot" / "offline.json"))
)

DRAWER_HOST = os.getenv("CAIXA_DRAWER_HOST")
DRAWER_PORT = int(os.getenv("CAIXA_DRAWER_PORT", "9100"))
DRAWER_DEVICE = os.getenv("CAIXA_DRAWER_DEVICE")


def get_open_fallback_policy() -> OpenFallbackPolicy:
    """Resolve CAIXA_OPEN_FALLBACK, defaulting to network-only fallback."""
    raw = os.getenv("CAIXA_OPEN_FALLBACK", OpenFallbackPolicy.NETWORK_ONLY.value)
    try:
        return OpenFallbackPolicy(raw.strip().lower())
    except ValueError:
        return OpenFallbackPolicy.NETWORK_ONLY
