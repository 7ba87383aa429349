# File: src/caixapilot/core/connectivity.py
"""Bounded-time reachability check against the backend.

The probe answers "is there a network path to the server at all", not "is
the API healthy": any HTTP response counts as reachable. It never raises and
never takes longer than its timeout, so UI operations cannot hang on a dead
network.
"""

import asyncio
from collections.abc import Callable
from typing import Protocol

import httpx

from caixapilot.core.logging import get_logger
from caixapilot.core.settings import API_URL, PROBE_TIMEOUT_SECONDS
from caixapilot.utils.datetime import epoch_ms

logger = get_logger(__name__)

PROBE_PATH = "/health"


class ConnectivityChecker(Protocol):
    async def can_reach_server(self) -> bool: ...


def always_attached() -> bool:
    return True


class HttpConnectivityProbe:
    """HEAD {base_url}/health with a hard timeout.

    Args:
        base_url: Backend root URL
        timeout: Upper bound in seconds for the whole check
        network_attached: Platform "online" flag; when it reports False the
            probe answers False without any I/O
        transport: Optional httpx transport (tests)
    """

    def __init__(
        self,
        base_url: str = API_URL,
        timeout: float = PROBE_TIMEOUT_SECONDS,
        network_attached: Callable[[], bool] = always_attached,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.network_attached = network_attached
        self._transport = transport

    async def can_reach_server(self) -> bool:
        try:
            attached = self.network_attached()
        except Exception as exc:
            logger.warning("connectivity.attached_check_failed", error=type(exc).__name__)
            attached = False
        if not attached:
            logger.info("connectivity.detached")
            return False

        try:
            await asyncio.wait_for(self._ping(), timeout=self.timeout)
        except Exception as exc:
            # Timeout, DNS failure, refused connection, abort: all mean "no path"
            logger.info("connectivity.unreachable", error=type(exc).__name__)
            return False
        return True

    async def _ping(self) -> int:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout),
            transport=self._transport,
            follow_redirects=False,
        ) as client:
            response = await client.head(
                PROBE_PATH,
                params={"_": str(epoch_ms())},
                headers={"Cache-Control": "no-cache", "Pragma": "no-cache"},
            )
        logger.debug("connectivity.reachable", status_code=response.status_code)
        return response.status_code


class StaticConnectivityChecker:
    """Fixed answer; counts how often it was asked."""

    def __init__(self, reachable: bool = True):
        self.reachable = reachable
        self.calls = 0

    async def can_reach_server(self) -> bool:
        self.calls += 1
        return self.reachable
