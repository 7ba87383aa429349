"""Cash drawer kick via ESC/POS.

The drawer hangs off the receipt printer; a pulse on connector pin 2 pops
it open. The command has no acknowledgment, so callers fire and forget.
"""

import asyncio
from pathlib import Path
from typing import Protocol

from caixapilot.core.logging import get_logger
from caixapilot.core.settings import DRAWER_DEVICE, DRAWER_HOST, DRAWER_PORT

logger = get_logger(__name__)

ESC = 0x1B


def build_open_drawer_command() -> bytes:
    """ESC p m t1 t2: pulse pin 2 for 25*2 ms on, 250*2 ms off."""
    return bytes([ESC, 0x70, 0x00, 0x19, 0xFA])


class CashDrawer(Protocol):
    async def open(self) -> None: ...


class NullDrawer:
    """No drawer attached."""

    async def open(self) -> None:
        logger.debug("drawer.skipped", reason="no drawer configured")


class EscPosNetworkDrawer:
    """Printer reachable over raw TCP (port 9100)."""

    def __init__(self, host: str, port: int = 9100, timeout: float = 2.0):
        self.host = host
        self.port = port
        self.timeout = timeout

    async def open(self) -> None:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(self.host, self.port), timeout=self.timeout
        )
        try:
            writer.write(build_open_drawer_command())
            await asyncio.wait_for(writer.drain(), timeout=self.timeout)
        finally:
            writer.close()
            await writer.wait_closed()
        logger.info("drawer.opened", host=self.host, port=self.port)


class EscPosDeviceDrawer:
    """Printer exposed as a device file (e.g. /dev/usb/lp0)."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _write(self) -> None:
        with self.path.open("wb") as device:
            device.write(build_open_drawer_command())

    async def open(self) -> None:
        await asyncio.to_thread(self._write)
        logger.info("drawer.opened", device=str(self.path))


def drawer_from_settings() -> CashDrawer:
    """Drawer configured by CAIXA_DRAWER_HOST / CAIXA_DRAWER_DEVICE."""
    if DRAWER_HOST:
        return EscPosNetworkDrawer(DRAWER_HOST, DRAWER_PORT)
    if DRAWER_DEVICE:
        return EscPosDeviceDrawer(DRAWER_DEVICE)
    return NullDrawer()
