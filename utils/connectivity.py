"""
utils/connectivity.py
---------------------
Network reachability probe used to gate sync attempts.

Reachability is approximated by opening a TCP connection to the remote
store's host. It only gates attempts; retrying is the sync engine's job.
"""

import asyncio
from typing import AsyncIterator

from utils.logger import get_logger

logger = get_logger(__name__)


class ConnectivityMonitor:
    """
    Checks whether the remote store host is reachable.

    Args:
        host: Hostname to probe.
        port: TCP port to probe.
        timeout: Seconds before a probe counts as offline.
    """

    def __init__(self, host: str, port: int = 443, timeout: float = 3.0):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.last_known: bool | None = None

    async def is_online(self) -> bool:
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port), timeout=self.timeout
            )
        except (OSError, asyncio.TimeoutError) as e:
            logger.debug(f"Reachability probe to {self.host}:{self.port} failed: {e}")
            self.last_known = False
            return False
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        self.last_known = True
        return True

    async def watch(self, interval: float = 30.0) -> AsyncIterator[bool]:
        """
        Yield the reachability state every time it changes.

        The first probe always yields, so consumers learn the initial state.
        """
        previous: bool | None = None
        while True:
            online = await self.is_online()
            if online != previous:
                logger.info(f"Connectivity changed: {'online' if online else 'offline'}")
                previous = online
                yield online
            await asyncio.sleep(interval)
