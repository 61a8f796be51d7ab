"""
Connection Pool

Owns one ``ChainHandle`` per network. Connections are opened lazily on first
use; concurrent first uses of the same network share a single connect.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

from ...engine.exceptions import ChainUnavailableError
from ..bases import ChainHandle
from .chain import SubstrateChain

logger = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable[ChainHandle]]


class ConnectionPool:
    """
    Per-network cache of chain connections.

    Args:
        connector: Coroutine function opening a connection for a network.
            Defaults to ``SubstrateChain.connect``.

    Example:
        pool = ConnectionPool()
        chain = await pool.acquire("vara-testnet")
        ...
        await pool.close()
    """

    def __init__(self, connector: Optional[Connector] = None):
        self._connector: Connector = connector if connector is not None else SubstrateChain.connect
        self._connections: Dict[str, ChainHandle] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def acquire(self, network: str) -> ChainHandle:
        """
        Return the connection of ``network``, opening it if needed.

        Raises:
            ChainUnavailableError: If the pool is closed or the connect fails.
            ConfigurationError: If the network is unknown.
        """
        if self._closed:
            raise ChainUnavailableError("Connection pool is closed")

        chain = self._connections.get(network)
        if chain is not None:
            return chain

        lock = self._locks.setdefault(network, asyncio.Lock())
        async with lock:
            # Another task may have connected while this one waited.
            chain = self._connections.get(network)
            if chain is not None:
                return chain
            if self._closed:
                raise ChainUnavailableError("Connection pool is closed")

            logger.debug("Opening connection to %s", network)
            chain = await self._connector(network)
            if self._closed:
                await chain.close()
                raise ChainUnavailableError("Connection pool closed while connecting")
            self._connections[network] = chain
            return chain

    async def close(self) -> None:
        """Close every connection. Further ``acquire`` calls fail."""
        self._closed = True
        connections, self._connections = self._connections, {}
        for network, chain in connections.items():
            logger.debug("Closing connection to %s", network)
            await chain.close()
