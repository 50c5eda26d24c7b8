"""
Connection Pool
One reusable chain client per RPC endpoint, created lazily
"""

import threading
from typing import Callable, Dict, List

from loguru import logger

from .chain_client import ChainClient
from .exceptions import UnsupportedChain

ClientFactory = Callable[..., ChainClient]


class ConnectionPool:
    """
    Shared cache of chain clients keyed by RPC endpoint

    Two chain keys pointing at the same endpoint share one client. The first
    ``acquire`` for an endpoint builds the client through ``client_factory``;
    later calls return the cached instance. Creation happens under a lock so
    concurrent first access (from tasks or threads) builds exactly one
    client. Entries live for the life of the process.
    """

    def __init__(self, client_factory: ClientFactory):
        """
        Initialize Connection Pool

        Args:
            client_factory: Called with a ChainConfig, returns a ChainClient
        """
        self.client_factory = client_factory
        self._clients: Dict[str, ChainClient] = {}
        self._lock = threading.Lock()

        logger.info("Connection Pool initialized")

    def acquire(self, chain_config) -> ChainClient:
        """
        Get the client for a chain's RPC endpoint

        Args:
            chain_config: ChainConfig of a configured chain

        Returns:
            Shared ChainClient for ``chain_config.rpc_endpoint``
        """
        endpoint = chain_config.rpc_endpoint
        if not endpoint:
            raise UnsupportedChain(
                chain_config.key,
                f"No RPC endpoint configured for chain {chain_config.key}"
            )

        client = self._clients.get(endpoint)
        if client is not None:
            return client

        with self._lock:
            client = self._clients.get(endpoint)
            if client is None:
                client = self.client_factory(chain_config)
                self._clients[endpoint] = client
                logger.info(f"Opened connection for {chain_config.display_name}")

        return client

    def endpoints(self) -> List[str]:
        with self._lock:
            return list(self._clients)

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)

    def __contains__(self, endpoint: str) -> bool:
        with self._lock:
            return endpoint in self._clients
