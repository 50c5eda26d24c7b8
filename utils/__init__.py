"""
Utilities Package
Chain clients, connection pooling, fee resolution and unit helpers
"""

from .chain_client import ChainClient, Web3ChainClient
from .connection_pool import ConnectionPool
from .gas_calculator import FeeQuote, GasCalculator

__all__ = [
    'ChainClient',
    'Web3ChainClient',
    'ConnectionPool',
    'FeeQuote',
    'GasCalculator'
]
