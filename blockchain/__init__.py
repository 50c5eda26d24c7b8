"""
Blockchain Interaction Package
Chain registry, transaction building, nonce resolution and broadcasting
"""

from .chain_registry import ChainConfig, ChainRegistry
from .transaction_builder import TransactionBuilder
from .nonce_manager import NonceManager
from .broadcaster import Broadcaster

__all__ = ['ChainConfig', 'ChainRegistry', 'TransactionBuilder', 'NonceManager', 'Broadcaster']
