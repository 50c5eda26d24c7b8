"""
Payment Gateway
Entry point for the HTTP layer: build unsigned payments, relay signed ones
"""

import asyncio
import traceback
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from loguru import logger

from blockchain.broadcaster import Broadcaster
from blockchain.chain_registry import ChainRegistry
from blockchain.nonce_manager import NonceManager
from blockchain.transaction_builder import TransactionBuilder
from utils.chain_client import Web3ChainClient
from utils.connection_pool import ConnectionPool
from utils.exceptions import BroadcastError, BuildError, GatewayError
from utils.gas_calculator import GasCalculator

from .settings import is_production, load_chain_table, load_gateway_config

STATUS_READY = "ready_for_signing"
STATUS_BROADCASTED = "broadcasted"
STATUS_ERROR = "error"

GWEI = Decimal(10**9)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class PaymentGateway:
    """
    Multi-chain payment gateway

    Every public coroutine returns a result dict and never raises: failures
    become ``{success: False, error: <kind>, ...}``. Task cancellation is the
    one thing that passes through.
    """

    def __init__(
        self,
        config: Dict,
        registry: ChainRegistry,
        pool: Optional[ConnectionPool] = None,
        client_factory: Optional[Callable] = None
    ):
        """
        Initialize Payment Gateway

        Args:
            config: Gateway configuration (see gateway/settings.py)
            registry: Chain registry
            pool: Connection pool, built from ``client_factory`` if omitted
            client_factory: ChainConfig -> ChainClient, defaults to web3.py clients
        """
        self.config = config
        self.registry = registry
        self.provider = config.get('provider', {})
        self.production = is_production(config)

        timeouts = config.get('timeouts', {})
        self.rpc_timeout = float(timeouts.get('rpc_timeout_seconds', 15))
        self.confirmation_timeout = float(timeouts.get('confirmation_timeout_seconds', 180))
        self.poll_interval = float(timeouts.get('receipt_poll_interval_seconds', 2))

        priority_gwei = config.get('gas_settings', {}).get('default_priority_fee_gwei', 1.5)
        self.default_priority_fee_wei = int(Decimal(str(priority_gwei)) * GWEI)

        self.pool = pool or ConnectionPool(client_factory or self._create_client)
        self.gas_calculator = GasCalculator()
        self.nonce_manager = NonceManager()
        self.tx_builder = TransactionBuilder(
            registry,
            self.pool,
            self.gas_calculator,
            self.nonce_manager,
            config
        )
        self.broadcaster = Broadcaster(registry, self.pool, self.confirmation_timeout)

        logger.info(
            f"Payment Gateway initialized ({config.get('environment')}, "
            f"{len(registry.supported_chains())} chains available)"
        )

    @classmethod
    def from_config(cls, config_path=None, chains_path=None, **kwargs) -> "PaymentGateway":
        """Build a gateway from the JSON files under config/ and the environment"""
        config = load_gateway_config(config_path)
        registry = ChainRegistry.from_table(load_chain_table(chains_path))
        return cls(config, registry, **kwargs)

    def _create_client(self, chain_config) -> Web3ChainClient:
        return Web3ChainClient(
            chain_config.rpc_endpoint,
            rpc_timeout=self.rpc_timeout,
            poll_interval=self.poll_interval,
            default_priority_fee_wei=self.default_priority_fee_wei
        )

    async def build_payment(
        self,
        chain: str,
        to: str,
        amount,
        token_address: Optional[str] = None,
        token_decimals: Optional[int] = None,
        from_address: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Build an unsigned transaction for an external signer

        Returns:
            Success result with ``transaction`` and ``metadata``, or a
            failure result
        """
        try:
            built = await self.tx_builder.build(
                chain,
                to,
                amount,
                token_address=token_address,
                token_decimals=token_decimals,
                from_address=from_address
            )
        except Exception as e:
            return self._failure(e, BuildError)

        return {
            'success': True,
            'provider': self._provider_summary(),
            'transaction': built.transaction.to_dict(),
            'metadata': built.metadata,
            'status': STATUS_READY,
            'timestamp': _timestamp()
        }

    async def build_payment_preview(self, *args, **kwargs) -> Dict[str, Any]:
        """Same as build_payment, flagged as a preview"""
        result = await self.build_payment(*args, **kwargs)
        result['preview'] = True
        return result

    async def broadcast_signed_transaction(self, chain: str, signed_tx: str) -> Dict[str, Any]:
        """
        Relay a signed transaction and wait for its receipt

        Returns:
            Success result with ``txHash``, ``receipt`` and ``explorerUrl``, or
            a failure result (``txHash`` included once it is known)
        """
        try:
            if not isinstance(signed_tx, str) or not signed_tx.strip():
                raise BroadcastError("Signed transaction is required", retry_safe=True)

            receipt = await self.broadcaster.broadcast(chain, signed_tx.strip())
        except Exception as e:
            return self._failure(e, BroadcastError)

        chain_config = self.registry.resolve(chain)
        return {
            'success': True,
            'txHash': receipt.tx_hash,
            'receipt': receipt.to_dict(),
            'explorerUrl': chain_config.explorer_tx_url(receipt.tx_hash),
            'status': STATUS_BROADCASTED,
            'timestamp': _timestamp()
        }

    def provider_info(self) -> Dict[str, Any]:
        info = self._provider_summary()
        info['description'] = self.provider.get('description')
        info['features'] = list(self.provider.get('features', []))
        info['environment'] = self.config.get('environment')
        info['supportedChains'] = [
            self.registry.get(key).summary() for key in self.registry.supported_chains()
        ]
        return info

    async def check_connections(self) -> Dict[str, Dict[str, Any]]:
        """
        Ask each configured chain for its chain id

        Returns:
            chain key -> {connected, chainId, expectedChainId, chainIdMatches, error}
        """
        keys = self.registry.supported_chains()
        reports = await asyncio.gather(*(self._check_chain(key) for key in keys))
        return dict(zip(keys, reports))

    async def _check_chain(self, key: str) -> Dict[str, Any]:
        chain_config = self.registry.resolve(key)
        report = {
            'name': chain_config.display_name,
            'connected': False,
            'chainId': None,
            'expectedChainId': chain_config.chain_id,
            'chainIdMatches': False,
            'error': None
        }

        try:
            client = self.pool.acquire(chain_config)
            network = await client.get_network()
        except Exception as e:
            logger.warning(f"{chain_config.display_name} unreachable: {e}")
            report['error'] = e.__class__.__name__ if self.production else (str(e) or e.__class__.__name__)
            return report

        report['connected'] = True
        report['chainId'] = int(network['chainId'])
        report['chainIdMatches'] = report['chainId'] == chain_config.chain_id

        if not report['chainIdMatches']:
            logger.warning(
                f"{chain_config.display_name} endpoint reports chain id "
                f"{report['chainId']}, expected {chain_config.chain_id}"
            )
        return report

    def _provider_summary(self) -> Dict[str, Any]:
        return {
            'id': self.provider.get('id'),
            'name': self.provider.get('name'),
            'version': self.provider.get('version')
        }

    def _failure(self, error: Exception, fallback=BuildError) -> Dict[str, Any]:
        """Turn an exception into a failure result"""
        if not isinstance(error, GatewayError):
            logger.exception(f"Unexpected error: {error}")
            error = fallback("Unexpected error", cause=error)
        else:
            logger.error(f"{error.kind}: {error.message}")

        result = {
            'success': False,
            'error': error.kind,
            'message': error.message,
            'retrySafe': error.retry_safe,
            'status': STATUS_ERROR,
            'timestamp': _timestamp()
        }

        tx_hash = getattr(error, 'tx_hash', None)
        if tx_hash:
            result['txHash'] = tx_hash

        if isinstance(error, (BuildError, BroadcastError)) and error.cause is not None:
            result['cause'] = error.cause_kind

        if not self.production:
            source = error.cause if error.cause is not None else error
            result['details'] = str(source)
            result['stack'] = "".join(
                traceback.format_exception(type(source), source, source.__traceback__)
            )

        return result
