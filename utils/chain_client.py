"""
Chain Client
Capability interface over a chain's JSON-RPC endpoint, plus the web3.py implementation
"""

import asyncio
from typing import Any, Dict, Optional, Protocol

from loguru import logger
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import TimeExhausted, Web3RPCError

from .exceptions import ReceiptTimeout, RpcError, RpcTimeout


class ChainClient(Protocol):
    """
    What the builder and broadcaster need from a chain

    Implementations raise ``RpcError``, ``RpcTimeout`` and ``ReceiptTimeout``
    for node errors and timeouts. Anything else they raise is treated as a
    transport failure.
    """

    async def get_fee_data(self) -> Dict[str, Optional[int]]:
        """Return ``gasPrice``, ``maxFeePerGas`` and ``maxPriorityFeePerGas`` (wei, or None)"""
        ...

    async def get_transaction_count(self, address: str, block_identifier: str = "pending") -> int:
        ...

    async def get_network(self) -> Dict[str, Any]:
        """Return at least ``chainId``"""
        ...

    async def send_transaction(self, raw_tx: str) -> str:
        """Submit a signed raw transaction, return its 0x hash"""
        ...

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> Dict[str, Any]:
        ...

    async def call(self, tx: Dict[str, Any]) -> str:
        """eth_call against the latest block, return 0x return data"""
        ...

    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        ...


class Web3ChainClient:
    """
    ChainClient backed by a web3.py AsyncWeb3 HTTP connection

    One instance is shared by every chain key that points at the same RPC
    endpoint. Every call is bounded by ``rpc_timeout``; receipt waiting has
    its own ``confirmation_timeout``. The provider's retry layer is disabled
    so a timeout or error surfaces after a single attempt.
    """

    def __init__(
        self,
        rpc_endpoint: str,
        rpc_timeout: float = 15.0,
        poll_interval: float = 2.0,
        default_priority_fee_wei: int = 1_500_000_000
    ):
        """
        Initialize Web3 chain client

        Args:
            rpc_endpoint: HTTP(S) JSON-RPC URL
            rpc_timeout: Seconds allowed for each RPC round trip
            poll_interval: Seconds between receipt polls
            default_priority_fee_wei: Tip used when the node cannot suggest one
        """
        self.rpc_endpoint = rpc_endpoint
        self.rpc_timeout = rpc_timeout
        self.poll_interval = poll_interval
        self.default_priority_fee_wei = default_priority_fee_wei

        self.w3 = AsyncWeb3(
            AsyncHTTPProvider(rpc_endpoint, exception_retry_configuration=None)
        )

        logger.debug(f"Web3 chain client created for {rpc_endpoint}")

    async def _call(self, awaitable, method: str):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.rpc_timeout)
        except asyncio.TimeoutError as e:
            raise RpcTimeout(
                f"{method} timed out after {self.rpc_timeout}s"
            ) from e
        except Web3RPCError as e:
            raise RpcError(_rpc_reason(e)) from e

    async def get_fee_data(self) -> Dict[str, Optional[int]]:
        """
        Read the current fee market

        Returns:
            Dict with gasPrice, maxFeePerGas, maxPriorityFeePerGas.
            The EIP-1559 pair is None when the latest block has no base fee.
        """
        block = await self._call(self.w3.eth.get_block("latest"), "eth_getBlockByNumber")
        gas_price = await self._call(self.w3.eth.gas_price, "eth_gasPrice")

        base_fee = block.get("baseFeePerGas")
        max_fee = None
        priority_fee = None

        if base_fee is not None:
            try:
                priority_fee = await self._call(
                    self.w3.eth.max_priority_fee, "eth_maxPriorityFeePerGas"
                )
            except RpcError as e:
                logger.debug(f"No priority fee suggestion from {self.rpc_endpoint}: {e}")
                priority_fee = self.default_priority_fee_wei

            # Max fee = base fee * 2 + tip, leaves room for base fee growth
            max_fee = (base_fee * 2) + priority_fee

        return {
            'gasPrice': gas_price,
            'maxFeePerGas': max_fee,
            'maxPriorityFeePerGas': priority_fee
        }

    async def get_transaction_count(self, address: str, block_identifier: str = "pending") -> int:
        return await self._call(
            self.w3.eth.get_transaction_count(
                Web3.to_checksum_address(address),
                block_identifier
            ),
            "eth_getTransactionCount"
        )

    async def get_network(self) -> Dict[str, Any]:
        chain_id = await self._call(self.w3.eth.chain_id, "eth_chainId")
        return {'chainId': chain_id}

    async def send_transaction(self, raw_tx: str) -> str:
        tx_hash = await self._call(
            self.w3.eth.send_raw_transaction(raw_tx),
            "eth_sendRawTransaction"
        )
        return Web3.to_hex(tx_hash)

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> Dict[str, Any]:
        """
        Poll for a transaction receipt

        Args:
            tx_hash: 0x transaction hash
            timeout: Seconds to wait for the transaction to be mined

        Returns:
            Receipt as a plain dict with 0x hex strings

        Raises:
            ReceiptTimeout: if not mined within ``timeout``
        """
        try:
            receipt = await asyncio.wait_for(
                self.w3.eth.wait_for_transaction_receipt(
                    tx_hash,
                    timeout=timeout,
                    poll_latency=self.poll_interval
                ),
                timeout=timeout + self.rpc_timeout
            )
        except (TimeExhausted, asyncio.TimeoutError) as e:
            raise ReceiptTimeout(
                f"Transaction {tx_hash} not mined within {timeout}s"
            ) from e
        except Web3RPCError as e:
            raise RpcError(_rpc_reason(e)) from e

        return _receipt_to_dict(receipt)

    async def call(self, tx: Dict[str, Any]) -> str:
        result = await self._call(self.w3.eth.call(_checksum_tx(tx)), "eth_call")
        return Web3.to_hex(result)

    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        return await self._call(
            self.w3.eth.estimate_gas(_checksum_tx(tx)),
            "eth_estimateGas"
        )


def _checksum_tx(tx: Dict[str, Any]) -> Dict[str, Any]:
    """web3.py only accepts checksummed addresses in call params"""
    prepared = dict(tx)
    for key in ('from', 'to'):
        if prepared.get(key):
            prepared[key] = Web3.to_checksum_address(prepared[key])
    return prepared


def _rpc_reason(error: Web3RPCError) -> str:
    """Pull the node's own message out of a JSON-RPC error response"""
    response = getattr(error, 'rpc_response', None)
    if isinstance(response, dict):
        rpc_error = response.get('error')
        if isinstance(rpc_error, dict) and rpc_error.get('message'):
            return str(rpc_error['message'])
    return str(error) or error.__class__.__name__


def _receipt_to_dict(receipt) -> Dict[str, Any]:
    normalized = {}
    for key, value in dict(receipt).items():
        if isinstance(value, (bytes, bytearray)):
            normalized[key] = Web3.to_hex(value)
        else:
            normalized[key] = value
    return normalized
