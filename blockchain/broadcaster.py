"""
Broadcaster
Submits externally signed transactions and normalizes their receipts
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from loguru import logger

from utils.exceptions import (
    BroadcastError,
    ConfirmationTimeout,
    GatewayError,
    ReceiptTimeout,
    RejectedTransaction,
    RpcError,
    RpcTimeout,
)

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"


@dataclass(frozen=True)
class BroadcastReceipt:
    """Outcome of a mined transaction"""

    tx_hash: str
    block_hash: str
    block_number: int
    from_address: Optional[str]
    to_address: Optional[str]
    status: str
    gas_used: Optional[int] = None
    effective_gas_price: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'transactionHash': self.tx_hash,
            'blockHash': self.block_hash,
            'blockNumber': self.block_number,
            'from': self.from_address,
            'to': self.to_address,
            'status': self.status,
            'gasUsed': self.gas_used,
            'effectiveGasPrice': self.effective_gas_price
        }


class Broadcaster:
    """
    Relays signed transactions to a chain

    Submission and confirmation are separate steps: a rejection means
    nothing happened, a confirmation timeout means the transaction may
    still be mined. Never retries; resubmitting is the caller's call.
    """

    def __init__(self, registry, pool, confirmation_timeout: float = 180.0):
        """
        Initialize Broadcaster

        Args:
            registry: ChainRegistry
            pool: ConnectionPool
            confirmation_timeout: Seconds to wait for a transaction to be mined
        """
        self.registry = registry
        self.pool = pool
        self.confirmation_timeout = confirmation_timeout

        logger.info(f"Broadcaster initialized (confirmation timeout {confirmation_timeout}s)")

    async def broadcast(self, chain: str, signed_tx: str) -> BroadcastReceipt:
        """
        Submit a signed raw transaction and wait for it to be mined

        Args:
            chain: Chain key (any case)
            signed_tx: 0x-prefixed hex of the signed transaction

        Returns:
            BroadcastReceipt

        Raises:
            UnsupportedChain, RejectedTransaction, ConfirmationTimeout,
            BroadcastError
        """
        chain_config = self.registry.resolve(chain)
        raw_tx = signed_tx if signed_tx.startswith("0x") else "0x" + signed_tx

        try:
            client = self.pool.acquire(chain_config)
        except GatewayError:
            raise
        except Exception as e:
            raise BroadcastError(
                f"Could not connect to {chain_config.key}",
                cause=e,
                retry_safe=True
            ) from e

        # Submit
        try:
            tx_hash = await client.send_transaction(raw_tx)
        except RpcError as e:
            logger.warning(f"Transaction rejected by {chain_config.key}: {e.reason}")
            raise RejectedTransaction(e.reason, cause=e) from e
        except RpcTimeout as e:
            logger.error(f"Submission to {chain_config.key} timed out: {e}")
            raise BroadcastError(
                "Submission timed out, transaction may have been relayed",
                cause=e
            ) from e
        except Exception as e:
            logger.error(f"Error submitting transaction to {chain_config.key}: {e}")
            raise BroadcastError("Failed to submit transaction", cause=e) from e

        logger.info(f"Transaction submitted on {chain_config.key}: {tx_hash}")

        # Confirm
        try:
            receipt = await client.wait_for_receipt(tx_hash, self.confirmation_timeout)
        except (ReceiptTimeout, RpcTimeout) as e:
            logger.warning(f"No confirmation for {tx_hash} within {self.confirmation_timeout}s")
            raise ConfirmationTimeout(tx_hash, self.confirmation_timeout, cause=e) from e
        except Exception as e:
            logger.error(f"Error waiting for receipt of {tx_hash}: {e}")
            raise BroadcastError(
                "Transaction submitted but receipt lookup failed",
                cause=e,
                tx_hash=tx_hash
            ) from e

        normalized = self._normalize_receipt(receipt, tx_hash)

        if normalized.status == STATUS_SUCCESS:
            logger.success(f"Transaction {tx_hash} confirmed in block {normalized.block_number}")
        else:
            logger.warning(f"Transaction {tx_hash} reverted in block {normalized.block_number}")

        return normalized

    def _normalize_receipt(self, receipt: Dict[str, Any], tx_hash: str) -> BroadcastReceipt:
        status = normalize_status(receipt.get('status'))
        if status is None:
            raise BroadcastError(
                f"Receipt for {tx_hash} has no usable status: {receipt.get('status')!r}",
                tx_hash=tx_hash
            )

        return BroadcastReceipt(
            tx_hash=receipt.get('transactionHash') or tx_hash,
            block_hash=receipt.get('blockHash'),
            block_number=_to_int(receipt.get('blockNumber')),
            from_address=_lower(receipt.get('from')),
            to_address=_lower(receipt.get('to')),
            status=status,
            gas_used=_to_int(receipt.get('gasUsed')),
            effective_gas_price=_to_int(receipt.get('effectiveGasPrice'))
        )


def normalize_status(raw_status) -> Optional[str]:
    """
    Map a receipt status code to "success" / "failed"

    Accepts ints and 0x hex strings. Returns None for anything else.
    """
    code = _to_int(raw_status)
    if code == 1:
        return STATUS_SUCCESS
    if code == 0:
        return STATUS_FAILED
    return None


def _to_int(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 16) if value.startswith("0x") else int(value)
        except ValueError:
            return None
    return None


def _lower(address: Optional[str]) -> Optional[str]:
    return address.lower() if isinstance(address, str) else None
