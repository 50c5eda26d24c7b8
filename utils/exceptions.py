"""
Gateway Exceptions
Error taxonomy for transaction construction and broadcast
"""

from typing import Optional


class GatewayError(Exception):
    """
    Base class for every failure the gateway reports to callers

    Each subclass carries a stable ``kind`` string and a ``retry_safe`` flag.
    ``retry_safe`` is False whenever the transaction may already have reached
    the network, so the caller must not blindly resubmit.
    """

    kind = "GatewayError"
    retry_safe = True

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    @property
    def cause_kind(self) -> Optional[str]:
        """Kind of the wrapped failure, if any"""
        if self.cause is None:
            return None
        return getattr(self.cause, "kind", None) or self.cause.__class__.__name__


class UnsupportedChain(GatewayError):
    """Chain key is unknown, or known but has no RPC endpoint configured"""

    kind = "UnsupportedChain"

    def __init__(self, chain: str, message: Optional[str] = None):
        super().__init__(message or f"Unsupported chain: {chain}")
        self.chain = chain


class InvalidAddress(GatewayError):
    """Address is not a 0x-prefixed 20-byte hex string"""

    kind = "InvalidAddress"

    def __init__(self, address, field: str = "address"):
        super().__init__(f"Invalid {field}: {address!r}")
        self.address = address
        self.field = field


class InvalidAmount(GatewayError):
    """Amount cannot be scaled exactly into a positive uint256"""

    kind = "InvalidAmount"


class FeeUnavailable(GatewayError):
    """Network returned no usable fee data"""

    kind = "FeeUnavailable"


class BuildError(GatewayError):
    """Wraps any network failure met while constructing a transaction"""

    kind = "BuildError"


class RejectedTransaction(GatewayError):
    """The network refused a signed transaction"""

    kind = "RejectedTransaction"

    def __init__(self, reason: str, cause: Optional[BaseException] = None):
        reason = reason or "Transaction rejected by the network"
        super().__init__(reason, cause)
        self.reason = reason


class ConfirmationTimeout(GatewayError):
    """
    Transaction was submitted but no receipt arrived in time

    The transaction may still be mined later.
    """

    kind = "ConfirmationTimeout"
    retry_safe = False

    def __init__(self, tx_hash: str, timeout: float, cause: Optional[BaseException] = None):
        super().__init__(
            f"Transaction {tx_hash} not confirmed within {timeout}s",
            cause
        )
        self.tx_hash = tx_hash
        self.timeout = timeout


class BroadcastError(GatewayError):
    """Wraps any other network failure during broadcast"""

    kind = "BroadcastError"

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        tx_hash: Optional[str] = None,
        retry_safe: bool = False
    ):
        super().__init__(message, cause)
        self.tx_hash = tx_hash
        self.retry_safe = retry_safe


# Chain client level failures. These never reach callers directly: the
# builder and broadcaster convert them into the taxonomy above.

class ChainClientError(Exception):
    kind = "ChainClientError"


class RpcError(ChainClientError):
    """Node answered with a JSON-RPC error"""

    kind = "RpcError"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class RpcTimeout(ChainClientError):
    """RPC round trip exceeded the configured timeout"""

    kind = "RpcTimeout"


class ReceiptTimeout(ChainClientError):
    """No receipt within the confirmation timeout"""

    kind = "ReceiptTimeout"
