"""
Nonce Manager
Reads the sender's pending nonce for each build
"""

from loguru import logger

from utils.units import normalize_address


class NonceManager:
    """
    Nonce side of the fee and nonce resolver

    Always asks for the *pending* transaction count so transactions still in
    the mempool are counted. Holds no state between requests: two builds for
    the same sender running at the same time can observe the same nonce.
    Serializing builds per sender is the caller's responsibility.
    """

    def __init__(self):
        logger.info("Nonce Manager initialized")

    async def resolve_nonce(self, client, address: str) -> int:
        """
        Get next nonce for an address

        Args:
            client: ChainClient for the target chain
            address: Sender address

        Returns:
            Pending nonce
        """
        sender = normalize_address(address, "sender address")
        nonce = await client.get_transaction_count(sender, "pending")

        logger.debug(f"Pending nonce for {sender}: {nonce}")
        return int(nonce)
