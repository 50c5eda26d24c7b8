"""
Chain Registry
Static table of supported chains and their network parameters
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from loguru import logger

from utils.exceptions import UnsupportedChain


@dataclass(frozen=True)
class ChainConfig:
    """Network parameters for one chain"""

    key: str
    display_name: str
    rpc_endpoint: Optional[str]
    chain_id: int
    native_decimals: int = 18
    currency_symbol: str = "ETH"
    is_testnet: bool = False
    explorer: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.rpc_endpoint)

    def explorer_tx_url(self, tx_hash: str) -> Optional[str]:
        if not self.explorer:
            return None
        return f"{self.explorer.rstrip('/')}/tx/{tx_hash}"

    def summary(self) -> Dict:
        return {
            'key': self.key,
            'name': self.display_name,
            'chainId': self.chain_id,
            'currency': self.currency_symbol,
            'isTestnet': self.is_testnet
        }


class ChainRegistry:
    """
    Read-only lookup of chain configurations

    Keys are matched case-insensitively. A chain only counts as supported
    when it has an RPC endpoint; unknown and unconfigured chains both raise
    ``UnsupportedChain``.
    """

    def __init__(self, chains: List[ChainConfig]):
        """
        Initialize Chain Registry

        Args:
            chains: Chain configurations, in display order
        """
        self._chains: Dict[str, ChainConfig] = {}
        for chain in chains:
            self._chains[chain.key.lower()] = chain

        configured = self.supported_chains()
        logger.info(
            f"Chain Registry initialized with {len(self._chains)} chains "
            f"({len(configured)} configured)"
        )
        if configured:
            logger.debug(f"Configured chains: {', '.join(configured)}")

    @classmethod
    def from_table(cls, table: Mapping[str, Mapping]) -> "ChainRegistry":
        """
        Build the registry from the configuration source

        Args:
            table: chain key -> {name, rpc, chain_id, native_decimals,
                currency, is_testnet, explorer}
        """
        chains = []
        for key, entry in table.items():
            chains.append(ChainConfig(
                key=key.lower(),
                display_name=entry.get('name') or key,
                rpc_endpoint=(entry.get('rpc') or '').strip() or None,
                chain_id=int(entry['chain_id']),
                native_decimals=int(entry.get('native_decimals', 18)),
                currency_symbol=entry.get('currency', 'ETH'),
                is_testnet=bool(entry.get('is_testnet', False)),
                explorer=entry.get('explorer')
            ))
        return cls(chains)

    def get(self, chain_key: str) -> Optional[ChainConfig]:
        """Entry for a key whether configured or not"""
        if not isinstance(chain_key, str):
            return None
        return self._chains.get(chain_key.strip().lower())

    def resolve(self, chain_key: str) -> ChainConfig:
        """
        Resolve a configured chain

        Args:
            chain_key: Chain identifier, any case (e.g. "Polygon")

        Returns:
            ChainConfig

        Raises:
            UnsupportedChain: unknown key, or no RPC endpoint set
        """
        chain = self.get(chain_key)

        if chain is None:
            raise UnsupportedChain(chain_key)

        if not chain.is_configured:
            raise UnsupportedChain(
                chain_key,
                f"No RPC endpoint configured for chain {chain_key}"
            )

        return chain

    def supported_chains(self) -> List[str]:
        return [key for key, chain in self._chains.items() if chain.is_configured]

    def all_chains(self) -> List[ChainConfig]:
        return list(self._chains.values())

    def __contains__(self, chain_key: str) -> bool:
        return self.get(chain_key) is not None
