"""
Shared fixtures and a deterministic chain client double
"""

import pytest
from eth_abi import encode

from blockchain.chain_registry import ChainRegistry
from blockchain.erc20 import DECIMALS_SIGNATURE, NAME_SIGNATURE, SYMBOL_SIGNATURE, metadata_call
from utils.connection_pool import ConnectionPool

GWEI = 10**9

SENDER = "0x" + "12" * 20
RECIPIENT = "0x" + "ab" * 20
TOKEN = "0x" + "cd" * 20
TX_HASH = "0x" + "ef" * 32
BLOCK_HASH = "0x" + "99" * 32

EIP1559_FEES = {
    'gasPrice': 30 * GWEI,
    'maxFeePerGas': 50 * GWEI,
    'maxPriorityFeePerGas': 2 * GWEI
}

LEGACY_FEES = {
    'gasPrice': 5 * GWEI,
    'maxFeePerGas': None,
    'maxPriorityFeePerGas': None
}


def token_metadata(decimals=6, symbol="USDC", name="USD Coin"):
    """eth_call results for a well-behaved ERC-20"""
    return {
        metadata_call(DECIMALS_SIGNATURE): "0x" + encode(['uint256'], [decimals]).hex(),
        metadata_call(SYMBOL_SIGNATURE): "0x" + encode(['string'], [symbol]).hex(),
        metadata_call(NAME_SIGNATURE): "0x" + encode(['string'], [name]).hex()
    }


class FakeChainClient:
    """
    In-memory ChainClient

    Each attribute sets the answer for one capability. Assign an exception
    instance to make that capability raise it. Every call is recorded in
    ``calls``.
    """

    def __init__(
        self,
        chain_id=1,
        fee_data=None,
        nonce=0,
        call_results=None,
        gas_estimate=50000,
        tx_hash=TX_HASH,
        receipt=None
    ):
        self.chain_id = chain_id
        self.fee_data = dict(EIP1559_FEES) if fee_data is None else fee_data
        self.nonce = nonce
        self.call_results = {} if call_results is None else call_results
        self.gas_estimate = gas_estimate
        self.tx_hash = tx_hash
        self.receipt = receipt if receipt is not None else {
            'transactionHash': tx_hash,
            'blockHash': BLOCK_HASH,
            'blockNumber': '0x10',
            'from': "0x" + "AA" * 20,
            'to': RECIPIENT,
            'status': '0x1',
            'gasUsed': '0x5208',
            'effectiveGasPrice': 30 * GWEI
        }
        self.calls = []

    @staticmethod
    def _answer(value):
        if isinstance(value, BaseException):
            raise value
        return value

    async def get_fee_data(self):
        self.calls.append(('get_fee_data',))
        return self._answer(self.fee_data)

    async def get_transaction_count(self, address, block_identifier="pending"):
        self.calls.append(('get_transaction_count', address, block_identifier))
        return self._answer(self.nonce)

    async def get_network(self):
        self.calls.append(('get_network',))
        chain_id = self._answer(self.chain_id)
        return {'chainId': chain_id}

    async def send_transaction(self, raw_tx):
        self.calls.append(('send_transaction', raw_tx))
        return self._answer(self.tx_hash)

    async def wait_for_receipt(self, tx_hash, timeout):
        self.calls.append(('wait_for_receipt', tx_hash, timeout))
        return self._answer(self.receipt)

    async def call(self, tx):
        self.calls.append(('call', tx))
        result = self.call_results.get(tx['data'], ValueError("execution reverted"))
        return self._answer(result)

    async def estimate_gas(self, tx):
        self.calls.append(('estimate_gas', tx))
        return self._answer(self.gas_estimate)

    def called(self, name):
        return [call for call in self.calls if call[0] == name]


@pytest.fixture
def chain_table():
    """Chain table as produced by gateway.settings.load_chain_table"""
    return {
        'ethereum': {
            'name': 'Ethereum Mainnet',
            'rpc': 'https://eth.example.org',
            'chain_id': 1,
            'native_decimals': 18,
            'currency': 'ETH',
            'explorer': 'https://etherscan.io'
        },
        'polygon': {
            'name': 'Polygon',
            'rpc': 'https://polygon.example.org',
            'chain_id': 137,
            'native_decimals': 18,
            'currency': 'MATIC',
            'explorer': 'https://polygonscan.com'
        },
        'sepolia': {
            'name': 'Ethereum Sepolia',
            'rpc': '',
            'chain_id': 11155111,
            'currency': 'ETH',
            'is_testnet': True
        }
    }


@pytest.fixture
def registry(chain_table):
    return ChainRegistry.from_table(chain_table)


@pytest.fixture
def config():
    """Gateway configuration"""
    return {
        'environment': 'test',
        'provider': {
            'id': 'chain-gateway',
            'name': 'Chain Gateway',
            'version': '1.0.0',
            'description': 'Multi-chain transaction gateway',
            'features': ['payments', 'token-transfers']
        },
        'sender_address': SENDER,
        'verify_chain_id': True,
        'timeouts': {
            'rpc_timeout_seconds': 15,
            'confirmation_timeout_seconds': 180,
            'receipt_poll_interval_seconds': 2
        },
        'gas_settings': {
            'native_transfer_gas_limit': 21000,
            'token_transfer_gas_limit': 65000,
            'gas_estimate_buffer': 1.10,
            'default_priority_fee_gwei': 1.5
        },
        'token_settings': {
            'default_decimals': 18,
            'query_token_metadata': True
        }
    }


@pytest.fixture
def fake_client():
    return FakeChainClient()


@pytest.fixture
def pool(fake_client):
    """Pool whose every endpoint resolves to ``fake_client``"""
    return ConnectionPool(lambda chain_config: fake_client)
