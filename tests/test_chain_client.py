"""
Unit Tests for the web3.py chain client
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest
from web3 import Web3
from web3.exceptions import TimeExhausted, Web3RPCError

from utils.chain_client import Web3ChainClient
from utils.exceptions import ReceiptTimeout, RpcError, RpcTimeout

GWEI = 10**9


def _value(value):
    """Awaitable standing in for an AsyncWeb3 property such as eth.gas_price"""
    async def resolve():
        return value
    return resolve()


def _failure(error):
    async def fail():
        raise error
    return fail()


def _rpc_error(message):
    return Web3RPCError(message, rpc_response={'jsonrpc': '2.0', 'id': 1, 'error': {'code': -32000, 'message': message}})


@pytest.fixture
def client():
    """Client whose AsyncWeb3 instance is replaced by a mock"""
    chain_client = Web3ChainClient(
        "http://localhost:8545",
        rpc_timeout=0.5,
        poll_interval=0.1,
        default_priority_fee_wei=GWEI
    )
    chain_client.w3 = Mock()
    return chain_client


class TestFeeData:
    """Test fee market reading"""

    @pytest.mark.asyncio
    async def test_eip1559_chain(self, client):
        client.w3.eth.get_block = AsyncMock(return_value={'baseFeePerGas': 10 * GWEI})
        client.w3.eth.gas_price = _value(12 * GWEI)
        client.w3.eth.max_priority_fee = _value(2 * GWEI)

        fee_data = await client.get_fee_data()

        assert fee_data == {
            'gasPrice': 12 * GWEI,
            'maxFeePerGas': 22 * GWEI,
            'maxPriorityFeePerGas': 2 * GWEI
        }

    @pytest.mark.asyncio
    async def test_legacy_chain(self, client):
        client.w3.eth.get_block = AsyncMock(return_value={'number': 100})
        client.w3.eth.gas_price = _value(5 * GWEI)

        fee_data = await client.get_fee_data()

        assert fee_data == {'gasPrice': 5 * GWEI, 'maxFeePerGas': None, 'maxPriorityFeePerGas': None}

    @pytest.mark.asyncio
    async def test_priority_fee_fallback(self, client):
        client.w3.eth.get_block = AsyncMock(return_value={'baseFeePerGas': 10 * GWEI})
        client.w3.eth.gas_price = _value(12 * GWEI)
        client.w3.eth.max_priority_fee = _failure(_rpc_error("method not found"))

        fee_data = await client.get_fee_data()

        assert fee_data['maxPriorityFeePerGas'] == GWEI
        assert fee_data['maxFeePerGas'] == 21 * GWEI


class TestErrorTranslation:
    """Test that web3 failures surface as client errors"""

    @pytest.mark.asyncio
    async def test_timeout(self, client):
        async def slow():
            await asyncio.sleep(5)
            return 1

        client.rpc_timeout = 0.01
        client.w3.eth.chain_id = slow()

        with pytest.raises(RpcTimeout) as exc_info:
            await client.get_network()

        assert "localhost" not in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_rpc_error_keeps_node_message(self, client):
        client.w3.eth.send_raw_transaction = AsyncMock(side_effect=_rpc_error("insufficient funds for gas * price + value"))

        with pytest.raises(RpcError) as exc_info:
            await client.send_transaction("0x02f8")

        assert exc_info.value.reason == "insufficient funds for gas * price + value"

    @pytest.mark.asyncio
    async def test_receipt_timeout(self, client):
        client.w3.eth.wait_for_transaction_receipt = AsyncMock(side_effect=TimeExhausted("not mined"))

        with pytest.raises(ReceiptTimeout):
            await client.wait_for_receipt("0x" + "ef" * 32, 1)


class TestCalls:
    """Test request and response shaping"""

    @pytest.mark.asyncio
    async def test_network(self, client):
        client.w3.eth.chain_id = _value(137)

        assert await client.get_network() == {'chainId': 137}

    @pytest.mark.asyncio
    async def test_pending_transaction_count(self, client):
        client.w3.eth.get_transaction_count = AsyncMock(return_value=9)
        address = "0x" + "ab" * 20

        assert await client.get_transaction_count(address) == 9
        client.w3.eth.get_transaction_count.assert_called_once_with(
            Web3.to_checksum_address(address), "pending"
        )

    @pytest.mark.asyncio
    async def test_send_returns_hex_hash(self, client):
        client.w3.eth.send_raw_transaction = AsyncMock(return_value=bytes.fromhex("ef" * 32))

        assert await client.send_transaction("0x02f8") == "0x" + "ef" * 32

    @pytest.mark.asyncio
    async def test_estimate_gas_checksums_addresses(self, client):
        client.w3.eth.estimate_gas = AsyncMock(return_value=52000)
        sender = "0x" + "12" * 20
        token = "0x" + "cd" * 20

        gas = await client.estimate_gas({'from': sender, 'to': token, 'value': 0, 'data': "0x"})

        assert gas == 52000
        sent = client.w3.eth.estimate_gas.call_args[0][0]
        assert sent['to'] == Web3.to_checksum_address(token)
        assert sent['from'] == Web3.to_checksum_address(sender)

    @pytest.mark.asyncio
    async def test_call_returns_hex(self, client):
        client.w3.eth.call = AsyncMock(return_value=bytes.fromhex("00" * 31 + "06"))

        result = await client.call({'to': "0x" + "cd" * 20, 'data': "0x313ce567"})

        assert result == "0x" + "00" * 31 + "06"

    @pytest.mark.asyncio
    async def test_receipt_bytes_become_hex(self, client):
        client.w3.eth.wait_for_transaction_receipt = AsyncMock(return_value={
            'transactionHash': bytes.fromhex("ef" * 32),
            'blockHash': bytes.fromhex("99" * 32),
            'blockNumber': 16,
            'status': 1
        })

        receipt = await client.wait_for_receipt("0x" + "ef" * 32, 10)

        assert receipt['transactionHash'] == "0x" + "ef" * 32
        assert receipt['blockHash'] == "0x" + "99" * 32
        assert receipt['status'] == 1
        _, kwargs = client.w3.eth.wait_for_transaction_receipt.call_args
        assert kwargs == {'timeout': 10, 'poll_latency': 0.1}
