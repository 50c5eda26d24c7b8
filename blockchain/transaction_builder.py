"""
Transaction Builder
Assembles unsigned native and ERC-20 transfer transactions
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from loguru import logger
from web3 import Web3

from utils.exceptions import BuildError, GatewayError, InvalidAmount
from utils.gas_calculator import EIP1559, FeeQuote, GasCalculator
from utils.units import (
    Amount,
    format_decimal,
    normalize_address,
    parse_amount,
    to_base_units,
    to_hex_quantity,
)

from .erc20 import (
    DECIMALS_SIGNATURE,
    NAME_SIGNATURE,
    SYMBOL_SIGNATURE,
    decode_string,
    decode_uint,
    encode_transfer,
    metadata_call,
)
from .nonce_manager import NonceManager

NATIVE_TRANSFER_GAS = 21000
TOKEN_FEE_CURRENCY = "TOKEN"

# 10**77 is the largest power of ten below 2**256
MAX_TOKEN_DECIMALS = 77


@dataclass(frozen=True)
class UnsignedTransaction:
    """
    Transaction ready to be handed to an external signer

    Addresses are lower-case. Exactly one fee model is set.
    """

    chain_id: int
    to: str
    value: int
    data: str
    gas_limit: int
    nonce: int
    fee: FeeQuote

    def to_dict(self) -> Dict[str, Any]:
        """Wire form: chainId as int, quantities as 0x hex strings"""
        tx = {
            'chainId': self.chain_id,
            'to': self.to,
            'value': to_hex_quantity(self.value),
            'data': self.data,
            'gasLimit': to_hex_quantity(self.gas_limit),
            'nonce': to_hex_quantity(self.nonce)
        }
        tx.update(self.fee.to_fields())
        return tx

    def to_signable(self) -> Dict[str, Any]:
        """Dict in the shape eth-account's sign_transaction expects"""
        tx = {
            'chainId': self.chain_id,
            'to': Web3.to_checksum_address(self.to),
            'value': self.value,
            'data': self.data,
            'gas': self.gas_limit,
            'nonce': self.nonce
        }
        if self.fee.model == EIP1559:
            tx['type'] = 2
            tx['maxFeePerGas'] = self.fee.max_fee_per_gas
            tx['maxPriorityFeePerGas'] = self.fee.max_priority_fee_per_gas
        else:
            tx['gasPrice'] = self.fee.gas_price
        return tx


@dataclass(frozen=True)
class BuiltTransaction:
    transaction: UnsignedTransaction
    metadata: Dict[str, Any] = field(default_factory=dict)


class TransactionBuilder:
    """
    Builds unsigned transfer transactions

    Native transfers move value directly; token transfers call the token
    contract's transfer(address,uint256) with value 0. Network failures are
    wrapped in BuildError and never retried here.
    """

    def __init__(
        self,
        registry,
        pool,
        gas_calculator: GasCalculator,
        nonce_manager: NonceManager,
        config: Dict
    ):
        """
        Initialize Transaction Builder

        Args:
            registry: ChainRegistry
            pool: ConnectionPool
            gas_calculator: Fee resolver
            nonce_manager: Nonce resolver
            config: Gateway configuration
        """
        self.registry = registry
        self.pool = pool
        self.gas_calculator = gas_calculator
        self.nonce_manager = nonce_manager

        gas_settings = config['gas_settings']
        token_settings = config['token_settings']

        self.native_gas_limit = gas_settings.get('native_transfer_gas_limit', NATIVE_TRANSFER_GAS)
        self.token_gas_limit = gas_settings['token_transfer_gas_limit']
        self.gas_estimate_buffer = gas_settings.get('gas_estimate_buffer', 1.10)
        self.default_token_decimals = token_settings.get('default_decimals', 18)
        self.query_token_metadata = token_settings.get('query_token_metadata', True)
        self.verify_chain_id = config.get('verify_chain_id', True)
        self.sender_address = config.get('sender_address')

        logger.info("Transaction Builder initialized")

    async def build(
        self,
        chain: str,
        to: str,
        amount: Amount,
        token_address: Optional[str] = None,
        token_decimals: Optional[int] = None,
        from_address: Optional[str] = None
    ) -> BuiltTransaction:
        """
        Build an unsigned transfer

        Args:
            chain: Chain key (any case)
            to: Recipient address
            amount: Human amount, e.g. "0.1"
            token_address: ERC-20 contract, None for a native transfer
            token_decimals: Token decimals if the caller knows them
            from_address: Sender, defaults to the configured wallet address

        Returns:
            BuiltTransaction with the unsigned transaction and metadata

        Raises:
            UnsupportedChain, InvalidAddress, InvalidAmount, FeeUnavailable,
            BuildError
        """
        chain_config = self.registry.resolve(chain)

        recipient = normalize_address(to, "recipient address")
        token = normalize_address(token_address, "token address") if token_address else None
        sender = self._resolve_sender(from_address)
        human_amount = parse_amount(amount)

        try:
            client = self.pool.acquire(chain_config)

            if self.verify_chain_id:
                await self._verify_network(client, chain_config)

            if token is None:
                value = to_base_units(human_amount, chain_config.native_decimals)
                tx_to = recipient
                data = "0x"
                gas_limit = self.native_gas_limit
                gas_limit_source = "default"
                token_info = None
            else:
                token_info = await self._resolve_token_info(client, token, token_decimals)
                value = 0
                tx_to = token
                data = encode_transfer(
                    recipient,
                    to_base_units(human_amount, token_info['decimals'])
                )
                gas_limit, gas_limit_source = await self._estimate_token_gas(
                    client, sender, token, data
                )

            fee = await self.gas_calculator.resolve_fees(client)
            nonce = await self.nonce_manager.resolve_nonce(client, sender)

        except GatewayError:
            raise
        except Exception as e:
            logger.error(f"Error building transaction on {chain_config.key}: {e}")
            raise BuildError("Failed to build transaction", cause=e) from e

        transaction = UnsignedTransaction(
            chain_id=chain_config.chain_id,
            to=tx_to,
            value=value,
            data=data,
            gas_limit=gas_limit,
            nonce=nonce,
            fee=fee
        )

        fee_wei = self.gas_calculator.estimate_total_fee(fee, gas_limit)
        metadata = {
            'estimatedFee': self.gas_calculator.format_fee(fee_wei, chain_config.native_decimals),
            'estimatedFeeWei': str(fee_wei),
            'feeCurrency': TOKEN_FEE_CURRENCY if token else chain_config.currency_symbol,
            'nativeCurrency': chain_config.currency_symbol,
            'feeModel': fee.model,
            'gasLimitSource': gas_limit_source,
            'chain': chain_config.summary(),
            'from': sender,
            'recipient': recipient,
            'amount': format_decimal(human_amount),
            'tokenInfo': token_info
        }

        logger.info(
            f"Built {'token' if token else 'native'} transfer on {chain_config.key}: "
            f"{metadata['amount']} to {recipient} (nonce {nonce})"
        )

        return BuiltTransaction(transaction=transaction, metadata=metadata)

    def _resolve_sender(self, from_address: Optional[str]) -> str:
        sender = from_address or self.sender_address
        if not sender:
            raise BuildError(
                "No sender address: pass from_address or set WALLET_ADDRESS"
            )
        return normalize_address(sender, "sender address")

    async def _verify_network(self, client, chain_config) -> None:
        network = await client.get_network()
        network_chain_id = int(network['chainId'])

        if network_chain_id != chain_config.chain_id:
            raise BuildError(
                f"RPC endpoint for {chain_config.key} reports chain id "
                f"{network_chain_id}, expected {chain_config.chain_id}"
            )

    async def _resolve_token_info(
        self,
        client,
        token: str,
        token_decimals: Optional[int]
    ) -> Dict[str, Any]:
        """
        Work out token decimals and display info

        Decimals come from the request, then the contract's decimals(), then
        the configured default. The source is reported so a defaulted value
        is never silent.
        """
        info = {
            'address': token,
            'name': None,
            'symbol': None,
            'decimals': None,
            'decimalsSource': None
        }

        if token_decimals is not None:
            if isinstance(token_decimals, bool) or not 0 <= int(token_decimals) <= MAX_TOKEN_DECIMALS:
                raise InvalidAmount(f"Invalid token decimals: {token_decimals!r}")
            info['decimals'] = int(token_decimals)
            info['decimalsSource'] = "request"

        if self.query_token_metadata:
            if info['decimals'] is None:
                decimals = await self._read_token_field(client, token, DECIMALS_SIGNATURE, decode_uint)
                if decimals is not None and decimals <= MAX_TOKEN_DECIMALS:
                    info['decimals'] = decimals
                    info['decimalsSource'] = "contract"

            info['symbol'] = await self._read_token_field(client, token, SYMBOL_SIGNATURE, decode_string)
            info['name'] = await self._read_token_field(client, token, NAME_SIGNATURE, decode_string)

        if info['decimals'] is None:
            logger.warning(
                f"Decimals unknown for token {token}, "
                f"assuming {self.default_token_decimals}"
            )
            info['decimals'] = self.default_token_decimals
            info['decimalsSource'] = "default"

        return info

    async def _read_token_field(self, client, token: str, signature: str, decoder):
        try:
            result = await client.call({'to': token, 'data': metadata_call(signature)})
            return decoder(result)
        except Exception as e:
            logger.debug(f"Could not read {signature} from {token}: {e}")
            return None

    async def _estimate_token_gas(self, client, sender: str, token: str, data: str):
        """
        Estimate gas for a token transfer

        Returns:
            (gas_limit, source) where source is "estimate" or "default"
        """
        try:
            gas_estimate = await client.estimate_gas({
                'from': sender,
                'to': token,
                'value': 0,
                'data': data
            })
            # Add 10% buffer
            buffered_gas = int(gas_estimate * self.gas_estimate_buffer)
            logger.debug(f"Gas estimate: {gas_estimate} -> {buffered_gas} (buffered)")
            return buffered_gas, "estimate"

        except Exception as e:
            logger.warning(
                f"Gas estimation failed for {token}, using default "
                f"{self.token_gas_limit}: {e}"
            )
            return self.token_gas_limit, "default"
