"""
ERC-20 Encoding
Calldata for token transfers and decoding of token metadata calls
"""

from typing import Optional

from eth_abi import decode, encode
from web3 import Web3

TRANSFER_SIGNATURE = "transfer(address,uint256)"
DECIMALS_SIGNATURE = "decimals()"
SYMBOL_SIGNATURE = "symbol()"
NAME_SIGNATURE = "name()"


def function_selector(signature: str) -> bytes:
    """First 4 bytes of keccak256(signature)"""
    return bytes(Web3.keccak(text=signature))[:4]


TRANSFER_SELECTOR = function_selector(TRANSFER_SIGNATURE)


def encode_transfer(recipient: str, amount: int) -> str:
    """
    ABI-encode transfer(address,uint256)

    Args:
        recipient: Lower-case 0x recipient address
        amount: Token amount in base units

    Returns:
        0x-prefixed calldata: selector + padded recipient + padded amount
    """
    encoded_args = encode(['address', 'uint256'], [recipient, amount])
    return "0x" + TRANSFER_SELECTOR.hex() + encoded_args.hex()


def metadata_call(signature: str) -> str:
    return "0x" + function_selector(signature).hex()


def _return_bytes(data: Optional[str]) -> bytes:
    if not data or data == "0x":
        raise ValueError("Empty return data")
    return bytes.fromhex(data[2:] if data.startswith("0x") else data)


def decode_uint(data: Optional[str]) -> int:
    return decode(['uint256'], _return_bytes(data))[0]


def decode_string(data: Optional[str]) -> str:
    return decode(['string'], _return_bytes(data))[0]
