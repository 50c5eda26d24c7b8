"""
Gas Calculator
Turns a chain's reported fee market into exactly one fee model
"""

from dataclasses import dataclass
from typing import Dict, Optional

from loguru import logger

from .exceptions import FeeUnavailable
from .units import format_units, to_hex_quantity

LEGACY = "legacy"
EIP1559 = "eip1559"


@dataclass(frozen=True)
class FeeQuote:
    """Either a legacy gas price or an EIP-1559 fee pair, never both"""

    gas_price: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None

    def __post_init__(self):
        has_legacy = self.gas_price is not None
        has_eip1559 = (
            self.max_fee_per_gas is not None
            and self.max_priority_fee_per_gas is not None
        )
        if has_legacy == has_eip1559:
            raise ValueError("FeeQuote needs exactly one fee model")

    @property
    def model(self) -> str:
        return LEGACY if self.gas_price is not None else EIP1559

    @property
    def max_price_per_gas(self) -> int:
        """Highest price per gas unit the transaction can pay"""
        if self.gas_price is not None:
            return self.gas_price
        return self.max_fee_per_gas

    def to_fields(self) -> Dict[str, str]:
        """Fee fields as they appear in an unsigned transaction"""
        if self.model == LEGACY:
            return {'gasPrice': to_hex_quantity(self.gas_price)}
        return {
            'maxFeePerGas': to_hex_quantity(self.max_fee_per_gas),
            'maxPriorityFeePerGas': to_hex_quantity(self.max_priority_fee_per_gas)
        }


class GasCalculator:
    """
    Fee side of the fee and nonce resolver

    Prefers the EIP-1559 pair when the network reports one, otherwise the
    legacy gas price. Refuses to quote a zero or missing fee.
    """

    def __init__(self):
        logger.info("Gas Calculator initialized")

    async def resolve_fees(self, client) -> FeeQuote:
        """
        Fetch current fee data from the chain

        Args:
            client: ChainClient for the target chain

        Returns:
            FeeQuote with exactly one model populated

        Raises:
            FeeUnavailable: if the network reports no usable fee
        """
        fee_data = await client.get_fee_data()

        max_fee = fee_data.get('maxFeePerGas')
        priority_fee = fee_data.get('maxPriorityFeePerGas')
        gas_price = fee_data.get('gasPrice')

        if max_fee and priority_fee is not None:
            quote = FeeQuote(
                max_fee_per_gas=int(max_fee),
                max_priority_fee_per_gas=int(priority_fee)
            )
        elif gas_price:
            quote = FeeQuote(gas_price=int(gas_price))
        else:
            raise FeeUnavailable("Network returned no usable fee data")

        logger.debug(f"Fee quote ({quote.model}): {quote.max_price_per_gas} wei/gas")
        return quote

    @staticmethod
    def estimate_total_fee(quote: FeeQuote, gas_limit: int) -> int:
        """Worst-case fee in wei for ``gas_limit`` gas"""
        return quote.max_price_per_gas * gas_limit

    @staticmethod
    def format_fee(fee_wei: int, decimals: int = 18) -> str:
        """Fee in native units as a decimal string"""
        return format_units(fee_wei, decimals)
