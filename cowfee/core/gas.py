# /cowfee/core/gas.py
# Gas price data and the escalation policy used between inclusion timeouts.
from typing import Any, Dict, Tuple, Union

from pydantic import BaseModel, ConfigDict

GAS_INCREASE_STEP = 10  # +10% per retry
MAX_GAS_INCREASE = 100  # +100% of the seed gas price

EIP1559_FIELDS = ("maxFeePerGas", "maxPriorityFeePerGas")
LEGACY_FIELDS = ("gasPrice",)


class EIP1559GasPrice(BaseModel):
    max_fee_per_gas: int
    max_priority_fee_per_gas: int

    model_config = ConfigDict(frozen=True)

    @property
    def price(self) -> int:
        return self.max_fee_per_gas

    def __str__(self) -> str:
        return f"maxFeePerGas={self.max_fee_per_gas}, maxPriorityFeePerGas={self.max_priority_fee_per_gas}"


class LegacyGasPrice(BaseModel):
    gas_price: int

    model_config = ConfigDict(frozen=True)

    @property
    def price(self) -> int:
        return self.gas_price

    def __str__(self) -> str:
        return f"gasPrice={self.gas_price}"


GasPriceData = Union[EIP1559GasPrice, LegacyGasPrice]


class FeeData(BaseModel):
    """Fee estimate as reported by the node. Any field may be missing."""

    max_fee_per_gas: int | None = None
    max_priority_fee_per_gas: int | None = None
    gas_price: int | None = None


def increase_by_percentage(value: int, percentage: int) -> int:
    return value * (100 + percentage) // 100


def compute_ceiling(seed: GasPriceData, max_increase_percentage: int = MAX_GAS_INCREASE) -> int:
    """Highest max fee (or legacy gas price) we are willing to pay for one logical transaction."""
    return increase_by_percentage(seed.price, max_increase_percentage)


def next_gas_price(current: GasPriceData, ceiling: int) -> Tuple[GasPriceData, bool]:
    """
    Escalates ``current`` by one step, clamped to ``ceiling``.

    Only the max fee is clamped for EIP-1559 prices; the priority fee keeps
    growing by the step.

    Returns:
        The escalated price and whether it reached the ceiling.
    """
    if isinstance(current, EIP1559GasPrice):
        max_fee = min(increase_by_percentage(current.max_fee_per_gas, GAS_INCREASE_STEP), ceiling)
        updated = EIP1559GasPrice(
            max_fee_per_gas=max_fee,
            max_priority_fee_per_gas=increase_by_percentage(current.max_priority_fee_per_gas, GAS_INCREASE_STEP),
        )
        return updated, max_fee == ceiling

    gas_price = increase_by_percentage(current.gas_price, GAS_INCREASE_STEP)
    at_ceiling = gas_price >= ceiling
    return LegacyGasPrice(gas_price=ceiling if at_ceiling else gas_price), at_ceiling


def apply_gas_price_to_tx(tx: Dict[str, Any], gas_price: GasPriceData) -> Dict[str, Any]:
    """Copy of ``tx`` carrying only the fields of ``gas_price``'s fee model."""
    updated = dict(tx)
    if isinstance(gas_price, EIP1559GasPrice):
        for field in LEGACY_FIELDS:
            updated.pop(field, None)
        updated["maxFeePerGas"] = gas_price.max_fee_per_gas
        updated["maxPriorityFeePerGas"] = gas_price.max_priority_fee_per_gas
    else:
        for field in EIP1559_FIELDS:
            updated.pop(field, None)
        updated["gasPrice"] = gas_price.gas_price
    return updated
