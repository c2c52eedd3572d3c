# /cowfee/core/gas_estimator.py
# Seed gas price for a logical transaction: network-specific fetcher first, node fee data otherwise.
from typing import Awaitable, Callable, Protocol

from cowfee.core.gas import EIP1559GasPrice, FeeData, GasPriceData, LegacyGasPrice
from cowfee.core.logger import get_logger

log = get_logger(__name__)


class FeeDataProvider(Protocol):
    async def get_fee_data(self) -> FeeData: ...

    async def get_gas_price(self) -> int: ...


CustomGasPriceFetcher = Callable[[FeeDataProvider], Awaitable[GasPriceData]]


async def gas_price_from_node(provider: FeeDataProvider) -> GasPriceData:
    fee_data = await provider.get_fee_data()

    if fee_data.max_fee_per_gas is not None and fee_data.max_priority_fee_per_gas is not None:
        return EIP1559GasPrice(
            max_fee_per_gas=fee_data.max_fee_per_gas,
            max_priority_fee_per_gas=fee_data.max_priority_fee_per_gas,
        )

    gas_price = fee_data.gas_price if fee_data.gas_price is not None else await provider.get_gas_price()
    return LegacyGasPrice(gas_price=gas_price)


class GasEstimator:
    """
    Provides the seed gas price for the transaction executor.

    No retries happen here: a failure of the node fee query aborts the
    transaction attempt. A failing network-specific fetcher only logs and
    falls back to the node.
    """

    def __init__(self, provider: FeeDataProvider, fetcher: CustomGasPriceFetcher | None = None):
        self.provider = provider
        self.fetcher = fetcher

    async def fetch(self) -> GasPriceData:
        if self.fetcher is not None:
            try:
                gas_price = await self.fetcher(self.provider)
                log.info("GAS_PRICE_FROM_CUSTOM_FETCHER", gas_price=str(gas_price))
                return gas_price
            except Exception as e:
                log.warning("CUSTOM_GAS_PRICE_FETCHER_FAILED_FALLING_BACK", error=str(e))

        gas_price = await gas_price_from_node(self.provider)
        log.info("GAS_PRICE_FROM_NODE", gas_price=str(gas_price))
        return gas_price
