# /cowfee/adapters/gas_station.py
# Network-specific gas price fetchers backed by external HTTP APIs.
import math
from typing import Any, Callable, Dict, Literal

import aiohttp

from cowfee.core.config import settings
from cowfee.core.errors import GasStationError
from cowfee.core.gas import EIP1559GasPrice, GasPriceData
from cowfee.core.gas_estimator import CustomGasPriceFetcher, FeeDataProvider, gas_price_from_node
from cowfee.core.logger import get_logger

log = get_logger(__name__)

GasStationSpeed = Literal["safeLow", "standard", "fast"]
SessionFactory = Callable[[], aiohttp.ClientSession]

POLYGON_GAS_STATION_URL = "https://gasstation.polygon.technology/v2"


def gwei_to_wei_ceil(value: float) -> int:
    return math.ceil(value * 1e9)


async def _get_json(session_factory: SessionFactory, api_url: str, api_name: str) -> Dict[str, Any]:
    timeout = aiohttp.ClientTimeout(total=settings.HTTP_TIMEOUT_SECONDS)
    async with session_factory() as session:
        async with session.get(api_url, timeout=timeout) as resp:
            if not 200 <= resp.status < 300:
                raise GasStationError(f"{api_name} returned {resp.status}: {resp.reason}")
            return await resp.json()


def create_gas_price_fetcher(
    speed: GasStationSpeed,
    api_url: str,
    session_factory: SessionFactory = aiohttp.ClientSession,
) -> CustomGasPriceFetcher:
    """
    Gas price fetcher for a Gas Station style API (``safeLow``/``standard``/``fast`` tiers in gwei).

    Errors propagate; the GasEstimator falls back to the node.
    """

    async def fetch(_provider: FeeDataProvider) -> GasPriceData:
        data = await _get_json(session_factory, api_url, "Gas station API")
        tier = data[speed]

        log.info("GAS_STATION_PRICE", speed=speed, max_fee_gwei=tier["maxFee"], max_priority_fee_gwei=tier["maxPriorityFee"])
        return EIP1559GasPrice(
            max_fee_per_gas=gwei_to_wei_ceil(tier["maxFee"]),
            max_priority_fee_per_gas=gwei_to_wei_ceil(tier["maxPriorityFee"]),
        )

    return fetch


def create_custom_gas_price_fetcher(
    api_url: str,
    parse_response: Callable[[Any], GasPriceData],
    session_factory: SessionFactory = aiohttp.ClientSession,
) -> CustomGasPriceFetcher:
    """Gas price fetcher for an arbitrary JSON API. Falls back to the node's fee data on any failure."""

    async def fetch(provider: FeeDataProvider) -> GasPriceData:
        try:
            data = await _get_json(session_factory, api_url, "Custom gas price API")
            return parse_response(data)
        except Exception as e:
            log.error("CUSTOM_GAS_PRICE_API_FAILED", url=api_url, error=str(e))
            log.info("FALLING_BACK_TO_NODE_FEE_DATA")
            return await gas_price_from_node(provider)

    return fetch


NETWORK_GAS_PRICE_FETCHERS: Dict[int, CustomGasPriceFetcher] = {
    # Polygon mainnet
    137: create_gas_price_fetcher("fast", POLYGON_GAS_STATION_URL),
}


def get_gas_price_fetcher_for_network(chain_id: int) -> CustomGasPriceFetcher | None:
    return NETWORK_GAS_PRICE_FETCHERS.get(chain_id)
