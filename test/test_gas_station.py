import math

import pytest

from cowfee.adapters.gas_station import (
    POLYGON_GAS_STATION_URL,
    create_custom_gas_price_fetcher,
    create_gas_price_fetcher,
    get_gas_price_fetcher_for_network,
)
from cowfee.core.errors import GasStationError
from cowfee.core.gas import EIP1559GasPrice, FeeData, LegacyGasPrice

POLYGON_RESPONSE = {
    "safeLow": {"maxPriorityFee": 30.0, "maxFee": 50.1},
    "standard": {"maxPriorityFee": 31.5, "maxFee": 55.2},
    "fast": {"maxPriorityFee": 33.704470949, "maxFee": 63.322660781},
    "estimatedBaseFee": 29.618189832,
    "blockTime": 2,
    "blockNumber": 57000000,
}


class DummyResponse:
    def __init__(self, status=200, payload=None, reason="OK"):
        self.status = status
        self.reason = reason
        self._payload = payload

    async def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class DummySession:
    def __init__(self, response):
        self.response = response
        self.urls = []

    def get(self, url, timeout=None):
        self.urls.append(url)
        return self.response

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class DummyProvider:
    async def get_fee_data(self):
        return FeeData(max_fee_per_gas=40, max_priority_fee_per_gas=4)

    async def get_gas_price(self):
        return 40


@pytest.mark.asyncio
async def test_fast_tier_rounds_up_to_wei():
    session = DummySession(DummyResponse(payload=POLYGON_RESPONSE))
    fetcher = create_gas_price_fetcher("fast", POLYGON_GAS_STATION_URL, session_factory=lambda: session)

    gas_price = await fetcher(DummyProvider())

    assert gas_price == EIP1559GasPrice(
        max_fee_per_gas=math.ceil(63.322660781 * 1e9),
        max_priority_fee_per_gas=math.ceil(33.704470949 * 1e9),
    )
    assert session.urls == [POLYGON_GAS_STATION_URL]


@pytest.mark.asyncio
async def test_selected_tier_is_used():
    session = DummySession(DummyResponse(payload=POLYGON_RESPONSE))
    fetcher = create_gas_price_fetcher("safeLow", POLYGON_GAS_STATION_URL, session_factory=lambda: session)

    gas_price = await fetcher(DummyProvider())

    assert gas_price.max_priority_fee_per_gas == 30_000_000_000
    assert gas_price.max_fee_per_gas == math.ceil(50.1 * 1e9)


@pytest.mark.asyncio
async def test_non_2xx_status_raises():
    session = DummySession(DummyResponse(status=503, reason="Service Unavailable"))
    fetcher = create_gas_price_fetcher("fast", POLYGON_GAS_STATION_URL, session_factory=lambda: session)

    with pytest.raises(GasStationError, match="503"):
        await fetcher(DummyProvider())


@pytest.mark.asyncio
async def test_custom_fetcher_parses_response():
    session = DummySession(DummyResponse(payload={"price": 12}))
    fetcher = create_custom_gas_price_fetcher(
        "https://gas.example", lambda data: LegacyGasPrice(gas_price=data["price"]), session_factory=lambda: session
    )

    assert await fetcher(DummyProvider()) == LegacyGasPrice(gas_price=12)


@pytest.mark.asyncio
async def test_custom_fetcher_falls_back_to_node_fee_data():
    session = DummySession(DummyResponse(status=500, reason="Internal Server Error"))
    fetcher = create_custom_gas_price_fetcher(
        "https://gas.example", lambda data: LegacyGasPrice(gas_price=data["price"]), session_factory=lambda: session
    )

    assert await fetcher(DummyProvider()) == EIP1559GasPrice(max_fee_per_gas=40, max_priority_fee_per_gas=4)


@pytest.mark.asyncio
async def test_custom_fetcher_falls_back_when_parser_fails():
    session = DummySession(DummyResponse(payload={"unexpected": True}))
    fetcher = create_custom_gas_price_fetcher(
        "https://gas.example", lambda data: LegacyGasPrice(gas_price=data["price"]), session_factory=lambda: session
    )

    assert await fetcher(DummyProvider()) == EIP1559GasPrice(max_fee_per_gas=40, max_priority_fee_per_gas=4)


def test_network_lookup():
    assert get_gas_price_fetcher_for_network(137) is not None
    assert get_gas_price_fetcher_for_network(1) is None
    assert get_gas_price_fetcher_for_network(100) is None
