import pytest

from cowfee.core.config import SweepConfig
from cowfee.sweep.token_discovery import (
    NATIVE_TOKEN_SENTINEL,
    TokenInfo,
    get_token_list,
    parse_ethplorer_tokens,
    unique_trade_tokens,
)

SETTLEMENT = "0x9008D19f58AAbD9eD0D60971565AA8510560ab41"
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
DAI = "0x6B175474E89094C44Da98b954EedeAC495271d0F"
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"


def trade(sell, buy):
    return {"args": {"sellToken": sell, "buyToken": buy}}


def make_config(**overrides):
    values = dict(
        chain_id=100,
        network="gnosis",
        rpc_url="http://localhost:8545",
        module="0x000000000000000000000000000000000000dEaD",
        receiver=SETTLEMENT,
        wrapped_native_token=WETH,
        vault_relayer=SETTLEMENT,
        gpv2_settlement=SETTLEMENT,
        keeper=SETTLEMENT,
        app_data="0x" + "00" * 32,
        target_safe=SETTLEMENT,
        min_out=0,
        token_list_strategy="chain",
        lookback_range=50,
    )
    values.update(overrides)
    return SweepConfig(**values)


async def _value(value):
    return value


class DummyTradeEvent:
    def __init__(self, trades):
        self.trades = trades
        self.ranges = []

    async def get_logs(self, from_block, to_block):
        self.ranges.append((from_block, to_block))
        return self.trades


class DummyContract:
    def __init__(self, trade_event):
        self.events = type("Events", (), {"Trade": trade_event})()


class DummyEth:
    def __init__(self, trade_event):
        self.trade_event = trade_event

    @property
    def block_number(self):
        return _value(1_000)

    def contract(self, address, abi):
        return DummyContract(self.trade_event)


class DummyW3:
    def __init__(self, trades):
        self.trade_event = DummyTradeEvent(trades)
        self.eth = DummyEth(self.trade_event)


class DummyMulticall:
    async def decimals(self, tokens):
        return [{DAI: 18, USDC: 6}.get(t, 0) for t in tokens]


def test_unique_trade_tokens_skips_native_sentinel():
    trades = [trade(DAI, WETH), trade(NATIVE_TOKEN_SENTINEL, DAI), trade(USDC.lower(), NATIVE_TOKEN_SENTINEL.lower()), trade(USDC, WETH)]
    assert unique_trade_tokens(trades) == [DAI, WETH, USDC.lower()]


def test_parse_ethplorer_tokens():
    data = {
        "address": SETTLEMENT.lower(),
        "ETH": {"balance": 1.2},
        "tokens": [
            {"tokenInfo": {"address": DAI.lower(), "symbol": "DAI", "decimals": "18"}, "balance": 1e18},
            {"tokenInfo": {"address": USDC.lower(), "decimals": "6"}, "balance": 5e6},
        ],
    }
    assert parse_ethplorer_tokens(data) == [
        TokenInfo(address=DAI, symbol="DAI", decimals=18),
        TokenInfo(address=USDC, symbol="", decimals=6),
    ]
    assert parse_ethplorer_tokens({"address": SETTLEMENT}) == []


@pytest.mark.asyncio
async def test_chain_strategy_reads_trades_in_lookback_range():
    w3 = DummyW3([trade(DAI, WETH), trade(USDC, DAI)])

    tokens = await get_token_list(w3, make_config(), multicall=DummyMulticall())

    assert w3.trade_event.ranges == [(950, 1_000)]
    assert tokens == [TokenInfo(address=DAI, decimals=18), TokenInfo(address=WETH, decimals=0), TokenInfo(address=USDC, decimals=6)]


@pytest.mark.asyncio
async def test_explorer_strategy_falls_back_to_chain_off_mainnet():
    w3 = DummyW3([trade(DAI, WETH)])

    def no_http():
        raise AssertionError("explorer API must not be used off mainnet")

    tokens = await get_token_list(w3, make_config(token_list_strategy="explorer"), multicall=DummyMulticall(), session_factory=no_http)

    assert [t.address for t in tokens] == [DAI, WETH]


@pytest.mark.asyncio
async def test_explorer_strategy_on_mainnet():
    class Response:
        status = 200

        def raise_for_status(self):
            pass

        async def json(self):
            return {"tokens": [{"tokenInfo": {"address": DAI.lower(), "symbol": "DAI", "decimals": "18"}}]}

        async def __aenter__(self):
            return self

        async def __aexit__(self, *exc_info):
            return False

    class Session:
        def __init__(self):
            self.requests = []

        def get(self, url, params=None, timeout=None):
            self.requests.append((url, params))
            return Response()

        async def __aenter__(self):
            return self

        async def __aexit__(self, *exc_info):
            return False

    session = Session()
    config = make_config(chain_id=1, network="mainnet", token_list_strategy="explorer")

    tokens = await get_token_list(DummyW3([]), config, session_factory=lambda: session)

    assert tokens == [TokenInfo(address=DAI, symbol="DAI", decimals=18)]
    assert session.requests == [(f"https://api.ethplorer.io/getAddressInfo/{SETTLEMENT}", {"apiKey": "freekey"})]
