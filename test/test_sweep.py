import pytest

from cowfee.adapters.orderbook import build_app_data
from cowfee.core.config import SweepConfig
from cowfee.core.errors import OrderBookError
from cowfee.sweep.orders import post_orders
from cowfee.sweep.planner import TokenToSwap, apply_slippage, get_tokens_to_swap
from cowfee.sweep.runner import SweepContext, drip_it_all, get_eth_to_wrap, swap_tokens
from cowfee.sweep.token_discovery import TokenInfo

SETTLEMENT = "0x9008D19f58AAbD9eD0D60971565AA8510560ab41"
RELAYER = "0xC92E8bdf79f0507f65a392b0ab4667716BFE0110"
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
RECEIVER = "0x00000000000000000000000000000000000000Fe"
TOKENS = [f"0x{i:040x}" for i in range(1, 6)]


def make_config(**overrides):
    values = dict(
        chain_id=1,
        network="mainnet",
        rpc_url="http://localhost:8545",
        module="0x000000000000000000000000000000000000dEaD",
        receiver=RECEIVER,
        wrapped_native_token=WETH,
        vault_relayer=RELAYER,
        gpv2_settlement=SETTLEMENT,
        keeper="0x00000000000000000000000000000000000000Ee",
        app_data=build_app_data().hash,
        target_safe=RECEIVER,
        min_out=100,
    )
    values.update(overrides)
    return SweepConfig(**values)


class DummyReader:
    def __init__(self, balances, allowances):
        self._balances = balances
        self._allowances = allowances

    async def balances(self, tokens, owner):
        assert owner == SETTLEMENT
        return [self._balances[t] for t in tokens]

    async def allowances(self, tokens, owner, spender):
        assert (owner, spender) == (SETTLEMENT, RELAYER)
        return [self._allowances[t] for t in tokens]


class DummyOrderBook:
    def __init__(self, quotes, rejected=()):
        self.quotes = quotes
        self.rejected = set(rejected)
        self.orders = []

    async def get_quote(self, sell_token, buy_token, sell_amount, from_address):
        quote = self.quotes[sell_token]
        if isinstance(quote, Exception):
            raise quote
        return {"sellToken": sell_token, "buyToken": buy_token, "sellAmount": str(sell_amount), "buyAmount": str(quote)}

    async def send_order(self, sell_token, buy_token, sell_amount, buy_amount, valid_to, app_data, owner, receiver):
        if sell_token in self.rejected:
            raise OrderBookError(400, '{"errorType":"InsufficientBalance"}')
        self.orders.append(
            dict(sell_token=sell_token, buy_token=buy_token, sell_amount=sell_amount, buy_amount=buy_amount, valid_to=valid_to, owner=owner, receiver=receiver)
        )
        return f"uid-{sell_token}"


class DummyClient:
    address = "0x00000000000000000000000000000000000000Ee"

    def __init__(self, native_balance=0):
        self.native_balance = native_balance

    async def get_balance(self, address):
        return self.native_balance

    async def get_transaction_count(self):
        return 1

    async def estimate_gas(self, tx):
        return 500_000


class DummyFeeModule:
    address = "0x000000000000000000000000000000000000dEaD"

    def __init__(self):
        self.drips = []

    async def next_valid_to(self):
        return 1_700_000_000

    def encode_drip(self, to_approve, to_drip):
        self.drips.append((list(to_approve), list(to_drip)))
        return "0x"


class DummyExecutor:
    def __init__(self, fail_first=False):
        self.fail_first = fail_first
        self.calls = 0

    async def execute(self, tx, operation_name, options=None):
        self.calls += 1
        if self.fail_first and self.calls == 1:
            raise RuntimeError("drip reverted")
        return f"0x{self.calls:064x}"


class DummyWeth:
    async def decimals(self):
        return 18

    async def symbol(self):
        return "WETH"


def token_infos(addresses):
    return [TokenInfo(address=a, symbol=f"T{i}", decimals=18) for i, a in enumerate(addresses)]


def make_ctx(config, tokens, balances, allowances, quotes, native_balance=0, rejected=(), fail_first=False):
    fee_module = DummyFeeModule()
    executor = DummyExecutor(fail_first=fail_first)
    orderbook = DummyOrderBook(quotes, rejected)

    async def token_source():
        return token_infos(tokens)

    ctx = SweepContext(
        config,
        DummyClient(native_balance),
        fee_module,
        reader=DummyReader(balances, allowances),
        orderbook=orderbook,
        executor=executor,
        token_source=token_source,
        wrapped_native=DummyWeth(),
    )
    return ctx, fee_module, executor, orderbook


def test_slippage():
    assert apply_slippage(10_000, 100) == 9_900
    assert apply_slippage(999, 100) == 989  # 989.01 truncated
    assert apply_slippage(1_000, 0) == 1_000


@pytest.mark.asyncio
async def test_planner_filters_by_quote_and_min_out():
    tokens = TOKENS[:4]
    balances = {TOKENS[0]: 1_000, TOKENS[1]: 2_000, TOKENS[2]: 3_000, TOKENS[3]: 4_000}
    allowances = {TOKENS[0]: 0, TOKENS[1]: 2_000, TOKENS[2]: 5_000, TOKENS[3]: 0}
    quotes = {
        TOKENS[0]: 10_000,  # 9_900 after slippage
        TOKENS[1]: 101,  # 99 after slippage, below min_out
        TOKENS[2]: OrderBookError(400, "NoLiquidity"),
        TOKENS[3]: 102,  # 100 after slippage, not strictly above min_out
    }

    result = await get_tokens_to_swap(make_config(min_out=100), token_infos(tokens), DummyReader(balances, allowances), DummyOrderBook(quotes))

    assert [t.address for t in result] == [TOKENS[0]]
    assert result[0].buy_amount == 9_900
    assert result[0].balance == 1_000
    assert result[0].needs_approval


@pytest.mark.asyncio
async def test_needs_approval_only_when_allowance_below_balance():
    tokens = TOKENS[:2]
    balances = {TOKENS[0]: 1_000, TOKENS[1]: 1_000}
    allowances = {TOKENS[0]: 1_000, TOKENS[1]: 999}
    quotes = {TOKENS[0]: 10_000, TOKENS[1]: 10_000}

    result = await get_tokens_to_swap(make_config(), token_infos(tokens), DummyReader(balances, allowances), DummyOrderBook(quotes))

    assert [t.needs_approval for t in result] == [False, True]


def to_swap(address, balance=1_000, buy_amount=500, needs_approval=True):
    return TokenToSwap(address=address, balance=balance, allowance=0, needs_approval=needs_approval, buy_amount=buy_amount)


@pytest.mark.asyncio
async def test_post_orders_isolates_rejections():
    orderbook = DummyOrderBook({}, rejected=[TOKENS[1]])
    config = make_config()

    result = await post_orders(orderbook, build_app_data(), 1_700_000_000, config, [to_swap(TOKENS[0]), to_swap(TOKENS[1]), to_swap(TOKENS[2])])

    assert result.posted == [f"uid-{TOKENS[0]}", f"uid-{TOKENS[2]}"]
    assert [t.address for t in result.to_actually_swap] == [TOKENS[0], TOKENS[2]]
    assert len(result.failed) == 1 and TOKENS[1] in result.failed[0]
    assert orderbook.orders[0] == dict(
        sell_token=TOKENS[0], buy_token=WETH, sell_amount=1_000, buy_amount=500, valid_to=1_700_000_000, owner=SETTLEMENT, receiver=RECEIVER
    )


@pytest.mark.asyncio
async def test_swap_tokens_drips_only_posted_orders():
    ctx, fee_module, executor, _ = make_ctx(make_config(), [], {}, {}, {}, rejected=[TOKENS[1]])

    await swap_tokens(ctx, [to_swap(TOKENS[0], needs_approval=False), to_swap(TOKENS[1]), to_swap(TOKENS[2])])

    assert fee_module.drips == [([TOKENS[2]], [(TOKENS[0], 1_000, 500), (TOKENS[2], 1_000, 500)])]
    assert executor.calls == 1


@pytest.mark.asyncio
async def test_swap_tokens_skips_drip_when_every_order_fails():
    ctx, fee_module, executor, _ = make_ctx(make_config(), [], {}, {}, {}, rejected=[TOKENS[0]])

    assert await swap_tokens(ctx, [to_swap(TOKENS[0])]) is None
    assert fee_module.drips == []
    assert executor.calls == 0


@pytest.mark.asyncio
async def test_eth_to_wrap_threshold():
    ctx, *_ = make_ctx(make_config(min_out=100), [], {}, {}, {}, native_balance=100)
    assert await get_eth_to_wrap(ctx) == 100

    ctx, *_ = make_ctx(make_config(min_out=100), [], {}, {}, {}, native_balance=99)
    assert await get_eth_to_wrap(ctx) == 0


@pytest.mark.asyncio
async def test_batches_continue_after_a_failed_batch():
    tokens = TOKENS[:5]
    balances = {t: 1_000 for t in tokens}
    allowances = {t: 0 for t in tokens}
    quotes = {t: 10_000 for t in tokens}
    ctx, fee_module, executor, orderbook = make_ctx(make_config(max_orders=2), tokens, balances, allowances, quotes, fail_first=True)

    await drip_it_all(ctx)

    assert [len(swaps) for _, swaps in fee_module.drips] == [2, 2, 1]
    assert executor.calls == 3
    assert len(orderbook.orders) == 5


@pytest.mark.asyncio
async def test_app_data_mismatch_skips_batch():
    tokens = TOKENS[:1]
    ctx, fee_module, executor, orderbook = make_ctx(
        make_config(app_data="0x" + "11" * 32), tokens, {tokens[0]: 1_000}, {tokens[0]: 0}, {tokens[0]: 10_000}
    )

    await drip_it_all(ctx)

    assert orderbook.orders == []
    assert executor.calls == 0


@pytest.mark.asyncio
async def test_native_balance_only_still_drips():
    ctx, fee_module, executor, _ = make_ctx(make_config(min_out=100), [], {}, {}, {}, native_balance=10**18)

    await drip_it_all(ctx)

    assert fee_module.drips == [([], [])]
    assert executor.calls == 1


@pytest.mark.asyncio
async def test_nothing_to_do():
    ctx, fee_module, executor, _ = make_ctx(make_config(min_out=100), [], {}, {}, {}, native_balance=50)

    await drip_it_all(ctx)

    assert fee_module.drips == []
    assert executor.calls == 0
