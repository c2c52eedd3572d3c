# /cowfee/sweep/runner.py
# One complete fee collection run: discover, quote, post orders, drip.
from decimal import Decimal
from typing import Awaitable, Callable, List, Protocol

from cowfee.adapters.orderbook import AppData, build_app_data
from cowfee.core.config import SweepConfig
from cowfee.core.errors import AppDataMismatchError
from cowfee.core.logger import get_logger
from cowfee.core.tx import ExecutionOptions, TransactionExecutor
from cowfee.sweep.drip import DripClient, drip
from cowfee.sweep.orders import post_orders
from cowfee.sweep.planner import BalanceReader, QuoteSource, TokenToSwap, get_tokens_to_swap
from cowfee.sweep.prompt import ConfirmationPrompt
from cowfee.sweep.token_discovery import TokenInfo

log = get_logger(__name__)

WRAPPED_NATIVE_DECIMALS = 18

TokenSource = Callable[[], Awaitable[List[TokenInfo]]]


class SweepClient(DripClient, Protocol):
    async def get_balance(self, address: str) -> int: ...


class TokenMetadata(Protocol):
    async def decimals(self) -> int: ...

    async def symbol(self) -> str: ...


def format_units(amount: int, decimals: int) -> str:
    return format(Decimal(amount).scaleb(-decimals).normalize(), "f")


class SweepContext:
    """The collaborators of a sweep run, wired once by the CLI."""

    def __init__(
        self,
        config: SweepConfig,
        client: SweepClient,
        fee_module,
        reader: BalanceReader,
        orderbook: QuoteSource,
        executor: TransactionExecutor,
        token_source: TokenSource,
        wrapped_native: TokenMetadata,
        prompt: ConfirmationPrompt | None = None,
        options: ExecutionOptions | None = None,
        app_data: AppData | None = None,
    ):
        self.config = config
        self.client = client
        self.fee_module = fee_module
        self.reader = reader
        self.orderbook = orderbook
        self.executor = executor
        self.token_source = token_source
        self.wrapped_native = wrapped_native
        self.prompt = prompt
        self.options = options
        self.app_data = app_data or build_app_data()

    async def drip(self, to_approve: List[str], to_drip: list) -> str | None:
        return await drip(
            self.client, self.fee_module, self.executor, to_approve, to_drip, prompt=self.prompt, options=self.options
        )


async def get_eth_to_wrap(ctx: SweepContext) -> int:
    """The settlement's native balance, or 0 when it does not reach ``minOut``."""
    balance = await ctx.client.get_balance(ctx.config.gpv2_settlement)
    return balance if balance >= ctx.config.min_out else 0


async def swap_tokens(ctx: SweepContext, to_swap: List[TokenToSwap]) -> str | None:
    """Posts the batch's orders, then drips the tokens whose order was accepted."""
    config = ctx.config
    next_valid_to = await ctx.fee_module.next_valid_to()
    if ctx.app_data.hash.lower() != config.app_data.lower():
        raise AppDataMismatchError(f"appData mismatch: {ctx.app_data.hash} != {config.app_data}")

    result = await post_orders(ctx.orderbook, ctx.app_data, next_valid_to, config, to_swap)
    log.info("ORDERS_POSTED", uids=result.posted)
    if result.failed:
        log.error("ORDERS_FAILED", errors=result.failed)

    if not result.to_actually_swap:
        log.info("NO_TOKENS_TO_SWAP_SKIPPING_DRIP")
        return None

    to_approve = [token.address for token in result.to_actually_swap if token.needs_approval]
    to_drip = [(token.address, token.balance, token.buy_amount) for token in result.to_actually_swap]
    return await ctx.drip(to_approve, to_drip)


async def drip_it_all(ctx: SweepContext):
    config = ctx.config

    eth_to_wrap = await get_eth_to_wrap(ctx)
    log.info("ETH_TO_WRAP", amount=format_units(eth_to_wrap, WRAPPED_NATIVE_DECIMALS))

    tokens = await ctx.token_source()
    tokens_to_swap = await get_tokens_to_swap(config, tokens, ctx.reader, ctx.orderbook)
    log.info(
        "TOKENS_TO_SWAP",
        tokens=[
            {
                "symbol": token.symbol,
                "address": token.address,
                "balance": format_units(token.balance, token.decimals),
                "buy_amount": format_units(token.buy_amount, WRAPPED_NATIVE_DECIMALS),
                "needs_approval": token.needs_approval,
            }
            for token in tokens_to_swap
        ],
    )

    if tokens_to_swap:
        for start in range(0, len(tokens_to_swap), config.max_orders):
            batch = tokens_to_swap[start : start + config.max_orders]
            try:
                await swap_tokens(ctx, batch)
            except Exception as e:
                log.error("DRIP_BATCH_FAILED", batch_start=start, batch_size=len(batch), error=str(e), exc_info=True)
    elif eth_to_wrap > 0:
        # Nothing to sell, the drip still wraps the native balance
        await ctx.drip([], [])

    expected = sum(token.buy_amount for token in tokens_to_swap) + eth_to_wrap
    decimals = await ctx.wrapped_native.decimals()
    symbol = await ctx.wrapped_native.symbol()
    log.info(
        "FEE_COLLECTION_INITIATED",
        network=config.network,
        orders=len(tokens_to_swap),
        expected_proceeds=f"{Decimal(expected).scaleb(-decimals):.2f}",
        symbol=symbol,
        follow_progress=f"{config.explorer}/address/{config.gpv2_settlement}",
    )
