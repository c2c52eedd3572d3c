# /cowfee/sweep/planner.py
import asyncio
from typing import Any, Dict, List, Protocol

from pydantic import BaseModel

from cowfee.core.config import SweepConfig
from cowfee.core.logger import get_logger
from cowfee.sweep.token_discovery import TokenInfo

log = get_logger(__name__)

BPS_DENOMINATOR = 10_000


class BalanceReader(Protocol):
    async def balances(self, tokens: List[str], owner: str) -> List[int]: ...

    async def allowances(self, tokens: List[str], owner: str, spender: str) -> List[int]: ...


class QuoteSource(Protocol):
    async def get_quote(self, sell_token: str, buy_token: str, sell_amount: int, from_address: str) -> Dict[str, Any]: ...


class TokenToSwap(BaseModel):
    address: str
    symbol: str = ""
    decimals: int = 0
    balance: int
    allowance: int
    needs_approval: bool
    buy_amount: int


def apply_slippage(buy_amount: int, slippage_bps: int) -> int:
    return buy_amount * (BPS_DENOMINATOR - slippage_bps) // BPS_DENOMINATOR


async def get_tokens_to_swap(
    config: SweepConfig,
    tokens: List[TokenInfo],
    reader: BalanceReader,
    quotes: QuoteSource,
) -> List[TokenToSwap]:
    """
    Settlement-held tokens worth selling.

    A token is kept only when the order book quotes it and the quoted buy
    amount, less slippage, is strictly above the module's ``minOut``. A failed
    quote drops that token alone.
    """
    addresses = [token.address for token in tokens]
    balances, allowances = await asyncio.gather(
        reader.balances(addresses, config.gpv2_settlement),
        reader.allowances(addresses, config.gpv2_settlement, config.vault_relayer),
    )

    results = await asyncio.gather(
        *(
            quotes.get_quote(token.address, config.wrapped_native_token, balances[i], config.gpv2_settlement)
            for i, token in enumerate(tokens)
        ),
        return_exceptions=True,
    )
    log.info("TOKENS_PRE_FILTER", count=len(tokens))

    quoted: List[TokenToSwap] = []
    for i, (token, result) in enumerate(zip(tokens, results)):
        if isinstance(result, BaseException):
            log.debug("QUOTE_FAILED", token=token.address, error=str(result))
            continue
        quoted.append(
            TokenToSwap(
                address=token.address,
                symbol=token.symbol,
                decimals=token.decimals,
                balance=balances[i],
                allowance=allowances[i],
                needs_approval=allowances[i] < balances[i],
                buy_amount=apply_slippage(int(result["buyAmount"]), config.buy_amount_slippage_bps),
            )
        )
    log.info("TOKENS_AFTER_QUOTE_FILTER", count=len(quoted))

    to_swap = [token for token in quoted if token.buy_amount > config.min_out]
    log.info("TOKENS_AFTER_MIN_OUT_FILTER", count=len(to_swap), min_out=config.min_out)
    return to_swap
