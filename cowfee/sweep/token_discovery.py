# /cowfee/sweep/token_discovery.py
# Candidate tokens held by the settlement contract.
from typing import Any, Dict, Iterable, List

import aiohttp
from pydantic import BaseModel
from web3 import AsyncWeb3, Web3

from cowfee.abis import SETTLEMENT_ABI
from cowfee.adapters.contracts import Multicall
from cowfee.core.config import SweepConfig, settings
from cowfee.core.decorators import retriable_http_call
from cowfee.core.logger import get_logger

log = get_logger(__name__)

NATIVE_TOKEN_SENTINEL = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"
ETHPLORER_API_URL = "https://api.ethplorer.io"
ETHPLORER_CHAIN_ID = 1


class TokenInfo(BaseModel):
    address: str
    symbol: str = ""
    decimals: int = 0


def unique_trade_tokens(trades: Iterable[Dict[str, Any]]) -> List[str]:
    """Sell and buy tokens of ``Trade`` events in first-seen order, without the native token sentinel."""
    seen: Dict[str, str] = {}
    for trade in trades:
        args = trade["args"]
        for token in (args["sellToken"], args["buyToken"]):
            seen.setdefault(token.lower(), token)
    seen.pop(NATIVE_TOKEN_SENTINEL.lower(), None)
    return list(seen.values())


async def get_token_infos_from_chain(w3: AsyncWeb3, config: SweepConfig, multicall: Multicall | None = None) -> List[TokenInfo]:
    settlement = w3.eth.contract(address=Web3.to_checksum_address(config.gpv2_settlement), abi=SETTLEMENT_ABI)
    current_block = await w3.eth.block_number
    from_block = max(current_block - config.lookback_range, 0)

    log.info("QUERYING_TRADES", from_block=from_block, to_block=current_block)
    trades = await settlement.events.Trade.get_logs(from_block=from_block, to_block=current_block)
    tokens = unique_trade_tokens(trades)
    log.info("TRADE_TOKENS_FOUND", trades=len(trades), unique_tokens=len(tokens))

    decimals = await (multicall or Multicall(w3)).decimals(tokens)
    return [TokenInfo(address=token, decimals=decimals[i]) for i, token in enumerate(tokens)]


def parse_ethplorer_tokens(data: Dict[str, Any]) -> List[TokenInfo]:
    tokens = []
    for entry in data.get("tokens", []):
        info = entry["tokenInfo"]
        tokens.append(
            TokenInfo(
                address=Web3.to_checksum_address(info["address"]),
                symbol=info.get("symbol") or "",
                decimals=int(info.get("decimals") or 0),
            )
        )
    return tokens


@retriable_http_call
async def get_token_infos_from_ethplorer(
    address: str,
    session_factory=aiohttp.ClientSession,
) -> List[TokenInfo]:
    url = f"{ETHPLORER_API_URL}/getAddressInfo/{address}"
    timeout = aiohttp.ClientTimeout(total=settings.HTTP_TIMEOUT_SECONDS)
    async with session_factory() as session:
        async with session.get(url, params={"apiKey": settings.ETHPLORER_API_KEY}, timeout=timeout) as resp:
            resp.raise_for_status()
            data = await resp.json()

    tokens = parse_ethplorer_tokens(data)
    log.info("EXPLORER_TOKENS_FOUND", address=address, tokens=len(tokens))
    return tokens


async def get_token_list(
    w3: AsyncWeb3,
    config: SweepConfig,
    multicall: Multicall | None = None,
    session_factory=aiohttp.ClientSession,
) -> List[TokenInfo]:
    if config.token_list_strategy == "explorer":
        if config.chain_id == ETHPLORER_CHAIN_ID:
            return await get_token_infos_from_ethplorer(config.gpv2_settlement, session_factory)
        log.warning("EXPLORER_STRATEGY_UNAVAILABLE_USING_CHAIN", network=config.network)

    return await get_token_infos_from_chain(w3, config, multicall)
