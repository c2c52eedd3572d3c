# /cowfee/adapters/contracts.py
import asyncio
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from eth_abi import decode
from web3 import AsyncWeb3, Web3

from cowfee.abis import ERC20_ABI, FEE_MODULE_ABI, MULTICALL3_ABI, MULTICALL3_ADDRESS
from cowfee.core.config import settings
from cowfee.core.decorators import retriable_network_call
from cowfee.core.logger import get_logger

log = get_logger(__name__)

# Fee module read function -> SweepConfig field
MODULE_CONFIG_FIELDS = {
    "receiver": "receiver",
    "wrappedNativeToken": "wrapped_native_token",
    "vaultRelayer": "vault_relayer",
    "settlement": "gpv2_settlement",
    "keeper": "keeper",
    "appData": "app_data",
    "targetSafe": "target_safe",
    "minOut": "min_out",
}

SwapToken = Tuple[str, int, int]


class FeeModule:
    """Read access and calldata encoding for a deployed COWFeeModule."""

    def __init__(self, w3: AsyncWeb3, address: str):
        self.address = Web3.to_checksum_address(address)
        self.contract = w3.eth.contract(address=self.address, abi=FEE_MODULE_ABI)

    async def _read(self, function_name: str) -> Any:
        return await getattr(self.contract.functions, function_name)().call()

    async def read_config(self) -> Dict[str, Any]:
        """All module parameters the sweep depends on, read concurrently."""
        values = await asyncio.gather(*(self._read(name) for name in MODULE_CONFIG_FIELDS))
        config = dict(zip(MODULE_CONFIG_FIELDS.values(), values))
        config["app_data"] = Web3.to_hex(config["app_data"])
        log.info("FEE_MODULE_CONFIG_READ", module=self.address, keeper=config["keeper"], min_out=config["min_out"])
        return config

    async def next_valid_to(self) -> int:
        return await self._read("nextValidTo")

    def encode_drip(self, to_approve: Sequence[str], to_drip: Sequence[SwapToken]) -> str:
        return self.contract.encode_abi(
            "drip",
            args=[
                [Web3.to_checksum_address(token) for token in to_approve],
                [(Web3.to_checksum_address(token), sell_amount, buy_amount) for token, sell_amount, buy_amount in to_drip],
            ],
        )


class Multicall:
    """
    Batched ERC-20 reads through Multicall3 ``tryAggregate``.

    Calls are sent in chunks of ``MULTICALL_SIZE``. A sub-call that reverts or
    returns nothing decodes to 0.
    """

    def __init__(self, w3: AsyncWeb3, chunk_size: int | None = None):
        self.contract = w3.eth.contract(address=Web3.to_checksum_address(MULTICALL3_ADDRESS), abi=MULTICALL3_ABI)
        self.erc20 = w3.eth.contract(abi=ERC20_ABI)
        self.chunk_size = chunk_size or settings.MULTICALL_SIZE

    @retriable_network_call
    async def _try_aggregate(self, calls: List[Tuple[str, bytes]]) -> List[Tuple[bool, bytes]]:
        return await self.contract.functions.tryAggregate(False, calls).call()

    async def try_aggregate(self, calls: List[Tuple[str, bytes]]) -> List[Tuple[bool, bytes]]:
        results: List[Tuple[bool, bytes]] = []
        for start in range(0, len(calls), self.chunk_size):
            results.extend(await self._try_aggregate(calls[start : start + self.chunk_size]))
        return results

    async def _read_uints(self, tokens: Iterable[str], function_name: str, args: list) -> List[int]:
        call_data = Web3.to_bytes(hexstr=self.erc20.encode_abi(function_name, args=args))
        calls = [(Web3.to_checksum_address(token), call_data) for token in tokens]
        if not calls:
            return []

        results = await self.try_aggregate(calls)
        return [decode(["uint256"], data)[0] if success and len(data) >= 32 else 0 for success, data in results]

    async def balances(self, tokens: Sequence[str], owner: str) -> List[int]:
        return await self._read_uints(tokens, "balanceOf", [Web3.to_checksum_address(owner)])

    async def allowances(self, tokens: Sequence[str], owner: str, spender: str) -> List[int]:
        return await self._read_uints(
            tokens, "allowance", [Web3.to_checksum_address(owner), Web3.to_checksum_address(spender)]
        )

    async def decimals(self, tokens: Sequence[str]) -> List[int]:
        return await self._read_uints(tokens, "decimals", [])


class Erc20:
    def __init__(self, w3: AsyncWeb3, address: str):
        self.contract = w3.eth.contract(address=Web3.to_checksum_address(address), abi=ERC20_ABI)

    async def decimals(self) -> int:
        return await self.contract.functions.decimals().call()

    async def symbol(self) -> str:
        return await self.contract.functions.symbol().call()

    async def name(self) -> str:
        return await self.contract.functions.name().call()
