# /cowfee/compare.py
# Compares a fee module deployment with the one registered on the fee withdrawal multisig.
import argparse
import asyncio
from typing import Any, Dict, List, Tuple

import aiohttp
from web3 import AsyncWeb3, Web3

from cowfee.adapters.chain import validated_web3
from cowfee.adapters.contracts import Erc20, FeeModule
from cowfee.core.config import NETWORKS, SUPPORTED_NETWORKS, settings
from cowfee.core.decorators import retriable_http_call
from cowfee.core.logger import bind_run_context, get_logger
from cowfee.sweep.runner import WRAPPED_NATIVE_DECIMALS, format_units

log = get_logger("cowfee.compare")

SAFE_CLIENT_API_URL = "https://safe-client.safe.global/v1"
FEE_MODULE_CONTRACT_NAME = "COWFeeModule"
# Same address on every supported network
FEE_WITHDRAWAL_MULTISIG = "0x423cEc87f19F0778f549846e0801ee267a917935"

ModuleParams = Dict[str, Any]
ParamDifference = Tuple[str, Any, Any]


def checksum_address(value: str) -> str:
    try:
        return Web3.to_checksum_address(value)
    except (ValueError, TypeError):
        raise argparse.ArgumentTypeError(f"invalid address: {value}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cowfee-compare", description="Compare a COWFeeModule deployment with the module currently in use"
    )
    parser.add_argument("--network", choices=SUPPORTED_NETWORKS, default="mainnet")
    parser.add_argument("--rpc-url")
    parser.add_argument(
        "module", type=checksum_address, help="the address of the module to compare with the currently registered one"
    )
    return parser


async def get_module_params(w3: AsyncWeb3, address: str) -> ModuleParams:
    """Module read functions with ``min_out`` formatted in ether."""
    params = await FeeModule(w3, address).read_config()
    params["min_out"] = format_units(params["min_out"], WRAPPED_NATIVE_DECIMALS)
    return params


@retriable_http_call
async def get_registered_module(chain_id: int, session_factory=aiohttp.ClientSession) -> str | None:
    """
    The fee module enabled on the fee withdrawal multisig, from the Safe client API.

    Returns None, after logging why, unless exactly one module named
    ``COWFeeModule`` is registered.
    """
    url = f"{SAFE_CLIENT_API_URL}/chains/{chain_id}/safes/{FEE_WITHDRAWAL_MULTISIG}"
    timeout = aiohttp.ClientTimeout(total=settings.HTTP_TIMEOUT_SECONDS)
    async with session_factory() as session:
        async with session.get(url, timeout=timeout) as resp:
            resp.raise_for_status()
            data = await resp.json()

    fee_modules = [module for module in data.get("modules") or [] if module.get("name") == FEE_MODULE_CONTRACT_NAME]
    if len(fee_modules) != 1:
        log.error(
            "REGISTERED_FEE_MODULE_NOT_UNIQUE_SKIPPING_COMPARISON",
            multisig=FEE_WITHDRAWAL_MULTISIG,
            found="no" if not fee_modules else "more than one",
        )
        return None
    return Web3.to_checksum_address(fee_modules[0]["value"])


def diff_module_params(new: ModuleParams, current: ModuleParams) -> List[ParamDifference]:
    return [(key, new.get(key), value) for key, value in current.items() if new.get(key) != value]


async def compare(
    new_params: ModuleParams, chain_id: int, w3: AsyncWeb3, session_factory=aiohttp.ClientSession
) -> List[ParamDifference] | None:
    """Logs every parameter that differs from the registered module. None when there is nothing to compare with."""
    registered = await get_registered_module(chain_id, session_factory)
    if registered is None:
        return None

    differences = diff_module_params(new_params, await get_module_params(w3, registered))
    for key, new_value, current_value in differences:
        log.info("MODULE_PARAMETER_DIFFERS", parameter=key, new_value=new_value, value_currently_in_use=current_value)
    if not differences:
        log.info("MODULE_PARAMETERS_MATCH_REGISTERED_MODULE", registered_module=registered)
    return differences


async def main(argv: List[str] | None = None) -> List[ParamDifference] | None:
    args = build_parser().parse_args(argv)
    bind_run_context(args.network, args.module)

    w3 = await validated_web3(args.network, args.rpc_url)
    params = await get_module_params(w3, args.module)
    log.info("MODULE_PARAMETERS", **params)

    token = Erc20(w3, params["wrapped_native_token"])
    name, symbol = await asyncio.gather(token.name(), token.symbol())
    log.info("WRAPPED_NATIVE_TOKEN", name=name, min_out=f"{params['min_out']} {symbol}")

    return await compare(params, NETWORKS[args.network].chain_id, w3)


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
