# /cowfee/cli.py
# Command line entry point: cowfee --module <address> [options]
import argparse
import asyncio
from decimal import Decimal
from typing import List, Tuple

from prometheus_client import start_http_server
from web3 import Web3

from cowfee.adapters.chain import ChainClient, validated_client
from cowfee.adapters.contracts import Erc20, FeeModule, Multicall
from cowfee.adapters.gas_station import get_gas_price_fetcher_for_network
from cowfee.adapters.orderbook import OrderBookApi
from cowfee.core.config import NETWORKS, SUPPORTED_NETWORKS, SweepConfig, settings
from cowfee.core.config_validator import validate as validate_config
from cowfee.core.errors import ConfigurationError
from cowfee.core.gas_estimator import GasEstimator
from cowfee.core.logger import bind_run_context, get_logger
from cowfee.core.tx import ExecutionOptions, TransactionExecutor
from cowfee.sweep.drip import resolve_gas_price_override
from cowfee.sweep.prompt import AutoConfirmPrompt, StdinConfirmationPrompt
from cowfee.sweep.runner import SweepContext, drip_it_all
from cowfee.sweep.token_discovery import get_token_list

log = get_logger("cowfee.cli")


def gwei(value: str) -> int:
    try:
        return Web3.to_wei(Decimal(value), "gwei")
    except ArithmeticError:
        raise argparse.ArgumentTypeError(f"invalid gwei amount: {value}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cowfee", description="Sweep CoW Protocol fees held by the settlement contract")
    parser.add_argument("--network", choices=SUPPORTED_NETWORKS, default="mainnet")
    parser.add_argument("--rpc-url")
    parser.add_argument("--max-fee-per-gas", type=gwei, metavar="GWEI", help="Override maxFeePerGas transaction parameter")
    parser.add_argument(
        "--max-priority-fee-per-gas", type=gwei, metavar="GWEI", help="Override maxPriorityFeePerGas transaction parameter"
    )
    parser.add_argument("--max-orders", type=int, default=250, help="Maximum number of orders to place in single drip call")
    parser.add_argument("--buy-amount-slippage-bps", type=int, default=100, help="Tolerance to add to the quoted buyAmount")
    parser.add_argument("--module", required=True, help="COWFeeModule address")
    parser.add_argument(
        "--token-list-strategy",
        choices=["explorer", "chain"],
        default="explorer",
        help="Strategy to use to get the list of tokens to swap on",
    )
    parser.add_argument("--lookback-range", type=int, default=1000, help="Last <n> number of blocks to check the Trade events for")
    parser.add_argument("-c", "--confirm-drip", action="store_true", help="Ask for confirmation before dripping")
    return parser


async def read_config(args: argparse.Namespace) -> Tuple[SweepConfig, ChainClient, FeeModule]:
    private_key = validate_config()
    client = await validated_client(args.network, args.rpc_url, private_key)

    fee_module = FeeModule(client.w3, args.module)
    module_config = await fee_module.read_config()
    if client.address.lower() != module_config["keeper"].lower():
        raise ConfigurationError(
            f"The provided private key belongs to {client.address}, which doesn't match the keeper ({module_config['keeper']})"
        )

    config = SweepConfig(
        chain_id=client.chain_id,
        network=args.network,
        rpc_url=args.rpc_url or NETWORKS[args.network].rpc_url,
        module=fee_module.address,
        max_orders=args.max_orders,
        buy_amount_slippage_bps=args.buy_amount_slippage_bps,
        token_list_strategy=args.token_list_strategy,
        lookback_range=args.lookback_range,
        confirm_drip=args.confirm_drip,
        max_fee_per_gas=args.max_fee_per_gas,
        max_priority_fee_per_gas=args.max_priority_fee_per_gas,
        **module_config,
    )
    return config, client, fee_module


async def main(argv: List[str] | None = None):
    args = build_parser().parse_args(argv)
    bind_run_context(args.network, args.module)
    if settings.METRICS_PORT:
        start_http_server(settings.METRICS_PORT)

    config, client, fee_module = await read_config(args)
    log.info("SWEEP_STARTING", chain_id=config.chain_id, keeper=config.keeper, settlement=config.gpv2_settlement)

    executor = TransactionExecutor(client, GasEstimator(client, get_gas_price_fetcher_for_network(config.chain_id)))
    options = ExecutionOptions.from_settings(await resolve_gas_price_override(config, client))
    multicall = Multicall(client.w3)

    async with OrderBookApi(config.chain_id) as orderbook:
        ctx = SweepContext(
            config,
            client,
            fee_module,
            reader=multicall,
            orderbook=orderbook,
            executor=executor,
            token_source=lambda: get_token_list(client.w3, config, multicall),
            wrapped_native=Erc20(client.w3, config.wrapped_native_token),
            prompt=StdinConfirmationPrompt() if config.confirm_drip else AutoConfirmPrompt(),
            options=options,
        )
        await drip_it_all(ctx)


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
