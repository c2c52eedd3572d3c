# /cowfee/sweep/drip.py
# Builds and submits the module's drip(approveTokens, swapTokens) transaction.
from typing import Any, Dict, Protocol, Sequence

from cowfee.adapters.contracts import SwapToken
from cowfee.core.config import SweepConfig
from cowfee.core.errors import EstimationError
from cowfee.core.gas import EIP1559GasPrice, GasPriceData
from cowfee.core.logger import DRIPS_EXECUTED, get_logger
from cowfee.core.tx import ExecutionOptions, TransactionExecutor
from cowfee.sweep.prompt import CONFIRM_DRIP_MESSAGE, AutoConfirmPrompt, ConfirmationPrompt

log = get_logger(__name__)


class DripClient(Protocol):
    address: str

    async def get_transaction_count(self) -> int: ...

    async def estimate_gas(self, tx: Dict[str, Any]) -> int: ...


class DripEncoder(Protocol):
    address: str

    def encode_drip(self, to_approve: Sequence[str], to_drip: Sequence[SwapToken]) -> str: ...


async def resolve_gas_price_override(config: SweepConfig, provider) -> GasPriceData | None:
    """
    EIP-1559 seed price from the ``--max-fee-per-gas`` / ``--max-priority-fee-per-gas`` flags.

    A field that was not given is taken from the node's fee data.
    """
    if config.max_fee_per_gas is None and config.max_priority_fee_per_gas is None:
        return None

    max_fee, priority_fee = config.max_fee_per_gas, config.max_priority_fee_per_gas
    if max_fee is None or priority_fee is None:
        fee_data = await provider.get_fee_data()
        max_fee = max_fee if max_fee is not None else fee_data.max_fee_per_gas
        priority_fee = priority_fee if priority_fee is not None else fee_data.max_priority_fee_per_gas
    if max_fee is None or priority_fee is None:
        log.warning("GAS_PRICE_OVERRIDE_IGNORED_NO_EIP1559_FEE_DATA")
        return None

    return EIP1559GasPrice(max_fee_per_gas=max_fee, max_priority_fee_per_gas=min(priority_fee, max_fee))


async def build_drip_tx(
    client: DripClient,
    module: DripEncoder,
    to_approve: Sequence[str],
    to_drip: Sequence[SwapToken],
) -> Dict[str, Any]:
    # Confirmed count from the node, never a locally tracked nonce
    nonce = await client.get_transaction_count()

    tx = {
        "from": client.address,
        "to": module.address,
        "data": module.encode_drip(to_approve, to_drip),
        "value": 0,
        "nonce": nonce,
    }
    log.info(
        "DRIP_TRANSACTION_PARAMETERS",
        sender=tx["from"],
        to=tx["to"],
        nonce=nonce,
        approvals=len(to_approve),
        swaps=len(to_drip),
    )

    try:
        gas = await client.estimate_gas(tx)
    except Exception as e:
        log.error("DRIP_GAS_ESTIMATION_FAILED_REVIEW_TRANSACTION_PARAMETERS", error=str(e))
        raise EstimationError("Error estimating gas") from e

    log.info("DRIP_GAS_ESTIMATED", gas=gas)
    return {**tx, "gas": gas}


async def drip(
    client: DripClient,
    module: DripEncoder,
    executor: TransactionExecutor,
    to_approve: Sequence[str],
    to_drip: Sequence[SwapToken],
    prompt: ConfirmationPrompt | None = None,
    options: ExecutionOptions | None = None,
) -> str | None:
    """
    Returns the mined drip hash, or None when the operator declined or a
    previous attempt already used the nonce.
    """
    tx = await build_drip_tx(client, module, to_approve, to_drip)

    if not await (prompt or AutoConfirmPrompt()).confirm(CONFIRM_DRIP_MESSAGE):
        log.info("DRIP_CANCELLED_BY_OPERATOR")
        return None

    DRIPS_EXECUTED.inc()
    return await executor.execute(tx, "Drip", options)
