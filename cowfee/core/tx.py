# /cowfee/core/tx.py
# Transaction execution with gas escalation, replacement and nonce-reuse handling.
import asyncio
from typing import Any, Awaitable, Dict, Protocol, TypeVar

from pydantic import BaseModel, ConfigDict

from cowfee.core.config import settings
from cowfee.core.errors import (
    TransactionFailedError,
    TransactionTimeoutError,
    get_replacement_hash,
    is_nonce_already_used_error,
)
from cowfee.core.gas import (
    MAX_GAS_INCREASE,
    GasPriceData,
    apply_gas_price_to_tx,
    compute_ceiling,
    next_gas_price,
)
from cowfee.core.gas_estimator import GasEstimator
from cowfee.core.logger import GAS_ESCALATIONS, TX_MINED, TX_SUBMITTED, get_logger

log = get_logger(__name__)

WAIT_TIME_FOR_MAX_GAS_PRICE_MS = 3600 * 1000  # 1 hour
TIMEOUT_BEFORE_INCREASING_GAS_PRICE_MS = 5 * 60 * 1000  # 5 min

T = TypeVar("T")


class TransactionReceipt(BaseModel):
    transaction_hash: str
    status: int
    block_number: int | None = None
    gas_used: int | None = None

    model_config = ConfigDict(frozen=True)


class PendingTransaction(Protocol):
    hash: str

    async def wait(self) -> TransactionReceipt: ...


class Signer(Protocol):
    async def send_transaction(self, tx: Dict[str, Any]) -> PendingTransaction: ...

    async def wait_for_transaction(self, tx_hash: str) -> TransactionReceipt: ...


class ExecutionOptions(BaseModel):
    max_gas_increase_percentage: int = MAX_GAS_INCREASE
    wait_time_for_max_gas_price_ms: int = WAIT_TIME_FOR_MAX_GAS_PRICE_MS
    timeout_before_increasing_gas_price_ms: int = TIMEOUT_BEFORE_INCREASING_GAS_PRICE_MS
    # Replaces the fetched seed price when set
    gas_price_override: GasPriceData | None = None

    @classmethod
    def from_settings(cls, gas_price_override: GasPriceData | None = None) -> "ExecutionOptions":
        return cls(
            max_gas_increase_percentage=settings.MAX_GAS_INCREASE_PERCENTAGE,
            wait_time_for_max_gas_price_ms=settings.WAIT_TIME_FOR_MAX_GAS_PRICE_MS,
            timeout_before_increasing_gas_price_ms=settings.TIMEOUT_BEFORE_INCREASING_GAS_PRICE_MS,
            gas_price_override=gas_price_override,
        )


class EscalationState(BaseModel):
    current_gas_price: GasPriceData
    ceiling_gas_price: int
    attempts_exhausted: bool = False

    model_config = ConfigDict(frozen=True)


class ExecutionAttempt(BaseModel):
    tx_hash: str
    gas_price: GasPriceData

    model_config = ConfigDict(frozen=True)


async def with_timeout(awaitable: Awaitable[T], timeout_ms: int, operation_name: str) -> T:
    """Awaits ``awaitable``, raising TransactionTimeoutError if it takes longer than ``timeout_ms``."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_ms / 1000)
    except asyncio.TimeoutError:
        raise TransactionTimeoutError(operation_name, timeout_ms) from None


def raise_if_failed(receipt: TransactionReceipt, operation_name: str, tx_hash: str | None = None):
    if receipt.status == 0:
        raise TransactionFailedError(operation_name, tx_hash or receipt.transaction_hash)


class TransactionExecutor:
    """
    Submits a transaction and keeps it moving until it lands.

    Each inclusion timeout submits a new transaction with the same nonce and a
    gas price 10% higher, up to a ceiling fixed from the seed price. Earlier
    submissions are left pending: whichever one the network mines wins, and the
    replacement and nonce-reuse checks reconcile the outcome afterwards.
    """

    def __init__(self, signer: Signer, gas_estimator: GasEstimator):
        self.signer = signer
        self.gas_estimator = gas_estimator

    async def execute(
        self,
        tx_request: Dict[str, Any],
        operation_name: str,
        options: ExecutionOptions | None = None,
    ) -> str | None:
        """
        Args:
            tx_request: Base request (from, to, data, value, nonce, gas). Gas price fields are overwritten.
            operation_name: Label used in logs and error messages.
            options: Escalation bounds and timeouts.

        Returns:
            The hash of the mined transaction, or None if a previous attempt
            already used the nonce.
        """
        options = options or ExecutionOptions()

        seed = options.gas_price_override or await self.gas_estimator.fetch()
        state = EscalationState(
            current_gas_price=seed,
            ceiling_gas_price=compute_ceiling(seed, options.max_gas_increase_percentage),
        )
        tx = apply_gas_price_to_tx(tx_request, state.current_gas_price)
        pending: PendingTransaction | None = None

        while True:
            try:
                pending = await self.signer.send_transaction(tx)
                attempt = ExecutionAttempt(tx_hash=pending.hash, gas_price=state.current_gas_price)
                TX_SUBMITTED.labels(operation_name).inc()
                log.info("TRANSACTION_SUBMITTED", operation=operation_name, tx_hash=attempt.tx_hash, gas_price=str(attempt.gas_price))

                receipt = await self._wait(pending, options.timeout_before_increasing_gas_price_ms, operation_name)
                return receipt.transaction_hash
            except Exception as error:
                replaced_hash = await self._resolve_replacement(error, operation_name)
                if replaced_hash:
                    return replaced_hash

                # A previous submission was mined before this one was sent or included
                if is_nonce_already_used_error(error):
                    log.warning("NONCE_ALREADY_USED_PREVIOUS_TRANSACTION_MINED", operation=operation_name)
                    TX_MINED.labels(operation_name, "nonce_stale").inc()
                    return None

                if not isinstance(error, TransactionTimeoutError):
                    raise

            updated, at_ceiling = next_gas_price(state.current_gas_price, state.ceiling_gas_price)
            state = state.model_copy(update={"current_gas_price": updated, "attempts_exhausted": at_ceiling})
            tx = apply_gas_price_to_tx(tx_request, state.current_gas_price)
            GAS_ESCALATIONS.labels(operation_name).inc()

            if state.attempts_exhausted:
                return await self._wait_at_max_gas_price(pending, state, options, operation_name)

            log.info("RETRYING_WITH_INCREASED_GAS_PRICE", operation=operation_name, gas_price=str(state.current_gas_price))

    async def _wait(self, pending: PendingTransaction, timeout_ms: int, operation_name: str) -> TransactionReceipt:
        log.info("WAITING_FOR_TRANSACTION", operation=operation_name, tx_hash=pending.hash, timeout_ms=timeout_ms)
        receipt = await with_timeout(pending.wait(), timeout_ms, operation_name)

        if receipt.status == 0:
            TX_MINED.labels(operation_name, "failed").inc()
        raise_if_failed(receipt, operation_name)

        TX_MINED.labels(operation_name, "success").inc()
        log.info("TRANSACTION_MINED", operation=operation_name, tx_hash=receipt.transaction_hash)
        return receipt

    async def _resolve_replacement(self, error: BaseException, operation_name: str) -> str | None:
        replacement_hash = get_replacement_hash(error)
        if replacement_hash is None:
            return None

        log.warning("TRANSACTION_REPLACED", operation=operation_name, replacement_hash=replacement_hash)
        receipt = await self.signer.wait_for_transaction(replacement_hash)
        if receipt.status == 0:
            TX_MINED.labels(operation_name, "failed").inc()
        raise_if_failed(receipt, operation_name, replacement_hash)

        TX_MINED.labels(operation_name, "replaced").inc()
        log.info("TRANSACTION_MINED", operation=operation_name, tx_hash=replacement_hash)
        return replacement_hash

    async def _wait_at_max_gas_price(
        self,
        pending: PendingTransaction,
        state: EscalationState,
        options: ExecutionOptions,
        operation_name: str,
    ) -> str:
        log.warning(
            "MAX_GAS_PRICE_REACHED_WAITING",
            operation=operation_name,
            tx_hash=pending.hash,
            gas_price=str(state.current_gas_price),
            wait_seconds=options.wait_time_for_max_gas_price_ms / 1000,
        )
        try:
            receipt = await self._wait(pending, options.wait_time_for_max_gas_price_ms, f"Final {operation_name}")
            return receipt.transaction_hash
        except Exception as final_error:
            replaced_hash = await self._resolve_replacement(final_error, operation_name)
            if replaced_hash:
                return replaced_hash
            log.error("TRANSACTION_FAILED_AFTER_MAX_WAIT", operation=operation_name, error=str(final_error))
            raise
