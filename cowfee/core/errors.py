# /cowfee/core/errors.py
"""Exception taxonomy shared by the executor, the adapters and the sweep."""

from enum import Enum

NONCE_ALREADY_USED_MESSAGE = "nonce has already been used"


class CowFeeError(Exception):
    """Base class for all errors raised by cowfee."""


class ConfigurationError(CowFeeError):
    """Missing env var, invalid network, keeper/key mismatch. Fatal before any transaction work."""


class EstimationError(CowFeeError):
    """Gas estimation reverted. The original error is kept as ``__cause__``."""


class TransactionTimeoutError(CowFeeError):
    def __init__(self, operation_name: str, timeout_ms: int):
        super().__init__(f"{operation_name} timed out after {timeout_ms}ms")
        self.operation_name = operation_name
        self.timeout_ms = timeout_ms


class TransactionFailedError(CowFeeError):
    """A mined receipt reported ``status == 0``. Never retried."""

    def __init__(self, operation_name: str, tx_hash: str):
        super().__init__(f"{operation_name} transaction failed: {tx_hash}")
        self.operation_name = operation_name
        self.tx_hash = tx_hash


class ErrorClassification(str, Enum):
    REPLACED = "replaced"
    NONCE_ALREADY_USED = "nonce_already_used"
    UNKNOWN = "unknown"


class ProviderError(CowFeeError):
    """An error reported by the node, tagged at the adapter boundary."""

    def __init__(
        self,
        message: str,
        classification: ErrorClassification = ErrorClassification.UNKNOWN,
        replacement_hash: str | None = None,
    ):
        super().__init__(message)
        self.classification = classification
        self.replacement_hash = replacement_hash

    @classmethod
    def replaced(cls, tx_hash: str, replacement_hash: str) -> "ProviderError":
        return cls(
            f"transaction {tx_hash} was replaced by {replacement_hash}",
            classification=ErrorClassification.REPLACED,
            replacement_hash=replacement_hash,
        )

    @classmethod
    def nonce_already_used(cls, detail: str = "") -> "ProviderError":
        message = NONCE_ALREADY_USED_MESSAGE if not detail else f"{NONCE_ALREADY_USED_MESSAGE} ({detail})"
        return cls(message, classification=ErrorClassification.NONCE_ALREADY_USED)


class GasStationError(CowFeeError):
    """A gas price API answered with a non-2xx status."""


class OrderBookError(CowFeeError):
    def __init__(self, status: int, body: str):
        super().__init__(f"Order book API returned {status}: {body}")
        self.status = status
        self.body = body


def get_replacement_hash(error: BaseException) -> str | None:
    """Hash of the transaction that replaced ours, if ``error`` reports a replacement."""
    if isinstance(error, ProviderError) and isinstance(error.replacement_hash, str):
        return error.replacement_hash
    return None


def is_nonce_already_used_error(error: BaseException) -> bool:
    if isinstance(error, ProviderError) and error.classification is ErrorClassification.NONCE_ALREADY_USED:
        return True
    return NONCE_ALREADY_USED_MESSAGE in str(error)


class AppDataMismatchError(CowFeeError):
    """The locally built app-data hash differs from the module's ``appData()``."""
