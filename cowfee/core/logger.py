# /cowfee/core/logger.py
import logging

import sentry_sdk
import structlog
from prometheus_client import Counter
from structlog.contextvars import bind_contextvars

from cowfee.core.config import settings

# --- Prometheus Metrics ---
TX_SUBMITTED = Counter("cowfee_transactions_submitted_total", "Transactions submitted to the node", ["operation"])
TX_MINED = Counter("cowfee_transactions_mined_total", "Transactions resolved on-chain", ["operation", "outcome"])
GAS_ESCALATIONS = Counter("cowfee_gas_escalations_total", "Gas price increases after an inclusion timeout", ["operation"])
ORDERS_POSTED = Counter("cowfee_orders_posted_total", "Orders sent to the order book", ["outcome"])
DRIPS_EXECUTED = Counter("cowfee_drips_executed_total", "Drip transactions handed to the executor")


def configure_logging():
    if settings.SENTRY_DSN:
        sentry_sdk.init(dsn=settings.SENTRY_DSN.get_secret_value(), traces_sample_rate=1.0)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(settings.LOG_LEVEL)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str):
    return structlog.get_logger(name)


def bind_run_context(network: str, module: str):
    bind_contextvars(network=network, module=module)


configure_logging()
log = get_logger("cowfee")
