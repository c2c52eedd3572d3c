# /cowfee/core/decorators.py
# Reusable decorators for read-only network calls.
import asyncio
import logging

import aiohttp
from tenacity import before_sleep_log, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from cowfee.core.logger import get_logger

log = get_logger(__name__)

# Never applied to transaction submission or gas price fetching: those must fail fast.
retriable_network_call = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=5),
    before_sleep=before_sleep_log(log, logging.WARNING),
    reraise=True,
)

# HTTP APIs: only transport failures are retried, error responses surface immediately.
retriable_http_call = retry(
    retry=retry_if_exception_type((aiohttp.ClientError, asyncio.TimeoutError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=5),
    before_sleep=before_sleep_log(log, logging.WARNING),
    reraise=True,
)
