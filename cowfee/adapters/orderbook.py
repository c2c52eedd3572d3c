# /cowfee/adapters/orderbook.py
# Thin async client for the CoW Protocol order book API.
import asyncio
import json
import time
from collections import deque
from typing import Any, Awaitable, Callable, Dict

import aiohttp
from pydantic import BaseModel, ConfigDict
from web3 import Web3

from cowfee.core.config import NETWORKS, settings
from cowfee.core.decorators import retriable_http_call
from cowfee.core.errors import ConfigurationError, OrderBookError
from cowfee.core.logger import ORDERS_POSTED, get_logger

log = get_logger(__name__)

ORDERBOOK_BASE_URL = "https://api.cow.fi"

APP_DATA_DOC = {
    "appCode": "CoWFeeModule",
    "environment": "prod",
    "metadata": {},
    "version": "1.1.0",
}

SessionFactory = Callable[[], aiohttp.ClientSession]
Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class AppData(BaseModel):
    content: str
    hash: str

    model_config = ConfigDict(frozen=True)


def build_app_data(doc: Dict[str, Any] | None = None) -> AppData:
    """Deterministic JSON content of the app-data document and its keccak256 hash."""
    content = json.dumps(doc if doc is not None else APP_DATA_DOC, sort_keys=True, separators=(",", ":"))
    return AppData(content=content, hash=Web3.to_hex(Web3.keccak(text=content)))


def orderbook_url(chain_id: int) -> str:
    for details in NETWORKS.values():
        if details.chain_id == chain_id:
            return f"{ORDERBOOK_BASE_URL}/{details.orderbook_path}/api/v1"
    raise ConfigurationError(f"No order book API for chain {chain_id}")


class RequestRateLimiter:
    """
    Sliding window limiter: at most ``max_requests`` starts in any ``period`` seconds.

    Callers over the limit wait for the oldest start to leave the window.
    """

    def __init__(self, max_requests: int, period: float = 1.0, clock: Clock = time.monotonic, sleep: Sleep = asyncio.sleep):
        self.max_requests = max_requests
        self.period = period
        self._clock = clock
        self._sleep = sleep
        self._starts: deque = deque()
        self._lock = asyncio.Lock()

    async def acquire(self):
        async with self._lock:
            while True:
                now = self._clock()
                while self._starts and now - self._starts[0] >= self.period:
                    self._starts.popleft()
                if len(self._starts) < self.max_requests:
                    self._starts.append(now)
                    return
                wait = self._starts[0] + self.period - now
                log.debug("ORDERBOOK_RATE_LIMITED", wait_seconds=round(wait, 3))
                await self._sleep(wait)


class OrderBookApi:
    """
    Quotes and PRESIGN order submission.

    Requests share one aiohttp session. At most ``ORDERBOOK_REQUESTS_PER_SECOND``
    requests start per second and at most ``ORDERBOOK_MAX_CONCURRENCY`` are in
    flight at once. Quotes are retried on transport errors, order posting is not.
    """

    def __init__(
        self,
        chain_id: int,
        session_factory: SessionFactory = aiohttp.ClientSession,
        base_url: str | None = None,
        rate_limiter: RequestRateLimiter | None = None,
    ):
        self.base_url = base_url or orderbook_url(chain_id)
        self._session_factory = session_factory
        self._session: aiohttp.ClientSession | None = None
        self._semaphore = asyncio.Semaphore(settings.ORDERBOOK_MAX_CONCURRENCY)
        self._rate_limiter = rate_limiter or RequestRateLimiter(settings.ORDERBOOK_REQUESTS_PER_SECOND)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = self._session_factory()
        return self._session

    async def close(self):
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "OrderBookApi":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def _post(self, path: str, body: Dict[str, Any]) -> Any:
        timeout = aiohttp.ClientTimeout(total=settings.HTTP_TIMEOUT_SECONDS)
        async with self._semaphore:
            await self._rate_limiter.acquire()
            async with self._get_session().post(f"{self.base_url}{path}", json=body, timeout=timeout) as resp:
                if not 200 <= resp.status < 300:
                    raise OrderBookError(resp.status, await resp.text())
                return await resp.json()

    @retriable_http_call
    async def get_quote(self, sell_token: str, buy_token: str, sell_amount: int, from_address: str) -> Dict[str, Any]:
        """Sell-side quote for the full ``sell_amount``. Returns the ``quote`` object of the response."""
        response = await self._post(
            "/quote",
            {
                "sellToken": sell_token,
                "buyToken": buy_token,
                "from": from_address,
                "kind": "sell",
                "sellAmountBeforeFee": str(sell_amount),
            },
        )
        return response["quote"]

    async def send_order(
        self,
        sell_token: str,
        buy_token: str,
        sell_amount: int,
        buy_amount: int,
        valid_to: int,
        app_data: AppData,
        owner: str,
        receiver: str,
    ) -> str:
        """Posts a partially fillable PRESIGN sell order and returns its uid."""
        order = {
            "sellToken": sell_token,
            "buyToken": buy_token,
            "receiver": receiver,
            "sellAmount": str(sell_amount),
            "buyAmount": str(buy_amount),
            "validTo": valid_to,
            "appData": app_data.content,
            "appDataHash": app_data.hash,
            "feeAmount": "0",
            "kind": "sell",
            "partiallyFillable": True,
            "sellTokenBalance": "erc20",
            "buyTokenBalance": "erc20",
            "signingScheme": "presign",
            "signature": "0x",
            "from": owner,
        }
        try:
            uid = await self._post("/orders", order)
        except Exception:
            ORDERS_POSTED.labels("failed").inc()
            raise

        ORDERS_POSTED.labels("posted").inc()
        log.info("ORDER_POSTED", uid=uid, sell_token=sell_token, sell_amount=str(sell_amount))
        return uid
