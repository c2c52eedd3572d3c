# /cowfee/sweep/orders.py
import asyncio
from typing import List, Protocol

from pydantic import BaseModel

from cowfee.adapters.orderbook import AppData
from cowfee.core.config import SweepConfig
from cowfee.core.logger import get_logger
from cowfee.sweep.planner import TokenToSwap

log = get_logger(__name__)


class OrderSink(Protocol):
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
    ) -> str: ...


class PostOrdersResult(BaseModel):
    failed: List[str]
    posted: List[str]
    to_actually_swap: List[TokenToSwap]


async def post_orders(
    orderbook: OrderSink,
    app_data: AppData,
    valid_to: int,
    config: SweepConfig,
    to_swap: List[TokenToSwap],
) -> PostOrdersResult:
    """Posts one PRESIGN order per token. A rejected order only removes its own token from the drip."""
    results = await asyncio.gather(
        *(
            orderbook.send_order(
                sell_token=token.address,
                buy_token=config.wrapped_native_token,
                sell_amount=token.balance,
                buy_amount=token.buy_amount,
                valid_to=valid_to,
                app_data=app_data,
                owner=config.gpv2_settlement,
                receiver=config.receiver,
            )
            for token in to_swap
        ),
        return_exceptions=True,
    )

    failed, posted, to_actually_swap = [], [], []
    for token, result in zip(to_swap, results):
        if isinstance(result, BaseException):
            failed.append(f"{token.address}: {result}")
        else:
            posted.append(result)
            to_actually_swap.append(token)

    return PostOrdersResult(failed=failed, posted=posted, to_actually_swap=to_actually_swap)
