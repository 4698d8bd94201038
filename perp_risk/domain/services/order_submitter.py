"""
ORDER SUBMITTER

Sends a planned order batch to the broker, one order at a time, in the
order received (primary first, protection after). The first failure aborts
the batch so a failed primary never leaves an orphaned protective order.

No local state is mutated; each order is retried verbatim and idempotency
across retries is the broker client's job.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence

from perp_risk.core.config import ExecutionConfig
from perp_risk.core.errors import FatalBrokerError, OrderSubmissionError
from perp_risk.domain.models import OrderRequest, OrderType, SubmissionResult
from perp_risk.domain.services.retry import ErrorClass, retry_async
from perp_risk.utils.time import now_utc

logger = logging.getLogger(__name__)


class BrokerClient(Protocol):
    async def submit_order(self, symbol: str, order: OrderRequest) -> Dict[str, Any]: ...

    def classify_error(self, exc: Optional[BaseException]) -> ErrorClass: ...


class OrderSubmitter:
    def __init__(
        self,
        client: BrokerClient,
        symbol: str,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.symbol = symbol
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    @classmethod
    def from_config(cls, client: BrokerClient, symbol: str, config: ExecutionConfig) -> "OrderSubmitter":
        return cls(
            client,
            symbol,
            max_attempts=config.max_retry_attempts,
            backoff_seconds=config.retry_backoff_seconds,
        )

    async def execute(self, orders: Sequence[OrderRequest]) -> SubmissionResult:
        started = now_utc()
        if not orders:
            return SubmissionResult(orders=(), executed=False, execution_time=started)

        submitted: List[OrderRequest] = []
        for index, order in enumerate(orders, start=1):
            try:
                await self._submit(order)
            except Exception as exc:
                note = (
                    f"order {index}/{len(orders)} ({order.type.value} {order.side.value} "
                    f"{order.amount:.8f}) failed: {exc}"
                )
                logger.error("Batch for %s aborted: %s", self.symbol, note)
                result = SubmissionResult(
                    orders=tuple(submitted),
                    executed=False,
                    execution_time=started,
                    notes=(note,),
                )
                raise OrderSubmissionError(note, result) from exc
            submitted.append(order)

        return SubmissionResult(
            orders=tuple(submitted),
            executed=True,
            execution_time=started,
            notes=(f"submitted {len(submitted)} order(s)",),
        )

    async def _submit(self, order: OrderRequest) -> Dict[str, Any]:
        if order.amount <= 0:
            raise FatalBrokerError(
                f"invalid order amount {order.amount:.8f} type={order.type.value} side={order.side.value}"
            )
        if order.type not in (OrderType.MARKET, OrderType.LIMIT):
            raise FatalBrokerError(f"unsupported order type {order.type}")

        logger.info(
            "Submitting order %s: type=%s side=%s amount=%.8f price=%s reduce_only=%s close_all=%s trigger=%s",
            self.symbol,
            order.type.value,
            order.side.value,
            order.amount,
            order.price,
            order.reduce_only,
            order.close_all,
            order.trigger_type.value if order.trigger_type else None,
        )

        return await retry_async(
            lambda: self.client.submit_order(self.symbol, order),
            self.client.classify_error,
            max_attempts=self.max_attempts,
            backoff_seconds=self.backoff_seconds,
            sleep=self._sleep,
            description=f"{order.type.value} {order.side.value} order on {self.symbol}",
        )
