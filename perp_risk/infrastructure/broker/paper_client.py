"""Dry-run broker: acknowledges every order without touching an exchange."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from perp_risk.domain.models import OrderRequest
from perp_risk.domain.services.retry import ErrorClass, classify_broker_error
from perp_risk.infrastructure.broker.http_client import order_to_wire
from perp_risk.utils.time import now_utc

logger = logging.getLogger(__name__)


class PaperBrokerClient:
    def __init__(self):
        self.orders: List[Dict[str, Any]] = []

    def classify_error(self, exc: Optional[BaseException]) -> ErrorClass:
        return classify_broker_error(exc)

    async def submit_order(self, symbol: str, order: OrderRequest) -> Dict[str, Any]:
        ack = {
            "id": f"paper-{uuid.uuid4().hex[:12]}",
            "status": "open" if order.is_trigger else "filled",
            "timestamp": now_utc().isoformat(),
            **order_to_wire(symbol, order),
        }
        self.orders.append(ack)
        logger.info(
            "[paper] %s %s %s amount=%.8f price=%s params=%s",
            symbol,
            order.type.value,
            order.side.value,
            order.amount,
            order.price,
            ack["params"],
        )
        return ack
