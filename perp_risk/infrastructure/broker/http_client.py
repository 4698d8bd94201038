"""
HTTP Broker Client
Submits orders to a REST order endpoint and classifies failures for retry.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from perp_risk.core.errors import FatalBrokerError, TransientBrokerError
from perp_risk.domain.models import OrderRequest
from perp_risk.domain.services.retry import ErrorClass, classify_broker_error
from perp_risk.utils.price_format import format_price

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


def order_to_wire(symbol: str, order: OrderRequest) -> Dict[str, Any]:
    """
    Broker wire payload. The only place OrderParameters becomes a dict.

    Prices go out as exact decimal strings, the same form as the params.
    """
    payload: Dict[str, Any] = {
        "symbol": symbol,
        "type": order.type.value,
        "side": order.side.value,
        "amount": order.amount,
        "params": order.wire_params(),
    }
    if order.price > 0:
        payload["price"] = format_price(order.price)
    if order.is_trigger and order.trigger_type is not None:
        payload["trigger"] = {
            "type": order.trigger_type.value,
            "price": format_price(order.trigger_price),
        }
    return payload


def _excerpt(text: str, limit: int = 300) -> str:
    compact = " ".join(text.split())
    if len(compact) <= limit:
        return compact
    return compact[:limit] + "..."


class HttpBrokerClient:
    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not base_url:
            raise ValueError("broker base_url is required")
        self.base_url = base_url.rstrip("/")
        self.api_key = (api_key or "").strip() or None
        self.api_secret = (api_secret or "").strip() or None
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Api-Key"] = self.api_key
        if self.api_secret:
            headers["Api-Secret"] = self.api_secret
        return headers

    def classify_error(self, exc: Optional[BaseException]) -> ErrorClass:
        return classify_broker_error(exc)

    async def submit_order(self, symbol: str, order: OrderRequest) -> Dict[str, Any]:
        payload = order_to_wire(symbol, order)
        url = f"{self.base_url}/orders"
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=self._headers())
        except httpx.TimeoutException as exc:
            raise TransientBrokerError(f"broker request timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise TransientBrokerError(f"broker unreachable: {exc}") from exc

        status = response.status_code
        if status in RETRYABLE_STATUS_CODES:
            raise TransientBrokerError(
                f"broker unavailable (status={status}, body={_excerpt(response.text)!r})",
                status_code=status,
            )
        if status >= 400:
            raise FatalBrokerError(
                f"broker rejected order (status={status}, body={_excerpt(response.text)!r})",
                status_code=status,
            )

        try:
            body = response.json()
        except ValueError:
            body = {"raw": response.text}
        logger.debug("Broker accepted %s %s order for %s: %s", order.type.value, order.side.value, symbol, body)
        return body if isinstance(body, dict) else {"data": body}
