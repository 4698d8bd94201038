"""
MONITOR SERVICE

Fire-and-forget audit trail for risk evaluations, execution plans and
submission results. Failures are logged and never propagate.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from perp_risk.domain.models import EvaluationResult, ExecutionPlan, OrderRequest, SubmissionResult
from perp_risk.domain.serialization import to_payload
from perp_risk.infrastructure.db.repositories.monitor_event_repository import MonitorEventRepository

_logger = logging.getLogger(__name__)

EVENT_RISK_EVALUATION = "risk_evaluation"
EVENT_EXECUTION_PLAN = "execution_plan"
EVENT_EXECUTION = "execution"
EVENT_ERROR = "error"


class MonitorService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def record_risk(self, symbol: str, result: EvaluationResult) -> None:
        await self._record(EVENT_RISK_EVALUATION, symbol, {"result": to_payload(result)})

    async def record_plan(self, plan: ExecutionPlan, orders: Sequence[OrderRequest]) -> None:
        payload = {
            "plan": to_payload(plan),
            "orders": [
                {**to_payload(order), "wire_params": order.wire_params()}
                for order in orders
            ],
        }
        await self._record(EVENT_EXECUTION_PLAN, plan.symbol, payload)

    async def record_execution(self, plan: ExecutionPlan, result: SubmissionResult) -> None:
        payload = {
            "asset": plan.asset,
            "target_exposure": plan.target_exposure,
            "current_exposure": plan.current_exposure,
            "result": to_payload(result),
        }
        await self._record(EVENT_EXECUTION, plan.symbol, payload)

    async def record_error(
        self,
        message: str,
        error: BaseException,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        payload = {
            "message": message,
            "error": to_payload(error),
            "context": to_payload(context or {}),
        }
        symbol = (context or {}).get("symbol")
        await self._record(EVENT_ERROR, symbol, payload)

    async def recent(self, limit: int = 100, event_type: Optional[str] = None) -> List[Dict[str, Any]]:
        async with self._session_factory() as session:
            return await MonitorEventRepository(session).recent(limit=limit, event_type=event_type)

    async def _record(self, event_type: str, symbol: Optional[str], payload: Dict[str, Any]) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await MonitorEventRepository(session).add(event_type, payload, symbol=symbol)
        except Exception:
            _logger.exception("Failed to record %s monitor event for %s", event_type, symbol)
