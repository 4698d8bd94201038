"""Audit sink contract. Implementations must never raise into the trading cycle."""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol, Sequence

from perp_risk.domain.models import EvaluationResult, ExecutionPlan, OrderRequest, SubmissionResult


class AuditSink(Protocol):
    async def record_risk(self, symbol: str, result: EvaluationResult) -> None: ...

    async def record_plan(self, plan: ExecutionPlan, orders: Sequence[OrderRequest]) -> None: ...

    async def record_execution(self, plan: ExecutionPlan, result: SubmissionResult) -> None: ...

    async def record_error(
        self,
        message: str,
        error: BaseException,
        context: Optional[Dict[str, Any]] = None,
    ) -> None: ...
