"""
TRADING CYCLE

One pass per asset: ledger -> evaluate -> plan -> submit, with every stage
reported to the audit sink.

RULES:
❌ No shared mutable scheduling state: callers own AssetSchedulingState
❌ Assets are processed sequentially, never in parallel
✅ A denial, an empty plan or a failed batch ends only that asset's cycle
✅ Ledger failures propagate after being recorded
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from perp_risk.core.errors import OrderSubmissionError, PersistenceError, PlanRejected
from perp_risk.domain.models import (
    AccountState,
    Decision,
    Direction,
    ExecutionPlan,
    FeatureSnapshot,
    PositionDetail,
    PositionSummary,
    SubmissionResult,
)
from perp_risk.domain.services.audit_sink import AuditSink
from perp_risk.domain.services.daily_risk_ledger import DailyRiskLedger
from perp_risk.domain.services.execution_planner import ExecutionPlanner
from perp_risk.domain.services.order_submitter import OrderSubmitter
from perp_risk.domain.services.risk_evaluator import RiskEvaluator
from perp_risk.utils.time import now_utc, to_utc

logger = logging.getLogger(__name__)

OUTCOME_DENIED = "denied"
OUTCOME_SKIPPED = "skipped"
OUTCOME_EXECUTED = "executed"
OUTCOME_FAILED = "failed"
OUTCOME_NOT_DUE = "not_due"


# ============================================================
# TYPES
# ============================================================

@dataclass
class AssetSchedulingState:
    asset: str
    symbol: str
    decision_interval: timedelta
    last_decision_at: Optional[datetime] = None
    last_result: Optional[str] = None


@dataclass(frozen=True)
class AssetCycleInput:
    decision: Decision
    features: FeatureSnapshot
    position: PositionSummary
    account: AccountState
    market_price: float = 0.0


@dataclass(frozen=True)
class CycleOutcome:
    asset: str
    status: str
    notes: Tuple[str, ...] = ()
    submission: Optional[SubmissionResult] = None


# ============================================================
# POSITION HELPERS
# ============================================================

def first_positive(*values: float) -> float:
    for value in values:
        if value > 0:
            return value
    return 0.0


def exposure_from_position(summary: PositionSummary) -> float:
    """Signed fraction of equity. size_percent is on a 0-100 scale."""
    side = (summary.side or "").strip().upper()
    if side == Direction.LONG.value:
        return summary.size_percent / 100
    if side == Direction.SHORT.value:
        return -summary.size_percent / 100
    return 0.0


def aggregate_positions(
    details: Sequence[PositionDetail],
    equity: float,
    price: float,
) -> PositionSummary:
    """Net the exchange legs of one symbol into a single summary."""
    if not details:
        return PositionSummary()
    if equity <= 0:
        equity = 1.0

    total_notional = 0.0
    entry_weighted = 0.0
    total_size = 0.0
    for detail in details:
        mark = first_positive(detail.mark_price, detail.entry_price, price)
        notional = detail.size * mark
        if detail.side.strip().upper() == Direction.SHORT.value:
            notional = -notional
        total_notional += notional
        entry_weighted += detail.size * detail.entry_price
        total_size += detail.size

    side = ""
    if total_notional > 0:
        side = Direction.LONG.value
    elif total_notional < 0:
        side = Direction.SHORT.value

    entry_price = entry_weighted / total_size if total_size > 0 else 0.0
    pnl_percent = 0.0
    if entry_price > 0 and price > 0:
        if side == Direction.LONG.value:
            pnl_percent = (price - entry_price) / entry_price * 100
        elif side == Direction.SHORT.value:
            pnl_percent = (entry_price - price) / entry_price * 100

    return PositionSummary(
        side=side,
        size_percent=abs(total_notional) / equity * 100,
        entry_price=entry_price,
        unrealized_pnl_percent=pnl_percent,
    )


def _level_or_none(value: float) -> Optional[float]:
    if value is None or not math.isfinite(value) or value <= 0:
        return None
    return value


# ============================================================
# CYCLE
# ============================================================

SubmitterFactory = Callable[[str], OrderSubmitter]
InputFetcher = Callable[[Sequence[AssetSchedulingState]], Awaitable[Mapping[str, AssetCycleInput]]]


class TradingCycle:
    def __init__(
        self,
        ledger: DailyRiskLedger,
        evaluator: RiskEvaluator,
        planner: ExecutionPlanner,
        submitter_factory: SubmitterFactory,
        sink: AuditSink,
    ):
        self.ledger = ledger
        self.evaluator = evaluator
        self.planner = planner
        self.sink = sink
        self._submitter_factory = submitter_factory
        self._submitters: Dict[str, OrderSubmitter] = {}

    def submitter_for(self, symbol: str) -> OrderSubmitter:
        submitter = self._submitters.get(symbol)
        if submitter is None:
            submitter = self._submitter_factory(symbol)
            self._submitters[symbol] = submitter
        return submitter

    @staticmethod
    def due(state: AssetSchedulingState, now: datetime) -> bool:
        if state.last_decision_at is None:
            return True
        return to_utc(now) - to_utc(state.last_decision_at) >= state.decision_interval

    async def run_asset(
        self,
        state: AssetSchedulingState,
        cycle_input: AssetCycleInput,
        now: Optional[datetime] = None,
    ) -> CycleOutcome:
        now = now or now_utc()
        context = {"asset": state.asset, "symbol": state.symbol}
        account = cycle_input.account
        market_price = first_positive(cycle_input.market_price, cycle_input.features.last_price)

        try:
            daily_status = await self.ledger.update(account.timestamp or now, account.equity)
        except PersistenceError as exc:
            await self.sink.record_error("daily ledger update failed", exc, context)
            raise

        result = self.evaluator.evaluate(
            cycle_input.decision,
            cycle_input.features,
            cycle_input.position,
            account,
            market_price,
            daily_status,
        )
        await self.sink.record_risk(state.symbol, result)

        if not result.allowed:
            return self._finish(state, now, CycleOutcome(state.asset, OUTCOME_DENIED, result.notes))

        plan = ExecutionPlan(
            asset=state.asset,
            symbol=state.symbol,
            current_exposure=account.current_exposure_percent,
            target_exposure=result.target_exposure_percent,
            market_price=market_price,
            decision=cycle_input.decision,
            risk_result=result,
            account=account,
            position=cycle_input.position,
            stop_loss=_level_or_none(result.recommended_stop_loss),
            take_profit=_level_or_none(result.recommended_take_profit),
            generated_at=now,
        )

        try:
            orders = self.planner.build(plan)
        except PlanRejected as exc:
            logger.info("No orders for %s: %s", state.asset, exc)
            await self.sink.record_error("execution plan rejected", exc, context)
            return self._finish(state, now, CycleOutcome(state.asset, OUTCOME_SKIPPED, (str(exc),)))

        await self.sink.record_plan(plan, orders)

        try:
            submission = await self.submitter_for(state.symbol).execute(orders)
        except OrderSubmissionError as exc:
            await self.sink.record_error("order submission failed", exc, context)
            await self.sink.record_execution(plan, exc.result)
            return self._finish(
                state,
                now,
                CycleOutcome(state.asset, OUTCOME_FAILED, exc.result.notes, exc.result),
            )

        await self.sink.record_execution(plan, submission)
        return self._finish(
            state,
            now,
            CycleOutcome(state.asset, OUTCOME_EXECUTED, submission.notes, submission),
        )

    async def tick(
        self,
        states: Sequence[AssetSchedulingState],
        inputs: Mapping[str, AssetCycleInput],
        now: Optional[datetime] = None,
    ) -> List[CycleOutcome]:
        now = now or now_utc()
        outcomes: List[CycleOutcome] = []
        for state in states:
            if not self.due(state, now):
                outcomes.append(CycleOutcome(state.asset, OUTCOME_NOT_DUE))
                continue
            cycle_input = inputs.get(state.asset)
            if cycle_input is None:
                logger.warning("No decision input for %s, skipping", state.asset)
                outcomes.append(CycleOutcome(state.asset, OUTCOME_SKIPPED, ("no decision input",)))
                continue
            outcomes.append(await self.run_asset(state, cycle_input, now))
        return outcomes

    async def run_forever(
        self,
        states: Sequence[AssetSchedulingState],
        fetch_inputs: InputFetcher,
        interval_seconds: float,
    ) -> None:
        """Loop until the task is cancelled. A failing tick is logged and retried next round."""
        logger.info("Trading cycle started for %s", ", ".join(s.asset for s in states))
        try:
            while True:
                now = now_utc()
                if any(self.due(state, now) for state in states):
                    try:
                        inputs = await fetch_inputs(states)
                        await self.tick(states, inputs, now)
                    except Exception:
                        logger.exception("Trading cycle tick failed")
                await asyncio.sleep(interval_seconds)
        finally:
            logger.info("Trading cycle stopped")

    @staticmethod
    def _finish(state: AssetSchedulingState, now: datetime, outcome: CycleOutcome) -> CycleOutcome:
        state.last_decision_at = now
        state.last_result = outcome.status
        logger.info("Cycle %s -> %s", state.asset, outcome.status)
        return outcome
