"""
EXECUTION PLANNER

Turns an approved target exposure into a primary market order plus
protective stop-loss / take-profit.

Protection is either embedded in the primary order's parameters (brokers
that accept it, embed_protection=True) or sent as separate reduce-only
trigger orders. It is never dropped.
"""

from __future__ import annotations

import logging
import math
import uuid
from typing import List, Optional

from perp_risk.core.config import ExecutionConfig
from perp_risk.core.errors import PlanRejected
from perp_risk.domain.models import (
    EPSILON,
    ExecutionPlan,
    OrderParameters,
    OrderRequest,
    OrderSide,
    OrderType,
    RiskStatus,
    TriggerType,
)
from perp_risk.domain.services.risk_evaluator import same_direction

logger = logging.getLogger(__name__)

# Resting protective orders must survive until triggered
PROTECTIVE_TIME_IN_FORCE = "GTC"


def new_client_order_id() -> str:
    """Broker-side dedup key. Fixed at planning time so every retry resends the same id."""
    return uuid.uuid4().hex


def _level(value: Optional[float]) -> Optional[float]:
    if value is None or not math.isfinite(value) or value <= 0:
        return None
    return value


class ExecutionPlanner:
    def __init__(self, config: ExecutionConfig):
        self.config = config.validate()

    def build(self, plan: ExecutionPlan) -> List[OrderRequest]:
        if plan.risk_result.status is not RiskStatus.PROCEED:
            raise PlanRejected("risk not allowed: evaluation did not approve this plan")

        if plan.market_price <= 0:
            raise PlanRejected(f"invalid market price {plan.market_price}")

        target = plan.target_exposure
        current = plan.current_exposure
        exposure_diff = target - current
        if abs(exposure_diff) < EPSILON:
            raise PlanRejected("already at target exposure, nothing to execute")

        equity = plan.account.equity
        if equity <= 0:
            raise PlanRejected(f"invalid account equity {equity}")

        side = OrderSide.BUY if exposure_diff > 0 else OrderSide.SELL
        amount = abs(exposure_diff) * equity / plan.market_price
        if not math.isfinite(amount) or amount <= 0:
            raise PlanRejected(
                f"invalid order amount {amount:.8f} "
                f"(diff={exposure_diff:.6f} equity={equity:.2f} price={plan.market_price:.2f})"
            )

        close_all = abs(target) < EPSILON
        reduce_only = close_all or (same_direction(target, current) and abs(target) <= abs(current))

        stop_loss = _level(plan.stop_loss)
        take_profit = _level(plan.take_profit)
        protect = not close_all and (stop_loss is not None or take_profit is not None)
        embed = protect and self.config.embed_protection and stop_loss is not None and take_profit is not None

        primary = OrderRequest(
            type=OrderType.MARKET,
            side=side,
            amount=amount,
            price=plan.market_price,
            reduce_only=reduce_only,
            close_all=close_all,
            parameters=OrderParameters(
                reduce_only=reduce_only,
                close_position=close_all,
                slippage=self.config.slippage,
                time_in_force=self.config.time_in_force,
                stop_loss_price=stop_loss if embed else None,
                take_profit_price=take_profit if embed else None,
                client_order_id=new_client_order_id(),
            ),
        )
        orders = [primary]

        if protect and not embed:
            orders.extend(self._protective_orders(plan, stop_loss, take_profit))

        logger.info(
            "Planned %d order(s) for %s: %s %.8f @ %.2f exposure %+.4f -> %+.4f%s",
            len(orders),
            plan.symbol,
            side.value,
            amount,
            plan.market_price,
            current,
            target,
            " (protection embedded)" if embed else "",
        )
        return orders

    def _protective_orders(
        self,
        plan: ExecutionPlan,
        stop_loss: Optional[float],
        take_profit: Optional[float],
    ) -> List[OrderRequest]:
        target = plan.target_exposure
        amount = abs(target) * plan.account.equity / plan.market_price
        if amount <= 0:
            return []

        exit_side = OrderSide.SELL if target > 0 else OrderSide.BUY
        orders: List[OrderRequest] = []

        if stop_loss is not None:
            orders.append(
                OrderRequest(
                    type=OrderType.LIMIT,
                    side=exit_side,
                    amount=amount,
                    price=stop_loss,
                    reduce_only=True,
                    is_trigger=True,
                    trigger_type=TriggerType.STOP_LOSS,
                    trigger_price=stop_loss,
                    parameters=OrderParameters(
                        reduce_only=True,
                        slippage=self.config.slippage,
                        time_in_force=PROTECTIVE_TIME_IN_FORCE,
                        stop_loss_price=stop_loss,
                        client_order_id=new_client_order_id(),
                    ),
                )
            )

        if take_profit is not None:
            orders.append(
                OrderRequest(
                    type=OrderType.LIMIT,
                    side=exit_side,
                    amount=amount,
                    price=take_profit,
                    reduce_only=True,
                    is_trigger=True,
                    trigger_type=TriggerType.TAKE_PROFIT,
                    trigger_price=take_profit,
                    parameters=OrderParameters(
                        reduce_only=True,
                        slippage=self.config.slippage,
                        time_in_force=PROTECTIVE_TIME_IN_FORCE,
                        # A take-profit rests as a maker order; a stop must not
                        post_only=self.config.post_only,
                        take_profit_price=take_profit,
                        client_order_id=new_client_order_id(),
                    ),
                )
            )

        return orders
