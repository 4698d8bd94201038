"""
DOMAIN MODELS - EXECUTION

Immutable order structures. OrderParameters is the typed source of truth for
the broker parameter bag; it is turned into the broker's wire dict only at
the submission boundary (to_wire).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from perp_risk.domain.models.entities import (
    AccountState,
    Decision,
    EvaluationResult,
    PositionSummary,
)
from perp_risk.utils.price_format import format_price, format_slippage


class OrderType(str, enum.Enum):
    MARKET = "market"
    LIMIT = "limit"


class OrderSide(str, enum.Enum):
    BUY = "buy"
    SELL = "sell"


class TriggerType(str, enum.Enum):
    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"


@dataclass(frozen=True)
class OrderParameters:
    reduce_only: bool = False
    close_position: bool = False
    slippage: float = 0.0
    time_in_force: str = ""
    post_only: bool = False
    stop_loss_price: Optional[float] = None
    take_profit_price: Optional[float] = None
    client_order_id: str = ""

    def to_wire(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {"reduceOnly": self.reduce_only}
        if self.close_position:
            params["closePosition"] = True
        if self.slippage > 0:
            params["slippage"] = format_slippage(self.slippage)
        if self.time_in_force:
            params["timeInForce"] = self.time_in_force
        if self.post_only:
            params["postOnly"] = True
        if self.stop_loss_price is not None:
            params["stopLossPrice"] = format_price(self.stop_loss_price)
        if self.take_profit_price is not None:
            params["takeProfitPrice"] = format_price(self.take_profit_price)
        if self.client_order_id:
            params["clientOrderId"] = self.client_order_id
        return params


@dataclass(frozen=True)
class OrderRequest:
    type: OrderType
    side: OrderSide
    amount: float
    price: float = 0.0
    reduce_only: bool = False
    close_all: bool = False
    is_trigger: bool = False
    trigger_type: Optional[TriggerType] = None
    trigger_price: float = 0.0
    parameters: OrderParameters = OrderParameters()

    @property
    def is_protective(self) -> bool:
        return self.is_trigger and self.trigger_type is not None

    def wire_params(self) -> Dict[str, Any]:
        return self.parameters.to_wire()


@dataclass(frozen=True)
class ExecutionPlan:
    """Everything the planner needs to turn an approved target into orders."""
    asset: str
    symbol: str
    current_exposure: float
    target_exposure: float
    market_price: float
    decision: Decision
    risk_result: EvaluationResult
    account: AccountState
    position: PositionSummary
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    generated_at: Optional[datetime] = None


@dataclass(frozen=True)
class SubmissionResult:
    orders: Tuple[OrderRequest, ...]
    executed: bool
    execution_time: datetime
    notes: Tuple[str, ...] = ()
