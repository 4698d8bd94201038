from dataclasses import replace

import pytest

from perp_risk.core.config import ExecutionConfig
from perp_risk.core.errors import PlanRejected
from perp_risk.domain.models import (
    AccountState,
    DailyStatus,
    Decision,
    EvaluationResult,
    ExecutionPlan,
    OrderSide,
    OrderType,
    PositionSummary,
    RiskStatus,
    TriggerType,
)
from perp_risk.domain.services.execution_planner import ExecutionPlanner
from perp_risk.utils.price_format import format_price, parse_price_string


def _plan(now, current=0.0, target=0.10, price=50_000.0, equity=100_000.0, status=RiskStatus.PROCEED,
          stop_loss=45_000.0, take_profit=52_000.0) -> ExecutionPlan:
    return ExecutionPlan(
        asset="BTC",
        symbol="BTC/USDC:USDC",
        current_exposure=current,
        target_exposure=target,
        market_price=price,
        decision=Decision(symbol="BTC", intent="OPEN", direction="LONG"),
        risk_result=EvaluationResult(symbol="BTC", status=status, target_exposure_percent=target),
        account=AccountState(equity=equity, balance=equity, current_exposure_percent=current, timestamp=now),
        position=PositionSummary(),
        stop_loss=stop_loss,
        take_profit=take_profit,
        generated_at=now,
    )


@pytest.fixture()
def planner(execution_config) -> ExecutionPlanner:
    return ExecutionPlanner(execution_config)


def test_scenario_a_primary_order(planner, now):
    orders = planner.build(_plan(now))

    primary = orders[0]
    assert primary.type is OrderType.MARKET
    assert primary.side is OrderSide.BUY
    assert primary.amount == pytest.approx(0.2)
    assert primary.reduce_only is False
    assert primary.close_all is False
    params = primary.wire_params()
    assert params["reduceOnly"] is False
    assert params["slippage"] == "0.010000"
    assert params["timeInForce"] == "IOC"
    assert "stopLossPrice" not in params


def test_separate_protective_orders_follow_primary(planner, now):
    orders = planner.build(_plan(now))

    assert len(orders) == 3
    stop, take = orders[1], orders[2]
    assert stop.trigger_type is TriggerType.STOP_LOSS
    assert take.trigger_type is TriggerType.TAKE_PROFIT
    for order in (stop, take):
        assert order.type is OrderType.LIMIT
        assert order.side is OrderSide.SELL
        assert order.reduce_only is True
        assert order.is_trigger is True
        assert order.amount == pytest.approx(0.2)
        assert order.wire_params()["timeInForce"] == "GTC"
    assert stop.wire_params()["stopLossPrice"] == "45000"
    assert take.wire_params()["takeProfitPrice"] == "52000"


def test_embedded_protection_single_order(now):
    planner = ExecutionPlanner(ExecutionConfig(embed_protection=True))

    orders = planner.build(_plan(now))

    assert len(orders) == 1
    params = orders[0].wire_params()
    assert params["stopLossPrice"] == "45000"
    assert params["takeProfitPrice"] == "52000"


def test_embedding_with_one_level_falls_back_to_separate_order(now):
    planner = ExecutionPlanner(ExecutionConfig(embed_protection=True))

    orders = planner.build(_plan(now, take_profit=None))

    assert len(orders) == 2
    assert "stopLossPrice" not in orders[0].wire_params()
    assert orders[1].trigger_type is TriggerType.STOP_LOSS


def test_post_only_applies_to_take_profit_only(now):
    planner = ExecutionPlanner(ExecutionConfig(post_only=True))

    orders = planner.build(_plan(now))

    assert "postOnly" not in orders[0].wire_params()
    assert "postOnly" not in orders[1].wire_params()
    assert orders[2].wire_params()["postOnly"] is True


def test_short_protection_buys_back(planner, now):
    orders = planner.build(_plan(now, target=-0.10, stop_loss=55_000.0, take_profit=45_000.0))

    assert orders[0].side is OrderSide.SELL
    assert all(order.side is OrderSide.BUY for order in orders[1:])


@pytest.mark.parametrize("halted", [False, True])
def test_scenario_d_close_is_reduce_only_close_all(planner, now, halted):
    plan = _plan(now, current=0.15, target=0.0)
    day = DailyStatus("2026-03-02", 100_000.0, 96_000.0, -0.04, halted)
    plan = replace(plan, risk_result=replace(plan.risk_result, daily_status=day))

    orders = planner.build(plan)

    assert len(orders) == 1
    primary = orders[0]
    assert primary.side is OrderSide.SELL
    assert primary.reduce_only is True
    assert primary.close_all is True
    assert primary.wire_params()["closePosition"] is True
    assert primary.amount == pytest.approx(0.3)


def test_partial_reduction_is_reduce_only(planner, now):
    orders = planner.build(_plan(now, current=0.15, target=0.05))

    assert orders[0].reduce_only is True
    assert orders[0].close_all is False
    assert orders[0].amount == pytest.approx(0.2)


def test_flip_is_not_reduce_only(planner, now):
    orders = planner.build(_plan(now, current=0.10, target=-0.05, stop_loss=52_000.0, take_profit=47_000.0))

    assert orders[0].side is OrderSide.SELL
    assert orders[0].reduce_only is False


def test_denied_risk_rejected_before_other_checks(planner, now):
    with pytest.raises(PlanRejected, match="risk not allowed"):
        planner.build(_plan(now, status=RiskStatus.DENY, price=0.0, equity=0.0))


def test_already_at_target_yields_no_orders(planner, now):
    with pytest.raises(PlanRejected, match="already at target"):
        planner.build(_plan(now, current=0.1, target=0.1 + 1e-7))


@pytest.mark.parametrize("price,equity", [(0.0, 100_000.0), (50_000.0, 0.0), (-1.0, 100_000.0)])
def test_invalid_price_or_equity_rejected(planner, now, price, equity):
    with pytest.raises(PlanRejected):
        planner.build(_plan(now, price=price, equity=equity))


@pytest.mark.parametrize("value", [45_000.0, 0.1, 1e-05, 123.456789, 2.5e-8, 98_765.4321])
def test_price_string_round_trip(value):
    assert parse_price_string(format_price(value)) == value


def test_price_format_has_no_exponent():
    assert format_price(1e-05) == "0.00001"
    assert format_price(45_000.0) == "45000"
    assert format_price(1.5e20) == "150000000000000000000"


def test_every_planned_order_carries_its_own_client_order_id(planner, now):
    orders = planner.build(_plan(now))

    ids = [order.wire_params()["clientOrderId"] for order in orders]
    assert all(len(i) == 32 for i in ids)
    assert len(set(ids)) == len(orders)
