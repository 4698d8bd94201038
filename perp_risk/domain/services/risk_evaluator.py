"""
RISK EVALUATOR

Turns a recommendation plus account/position state into a vetted,
magnitude-bounded target exposure.

RULES:
❌ No DB access (the ledger update happens before evaluate)
❌ No broker access
❌ No exceptions for denials: deny is a result with notes
✅ Pure given its inputs
✅ Every gate explains itself in notes
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Tuple

from perp_risk.core.config import RiskConfig
from perp_risk.domain.models import (
    EPSILON,
    AccountState,
    DailyStatus,
    Decision,
    Direction,
    EvaluationResult,
    FeatureSnapshot,
    Intent,
    PositionSummary,
    RiskStatus,
)

logger = logging.getLogger(__name__)

ATR_STOP_MULTIPLIER = 2.0


# ------------------------------------------------------------
# Pure helpers
# ------------------------------------------------------------

def clamp_exposure(value: float, limit: float) -> float:
    """Clamp |value| to limit, keeping the sign."""
    if abs(value) > limit:
        return math.copysign(limit, value)
    return value


def same_direction(a: float, b: float) -> bool:
    if abs(a) <= EPSILON or abs(b) <= EPSILON:
        return False
    return (a > 0) == (b > 0)


def opposite_direction(a: float, b: float) -> bool:
    if abs(a) <= EPSILON or abs(b) <= EPSILON:
        return False
    return (a > 0) != (b > 0)


def normalize_intent(raw: str) -> Tuple[Intent, Optional[str]]:
    value = (raw or "").strip().upper()
    if not value:
        return Intent.ADJUST, None
    try:
        return Intent(value), None
    except ValueError:
        return Intent.ADJUST, f"unknown intent {raw!r}, treated as ADJUST"


def normalize_direction(raw: str) -> Tuple[Direction, Optional[str]]:
    value = (raw or "").strip().upper()
    if not value:
        return Direction.AUTO, None
    try:
        return Direction(value), None
    except ValueError:
        return Direction.AUTO, f"unknown direction {raw!r}, treated as AUTO"


def held_sign(position: PositionSummary, current_exposure: float) -> float:
    side = (position.side or "").strip().upper()
    if side == Direction.LONG.value:
        return 1.0
    if side == Direction.SHORT.value:
        return -1.0
    if current_exposure > EPSILON:
        return 1.0
    if current_exposure < -EPSILON:
        return -1.0
    return 0.0


def resolve_sign(
    intent: Intent,
    direction: Direction,
    position: PositionSummary,
    current_exposure: float,
) -> float:
    if direction is Direction.LONG:
        return 1.0
    if direction is Direction.SHORT:
        return -1.0
    held = held_sign(position, current_exposure)
    if intent is Intent.HEDGE and held != 0:
        return -held
    if held != 0:
        return held
    return 1.0


def desired_exposure(
    decision: Decision,
    intent: Intent,
    direction: Direction,
    position: PositionSummary,
    current_exposure: float,
) -> float:
    """
    Signed exposure the decision asks for, before any limit is applied.
    """
    if intent is Intent.CLOSE or direction is Direction.FLAT:
        return 0.0

    sign = resolve_sign(intent, direction, position, current_exposure)
    if decision.target_exposure_pct > EPSILON or abs(current_exposure) <= EPSILON:
        return sign * decision.target_exposure_pct

    adjusted = current_exposure + decision.adjustment_pct * sign
    if adjusted * sign < 0:
        # A reduction larger than the position flattens, it does not reverse
        return 0.0
    return adjusted


def select_stop(sign: float, decision_stop: float, atr: float, price: float) -> Optional[float]:
    """
    Tighter of the decision's stop and a 2xATR stop, on the correct side of price.
    """
    if sign < 0:
        candidates = []
        if decision_stop > price:
            candidates.append(decision_stop)
        if atr > 0:
            candidates.append(price + ATR_STOP_MULTIPLIER * atr)
        return min(candidates) if candidates else None

    candidates = []
    if 0 < decision_stop < price:
        candidates.append(decision_stop)
    if atr > 0:
        atr_stop = price - ATR_STOP_MULTIPLIER * atr
        if atr_stop > 0:
            candidates.append(atr_stop)
    return max(candidates) if candidates else None


def stop_distance(sign: float, price: float, stop: float) -> float:
    if sign < 0:
        return stop - price
    return price - stop


def _parse_level(raw: str, label: str, notes: List[str]) -> float:
    text = (raw or "").strip()
    if not text:
        return 0.0
    try:
        value = float(text)
    except ValueError:
        notes.append(f"could not parse {label} {raw!r}")
        return 0.0
    if not math.isfinite(value):
        notes.append(f"could not parse {label} {raw!r}")
        return 0.0
    return value


# ------------------------------------------------------------
# Evaluator
# ------------------------------------------------------------

class RiskEvaluator:
    """
    Sizing and gating, in a fixed order. Each failing gate returns
    status=deny immediately with the reason appended to notes.
    """

    def __init__(self, config: RiskConfig):
        self.config = config.validate()

    def confidence_factor(self, confidence: float) -> float:
        if confidence >= self.config.confidence_full_risk:
            return 1.0
        if confidence >= self.config.confidence_half_risk:
            return 0.5
        return 0.0

    def evaluate(
        self,
        decision: Decision,
        features: FeatureSnapshot,
        position: PositionSummary,
        account: AccountState,
        market_price: float,
        daily_status: DailyStatus,
    ) -> EvaluationResult:
        cfg = self.config
        symbol = decision.symbol
        notes: List[str] = []

        stop_loss = _parse_level(decision.stop_loss, "stop loss", notes)
        take_profit = _parse_level(decision.take_profit, "take profit", notes)

        def deny(reason: str, confidence_applied: float = 0.0, risk_amount: float = 0.0) -> EvaluationResult:
            notes.append(reason)
            logger.info("Risk denied %s: %s", symbol, reason)
            return EvaluationResult(
                symbol=symbol,
                status=RiskStatus.DENY,
                target_exposure_percent=0.0,
                recommended_stop_loss=stop_loss,
                recommended_take_profit=take_profit,
                risk_amount=risk_amount,
                confidence_applied=confidence_applied,
                notes=tuple(notes),
                daily_status=daily_status,
            )

        def proceed(target: float, stop: float, risk_amount: float, confidence_applied: float) -> EvaluationResult:
            return EvaluationResult(
                symbol=symbol,
                status=RiskStatus.PROCEED,
                target_exposure_percent=target,
                recommended_stop_loss=stop,
                recommended_take_profit=take_profit,
                risk_amount=risk_amount,
                confidence_applied=confidence_applied,
                notes=tuple(notes),
                daily_status=daily_status,
            )

        intent, intent_note = normalize_intent(decision.intent)
        direction, direction_note = normalize_direction(decision.direction)
        for note in (intent_note, direction_note):
            if note:
                notes.append(note)

        if intent is Intent.OBSERVE:
            return deny("decision is OBSERVE, no trade requested")

        current = account.current_exposure_percent
        desired = desired_exposure(decision, intent, direction, position, current)

        # Flatten: always allowed, even on a halted day
        if abs(desired) <= EPSILON:
            if abs(current) <= EPSILON:
                return deny("already flat, nothing to close")
            notes.append(f"closing position, exposure {current:+.2%} -> 0")
            return proceed(0.0, stop_loss, 0.0, 0.0)

        if abs(desired) > cfg.max_exposure:
            notes.append(
                f"desired exposure {abs(desired):.2%} exceeds limit {cfg.max_exposure:.2%}, clamped"
            )
            desired = clamp_exposure(desired, cfg.max_exposure)

        if account.equity <= 0:
            return deny("account equity is not positive, cannot size position")
        if market_price <= 0:
            return deny("no valid market price, cannot size position")

        increasing = abs(desired) > abs(current) + EPSILON
        flipping = opposite_direction(desired, current)

        if daily_status.halted and (increasing or flipping):
            return deny(
                f"daily loss limit reached ({daily_status.loss_percent:.2%}), "
                "only exposure reductions are allowed"
            )

        sign = 1.0 if desired > 0 else -1.0
        stop = select_stop(sign, stop_loss, features.atr_absolute, market_price)
        if stop is None:
            return deny("no valid stop loss available")

        distance = stop_distance(sign, market_price, stop)
        if distance <= 0:
            return deny(f"stop {stop} is on the wrong side of price {market_price}")

        factor = self.confidence_factor(decision.confidence)
        if increasing and factor <= 0:
            return deny(
                f"confidence {decision.confidence:.2f} below {cfg.confidence_half_risk:.2f}, "
                "not increasing exposure",
                confidence_applied=factor,
            )

        if increasing:
            risk_per_trade = cfg.max_trade_risk * factor
            risk_amount = account.equity * risk_per_trade
            if risk_amount <= 0:
                return deny("risk budget is zero", confidence_applied=factor)

            target_by_risk = risk_per_trade * (market_price / distance)
            if not math.isfinite(target_by_risk):
                return deny("could not size position from stop distance", confidence_applied=factor)
            target_by_risk = min(target_by_risk, cfg.max_exposure)

            magnitude = min(abs(desired), target_by_risk)
            if target_by_risk < abs(desired) - EPSILON:
                notes.append(
                    f"risk budget limits exposure to {target_by_risk:.2%} "
                    f"(stop distance {distance:.2f})"
                )
            if magnitude <= EPSILON:
                return deny("exposure clamped to zero by risk budget", factor, risk_amount)

            final = math.copysign(magnitude, desired)
            if same_direction(final, current) and magnitude <= abs(current) + EPSILON:
                return deny("risk clamp would not increase exposure", factor, risk_amount)
            if abs(final - current) < EPSILON:
                return deny("no-op after risk clamp", factor, risk_amount)
        else:
            risk_amount = 0.0
            final = desired
            if abs(final - current) < EPSILON:
                return deny("target equals current exposure, no-op", factor)

        notes.append(f"target exposure {final:+.2%}, risk amount {risk_amount:.2f}")
        return proceed(final, stop, risk_amount, factor)
