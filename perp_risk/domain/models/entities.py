"""
DOMAIN ENTITIES - RISK EVALUATION

Immutable structures consumed and produced by one trading cycle.
No persistence, no broker access.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

# Tolerance for every exposure comparison in the system
EPSILON = 1e-6


# ============================================================
# ENUMS
# ============================================================

class Intent(str, enum.Enum):
    OPEN = "OPEN"
    ADJUST = "ADJUST"
    CLOSE = "CLOSE"
    HEDGE = "HEDGE"
    OBSERVE = "OBSERVE"


class Direction(str, enum.Enum):
    LONG = "LONG"
    SHORT = "SHORT"
    FLAT = "FLAT"
    AUTO = "AUTO"


class OrderPreference(str, enum.Enum):
    MARKET = "MARKET"
    LIMIT = "LIMIT"
    AUTO = "AUTO"


class RiskStatus(str, enum.Enum):
    PROCEED = "proceed"
    DENY = "deny"


# ============================================================
# CYCLE INPUTS
# ============================================================

@dataclass(frozen=True)
class Decision:
    """
    Validated trade recommendation for one symbol.

    Stop/take are decimal strings as produced by the decision source; they
    may be blank for CLOSE and OBSERVE.
    """
    symbol: str
    intent: str = Intent.ADJUST.value
    direction: str = Direction.AUTO.value
    target_exposure_pct: float = 0.0
    adjustment_pct: float = 0.0
    confidence: float = 0.0
    order_preference: str = ""
    stop_loss: str = ""
    take_profit: str = ""
    reasoning: str = ""
    risk_comment: str = ""


@dataclass(frozen=True)
class FeatureSnapshot:
    """Read-only indicator output. Only the ATR is needed for stop derivation."""
    symbol: str
    atr_absolute: float = 0.0
    last_price: float = 0.0
    generated_at: Optional[datetime] = None


@dataclass(frozen=True)
class AccountState:
    equity: float
    balance: float
    current_exposure_percent: float  # signed fraction of equity
    timestamp: datetime


@dataclass(frozen=True)
class PositionSummary:
    side: str = ""  # LONG | SHORT | ""
    size_percent: float = 0.0  # notional as % of equity (0-100)
    entry_price: float = 0.0
    unrealized_pnl_percent: float = 0.0
    age_hours: float = 0.0
    stop_loss: float = 0.0
    take_profit: float = 0.0


@dataclass(frozen=True)
class PositionDetail:
    """Single exchange position leg, as reported by the account collaborator."""
    side: str
    size: float
    entry_price: float
    mark_price: float = 0.0


# ============================================================
# LEDGER
# ============================================================

@dataclass(frozen=True)
class DailyStatus:
    """
    Snapshot of one trading day's drawdown accounting.

    halted never reverts to False within the same trading_date.
    """
    trading_date: str
    start_equity: float
    current_equity: float
    loss_percent: float = 0.0
    halted: bool = False


@dataclass(frozen=True)
class RiskActivityEvent:
    occurred_at: datetime
    event_type: str
    message: str
    details: str
    trading_date: str


# ============================================================
# EVALUATION OUTPUT
# ============================================================

@dataclass(frozen=True)
class EvaluationResult:
    symbol: str
    status: RiskStatus
    target_exposure_percent: float = 0.0
    recommended_stop_loss: float = 0.0
    recommended_take_profit: float = 0.0
    risk_amount: float = 0.0
    confidence_applied: float = 0.0
    notes: Tuple[str, ...] = ()
    daily_status: Optional[DailyStatus] = None

    @property
    def allowed(self) -> bool:
        return self.status is RiskStatus.PROCEED
