"""
Domain Models Package
Export all domain entities
"""

from .entities import (
    # Constants
    EPSILON,

    # Enums
    Direction,
    Intent,
    OrderPreference,
    RiskStatus,

    # Entities
    AccountState,
    DailyStatus,
    Decision,
    EvaluationResult,
    FeatureSnapshot,
    PositionDetail,
    PositionSummary,
    RiskActivityEvent,
)
from .execution import (
    ExecutionPlan,
    OrderParameters,
    OrderRequest,
    OrderSide,
    OrderType,
    SubmissionResult,
    TriggerType,
)

__all__ = [
    # Constants
    "EPSILON",

    # Enums
    "Direction",
    "Intent",
    "OrderPreference",
    "OrderSide",
    "OrderType",
    "RiskStatus",
    "TriggerType",

    # Entities
    "AccountState",
    "DailyStatus",
    "Decision",
    "EvaluationResult",
    "ExecutionPlan",
    "FeatureSnapshot",
    "OrderParameters",
    "OrderRequest",
    "PositionDetail",
    "PositionSummary",
    "RiskActivityEvent",
    "SubmissionResult",
]
