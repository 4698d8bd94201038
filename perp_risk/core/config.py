from __future__ import annotations

from dataclasses import dataclass
from typing import List

from perp_risk.config import Settings
from perp_risk.core.errors import ConfigurationError

TIME_IN_FORCE_VALUES = ("GTC", "IOC", "FOK", "ALO")


def _in_unit_interval(value: float) -> bool:
    return 0 < value <= 1


@dataclass(frozen=True)
class RiskConfig:
    """
    Risk thresholds. Read once at construction, never re-validated per call.
    """
    max_trade_risk: float = 0.01
    max_daily_loss: float = 0.03
    max_exposure: float = 0.20
    confidence_full_risk: float = 0.80
    confidence_half_risk: float = 0.60
    daily_loss_reset_hour: int = 0

    @staticmethod
    def from_settings(settings: Settings) -> "RiskConfig":
        return RiskConfig(
            max_trade_risk=settings.RISK_MAX_TRADE_RISK,
            max_daily_loss=settings.RISK_MAX_DAILY_LOSS,
            max_exposure=settings.RISK_MAX_EXPOSURE,
            confidence_full_risk=settings.RISK_CONFIDENCE_FULL_RISK,
            confidence_half_risk=settings.RISK_CONFIDENCE_HALF_RISK,
            daily_loss_reset_hour=settings.RISK_DAILY_LOSS_RESET_HOUR,
        ).validate()

    def validate(self) -> "RiskConfig":
        problems: List[str] = []
        if not _in_unit_interval(self.max_trade_risk):
            problems.append("max_trade_risk must be in (0, 1]")
        if not _in_unit_interval(self.max_daily_loss):
            problems.append("max_daily_loss must be in (0, 1]")
        if not _in_unit_interval(self.max_exposure):
            problems.append("max_exposure must be in (0, 1]")
        if not _in_unit_interval(self.confidence_full_risk):
            problems.append("confidence_full_risk must be in (0, 1]")
        if not _in_unit_interval(self.confidence_half_risk):
            problems.append("confidence_half_risk must be in (0, 1]")
        if self.confidence_half_risk >= self.confidence_full_risk:
            problems.append("confidence_half_risk must be lower than confidence_full_risk")
        if not 0 <= self.daily_loss_reset_hour <= 23:
            problems.append("daily_loss_reset_hour must be in [0, 23]")
        if problems:
            raise ConfigurationError(problems)
        return self


@dataclass(frozen=True)
class ExecutionConfig:
    """
    Order construction and submission settings.

    embed_protection: the broker accepts stop/take as parameters of the
    primary order. When False, protection is sent as separate trigger orders.
    """
    slippage: float = 0.01
    time_in_force: str = "IOC"
    post_only: bool = False
    embed_protection: bool = False
    max_retry_attempts: int = 3
    retry_backoff_seconds: float = 1.0

    @staticmethod
    def from_settings(settings: Settings) -> "ExecutionConfig":
        return ExecutionConfig(
            slippage=settings.EXECUTION_SLIPPAGE,
            time_in_force=settings.EXECUTION_TIME_IN_FORCE.upper(),
            post_only=settings.EXECUTION_POST_ONLY,
            embed_protection=settings.EXECUTION_EMBED_PROTECTION,
            max_retry_attempts=settings.EXECUTION_MAX_RETRY_ATTEMPTS,
            retry_backoff_seconds=settings.EXECUTION_RETRY_BACKOFF_SECONDS,
        ).validate()

    def validate(self) -> "ExecutionConfig":
        problems: List[str] = []
        if not 0 <= self.slippage <= 0.2:
            problems.append("slippage must be in [0, 0.2]")
        if self.time_in_force not in TIME_IN_FORCE_VALUES:
            problems.append(f"time_in_force must be one of {', '.join(TIME_IN_FORCE_VALUES)}")
        if self.max_retry_attempts < 1:
            problems.append("max_retry_attempts must be at least 1")
        if self.retry_backoff_seconds < 0:
            problems.append("retry_backoff_seconds must not be negative")
        if problems:
            raise ConfigurationError(problems)
        return self


@dataclass(frozen=True)
class SchedulerConfig:
    loop_interval_seconds: float = 60.0
    decision_interval_seconds: float = 300.0

    @staticmethod
    def from_settings(settings: Settings) -> "SchedulerConfig":
        return SchedulerConfig(
            loop_interval_seconds=settings.SCHEDULER_LOOP_INTERVAL_SECONDS,
            decision_interval_seconds=settings.SCHEDULER_DECISION_INTERVAL_SECONDS,
        ).validate()

    def validate(self) -> "SchedulerConfig":
        problems: List[str] = []
        if self.loop_interval_seconds <= 0:
            problems.append("loop_interval_seconds must be positive")
        if self.decision_interval_seconds < self.loop_interval_seconds:
            problems.append("decision_interval_seconds must not be shorter than loop_interval_seconds")
        if problems:
            raise ConfigurationError(problems)
        return self
