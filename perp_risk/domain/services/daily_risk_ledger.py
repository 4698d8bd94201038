"""
DAILY RISK LEDGER

Per-trading-day equity / drawdown accounting with a one-way halt flag.

RULES:
- First update of a trading day records start equity, never halts
- halted only ever goes False -> True within a trading day
- Every update is one atomic read-modify-write
- log_event is append-only and never changes control flow
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from perp_risk.core.config import RiskConfig
from perp_risk.domain.models import DailyStatus, RiskActivityEvent
from perp_risk.utils.time import now_utc, trading_date_key

logger = logging.getLogger(__name__)

DAILY_HALT_EVENT = "daily_halt"


def compute_loss_percent(start_equity: float, equity: float) -> float:
    """Signed change since the start of the day; 0 when start equity is unusable."""
    if start_equity <= 0:
        return 0.0
    return (equity - start_equity) / start_equity


class DailyRiskLedger(ABC):
    """
    Narrow interface shared by the transactional store and the in-memory
    implementation.
    """

    def __init__(self, config: RiskConfig):
        self.config = config.validate()

    @property
    def max_daily_loss(self) -> float:
        return self.config.max_daily_loss

    @property
    def reset_hour(self) -> int:
        return self.config.daily_loss_reset_hour

    def trading_date_for(self, ts: datetime) -> str:
        return trading_date_key(ts, self.reset_hour)

    def advance(
        self,
        trading_date: str,
        start_equity: float,
        already_halted: bool,
        equity: float,
    ) -> Tuple[DailyStatus, bool]:
        """
        Apply a new equity reading to an existing day.

        Returns the new status and whether this reading tripped the halt.
        """
        loss_percent = compute_loss_percent(start_equity, equity)
        newly_halted = (
            not already_halted
            and start_equity > 0
            and loss_percent <= -self.max_daily_loss
        )
        status = DailyStatus(
            trading_date=trading_date,
            start_equity=start_equity,
            current_equity=equity,
            loss_percent=loss_percent,
            halted=already_halted or newly_halted,
        )
        return status, newly_halted

    def halt_message(self, status: DailyStatus) -> str:
        return (
            f"daily loss {status.loss_percent * 100:.2f}% breached limit "
            f"{self.max_daily_loss * 100:.2f}%, trading halted for {status.trading_date}"
        )

    def _warn_halt(self, status: DailyStatus) -> None:
        logger.warning(
            "Daily loss limit hit: trading_date=%s loss=%.4f start=%.2f current=%.2f",
            status.trading_date,
            status.loss_percent,
            status.start_equity,
            status.current_equity,
        )

    @abstractmethod
    async def update(self, timestamp: datetime, equity: float) -> DailyStatus:
        ...

    @abstractmethod
    async def log_event(
        self,
        event_type: str,
        message: str,
        details: str = "",
        trading_date: Optional[str] = None,
    ) -> None:
        ...

    @abstractmethod
    async def get_status(self, trading_date: str) -> Optional[DailyStatus]:
        ...

    @abstractmethod
    async def list_events(
        self,
        trading_date: Optional[str] = None,
        limit: int = 200,
    ) -> List[RiskActivityEvent]:
        ...


@dataclass
class _DayRow:
    start_equity: float
    current_equity: float
    halted: bool
    updated_at: datetime


class InMemoryDailyRiskLedger(DailyRiskLedger):
    """Process-local ledger for tests and dry runs. State is lost on restart."""

    def __init__(self, config: RiskConfig):
        super().__init__(config)
        self._days: Dict[str, _DayRow] = {}
        self._events: List[RiskActivityEvent] = []
        self._lock = asyncio.Lock()

    async def update(self, timestamp: datetime, equity: float) -> DailyStatus:
        trading_date = self.trading_date_for(timestamp)
        async with self._lock:
            row = self._days.get(trading_date)
            if row is None:
                self._days[trading_date] = _DayRow(equity, equity, False, now_utc())
                return DailyStatus(trading_date, equity, equity, 0.0, False)

            status, newly_halted = self.advance(trading_date, row.start_equity, row.halted, equity)
            row.current_equity = equity
            row.halted = status.halted
            row.updated_at = now_utc()
            if newly_halted:
                self._events.append(
                    RiskActivityEvent(
                        occurred_at=now_utc(),
                        event_type=DAILY_HALT_EVENT,
                        message=self.halt_message(status),
                        details="",
                        trading_date=trading_date,
                    )
                )

        if newly_halted:
            self._warn_halt(status)
        return status

    async def log_event(
        self,
        event_type: str,
        message: str,
        details: str = "",
        trading_date: Optional[str] = None,
    ) -> None:
        if not event_type:
            raise ValueError("event_type must not be empty")
        self._events.append(
            RiskActivityEvent(
                occurred_at=now_utc(),
                event_type=event_type,
                message=message,
                details=details,
                trading_date=trading_date or self.trading_date_for(now_utc()),
            )
        )

    async def get_status(self, trading_date: str) -> Optional[DailyStatus]:
        row = self._days.get(trading_date)
        if row is None:
            return None
        return DailyStatus(
            trading_date=trading_date,
            start_equity=row.start_equity,
            current_equity=row.current_equity,
            loss_percent=compute_loss_percent(row.start_equity, row.current_equity),
            halted=row.halted,
        )

    async def list_events(
        self,
        trading_date: Optional[str] = None,
        limit: int = 200,
    ) -> List[RiskActivityEvent]:
        events = [
            e for e in self._events
            if trading_date is None or e.trading_date == trading_date
        ]
        return list(reversed(events))[:limit]
