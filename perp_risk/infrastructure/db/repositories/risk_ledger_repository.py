"""Transactional daily risk ledger backed by SQLAlchemy."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from perp_risk.core.config import RiskConfig
from perp_risk.core.errors import PersistenceError
from perp_risk.domain.models import DailyStatus, RiskActivityEvent
from perp_risk.domain.services.daily_risk_ledger import (
    DAILY_HALT_EVENT,
    DailyRiskLedger,
    compute_loss_percent,
)
from perp_risk.infrastructure.db.models import RiskActivityLogModel, RiskDailyMetricModel
from perp_risk.utils.time import now_utc, now_utc_naive

logger = logging.getLogger(__name__)


def _to_decimal(value: float) -> Decimal:
    return Decimal(str(value))


class SqlDailyRiskLedger(DailyRiskLedger):
    """
    Each update() runs in its own transaction with the day row locked
    (SELECT ... FOR UPDATE where the dialect supports it). The in-process
    lock serializes assets sharing one account inside a scheduling tick;
    a second process racing the first insert of a day is resolved by
    re-running the transaction against the row it created.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], config: RiskConfig):
        super().__init__(config)
        self._session_factory = session_factory
        self._lock = asyncio.Lock()

    async def update(self, timestamp: datetime, equity: float) -> DailyStatus:
        trading_date = self.trading_date_for(timestamp)

        async with self._lock:
            try:
                try:
                    status, newly_halted = await self._apply(trading_date, equity)
                except IntegrityError:
                    # another writer created the day row first; its start equity wins
                    logger.info("Day row for %s created concurrently, re-reading", trading_date)
                    status, newly_halted = await self._apply(trading_date, equity)
            except SQLAlchemyError as exc:
                raise PersistenceError(
                    f"daily risk ledger update failed for {trading_date}: {exc}"
                ) from exc

        if newly_halted:
            self._warn_halt(status)
        return status

    async def _apply(self, trading_date: str, equity: float) -> Tuple[DailyStatus, bool]:
        newly_halted = False
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    select(RiskDailyMetricModel)
                    .where(RiskDailyMetricModel.trading_date == trading_date)
                    .with_for_update()
                )
                row = result.scalar_one_or_none()

                if row is None:
                    session.add(
                        RiskDailyMetricModel(
                            trading_date=trading_date,
                            start_equity=_to_decimal(equity),
                            current_equity=_to_decimal(equity),
                            halted=False,
                            updated_at=now_utc_naive(),
                        )
                    )
                    status = DailyStatus(trading_date, equity, equity, 0.0, False)
                else:
                    status, newly_halted = self.advance(
                        trading_date,
                        float(row.start_equity),
                        bool(row.halted),
                        equity,
                    )
                    row.current_equity = _to_decimal(equity)
                    row.updated_at = now_utc_naive()
                    if newly_halted:
                        row.halted = True
                        session.add(
                            RiskActivityLogModel(
                                occurred_at=now_utc_naive(),
                                event_type=DAILY_HALT_EVENT,
                                message=self.halt_message(status),
                                details="",
                                trading_date=trading_date,
                            )
                        )
        return status, newly_halted

    async def log_event(
        self,
        event_type: str,
        message: str,
        details: str = "",
        trading_date: Optional[str] = None,
    ) -> None:
        if not event_type:
            raise ValueError("event_type must not be empty")
        trading_date = trading_date or self.trading_date_for(now_utc())
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(
                        RiskActivityLogModel(
                            occurred_at=now_utc_naive(),
                            event_type=event_type,
                            message=message,
                            details=details,
                            trading_date=trading_date,
                        )
                    )
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to write risk event {event_type}: {exc}") from exc

    async def get_status(self, trading_date: str) -> Optional[DailyStatus]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(RiskDailyMetricModel).where(RiskDailyMetricModel.trading_date == trading_date)
                )
                row = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to read daily status for {trading_date}: {exc}") from exc

        if row is None:
            return None
        start = float(row.start_equity)
        current = float(row.current_equity)
        return DailyStatus(
            trading_date=row.trading_date,
            start_equity=start,
            current_equity=current,
            loss_percent=compute_loss_percent(start, current),
            halted=bool(row.halted),
        )

    async def list_events(
        self,
        trading_date: Optional[str] = None,
        limit: int = 200,
    ) -> List[RiskActivityEvent]:
        q = select(RiskActivityLogModel)
        if trading_date is not None:
            q = q.where(RiskActivityLogModel.trading_date == trading_date)
        q = q.order_by(RiskActivityLogModel.id.desc()).limit(limit)
        try:
            async with self._session_factory() as session:
                result = await session.execute(q)
                rows = result.scalars().all()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to read risk events: {exc}") from exc

        return [
            RiskActivityEvent(
                occurred_at=r.occurred_at,
                event_type=r.event_type,
                message=r.message,
                details=r.details or "",
                trading_date=r.trading_date or "",
            )
            for r in rows
        ]
