"""Persistence for monitor (audit) events."""
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from perp_risk.infrastructure.db.models import MonitorEventModel
from perp_risk.utils.time import now_utc_naive


class MonitorEventRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(
        self,
        event_type: str,
        payload: Dict[str, Any],
        symbol: Optional[str] = None,
    ) -> int:
        model = MonitorEventModel(
            event_type=str(event_type),
            symbol=symbol,
            payload=payload,
            created_at=now_utc_naive(),
        )
        self.session.add(model)
        await self.session.flush()
        return model.id

    async def recent(self, limit: int = 100, event_type: Optional[str] = None) -> List[Dict[str, Any]]:
        q = select(MonitorEventModel)
        if event_type is not None:
            q = q.where(MonitorEventModel.event_type == event_type)
        q = q.order_by(MonitorEventModel.id.desc()).limit(limit)
        result = await self.session.execute(q)
        rows = result.scalars().all()
        return [
            {
                "id": r.id,
                "event_type": r.event_type,
                "symbol": r.symbol,
                "payload": r.payload,
                "created_at": r.created_at.isoformat() if r.created_at else None,
            }
            for r in rows
        ]
