"""
Database Models (SQLAlchemy ORM)
risk_activity_log and monitor_event are insert-only - NO DELETES
"""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, JSON, Numeric, String, Text

from perp_risk.infrastructure.db.database import Base
from perp_risk.utils.time import now_utc_naive


class RiskDailyMetricModel(Base):
    """One row per account trading day"""
    __tablename__ = "risk_daily_metrics"

    trading_date = Column(String(10), primary_key=True)
    start_equity = Column(Numeric(20, 8), nullable=False)
    current_equity = Column(Numeric(20, 8), nullable=False)
    halted = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime, nullable=False, default=now_utc_naive)


class RiskActivityLogModel(Base):
    """Append-only risk audit trail"""
    __tablename__ = "risk_activity_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    occurred_at = Column(DateTime, nullable=False, default=now_utc_naive)
    event_type = Column(String(50), nullable=False)
    message = Column(Text, nullable=False)
    details = Column(Text, nullable=True)
    trading_date = Column(String(10), nullable=True)

    __table_args__ = (
        Index("idx_risk_activity_date", "trading_date"),
    )


class MonitorEventModel(Base):
    """Evaluation / plan / execution records emitted every cycle"""
    __tablename__ = "monitor_event"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_type = Column(String(30), nullable=False, index=True)
    symbol = Column(String(50), nullable=True)
    payload = Column(JSON, nullable=False)
    created_at = Column(DateTime, nullable=False, default=now_utc_naive)

    __table_args__ = (
        Index("idx_monitor_event_type_created", "event_type", "created_at"),
    )
