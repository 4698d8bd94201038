from datetime import datetime, timezone
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from perp_risk.core.config import ExecutionConfig, RiskConfig
from perp_risk.domain.models import AccountState, DailyStatus, Decision, FeatureSnapshot, PositionSummary
from perp_risk.infrastructure.db.database import Base
from perp_risk.infrastructure.db import models  # noqa: F401


@pytest.fixture()
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    db_path = tmp_path / "test.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def session_factory(db_engine) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    yield factory


@pytest.fixture()
def risk_config() -> RiskConfig:
    return RiskConfig(
        max_trade_risk=0.01,
        max_daily_loss=0.03,
        max_exposure=0.20,
        confidence_full_risk=0.80,
        confidence_half_risk=0.60,
        daily_loss_reset_hour=0,
    )


@pytest.fixture()
def execution_config() -> ExecutionConfig:
    return ExecutionConfig(slippage=0.01, time_in_force="IOC", post_only=False, embed_protection=False)


@pytest.fixture()
def now() -> datetime:
    return datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def flat_account(now) -> AccountState:
    return AccountState(equity=10_000.0, balance=10_000.0, current_exposure_percent=0.0, timestamp=now)


@pytest.fixture()
def btc_features(now) -> FeatureSnapshot:
    return FeatureSnapshot(symbol="BTC", atr_absolute=500.0, last_price=50_000.0, generated_at=now)


@pytest.fixture()
def open_long() -> Decision:
    return Decision(
        symbol="BTC",
        intent="OPEN",
        direction="LONG",
        target_exposure_pct=0.15,
        confidence=0.85,
        stop_loss="49000",
        take_profit="53000",
        reasoning="breakout above range",
    )


@pytest.fixture()
def no_position() -> PositionSummary:
    return PositionSummary()


@pytest.fixture()
def fresh_day() -> DailyStatus:
    return DailyStatus(trading_date="2026-03-02", start_equity=10_000.0, current_equity=10_000.0)
