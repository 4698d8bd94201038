"""
Application bootstrap
Wires settings, logging, database, broker client and the trading cycle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from perp_risk.config import Settings
from perp_risk.core.config import ExecutionConfig, RiskConfig, SchedulerConfig
from perp_risk.core.logging import setup_logging
from perp_risk.domain.services.execution_planner import ExecutionPlanner
from perp_risk.domain.services.order_submitter import BrokerClient, OrderSubmitter
from perp_risk.domain.services.risk_evaluator import RiskEvaluator
from perp_risk.infrastructure.broker.http_client import HttpBrokerClient
from perp_risk.infrastructure.broker.paper_client import PaperBrokerClient
from perp_risk.infrastructure.db.database import build_engine, build_session_factory, init_db
from perp_risk.infrastructure.db.repositories.risk_ledger_repository import SqlDailyRiskLedger
from perp_risk.services.monitor_service import MonitorService
from perp_risk.services.trading_cycle import AssetSchedulingState, InputFetcher, TradingCycle

logger = logging.getLogger(__name__)


def build_broker_client(settings: Settings) -> BrokerClient:
    if settings.BROKER_DRY_RUN or not settings.BROKER_BASE_URL:
        logger.info("Broker: paper trading (dry run)")
        return PaperBrokerClient()
    logger.info("Broker: %s", settings.BROKER_BASE_URL)
    return HttpBrokerClient(
        base_url=settings.BROKER_BASE_URL,
        api_key=settings.BROKER_API_KEY,
        api_secret=settings.BROKER_API_SECRET,
        timeout_seconds=settings.BROKER_TIMEOUT_SECONDS,
    )


def build_trading_cycle(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    broker_client: BrokerClient,
) -> TradingCycle:
    """Validate every config section up front; ConfigurationError is fatal."""
    risk_config = RiskConfig.from_settings(settings)
    execution_config = ExecutionConfig.from_settings(settings)

    return TradingCycle(
        ledger=SqlDailyRiskLedger(session_factory, risk_config),
        evaluator=RiskEvaluator(risk_config),
        planner=ExecutionPlanner(execution_config),
        submitter_factory=lambda symbol: OrderSubmitter.from_config(broker_client, symbol, execution_config),
        sink=MonitorService(session_factory),
    )


def build_asset_states(symbols: Sequence[str], scheduler: SchedulerConfig) -> List[AssetSchedulingState]:
    """Asset key is the base of the trading symbol: "BTC/USDC:USDC" -> "BTC"."""
    states = []
    for symbol in symbols:
        asset = symbol.strip().split("/", 1)[0].split(":", 1)[0].upper()
        states.append(
            AssetSchedulingState(
                asset=asset,
                symbol=symbol.strip(),
                decision_interval=timedelta(seconds=scheduler.decision_interval_seconds),
            )
        )
    return states


@dataclass
class Runtime:
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    cycle: TradingCycle
    scheduler: SchedulerConfig


async def startup(settings: Settings, broker_client: Optional[BrokerClient] = None) -> Runtime:
    setup_logging(
        settings.LOG_LEVEL,
        settings.LOG_FILE or None,
        max_bytes=settings.LOG_MAX_BYTES,
        backup_count=settings.LOG_BACKUP_COUNT,
    )
    logger.info("Starting perp-risk (%s)", settings.APP_ENV)

    scheduler = SchedulerConfig.from_settings(settings)
    engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    try:
        await init_db(engine)
        session_factory = build_session_factory(engine)
        cycle = build_trading_cycle(settings, session_factory, broker_client or build_broker_client(settings))
    except Exception:
        await engine.dispose()
        raise
    logger.info("Trading cycle ready")
    return Runtime(engine=engine, session_factory=session_factory, cycle=cycle, scheduler=scheduler)


async def shutdown(runtime: Runtime) -> None:
    await runtime.engine.dispose()
    logger.info("Database connections closed")


async def run(
    settings: Settings,
    symbols: Sequence[str],
    fetch_inputs: InputFetcher,
    broker_client: Optional[BrokerClient] = None,
) -> None:
    """
    Process entry point for an embedding service: start, loop until the
    task is cancelled, then release the database.

    `fetch_inputs` supplies decisions, features, positions and account
    state per asset; market data and the decision model live outside
    this package.
    """
    runtime = await startup(settings, broker_client)
    try:
        states = build_asset_states(symbols, runtime.scheduler)
        await runtime.cycle.run_forever(states, fetch_inputs, runtime.scheduler.loop_interval_seconds)
    finally:
        await shutdown(runtime)
