import asyncio
import logging

import pytest
from sqlalchemy import inspect

from perp_risk.config import Settings
from perp_risk.core.config import SchedulerConfig
from perp_risk.core.errors import ConfigurationError
from perp_risk.infrastructure.broker.http_client import HttpBrokerClient
from perp_risk.infrastructure.broker.paper_client import PaperBrokerClient
from perp_risk.infrastructure.db.repositories.risk_ledger_repository import SqlDailyRiskLedger
from perp_risk.main import build_asset_states, build_broker_client, run, shutdown, startup
from perp_risk.services.monitor_service import MonitorService
from perp_risk.services.trading_cycle import AssetCycleInput


@pytest.fixture(autouse=True)
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'bootstrap.db'}",
        LOG_FILE="",
        SCHEDULER_LOOP_INTERVAL_SECONDS=0.01,
        SCHEDULER_DECISION_INTERVAL_SECONDS=300.0,
    )


def test_broker_selection():
    assert isinstance(build_broker_client(Settings(_env_file=None)), PaperBrokerClient)

    live = Settings(_env_file=None, BROKER_DRY_RUN=False, BROKER_BASE_URL="https://broker.test/api")
    assert isinstance(build_broker_client(live), HttpBrokerClient)


def test_asset_states_keyed_by_symbol_base():
    states = build_asset_states([" BTC/USDC:USDC", "eth/usdc:usdc"], SchedulerConfig(decision_interval_seconds=600))

    assert [(s.asset, s.symbol) for s in states] == [("BTC", "BTC/USDC:USDC"), ("ETH", "eth/usdc:usdc")]
    assert states[0].decision_interval.total_seconds() == 600


@pytest.mark.asyncio
@pytest.mark.integration
async def test_startup_creates_tables_and_wires_cycle(settings):
    runtime = await startup(settings)
    try:
        async with runtime.engine.connect() as conn:
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        assert {"risk_daily_metrics", "risk_activity_log"} <= set(tables)
        assert isinstance(runtime.cycle.ledger, SqlDailyRiskLedger)
        assert isinstance(runtime.cycle.sink, MonitorService)
        assert runtime.scheduler.loop_interval_seconds == 0.01
    finally:
        await shutdown(runtime)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_invalid_risk_settings_fail_startup(tmp_path):
    bad = Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'bad.db'}",
        LOG_FILE="",
        RISK_MAX_EXPOSURE=0.0,
    )

    with pytest.raises(ConfigurationError):
        await startup(bad)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_run_trades_until_cancelled(settings, open_long, btc_features, flat_account, no_position):
    broker = PaperBrokerClient()
    fetched = asyncio.Event()

    async def fetch_inputs(states):
        fetched.set()
        return {
            "BTC": AssetCycleInput(
                decision=open_long,
                features=btc_features,
                position=no_position,
                account=flat_account,
            )
        }

    task = asyncio.create_task(run(settings, ["BTC/USDC:USDC"], fetch_inputs, broker_client=broker))
    await asyncio.wait_for(fetched.wait(), timeout=5)
    for _ in range(100):
        if broker.orders:
            break
        await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert broker.orders[0]["symbol"] == "BTC/USDC:USDC"
