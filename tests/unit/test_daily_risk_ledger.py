from datetime import datetime, timedelta, timezone

import pytest

from perp_risk.core.config import RiskConfig
from perp_risk.domain.services.daily_risk_ledger import (
    DAILY_HALT_EVENT,
    InMemoryDailyRiskLedger,
    compute_loss_percent,
)
from perp_risk.utils.time import trading_date_key


@pytest.fixture()
def ledger(risk_config) -> InMemoryDailyRiskLedger:
    return InMemoryDailyRiskLedger(risk_config)


@pytest.mark.asyncio
async def test_first_update_records_start_equity(ledger, now):
    status = await ledger.update(now, 100_000.0)

    assert status.trading_date == "2026-03-02"
    assert status.start_equity == 100_000.0
    assert status.current_equity == 100_000.0
    assert status.loss_percent == 0.0
    assert status.halted is False


@pytest.mark.asyncio
async def test_first_update_never_halts_even_with_tiny_equity(ledger, now):
    status = await ledger.update(now, 1.0)

    assert status.halted is False


@pytest.mark.asyncio
async def test_scenario_b_loss_breach_halts(ledger, now):
    await ledger.update(now, 100_000.0)

    status = await ledger.update(now + timedelta(hours=1), 96_500.0)

    assert status.loss_percent == pytest.approx(-0.035)
    assert status.halted is True
    events = await ledger.list_events("2026-03-02")
    assert [e.event_type for e in events] == [DAILY_HALT_EVENT]


@pytest.mark.asyncio
async def test_loss_at_exact_limit_halts(ledger, now):
    await ledger.update(now, 100_000.0)

    status = await ledger.update(now, 97_000.0)

    assert status.halted is True


@pytest.mark.asyncio
async def test_halt_is_sticky_within_day(ledger, now):
    await ledger.update(now, 100_000.0)
    await ledger.update(now + timedelta(minutes=5), 96_000.0)

    recovered = await ledger.update(now + timedelta(minutes=10), 101_000.0)

    assert recovered.halted is True
    assert recovered.loss_percent == pytest.approx(0.01)
    # the halt is logged once, not on every later update
    assert len(await ledger.list_events()) == 1


@pytest.mark.asyncio
async def test_new_trading_day_resets(ledger, now):
    await ledger.update(now, 100_000.0)
    await ledger.update(now, 90_000.0)

    next_day = await ledger.update(now + timedelta(days=1), 90_000.0)

    assert next_day.trading_date == "2026-03-03"
    assert next_day.start_equity == 90_000.0
    assert next_day.halted is False


@pytest.mark.asyncio
async def test_reset_hour_shifts_trading_day():
    ledger = InMemoryDailyRiskLedger(RiskConfig(daily_loss_reset_hour=8))
    before_reset = datetime(2026, 3, 2, 7, 59, tzinfo=timezone.utc)
    after_reset = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)

    first = await ledger.update(before_reset, 100_000.0)
    second = await ledger.update(after_reset, 95_000.0)

    assert first.trading_date == "2026-03-01"
    assert second.trading_date == "2026-03-02"
    assert second.halted is False


@pytest.mark.asyncio
async def test_log_event_and_status_lookup(ledger, now):
    await ledger.update(now, 50_000.0)
    await ledger.log_event("manual_note", "operator paused BTC", details="ticket 42", trading_date="2026-03-02")

    events = await ledger.list_events("2026-03-02")
    status = await ledger.get_status("2026-03-02")

    assert events[0].message == "operator paused BTC"
    assert events[0].details == "ticket 42"
    assert status is not None and status.start_equity == 50_000.0
    assert await ledger.get_status("2020-01-01") is None


@pytest.mark.asyncio
async def test_log_event_requires_type(ledger):
    with pytest.raises(ValueError):
        await ledger.log_event("", "missing type")


def test_compute_loss_percent_guards_zero_start():
    assert compute_loss_percent(0.0, 100.0) == 0.0
    assert compute_loss_percent(200.0, 150.0) == pytest.approx(-0.25)


def test_naive_timestamps_treated_as_utc():
    assert trading_date_key(datetime(2026, 3, 2, 0, 30), 1) == "2026-03-01"
