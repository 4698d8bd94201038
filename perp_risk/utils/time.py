"""Time utilities (UTC)."""

from datetime import date, datetime, timedelta, timezone


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def now_utc_naive() -> datetime:
    """
    Current time in UTC, returned as naive datetime for DB storage.
    """
    return now_utc().replace(tzinfo=None)


def to_utc(dt: datetime) -> datetime:
    """Convert to an aware UTC datetime. Naive values are assumed to be UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def trading_day(ts: datetime, reset_hour: int) -> date:
    """
    Accounting day for `ts` when the trading day starts at `reset_hour` UTC.

    A reset hour of 8 means 07:59 UTC still belongs to the previous day.
    Out-of-range hours fall back to midnight.
    """
    if reset_hour < 0 or reset_hour > 23:
        reset_hour = 0
    shifted = to_utc(ts) - timedelta(hours=reset_hour)
    return shifted.date()


def trading_date_key(ts: datetime, reset_hour: int) -> str:
    return trading_day(ts, reset_hour).isoformat()
