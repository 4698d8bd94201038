import logging

import pytest

from perp_risk.config import Settings
from perp_risk.core.config import ExecutionConfig, RiskConfig, SchedulerConfig
from perp_risk.core.errors import ConfigurationError
from perp_risk.utils.logging_redaction import RedactingFilter, redact_message


def test_settings_sections_validate_from_defaults():
    settings = Settings(_env_file=None)

    assert RiskConfig.from_settings(settings).max_exposure == 0.20
    assert ExecutionConfig.from_settings(settings).time_in_force == "IOC"
    assert SchedulerConfig.from_settings(settings).decision_interval_seconds == 300.0


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("RISK_MAX_EXPOSURE", "0.35")
    monkeypatch.setenv("EXECUTION_TIME_IN_FORCE", "gtc")

    settings = Settings(_env_file=None)

    assert RiskConfig.from_settings(settings).max_exposure == 0.35
    assert ExecutionConfig.from_settings(settings).time_in_force == "GTC"


@pytest.mark.parametrize(
    "config",
    [
        ExecutionConfig(slippage=0.5),
        ExecutionConfig(time_in_force="DAY"),
        ExecutionConfig(max_retry_attempts=0),
        ExecutionConfig(retry_backoff_seconds=-1.0),
    ],
)
def test_invalid_execution_config(config):
    with pytest.raises(ConfigurationError):
        config.validate()


def test_invalid_reset_hour():
    with pytest.raises(ConfigurationError, match="daily_loss_reset_hour"):
        RiskConfig(daily_loss_reset_hour=24).validate()


def test_scheduler_interval_ordering():
    with pytest.raises(ConfigurationError):
        SchedulerConfig(loop_interval_seconds=60.0, decision_interval_seconds=30.0).validate()


def test_redaction_masks_broker_credentials():
    message = redact_message("headers api_key=abc123 Authorization: Bearer tok.en-1 signature: 0xdeadbeef")

    assert "abc123" not in message
    assert "tok.en-1" not in message
    assert "0xdeadbeef" not in message
    assert "[REDACTED]" in message


def test_redacting_filter_rewrites_record():
    record = logging.LogRecord("broker", logging.INFO, __file__, 1, "api_secret=%s", ("s3cr3t",), None)

    assert RedactingFilter().filter(record) is True
    assert record.getMessage() == "api_secret=[REDACTED]"
