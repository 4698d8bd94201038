"""
Application Settings
Load from environment variables
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment"""

    # ======================
    # Database
    # ======================
    DATABASE_URL: str = "sqlite+aiosqlite:///./perp_risk.db"

    # ======================
    # Application
    # ======================
    APP_ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/perp_risk.log"
    LOG_MAX_BYTES: int = 10_485_760
    LOG_BACKUP_COUNT: int = 5

    # ======================
    # Risk limits
    # ======================
    RISK_MAX_TRADE_RISK: float = 0.01
    RISK_MAX_DAILY_LOSS: float = 0.03
    RISK_MAX_EXPOSURE: float = 0.20
    RISK_CONFIDENCE_FULL_RISK: float = 0.80
    RISK_CONFIDENCE_HALF_RISK: float = 0.60
    RISK_DAILY_LOSS_RESET_HOUR: int = 0

    # ======================
    # Execution
    # ======================
    EXECUTION_SLIPPAGE: float = 0.01
    EXECUTION_TIME_IN_FORCE: str = "IOC"
    EXECUTION_POST_ONLY: bool = False
    EXECUTION_EMBED_PROTECTION: bool = False
    EXECUTION_MAX_RETRY_ATTEMPTS: int = 3
    EXECUTION_RETRY_BACKOFF_SECONDS: float = 1.0

    # ======================
    # Broker
    # ======================
    BROKER_BASE_URL: str = ""
    BROKER_API_KEY: str = ""
    BROKER_API_SECRET: str = ""
    BROKER_TIMEOUT_SECONDS: float = 10.0
    BROKER_DRY_RUN: bool = True

    # ======================
    # Scheduler
    # ======================
    SCHEDULER_LOOP_INTERVAL_SECONDS: float = 60.0
    SCHEDULER_DECISION_INTERVAL_SECONDS: float = 300.0

    # ======================
    # Pydantic v2 config
    # ======================
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="forbid",
    )


settings = Settings()
