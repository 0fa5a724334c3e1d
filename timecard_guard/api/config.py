"""
Configuration management using Pydantic Settings.
Loads from environment variables or .env file.
"""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    API configuration loaded from environment variables.

    Usage:
        # .env file
        PAYROLL_API_URL=http://localhost:4000
        PAYROLL_API_TOKEN=eyJhbGciOi...
        AUTO_SCAN_INTERVAL_SECONDS=60

        # In code
        from timecard_guard.api.config import settings
        print(settings.PAYROLL_API_URL)
    """
    # Payroll backend
    PAYROLL_API_URL: str = "http://localhost:4000"
    PAYROLL_API_TOKEN: Optional[str] = None
    OPERATOR_ROLE: str = "admin"
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Blocked-employee mirror
    BLOCKED_STORE_PATH: str = "data/anomaly_blocked_employees.json"

    # Detection policy
    ANOMALY_SCORE_THRESHOLD: float = 0.55
    TRAINING_SAMPLES: int = 300
    MODEL_RANDOM_STATE: int = 42

    # Scheduling
    AUTO_SCAN_ENABLED: bool = True
    AUTO_SCAN_INTERVAL_SECONDS: int = 60

    # API settings
    API_TITLE: str = "Timecard Anomaly Detection API"
    API_VERSION: str = "1.0.0"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra env vars like PYTHONPATH
    )


# Global settings instance
settings = Settings()
