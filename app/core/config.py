"""Environment-driven configuration for the repair ledger.

Every tunable lives on :class:`AppSettings`. Values come from the process
environment or from ``.env``/``.env.local`` files and are read once; the
cached instance is exposed as ``settings`` so modules can simply import it.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Environment-driven application configuration."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Repair Ledger"
    DATA_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parent.parent.parent / "data")
    TZ: str = "Asia/Kolkata"
    LOG_LEVEL: str = "INFO"

    # Headless API access; empty means the API is open (local single-user install).
    API_KEY: str = Field(default="", validation_alias=AliasChoices("API_KEY", "API_TOKEN"))

    # Master password guarding export/import/clear. A bcrypt hash wins over plain text.
    MASTER_PASSWORD: str = "change-me"
    MASTER_PASSWORD_HASH: str = ""

    DB_URL: str = Field(
        default="",
        validation_alias=AliasChoices("DATABASE_URL", "DB_URL"),
    )

    HOST: str = "0.0.0.0"
    PORT: int = 8090

    # Identifier formats: prefix + zero padded sequence number.
    JOB_ID_PREFIX: str = "JOB-"
    JOB_ID_PADDING: int = 4
    JOB_ID_START: int = 1
    ESTIMATE_PREFIX: str = "EST-"
    ESTIMATE_PADDING: int = 4
    ESTIMATE_START: int = 1

    # Report rendering
    CURRENCY_SYMBOL: str = "₹"
    REPORT_DATE_FORMAT: str = "%d/%m/%Y"

    @field_validator("JOB_ID_START", "ESTIMATE_START", "JOB_ID_PADDING", "ESTIMATE_PADDING")
    @classmethod
    def non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("identifier settings must be non-negative")
        return value

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def upper_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper() or "INFO"
        return value


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    settings = AppSettings()
    settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    if not settings.DB_URL:
        settings.DB_URL = f"sqlite:///{settings.DATA_DIR / 'ledger.db'}"
    return settings


settings = get_settings()
