"""
Event Ledger - Settings

Read from the environment and an optional .env file.
"""

from decimal import Decimal
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ===========================================
    # SERVICE
    # ===========================================
    app_name: str = "Event Ledger"
    app_env: str = "development"
    debug: bool = False

    # ===========================================
    # DATABASE
    # ===========================================
    # e.g. postgresql+asyncpg://ledger:secret@db:5432/event_ledger
    database_url_async: str = "sqlite+aiosqlite:///./event_ledger.db"
    database_echo: bool = False

    # ===========================================
    # POSTING
    # ===========================================
    # Used for a line when neither the handler nor the company setting names an account
    system_default_debit_account: str = "6790"   # Other Operating Expenses
    system_default_credit_account: str = "4490"  # Other Operating Revenue

    balance_tolerance: Decimal = Decimal("0.01")

    # JE-2026-00001
    journal_reference_prefix: str = "JE"
    journal_sequence_name: str = "journal_entry_number"

    pending_batch_limit: int = 100

    # ===========================================
    # CORS
    # ===========================================
    cors_origins: str = "http://localhost:3000,http://localhost:8000"

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_development(self) -> bool:
        return self.app_env.lower() == "development"


@lru_cache()
def get_settings() -> Settings:
    """Settings are parsed once per process."""
    return Settings()


settings = get_settings()
