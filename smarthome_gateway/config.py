"""Configuration management using Pydantic Settings"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = "sqlite:///./smarthome.db"

    # Ledger
    ledger_backend: Literal["sql", "memory"] = "sql"
    endorsing_bank: str = "bank1"
    scan_page_size: int = Field(100, gt=0)
    max_conflict_retries: int = Field(3, ge=0)
    seed_ledger_on_startup: bool = False

    # Workflow policy
    missing_endorsement_policy: Literal["approve", "reject"] = "approve"
    strict_floor_parsing: bool = True
    enforce_monotonic_floors: bool = True

    # Service
    service_name: str = "smarthome-gateway"
    log_level: str = "INFO"


settings = Settings()
