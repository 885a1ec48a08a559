"""Configuration management using Pydantic Settings"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = "sqlite:///./rcard.db"

    # Service
    service_name: str = "rcard-gateway"
    log_level: str = "INFO"

    # Loans
    loan_min_amount: float = 100.0  # Credits
    loan_max_days: int = 180
    loan_min_wait_days: int = 7
    loan_year_cap_counts_paid: bool = False
    base_catalog_path: str | None = None

    # Organization payment API
    org_max_time_drift: int = 15  # Seconds
    org_nonce_expiry: int = 300  # Seconds
    record_declined_charges: bool = True

    # Per-owner locking
    lock_timeout_seconds: float = 5.0

    # HTTP Client
    payment_api_base: str = "http://localhost:8000"
    http_timeout_seconds: float = 5.0


settings = Settings()
