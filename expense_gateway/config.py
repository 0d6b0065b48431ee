"""Configuration management using Pydantic Settings"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = "sqlite:///./expense_gateway.db"

    # External Services
    erp_sync_url: str = "http://localhost:8003/mock-erp/transactions"

    # Service
    service_name: str = "expense-gateway"
    log_level: str = "INFO"

    # HTTP Client
    http_timeout_seconds: float = 5.0
    erp_sync_max_retries: int = 5
    erp_sync_backoff_base: float = 1.0  # Exponential backoff base in seconds

    # Card issuing
    card_bin: str = "4571"
    card_validity_years: int = 2
    enforce_auto_suspend: bool = True

    # Wallet
    initial_wallet_balance_cents: int = 0


settings = Settings()
