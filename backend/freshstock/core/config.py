# backend/freshstock/core/config.py

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    app_env: str = "dev"
    log_level: str = "INFO"

    # ---------- DATABASE ----------
    database_url: str = "sqlite:///./freshstock.db"

    # ---------- AUTH ----------
    jwt_secret_key: str = "dev-secret-change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 10080

    # comma-separated allowlist, e.g. "https://app.example.com,http://localhost:3000"
    cors_origins: str = "http://localhost:3000"

    # ---------- SCHEDULER ----------
    scheduler_enabled: bool = True
    scheduler_timezone: str = "America/New_York"
    low_stock_hourly_cron: str = "0 * * * *"
    low_stock_daily_cron: str = "0 9 * * *"
    auto_renew_cron: str = "0 10 * * *"
    auto_reorder_cron: str = "*/30 * * * *"

    # ---------- REORDER POLICY ----------
    expected_delivery_days: int = 2
    currency_symbol: str = "₹"
    # off: every sweep creates a fresh pending order for a still-low product
    suppress_duplicate_auto_orders: bool = False

    # ---------- REAL-TIME ----------
    # events buffered per websocket client before new ones are dropped
    ws_queue_size: int = 100

    # ---------- EMAIL ----------
    send_emails: bool = False
    smtp_server: str = "localhost"
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    from_email: str = "inventory@freshstock.local"

    @property
    def allow_origins(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
