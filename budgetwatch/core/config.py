from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "postgresql+psycopg://postgres:postgres@db:5432/budgetwatch"
    app_env: str = "dev"
    app_cors_origins: str = "*"
    # Session cookie auth
    auth_secret: str = "change-me"
    auth_cookie_name: str = "budgetwatch_session"
    auth_session_hours: float = 12.0
    # Budget evaluation
    default_alert_threshold: float = 80.0
    evaluation_concurrency: int = 4
    ledger_timeout_seconds: float = 10.0
    notify_timeout_seconds: float = 15.0
    # Alert delivery channels; unset channels are skipped
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_from: str | None = None
    slack_webhook_url: str | None = None


settings = Settings()
