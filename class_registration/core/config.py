# class_registration/core/config.py
"""Application configuration using Pydantic."""
from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    database_url: str = 'sqlite+aiosqlite:///./class_registration.db'
    redis_url: Optional[str] = None

    app_name: str = 'class_registration'
    app_version: str = '1.0.0'
    environment: str = 'development'
    log_level: str = 'info'
    allowed_origins: List[str] = ['*']

    # Per-class locking and retry policy
    lock_backend: str = 'local'  # "local" or "redis"
    lock_timeout_seconds: float = 10.0
    lock_expire_seconds: float = 30.0
    max_retries: int = 3
    retry_backoff_seconds: float = 0.05
    statement_timeout_seconds: int = 30

    # Shared secret the payment provider bridge sends in X-Webhook-Token
    payment_webhook_token: Optional[str] = None

    model_config = {
        'env_file': '.env',
        'extra': 'ignore'
    }

settings = Settings()
