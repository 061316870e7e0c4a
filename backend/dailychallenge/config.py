from __future__ import annotations
import os
from pydantic import BaseModel

class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "dev")
    app_name: str = os.getenv("APP_NAME", "daily-challenge-api")
    app_display_name: str = os.getenv("APP_DISPLAY_NAME", "Daily Challenge")
    app_version: str = os.getenv("APP_VERSION", "0.1.0")
    git_sha: str = os.getenv("GIT_SHA", "dev")
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
    database_url: str = os.getenv("DATABASE_URL", "postgresql+asyncpg://postgres:postgres@db:5432/dailychallenge_dev")
    redis_url: str = os.getenv("REDIS_URL", "redis://redis:6379/0")

    # Auth (identity is issued elsewhere; we only verify)
    jwt_secret: str = os.getenv("JWT_SECRET", "dev-secret-change-me")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")

    # Background work: "rq" enqueues to Redis workers, "inline" runs asyncio tasks in-process
    jobs_mode: str = os.getenv("JOBS_MODE", "rq")
    jobs_queue: str = os.getenv("JOBS_QUEUE", "default")

    # Test-Execution Service
    executor_url: str = os.getenv("EXECUTOR_URL", "http://executor:8080")
    executor_timeout_seconds: float = float(os.getenv("EXECUTOR_TIMEOUT_SECONDS", "10"))
    executor_max_concurrency: int = int(os.getenv("EXECUTOR_MAX_CONCURRENCY", "8"))

    # Scheduling
    schedule_horizon_days: int = int(os.getenv("SCHEDULE_HORIZON_DAYS", "30"))

    # Notifications (empty = log only)
    notification_webhook_url: str = os.getenv("NOTIFICATION_WEBHOOK_URL", "")
    notification_timeout_seconds: float = float(os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "3"))

settings = Settings()
