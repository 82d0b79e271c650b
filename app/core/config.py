import os
import logging
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)

class Settings(BaseSettings):
    # --- APP BASICS ---
    app_name: str = "Order Ledger"
    environment: str = "development"
    log_level: str = "INFO"
    allowed_hosts: str = "*"

    # --- DATABASE & REDIS ---
    database_url: str
    redis_url: str
    event_stream: str = "order_events"

    # --- STORAGE GUARDS ---
    storage_timeout_seconds: float = 5.0
    storage_retry_attempts: int = 3
    storage_retry_backoff_seconds: float = 0.1

    # --- ORDER RULES ---
    undo_confirmation_window_hours: int = 24
    confirmed_archive_days: int = 5
    low_stock_threshold: int = 5
    # Markers younger than this may belong to a request still in flight
    repair_older_than_seconds: int = 60

    # --- RATE LIMITS (slowapi syntax) ---
    manual_order_rate_limit: str = "30/minute"
    stock_adjust_rate_limit: str = "60/minute"


    def __init__(self, **values):
        super().__init__(**values)

        # Check for Railway, If we are on railway, DO NOT touch the strings.
        is_railway = os.environ.get("RAILWAY_ENVIRONMENT_ID") is not None

        # Check for Docker (Local Compose)
        is_docker = os.path.exists("/.dockerenv")

        if is_railway:
            logger.info("Railway environment detected. Using Dashboard variables as provided.")
        elif is_docker:
            logger.info("Local Docker detected. Routing traffic to service names")

            target_db = "ledger_db"

            self.database_url = self.database_url.replace("localhost", target_db).replace("127.0.0.1", target_db)
            self.redis_url = self.redis_url.replace("localhost", "redis").replace("127.0.0.1", "redis")
        else:
            logger.info("Local OS detected. Using localhost connections.")


    model_config = SettingsConfigDict(
        # System environment variables always override the .env file.
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="allow",
        case_sensitive=False
    )

settings = Settings()
