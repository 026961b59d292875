# backend/washbook/config.py

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # repository root


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/washbook.db"
    redis_url: str = "redis://localhost:6379/0"
    redis_socket_timeout: float = 2.0

    log_level: str = "INFO"

    # "redis" (shared, multi-instance) or "memory" (single process)
    hold_backend: str = "redis"

    # Booking / slots
    slot_step_minutes: int = 30
    hold_ttl_seconds: int = 300
    hold_tombstone_seconds: int = 3600
    min_advance_minutes: int = 0
    horizon_days: int = 30
    cancellation_deadline_hours: int = 24
    auto_confirm_bookings: bool = False

    # Transient failure retries (Redis / database)
    retry_attempts: int = 3
    retry_base_delay: float = 0.05
    retry_max_delay: float = 1.0

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite:///./"):
            # Relative sqlite paths are resolved against the repository root
            relative_path = url.replace("sqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            return f"sqlite:///{absolute_path}"
        return url


settings = Settings()
