# backend/garden_booking/config.py

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # repository root


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/garden.db"
    redis_url: str = "redis://localhost:6379/0"

    # "today" for every booking/schedule decision is resolved in this zone
    business_timezone: str = "America/Edmonton"

    slot_lock_timeout_seconds: float = 5.0

    horizon_min_days: int = 365
    horizon_target_days: int = 400
    horizon_batch_days: int = 31
    horizon_check_interval_seconds: int = 86400
    horizon_check_enabled: bool = True

    availability_cache_ttl_seconds: int = 60
    max_units_per_booking: int = 20

    create_tables_on_startup: bool = False

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite:///./"):
            # relative sqlite path -> absolute, anchored at the repository root
            relative_path = url.replace("sqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            return f"sqlite:///{absolute_path}"
        return url


settings = Settings()
