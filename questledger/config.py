"""Application configuration management."""
from pydantic import model_validator, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from functools import lru_cache
from sqlalchemy.engine.url import make_url, URL
from typing import Annotated, Optional
import logging

SQLITE_LOCAL_URL = "sqlite+aiosqlite:///./questledger.db"

DEFAULT_STAT_LABELS = ["STR", "INT", "VIT", "CHA", "DIS", "CAR", "CRE"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = SQLITE_LOCAL_URL
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # Redis (optional, falls back to in-memory)
    redis_url: str = ""

    # Application
    environment: str = "development"

    # Durable quest cache
    quest_cache_ttl_seconds: int = 7 * 24 * 60 * 60  # 7 days
    quest_cache_key_prefix: str = "quests_"

    # Reward ledger
    discipline_label: str = "DIS"
    stat_labels: Annotated[list[str], NoDecode] = DEFAULT_STAT_LABELS
    default_stat_base_value: int = 5
    default_discipline_increment: int = 1

    # Notifications
    notification_history_limit: int = 5

    # Opt-in per-quest lock; commands on one quest id are otherwise serialized by the caller
    enforce_single_flight: bool = False

    @field_validator("stat_labels", mode="before")
    @classmethod
    def parse_stat_labels(cls, value):
        """Parse comma-separated stat labels from environment variables."""
        if value is None:
            return list(DEFAULT_STAT_LABELS)
        if isinstance(value, str):
            items = [item.strip().upper() for item in value.split(",") if item.strip()]
        elif isinstance(value, (list, tuple, set)):
            items = [str(item).strip().upper() for item in value if str(item).strip()]
        else:
            raise TypeError("stat_labels must be provided as a string or sequence")
        return items

    @model_validator(mode="after")
    def validate_all_config(self):
        """Validate ledger configuration and normalize Postgres URLs."""
        logger = logging.getLogger(__name__)

        self.discipline_label = self.discipline_label.strip().upper()
        if self.discipline_label not in self.stat_labels:
            raise ValueError(
                f"discipline_label {self.discipline_label!r} must be one of stat_labels {self.stat_labels}"
            )

        if self.quest_cache_ttl_seconds < 1:
            raise ValueError("quest_cache_ttl_seconds must be at least 1 second")

        if self.default_stat_base_value < 0:
            raise ValueError("default_stat_base_value cannot be negative")

        if self.default_discipline_increment < 0:
            raise ValueError("default_discipline_increment cannot be negative")

        if self.notification_history_limit < 1:
            raise ValueError("notification_history_limit must be at least 1")

        # Database URL normalization
        url = self.database_url
        if not url:
            logger.warning("Empty DATABASE_URL, using SQLite fallback")
            self.database_url = SQLITE_LOCAL_URL
            return self

        parsed: Optional[URL] = None
        try:
            parsed = make_url(url)
        except Exception as e:  # pragma: no cover
            logger.error(f"Failed to parse DATABASE_URL: {e}")
            logger.warning("Invalid DATABASE_URL; falling back to default sqlite database.")
            self.database_url = SQLITE_LOCAL_URL
            return self

        drivername = parsed.drivername
        if drivername.startswith("postgres") and "+asyncpg" not in drivername:
            old_drivername = drivername
            parsed = parsed.set(drivername="postgresql+asyncpg")
            logger.info(f"Driver normalized: {old_drivername} -> {parsed.drivername}")
        # Use render_as_string to properly re-encode special characters in password
        self.database_url = parsed.render_as_string(hide_password=False)

        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
