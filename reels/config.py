import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _origins_env() -> tuple:
    raw = os.getenv("CORS_ORIGINS", "http://localhost:3000")
    return tuple(o.strip() for o in raw.split(",") if o.strip())


@dataclass(frozen=True)
class Settings:
    # RunwayML
    runway_api_key: str = ""
    runway_api_base: str = "https://api.dev.runwayml.com/v1"
    runway_api_version: str = "2024-11-06"
    runway_model: str = "gen4_turbo"
    runway_ratio: str = "720:1280"  # 9:16 reels format
    webhook_secret: str = ""

    # Store
    redis_url: Optional[str] = None

    environment: str = "development"

    # Poller
    poll_interval_seconds: float = 2.0
    poll_backoff_seconds: float = 5.0
    max_task_lifetime_seconds: float = 600.0

    cors_origins: tuple = field(default_factory=tuple)

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            runway_api_key=os.getenv("RUNWAYML_API_KEY", ""),
            runway_api_base=os.getenv("RUNWAY_API_BASE", cls.runway_api_base),
            runway_api_version=os.getenv("RUNWAY_API_VERSION", cls.runway_api_version),
            runway_model=os.getenv("RUNWAY_MODEL", cls.runway_model),
            runway_ratio=os.getenv("RUNWAY_RATIO", cls.runway_ratio),
            webhook_secret=os.getenv("RUNWAY_WEBHOOK_SECRET", ""),
            redis_url=os.getenv("REDIS_URL") or None,
            environment=os.getenv("ENVIRONMENT", "development").lower(),
            poll_interval_seconds=_float_env("POLL_INTERVAL_SECONDS", 2.0),
            poll_backoff_seconds=_float_env("POLL_BACKOFF_SECONDS", 5.0),
            max_task_lifetime_seconds=_float_env("MAX_TASK_LIFETIME_SECONDS", 600.0),
            cors_origins=_origins_env(),
        )
