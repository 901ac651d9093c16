from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReporterSettings(BaseSettings):
    """Reporter configuration, read from METRICS_REPORTER_* variables or .env."""

    model_config = SettingsConfigDict(
        env_prefix="METRICS_REPORTER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        env_parse_none_str="none",
    )

    url: str = "http://localhost:8086"
    database: str = "metrics"
    username: str = ""
    password: str = ""
    tag_host: bool = False
    interval_sec: float = 10.0
    ping_interval_sec: float = 5.0
    timeout_sec: Optional[float] = 10.0  # None disables the request timeout

    @field_validator("interval_sec", "ping_interval_sec")
    @classmethod
    def _positive(cls, v):
        if v <= 0:
            raise ValueError("must be > 0")
        return v


@lru_cache()
def get_settings() -> ReporterSettings:
    return ReporterSettings()
