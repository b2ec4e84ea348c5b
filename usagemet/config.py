"""
Configuration Settings
Environment-driven settings for storage locations, the HTTP server,
logging and report thresholds.
"""

from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from .analytics import EngagementThresholds


class Settings(BaseSettings):
    # Storage
    DATA_DIR: Path = Field(Path("analytics-data"), description="Directory holding the log and stats files")
    EVENTS_FILENAME: str = Field("events.jsonl", description="Event log file name")
    STATS_FILENAME: str = Field("stats.json", description="Aggregate stats file name")

    # HTTP server
    HOST: str = Field("0.0.0.0", description="Bind address")
    PORT: int = Field(3000, ge=1, le=65535, description="Listen port")
    CORS_ORIGINS: List[str] = Field(default=["*"], description="Allowed CORS origins")
    RECENT_EVENTS_LIMIT: int = Field(100, ge=0, description="Default number of recent sessions returned")

    # Reporting
    TOP_USERS_LIMIT: int = Field(5, ge=1, description="Users listed in the activity ranking")
    LOW_CONVERSION_RATE: float = Field(50.0, description="Conversion rate (%) below which engagement is low")
    HIGH_CONVERSION_RATE: float = Field(80.0, description="Conversion rate (%) above which engagement is high")
    LOW_CALCULATIONS_PER_SESSION: float = Field(2.0, description="Calculations per session considered low")
    HIGH_CALCULATIONS_PER_SESSION: float = Field(5.0, description="Calculations per session considered high")
    SHARE_NUDGE_MIN_CALCULATIONS: int = Field(10, ge=0, description="Calculations without shares that trigger a flag")

    # Logging
    LOG_LEVEL: str = Field("INFO", description="Logging level")
    LOG_FORMAT: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string",
    )
    LOG_FILE: Optional[Path] = Field(None, description="Log file path (optional)")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of {allowed}")
        return v.upper()

    @property
    def events_path(self) -> Path:
        return self.DATA_DIR / self.EVENTS_FILENAME

    @property
    def stats_path(self) -> Path:
        return self.DATA_DIR / self.STATS_FILENAME

    def engagement_thresholds(self) -> EngagementThresholds:
        """Get recommendation thresholds"""
        return EngagementThresholds(
            low_conversion_rate=self.LOW_CONVERSION_RATE,
            high_conversion_rate=self.HIGH_CONVERSION_RATE,
            low_calculations_per_session=self.LOW_CALCULATIONS_PER_SESSION,
            high_calculations_per_session=self.HIGH_CALCULATIONS_PER_SESSION,
            share_nudge_min_calculations=self.SHARE_NUDGE_MIN_CALCULATIONS,
        )

    class Config:
        case_sensitive = True
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "USAGEMET_"
