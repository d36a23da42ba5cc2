"""Configuration management for the stat fetcher."""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigurationError
from .utils import now_utc

logger = logging.getLogger(__name__)

SINCE_DATE_FORMAT = "%Y-%m-%d"
DEFAULT_LOOKBACK_YEARS = 2


def default_since_date(now: Optional[datetime] = None) -> datetime:
    """Return the same calendar moment two years before ``now``."""
    now = now or now_utc()
    try:
        return now.replace(year=now.year - DEFAULT_LOOKBACK_YEARS)
    except ValueError:
        # Feb 29 rolls forward to Mar 1
        return now.replace(month=3, day=1, year=now.year - DEFAULT_LOOKBACK_YEARS)


def parse_since_date(value: Optional[str]) -> datetime:
    """
    Parse SINCE_DATE (YYYY-MM-DD) as midnight UTC.

    Missing or invalid values fall back to the two-year default; an invalid
    value is reported as a warning.
    """
    if not value:
        return default_since_date()
    try:
        return datetime.strptime(value, SINCE_DATE_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        logger.warning("Invalid SINCE_DATE format (use YYYY-MM-DD), using default (2 years ago)")
        return default_since_date()


def parse_workers(value: Optional[str]) -> int:
    """Parse GITLAB_WORKERS; missing, invalid or non-positive values mean 1."""
    if not value:
        return 1
    try:
        workers = int(value)
    except ValueError:
        logger.warning(f"Invalid GITLAB_WORKERS value {value!r}, using 1 worker")
        return 1
    if workers < 1:
        logger.warning(f"GITLAB_WORKERS must be at least 1 (got {workers}), using 1 worker")
        return 1
    return workers


@dataclass(frozen=True)
class FetcherConfig:
    """Immutable configuration, built once at program entry."""

    # Required settings
    gitlab_base_url: str
    gitlab_token: str
    output_dir: str

    # Optional settings with defaults
    workers: int = 1
    since_date: datetime = field(default_factory=default_since_date)
    skip_discussions: bool = False
    timeout: int = 30
    verify_ssl: bool = True
    log_level: str = "INFO"
    log_format: str = "text"

    def __post_init__(self):
        """Validate configuration after initialization."""
        missing = [
            name
            for name, value in (
                ("GITLAB_URL", self.gitlab_base_url),
                ("GITLAB_TOKEN", self.gitlab_token),
                ("DATA_FOLDER", self.output_dir),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}"
            )
        if self.workers < 1:
            raise ConfigurationError(f"workers must be at least 1, got {self.workers}")

        # Frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "gitlab_base_url", self.gitlab_base_url.rstrip("/"))
        object.__setattr__(self, "output_dir", os.path.expanduser(self.output_dir))

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir)

    @classmethod
    def from_env(cls, **overrides) -> "FetcherConfig":
        """Create configuration from environment variables with optional overrides."""
        load_dotenv()

        config_dict = {
            "gitlab_base_url": os.getenv("GITLAB_URL", ""),
            "gitlab_token": os.getenv("GITLAB_TOKEN", ""),
            "output_dir": os.getenv("DATA_FOLDER", ""),
            "workers": parse_workers(os.getenv("GITLAB_WORKERS")),
            "since_date": parse_since_date(os.getenv("SINCE_DATE")),
            "timeout": int(os.getenv("TIMEOUT", "30")),
            "verify_ssl": os.getenv("VERIFY_SSL", "true").lower() == "true",
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
            "log_format": os.getenv("LOG_FORMAT", "text"),
        }

        # Apply overrides (filter out None values from CLI)
        for key, value in overrides.items():
            if value is not None:
                config_dict[key] = value

        return cls(**config_dict)


def ensure_output_dir(config: FetcherConfig) -> Path:
    """
    Ensure the output directory exists and return it as a Path.

    Args:
        config: Fetcher configuration

    Returns:
        Path object for the output directory
    """
    output_path = config.output_path
    output_path.mkdir(parents=True, exist_ok=True)
    return output_path
