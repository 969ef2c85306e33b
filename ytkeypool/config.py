"""Configuration management for the YouTube key pool."""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dotenv import load_dotenv


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    api_keys: List[str] = field(default_factory=list)
    encryption_key: Optional[str] = None
    port: int = 8000
    host: str = "0.0.0.0"
    quota_threshold: int = 9000
    daily_quota_limit: int = 10000
    max_retries: int = 3
    selection_attempts: int = 3
    retry_delay_seconds: float = 1.0
    selection_pool_size: int = 10
    rotation_batch_size: int = 5
    quota_costs: Dict[str, int] = field(default_factory=dict)
    youtube_base_url: str = "https://www.googleapis.com/youtube/v3"
    log_level: str = "INFO"

    def __post_init__(self):
        if self.quota_threshold <= 0:
            raise ValueError("QUOTA_THRESHOLD must be a positive integer")
        if self.quota_threshold > self.daily_quota_limit:
            raise ValueError("QUOTA_THRESHOLD must not exceed DAILY_QUOTA_LIMIT")
        if self.max_retries < 0:
            raise ValueError("MAX_RETRIES must not be negative")
        if self.selection_attempts < 1:
            raise ValueError("SELECTION_ATTEMPTS must be at least 1")
        if self.selection_pool_size < 1:
            raise ValueError("SELECTION_POOL_SIZE must be at least 1")
        if self.rotation_batch_size < 1:
            raise ValueError("ROTATION_BATCH_SIZE must be at least 1")
        if self.retry_delay_seconds < 0:
            raise ValueError("RETRY_DELAY_SECONDS must not be negative")


def _parse_quota_costs(raw: str) -> Dict[str, int]:
    """Parse ``method=cost`` pairs, e.g. ``search.list=100,videos.list=1``."""
    costs: Dict[str, int] = {}
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        method, sep, cost = item.partition("=")
        if not sep or not method.strip():
            raise ValueError(f"Invalid QUOTA_COSTS entry: {item!r}")
        costs[method.strip()] = int(cost)
    return costs


def load_config(use_dotenv: bool = True) -> Config:
    """Load configuration from environment variables.

    Args:
        use_dotenv: Read a ``.env`` file into the environment first.

    Returns:
        Config: Configured application settings

    Raises:
        ValueError: If environment variables hold invalid values
    """
    if use_dotenv:
        load_dotenv()

    api_keys_raw = os.getenv("YOUTUBE_API_KEYS", "")
    api_keys = [key.strip() for key in api_keys_raw.split(",") if key.strip()]

    encryption_key = os.getenv("YOUTUBE_API_KEY_ENCRYPTION_KEY") or os.getenv(
        "ENCRYPTION_KEY"
    )

    return Config(
        api_keys=api_keys,
        encryption_key=encryption_key or None,
        port=int(os.getenv("PORT", "8000")),
        host=os.getenv("HOST", "0.0.0.0"),
        quota_threshold=int(os.getenv("QUOTA_THRESHOLD", "9000")),
        daily_quota_limit=int(os.getenv("DAILY_QUOTA_LIMIT", "10000")),
        max_retries=int(os.getenv("MAX_RETRIES", "3")),
        selection_attempts=int(os.getenv("SELECTION_ATTEMPTS", "3")),
        retry_delay_seconds=float(os.getenv("RETRY_DELAY_SECONDS", "1.0")),
        selection_pool_size=int(os.getenv("SELECTION_POOL_SIZE", "10")),
        rotation_batch_size=int(os.getenv("ROTATION_BATCH_SIZE", "5")),
        quota_costs=_parse_quota_costs(os.getenv("QUOTA_COSTS", "")),
        youtube_base_url=os.getenv(
            "YOUTUBE_BASE_URL", "https://www.googleapis.com/youtube/v3"
        ),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
