from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load environment variables from .env file in project root
_project_root = Path(__file__).resolve().parents[3]
load_dotenv(_project_root / ".env")

# Singapore has no DST; a fixed offset avoids depending on the host tz database.
SINGAPORE_TZ = timezone(timedelta(hours=8), name="SGT")

Clock = Callable[[], datetime]


def singapore_now() -> datetime:
    return datetime.now(SINGAPORE_TZ)


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, read once from the environment."""

    lta_account_key: Optional[str] = None
    onemap_token: Optional[str] = None
    onemap_email: Optional[str] = None
    onemap_password: Optional[str] = None
    cache_dir: str = "./data/cache"
    cache_duration_s: int = 300
    log_level: str = "INFO"
    max_walk_distance: int = 1000
    request_timeout_s: int = 30

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            lta_account_key=os.getenv("LTA_ACCOUNT_KEY") or None,
            onemap_token=os.getenv("ONEMAP_TOKEN") or None,
            onemap_email=os.getenv("ONEMAP_EMAIL") or None,
            onemap_password=os.getenv("ONEMAP_PASSWORD") or None,
            cache_dir=os.getenv("CACHE_DIR", "./data/cache"),
            cache_duration_s=_env_int("CACHE_DURATION", 300),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            max_walk_distance=_env_int("MAX_WALK_DISTANCE", 1000),
            request_timeout_s=_env_int("REQUEST_TIMEOUT", 30),
        )

    def validate(self) -> List[str]:
        """Return the credentials that are missing (empty list if complete)."""
        missing = []
        if not self.lta_account_key:
            missing.append("LTA_ACCOUNT_KEY")
        if not self.onemap_token and not (self.onemap_email and self.onemap_password):
            missing.append("ONEMAP_TOKEN or ONEMAP_EMAIL/ONEMAP_PASSWORD")
        return missing


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %d", name, raw, default)
        return default
