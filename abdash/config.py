import logging
import os
from dataclasses import dataclass
from typing import Any, Optional

from dotenv import load_dotenv

from .power import DEFAULT_MINIMUM_DURATION, MAX_ALLOWED_DURATION, MIN_ALLOWED_DURATION

logger = logging.getLogger(__name__)


def coerce_minimum_duration(raw: Any, fallback: int = DEFAULT_MINIMUM_DURATION) -> int:
    """
    User-entered minimum duration -> days in [7, 90].

    Non-integer input keeps the fallback; integers are clamped.
    """
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        logger.warning("invalid minimum duration %r, keeping %d", raw, fallback)
        return fallback
    return min(max(value, MIN_ALLOWED_DURATION), MAX_ALLOWED_DURATION)


@dataclass
class Settings:
    minimum_duration_days: int = DEFAULT_MINIMUM_DURATION
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "Settings":
        # .env values never override variables already set in the environment
        load_dotenv(dotenv_path)
        raw_duration = os.getenv("ABDASH_MINIMUM_DURATION_DAYS")
        return cls(
            minimum_duration_days=(
                DEFAULT_MINIMUM_DURATION if raw_duration is None
                else coerce_minimum_duration(raw_duration)
            ),
            log_level=os.getenv("ABDASH_LOG_LEVEL", default="INFO"),
            log_file=os.getenv("ABDASH_LOG_FILE") or None,
        )

    def __repr__(self):
        return (f"<Settings minimum_duration_days={self.minimum_duration_days} "
                f"log_level={self.log_level} log_file={self.log_file}>")
