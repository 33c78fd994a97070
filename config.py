import logging
import os
from functools import lru_cache


class Settings:
    def __init__(
        self,
        timezone: str,
        week_starts_on: int,
        currency: str,
        log_level: str,
    ) -> None:
        self.timezone = timezone
        self.week_starts_on = week_starts_on
        self.currency = currency
        self.log_level = log_level


def _week_start_from_env() -> int:
    raw = os.getenv("ROLLUP_WEEK_STARTS_ON", "0")
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"ROLLUP_WEEK_STARTS_ON must be an integer, got {raw!r}") from exc
    if not 0 <= value <= 6:
        raise ValueError("ROLLUP_WEEK_STARTS_ON must be between 0 (Monday) and 6 (Sunday)")
    return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    timezone = os.getenv("ROLLUP_TIMEZONE", "Asia/Riyadh")
    week_starts_on = _week_start_from_env()
    currency = os.getenv("ROLLUP_CURRENCY", "SAR").upper()
    log_level = os.getenv("ROLLUP_LOG_LEVEL", "INFO").upper()
    return Settings(
        timezone=timezone,
        week_starts_on=week_starts_on,
        currency=currency,
        log_level=log_level,
    )


def configure_logging() -> None:
    level = get_settings().log_level
    logging.basicConfig(level=level)
    logging.getLogger().setLevel(level)
