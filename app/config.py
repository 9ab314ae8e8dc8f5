from datetime import timedelta
from pathlib import Path
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # =================================================================
    # NUDGE BUDGET SETTINGS
    # =================================================================
    NUDGE_CAPACITY: int = 64  # pending-reminder ceiling imposed by the delivery platform
    NUDGE_HORIZON_HOURS: int = 48
    NUDGE_HOUR: int = 10  # fixed local hour reminders are placed at
    NUDGE_TIMEZONE: str = "UTC"
    NUDGE_FEW_PER_WEEK_DAYS: list[int] = [1, 3, 5]  # ISO weekdays: Mon, Wed, Fri
    NUDGE_NEW_CONTACT_MIN_OFFSET_MINUTES: int = 120
    NUDGE_NEW_CONTACT_MAX_OFFSET_MINUTES: int = 240
    NUDGE_MAX_CONCURRENT_RESERVATIONS: int = 10
    NUDGE_REFRESH_INTERVAL_MINUTES: int = 30
    NUDGE_TITLE: str = "Time to reach out"

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def nudge_horizon(self) -> timedelta:
        """Forward window candidates are generated in."""
        return timedelta(hours=self.NUDGE_HORIZON_HOURS)

    def nudge_tz(self) -> ZoneInfo:
        """Zone the fixed reminder hour and weekdays are read in."""
        return ZoneInfo(self.NUDGE_TIMEZONE)

    def get_new_contact_offset_window(self) -> tuple[timedelta, timedelta]:
        """
        Offset window for the first reminder of a never-reminded contact.
        Swaps the bounds if they were configured the wrong way round.
        """
        low = timedelta(minutes=self.NUDGE_NEW_CONTACT_MIN_OFFSET_MINUTES)
        high = timedelta(minutes=self.NUDGE_NEW_CONTACT_MAX_OFFSET_MINUTES)
        if high < low:
            low, high = high, low
        return low, high


settings = Settings()

# =================================================================
# QUICK CONFIGURATION REFERENCE
# =================================================================
"""
Override any value through the environment or .env.local:

iOS-LIKE CEILING (default):
    NUDGE_CAPACITY=64
    NUDGE_HORIZON_HOURS=48

WIDER LOOKAHEAD (fewer refreshes, coarser ranking):
    NUDGE_HORIZON_HOURS=96
    NUDGE_REFRESH_INTERVAL_MINUTES=120

LOCAL TIME PLACEMENT:
    NUDGE_TIMEZONE=Europe/Berlin
    NUDGE_HOUR=10
"""
