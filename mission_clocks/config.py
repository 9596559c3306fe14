"""
Service configuration.

Values come from the environment, with a project-level .env file loaded first:
- DATABASE_URL / DB_ECHO for the durable store
- MISSION_CONTROL_API_URL / MISSION_COMMS_URL for the notification sinks
- NOTIFY_TIMEOUT_SECONDS, ALARM_* and LOG_LEVEL for tuning
"""

import os
import logging
from pathlib import Path
from typing import Optional
from pydantic import BaseModel
from dotenv import load_dotenv

project_root = Path(__file__).parent.parent
load_dotenv(project_root / ".env")


class Settings(BaseModel):
    """Runtime settings for the scheduler service."""
    database_url: str = f"sqlite:///{project_root / 'mission_clocks.db'}"
    db_echo: bool = False
    mission_control_api_url: Optional[str] = None  # Primary sink
    mission_comms_url: Optional[str] = None  # Secondary sink
    notify_timeout_seconds: float = 10.0
    alarm_catchup_seconds: float = 1.0  # Delay used when the head is already due
    alarm_retry_seconds: float = 2.0
    alarm_max_retries: int = 6
    log_level: str = "INFO"


def get_settings() -> Settings:
    """Build settings from the current environment."""
    defaults = Settings()
    return Settings(
        database_url=os.getenv("DATABASE_URL", defaults.database_url),
        db_echo=os.getenv("DB_ECHO", "false").lower() == "true",
        mission_control_api_url=os.getenv("MISSION_CONTROL_API_URL") or None,
        mission_comms_url=os.getenv("MISSION_COMMS_URL") or None,
        notify_timeout_seconds=float(os.getenv("NOTIFY_TIMEOUT_SECONDS", defaults.notify_timeout_seconds)),
        alarm_catchup_seconds=float(os.getenv("ALARM_CATCHUP_SECONDS", defaults.alarm_catchup_seconds)),
        alarm_retry_seconds=float(os.getenv("ALARM_RETRY_SECONDS", defaults.alarm_retry_seconds)),
        alarm_max_retries=int(os.getenv("ALARM_MAX_RETRIES", defaults.alarm_max_retries)),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
    )


def configure_logging(settings: Settings) -> None:
    """Set up root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
