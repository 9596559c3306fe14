"""Database package for durable scheduler state."""

from mission_clocks.db.database import (
    create_db_engine, create_session_factory, init_db, session_scope
)
from mission_clocks.db.models import Base, MissionStorageEntry, MissionAlarm
from mission_clocks.db.storage import MissionStorage

__all__ = [
    "create_db_engine",
    "create_session_factory",
    "init_db",
    "session_scope",
    "Base",
    "MissionStorageEntry",
    "MissionAlarm",
    "MissionStorage",
]
