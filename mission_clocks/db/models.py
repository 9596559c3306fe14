"""
Database models for mission scheduler state.

Stores the per-instance key/value record and the armed wakeup per instance.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON, UniqueConstraint
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class MissionStorageEntry(Base):
    """One persisted key of a scheduler instance (missionId, triggers, ...)."""
    __tablename__ = "mission_storage"
    __table_args__ = (
        UniqueConstraint("instance_id", "key", name="uq_mission_storage_instance_key"),
    )

    id = Column(Integer, primary_key=True)
    instance_id = Column(String(255), nullable=False, index=True)
    key = Column(String(255), nullable=False)
    value = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)


class MissionAlarm(Base):
    """The single armed wakeup of a scheduler instance (UTC, naive)."""
    __tablename__ = "mission_alarms"

    id = Column(Integer, primary_key=True)
    instance_id = Column(String(255), unique=True, nullable=False, index=True)
    scheduled_at = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)
