"""Data models for the mission trigger system."""

from enum import Enum
from typing import Optional, Dict, Any, List, Union
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field

from mission_clocks.errors import ValidationError

# Accepted inbound time representations: ISO-8601 string, epoch milliseconds, datetime
TimeValue = Union[str, int, float, datetime]


class TriggerType(str, Enum):
    """Kinds of mission deadlines."""
    T72_LOCK = "T72_LOCK"
    T48_LOCK = "T48_LOCK"
    SLA_BREACH = "SLA_BREACH"
    DOCUMENT_EXPIRED = "DOCUMENT_EXPIRED"


class Trigger(BaseModel):
    """A pending, timestamped mission event."""
    type: TriggerType
    time: datetime  # Aware, UTC
    meta: Optional[Dict[str, Any]] = None

    def to_record(self) -> Dict[str, Any]:
        """Serialize for durable storage ({type, time, meta?})."""
        return self.model_dump(mode="json", exclude_none=True)


def utc_now() -> datetime:
    """Current wall-clock instant in UTC."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_instant(value: Any, field: str = "time") -> datetime:
    """
    Parse a caller-supplied time into an aware UTC datetime.

    Accepts ISO-8601 strings (trailing 'Z' allowed), epoch milliseconds and
    datetime objects. Anything else raises ValidationError.
    """
    if isinstance(value, datetime):
        return as_utc(value)

    if isinstance(value, bool):
        raise ValidationError(f"{field}: unparseable time value {value!r}")

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            raise ValidationError(f"{field}: time value out of range {value!r}")

    if isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
        except ValueError:
            raise ValidationError(f"{field}: unparseable time value {value!r}")
        return as_utc(parsed)

    raise ValidationError(f"{field}: unparseable time value {value!r}")


# =============================================================================
# Inbound requests
# =============================================================================

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SlaDeadline(_CamelModel):
    """An SLA deadline with opaque metadata."""
    time: Optional[TimeValue] = None
    meta: Optional[Dict[str, Any]] = None


class DocumentExpiration(_CamelModel):
    """A document that expires at a given instant."""
    document_id: Optional[str] = Field(default=None, alias="documentId")
    expiry: Optional[TimeValue] = None


class InitializeRequest(_CamelModel):
    """Initial mission clock configuration."""
    mission_id: Optional[str] = Field(default=None, alias="missionId")
    departure_time: Optional[Any] = Field(default=None, alias="departureTime")  # Informational only
    t72_lock_time: Optional[TimeValue] = Field(default=None, alias="t72LockTime")
    t48_lock_time: Optional[TimeValue] = Field(default=None, alias="t48LockTime")
    sla_deadlines: List[SlaDeadline] = Field(default_factory=list, alias="slaDeadlines")
    document_expirations: List[DocumentExpiration] = Field(default_factory=list, alias="documentExpirations")


class RegisterDocumentRequest(_CamelModel):
    """A document expiry discovered after initialization."""
    document_id: Optional[str] = Field(default=None, alias="documentId")
    expiry: Optional[TimeValue] = None
