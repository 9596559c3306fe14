"""
Trigger store.

Holds the mission identifier and the pending trigger collection of one
scheduler instance. The collection is persisted in ascending time order and
every mutation re-reads it from storage first.
"""

import logging
from datetime import datetime
from typing import Any, List, Optional

from mission_clocks.db.storage import MissionStorage
from mission_clocks.errors import ValidationError
from mission_clocks.triggers.models import Trigger

logger = logging.getLogger(__name__)

MISSION_KEY = "missionId"
TRIGGERS_KEY = "triggers"
DEPARTURE_KEY = "departureTime"


def sort_triggers(triggers: List[Trigger]) -> List[Trigger]:
    """Return triggers in ascending time order. Ties keep their input order."""
    return sorted(triggers, key=lambda t: t.time)


class TriggerStore:
    """Ordered, durable trigger collection for one mission."""

    def __init__(self, storage: MissionStorage):
        self.storage = storage

    # =============================================================================
    # Mission
    # =============================================================================

    def mission_id(self) -> Optional[str]:
        return self.storage.get(MISSION_KEY)

    def departure_time(self) -> Any:
        return self.storage.get(DEPARTURE_KEY)

    def set_mission(self, mission_id: str) -> None:
        """Persist the mission identifier."""
        if not mission_id:
            raise ValidationError("missionId required")
        self.storage.put(MISSION_KEY, mission_id)

    # =============================================================================
    # Triggers
    # =============================================================================

    def load(self) -> Optional[List[Trigger]]:
        """Load the trigger collection, or None if none has been stored."""
        records = self.storage.get(TRIGGERS_KEY)
        if records is None:
            return None
        return [Trigger.model_validate(record) for record in records]

    def _save(self, triggers: List[Trigger]) -> None:
        self.storage.put(TRIGGERS_KEY, [t.to_record() for t in triggers])

    def replace(
        self,
        mission_id: str,
        triggers: List[Trigger],
        departure_time: Any = None
    ) -> List[Trigger]:
        """
        Overwrite mission identifier and trigger collection in one write.

        Used by initialization; no merge with previously stored triggers.
        """
        if not mission_id:
            raise ValidationError("missionId required")

        ordered = sort_triggers(triggers)
        entries = {
            MISSION_KEY: mission_id,
            TRIGGERS_KEY: [t.to_record() for t in ordered],
        }
        remove = []
        if departure_time is not None:
            entries[DEPARTURE_KEY] = departure_time
        else:
            remove.append(DEPARTURE_KEY)

        self.storage.put_many(entries, remove=remove)
        return ordered

    def bulk_insert(self, triggers: List[Trigger]) -> List[Trigger]:
        """Append triggers and re-sort the whole collection. No de-duplication."""
        current = self.load() or []
        ordered = sort_triggers(current + list(triggers))
        self._save(ordered)
        return ordered

    def insert(self, trigger: Trigger) -> List[Trigger]:
        return self.bulk_insert([trigger])

    def extract_due(self, now: datetime) -> List[Trigger]:
        """
        Remove and return every trigger with time <= now.

        The remainder is persisted unchanged in order. Nothing is written
        when no trigger is due.
        """
        current = self.load() or []
        due = [t for t in current if t.time <= now]
        if not due:
            return []

        remaining = [t for t in current if t.time > now]
        self._save(remaining)
        logger.info(f"Extracted {len(due)} due trigger(s), {len(remaining)} pending")
        return due

    def peek_earliest(self) -> Optional[Trigger]:
        """The trigger with the smallest time, or None if the collection is empty."""
        current = self.load()
        if not current:
            return None
        return current[0]

    def clear(self) -> int:
        """Remove every persisted key of this instance."""
        removed = self.storage.delete_all()
        logger.info(f"Cleared {removed} stored key(s) for {self.storage.instance_id}")
        return removed
