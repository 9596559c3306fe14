"""
Durable per-instance key/value storage.

Every scheduler instance owns a namespace of keys in the mission_storage
table. Reads and writes open their own session; nothing is cached between
calls, so state is always re-read from the store.
"""

from typing import Any, Dict, Iterable, List

from mission_clocks.db.database import SessionFactory, session_scope
from mission_clocks.db.models import MissionStorageEntry


class MissionStorage:
    """Key/value access scoped to one scheduler instance."""

    def __init__(self, session_factory: SessionFactory, instance_id: str):
        self.session_factory = session_factory
        self.instance_id = instance_id

    def _query(self, db):
        return db.query(MissionStorageEntry).filter(
            MissionStorageEntry.instance_id == self.instance_id
        )

    def get(self, key: str, default: Any = None) -> Any:
        """Get a stored value, or default if the key does not exist."""
        with session_scope(self.session_factory) as db:
            entry = self._query(db).filter(MissionStorageEntry.key == key).first()
            if entry is None:
                return default
            return entry.value

    def put(self, key: str, value: Any) -> None:
        """Store a single key."""
        self.put_many({key: value})

    def put_many(self, entries: Dict[str, Any], remove: Iterable[str] = ()) -> None:
        """
        Store several keys and delete others in one transaction.

        Either every change is committed or none is.
        """
        with session_scope(self.session_factory) as db:
            for key, value in entries.items():
                entry = self._query(db).filter(MissionStorageEntry.key == key).first()
                if entry:
                    entry.value = value
                else:
                    db.add(MissionStorageEntry(
                        instance_id=self.instance_id,
                        key=key,
                        value=value
                    ))
            removed = [key for key in remove if key not in entries]
            if removed:
                self._query(db).filter(
                    MissionStorageEntry.key.in_(removed)
                ).delete(synchronize_session=False)

    def delete(self, key: str) -> bool:
        """Delete a key. Returns True if it existed."""
        with session_scope(self.session_factory) as db:
            deleted = self._query(db).filter(
                MissionStorageEntry.key == key
            ).delete(synchronize_session=False)
            return deleted > 0

    def delete_all(self) -> int:
        """Delete every key of this instance. Returns the number removed."""
        with session_scope(self.session_factory) as db:
            return self._query(db).delete(synchronize_session=False)

    def keys(self) -> List[str]:
        """List the keys currently stored for this instance."""
        with session_scope(self.session_factory) as db:
            return [entry.key for entry in self._query(db).order_by(MissionStorageEntry.key).all()]
