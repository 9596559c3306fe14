from __future__ import annotations

import pytest

from conftest import at
from mission_clocks.errors import ValidationError
from mission_clocks.triggers.models import Trigger, TriggerType
from mission_clocks.triggers.store import TriggerStore


def _trigger(kind: TriggerType, seconds: float, **meta) -> Trigger:
    return Trigger(type=kind, time=at(seconds), meta=meta or None)


def _times(triggers) -> list[float]:
    return [(t.time - at(0)).total_seconds() for t in triggers]


def test_bulk_insert_keeps_collection_sorted(store: TriggerStore) -> None:
    store.bulk_insert([
        _trigger(TriggerType.T72_LOCK, 30),
        _trigger(TriggerType.T48_LOCK, 10),
    ])
    store.insert(_trigger(TriggerType.DOCUMENT_EXPIRED, 20, documentId="visa"))
    store.bulk_insert([_trigger(TriggerType.SLA_BREACH, 5), _trigger(TriggerType.SLA_BREACH, 40)])

    assert _times(store.load()) == [5, 10, 20, 30, 40]


def test_identical_triggers_are_not_deduplicated(store: TriggerStore) -> None:
    trigger = _trigger(TriggerType.SLA_BREACH, 10, sla="gold")
    store.insert(trigger)
    store.insert(trigger)

    assert store.load() == [trigger, trigger]


def test_extract_due_splits_on_now(store: TriggerStore) -> None:
    store.bulk_insert([_trigger(TriggerType.SLA_BREACH, s) for s in (1, 5, 5, 9, 12)])

    due = store.extract_due(at(5))

    assert _times(due) == [1, 5, 5]
    assert _times(store.load()) == [9, 12]


def test_extract_due_with_nothing_due_leaves_collection(store: TriggerStore) -> None:
    store.bulk_insert([_trigger(TriggerType.T72_LOCK, 10)])

    assert store.extract_due(at(9)) == []
    assert _times(store.load()) == [10]


def test_extract_due_can_empty_the_collection(store: TriggerStore) -> None:
    store.bulk_insert([_trigger(TriggerType.T72_LOCK, 10)])

    store.extract_due(at(10))

    assert store.load() == []
    assert store.peek_earliest() is None


def test_peek_earliest(store: TriggerStore) -> None:
    assert store.load() is None
    assert store.peek_earliest() is None

    store.bulk_insert([_trigger(TriggerType.T72_LOCK, 10), _trigger(TriggerType.T48_LOCK, 3)])

    earliest = store.peek_earliest()
    assert earliest.type == TriggerType.T48_LOCK
    assert _times(store.load()) == [3, 10]


def test_set_mission_requires_identifier(store: TriggerStore) -> None:
    with pytest.raises(ValidationError):
        store.set_mission("")
    assert store.mission_id() is None

    store.set_mission("mission-1")
    assert store.mission_id() == "mission-1"


def test_replace_overwrites_previous_state(store: TriggerStore) -> None:
    store.replace("mission-1", [_trigger(TriggerType.T72_LOCK, 10)], departure_time="2026-03-05T08:00:00Z")
    store.replace("mission-1", [_trigger(TriggerType.T48_LOCK, 4), _trigger(TriggerType.SLA_BREACH, 2)])

    assert [t.type for t in store.load()] == [TriggerType.SLA_BREACH, TriggerType.T48_LOCK]
    assert store.departure_time() is None


def test_clear_removes_every_key(store: TriggerStore) -> None:
    store.replace("mission-1", [_trigger(TriggerType.T72_LOCK, 10)], departure_time="2026-03-05T08:00:00Z")
    store.storage.put("scratch", {"anything": True})

    store.clear()

    assert store.storage.keys() == []
    assert store.mission_id() is None
    assert store.load() is None


def test_instances_do_not_share_state(session_factory) -> None:
    from mission_clocks.db.storage import MissionStorage

    first = TriggerStore(MissionStorage(session_factory, "mission-1"))
    second = TriggerStore(MissionStorage(session_factory, "mission-2"))
    first.insert(_trigger(TriggerType.T72_LOCK, 10))

    second.clear()

    assert second.load() is None
    assert _times(first.load()) == [10]
