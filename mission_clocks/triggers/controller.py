"""
Scheduler controller.

Orchestrates one mission's clock:
1. Initialize - build, sort and persist the initial triggers
2. RegisterDocument - add a document expiry later on
3. CancelAll - wipe persisted state
4. Wakeup - fire every due trigger and re-arm for the next one
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from mission_clocks.errors import ValidationError
from mission_clocks.triggers.alarm import AlarmScheduler
from mission_clocks.triggers.emitter import TriggerEmitter
from mission_clocks.triggers.models import (
    InitializeRequest,
    RegisterDocumentRequest,
    Trigger,
    TriggerType,
    parse_instant,
    utc_now,
)
from mission_clocks.triggers.store import TriggerStore

logger = logging.getLogger(__name__)


def build_initial_triggers(request: InitializeRequest) -> List[Trigger]:
    """
    Build the initial trigger list from an initialize request.

    Raises ValidationError on the first unparseable time or missing
    documentId, before anything is written.
    """
    triggers = []

    if request.t72_lock_time:
        triggers.append(Trigger(
            type=TriggerType.T72_LOCK,
            time=parse_instant(request.t72_lock_time, "t72LockTime")
        ))

    if request.t48_lock_time:
        triggers.append(Trigger(
            type=TriggerType.T48_LOCK,
            time=parse_instant(request.t48_lock_time, "t48LockTime")
        ))

    for i, sla in enumerate(request.sla_deadlines):
        triggers.append(Trigger(
            type=TriggerType.SLA_BREACH,
            time=parse_instant(sla.time, f"slaDeadlines[{i}].time"),
            meta=sla.meta
        ))

    for i, doc in enumerate(request.document_expirations):
        triggers.append(_document_trigger(doc.document_id, doc.expiry, f"documentExpirations[{i}]"))

    return triggers


def _document_trigger(document_id: Optional[str], expiry: Any, field: str) -> Trigger:
    if not document_id:
        raise ValidationError(f"{field}.documentId required")
    return Trigger(
        type=TriggerType.DOCUMENT_EXPIRED,
        time=parse_instant(expiry, f"{field}.expiry"),
        meta={"documentId": document_id}
    )


class SchedulerController:
    """Runs the trigger lifecycle for one scheduler instance."""

    def __init__(
        self,
        instance_id: str,
        store: TriggerStore,
        alarm: AlarmScheduler,
        emitter: TriggerEmitter,
        clock: Callable[[], datetime] = utc_now
    ):
        self.instance_id = instance_id
        self.store = store
        self.alarm = alarm
        self.emitter = emitter
        self.clock = clock

    async def initialize(self, request: InitializeRequest) -> Dict[str, str]:
        """Set the mission and its initial triggers, overwriting prior state."""
        if not request.mission_id:
            raise ValidationError("missionId required")
        if request.mission_id != self.instance_id:
            raise ValidationError(
                f"missionId {request.mission_id!r} does not match scheduler {self.instance_id!r}"
            )

        triggers = build_initial_triggers(request)

        ordered = self.store.replace(
            request.mission_id,
            triggers,
            departure_time=request.departure_time
        )
        next_alarm = self.alarm.rearm()

        logger.info(
            f"Mission {request.mission_id} initialized with {len(ordered)} trigger(s), "
            f"next alarm {next_alarm.isoformat() if next_alarm else 'none'}"
        )
        return {"status": "initialized"}

    async def register_document(self, request: RegisterDocumentRequest) -> Dict[str, str]:
        """Add a DOCUMENT_EXPIRED trigger and re-arm."""
        trigger = _document_trigger(request.document_id, request.expiry, "document")

        self.store.insert(trigger)
        self.alarm.rearm()

        logger.info(f"Document {request.document_id} registered for {self.instance_id}, expires {trigger.time.isoformat()}")
        return {"status": "registered"}

    async def cancel_all(self) -> Dict[str, str]:
        """
        Clear all persisted state.

        The armed wakeup is left alone; when it fires it finds nothing to do.
        """
        self.store.clear()
        logger.info(f"All timers cancelled for {self.instance_id}")
        return {"status": "cancelled"}

    async def alarm_fired(self) -> List[Trigger]:
        """
        Handle a wakeup.

        Returns the triggers that were fired, in ascending time order.
        """
        # Documents may be registered before initialize; the instance is addressed by mission id
        mission_id = self.store.mission_id() or self.instance_id
        pending = self.store.load()

        if not pending:
            logger.info(f"Wakeup for {self.instance_id} with no pending triggers, ignoring")
            return []

        now = self.clock()
        due = self.store.extract_due(now)

        if not due:
            logger.warning(f"Early wakeup for {self.instance_id}, nothing due at {now.isoformat()}")
            self.alarm.rearm()
            return []

        for trigger in due:
            logger.info(f"Firing {trigger.type.value} for {mission_id} (due {trigger.time.isoformat()})")
            await self.emitter.emit(mission_id, trigger)

        self.alarm.rearm()
        return due
