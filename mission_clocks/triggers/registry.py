"""
Scheduler registry.

Builds a controller per instance identifier on demand and serializes every
operation against the same instance with an asyncio lock, so initialize,
register, cancel and wakeup never interleave for one mission.
"""

import asyncio
import logging
import weakref
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List

from mission_clocks.db.database import SessionFactory
from mission_clocks.db.storage import MissionStorage
from mission_clocks.triggers.alarm import AlarmClock, AlarmScheduler
from mission_clocks.triggers.controller import SchedulerController
from mission_clocks.triggers.emitter import TriggerEmitter
from mission_clocks.triggers.models import (
    InitializeRequest,
    RegisterDocumentRequest,
    Trigger,
    utc_now,
)
from mission_clocks.triggers.store import TriggerStore

logger = logging.getLogger(__name__)


class SchedulerRegistry:
    """Entry point for all mission clock operations."""

    def __init__(
        self,
        session_factory: SessionFactory,
        emitter: TriggerEmitter,
        clock: Callable[[], datetime] = utc_now,
        catchup_delay: timedelta = timedelta(seconds=1),
        retry_delay: timedelta = timedelta(seconds=2),
        max_retries: int = 6
    ):
        self.session_factory = session_factory
        self.emitter = emitter
        self.clock = clock
        self.catchup_delay = catchup_delay
        self.alarm_clock = AlarmClock(
            session_factory,
            on_alarm=self.wakeup,
            clock=clock,
            retry_delay=retry_delay,
            max_retries=max_retries
        )
        # Entries vanish once no operation holds or waits on the lock
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock(self, instance_id: str) -> asyncio.Lock:
        lock = self._locks.get(instance_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[instance_id] = lock
        return lock

    def store(self, instance_id: str) -> TriggerStore:
        return TriggerStore(MissionStorage(self.session_factory, instance_id))

    def controller(self, instance_id: str) -> SchedulerController:
        """Build a controller bound to one instance. Holds no state of its own."""
        store = self.store(instance_id)
        alarm = AlarmScheduler(
            instance_id,
            store,
            self.alarm_clock,
            clock=self.clock,
            catchup_delay=self.catchup_delay
        )
        return SchedulerController(instance_id, store, alarm, self.emitter, clock=self.clock)

    # =============================================================================
    # Operations
    # =============================================================================

    async def initialize(self, instance_id: str, request: InitializeRequest) -> Dict[str, str]:
        async with self._lock(instance_id):
            return await self.controller(instance_id).initialize(request)

    async def register_document(self, instance_id: str, request: RegisterDocumentRequest) -> Dict[str, str]:
        async with self._lock(instance_id):
            return await self.controller(instance_id).register_document(request)

    async def cancel_all(self, instance_id: str) -> Dict[str, str]:
        async with self._lock(instance_id):
            return await self.controller(instance_id).cancel_all()

    async def wakeup(self, instance_id: str) -> List[Trigger]:
        """Alarm callback; also usable to force a wakeup."""
        async with self._lock(instance_id):
            return await self.controller(instance_id).alarm_fired()

    def status(self, instance_id: str) -> Dict[str, Any]:
        """Pending state of an instance. Fired triggers are not retained."""
        store = self.store(instance_id)
        triggers = store.load() or []
        next_alarm = self.alarm_clock.get_alarm(instance_id)
        return {
            "missionId": store.mission_id(),
            "departureTime": store.departure_time(),
            "triggers": [t.to_record() for t in triggers],
            "nextAlarm": next_alarm.isoformat() if next_alarm else None,
        }

    # =============================================================================
    # Lifecycle
    # =============================================================================

    def start(self) -> int:
        """Start dispatching alarms, restoring the ones persisted before a restart."""
        return self.alarm_clock.start()

    async def stop(self):
        await self.alarm_clock.stop()
