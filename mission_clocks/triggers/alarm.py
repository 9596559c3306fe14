"""
Wakeup alarms.

AlarmClock is the single-shot wakeup primitive: one armed instant per
scheduler instance, persisted so it survives restarts, backed by an asyncio
timer in the running process.

AlarmScheduler decides which instant to arm from the head of a trigger store.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, Optional, Set

from mission_clocks.db.database import SessionFactory, session_scope
from mission_clocks.db.models import MissionAlarm
from mission_clocks.triggers.models import as_utc, utc_now
from mission_clocks.triggers.store import TriggerStore

logger = logging.getLogger(__name__)

AlarmHandler = Callable[[str], Awaitable[None]]


def _to_db(value: datetime) -> datetime:
    return as_utc(value).replace(tzinfo=None)


def _from_db(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc)


class AlarmClock:
    """
    Persisted single-shot alarms keyed by instance identifier.

    Setting an alarm always replaces the previous one (last write wins).
    When an alarm fires its row is removed before the handler runs. A handler
    that raises is retried with exponential backoff up to max_retries times.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        on_alarm: Optional[AlarmHandler] = None,
        clock: Callable[[], datetime] = utc_now,
        retry_delay: timedelta = timedelta(seconds=2),
        max_retries: int = 6
    ):
        self.session_factory = session_factory
        self.on_alarm = on_alarm
        self.clock = clock
        self.retry_delay = retry_delay
        self.max_retries = max_retries
        self._handles: Dict[str, asyncio.TimerHandle] = {}
        self._tasks: Set[asyncio.Task] = set()  # Handler runs may overlap for one instance
        self._attempts: Dict[str, int] = {}
        self._running = False

    # =============================================================================
    # Persisted alarm state
    # =============================================================================

    def get_alarm(self, instance_id: str) -> Optional[datetime]:
        """The armed instant for an instance, or None."""
        with session_scope(self.session_factory) as db:
            alarm = db.query(MissionAlarm).filter(
                MissionAlarm.instance_id == instance_id
            ).first()
            return _from_db(alarm.scheduled_at) if alarm else None

    def set_alarm(self, instance_id: str, at: datetime) -> datetime:
        """Arm (or re-arm) the wakeup for an instance."""
        with session_scope(self.session_factory) as db:
            alarm = db.query(MissionAlarm).filter(
                MissionAlarm.instance_id == instance_id
            ).first()
            if alarm:
                alarm.scheduled_at = _to_db(at)
            else:
                db.add(MissionAlarm(instance_id=instance_id, scheduled_at=_to_db(at)))

        at = as_utc(at)
        logger.info(f"Alarm armed for {instance_id} at {at.isoformat()}")
        self._schedule(instance_id, at)
        return at

    def delete_alarm(self, instance_id: str) -> bool:
        """Disarm the wakeup for an instance."""
        self._cancel_handle(instance_id)
        with session_scope(self.session_factory) as db:
            deleted = db.query(MissionAlarm).filter(
                MissionAlarm.instance_id == instance_id
            ).delete(synchronize_session=False)
            return deleted > 0

    # =============================================================================
    # In-process timers
    # =============================================================================

    def start(self) -> int:
        """
        Start dispatching alarms and re-arm every persisted one.

        Alarms whose instant has already passed fire immediately. Returns the
        number of restored alarms.
        """
        if self._running:
            logger.warning("Alarm clock already running")
            return 0

        self._running = True
        with session_scope(self.session_factory) as db:
            pending = [
                (alarm.instance_id, _from_db(alarm.scheduled_at))
                for alarm in db.query(MissionAlarm).all()
            ]

        for instance_id, at in pending:
            self._schedule(instance_id, at)

        logger.info(f"Alarm clock started, restored {len(pending)} alarm(s)")
        return len(pending)

    async def stop(self):
        """Cancel all in-process timers. Persisted alarms are kept."""
        if not self._running:
            return

        self._running = False
        for instance_id in list(self._handles):
            self._cancel_handle(instance_id)

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("Alarm clock stopped")

    def _cancel_handle(self, instance_id: str):
        handle = self._handles.pop(instance_id, None)
        if handle:
            handle.cancel()

    def _schedule(self, instance_id: str, at: datetime):
        if not self._running or self.on_alarm is None:
            return

        self._cancel_handle(instance_id)
        loop = asyncio.get_running_loop()
        delay = max(0.0, (at - self.clock()).total_seconds())
        self._handles[instance_id] = loop.call_later(delay, self._fire, instance_id, at)

    def _fire(self, instance_id: str, at: datetime):
        self._handles.pop(instance_id, None)
        task = asyncio.get_running_loop().create_task(self._run(instance_id, at))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, instance_id: str, at: datetime):
        """Consume the alarm and invoke the handler."""
        try:
            current = self.get_alarm(instance_id)
            if current is not None and current == at:
                self.delete_alarm(instance_id)

            await self.on_alarm(instance_id)
            self._attempts.pop(instance_id, None)

        except asyncio.CancelledError:
            raise
        except Exception as e:
            attempt = self._attempts.get(instance_id, 0) + 1
            logger.error(f"Alarm handler failed for {instance_id} (attempt {attempt}): {e}", exc_info=True)

            if attempt > self.max_retries:
                logger.error(f"Giving up on alarm for {instance_id} after {self.max_retries} retries")
                self._attempts.pop(instance_id, None)
                return

            self._attempts[instance_id] = attempt
            retry_at = self.clock() + self.retry_delay * (2 ** (attempt - 1))
            try:
                self.set_alarm(instance_id, retry_at)
            except Exception as retry_error:
                logger.error(f"Could not re-arm alarm for {instance_id}: {retry_error}", exc_info=True)


class AlarmScheduler:
    """Keeps exactly one wakeup armed for the earliest pending trigger."""

    def __init__(
        self,
        instance_id: str,
        store: TriggerStore,
        alarm_clock: AlarmClock,
        clock: Callable[[], datetime] = utc_now,
        catchup_delay: timedelta = timedelta(seconds=1)
    ):
        self.instance_id = instance_id
        self.store = store
        self.alarm_clock = alarm_clock
        self.clock = clock
        self.catchup_delay = catchup_delay

    def rearm(self) -> Optional[datetime]:
        """
        Arm the wakeup for the earliest trigger.

        Returns the armed instant, or None when the collection is empty (any
        previously armed wakeup is left to fire as a no-op). A head that is
        already due gets a near-immediate wakeup instead of firing inline.
        """
        earliest = self.store.peek_earliest()
        if earliest is None:
            logger.debug(f"No pending triggers for {self.instance_id}, nothing armed")
            return None

        now = self.clock()
        if earliest.time > now:
            return self.alarm_clock.set_alarm(self.instance_id, earliest.time)

        return self.alarm_clock.set_alarm(self.instance_id, now + self.catchup_delay)
