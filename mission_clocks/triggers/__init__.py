"""Trigger system for mission clocks - ordered deadlines, wakeups and notifications."""

from mission_clocks.triggers.models import Trigger, TriggerType
from mission_clocks.triggers.store import TriggerStore
from mission_clocks.triggers.alarm import AlarmClock, AlarmScheduler
from mission_clocks.triggers.emitter import TriggerEmitter, EmitResult
from mission_clocks.triggers.controller import SchedulerController
from mission_clocks.triggers.registry import SchedulerRegistry

__all__ = [
    "Trigger",
    "TriggerType",
    "TriggerStore",
    "AlarmClock",
    "AlarmScheduler",
    "TriggerEmitter",
    "EmitResult",
    "SchedulerController",
    "SchedulerRegistry",
]
