"""mission-clocks - per-mission deadline timers with durable wakeups."""

__version__ = "0.1.0"
