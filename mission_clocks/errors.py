"""Error taxonomy for mission clocks."""


class MissionClockError(Exception):
    """Base class for all mission clock errors."""


class ValidationError(MissionClockError):
    """Missing or malformed caller input. Raised before any state is touched."""


class DeliveryError(MissionClockError):
    """An outbound notification attempt failed. Contained inside the emitter."""

    def __init__(self, sink: str, message: str):
        super().__init__(f"{sink}: {message}")
        self.sink = sink


class StorageError(MissionClockError):
    """A durable read or write failed. Fatal to the current operation."""
