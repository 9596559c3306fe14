"""
Trigger emitter.

Delivers a fired trigger to the two downstream sinks:
- mission-control API (primary): {missionId, eventType, meta}
- mission comms (secondary): {missionId, notificationType}

Each send is attempted exactly once. Failures are logged and swallowed.
"""

import logging
from typing import Any, Dict, Optional
import httpx
from pydantic import BaseModel

from mission_clocks.errors import DeliveryError
from mission_clocks.triggers.models import Trigger

logger = logging.getLogger(__name__)

PRIMARY_SINK = "mission-control-api"
SECONDARY_SINK = "mission-comms"


class EmitResult(BaseModel):
    """Per-sink outcome of one emission. Informational only."""
    primary_delivered: bool = False
    secondary_delivered: bool = False


class TriggerEmitter:
    """Attempt-once, best-effort notification dispatch."""

    def __init__(
        self,
        mission_control_url: Optional[str],
        mission_comms_url: Optional[str],
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.mission_control_url = mission_control_url
        self.mission_comms_url = mission_comms_url
        self.timeout = timeout
        self.transport = transport

    async def emit(self, mission_id: str, trigger: Trigger) -> EmitResult:
        """
        Send one trigger to both sinks.

        Args:
            mission_id: Mission the trigger belongs to
            trigger: The due trigger

        Returns:
            EmitResult with per-sink delivery flags. Never raises for
            any failure of a send.
        """
        event_type = trigger.type.value
        result = EmitResult()

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            result.primary_delivered = await self._send(
                client,
                PRIMARY_SINK,
                self.mission_control_url,
                {
                    "missionId": mission_id,
                    "eventType": event_type,
                    "meta": trigger.meta or {}
                }
            )
            result.secondary_delivered = await self._send(
                client,
                SECONDARY_SINK,
                self.mission_comms_url,
                {
                    "missionId": mission_id,
                    "notificationType": event_type
                }
            )

        logger.info(
            f"Trigger {event_type} emitted for {mission_id} "
            f"(primary={result.primary_delivered}, secondary={result.secondary_delivered})"
        )
        return result

    async def _send(
        self,
        client: httpx.AsyncClient,
        sink: str,
        url: Optional[str],
        payload: Dict[str, Any]
    ) -> bool:
        try:
            if not url:
                raise DeliveryError(sink, "sink URL not configured")

            try:
                response = await client.post(url, json=payload)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise DeliveryError(sink, f"HTTP {e.response.status_code}") from e
            except Exception as e:
                # Transport errors, malformed URLs, unserializable payloads
                raise DeliveryError(sink, f"{type(e).__name__}: {e}") from e

            return True

        except DeliveryError as e:
            logger.error(f"Trigger emission failed: {e}", exc_info=True)
            return False
