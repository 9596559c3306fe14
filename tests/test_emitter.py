from __future__ import annotations

import asyncio

import httpx

from conftest import COMMS_URL, CONTROL_URL, at
from mission_clocks.triggers.emitter import TriggerEmitter
from mission_clocks.triggers.models import Trigger, TriggerType


def test_emit_sends_one_message_to_each_sink(emitter, sinks) -> None:
    trigger = Trigger(type=TriggerType.DOCUMENT_EXPIRED, time=at(0), meta={"documentId": "passport"})

    result = asyncio.run(emitter.emit("mission-1", trigger))

    assert result.primary_delivered and result.secondary_delivered
    assert sinks.to(CONTROL_URL) == [
        {"missionId": "mission-1", "eventType": "DOCUMENT_EXPIRED", "meta": {"documentId": "passport"}}
    ]
    assert sinks.to(COMMS_URL) == [
        {"missionId": "mission-1", "notificationType": "DOCUMENT_EXPIRED"}
    ]


def test_missing_meta_is_sent_as_empty_mapping(emitter, sinks) -> None:
    asyncio.run(emitter.emit("mission-1", Trigger(type=TriggerType.T72_LOCK, time=at(0))))

    assert sinks.to(CONTROL_URL)[0]["meta"] == {}


def test_primary_failure_does_not_block_secondary(emitter, sinks) -> None:
    sinks.responses[CONTROL_URL] = 503

    result = asyncio.run(emitter.emit("mission-1", Trigger(type=TriggerType.T48_LOCK, time=at(0))))

    assert result.primary_delivered is False
    assert result.secondary_delivered is True
    assert len(sinks.to(CONTROL_URL)) == 1  # attempted once, never retried
    assert len(sinks.to(COMMS_URL)) == 1


def test_transport_errors_are_swallowed(emitter, sinks) -> None:
    sinks.responses[COMMS_URL] = httpx.ConnectError("connection refused")
    sinks.responses[CONTROL_URL] = httpx.ReadTimeout("too slow")

    result = asyncio.run(emitter.emit("mission-1", Trigger(type=TriggerType.SLA_BREACH, time=at(0))))

    assert result.primary_delivered is False
    assert result.secondary_delivered is False
    assert len(sinks.calls) == 2


def test_unconfigured_sink_is_a_delivery_failure(sinks) -> None:
    emitter = TriggerEmitter(CONTROL_URL, None, transport=sinks.transport)

    result = asyncio.run(emitter.emit("mission-1", Trigger(type=TriggerType.SLA_BREACH, time=at(0))))

    assert result.primary_delivered is True
    assert result.secondary_delivered is False
    assert [url for url, _ in sinks.calls] == [CONTROL_URL]


def test_malformed_sink_url_is_contained(sinks) -> None:
    # A stray carriage return, as left behind by a CRLF .env file
    emitter = TriggerEmitter(CONTROL_URL + "\r", COMMS_URL, transport=sinks.transport)

    result = asyncio.run(emitter.emit("mission-1", Trigger(type=TriggerType.T48_LOCK, time=at(0))))

    assert result.primary_delivered is False
    assert result.secondary_delivered is True
    assert sinks.to(COMMS_URL) == [{"missionId": "mission-1", "notificationType": "T48_LOCK"}]


def test_unserializable_meta_is_contained(emitter, sinks) -> None:
    trigger = Trigger(type=TriggerType.SLA_BREACH, time=at(0), meta={"handle": object()})

    result = asyncio.run(emitter.emit("mission-1", trigger))

    assert result.primary_delivered is False
    assert result.secondary_delivered is True
    assert sinks.to(CONTROL_URL) == []
