"""Unit tests — MQTT transport topics, publishing and command dispatch."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from lightbeat.lib.transport import (
    SET_TRIGGER,
    TRIGGER,
    Transport,
    _device_slug,
)


@pytest.mark.parametrize("name,slug", [
    ("Living Room", "living_room"),
    ("  Kitchen/#+Lights ", "kitchen_lights"),
    ("LightBeat", "lightbeat"),
    ("///", "default"),
])
def test_device_slug(name, slug):
    assert _device_slug(name) == slug


def test_topics_use_device_slug():
    t = Transport(broker="broker.lan", port=1884, device_name="Living Room")
    assert t.topic(TRIGGER) == "lightbeat/living_room/trigger"
    assert t.topic_status == "lightbeat/living_room/status"
    assert t.mqtt_port == 1884


@pytest.mark.asyncio
async def test_publish_while_disconnected_is_dropped():
    t = Transport(device_name="x")
    assert not t.connected
    assert await t.publish(TRIGGER, {"index": 1}) is False


@pytest.mark.asyncio
async def test_publish_encodes_payloads():
    t = Transport(device_name="desk")
    t._mqtt_client = MagicMock()
    t._mqtt_client.publish = AsyncMock()

    assert await t.publish(TRIGGER, {"index": 1, "duration_ms": 500})
    topic, payload = t._mqtt_client.publish.await_args.args
    assert topic == "lightbeat/desk/trigger"
    assert json.loads(payload) == {"index": 1, "duration_ms": 500}

    await t.publish("raw", "bar")
    assert t._mqtt_client.publish.await_args.args[1] == b"bar"


@pytest.mark.asyncio
async def test_publish_error_returns_false():
    t = Transport(device_name="desk")
    t._mqtt_client = MagicMock()
    t._mqtt_client.publish = AsyncMock(side_effect=OSError("socket closed"))
    assert await t.publish(TRIGGER, {}) is False


@pytest.mark.asyncio
async def test_dispatch_to_sync_and_async_handlers():
    t = Transport(device_name="desk")
    received = []
    t.subscribe(SET_TRIGGER, received.append)
    async_handler = AsyncMock()
    t.subscribe("other", async_handler)

    await t._dispatch("lightbeat/desk/set_trigger", b"bar")
    await t._dispatch("lightbeat/desk/other", b"x")
    await t._dispatch("lightbeat/desk/unknown", b"y")

    assert received == [b"bar"]
    async_handler.assert_awaited_once_with(b"x")


@pytest.mark.asyncio
async def test_handler_errors_are_contained():
    t = Transport(device_name="desk")
    t.subscribe(SET_TRIGGER, MagicMock(side_effect=ValueError("bad")))
    await t._dispatch("lightbeat/desk/set_trigger", b"bar")
