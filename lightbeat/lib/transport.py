"""
MQTT transport for the LightBeat gateway.

Publishes media/trigger events for the device and receives commands
(currently just trigger granularity changes) from the broker.

Usage:
    transport = Transport()
    transport.subscribe("set_trigger", my_handler)
    await transport.start()
    await transport.publish("trigger", {"index": 4, "duration_ms": 512})
    await transport.stop()
"""

import asyncio
import json
import os
import re
import logging

import aiomqtt

from .config import cfg

logger = logging.getLogger(__name__)

# Topic structure: lightbeat/{device_slug}/{kind}
TOPIC_PREFIX = "lightbeat"

# Outgoing message kinds
NEW_MEDIA = "media"
MEDIA_FEATURES = "features"
TRIGGER = "trigger"
# Incoming
SET_TRIGGER = "set_trigger"


def _device_slug(name: str) -> str:
    """Convert device name to MQTT-safe slug: 'Living Room' -> 'living_room'.

    Strips characters that are illegal in MQTT topic segments (/, #, +)
    and replaces non-alphanumeric chars with underscores.
    """
    slug = name.lower().strip()
    slug = re.sub(r"[^a-z0-9_]", "_", slug)
    slug = re.sub(r"_+", "_", slug)
    slug = slug.strip("_")
    return slug or "default"


def _encode(payload) -> bytes:
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, str):
        return payload.encode()
    return json.dumps(payload).encode()


class Transport:
    """Publish/subscribe over a single auto-reconnecting MQTT connection."""

    def __init__(self, broker: str | None = None, port: int | None = None,
                 device_name: str | None = None):
        self.device_name = device_name or cfg("device", default="LightBeat")
        self.device_slug = _device_slug(self.device_name)

        # Broker from JSON config, credentials from env secrets
        self.mqtt_broker = broker or cfg("transport", "mqtt_broker", default="localhost")
        self.mqtt_port = int(port or cfg("transport", "mqtt_port", default=1883))
        self.mqtt_user = os.getenv("MQTT_USER", "")
        self.mqtt_password = os.getenv("MQTT_PASSWORD", "")

        self.topic_status = self.topic("status")

        self._mqtt_client = None
        self._mqtt_task: asyncio.Task | None = None
        self._handlers: dict[str, object] = {}
        self._running = False

    def topic(self, kind: str) -> str:
        return f"{TOPIC_PREFIX}/{self.device_slug}/{kind}"

    @property
    def connected(self) -> bool:
        return self._mqtt_client is not None

    def subscribe(self, kind: str, handler):
        """Register a handler for incoming messages on *kind*.

        Handler signature: def handler(payload: bytes) -> None, or async.
        Must be called before start(); subscriptions are (re)made on every
        connect.
        """
        self._handlers[self.topic(kind)] = handler

    async def start(self):
        self._running = True
        self._mqtt_task = asyncio.create_task(self._mqtt_loop())
        logger.info("MQTT transport starting -> %s:%d", self.mqtt_broker, self.mqtt_port)

    async def stop(self):
        """Clean shutdown of the connection task."""
        self._running = False

        if self._mqtt_task:
            self._mqtt_task.cancel()
            try:
                await self._mqtt_task
            except asyncio.CancelledError:
                pass
            self._mqtt_task = None

        self._mqtt_client = None
        logger.info("Transport stopped")

    async def publish(self, kind: str, payload) -> bool:
        """Publish *payload* (dict, str or bytes) to the *kind* topic.

        Messages published while disconnected are dropped.
        """
        if not self._mqtt_client:
            logger.debug("MQTT not connected, dropping %s message", kind)
            return False

        try:
            await self._mqtt_client.publish(self.topic(kind), _encode(payload), qos=0)
            logger.debug("MQTT published: %s", kind)
            return True
        except Exception as e:
            logger.warning("MQTT publish error (%s): %s", kind, e)
            return False

    async def _dispatch(self, topic: str, payload: bytes):
        handler = self._handlers.get(topic)
        if handler is None:
            return
        try:
            result = handler(payload)
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            logger.error("MQTT handler error on %s: %s", topic, e)

    async def _mqtt_loop(self):
        """Connect to MQTT broker with auto-reconnect and exponential backoff."""
        backoff = 1  # seconds
        max_backoff = 30

        while self._running:
            try:
                will = aiomqtt.Will(
                    topic=self.topic_status,
                    payload=json.dumps({"status": "offline"}),
                    qos=1,
                    retain=True,
                )

                async with aiomqtt.Client(
                    hostname=self.mqtt_broker,
                    port=self.mqtt_port,
                    username=self.mqtt_user or None,
                    password=self.mqtt_password or None,
                    identifier="LightBeatGateway",
                    will=will,
                ) as client:
                    self._mqtt_client = client
                    backoff = 1  # reset on successful connect

                    await client.publish(
                        self.topic_status,
                        json.dumps({"status": "online"}),
                        qos=1,
                        retain=True,
                    )
                    logger.info("MQTT connected to %s:%d", self.mqtt_broker, self.mqtt_port)

                    for topic in self._handlers:
                        await client.subscribe(topic)
                        logger.info("MQTT subscribed to %s", topic)

                    async for message in client.messages:
                        payload = message.payload
                        if not isinstance(payload, (bytes, bytearray)):
                            payload = str(payload or "").encode()
                        await self._dispatch(str(message.topic), bytes(payload))

            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._mqtt_client = None
                logger.warning("MQTT connection lost (%s), reconnecting in %ds", e, backoff)
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2, max_backoff)

        self._mqtt_client = None
