#!/usr/bin/env python3
# LightBeat Gateway
# SPDX-License-Identifier: GPL-3.0-or-later

"""
LightBeat Gateway (lightbeat-gateway)

Polls the configured player, keeps a trigger session in time with the track
and flashes the Blinkt strip / publishes triggers over MQTT on every beat
(or bar, tatum, section — switchable at runtime via the set_trigger topic).

Topics (lightbeat/{device}/...):
  media        — current track payload, on every session start
  features     — track feature summary, on every session start
  trigger      — {"index", "duration_ms"} per fired trigger
  set_trigger  — (in) granularity name: beat | bar | tatum | section
  status       — retained online/offline
"""

import asyncio
import logging
import os
import signal
import sys

from lightbeat.lib.config import cfg
from lightbeat.lib.lights import Lights, RED
from lightbeat.lib.transport import SET_TRIGGER, Transport
from lightbeat.lib.watchdog import watchdog_loop
from lightbeat.players import create_player
from lightbeat.sync.scheduler import (
    DISPATCH_QUEUE_SIZE,
    POLL_INTERVAL,
    GranularitySetting,
    SchedulerLoop,
    TriggerDispatcher,
)

log = logging.getLogger('lightbeat-gateway')


class Gateway:
    """Owns the collaborators and the scheduler for one device."""

    def __init__(self):
        self.transport = Transport()
        self.lights = Lights()
        self.player = create_player()
        self.granularity = GranularitySetting(cfg("sync", "granularity", default="beat"))
        self.dispatcher = TriggerDispatcher(
            transport=self.transport,
            lights=self.lights,
            color=cfg("hardware", "color", default=RED),
            queue_size=int(cfg("dispatch", "queue_size", default=DISPATCH_QUEUE_SIZE)),
        )
        self.scheduler = SchedulerLoop(
            self.player,
            self.dispatcher,
            granularity=self.granularity,
            transport=self.transport,
            poll_interval=float(cfg("sync", "poll_interval", default=POLL_INTERVAL)),
        )
        self._tasks: list[asyncio.Task] = []

    async def start(self):
        try:
            await self.player.start()
        except Exception as e:
            log.error("Failed to start %s player: %s", self.player.name, e)
            sys.exit(1)

        self.transport.subscribe(SET_TRIGGER, self.granularity.on_command)
        await self.transport.start()
        self.lights.setup()
        await self.dispatcher.start()

        self._tasks.append(asyncio.create_task(self.scheduler.run(), name="scheduler"))
        self._tasks.append(asyncio.create_task(
            watchdog_loop(status=self.scheduler.describe), name="watchdog"))
        log.info("Gateway running: player=%s device=%s granularity=%s",
                 self.player.id, self.transport.device_slug, self.granularity.get().value)

    async def run(self):
        """Start, wait for SIGTERM/SIGINT, shut down."""
        await self.start()
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop_event.set)
        try:
            await stop_event.wait()
        finally:
            await self.shutdown()

    async def shutdown(self):
        log.info("Shutting down")
        await self.scheduler.stop()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        await self.dispatcher.stop()
        self.lights.close()
        await self.transport.stop()
        await self.player.close()


def main():
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    asyncio.run(Gateway().run())


if __name__ == '__main__':
    main()
