# LightBeat Gateway
# SPDX-License-Identifier: GPL-3.0-or-later

"""
SchedulerLoop — keeps one TriggerSession in step with a polled player.

Every ``poll_interval`` seconds the loop reads a snapshot, classifies it
against the previous one and lets the policy decide whether the running
session has to go and/or a new one has to start.  The loop is the only
writer of SchedulerContext; sessions never touch it.

Fired triggers leave the session through TriggerDispatcher, a bounded queue
drained by one worker task, so a slow broker or LED strip never delays the
next fire.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass

from lightbeat.lib import transport as topics
from lightbeat.lib.player_base import PlayerClient, PollError, TimelineError

from .models import Granularity, PlaybackSnapshot, TriggerEvent
from .policy import decide
from .session import TriggerSession
from .tracker import classify

log = logging.getLogger(__name__)

POLL_INTERVAL = 2.0  # seconds between player polls
DISPATCH_QUEUE_SIZE = 64


class GranularitySetting:
    """Desired trigger granularity, writable from any thread."""

    def __init__(self, initial=Granularity.BEAT):
        self._lock = threading.Lock()
        self._value = Granularity.parse(initial)

    def get(self) -> Granularity:
        with self._lock:
            return self._value

    def set(self, value) -> Granularity:
        granularity = Granularity.parse(value)
        with self._lock:
            self._value = granularity
        return granularity

    def on_command(self, payload: bytes):
        """Transport handler for set_trigger: payload is the granularity name."""
        name = payload.decode(errors="replace").strip().lower()
        if name not in {g.value for g in Granularity}:
            log.warning("Ignoring unknown trigger granularity %r", name)
            return
        previous = self.get()
        if self.set(name) != previous:
            log.info("Trigger granularity %s -> %s", previous.value, name)


class TriggerDispatcher:
    """Forwards fired triggers to the transport and the lights."""

    def __init__(self, transport=None, lights=None, color=(255, 0, 0),
                 queue_size: int = DISPATCH_QUEUE_SIZE):
        self.transport = transport
        self.lights = lights
        self.color = tuple(color)
        self.dropped = 0
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._worker: asyncio.Task | None = None

    def submit(self, index: int, event: TriggerEvent):
        """Queue a trigger without blocking; drops the oldest when full."""
        if self._queue.full():
            self._queue.get_nowait()
            self._queue.task_done()
            self.dropped += 1
            log.warning("Trigger queue full, dropped oldest (%d dropped so far)", self.dropped)
        self._queue.put_nowait((index, event))

    async def start(self):
        self._worker = asyncio.create_task(self._run(), name="trigger-dispatch")

    async def stop(self):
        if self._worker:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

    async def join(self):
        """Wait until every queued trigger has been delivered."""
        await self._queue.join()

    async def _run(self):
        while True:
            index, event = await self._queue.get()
            try:
                await self.deliver(index, event)
            finally:
                self._queue.task_done()

    async def deliver(self, index: int, event: TriggerEvent):
        message = {"index": index, "duration_ms": int(round(event.duration * 1000))}
        log.debug("Trigger %s", message)

        sends = []
        if self.transport is not None:
            sends.append(self.transport.publish(topics.TRIGGER, message))
        if self.lights is not None and self.lights.enabled:
            sends.append(self.lights.flash(self.color, event.duration, index & 1 != 0))
        for result in await asyncio.gather(*sends, return_exceptions=True):
            if isinstance(result, Exception):
                log.warning("Trigger sink error: %s", result)


@dataclass
class SchedulerContext:
    last_snapshot: PlaybackSnapshot | None = None
    last_granularity: Granularity | None = None
    # Started and not since stopped; kept after it runs to completion
    active_session: TriggerSession | None = None
    generation: int = 0

    @property
    def detecting(self) -> bool:
        return self.active_session is not None


class SchedulerLoop:
    """Polls the player on a fixed cadence and manages the trigger session."""

    def __init__(self, player: PlayerClient, dispatcher: TriggerDispatcher,
                 granularity: GranularitySetting | None = None, transport=None,
                 poll_interval: float = POLL_INTERVAL):
        self.player = player
        self.dispatcher = dispatcher
        self.granularity = granularity or GranularitySetting()
        self.transport = transport
        self.poll_interval = poll_interval
        self.context = SchedulerContext()
        self._stopping = asyncio.Event()
        self._background: set[asyncio.Task] = set()
        self._announcing: asyncio.Task | None = None

    def describe(self) -> str:
        """One-line status for the watchdog."""
        session = self.context.active_session
        if session is None:
            return "idle"
        state = "complete" if session.completed else "tracking"
        return (f"{state} {session.timeline.media_id} ({session.timeline.granularity.value}) "
                f"#{session.cursor}/{len(session.timeline)}")

    async def run(self):
        """Tick every poll_interval until stop() is called."""
        log.info("Starting scheduler (poll every %.1fs)", self.poll_interval)
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while not self._stopping.is_set():
            try:
                await self.tick()
            except Exception:
                log.exception("Scheduler tick failed")
            next_tick += self.poll_interval
            delay = max(next_tick - loop.time(), 0)
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
        await self._stop_session()
        log.info("Scheduler stopped")

    async def stop(self):
        self._stopping.set()
        await self._stop_session()
        for task in list(self._background):
            task.cancel()
        await asyncio.gather(*self._background, return_exceptions=True)

    async def tick(self):
        """One poll: classify, decide, stop/start, remember."""
        try:
            snapshot = await self.player.get_current_snapshot()
        except PollError as e:
            log.warning("Player poll failed, retrying next tick: %s", e)
            return
        if snapshot is None:
            log.debug("Nothing playing")
            return

        ctx = self.context
        classification = classify(ctx.last_snapshot, snapshot, self.poll_interval)
        if classification is None:
            log.debug("No active media")
            return

        granularity = self.granularity.get()
        granularity_changed = (ctx.last_granularity is not None
                               and granularity != ctx.last_granularity)
        decision = decide(classification, ctx.detecting, granularity_changed)

        if decision.must_stop and ctx.active_session is not None:
            log.info("Stopping (%s)", classification)
            await self._stop_session()

        if decision.must_start:
            await self._start_session(snapshot, granularity)

        ctx.last_snapshot = snapshot
        ctx.last_granularity = granularity

    async def _stop_session(self):
        announce, self._announcing = self._announcing, None
        if announce is not None and not announce.done():
            # A late features message must not follow the next track's media
            announce.cancel()
            await asyncio.gather(announce, return_exceptions=True)
        session = self.context.active_session
        if session is None:
            return
        await session.stop()
        self.context.active_session = None

    async def _start_session(self, snapshot: PlaybackSnapshot, granularity: Granularity):
        """Fetch the timeline and launch a session at the polled position.

        Deliberately does nothing while the snapshot is paused, even when the
        policy asked for a start (a track change during a pause).  A session
        launched then would flash over silence; since nothing is detecting,
        the policy asks again on resume.
        """
        if not snapshot.is_playing:
            log.info("%s changed while paused, waiting for playback", snapshot.media_id)
            return
        # Never two live sessions, even if the policy did not ask for a stop
        await self._stop_session()

        log.info("Starting %s (%s)", snapshot.name or snapshot.media_id, granularity.value)
        try:
            timeline = await self.player.get_trigger_timeline(snapshot.media_id, granularity)
        except TimelineError as e:
            log.warning("Timeline fetch failed, will retry: %s", e)
            return
        if self._stopping.is_set():
            return

        self._announcing = self._spawn(self._announce(snapshot))

        # Account for time spent polling and fetching since the sample
        elapsed = asyncio.get_running_loop().time() - snapshot.sampled_at
        session = TriggerSession(timeline, snapshot.progress + max(elapsed, 0),
                                 self.dispatcher.submit)
        self.context.active_session = session.start()
        self.context.generation += 1
        log.info("Session %d: %d %ss from %.2fs", self.context.generation,
                 len(timeline), granularity.value, session.reference_offset)

    async def _announce(self, snapshot: PlaybackSnapshot):
        """Publish current-media and media-features messages."""
        if self.transport is None:
            return
        media = snapshot.raw or {
            "id": snapshot.media_id,
            "name": snapshot.name,
            "is_playing": snapshot.is_playing,
            "progress_ms": int(snapshot.progress * 1000),
        }
        await self.transport.publish(topics.NEW_MEDIA, media)
        try:
            features = await self.player.get_media_features(snapshot.media_id)
        except TimelineError as e:
            log.warning("Media features unavailable: %s", e)
            return
        await self.transport.publish(topics.MEDIA_FEATURES, features)

    def _spawn(self, coro):
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task
