# LightBeat Gateway
# SPDX-License-Identifier: GPL-3.0-or-later

"""
TriggerSession — one cancellable run over a trigger timeline.

The session waits until the first event that playback has not yet passed,
fires it, then chains each following wait off the fired event's own
duration (not off the session's reference time and the next event's
absolute start).  When durations do not add up exactly to the gaps between
starts this accumulates drift; see ``planned_waits`` and the drift test.

Usage:
    session = TriggerSession(timeline, start_offset=12.3, on_event=fire)
    session.start()
    ...
    await session.stop()   # returns once the task has exited
"""

import asyncio
import logging

from .models import TriggerEvent, TriggerTimeline

log = logging.getLogger(__name__)


def first_due_index(events, offset: float) -> int:
    """One past the last event whose start playback has already reached."""
    cursor = 0
    for i, event in enumerate(events):
        if offset >= event.start:
            cursor = i + 1
    return cursor


def planned_waits(events, offset: float) -> list[float]:
    """Waits (seconds) before each fire of a session started at *offset*.

    The first wait runs to the first due event's start; every later wait is
    the previously fired event's duration.  Empty when nothing is due.
    """
    cursor = first_due_index(events, offset)
    if cursor >= len(events):
        return []
    waits = [max(events[cursor].start - offset, 0.0)]
    waits.extend(events[i].duration for i in range(cursor, len(events) - 1))
    return waits


class TriggerSession:
    """Fires the events of one timeline in order until exhausted or stopped."""

    def __init__(self, timeline: TriggerTimeline, start_offset: float, on_event):
        self.timeline = timeline
        self.reference_offset = start_offset
        self.reference_time: float | None = None
        self.cursor = first_due_index(timeline.events, start_offset)
        self.fired = 0
        self.completed = False
        self._on_event = on_event
        self._cancel = asyncio.Event()
        self._task: asyncio.Task | None = None

    def __repr__(self):
        return (f"<TriggerSession {self.timeline.media_id} "
                f"{self.timeline.granularity.value} cursor={self.cursor}/{len(self.timeline)}>")

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def start(self):
        if self._task is not None:
            raise RuntimeError("session already started")
        self.reference_time = asyncio.get_running_loop().time()
        self._task = asyncio.create_task(
            self._run(), name=f"trigger-session-{self.timeline.media_id}")
        return self

    async def stop(self):
        """Cancel and wait until the session task has exited.

        After this returns no further on_event calls happen.
        """
        self._cancel.set()
        if self._task is not None:
            await self._task

    async def wait(self):
        """Wait for the session to finish on its own (or be stopped)."""
        if self._task is not None:
            await self._task

    async def _sleep(self, delay: float) -> bool:
        """Sleep *delay* seconds; True if cancelled first."""
        try:
            await asyncio.wait_for(self._cancel.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass
        return self._cancel.is_set()

    async def _run(self):
        events = self.timeline.events
        waits = planned_waits(events, self.reference_offset)
        if not waits:
            log.info("Nothing left to trigger in %s at %.2fs",
                     self.timeline.media_id, self.reference_offset)
            self.completed = True
            return

        log.info("Tracking %ss of %s from #%d (next in %.3fs)",
                 self.timeline.granularity.value, self.timeline.media_id,
                 self.cursor, waits[0])
        for index, delay in enumerate(waits, start=self.cursor):
            if await self._sleep(delay):
                log.info("Heard cancel at #%d, exiting", index)
                return
            self._fire(index, events[index])
            self.cursor = index + 1

        self.completed = True
        log.info("Session for %s complete (%d fired)", self.timeline.media_id, self.fired)

    def _fire(self, index: int, event: TriggerEvent):
        self.fired += 1
        try:
            self._on_event(index, event)
        except Exception:
            log.exception("Trigger handler failed for #%d", index)
