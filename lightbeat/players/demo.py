# LightBeat Gateway
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Demo player — a synthetic fixed-tempo track that loops forever.

Lets the gateway run (and the lights blink) without Spotify credentials.
Each loop of the track gets a new media id, so the scheduler sees a track
change every ``length`` seconds.  pause()/resume()/seek() simulate the user
acting on a real player.
"""

import asyncio
import logging

from lightbeat.lib.config import cfg
from lightbeat.lib.player_base import PlayerClient, TimelineError
from lightbeat.sync.models import (
    Granularity,
    PlaybackSnapshot,
    TriggerEvent,
    TriggerTimeline,
)

log = logging.getLogger(__name__)

# Intervals per granularity, in beats
BEATS_PER = {
    Granularity.TATUM: 0.5,
    Granularity.BEAT: 1,
    Granularity.BAR: 4,
    Granularity.SECTION: 64,
}


def build_timeline(media_id: str, granularity: Granularity, bpm: float, length: float) -> TriggerTimeline:
    """Evenly spaced events covering ``length`` seconds at ``bpm``."""
    step = 60.0 / bpm * BEATS_PER[granularity]
    events = []
    start = 0.0
    while start < length:
        events.append(TriggerEvent(start=round(start, 6), duration=min(step, length - start)))
        start += step
    return TriggerTimeline(media_id=media_id, granularity=granularity, events=tuple(events))


class DemoPlayer(PlayerClient):
    id = "demo"
    name = "Demo"

    def __init__(self, bpm: float | None = None, length: float | None = None, clock=None):
        self.bpm = float(bpm or cfg("demo", "bpm", default=120))
        self.length = float(length or cfg("demo", "length", default=180))
        self._clock = clock
        self._origin: float | None = None   # clock time at progress 0 of track 1
        self._paused_at: float | None = None

    def _now(self) -> float:
        if self._clock is not None:
            return self._clock()
        return asyncio.get_running_loop().time()

    async def start(self):
        self._origin = self._now()
        log.info("Demo player: %.0f bpm, %.0fs per track", self.bpm, self.length)

    def _position(self) -> float:
        now = self._paused_at if self._paused_at is not None else self._now()
        return now - self._origin

    def pause(self):
        if self._paused_at is None:
            self._paused_at = self._now()

    def resume(self):
        if self._paused_at is not None:
            self._origin += self._now() - self._paused_at
            self._paused_at = None

    def seek(self, progress: float):
        """Jump to *progress* seconds within the current track."""
        track = int(self._position() // self.length)
        now = self._paused_at if self._paused_at is not None else self._now()
        self._origin = now - (track * self.length + progress)

    async def get_current_snapshot(self):
        if self._origin is None:
            return None
        position = self._position()
        track, progress = divmod(position, self.length)
        media_id = f"demo-{int(track) + 1}"
        return PlaybackSnapshot(
            media_id=media_id,
            is_playing=self._paused_at is None,
            progress=progress,
            sampled_at=self._now(),
            name=f"Demo track {int(track) + 1}",
            raw={"item": {"id": media_id}, "progress_ms": int(progress * 1000),
                 "is_playing": self._paused_at is None},
        )

    async def get_trigger_timeline(self, media_id: str, granularity):
        if not media_id.startswith("demo-"):
            raise TimelineError(f"unknown demo track {media_id!r}")
        return build_timeline(media_id, Granularity.parse(granularity), self.bpm, self.length)

    async def get_media_features(self, media_id: str) -> dict:
        return {"id": media_id, "tempo": self.bpm, "duration_ms": int(self.length * 1000)}
