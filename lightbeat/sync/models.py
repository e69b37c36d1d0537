# LightBeat Gateway
# SPDX-License-Identifier: GPL-3.0-or-later

"""Value types shared by the tracker, policy, session and scheduler.

All times are float seconds.  Snapshot ``sampled_at`` is on the event
loop clock (``loop.time()``), which is monotonic.
"""

from dataclasses import dataclass, field
from enum import Enum


class Granularity(str, Enum):
    """Which interval list of the track analysis drives the triggers."""

    BEAT = "beat"
    BAR = "bar"
    TATUM = "tatum"
    SECTION = "section"

    @classmethod
    def parse(cls, name, default=None) -> "Granularity":
        """Parse a granularity name; unknown names give *default* (beats)."""
        if isinstance(name, cls):
            return name
        if isinstance(name, bytes):
            name = name.decode(errors="replace")
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            return default if default is not None else cls.BEAT


@dataclass(frozen=True)
class PlaybackSnapshot:
    media_id: str
    is_playing: bool
    progress: float
    sampled_at: float
    name: str = ""
    # Decoded player payload, published verbatim as the current-media message
    raw: dict = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class TriggerEvent:
    start: float
    duration: float
    confidence: float = 1.0


@dataclass(frozen=True)
class TriggerTimeline:
    media_id: str
    granularity: Granularity
    events: tuple[TriggerEvent, ...] = ()

    def __len__(self):
        return len(self.events)
