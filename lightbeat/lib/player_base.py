# LightBeat Gateway
# SPDX-License-Identifier: GPL-3.0-or-later

"""
PlayerClient — the boundary between the scheduler and a remote media player.

A client turns the player's API into PlaybackSnapshots and TriggerTimelines.

Subclass contract:

    class MyPlayer(PlayerClient):
        id   = "spotify"
        name = "Spotify"

        async def get_current_snapshot(self) -> PlaybackSnapshot | None: ...
        async def get_trigger_timeline(self, media_id, granularity) -> TriggerTimeline: ...

Optional overrides:
    get_media_features(media_id) — per-track feature summary (dict)
    start() / close()            — open and release network resources

Errors: raise PollError when a snapshot cannot be read and TimelineError when
a timeline cannot be fetched.  Return None from get_current_snapshot() when
the player has nothing active — that is not an error.
"""

import asyncio

import aiohttp


class PlayerError(Exception):
    """A remote player request failed; the caller retries on its own cadence."""


class PollError(PlayerError):
    """The current playback state could not be read."""


class TimelineError(PlayerError):
    """A trigger timeline (or feature summary) could not be fetched."""


# Failures a client should fold into PlayerError
TRANSIENT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, ValueError, KeyError)


class PlayerClient:
    # ── Subclass must set these ──
    id: str = ""
    name: str = ""

    async def start(self):
        """Open sessions/connections.  Called once before the first poll."""

    async def close(self):
        """Release anything start() opened."""

    async def get_current_snapshot(self):
        """Return the current PlaybackSnapshot, or None when nothing is active."""
        raise NotImplementedError

    async def get_trigger_timeline(self, media_id: str, granularity):
        """Return the TriggerTimeline for *media_id* at *granularity*."""
        raise NotImplementedError

    async def get_media_features(self, media_id: str) -> dict:
        """Return a feature summary for *media_id* (tempo, energy, ...)."""
        return {}
