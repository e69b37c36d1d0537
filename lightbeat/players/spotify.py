# LightBeat Gateway
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Spotify Web API client for the scheduler.

Endpoints:
  GET /v1/me/player/currently-playing   — playback snapshot (204 = nothing)
  GET /v1/audio-analysis/{id}           — beats / bars / tatums / sections
  GET /v1/audio-features/{id}           — tempo, energy, danceability, ...

Token handling is not done here: the access token comes from the
SPOTIFY_ACCESS_TOKEN environment variable (or the constructor).
"""

import asyncio
import logging
import os

import aiohttp

from lightbeat.lib.player_base import (
    PlayerClient,
    PollError,
    TimelineError,
    TRANSIENT_ERRORS,
)
from lightbeat.sync.models import (
    Granularity,
    PlaybackSnapshot,
    TriggerEvent,
    TriggerTimeline,
)

log = logging.getLogger(__name__)

API_BASE = "https://api.spotify.com/v1"
REQUEST_TIMEOUT = 5  # seconds, keeps a stalled API inside one poll tick

# Analysis section per granularity
ANALYSIS_KEYS = {
    Granularity.BEAT: "beats",
    Granularity.BAR: "bars",
    Granularity.TATUM: "tatums",
    Granularity.SECTION: "sections",
}


class RateLimited(aiohttp.ClientError):
    def __init__(self, retry_after: float):
        super().__init__(f"rate limited, retry after {retry_after:.0f}s")
        self.retry_after = retry_after


def parse_snapshot(data: dict | None, sampled_at: float) -> PlaybackSnapshot | None:
    """Build a snapshot from a currently-playing payload.

    Returns None for an empty payload.  A payload without an item (ads,
    podcasts without additional_types) yields an empty media id, which the
    tracker treats as "nothing active".
    """
    if not data:
        return None
    item = data.get("item") or {}
    return PlaybackSnapshot(
        media_id=item.get("id") or "",
        is_playing=bool(data.get("is_playing")),
        progress=(data.get("progress_ms") or 0) / 1000.0,
        sampled_at=sampled_at,
        name=item.get("name") or "",
        raw=data,
    )


def parse_timeline(media_id: str, granularity: Granularity, analysis: dict) -> TriggerTimeline:
    """Extract the interval list for *granularity* from an audio analysis."""
    intervals = analysis[ANALYSIS_KEYS[granularity]]
    events = tuple(
        TriggerEvent(
            start=float(iv["start"]),
            duration=float(iv["duration"]),
            confidence=float(iv.get("confidence", 1.0)),
        )
        for iv in intervals
    )
    return TriggerTimeline(media_id=media_id, granularity=granularity, events=events)


class SpotifyClient(PlayerClient):
    """Reads playback state and audio analysis from the Spotify Web API."""

    id = "spotify"
    name = "Spotify"

    def __init__(self, access_token: str | None = None, api_base: str = API_BASE):
        self.access_token = access_token or os.getenv("SPOTIFY_ACCESS_TOKEN", "")
        self.api_base = api_base.rstrip("/")
        self._session: aiohttp.ClientSession | None = None
        self._blocked_until = 0.0  # loop time before which we honour Retry-After

    async def start(self):
        if not self.access_token:
            raise RuntimeError("No Spotify access token (set SPOTIFY_ACCESS_TOKEN)")
        self._session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT),
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "User-Agent": "LightBeatGateway/1.0",
            },
        )
        log.info("Spotify client ready (token: %s...)", self.access_token[:8])

    async def close(self):
        if self._session:
            await self._session.close()
            self._session = None

    async def _get(self, path: str):
        """GET an API path.  Returns decoded JSON, or None on 204."""
        if self._session is None:
            raise aiohttp.ClientError("Spotify client not started")
        loop = asyncio.get_running_loop()
        if loop.time() < self._blocked_until:
            raise RateLimited(self._blocked_until - loop.time())

        async with self._session.get(f"{self.api_base}{path}") as resp:
            if resp.status == 204:
                return None
            if resp.status == 429:
                retry_after = float(resp.headers.get("Retry-After", 2))
                self._blocked_until = loop.time() + retry_after
                raise RateLimited(retry_after)
            resp.raise_for_status()
            return await resp.json()

    async def get_current_snapshot(self):
        try:
            data = await self._get("/me/player/currently-playing")
        except TRANSIENT_ERRORS as e:
            raise PollError(f"currently-playing: {e}") from e
        return parse_snapshot(data, asyncio.get_running_loop().time())

    async def get_trigger_timeline(self, media_id: str, granularity):
        granularity = Granularity.parse(granularity)
        try:
            analysis = await self._get(f"/audio-analysis/{media_id}")
            if not analysis:
                raise ValueError("empty audio analysis")
            timeline = parse_timeline(media_id, granularity, analysis)
        except TRANSIENT_ERRORS as e:
            raise TimelineError(f"audio-analysis {media_id}: {e}") from e
        log.debug("Fetched %d %ss for %s", len(timeline), granularity.value, media_id)
        return timeline

    async def get_media_features(self, media_id: str) -> dict:
        try:
            return await self._get(f"/audio-features/{media_id}") or {}
        except TRANSIENT_ERRORS as e:
            raise TimelineError(f"audio-features {media_id}: {e}") from e
