"""Shared fakes for the scheduler tests."""

import asyncio

import pytest

from lightbeat.lib import config
from lightbeat.lib.player_base import PlayerClient, PollError, TimelineError
from lightbeat.sync.models import (
    Granularity,
    PlaybackSnapshot,
    TriggerEvent,
    TriggerTimeline,
)


@pytest.fixture(autouse=True)
def empty_config(monkeypatch):
    """Never read /etc or the repo default during tests."""
    monkeypatch.setattr(config, "_config", {})


def snap(media_id="X", playing=True, progress=0.0, sampled_at=None):
    if sampled_at is None:
        try:
            sampled_at = asyncio.get_running_loop().time()
        except RuntimeError:
            sampled_at = 0.0
    return PlaybackSnapshot(media_id=media_id, is_playing=playing,
                            progress=progress, sampled_at=sampled_at)


def timeline(*pairs, media_id="X", granularity=Granularity.BEAT):
    events = tuple(TriggerEvent(start=s, duration=d) for s, d in pairs)
    return TriggerTimeline(media_id=media_id, granularity=granularity, events=events)


class FakePlayer(PlayerClient):
    """Returns scripted snapshots; timelines come from a dict or a default."""

    id = "fake"
    name = "Fake"

    def __init__(self, timelines=None):
        self.snapshot = None
        self.poll_error = False
        self.timeline_failures = 0
        self.timelines = timelines or {}
        self.timeline_requests = []
        self.features = {"tempo": 120.0}

    async def get_current_snapshot(self):
        if self.poll_error:
            raise PollError("boom")
        return self.snapshot

    async def get_trigger_timeline(self, media_id, granularity):
        self.timeline_requests.append((media_id, granularity))
        if self.timeline_failures:
            self.timeline_failures -= 1
            raise TimelineError("analysis unavailable")
        if (media_id, granularity) in self.timelines:
            return self.timelines[(media_id, granularity)]
        # Far enough out that nothing fires during a test
        return timeline((100.0, 1.0), (101.0, 1.0), media_id=media_id,
                        granularity=granularity)

    async def get_media_features(self, media_id):
        return dict(self.features, id=media_id)


class RecordingTransport:
    def __init__(self):
        self.messages = []
        self.handlers = {}

    async def publish(self, kind, payload):
        self.messages.append((kind, payload))
        return True

    def subscribe(self, kind, handler):
        self.handlers[kind] = handler

    def kinds(self):
        return [kind for kind, _ in self.messages]


@pytest.fixture
def player():
    return FakePlayer()


@pytest.fixture
def transport():
    return RecordingTransport()
