"""Integration test — gateway wiring with the demo player and a stubbed broker."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from lightbeat import gateway
from lightbeat.lib import config
from lightbeat.lib.transport import SET_TRIGGER, Transport
from lightbeat.players import DemoPlayer
from lightbeat.sync.models import Granularity


@pytest.fixture
def demo_config(monkeypatch):
    monkeypatch.setattr(config, "_config", {
        "device": "Test Rig",
        "player": {"type": "demo"},
        "sync": {"poll_interval": 0.05, "granularity": "bar"},
        "hardware": {"enabled": False},
        "demo": {"bpm": 600, "length": 30},
    })
    monkeypatch.setattr(Transport, "start", AsyncMock())
    monkeypatch.setattr(Transport, "stop", AsyncMock())
    monkeypatch.setattr(Transport, "publish", AsyncMock(return_value=True))


@pytest.mark.asyncio
async def test_gateway_starts_tracks_and_shuts_down(demo_config):
    gw = gateway.Gateway()
    assert isinstance(gw.player, DemoPlayer)
    assert gw.granularity.get() is Granularity.BAR
    assert not gw.lights.enabled

    await gw.start()
    try:
        assert gw.transport._handlers[gw.transport.topic(SET_TRIGGER)] == gw.granularity.on_command
        await asyncio.sleep(0.6)
        assert gw.scheduler.context.active_session is not None
        assert gw.scheduler.context.active_session.timeline.granularity is Granularity.BAR
        # 600 bpm bars are 0.4s apart; at least one has fired
        published = [c.args[0] for c in gw.transport.publish.await_args_list]
        assert "media" in published
        assert "trigger" in published
    finally:
        await gw.shutdown()

    assert gw.scheduler.context.active_session is None
    gw.transport.stop.assert_awaited_once()
