"""Unit tests — systemd notify heartbeat."""

import asyncio
import socket

import pytest

from lightbeat.lib.watchdog import sd_notify, watchdog_loop


def test_no_socket_is_a_noop(monkeypatch):
    monkeypatch.delenv("NOTIFY_SOCKET", raising=False)
    assert sd_notify("READY=1") is False


@pytest.fixture
def notify_socket(tmp_path, monkeypatch):
    path = str(tmp_path / "notify")
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    sock.bind(path)
    sock.settimeout(1)
    monkeypatch.setenv("NOTIFY_SOCKET", path)
    yield sock
    sock.close()


def test_sd_notify_sends_datagram(notify_socket):
    assert sd_notify("READY=1")
    assert notify_socket.recv(64) == b"READY=1"


@pytest.mark.asyncio
async def test_watchdog_reports_status(notify_socket):
    task = asyncio.create_task(watchdog_loop(interval=10, status=lambda: "idle"))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert notify_socket.recv(64) == b"READY=1"
    assert notify_socket.recv(64) == b"WATCHDOG=1\nSTATUS=idle"
