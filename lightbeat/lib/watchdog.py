"""Systemd watchdog heartbeat for the gateway.

Sends WATCHDOG=1 plus a STATUS= line to the systemd notify socket at regular
intervals.  Silently no-ops when NOTIFY_SOCKET is unset (macOS / dev mode).

Usage:
    from lightbeat.lib.watchdog import watchdog_loop
    asyncio.create_task(watchdog_loop(status=loop.describe))
"""

import asyncio
import logging
import os
import socket

logger = logging.getLogger(__name__)


def sd_notify(msg: str, notify_socket: str | None = None) -> bool:
    """Send a notification message to the systemd notify socket.

    Returns False when there is no socket to talk to.
    """
    addr = notify_socket or os.environ.get("NOTIFY_SOCKET")
    if not addr:
        return False
    if addr[0] == "@":
        addr = "\0" + addr[1:]
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    try:
        sock.sendto(msg.encode(), addr)
    except OSError as e:
        logger.debug("sd_notify failed: %s", e)
        return False
    finally:
        sock.close()
    return True


async def watchdog_loop(interval: float = 20, status=None):
    """Send WATCHDOG=1 every *interval* seconds.  Call as asyncio.create_task().

    *status* is an optional zero-argument callable whose result is reported
    as STATUS= alongside each heartbeat.  READY=1 goes out on the first
    beat (requires Type=notify in the unit file).
    """
    sd_notify("READY=1")
    logger.info("Watchdog started (interval=%ss)", interval)
    while True:
        msg = "WATCHDOG=1"
        if status is not None:
            msg += f"\nSTATUS={status()}"
        sd_notify(msg)
        await asyncio.sleep(interval)
