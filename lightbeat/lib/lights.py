# LightBeat Gateway
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Blinkt LED strip output.

The strip is split in two halves; alternating triggers light alternating
halves so consecutive beats are visually distinct.  The blinkt driver is
blocking (GPIO bit-banging), so every flash runs on a dedicated
single-thread executor and flashes are serialized in arrival order.
"""

import asyncio
import logging
import platform
import time
from concurrent.futures import ThreadPoolExecutor

from .config import cfg

try:
    import blinkt
    _HAS_BLINKT = True
except ImportError:
    _HAS_BLINKT = False

log = logging.getLogger(__name__)

NUM_PIXELS = 8
RED = (255, 0, 0)

# Portion of the trigger duration the LEDs stay lit
FLASH_DUTY = 0.5


def _default_enabled() -> bool:
    """Hardware output defaults to on only on ARM boards (the Pi)."""
    return platform.machine().startswith(("arm", "aarch64"))


class Lights:
    """Renders single triggers as flashes on a Blinkt strip."""

    def __init__(self, enabled: bool | None = None, brightness: float | None = None):
        if enabled is None:
            enabled = cfg("hardware", "enabled", default=_default_enabled())
        if enabled and not _HAS_BLINKT:
            log.warning("blinkt not installed — hardware output disabled. "
                        "Install with: pip install lightbeat-gateway[hardware]")
            enabled = False
        self.enabled = bool(enabled)
        self.brightness = brightness if brightness is not None else float(
            cfg("hardware", "brightness", default=0.2))
        self._executor: ThreadPoolExecutor | None = None

    def setup(self):
        if not self.enabled:
            log.info("Hardware output disabled")
            return
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="lights")
        blinkt.set_clear_on_exit(True)
        blinkt.set_brightness(self.brightness)
        blinkt.clear()
        blinkt.show()
        log.info("Blinkt ready (brightness %.2f)", self.brightness)

    async def flash(self, color, duration: float, alternate: bool):
        """Flash half the strip in *color* for part of *duration* seconds."""
        if not self.enabled or self._executor is None:
            return
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            self._executor, _flash_sequence, tuple(color), duration, alternate)

    def close(self):
        if self._executor is None:
            return
        self._executor.shutdown(wait=True)
        self._executor = None
        blinkt.clear()
        blinkt.show()


def _flash_sequence(color: tuple, duration: float, alternate: bool):
    half = NUM_PIXELS // 2
    pixels = range(half, NUM_PIXELS) if alternate else range(half)
    r, g, b = color
    blinkt.clear()
    for i in pixels:
        blinkt.set_pixel(i, r, g, b)
    blinkt.show()
    time.sleep(max(duration, 0) * FLASH_DUTY)
    blinkt.clear()
    blinkt.show()
