# LightBeat Gateway
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Re-sync policy — decides whether the running trigger session is still valid.

Both flags may be set in the same tick, which means "restart".  Anything that
might invalidate the schedule (pause, track change, seek, granularity switch)
resolves to stop-and-restart.
"""

from dataclasses import dataclass

from .tracker import Classification


@dataclass(frozen=True)
class Decision:
    must_stop: bool = False
    must_start: bool = False

    @property
    def restart(self) -> bool:
        return self.must_stop and self.must_start


def decide(c: Classification, was_detecting: bool, granularity_changed: bool) -> Decision:
    # Playing but no session yet, e.g. the last timeline fetch failed
    playing_undetected = not was_detecting and c.is_playing
    switch_granularity = granularity_changed and c.is_playing

    must_stop = not playing_undetected and (
        (c.play_state_changed and not c.is_playing)
        or c.media_changed
        or c.progress_drifted
        or switch_granularity
    )
    must_start = (
        (c.play_state_changed and c.is_playing)
        or c.media_changed
        or c.progress_drifted
        or playing_undetected
        or switch_granularity
    )
    return Decision(must_stop=must_stop, must_start=must_start)
