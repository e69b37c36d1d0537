# LightBeat Gateway
# SPDX-License-Identifier: GPL-3.0-or-later

"""Classify a freshly polled snapshot against the previous one."""

from dataclasses import dataclass

from .models import PlaybackSnapshot

# Slack on top of the poll interval for polling jitter and network latency
DRIFT_TOLERANCE = 1.0


@dataclass(frozen=True)
class Classification:
    """Independent facts about a poll; several can hold at once."""

    play_state_changed: bool = False
    media_changed: bool = False
    progress_drifted: bool = False
    is_playing: bool = False


def classify(previous: PlaybackSnapshot | None, current: PlaybackSnapshot,
             poll_interval: float, tolerance: float = DRIFT_TOLERANCE) -> Classification | None:
    """Compare two snapshots.

    Returns None when *current* has no media id (nothing active on the
    player); the caller skips the tick.  A missing *previous* (first poll)
    compares *current* against itself.

    Progress drift catches seeks: a position that moved further than one
    poll interval plus *tolerance* cannot be explained by normal playback.
    """
    if not current.media_id:
        return None
    if previous is None:
        previous = current

    delta = abs(current.progress - previous.progress)
    return Classification(
        play_state_changed=previous.is_playing != current.is_playing,
        media_changed=previous.media_id != current.media_id,
        progress_drifted=delta > poll_interval + tolerance,
        is_playing=current.is_playing,
    )
