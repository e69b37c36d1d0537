"""Unit tests — re-sync decisions."""

from itertools import product

import pytest

from lightbeat.sync.policy import Decision, decide
from lightbeat.sync.tracker import Classification

ALL_CLASSIFICATIONS = [
    Classification(play_state_changed=p, media_changed=m, progress_drifted=d, is_playing=i)
    for p, m, d, i in product([False, True], repeat=4)
]


def test_steady_playback_does_nothing():
    c = Classification(is_playing=True)
    assert decide(c, was_detecting=True, granularity_changed=False) == Decision(False, False)


def test_steady_pause_does_nothing():
    c = Classification(is_playing=False)
    assert decide(c, was_detecting=False, granularity_changed=False) == Decision(False, False)


@pytest.mark.parametrize("c", [c for c in ALL_CLASSIFICATIONS if c.media_changed])
@pytest.mark.parametrize("was_detecting", [False, True])
@pytest.mark.parametrize("granularity_changed", [False, True])
def test_media_change_always_starts(c, was_detecting, granularity_changed):
    assert decide(c, was_detecting, granularity_changed).must_start


def test_pause_stops_without_start():
    c = Classification(play_state_changed=True, is_playing=False)
    assert decide(c, was_detecting=True, granularity_changed=False) == Decision(True, False)


def test_resume_starts():
    c = Classification(play_state_changed=True, is_playing=True)
    d = decide(c, was_detecting=False, granularity_changed=False)
    assert d.must_start
    assert not d.must_stop


def test_seek_restarts():
    c = Classification(progress_drifted=True, is_playing=True)
    assert decide(c, was_detecting=True, granularity_changed=False).restart


def test_granularity_switch_restarts_while_playing():
    c = Classification(is_playing=True)
    assert decide(c, was_detecting=True, granularity_changed=True).restart


def test_granularity_switch_ignored_while_paused():
    c = Classification(is_playing=False)
    assert decide(c, was_detecting=False, granularity_changed=True) == Decision(False, False)


def test_playing_without_session_starts_but_never_stops():
    # Retry path after a failed timeline fetch
    for c in ALL_CLASSIFICATIONS:
        if not c.is_playing:
            continue
        d = decide(c, was_detecting=False, granularity_changed=False)
        assert d.must_start
        assert not d.must_stop


def test_track_change_while_paused_stops_and_starts():
    c = Classification(media_changed=True, is_playing=False)
    assert decide(c, was_detecting=True, granularity_changed=False).restart
