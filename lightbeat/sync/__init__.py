"""
Playback-synchronized trigger scheduling.

  models     — snapshots, trigger events, timelines, granularity
  tracker    — classify a polled snapshot against the previous one
  policy     — stop/start decision from a classification
  session    — one cancellable run over a timeline
  scheduler  — the polling loop that ties them together
"""

from .models import Granularity, PlaybackSnapshot, TriggerEvent, TriggerTimeline
from .policy import Decision, decide
from .session import TriggerSession, planned_waits
from .tracker import Classification, classify

__all__ = [
    "Granularity",
    "PlaybackSnapshot",
    "TriggerEvent",
    "TriggerTimeline",
    "Classification",
    "classify",
    "Decision",
    "decide",
    "TriggerSession",
    "planned_waits",
]
