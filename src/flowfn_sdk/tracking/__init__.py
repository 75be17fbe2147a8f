"""Run-completion tracking."""

from .events import EventKind, RunSubscription, TrackingEvent
from .poller import LoopState, PollLoop, await_run
from .tracker import Tracker

__all__ = [
    "EventKind",
    "LoopState",
    "PollLoop",
    "RunSubscription",
    "Tracker",
    "TrackingEvent",
    "await_run",
]
