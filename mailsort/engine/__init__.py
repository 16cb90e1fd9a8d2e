"""Batch engine and its progress events."""

from mailsort.engine.batch import BatchEngine, CancellationToken, EngineState
from mailsort.engine.events import EngineEvent, EngineEventType, EventStream

__all__ = [
    "BatchEngine",
    "CancellationToken",
    "EngineEvent",
    "EngineEventType",
    "EngineState",
    "EventStream",
]
