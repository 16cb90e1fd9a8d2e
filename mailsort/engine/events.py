"""
Progress events published by the batch engine.

Consumers (the CLI status line, tests) subscribe and receive every event
on their own asyncio queue; the engine never calls into UI code.
"""

import asyncio
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

from mailsort.utils.logging import get_logger

logger = get_logger(__name__)


class EngineEventType(Enum):
    """Types of events emitted while draining the queue."""

    ITEM_STARTED = "item_started"
    ITEM_PROGRESS = "item_progress"
    ITEM_FINISHED = "item_finished"
    PACING = "pacing"
    QUEUE_DRAINED = "queue_drained"
    CANCELLED = "cancelled"


@dataclass
class EngineEvent:
    """One engine event."""

    type: EngineEventType
    message: str
    item_id: Optional[str] = None
    status: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "message": self.message,
            "item_id": self.item_id,
            "status": self.status,
            "timestamp": self.timestamp.isoformat(),
        }


class EventStream:
    """Fan-out of engine events to any number of subscribers."""

    def __init__(self, max_events: int = 500) -> None:
        """
        Initialize event stream.

        Args:
            max_events: Maximum events kept in history
        """
        self.events: Deque[EngineEvent] = deque(maxlen=max_events)
        self._subscribers: List["asyncio.Queue[EngineEvent]"] = []

    def subscribe(self) -> "asyncio.Queue[EngineEvent]":
        queue: "asyncio.Queue[EngineEvent]" = asyncio.Queue()
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: "asyncio.Queue[EngineEvent]") -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def publish(self, event: EngineEvent) -> None:
        self.events.append(event)
        for queue in self._subscribers:
            queue.put_nowait(event)
        logger.debug(f"Event {event.type.value}: {event.message}")

    def of_type(self, event_type: EngineEventType) -> List[EngineEvent]:
        return [event for event in self.events if event.type == event_type]
