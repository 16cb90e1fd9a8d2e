"""
In-memory queue of work items.

The store is the single owner of every work item. Items are immutable, so
all changes are whole-item swaps by id; the last writer wins. Insertion
order is the processing order.
"""

import asyncio
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from mailsort.models import AnalysisResult, WorkItem, WorkItemStatus
from mailsort.utils.errors import InvalidTransitionError, ItemNotFoundError, QueueError
from mailsort.utils.logging import get_logger

logger = get_logger(__name__)

IdleListener = Callable[[], None]


class QueueStore:
    """Ordered, id-keyed collection of work items."""

    def __init__(self, items: Optional[Iterable[WorkItem]] = None) -> None:
        self._items: Dict[str, WorkItem] = {}
        self._listeners: List[IdleListener] = []
        self._idle_available = asyncio.Event()
        if items:
            self.add(items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[WorkItem]:
        return iter(self.items())

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def add(self, items: Iterable[WorkItem]) -> List[WorkItem]:
        """Append items after everything already queued."""
        added = []
        for item in items:
            if item.id in self._items:
                raise QueueError(f"Work item '{item.id}' is already queued", {"item_id": item.id})
            self._items[item.id] = item
            added.append(item)

        if added:
            logger.debug(f"Queued {len(added)} item(s); {len(self._items)} total")
        if any(item.status == WorkItemStatus.IDLE for item in added):
            self._notify_idle()
        return added

    def replace(self, item: WorkItem) -> WorkItem:
        """Swap in a new version of an existing item."""
        if item.id not in self._items:
            raise ItemNotFoundError(item.id)
        previous = self._items[item.id]
        self._items[item.id] = item
        if item.status == WorkItemStatus.IDLE and previous.status != WorkItemStatus.IDLE:
            self._notify_idle()
        return item

    def retry(self, item_id: str) -> WorkItem:
        """Manual retry: put a failed item back in the idle pool."""
        item = self.get(item_id)
        if item.status != WorkItemStatus.FAILED:
            raise InvalidTransitionError(item_id, item.status.value, WorkItemStatus.IDLE.value)
        logger.info(f"Retrying {item.display_name}")
        return self.replace(item.reset())

    def retry_failed(self) -> List[WorkItem]:
        """Manual retry of every failed item, in queue order."""
        return [self.retry(item.id) for item in self.items() if item.status == WorkItemStatus.FAILED]

    def remove(self, item_id: str) -> WorkItem:
        item = self.get(item_id)
        if item.status == WorkItemStatus.ANALYZING:
            raise QueueError(f"Work item '{item_id}' is being analyzed", {"item_id": item_id})
        return self._items.pop(item_id)

    def clear(self) -> None:
        if any(item.status == WorkItemStatus.ANALYZING for item in self._items.values()):
            raise QueueError("Cannot clear the queue while an item is being analyzed")
        self._items.clear()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, item_id: str) -> WorkItem:
        try:
            return self._items[item_id]
        except KeyError:
            raise ItemNotFoundError(item_id) from None

    def items(self) -> Tuple[WorkItem, ...]:
        """Snapshot of all items in insertion order."""
        return tuple(self._items.values())

    def first_idle(self) -> Optional[WorkItem]:
        for item in self._items.values():
            if item.status == WorkItemStatus.IDLE:
                return item
        return None

    def has_idle(self) -> bool:
        return self.first_idle() is not None

    def counts(self) -> Dict[WorkItemStatus, int]:
        counts = {status: 0 for status in WorkItemStatus}
        for item in self._items.values():
            counts[item.status] += 1
        return counts

    def progress(self) -> float:
        """Fraction of items in a terminal status (0.0 for an empty queue)."""
        if not self._items:
            return 0.0
        done = sum(1 for item in self._items.values() if item.status.is_terminal)
        return done / len(self._items)

    def results(self) -> List[Tuple[WorkItem, AnalysisResult]]:
        """Every analysis result paired with its item, in queue order."""
        return [(item, result) for item in self._items.values() for result in item.results or []]

    # -------------------------------------------------------------------------
    # Notification
    # -------------------------------------------------------------------------

    def subscribe(self, listener: IdleListener) -> Callable[[], None]:
        """Call ``listener`` whenever a new idle item appears. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def wait_for_idle(self) -> None:
        """Suspend until at least one idle item is queued."""
        while not self.has_idle():
            self._idle_available.clear()
            await self._idle_available.wait()

    def _notify_idle(self) -> None:
        self._idle_available.set()
        for listener in list(self._listeners):
            listener()
