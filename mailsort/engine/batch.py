"""
Batch engine: drain the work queue one item at a time.

Only one drain loop may run at once and only one item is ever analyzing.
Items are taken in queue order among those currently idle; the selection
is re-evaluated after every item, so items added mid-run simply join the
back of the idle pool. A fixed pacing sleep follows every item to respect
the extraction service's rate limits; backoff for transient errors lives
inside the extraction client.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Protocol, Set, Tuple

from mailsort.config import get_settings
from mailsort.engine.events import EngineEvent, EngineEventType, EventStream
from mailsort.models import LocalSource, RawRecord, RemoteSource, WorkItem
from mailsort.queue.store import QueueStore
from mailsort.routing.classifier import map_record
from mailsort.routing.rules import DEFAULT_RULES, RoutingRules
from mailsort.storage.base import StorageSource, infer_mime_type
from mailsort.storage.local import LocalFolderSource
from mailsort.utils.errors import ExtractionError, StorageError
from mailsort.utils.logging import LogContext, get_logger

logger = get_logger(__name__)

PREPARING_MESSAGE = "Preparing document..."
PACING_MESSAGE = "Pacing requests (Rate Limit Guard)..."


class ExtractionClient(Protocol):
    async def analyze(
        self,
        content: bytes,
        mime_type: str,
        metadata: Optional[Dict[str, Any]] = None,
        on_progress: Optional[Callable[[str], None]] = None,
    ) -> List[RawRecord]:
        ...


class CancellationToken:
    """Cooperative stop signal, checked between steps and never mid-call."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass
class EngineState:
    """Observable engine state; owned and mutated by the engine only."""

    active: bool = False
    processing_id: Optional[str] = None
    heartbeat: str = "System Ready"


class BatchEngine:
    """Single-flight worker that analyzes queued items."""

    def __init__(
        self,
        store: QueueStore,
        extractor: ExtractionClient,
        sources: Optional[Mapping[str, StorageSource]] = None,
        local_source: Optional[StorageSource] = None,
        pacing_interval: Optional[float] = None,
        rules: RoutingRules = DEFAULT_RULES,
        events: Optional[EventStream] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        auto_trigger: bool = False,
    ) -> None:
        """
        Initialize the engine.

        Args:
            store: Queue to drain
            extractor: Extraction client
            sources: Remote storage providers by name (e.g. ``{"drive": client}``)
            local_source: Reader for local files
            pacing_interval: Seconds to wait after every item
            rules: Routing tables handed to the classification mapper
            events: Event stream to publish progress on
            sleep: Coroutine used for the pacing sleep
            auto_trigger: Start draining whenever the store gains an idle item
        """
        self.store = store
        self.extractor = extractor
        self.sources: Dict[str, StorageSource] = dict(sources or {})
        self.local_source = local_source or LocalFolderSource()
        self.pacing_interval = (
            get_settings().pacing_interval if pacing_interval is None else pacing_interval
        )
        self.rules = rules
        self.events = events or EventStream()
        self.state = EngineState()
        self._sleep = sleep
        self._current_token: Optional[CancellationToken] = None
        self._tasks: Set["asyncio.Task[None]"] = set()

        if auto_trigger:
            store.subscribe(self.trigger)

    @property
    def active(self) -> bool:
        return self.state.active

    def _heartbeat(self, message: str) -> None:
        self.state.heartbeat = message

    def _publish(self, event_type: EngineEventType, message: str, item: Optional[WorkItem] = None) -> None:
        self.events.publish(
            EngineEvent(
                type=event_type,
                message=message,
                item_id=item.id if item else None,
                status=item.status.value if item else None,
            )
        )

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def trigger(self) -> Optional["asyncio.Task[None]"]:
        """Schedule a drain if none is running. Safe to call at any time."""
        if self.state.active:
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; trigger ignored")
            return None

        task = loop.create_task(self.run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def cancel(self) -> None:
        """Ask the running drain loop to stop after the current step."""
        if self._current_token is not None:
            self._current_token.cancel()

    async def run(self, cancel_token: Optional[CancellationToken] = None) -> None:
        """
        Drain every idle item, one at a time.

        Returns immediately when another drain is already running.
        """
        if self.state.active:
            logger.debug("Drain already running; ignoring run()")
            return

        self.state.active = True
        token = cancel_token or CancellationToken()
        self._current_token = token
        processed = 0

        try:
            while not token.cancelled:
                item = self.store.first_idle()
                if item is None:
                    break

                self.state.processing_id = item.id
                await self._process(item, token)
                processed += 1

                if token.cancelled:
                    break

                self._heartbeat(PACING_MESSAGE)
                self._publish(EngineEventType.PACING, PACING_MESSAGE)
                await self._sleep(self.pacing_interval)
        finally:
            self.state.active = False
            self.state.processing_id = None
            self._current_token = None

        if token.cancelled:
            self._heartbeat("Processing stopped.")
            self._publish(EngineEventType.CANCELLED, f"Stopped after {processed} item(s)")
            logger.info(f"Batch cancelled after {processed} item(s)")
        else:
            self._heartbeat("Queue finished. All tasks complete.")
            self._publish(EngineEventType.QUEUE_DRAINED, f"Processed {processed} item(s)")
            logger.info(f"Queue drained ({processed} item(s) processed)")

    async def serve(self, cancel_token: CancellationToken) -> None:
        """Keep draining as work arrives until cancelled."""
        while not cancel_token.cancelled:
            work = asyncio.ensure_future(self.store.wait_for_idle())
            stop = asyncio.ensure_future(cancel_token.wait())
            try:
                await asyncio.wait({work, stop}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                work.cancel()
                stop.cancel()

            if cancel_token.cancelled:
                break
            await self.run(cancel_token)

    # -------------------------------------------------------------------------
    # One item
    # -------------------------------------------------------------------------

    async def _resolve_content(self, item: WorkItem) -> Tuple[bytes, str]:
        source = item.source
        if isinstance(source, RemoteSource):
            provider = self.sources.get(source.provider)
            if provider is None:
                raise StorageError(
                    f"No storage provider '{source.provider}' is configured",
                    {"provider": source.provider},
                )
            self._heartbeat(f"Downloading {item.display_name}...")
            content = await provider.fetch(source.file_id)
            return content, infer_mime_type(item.display_name, source.mime_hint)

        if isinstance(source, LocalSource):
            self._heartbeat("Reading local file...")
            content = await self.local_source.fetch(str(source.path))
            return content, infer_mime_type(item.display_name)

        raise StorageError(f"Cannot read item '{item.id}': unknown source", {"item_id": item.id})

    def _report_progress(self, item_id: str, message: str) -> None:
        item = self.store.replace(self.store.get(item_id).with_progress(message))
        self._heartbeat(message)
        self._publish(EngineEventType.ITEM_PROGRESS, message, item)

    def _finish(self, item: WorkItem) -> WorkItem:
        finished = self.store.replace(item)
        self._publish(EngineEventType.ITEM_FINISHED, finished.error or finished.status.value, finished)
        return finished

    async def _process(self, item: WorkItem, token: CancellationToken) -> WorkItem:
        with LogContext(item_id=item.id, document=item.display_name):
            current = self.store.replace(item.start_analysis(PREPARING_MESSAGE))
            self._heartbeat("Initializing AI Analyst...")
            self._publish(EngineEventType.ITEM_STARTED, PREPARING_MESSAGE, current)
            logger.info(f"Analyzing {item.display_name}")

            try:
                content, mime_type = await self._resolve_content(current)
            except StorageError as e:
                logger.warning(f"Could not read {item.display_name}: {e.message}")
                return self._finish(self.store.get(item.id).fail(e.message))
            except Exception as e:
                logger.exception(f"Unexpected error while reading {item.display_name}")
                message = f"Read failed for '{item.display_name}': {str(e) or type(e).__name__}. Retry the item."
                return self._finish(self.store.get(item.id).fail(message))

            if token.cancelled:
                logger.info(f"Cancelled before analysis; returning {item.display_name} to the queue")
                return self.store.replace(self.store.get(item.id).reset())

            try:
                records = await self.extractor.analyze(
                    content,
                    mime_type,
                    {"filename": item.display_name},
                    lambda message: self._report_progress(item.id, message),
                )
                results = [map_record(record, item.display_name, self.rules) for record in records]
            except ExtractionError as e:
                logger.warning(f"Analysis failed for {item.display_name}: {e.message}")
                return self._finish(self.store.get(item.id).fail(e.message))
            except Exception as e:
                logger.exception(f"Unexpected error while analyzing {item.display_name}")
                return self._finish(self.store.get(item.id).fail(str(e) or type(e).__name__))

            finished = self._finish(self.store.get(item.id).complete(results))
            logger.info(
                f"{item.display_name}: {len(results)} letter(s), status {finished.status.value}"
            )
            return finished
