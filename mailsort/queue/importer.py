"""
Import merger: fold a fresh storage listing into the queue.

Only files whose natural key (remote file id, or display name for local
files) is not already queued become new idle items. Listing order is kept
and new items land after everything already queued.
"""

from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from mailsort.models import LocalSource, RemoteSource, SourceFile, WorkItem
from mailsort.queue.store import QueueStore
from mailsort.storage.base import StorageSource
from mailsort.utils.logging import get_logger, log_performance

logger = get_logger(__name__)

LOCAL_PROVIDER = "local"


def _item_for(entry: SourceFile, provider: str) -> WorkItem:
    if provider == LOCAL_PROVIDER:
        return WorkItem(source=LocalSource(path=Path(entry.id)), display_name=entry.display_name)
    return WorkItem(
        source=RemoteSource(provider=provider, file_id=entry.id, mime_hint=entry.mime_hint),
        display_name=entry.display_name,
    )


def merge_listing(
    listing: Sequence[SourceFile],
    existing: Iterable[WorkItem],
    provider: str = "drive",
) -> List[WorkItem]:
    """
    Compute the genuinely new work items for a listing.

    Args:
        listing: Files visible at the storage location, in listing order
        existing: Items already queued
        provider: Storage provider name; ``"local"`` makes local-file items

    Returns:
        New idle items, in listing order
    """
    seen = {item.natural_key for item in existing}
    new_items = []
    for entry in listing:
        item = _item_for(entry, provider)
        if item.natural_key in seen:
            continue
        seen.add(item.natural_key)
        new_items.append(item)
    return new_items


def local_listing(paths: Iterable[Path]) -> List[SourceFile]:
    """Describe local files as a listing so they merge like remote ones."""
    return [SourceFile(id=str(Path(p)), display_name=Path(p).name) for p in paths]


class ImportMerger:
    """Apply merge results to a queue store."""

    def __init__(self, store: QueueStore) -> None:
        self.store = store

    def import_listing(self, listing: Sequence[SourceFile], provider: str = "drive") -> List[WorkItem]:
        new_items = merge_listing(listing, self.store.items(), provider)
        if new_items:
            self.store.add(new_items)
            logger.info(f"Queued {len(new_items)} new item(s) from {provider}")
        else:
            logger.info("No new files found to import")
        return new_items

    def import_local(self, paths: Iterable[Path]) -> List[WorkItem]:
        return self.import_listing(local_listing(paths), provider=LOCAL_PROVIDER)

    @log_performance
    async def import_from(
        self,
        source: StorageSource,
        location: str,
        provider: Optional[str] = None,
    ) -> List[WorkItem]:
        """List ``location`` on ``source`` and queue whatever is new."""
        listing = await source.list_files(location)
        return self.import_listing(listing, provider or getattr(source, "provider_name", "drive"))
