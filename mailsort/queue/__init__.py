"""Work item queue and listing import."""

from mailsort.queue.importer import ImportMerger, local_listing, merge_listing
from mailsort.queue.store import QueueStore

__all__ = ["ImportMerger", "QueueStore", "local_listing", "merge_listing"]
