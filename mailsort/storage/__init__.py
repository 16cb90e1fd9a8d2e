"""Storage sources that scans are listed from, read from and archived to."""

from mailsort.storage.base import SUPPORTED_MIME_TYPES, StorageSource, infer_mime_type
from mailsort.storage.local import LocalFolderSource

__all__ = ["LocalFolderSource", "StorageSource", "SUPPORTED_MIME_TYPES", "infer_mime_type"]
