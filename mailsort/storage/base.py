"""
Storage source contract.

The batch engine and the import merger only ever talk to this interface,
so the remote (Google Drive) and local (filesystem) providers are
interchangeable.
"""

from abc import ABC, abstractmethod
from pathlib import PurePath
from typing import Any, Dict, List, Optional

from mailsort.models import SourceFile

SUPPORTED_MIME_TYPES = (
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/heic",
    "image/heif",
)

EXTENSION_MIME_TYPES = {
    ".pdf": "application/pdf",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".heic": "image/heic",
    ".heif": "image/heif",
}


def infer_mime_type(filename: str, existing: Optional[str] = None) -> str:
    """
    Return the known mime type, or guess it from the extension.

    Returns an empty string when nothing can be inferred; the extraction
    client reports that as an unknown file type.
    """
    if existing and existing.strip():
        return existing.strip()
    return EXTENSION_MIME_TYPES.get(PurePath(filename).suffix.lower(), "")


class StorageSource(ABC):
    """A place mail scans are listed from, fetched from and archived to."""

    provider_name = "storage"

    @abstractmethod
    async def list_files(self, location: str) -> List[SourceFile]:
        """List candidate scans (PDF/image) at a location."""

    @abstractmethod
    async def fetch(self, file_id: str) -> bytes:
        """Return the raw bytes of one file."""

    @abstractmethod
    async def upload(
        self,
        content: bytes,
        destination: str,
        filename: str,
        description: str,
        mime_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Store a file at a destination and return a confirmation record."""
