"""
Local filesystem storage source.

File ids are absolute paths. Uploading copies the bytes into a destination
folder and writes the description next to it as a ``.txt`` sidecar.
"""

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from mailsort.models import SourceFile
from mailsort.storage.base import EXTENSION_MIME_TYPES, StorageSource, infer_mime_type
from mailsort.utils.errors import ContentReadError, StorageError
from mailsort.utils.logging import get_logger

logger = get_logger(__name__)


class LocalFolderSource(StorageSource):
    """Enumerate and read scans from a local directory tree."""

    provider_name = "local"

    def __init__(self, recursive: bool = True) -> None:
        self.recursive = recursive

    def _scan(self, folder: Path) -> List[SourceFile]:
        if not folder.is_dir():
            raise StorageError(f"Folder not found: {folder}", {"folder": str(folder)})

        pattern = "**/*" if self.recursive else "*"
        files = []
        for path in sorted(folder.glob(pattern)):
            if not path.is_file() or path.name.startswith("."):
                continue
            if path.suffix.lower() not in EXTENSION_MIME_TYPES:
                continue
            files.append(
                SourceFile(
                    id=str(path.resolve()),
                    display_name=path.name,
                    mime_hint=infer_mime_type(path.name),
                    created_time=datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc),
                )
            )
        return files

    async def list_files(self, location: str) -> List[SourceFile]:
        files = await asyncio.get_running_loop().run_in_executor(None, self._scan, Path(location))
        logger.info(f"Found {len(files)} scans in {location}")
        return files

    async def fetch(self, file_id: str) -> bytes:
        path = Path(file_id)
        try:
            return await asyncio.get_running_loop().run_in_executor(None, path.read_bytes)
        except OSError as e:
            raise ContentReadError(str(path), e.strerror or str(e)) from e

    async def upload(
        self,
        content: bytes,
        destination: str,
        filename: str,
        description: str,
        mime_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        folder = Path(destination)
        target = folder / filename

        def _write() -> None:
            folder.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
            target.with_name(f"{target.name}.txt").write_text(description, encoding="utf-8")

        try:
            await asyncio.get_running_loop().run_in_executor(None, _write)
        except OSError as e:
            raise StorageError(f"Upload failed: {e}", {"destination": destination}) from e

        logger.info(f"Archived {filename} to {folder}")
        return {"id": str(target.resolve()), "name": filename, "mimeType": mime_type or infer_mime_type(filename)}
