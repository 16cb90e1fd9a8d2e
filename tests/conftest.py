"""
Shared fixtures for the mailsort test suite.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional

import pytest

from mailsort.config import reset_settings
from mailsort.models import RawRecord, RemoteSource, SourceFile, WorkItem
from mailsort.storage.base import StorageSource
from mailsort.utils.errors import DriveFileNotFoundError


@pytest.fixture(autouse=True)
def fresh_settings():
    """Re-read the environment for every test."""
    reset_settings()
    yield
    reset_settings()


class MemorySource(StorageSource):
    """In-memory storage provider."""

    provider_name = "memory"

    def __init__(self, files: Optional[Dict[str, bytes]] = None, listing: Optional[List[SourceFile]] = None):
        self.files = dict(files or {})
        self.listing = list(listing or [])
        self.uploads: List[Dict[str, Any]] = []
        self.on_fetch: Optional[Callable[[str], None]] = None

    async def list_files(self, location: str) -> List[SourceFile]:
        return list(self.listing)

    async def fetch(self, file_id: str) -> bytes:
        if self.on_fetch:
            self.on_fetch(file_id)
        if file_id not in self.files:
            raise DriveFileNotFoundError(file_id)
        return self.files[file_id]

    async def upload(self, content, destination, filename, description, mime_type=None):
        record = {
            "content": content,
            "destination": destination,
            "filename": filename,
            "description": description,
            "mime_type": mime_type,
        }
        self.uploads.append(record)
        return {"id": f"up-{len(self.uploads)}", "name": filename}


class StubExtractor:
    """Extraction client returning canned records per filename."""

    def __init__(self, answers: Optional[Dict[str, Any]] = None, default: Optional[List[RawRecord]] = None):
        self.answers = dict(answers or {})
        self.default = default
        self.calls: List[Dict[str, Any]] = []
        self.on_call: Optional[Callable[[Dict[str, Any]], None]] = None

    async def analyze(self, content, mime_type, metadata=None, on_progress=None):
        filename = (metadata or {}).get("filename")
        call = {"content": content, "mime_type": mime_type, "filename": filename}
        self.calls.append(call)

        if on_progress:
            on_progress("Initiating AI Analysis...")
        if self.on_call:
            self.on_call(call)

        # Yield to the loop like a real network call would
        await asyncio.sleep(0)

        answer = self.answers.get(filename, self.default)
        if isinstance(answer, BaseException):
            raise answer
        if answer is None:
            return [RawRecord(delivery_address="10 Uist Wynd, Ayr", recipient_name="Arvind Dougall")]
        return list(answer)


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def remote_item(file_id: str, name: Optional[str] = None, provider: str = "memory") -> WorkItem:
    return WorkItem(
        source=RemoteSource(provider=provider, file_id=file_id, mime_hint="application/pdf"),
        display_name=name or f"{file_id}.pdf",
    )


@pytest.fixture
def memory_source():
    return MemorySource()


@pytest.fixture
def stub_extractor():
    return StubExtractor()


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()
