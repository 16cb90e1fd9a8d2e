"""
Archive analysed scans into a storage folder.

The original bytes are re-uploaded under the result's suggested filename,
with sender, addressee, classification and reasoning as the description.
"""

from pathlib import PurePath
from typing import Any, Dict

from mailsort.models import AnalysisResult, LocalSource, RemoteSource, WorkItem
from mailsort.storage.base import StorageSource, infer_mime_type
from mailsort.utils.errors import StorageError
from mailsort.utils.logging import LogContext, get_logger

logger = get_logger(__name__)


def archive_filename(result: AnalysisResult, original_name: str) -> str:
    """Suggested filename with the original extension appended when missing."""
    name = result.suggested_filename
    suffix = PurePath(original_name).suffix
    if suffix and not name.lower().endswith(suffix.lower()):
        name = f"{name}{suffix}"
    return name


def archive_description(result: AnalysisResult) -> str:
    return (
        f"Sender: {result.sender or 'Unknown'}\n"
        f"Addressee: {result.recipient_name or 'Unknown'}\n"
        f"Classification: {result.classification.label}\n"
        f"Reason: {result.reasoning or ''}"
    )


async def archive_result(
    source: StorageSource,
    item: WorkItem,
    result: AnalysisResult,
    destination: str,
) -> Dict[str, Any]:
    """
    Re-upload the scan behind ``item`` to ``destination`` on the same source.

    Args:
        source: Provider holding the original; the copy is written there too
        item: Work item the result belongs to
        result: Result naming and describing the upload
        destination: Folder ID (Drive) or directory (local)

    Returns:
        Confirmation record from the storage provider
    """
    if isinstance(item.source, RemoteSource):
        file_id = item.source.file_id
        mime_type = infer_mime_type(item.display_name, item.source.mime_hint)
    elif isinstance(item.source, LocalSource):
        file_id = str(item.source.path)
        mime_type = infer_mime_type(item.display_name)
    else:
        raise StorageError(f"Cannot archive item '{item.id}': unknown source")

    filename = archive_filename(result, item.display_name)
    with LogContext(item_id=item.id, document=filename):
        content = await source.fetch(file_id)
        created = await source.upload(
            content,
            destination,
            filename,
            archive_description(result),
            mime_type or None,
        )
        logger.info(f"Archived {item.display_name} as {filename}")
    return created
