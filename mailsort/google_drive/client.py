"""
Google Drive API client for scan folders.

Lists PDF/image scans in a folder, downloads them into memory for the
batch engine and uploads analysed copies to an archive folder.
"""

import asyncio
import io
from typing import Any, Dict, List, Optional

import httplib2
from google.auth.exceptions import GoogleAuthError
from googleapiclient.discovery import Resource, build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload, MediaIoBaseUpload
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from mailsort.config import get_settings
from mailsort.models import SourceFile
from mailsort.storage.base import StorageSource, infer_mime_type
from mailsort.utils.errors import (
    DriveAuthenticationError,
    DriveFileNotFoundError,
    DriveQuotaExceededError,
    GoogleDriveError,
)
from mailsort.utils.logging import LogContext, get_logger, log_performance

logger = get_logger(__name__)

PDF_MIME_TYPE = "application/pdf"

LIST_FIELDS = "nextPageToken, files(id, name, mimeType, thumbnailLink, createdTime)"


def _translate_http_error(e: HttpError, action: str, file_id: Optional[str] = None) -> GoogleDriveError:
    status = e.resp.status
    if status == 404 and file_id:
        return DriveFileNotFoundError(file_id)
    if status == 429:
        retry_after = e.resp.get("retry-after")
        return DriveQuotaExceededError(retry_after=int(retry_after) if retry_after else None)
    if status in (401, 403):
        return DriveAuthenticationError(
            f"Drive refused to {action}: access denied. Re-run 'mailsort connect' to re-authenticate."
        )
    return GoogleDriveError(f"Failed to {action}: {e}")


# Failures below the HTTP layer: dropped connections, socket timeouts, TLS, token refresh
TRANSPORT_ERRORS = (OSError, httplib2.HttpLib2Error, GoogleAuthError)


def _translate_transport_error(e: Exception, action: str) -> GoogleDriveError:
    if isinstance(e, GoogleAuthError):
        return DriveAuthenticationError(
            f"Drive credentials could not be refreshed while trying to {action}: {e}. "
            "Re-run 'mailsort connect --force'."
        )
    return GoogleDriveError(f"Network error while trying to {action}: {str(e) or type(e).__name__}")


class GoogleDriveClient(StorageSource):
    """Drive v3 scan source: list, download and archive-upload."""

    provider_name = "drive"

    def __init__(self, auth_manager=None, page_size: Optional[int] = None, service: Optional[Resource] = None) -> None:
        """
        Args:
            auth_manager: Authentication manager (``GoogleDriveAuth`` or ``ServiceAccountAuth``)
            page_size: Page size for folder listings (defaults to DRIVE_PAGE_SIZE)
            service: Pre-built Drive v3 resource (skips ``connect``)
        """
        settings = get_settings()
        if auth_manager is None and service is None:
            from mailsort.google_drive.auth import create_auth_manager

            auth_manager = create_auth_manager()
        self.auth_manager = auth_manager
        self.page_size = page_size or settings.drive_page_size

        self._service: Optional[Resource] = service

    async def connect(self) -> None:
        """Build the Drive service, authenticating first if needed."""
        if self._service is not None:
            return

        if not self.auth_manager.is_authenticated:
            await self.auth_manager.authenticate()

        try:
            self._service = build("drive", "v3", credentials=self.auth_manager.credentials)
            logger.info("Drive service ready")
        except Exception as e:
            logger.error(f"Drive service build failed: {e}")
            raise GoogleDriveError(f"Failed to connect to Drive API: {e}")

    async def _call(self, func):
        if self._service is None:
            await self.connect()
        return await asyncio.get_running_loop().run_in_executor(None, func)

    @log_performance
    @retry(
        retry=retry_if_exception_type(DriveQuotaExceededError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        reraise=True,
    )
    async def list_files(self, location: str) -> List[SourceFile]:
        """
        List PDF and image scans in a Drive folder, newest first.

        Args:
            location: Drive folder ID

        Raises:
            GoogleDriveError: If the folder cannot be listed
        """
        query = (
            f"'{location}' in parents and trashed = false "
            f"and (mimeType contains 'image/' or mimeType = '{PDF_MIME_TYPE}')"
        )
        files: List[SourceFile] = []
        page_token = None

        with LogContext(folder_id=location):
            try:
                while True:
                    response = await self._call(
                        lambda: self._service.files().list(
                            q=query,
                            fields=LIST_FIELDS,
                            pageSize=self.page_size,
                            pageToken=page_token,
                            orderBy="createdTime desc",
                        ).execute()
                    )

                    for entry in response.get("files", []):
                        files.append(
                            SourceFile(
                                id=entry["id"],
                                display_name=entry["name"],
                                mime_hint=entry.get("mimeType"),
                                created_time=entry.get("createdTime"),
                            )
                        )

                    page_token = response.get("nextPageToken")
                    if not page_token:
                        break
            except HttpError as e:
                logger.error(f"Failed to list files in folder {location}: {e}")
                raise _translate_http_error(e, "list files")
            except TRANSPORT_ERRORS as e:
                logger.error(f"Listing folder {location} failed: {e}")
                raise _translate_transport_error(e, "list files")

        logger.info(f"Found {len(files)} scans in Drive folder")
        return files

    @retry(
        retry=retry_if_exception_type(DriveQuotaExceededError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        reraise=True,
    )
    async def fetch(self, file_id: str) -> bytes:
        """
        Download a file into memory.

        Raises:
            DriveFileNotFoundError: If the scan is gone or not shared
            GoogleDriveError: For any other API failure
        """

        def _download() -> bytes:
            request = self._service.files().get_media(fileId=file_id)
            buffer = io.BytesIO()
            downloader = MediaIoBaseDownload(buffer, request, chunksize=5 * 1024 * 1024)
            done = False
            while not done:
                _, done = downloader.next_chunk()
            return buffer.getvalue()

        try:
            content = await self._call(_download)
        except HttpError as e:
            logger.error(f"Download of {file_id} failed: {e}")
            raise _translate_http_error(e, "download file from Drive", file_id)
        except TRANSPORT_ERRORS as e:
            logger.error(f"Download of {file_id} failed: {e}")
            raise _translate_transport_error(e, "download file from Drive")

        logger.debug(f"Downloaded {file_id} ({len(content)} bytes)")
        return content

    async def upload(
        self,
        content: bytes,
        destination: str,
        filename: str,
        description: str,
        mime_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a file in a Drive folder.

        Args:
            content: File bytes
            destination: Drive folder ID
            filename: Name of the new file
            description: Drive description text
            mime_type: Content type (inferred from the filename when absent)

        Returns:
            Drive file resource of the created file
        """
        mime_type = mime_type or infer_mime_type(filename) or PDF_MIME_TYPE
        metadata = {
            "name": filename,
            "parents": [destination],
            "description": description,
            "mimeType": mime_type,
        }
        media = MediaIoBaseUpload(io.BytesIO(content), mimetype=mime_type, resumable=False)

        try:
            created = await self._call(
                lambda: self._service.files().create(
                    body=metadata,
                    media_body=media,
                    fields="id, name, mimeType",
                ).execute()
            )
        except HttpError as e:
            logger.error(f"Failed to upload {filename}: {e}")
            raise _translate_http_error(e, "upload file")
        except TRANSPORT_ERRORS as e:
            logger.error(f"Failed to upload {filename}: {e}")
            raise _translate_transport_error(e, "upload file")

        logger.info(f"Uploaded {filename} to Drive folder {destination}")
        return created


def create_drive_client(service_account_path=None) -> GoogleDriveClient:
    """Drive source using OAuth, or a service account when a key path is given."""
    from mailsort.google_drive.auth import create_auth_manager

    return GoogleDriveClient(create_auth_manager(service_account_path))
