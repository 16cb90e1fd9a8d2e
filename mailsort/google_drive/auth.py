"""
Credentials for the Drive scan folder.

``GoogleDriveAuth`` runs the installed-app consent flow once and caches the
user token on disk; ``ServiceAccountAuth`` is for unattended runs. Both
expose ``credentials``, ``is_authenticated`` and ``authenticate()``, which
is all the Drive client needs. A work item that fails with an authorization
error is fixed by running ``mailsort connect --force``.
"""

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from mailsort.config import get_settings
from mailsort.utils.errors import DriveAuthenticationError
from mailsort.utils.logging import get_logger

logger = get_logger(__name__)

# Read the scan folder, write archived copies
SCOPES = [
    "https://www.googleapis.com/auth/drive.readonly",
    "https://www.googleapis.com/auth/drive.file",
]


class _DriveCredentials:
    """Shared credential holder."""

    def __init__(self, scopes: Optional[List[str]] = None) -> None:
        self.scopes = scopes or SCOPES
        self._credentials = None

    @property
    def credentials(self):
        return self._credentials

    @property
    def is_authenticated(self) -> bool:
        return self._credentials is not None and self._credentials.valid

    async def get_user_info(self) -> Dict[str, Any]:
        """Return the Drive ``about.user`` record for the signed-in account."""
        if not self.is_authenticated:
            raise DriveAuthenticationError("Not authenticated; run 'mailsort connect' first")

        def _about() -> Dict[str, Any]:
            from googleapiclient.discovery import build

            service = build("drive", "v3", credentials=self._credentials)
            return service.about().get(fields="user(displayName, emailAddress)").execute()["user"]

        try:
            user = await asyncio.get_running_loop().run_in_executor(None, _about)
        except Exception as e:
            raise DriveAuthenticationError(f"Could not read the Drive account: {e}")

        logger.debug(f"Drive account: {user.get('emailAddress', 'unknown')}")
        return user


class GoogleDriveAuth(_DriveCredentials):
    """OAuth2 installed-app flow with a cached, refreshable user token."""

    def __init__(
        self,
        credentials_path: Optional[Path] = None,
        token_path: Optional[Path] = None,
        scopes: Optional[List[str]] = None,
    ) -> None:
        """
        Args:
            credentials_path: OAuth client secrets JSON (defaults to DRIVE_CREDENTIALS_PATH)
            token_path: Where the user token is cached (defaults to DRIVE_TOKEN_PATH)
            scopes: OAuth2 scopes (defaults to SCOPES)
        """
        super().__init__(scopes)
        settings = get_settings()
        self.credentials_path = credentials_path or settings.drive_credentials_path
        self.token_path = token_path or settings.drive_token_path

    async def authenticate(self, force_reauth: bool = False) -> Credentials:
        """
        Make sure valid credentials are loaded.

        A cached token is reused and refreshed when possible; otherwise, or
        when ``force_reauth`` is set, the browser consent flow runs.

        Raises:
            DriveAuthenticationError: If no valid credentials can be obtained
        """
        try:
            creds = None if force_reauth else self._cached_token()
            if creds is not None and not creds.valid and creds.expired and creds.refresh_token:
                logger.info("Refreshing expired Drive token")
                creds.refresh(Request())
                self._store_token(creds)

            if creds is None or not creds.valid:
                creds = self._consent()
                self._store_token(creds)
        except DriveAuthenticationError:
            raise
        except Exception as e:
            logger.error(f"Drive authentication failed: {e}")
            raise DriveAuthenticationError(f"Failed to authenticate: {e}")

        self._credentials = creds
        logger.info("Authenticated with Google Drive")
        return creds

    def _consent(self) -> Credentials:
        if not self.credentials_path.exists():
            raise DriveAuthenticationError(
                f"OAuth client file not found: {self.credentials_path}. "
                "Create a desktop OAuth client in Google Cloud Console and save its JSON there."
            )
        logger.info("Opening browser for Drive consent")
        flow = InstalledAppFlow.from_client_secrets_file(str(self.credentials_path), self.scopes)
        return flow.run_local_server(
            port=0,
            authorization_prompt_message="Sign in to Google Drive in the browser window...",
            success_message="Mailsort is connected. You can close this window.",
        )

    def _cached_token(self) -> Optional[Credentials]:
        if not self.token_path.exists():
            return None
        try:
            return Credentials.from_authorized_user_file(str(self.token_path), self.scopes)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable token {self.token_path}: {e}")
            return None

    def _store_token(self, creds: Credentials) -> None:
        self.token_path.parent.mkdir(parents=True, exist_ok=True)
        self.token_path.write_text(creds.to_json(), encoding="utf-8")
        logger.debug(f"Token cached at {self.token_path}")

    def revoke(self) -> None:
        """Drop the loaded credentials and delete the cached token file."""
        self._credentials = None
        if self.token_path.exists():
            self.token_path.unlink()
            logger.info(f"Deleted cached token {self.token_path}")


class ServiceAccountAuth(_DriveCredentials):
    """Service-account key for unattended runs; the scan folder must be shared with it."""

    def __init__(self, service_account_path: Path, scopes: Optional[List[str]] = None) -> None:
        super().__init__(scopes)
        if not service_account_path.exists():
            raise DriveAuthenticationError(f"Service account key not found: {service_account_path}")
        self.service_account_path = service_account_path

    @property
    def is_authenticated(self) -> bool:
        # Service-account credentials only become valid after the first request
        return self._credentials is not None

    async def authenticate(self, force_reauth: bool = False):
        from google.oauth2 import service_account

        try:
            self._credentials = service_account.Credentials.from_service_account_file(
                str(self.service_account_path), scopes=self.scopes
            )
        except (OSError, ValueError) as e:
            raise DriveAuthenticationError(f"Invalid service account key: {e}")
        logger.info(f"Authenticated as service account {self._credentials.service_account_email}")
        return self._credentials


def create_auth_manager(service_account_path: Optional[Path] = None):
    """Pick service-account auth when a key is given, OAuth otherwise."""
    if service_account_path is not None:
        return ServiceAccountAuth(service_account_path)
    return GoogleDriveAuth()
