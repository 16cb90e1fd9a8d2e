"""
Google Drive storage provider.

OAuth handling and a Drive v3 client implementing the storage source
contract for scan folders.
"""

from mailsort.google_drive.auth import GoogleDriveAuth, ServiceAccountAuth, create_auth_manager
from mailsort.google_drive.client import GoogleDriveClient, create_drive_client

__all__ = [
    "GoogleDriveAuth",
    "GoogleDriveClient",
    "ServiceAccountAuth",
    "create_auth_manager",
    "create_drive_client",
]
