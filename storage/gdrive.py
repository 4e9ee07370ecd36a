"""Google Drive source driver."""

from datetime import datetime
from typing import Dict, List, Optional
from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2 import credentials as user_credentials
from google.oauth2 import service_account
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload
import httplib2
import json
import os

from .base import (
    SourceDriver, StorageError, AuthExpiredError, RawFileEntry, make_temp_path,
)
from utils.retry import retry_after_refresh


SCOPES = ['https://www.googleapis.com/auth/drive.readonly']

FOLDER_MIME_TYPE = 'application/vnd.google-apps.folder'

FILE_FIELDS = "id, name, mimeType, size, modifiedTime, md5Checksum, webViewLink"

# Seconds before an individual Drive request gives up
REQUEST_TIMEOUT = 60


# ---------------------------------------------------------------------------
# Credential refresh
# ---------------------------------------------------------------------------

def _is_auth_expired(exc: Exception) -> bool:
    """True if a Drive error means the access token needs refreshing."""
    return isinstance(exc, HttpError) and exc.resp.status == 401


def _log_refresh(exc: Exception) -> None:
    print("  [Auth] Google Drive access token expired, refreshing...")


_with_refresh = retry_after_refresh(_is_auth_expired, on_refresh=_log_refresh)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None


def load_gdrive_credentials(service_account_file: str = "service_account_key.json"):
    """Load Drive credentials.

    Credentials are loaded from:
    1. A service account key file, if it exists
    2. GDRIVE_TOKEN_JSON environment variable holding an OAuth client id,
       client secret and refresh token

    Raises:
        StorageError: If no usable credentials are found
    """
    if os.path.exists(service_account_file):
        try:
            return service_account.Credentials.from_service_account_file(
                service_account_file, scopes=SCOPES
            )
        except (ValueError, OSError) as e:
            raise StorageError(f"Invalid service account file: {e}")

    if os.environ.get('GDRIVE_TOKEN_JSON'):
        try:
            info = json.loads(os.environ['GDRIVE_TOKEN_JSON'])
        except json.JSONDecodeError as e:
            raise StorageError(f"Invalid GDRIVE_TOKEN_JSON env var: {e}")
        for key in ('client_id', 'client_secret', 'refresh_token'):
            if key not in info:
                raise StorageError(f"Google Drive credentials missing required key: {key}")
        return user_credentials.Credentials(
            token=None,
            refresh_token=info['refresh_token'],
            token_uri="https://oauth2.googleapis.com/token",
            client_id=info['client_id'],
            client_secret=info['client_secret'],
            scopes=SCOPES,
        )

    raise StorageError(
        f"No Google Drive credentials found. Create {service_account_file} "
        "or set the GDRIVE_TOKEN_JSON environment variable."
    )


class GDriveDriver(SourceDriver):
    """Source driver for Google Drive.

    Folder paths are Drive folder ids; get_file() takes a file id.
    """

    backend = "gdrive"

    def __init__(self, service_account_file: str = "service_account_key.json",
                 service=None, creds=None) -> None:
        """Initialize Google Drive source driver.

        Args:
            service_account_file: Path to service account credentials JSON
            service: Pre-built Drive service (skips credential loading)
            creds: Credentials matching ``service``, used for refreshes

        Raises:
            StorageError: If credentials are missing or invalid
        """
        if service is not None:
            self.service = service
            self.creds = creds
            return

        self.creds = load_gdrive_credentials(service_account_file)
        try:
            http = AuthorizedHttp(self.creds, http=httplib2.Http(timeout=REQUEST_TIMEOUT))
            self.service = build('drive', 'v3', http=http, cache_discovery=False)
        except Exception as e:
            raise StorageError(f"Failed to initialize Google Drive: {e}")

    @property
    def display_name(self) -> str:
        return "Google Drive"

    def refresh_credentials(self) -> None:
        """Fetch a new access token for the current credentials."""
        if self.creds is None:
            return
        try:
            self.creds.refresh(Request())
        except RefreshError as e:
            raise AuthExpiredError(f"Google Drive token refresh failed: {e}")

    @_with_refresh
    def _execute(self, request):
        return request.execute()

    def _to_entry(self, item: Dict, base_path: str = "") -> RawFileEntry:
        item_path = f"{base_path}/{item['name']}" if base_path else item['name']
        return RawFileEntry(
            backend=self.backend,
            path=item_path,
            name=item['name'],
            size=int(item['size']) if item.get('size') else None,
            modified=_parse_timestamp(item.get('modifiedTime')),
            tag="folder" if item.get('mimeType') == FOLDER_MIME_TYPE else "file",
            id=item['id'],
            revision=item.get('md5Checksum') or item.get('modifiedTime'),
        )

    # =========================================================================
    # Listing
    # =========================================================================

    def list_files(self, path: str = "", recursive: bool = False) -> List[RawFileEntry]:
        """List files in the Drive folder with id ``path``."""
        if not path:
            raise StorageError("A Google Drive folder id is required")

        results: List[RawFileEntry] = []
        try:
            self._list_folder(path, "", recursive, results)
        except HttpError as e:
            if e.resp.status == 404:
                raise StorageError(f"Folder not found: {path}")
            raise StorageError(f"Failed to list folder {path}: {e}")
        return results

    def _list_folder(self, folder_id: str, base_path: str, recursive: bool,
                     results: List[RawFileEntry]) -> None:
        page_token = None

        while True:
            response = self._execute(self.service.files().list(
                q=f"'{folder_id}' in parents and trashed=false",
                pageSize=100,
                fields=f"nextPageToken, files({FILE_FIELDS})",
                pageToken=page_token,
                supportsAllDrives=True,
                includeItemsFromAllDrives=True,
            ))

            for item in response.get('files', []):
                if item.get('mimeType') == FOLDER_MIME_TYPE:
                    if recursive:
                        item_path = f"{base_path}/{item['name']}" if base_path else item['name']
                        self._list_folder(item['id'], item_path, recursive, results)
                    continue
                results.append(self._to_entry(item, base_path))

            page_token = response.get('nextPageToken')
            if not page_token:
                break

    def _get_item(self, file_id: str, fields: str = FILE_FIELDS) -> Dict:
        try:
            return self._execute(self.service.files().get(
                fileId=file_id,
                fields=fields,
                supportsAllDrives=True,
            ))
        except HttpError as e:
            if e.resp.status == 404:
                raise StorageError(f"File not found: {file_id}")
            raise StorageError(f"Failed to read metadata for {file_id}: {e}")

    def get_file(self, path: str) -> RawFileEntry:
        """Look up one file by its Drive file id."""
        item = self._get_item(path)
        if item.get('mimeType') == FOLDER_MIME_TYPE:
            raise StorageError(f"Not a file: {path}")
        return self._to_entry(item)

    # =========================================================================
    # Download and links
    # =========================================================================

    @_with_refresh
    def _download_file(self, file_id: str, local_path: str) -> None:
        request = self.service.files().get_media(fileId=file_id, supportsAllDrives=True)
        with open(local_path, 'wb') as f:
            downloader = MediaIoBaseDownload(f, request)
            done = False
            while not done:
                _, done = downloader.next_chunk()

    def download_to_temp(self, entry: RawFileEntry, temp_dir: Optional[str] = None) -> str:
        """Download a file to a temporary location."""
        if not entry.id:
            raise StorageError(f"Google Drive entry has no file id: {entry.path}")

        temp_path = make_temp_path(entry.name, temp_dir)
        try:
            self._download_file(entry.id, temp_path)
            return temp_path
        except Exception as e:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise StorageError(f"Failed to download {entry.path}: {e}")

    def create_shareable_link(self, entry: RawFileEntry) -> Optional[str]:
        """Return the file's web view link."""
        if not entry.id:
            return None
        item = self._get_item(entry.id, fields="id, webViewLink")
        return item.get('webViewLink')
