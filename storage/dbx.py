"""Dropbox source driver.

Read-only access to Dropbox folders, plus shared-link creation for the
pages published downstream. Uses OAuth 2.0 refresh tokens for persistent
access.
"""

from typing import List, Optional
import dropbox as dropbox_sdk
from dropbox.exceptions import ApiError, AuthError
from dropbox.files import FileMetadata, FolderMetadata
import json
import os

from .base import (
    SourceDriver, StorageError, AuthExpiredError, RawFileEntry, make_temp_path,
)
from utils.retry import retry_after_refresh


# Seconds before an individual Dropbox request gives up
REQUEST_TIMEOUT = 60


# ---------------------------------------------------------------------------
# Credential refresh
# ---------------------------------------------------------------------------

def _is_auth_expired(exc: Exception) -> bool:
    """True if a Dropbox error means the access token needs refreshing."""
    if not isinstance(exc, AuthError):
        return False
    error = exc.error
    return error.is_expired_access_token() or error.is_invalid_access_token()


def _log_refresh(exc: Exception) -> None:
    print("  [Auth] Dropbox access token expired, refreshing...")


_with_refresh = retry_after_refresh(_is_auth_expired, on_refresh=_log_refresh)


def load_dropbox_credentials(token_file: str = "dropbox_token.json") -> dict:
    """Load app key, secret and refresh token.

    Credentials are loaded from:
    1. Token file (dropbox_token.json) if it exists
    2. DROPBOX_TOKEN_JSON environment variable (for Docker deployment)

    Raises:
        StorageError: If no usable credentials are found
    """
    token_data = None

    if os.path.exists(token_file):
        try:
            with open(token_file, 'r') as f:
                token_data = json.load(f)
        except json.JSONDecodeError as e:
            raise StorageError(f"Invalid token file: {e}")
    elif os.environ.get('DROPBOX_TOKEN_JSON'):
        try:
            token_data = json.loads(os.environ['DROPBOX_TOKEN_JSON'])
        except json.JSONDecodeError as e:
            raise StorageError(f"Invalid DROPBOX_TOKEN_JSON env var: {e}")
    else:
        raise StorageError(
            f"No Dropbox credentials found. Create {token_file} "
            "or set the DROPBOX_TOKEN_JSON environment variable."
        )

    required_keys = ['app_key', 'app_secret', 'refresh_token']
    for key in required_keys:
        if key not in token_data:
            raise StorageError(f"Dropbox credentials missing required key: {key}")

    return token_data


# ---------------------------------------------------------------------------
# Dropbox Driver
# ---------------------------------------------------------------------------

class DropboxDriver(SourceDriver):
    """Source driver for Dropbox.

    Paths are absolute Dropbox paths (e.g. "/Recordings/call.m4a").
    """

    backend = "dropbox"

    def __init__(self, token_file: str = "dropbox_token.json",
                 client: Optional[dropbox_sdk.Dropbox] = None) -> None:
        """Initialize Dropbox source driver.

        Args:
            token_file: Path to the token JSON file
            client: Pre-built Dropbox client (skips credential loading)

        Raises:
            StorageError: If credentials are missing or authentication fails
        """
        self._account_name: Optional[str] = None

        if client is not None:
            self.client = client
            return

        token_data = load_dropbox_credentials(token_file)
        self.client = dropbox_sdk.Dropbox(
            app_key=token_data['app_key'],
            app_secret=token_data['app_secret'],
            oauth2_refresh_token=token_data['refresh_token'],
            timeout=REQUEST_TIMEOUT,
        )

        # Verify connection
        try:
            self._account_name = self._get_account_name()
        except AuthError as e:
            raise StorageError(f"Dropbox authentication failed: {e}")

    @_with_refresh
    def _get_account_name(self) -> str:
        account = self.client.users_get_current_account()
        return account.name.display_name

    @property
    def display_name(self) -> str:
        account = self._account_name or "Dropbox"
        return f"{account} (Dropbox)"

    def refresh_credentials(self) -> None:
        """Exchange the refresh token for a new short-lived access token."""
        try:
            self.client.refresh_access_token()
        except AuthError as e:
            raise AuthExpiredError(f"Dropbox token refresh failed: {e}")

    # =========================================================================
    # Listing
    # =========================================================================

    @_with_refresh
    def _list_folder(self, path: str, recursive: bool, cursor: Optional[str] = None) -> tuple:
        """List folder contents with pagination support."""
        if cursor:
            result = self.client.files_list_folder_continue(cursor)
        else:
            # Dropbox uses "" for root
            dbx_path = "" if path in ("", "/") else path
            result = self.client.files_list_folder(dbx_path, recursive=recursive)
        return (result.entries, result.cursor, result.has_more)

    def _to_entry(self, metadata: FileMetadata) -> RawFileEntry:
        return RawFileEntry(
            backend=self.backend,
            path=metadata.path_display,
            name=metadata.name,
            size=metadata.size,
            modified=metadata.server_modified,
            tag="file",
            id=metadata.id,
            revision=metadata.content_hash or metadata.rev,
        )

    def list_files(self, path: str = "", recursive: bool = False) -> List[RawFileEntry]:
        """List files in a Dropbox folder."""
        results = []

        try:
            cursor = None
            has_more = True

            while has_more:
                entries, cursor, has_more = self._list_folder(path, recursive, cursor)

                for entry in entries:
                    if isinstance(entry, FolderMetadata):
                        continue
                    if isinstance(entry, FileMetadata):
                        results.append(self._to_entry(entry))

        except ApiError as e:
            if e.error.is_path() and e.error.get_path().is_not_found():
                raise StorageError(f"Folder not found: {path}")
            raise StorageError(f"Failed to list folder {path}: {e}")
        except AuthError as e:
            raise AuthExpiredError(f"Dropbox rejected credentials: {e}")

        return results

    @_with_refresh
    def _get_metadata(self, path: str):
        return self.client.files_get_metadata(path)

    def get_file(self, path: str) -> RawFileEntry:
        """Look up one file by its Dropbox path."""
        try:
            metadata = self._get_metadata(path)
        except ApiError as e:
            raise StorageError(f"File not found: {path} ({e})")
        except AuthError as e:
            raise AuthExpiredError(f"Dropbox rejected credentials: {e}")

        if not isinstance(metadata, FileMetadata):
            raise StorageError(f"Not a file: {path}")
        return self._to_entry(metadata)

    # =========================================================================
    # Download and links
    # =========================================================================

    @_with_refresh
    def _download_file(self, path: str, local_path: str) -> None:
        self.client.files_download_to_file(local_path, path)

    def download_to_temp(self, entry: RawFileEntry, temp_dir: Optional[str] = None) -> str:
        """Download a file to a temporary location."""
        temp_path = make_temp_path(entry.name, temp_dir)

        try:
            self._download_file(entry.path, temp_path)
            return temp_path
        except ApiError as e:
            os.unlink(temp_path)
            if e.error.is_path() and e.error.get_path().is_not_found():
                raise StorageError(f"File not found: {entry.path}")
            raise StorageError(f"Failed to download {entry.path}: {e}")
        except Exception as e:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise StorageError(f"Failed to download {entry.path}: {e}")

    @_with_refresh
    def _create_link(self, path: str) -> str:
        return self.client.sharing_create_shared_link_with_settings(path).url

    @_with_refresh
    def _existing_link(self, path: str) -> Optional[str]:
        result = self.client.sharing_list_shared_links(path=path, direct_only=True)
        if result.links:
            return result.links[0].url
        return None

    def create_shareable_link(self, entry: RawFileEntry) -> Optional[str]:
        """Create a shared link, or return the one that already exists."""
        try:
            return self._create_link(entry.path)
        except ApiError as e:
            if not e.error.is_shared_link_already_exists():
                raise StorageError(f"Failed to create shared link for {entry.path}: {e}")

        try:
            url = self._existing_link(entry.path)
        except ApiError as e:
            raise StorageError(f"Failed to list shared links for {entry.path}: {e}")
        if url is None:
            raise StorageError(f"Dropbox reported an existing link for {entry.path} but listed none")
        return url
