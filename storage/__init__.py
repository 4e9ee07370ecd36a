"""Source driver abstraction for noteflow.

Provides a uniform interface for listing and fetching files across backends:
- LocalDriver: Local filesystem (manual runs, tests)
- GDriveDriver: Google Drive
- DropboxDriver: Dropbox

Usage:
    from storage import create_storage, parse_storage_uri

    driver = create_storage("dropbox")
    backend, path = parse_storage_uri("dropbox:/Recordings/call.m4a")
"""

from typing import Optional, TYPE_CHECKING

from .base import (
    SourceDriver,
    StorageError,
    AuthExpiredError,
    FileIdentity,
    RawFileEntry,
    UnavailableDriver,
)
from .local import LocalDriver, compute_sha256
from .gdrive import GDriveDriver
from .dbx import DropboxDriver

if TYPE_CHECKING:
    from noteflow.settings import Settings


def create_storage(backend: str, settings: Optional["Settings"] = None,
                   root: str = "/") -> SourceDriver:
    """Create a source driver for a backend.

    Args:
        backend: 'dropbox', 'gdrive' or 'local'
        settings: Settings supplying credential file locations
        root: Root directory (local backend only)

    Returns:
        SourceDriver instance for the specified backend

    Raises:
        ValueError: If the backend is not recognized
        StorageError: If the backend cannot be initialized
    """
    if backend == "local":
        return LocalDriver(root)
    elif backend == "gdrive":
        if settings is not None:
            return GDriveDriver(settings.gdrive_service_account_file)
        return GDriveDriver()
    elif backend == "dropbox":
        if settings is not None:
            return DropboxDriver(settings.dropbox_token_file)
        return DropboxDriver()
    else:
        raise ValueError(
            f"Unknown storage backend: {backend}. "
            "Must be 'local', 'gdrive', or 'dropbox'"
        )


def create_storage_or_unavailable(backend: str,
                                  settings: Optional["Settings"] = None) -> SourceDriver:
    """Like create_storage, but returns an UnavailableDriver on failure."""
    try:
        return create_storage(backend, settings)
    except StorageError as e:
        return UnavailableDriver(backend, str(e))


def parse_storage_uri(uri: str) -> tuple:
    """Parse a storage URI into (backend, path) tuple.

    Args:
        uri: Storage URI (e.g., 'gdrive:file_id', 'local:/path', 'dropbox:/path')

    Returns:
        Tuple of (backend, value) where backend is 'gdrive', 'local', or 'dropbox'

    Raises:
        ValueError: If URI format is invalid
    """
    if uri.startswith("gdrive:"):
        return ("gdrive", uri[7:])
    elif uri.startswith("local:"):
        return ("local", uri[6:])
    elif uri.startswith("dropbox:"):
        return ("dropbox", uri[8:])
    else:
        raise ValueError(
            f"Invalid storage URI: {uri}. "
            "Must start with 'gdrive:', 'local:', or 'dropbox:'"
        )


__all__ = [
    'SourceDriver',
    'StorageError',
    'AuthExpiredError',
    'FileIdentity',
    'RawFileEntry',
    'UnavailableDriver',
    'LocalDriver',
    'GDriveDriver',
    'DropboxDriver',
    'compute_sha256',
    'create_storage',
    'create_storage_or_unavailable',
    'parse_storage_uri',
]
