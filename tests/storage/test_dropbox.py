"""Tests for DropboxDriver.

TestDropboxDriver uses a fake SDK client. TestDropboxSmoke requires a
dropbox_token.json file in project root and is skipped without it.
"""

import os
from datetime import datetime
from types import SimpleNamespace

import pytest
from dropbox.auth import AuthError as AuthErrorUnion
from dropbox.exceptions import ApiError, AuthError
from dropbox.files import FileMetadata, FolderMetadata

from storage import AuthExpiredError, DropboxDriver, RawFileEntry, StorageError


CONTENT_HASH = "a" * 64


def file_metadata(name, rev="0123456789abcdef"):
    return FileMetadata(
        name=name,
        id=f"id:{name}",
        path_display=f"/Recordings/{name}",
        path_lower=f"/recordings/{name.lower()}",
        size=1234,
        rev=rev,
        content_hash=CONTENT_HASH,
        client_modified=datetime(2024, 5, 1, 9, 30),
        server_modified=datetime(2024, 5, 1, 9, 31),
    )


def expired_token_error():
    return AuthError("req-1", AuthErrorUnion.expired_access_token)


class LinkExistsError:
    def is_shared_link_already_exists(self):
        return True


class FakeDropboxClient:
    """Answers the handful of SDK calls DropboxDriver makes."""

    def __init__(self, pages=None, auth_failures=0):
        self.pages = pages or []
        self.auth_failures = auth_failures
        self.refreshes = 0
        self.list_calls = 0
        self.link_exists = False

    def refresh_access_token(self):
        self.refreshes += 1

    def _maybe_expire(self):
        if self.auth_failures > 0:
            self.auth_failures -= 1
            raise expired_token_error()

    def files_list_folder(self, path, recursive=False):
        self.list_calls += 1
        self._maybe_expire()
        return self.pages[0]

    def files_list_folder_continue(self, cursor):
        return self.pages[int(cursor)]

    def sharing_create_shared_link_with_settings(self, path):
        if self.link_exists:
            raise ApiError("req-2", LinkExistsError(), None, None)
        return SimpleNamespace(url=f"https://www.dropbox.com/s/new{path}")

    def sharing_list_shared_links(self, path, direct_only=True):
        return SimpleNamespace(links=[SimpleNamespace(url=f"https://www.dropbox.com/s/old{path}")])


def page(entries, cursor, has_more):
    return SimpleNamespace(entries=entries, cursor=cursor, has_more=has_more)


@pytest.fixture
def client():
    return FakeDropboxClient(pages=[
        page([file_metadata("call.m4a"), FolderMetadata(name="old", id="id:old",
                                                         path_display="/Recordings/old")], "1", True),
        page([file_metadata("scan.pdf")], "2", False),
    ])


class TestDropboxDriver:

    def test_list_files_follows_pagination(self, client):
        files = DropboxDriver(client=client).list_files("/Recordings", recursive=True)

        assert [f.name for f in files] == ["call.m4a", "scan.pdf"]

    def test_entries_are_normalized(self, client):
        entry = DropboxDriver(client=client).list_files("/Recordings")[0]

        assert entry.backend == "dropbox"
        assert entry.path == "/Recordings/call.m4a"
        assert entry.id == "id:call.m4a"
        assert entry.revision == CONTENT_HASH
        assert entry.identity.path_or_id == "id:call.m4a"

    def test_expired_token_refreshes_once(self, client):
        client.auth_failures = 1

        files = DropboxDriver(client=client).list_files("/Recordings")

        assert len(files) == 2
        assert client.refreshes == 1
        assert client.list_calls == 2

    def test_second_expiry_is_not_retried(self, client):
        client.auth_failures = 2

        with pytest.raises(AuthExpiredError):
            DropboxDriver(client=client).list_files("/Recordings")
        assert client.refreshes == 1

    def test_create_shareable_link(self, client):
        entry = RawFileEntry("dropbox", "/Recordings/call.m4a", "call.m4a")
        url = DropboxDriver(client=client).create_shareable_link(entry)
        assert url == "https://www.dropbox.com/s/new/Recordings/call.m4a"

    def test_existing_shareable_link_is_returned(self, client):
        client.link_exists = True
        entry = RawFileEntry("dropbox", "/Recordings/call.m4a", "call.m4a")

        url = DropboxDriver(client=client).create_shareable_link(entry)

        assert url == "https://www.dropbox.com/s/old/Recordings/call.m4a"

    def test_missing_credentials(self, temp_dir, monkeypatch):
        monkeypatch.delenv("DROPBOX_TOKEN_JSON", raising=False)
        with pytest.raises(StorageError):
            DropboxDriver(os.path.join(temp_dir, "missing_token.json"))


@pytest.mark.skipif(not os.path.exists("dropbox_token.json"), reason="No dropbox_token.json found")
class TestDropboxSmoke:
    """Simple smoke tests - read operations only."""

    @pytest.fixture
    def driver(self):
        return DropboxDriver()

    def test_display_name(self, driver):
        """Verify we can connect and get account name."""
        assert "Dropbox" in driver.display_name

    def test_list_files_root(self, driver):
        files = driver.list_files("")
        assert isinstance(files, list)
