"""Tests for GDriveDriver.

TestGDriveDriver uses a fake Drive service. TestGDriveSmoke requires:
1. A service_account_key.json file in project root
2. GDRIVE_TEST_FOLDER_ID environment variable pointing to a test folder
"""

import os

import httplib2
import pytest
from googleapiclient.errors import HttpError

from storage import GDriveDriver, RawFileEntry, StorageError
from storage.gdrive import FOLDER_MIME_TYPE


def http_error(status):
    return HttpError(httplib2.Response({"status": status}), b"{}")


class FakeRequest:
    def __init__(self, service, result):
        self.service = service
        self.result = result

    def execute(self):
        self.service.executions += 1
        if self.service.unauthorized > 0:
            self.service.unauthorized -= 1
            raise http_error(401)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class FakeFiles:
    def __init__(self, service):
        self.service = service

    def list(self, q, **kwargs):
        folder_id = q.split("'")[1]
        return FakeRequest(self.service, self.service.folders.get(folder_id, http_error(404)))

    def get(self, fileId, fields, **kwargs):
        return FakeRequest(self.service, self.service.items.get(fileId, http_error(404)))


class FakeDriveService:
    def __init__(self, folders=None, items=None, unauthorized=0):
        self.folders = folders or {}
        self.items = items or {}
        self.unauthorized = unauthorized
        self.executions = 0

    def files(self):
        return FakeFiles(self)


class FakeCreds:
    def __init__(self):
        self.refreshes = 0

    def refresh(self, request):
        self.refreshes += 1


def item(file_id, name, mime="audio/mp4", md5="d41d8cd98f00b204e9800998ecf8427e"):
    return {"id": file_id, "name": name, "mimeType": mime, "size": "2048",
            "modifiedTime": "2024-05-01T09:30:00.000Z", "md5Checksum": md5,
            "webViewLink": f"https://drive.google.com/file/d/{file_id}/view"}


@pytest.fixture
def service():
    return FakeDriveService(
        folders={
            "root-folder": {"files": [
                item("f1", "call.m4a"),
                item("sub", "Archive", mime=FOLDER_MIME_TYPE),
            ], "nextPageToken": None},
            "sub": {"files": [item("f2", "old-call.mp3")]},
        },
        items={"f1": item("f1", "call.m4a"), "sub": item("sub", "Archive", mime=FOLDER_MIME_TYPE)},
    )


class TestGDriveDriver:

    def test_list_files_flat(self, service):
        files = GDriveDriver(service=service).list_files("root-folder")
        assert [f.name for f in files] == ["call.m4a"]

    def test_list_files_recursive_builds_paths(self, service):
        files = GDriveDriver(service=service).list_files("root-folder", recursive=True)
        assert [f.path for f in files] == ["call.m4a", "Archive/old-call.mp3"]

    def test_entry_identity_uses_id_and_md5(self, service):
        entry = GDriveDriver(service=service).get_file("f1")
        assert entry.identity.path_or_id == "f1"
        assert entry.identity.revision == "d41d8cd98f00b204e9800998ecf8427e"
        assert entry.size == 2048

    def test_get_folder_raises(self, service):
        with pytest.raises(StorageError):
            GDriveDriver(service=service).get_file("sub")

    def test_missing_folder(self, service):
        with pytest.raises(StorageError, match="Folder not found"):
            GDriveDriver(service=service).list_files("nope")

    def test_folder_id_required(self, service):
        with pytest.raises(StorageError):
            GDriveDriver(service=service).list_files("")

    def test_unauthorized_refreshes_once(self, service):
        service.unauthorized = 1
        creds = FakeCreds()

        files = GDriveDriver(service=service, creds=creds).list_files("root-folder")

        assert len(files) == 1
        assert creds.refreshes == 1

    def test_shareable_link_is_web_view_link(self, service):
        entry = RawFileEntry("gdrive", "call.m4a", "call.m4a", id="f1")
        url = GDriveDriver(service=service).create_shareable_link(entry)
        assert url == "https://drive.google.com/file/d/f1/view"


@pytest.mark.skipif(not os.path.exists("service_account_key.json"),
                    reason="No service_account_key.json found")
class TestGDriveSmoke:
    """Simple smoke tests - one call per operation."""

    @pytest.fixture
    def test_folder_id(self):
        folder_id = os.environ.get("GDRIVE_TEST_FOLDER_ID")
        if not folder_id:
            pytest.skip("GDRIVE_TEST_FOLDER_ID not set")
        return folder_id

    def test_list_files(self, test_folder_id):
        files = GDriveDriver().list_files(test_folder_id)
        assert isinstance(files, list)
