"""Tests for LocalDriver.

These tests run against /tmp so no external dependencies needed.
"""

import os

import pytest

from storage import (
    LocalDriver,
    StorageError,
    UnavailableDriver,
    compute_sha256,
    create_storage,
    parse_storage_uri,
)


@pytest.fixture
def driver(temp_dir):
    """Create a LocalDriver instance."""
    return LocalDriver(temp_dir)


@pytest.fixture
def populated_dir(temp_dir):
    """Create a temp directory with recordings, documents and a subfolder."""
    with open(os.path.join(temp_dir, "call.m4a"), "wb") as f:
        f.write(b"audio content")
    with open(os.path.join(temp_dir, "scan.pdf"), "wb") as f:
        f.write(b"pdf content")

    subdir = os.path.join(temp_dir, "subdir")
    os.makedirs(subdir)
    with open(os.path.join(subdir, "nested.mp3"), "wb") as f:
        f.write(b"nested audio")

    return temp_dir


class TestLocalDriverBasics:

    def test_display_name(self, driver, temp_dir):
        assert temp_dir in driver.display_name
        assert "local" in driver.display_name

    def test_nonexistent_root_raises(self):
        with pytest.raises(StorageError):
            LocalDriver("/nonexistent/path/12345")

    def test_is_available(self, driver):
        assert driver.is_available


class TestListFiles:

    def test_list_files_empty(self, driver):
        assert driver.list_files() == []

    def test_list_files_flat(self, populated_dir):
        files = LocalDriver(populated_dir).list_files()
        assert [f.name for f in files] == ["call.m4a", "scan.pdf"]

    def test_list_files_recursive(self, populated_dir):
        files = LocalDriver(populated_dir).list_files(recursive=True)
        assert sorted(f.name for f in files) == ["call.m4a", "nested.mp3", "scan.pdf"]

    def test_entries_are_normalized(self, populated_dir):
        entry = LocalDriver(populated_dir).get_file("call.m4a")

        assert entry.backend == "local"
        assert entry.path == os.path.join(populated_dir, "call.m4a")
        assert entry.size == len(b"audio content")
        assert entry.revision == compute_sha256(entry.path)
        assert not entry.is_folder

    def test_identity_tracks_content(self, populated_dir):
        driver = LocalDriver(populated_dir)
        before = driver.get_file("call.m4a").identity

        with open(os.path.join(populated_dir, "call.m4a"), "wb") as f:
            f.write(b"re-recorded")
        after = driver.get_file("call.m4a").identity

        assert before.path_or_id == after.path_or_id
        assert before != after

    def test_missing_path_raises(self, driver):
        with pytest.raises(StorageError):
            driver.list_files("nope")


class TestDownloadToTemp:

    def test_returns_a_copy(self, populated_dir, temp_dir):
        driver = LocalDriver(populated_dir)
        entry = driver.get_file("call.m4a")
        target = os.path.join(temp_dir, "downloads")

        local_path = driver.download_to_temp(entry, target)

        assert local_path != entry.path
        assert local_path.endswith(".m4a")
        with open(local_path, "rb") as f:
            assert f.read() == b"audio content"
        os.unlink(local_path)
        assert os.path.exists(entry.path)

    def test_no_shareable_link(self, populated_dir):
        driver = LocalDriver(populated_dir)
        assert driver.create_shareable_link(driver.get_file("call.m4a")) is None


class TestFactories:

    def test_create_local(self, temp_dir):
        assert isinstance(create_storage("local", root=temp_dir), LocalDriver)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_storage("ftp")

    @pytest.mark.parametrize("uri,expected", [
        ("dropbox:/Recordings/call.m4a", ("dropbox", "/Recordings/call.m4a")),
        ("gdrive:1AbCdEf", ("gdrive", "1AbCdEf")),
        ("local:/tmp/scan.pdf", ("local", "/tmp/scan.pdf")),
    ])
    def test_parse_storage_uri(self, uri, expected):
        assert parse_storage_uri(uri) == expected

    def test_parse_invalid_uri(self):
        with pytest.raises(ValueError):
            parse_storage_uri("s3://bucket/key")

    def test_unavailable_driver_raises(self):
        driver = UnavailableDriver("dropbox", "No Dropbox credentials found")
        assert not driver.is_available
        assert "No Dropbox credentials found" in driver.display_name
        with pytest.raises(StorageError):
            driver.list_files("/Recordings")
