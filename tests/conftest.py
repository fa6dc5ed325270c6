# Test configuration

import asyncio
import io
import os
import sys
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from azure.core.exceptions import HttpResponseError, ResourceExistsError, ResourceNotFoundError

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fileshare_provider.config.settings import Settings
from fileshare_provider.storage.azure_files import AzureFileStorageProvider

ACCOUNT = "devaccount"
ACCOUNT_KEY = "ZmFrZS1rZXktZm9yLXRlc3Rz"  # base64 of "fake-key-for-tests"
SHARE = "test-share"


class FakeDownloader:
    """Stands in for StorageStreamDownloader."""

    def __init__(self, data: bytes, chunk_size: int, fail_after: int = None):
        self.data = data
        self.chunk_size = chunk_size
        self.fail_after = fail_after

    async def chunks(self):
        for index, offset in enumerate(range(0, len(self.data), self.chunk_size)):
            if self.fail_after is not None and index >= self.fail_after:
                raise HttpResponseError(message="connection reset")
            await asyncio.sleep(0)
            yield self.data[offset:offset + self.chunk_size]


class FakeFileClient:
    def __init__(self, share, directory: str, name: str):
        self.share = share
        self.directory = directory
        self.name = name

    @property
    def url(self) -> str:
        return f"https://{ACCOUNT}.file.core.windows.net/{SHARE}/{self.directory}/{self.name}"

    def _files(self):
        if self.directory not in self.share.directories:
            raise ResourceNotFoundError(message="ParentNotFound")
        return self.share.directories[self.directory]

    async def get_file_properties(self):
        self.share.record("get_file_properties", f"{self.directory}/{self.name}")
        files = self._files()
        if self.name not in files:
            raise ResourceNotFoundError(message="ResourceNotFound")
        return SimpleNamespace(
            name=self.name,
            size=len(files[self.name]),
            last_modified=self.share.now,
            etag='"0x8DFILE"',
        )

    async def delete_file(self):
        key = f"{self.directory}/{self.name}"
        self.share.record("delete_file", key)
        self.share.in_flight += 1
        self.share.max_in_flight = max(self.share.max_in_flight, self.share.in_flight)
        try:
            await asyncio.sleep(0.01)
            self.share.maybe_fail("delete_file", key)
            files = self._files()
            if self.name not in files:
                raise ResourceNotFoundError(message="ResourceNotFound")
            del files[self.name]
        finally:
            self.share.in_flight -= 1

    async def upload_file(self, data, length=None):
        key = f"{self.directory}/{self.name}"
        self.share.record("upload_file", key)
        self.share.maybe_fail("upload_file", key)
        content = data.read() if hasattr(data, "read") else bytes(data)
        if length is not None:
            assert len(content) == length
        self._files()[self.name] = content
        return {"etag": '"0x8DUPLOAD"', "last_modified": self.share.now}

    async def download_file(self):
        key = f"{self.directory}/{self.name}"
        self.share.record("download_file", key)
        self.share.maybe_fail("download_file", key)
        files = self._files()
        if self.name not in files:
            raise ResourceNotFoundError(message="ResourceNotFound")
        return FakeDownloader(files[self.name], self.share.chunk_size,
                              self.share.break_downloads_after)


class FakeDirectoryClient:
    def __init__(self, share, name: str):
        self.share = share
        self.name = name

    def get_file_client(self, name: str) -> FakeFileClient:
        return FakeFileClient(self.share, self.name, name)

    async def create_directory(self):
        self.share.record("create_directory", self.name)
        self.share.maybe_fail("create_directory", self.name)
        if self.name in self.share.directories:
            raise ResourceExistsError(message="ResourceAlreadyExists")
        self.share.directories[self.name] = {}
        return {"etag": '"0x8DDIR"', "last_modified": self.share.now}

    async def get_directory_properties(self):
        self.share.record("get_directory_properties", self.name)
        if self.name not in self.share.directories:
            raise ResourceNotFoundError(message="ResourceNotFound")
        # The service does not echo the name back
        return SimpleNamespace(name=None, last_modified=self.share.now, etag='"0x8DDIR"')

    async def delete_directory(self):
        self.share.record("delete_directory", self.name)
        if self.name not in self.share.directories:
            raise ResourceNotFoundError(message="ResourceNotFound")
        if self.share.directories[self.name]:
            raise HttpResponseError(message="DirectoryNotEmpty")
        del self.share.directories[self.name]

    async def list_directories_and_files(self, name_starts_with=None):
        self.share.record("list_directories_and_files", self.name)
        self.share.maybe_fail("list_directories_and_files", self.name)
        if self.name not in self.share.directories:
            raise ResourceNotFoundError(message="ResourceNotFound")
        for name, content in sorted(self.share.directories[self.name].items()):
            if name_starts_with and not name.startswith(name_starts_with):
                continue
            yield {"name": name, "is_directory": False, "size": len(content)}


class FakeShareClient:
    """
    In-memory stand-in for azure.storage.fileshare.aio.ShareClient.

    ``directories`` maps directory name -> {file name: bytes}. Every call is
    recorded in ``calls`` as (operation, target).
    """

    def __init__(self):
        self.directories = {}
        self.calls = []
        self.failures = {}
        self.share_exists = False
        self.chunk_size = 4
        self.break_downloads_after = None
        self.in_flight = 0
        self.max_in_flight = 0
        self.now = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def record(self, operation: str, target: str = "") -> None:
        self.calls.append((operation, target))

    def maybe_fail(self, operation: str, target: str) -> None:
        error = self.failures.get((operation, target))
        if error is not None:
            raise error

    def remote_calls(self):
        """Calls other than the one-off share check."""
        return [call for call in self.calls if call[0] != "create_share"]

    def operations(self):
        return [operation for operation, _ in self.remote_calls()]

    async def create_share(self):
        self.record("create_share", SHARE)
        self.maybe_fail("create_share", SHARE)
        if self.share_exists:
            raise ResourceExistsError(message="ShareAlreadyExists")
        self.share_exists = True

    def get_directory_client(self, name: str) -> FakeDirectoryClient:
        return FakeDirectoryClient(self, name)

    async def list_directories_and_files(self):
        self.record("list_directories_and_files", "")
        self.maybe_fail("list_directories_and_files", "")
        for name in sorted(self.directories):
            yield {"name": name, "is_directory": True, "last_modified": self.now,
                   "etag": '"0x8DDIR"'}


@pytest.fixture
def test_settings():
    """Override settings for testing"""
    return Settings(
        azure_share=SHARE,
        azure_storage_account=ACCOUNT,
        azure_storage_access_key=ACCOUNT_KEY,
        signed_url_ttl_hours=4,
        upload_spool_max_bytes=16,
        log_json=False,
    )


@pytest.fixture
def share():
    """Empty fake share."""
    return FakeShareClient()


@pytest.fixture
def provider(share, test_settings):
    """Provider wired to the fake share."""
    return AzureFileStorageProvider(
        {"share": SHARE, "storageAccount": ACCOUNT, "storageAccessKey": ACCOUNT_KEY},
        share_client=share,
        settings=test_settings,
    )


@pytest.fixture
def sample_file():
    """Create a sample file-like object."""
    return io.BytesIO(b"This is test content for storage")
