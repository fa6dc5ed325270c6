"""
Azure File Share storage provider.

Maps the host's container/file model onto a single Azure file share:
containers are the directories at the share root, files are the files inside
them. Every remote call goes through the SDK's asyncio ``ShareClient``;
results are wrapped in ``Container``/``File`` and errors from the service are
passed through unchanged.
"""

import asyncio
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError
from azure.storage.fileshare import FileSasPermissions, generate_file_sas
from azure.storage.fileshare.aio import ShareClient
from pydantic import BaseModel, ConfigDict, Field

from fileshare_provider.common.logging_config import PerformanceTracker
from fileshare_provider.common.metrics import track_operation
from fileshare_provider.config.settings import Settings, get_settings
from fileshare_provider.storage.adapter import (
    ConfigurationError,
    InvalidNameError,
    StorageProvider,
    transfer_target,
)
from fileshare_provider.storage.completion import create_completion, settle, track_task
from fileshare_provider.storage.models import Container, File, property_value
from fileshare_provider.storage.streams import (
    DownloadStream,
    UploadStream,
    read_stream_error,
    write_stream_error,
)
from fileshare_provider.storage.validation import validate_name

logger = logging.getLogger(__name__)


class ProviderOptions(BaseModel):
    """Datasource options as the host passes them (camelCase) or snake_case."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    share: Optional[str] = None
    storage_account: Optional[str] = Field(default=None, alias="storageAccount")
    storage_access_key: Optional[str] = Field(
        default=None, alias="storageAccessKey", repr=False)
    account_url: Optional[str] = Field(default=None, alias="accountUrl")

    @classmethod
    def resolve(cls, options: Optional[Mapping[str, Any]], settings: Settings) -> "ProviderOptions":
        """Parse ``options``, falling back to settings for anything missing."""
        parsed = cls.model_validate(dict(options or {}))
        return cls(
            share=parsed.share or settings.azure_share or None,
            storage_account=parsed.storage_account or settings.azure_storage_account or None,
            storage_access_key=(
                parsed.storage_access_key or settings.azure_storage_access_key or None),
            account_url=parsed.account_url or settings.azure_account_url,
        )


def _is_directory(item: Any) -> bool:
    return bool(property_value(item, "is_directory", False))


def _file_filter(options: Any):
    """Split a ``get_files`` filter into (service-side prefix, local regex)."""
    if options is None or options is False:
        return None, None
    if isinstance(options, str):
        return options, None
    if isinstance(options, re.Pattern):
        return None, options
    if isinstance(options, Mapping):
        pattern = options.get("pattern")
        if isinstance(pattern, str):
            pattern = re.compile(pattern)
        return options.get("prefix"), pattern
    raise TypeError(f"Unsupported file filter: {options!r}")


class AzureFileStorageProvider(StorageProvider):
    """
    Storage provider backed by one Azure file share.

    Methods must be called from a running event loop. Those taking a
    ``callback`` return an ``asyncio.Future`` when it is omitted.
    """

    def __init__(
        self,
        options: Optional[Mapping[str, Any]] = None,
        share_client: Any = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the provider.

        Args:
            options: ``share`` (required), ``storageAccount``,
                ``storageAccessKey`` and optionally ``accountUrl``
            share_client: Pre-built asyncio ``ShareClient`` (tests, custom auth)
            settings: Defaults for options that are not given

        Raises:
            ConfigurationError: If no share name is configured
        """
        self.settings = settings or get_settings()
        resolved = ProviderOptions.resolve(options, self.settings)
        if not resolved.share:
            raise ConfigurationError(
                "AzureFileStorageProvider: datasource must supply a share property")

        self.share_name = resolved.share
        self.storage_account = resolved.storage_account
        self.storage_access_key = resolved.storage_access_key

        if share_client is None:
            share_client = self._connect(resolved)
        self.share_client = share_client

        # Share check, scheduled now if a loop is running, else on first use
        self.share_ready: Optional[asyncio.Task] = None
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            pass
        else:
            self._check_share()

    def _connect(self, options: ProviderOptions) -> ShareClient:
        if not options.account_url and not options.storage_account:
            raise ConfigurationError(
                "AzureFileStorageProvider: datasource must supply a storageAccount property")
        credential = None
        if options.storage_account and options.storage_access_key:
            credential = {
                "account_name": options.storage_account,
                "account_key": options.storage_access_key,
            }
        account_url = options.account_url or self.settings.account_url(options.storage_account)
        return ShareClient(account_url=account_url, share_name=self.share_name,
                           credential=credential)

    def _check_share(self) -> asyncio.Task:
        if self.share_ready is None:
            self.share_ready = track_task(
                asyncio.get_running_loop().create_task(self._ensure_share()))
        return self.share_ready

    async def _ensure_share(self) -> bool:
        """Create the share if needed; True if it was created."""
        try:
            await self.share_client.create_share()
        except ResourceExistsError:
            return False
        except Exception:
            logger.exception(
                "AzureFileStorageProvider: error while checking share %s", self.share_name)
            raise
        logger.info("Created share %s", self.share_name)
        return True

    def _run(self, done, coro) -> None:
        # Only requests that passed validation may touch the share
        self._check_share()
        settle(done, coro)

    def _directory_client(self, container: str):
        return self.share_client.get_directory_client(container)

    def _file_client(self, container: str, name: str):
        return self._directory_client(container).get_file_client(name)

    # Containers

    def get_containers(self, callback=None):
        done = create_completion(callback)
        self._run(done, self._list_containers())
        return done.future

    @track_operation("get_containers")
    async def _list_containers(self):
        containers = []
        async for item in self.share_client.list_directories_and_files():
            if _is_directory(item):
                containers.append(Container.from_properties(self, item))
        return containers

    def create_container(self, name, callback=None):
        done = create_completion(callback)
        if validate_name(name, done):
            self._run(done, self._create_container(name))
        return done.future

    @track_operation("create_container")
    async def _create_container(self, name: str) -> Container:
        directory = self._directory_client(name)
        try:
            props = await directory.create_directory()
        except ResourceExistsError:
            props = await directory.get_directory_properties()
        else:
            logger.info("Created container %s", name)
        return Container.from_properties(self, props, name=name)

    def destroy_container(self, name, callback=None):
        done = create_completion(callback)
        if validate_name(name, done):
            self._run(done, self._destroy_container(name))
        return done.future

    @track_operation("destroy_container")
    async def _destroy_container(self, name: str):
        # The service only deletes empty directories
        with PerformanceTracker("destroy_container", logger, container=name):
            files = await self.get_files(name)
            await asyncio.gather(*(self.remove_file(name, file.name) for file in files))
            try:
                await self._directory_client(name).delete_directory()
            except ResourceNotFoundError:
                return {"result": False}
        return {"result": True}

    def get_container(self, name, callback=None):
        done = create_completion(callback)
        if validate_name(name, done):
            self._run(done, self._get_container(name))
        return done.future

    @track_operation("get_container")
    async def _get_container(self, name: str) -> Container:
        props = await self._directory_client(name).get_directory_properties()
        return Container.from_properties(self, props, name=name)

    # Files

    def get_files(self, container, options=None, callback=None):
        # Host form: getFiles(container, cb)
        if callable(options) and callback is None:
            options, callback = None, options

        done = create_completion(callback)
        if validate_name(container, done):
            self._run(done, self._list_files(container, options))
        return done.future

    @track_operation("get_files")
    async def _list_files(self, container: str, options: Any):
        prefix, pattern = _file_filter(options)
        files = []
        listing = self._directory_client(container).list_directories_and_files(
            name_starts_with=prefix)
        async for item in listing:
            if _is_directory(item):
                continue
            file = File.from_properties(self, item, container=container)
            if pattern is None or pattern.search(file.name):
                files.append(file)
        return files

    def get_file(self, container, name, callback=None):
        done = create_completion(callback)
        if validate_name(container, done) and validate_name(name, done):
            self._run(done, self._get_file(container, name))
        return done.future

    @track_operation("get_file")
    async def _get_file(self, container: str, name: str) -> File:
        props = await self._file_client(container, name).get_file_properties()
        return File.from_properties(self, props, container=container, name=name)

    def remove_file(self, container, name, callback=None):
        done = create_completion(callback)
        if validate_name(container, done) and validate_name(name, done):
            self._run(done, self._remove_file(container, name))
        return done.future

    @track_operation("remove_file")
    async def _remove_file(self, container: str, name: str):
        try:
            await self._file_client(container, name).delete_file()
        except ResourceNotFoundError:
            return {"success": False}
        logger.debug("Removed %s/%s", container, name)
        return {"success": True}

    # Streams

    def upload(self, container, remote=None, callback=None) -> UploadStream:
        container, remote, callback = transfer_target(container, remote, callback)
        for name in (container, remote):
            if not validate_name(name):
                return write_stream_error(InvalidNameError(name), callback)
        self._check_share()
        try:
            return UploadStream(self._file_client(container, remote), container, remote,
                                callback=callback, client=self,
                                spool_max_bytes=self.settings.upload_spool_max_bytes)
        except Exception as exc:
            return write_stream_error(exc, callback)

    def download(self, container, remote=None, callback=None) -> DownloadStream:
        container, remote, callback = transfer_target(container, remote, callback)
        for name in (container, remote):
            if not validate_name(name):
                return read_stream_error(InvalidNameError(name), callback)
        self._check_share()
        try:
            return DownloadStream(self._file_client(container, remote), callback=callback)
        except Exception as exc:
            return read_stream_error(exc, callback)

    # Signed URLs

    def get_url(self, container, name) -> Optional[str]:
        if not validate_name(container):
            return None
        if not validate_name(name):
            return None
        if not (self.storage_account and self.storage_access_key):
            raise ConfigurationError(
                "AzureFileStorageProvider: signing URLs requires storageAccount and storageAccessKey")

        start = datetime.now(timezone.utc)
        sas_token = generate_file_sas(
            account_name=self.storage_account,
            share_name=self.share_name,
            file_path=[container, name],
            account_key=self.storage_access_key,
            permission=FileSasPermissions(read=True),
            start=start,
            expiry=start + timedelta(hours=self.settings.signed_url_ttl_hours),
        )
        return f"{self._file_client(container, name).url}?{sas_token}"


def create_client(options: Optional[Mapping[str, Any]] = None, **kwargs) -> AzureFileStorageProvider:
    """Create a provider; the entry point the host looks up."""
    return AzureFileStorageProvider(options, **kwargs)


Client = AzureFileStorageProvider
