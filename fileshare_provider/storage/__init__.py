"""
Storage provider abstraction over Azure file shares.
"""

from fileshare_provider.storage.adapter import (
    ConfigurationError,
    InvalidNameError,
    StorageError,
    StorageProvider,
)
from fileshare_provider.storage.azure_files import (
    AzureFileStorageProvider,
    Client,
    create_client,
)
from fileshare_provider.storage.factory import get_storage_provider, reset_storage_provider
from fileshare_provider.storage.models import Container, File
from fileshare_provider.storage.streams import DownloadStream, UploadStream

__all__ = [
    "StorageProvider",
    "StorageError",
    "InvalidNameError",
    "ConfigurationError",
    "AzureFileStorageProvider",
    "Client",
    "create_client",
    "get_storage_provider",
    "reset_storage_provider",
    "Container",
    "File",
    "UploadStream",
    "DownloadStream",
]
