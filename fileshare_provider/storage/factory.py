"""
Storage factory for the configured provider instance.

Provides singleton access to the Azure file share provider based on
configuration.
"""

from functools import lru_cache

from fileshare_provider.config.settings import get_settings
from fileshare_provider.storage.adapter import StorageProvider
from fileshare_provider.storage.azure_files import AzureFileStorageProvider


@lru_cache()
def get_storage_provider() -> StorageProvider:
    """
    Get or create the storage provider instance.

    Returns:
        StorageProvider instance (AzureFileStorageProvider)

    Raises:
        ConfigurationError: If the share or account is not configured
    """
    return AzureFileStorageProvider(settings=get_settings())


def reset_storage_provider() -> None:
    """Reset the cached provider (useful for testing)."""
    get_storage_provider.cache_clear()
