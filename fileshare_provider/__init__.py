"""
Azure File Share storage provider for pluggable-storage hosts.
"""

from fileshare_provider.common.logging_config import configure_logging
from fileshare_provider.storage import (
    AzureFileStorageProvider,
    Client,
    Container,
    File,
    create_client,
)

__all__ = [
    "AzureFileStorageProvider",
    "Client",
    "Container",
    "File",
    "configure_logging",
    "create_client",
]
