"""
Abstract base class for storage providers.

Defines the interface the host framework calls on every provider. Methods
taking a ``callback`` follow the dual convention: when a callback is given it
is invoked as ``callback(error, result)``; otherwise an awaitable future is
returned that resolves or rejects with the same values.

The camelCase methods at the bottom are the host's method-name contract and
translate its option records into the Python signatures. ``upload`` and
``download`` share their name with the host contract and accept either form
(see ``transfer_target``).
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Mapping, Optional


class StorageError(Exception):
    """Exception raised for storage-related errors."""
    pass


class InvalidNameError(StorageError):
    """A container or file name was rejected before reaching the service."""

    def __init__(self, name: Any):
        self.name = name
        super().__init__(f"Invalid name: {name}")


class ConfigurationError(StorageError):
    """The provider was constructed with incomplete options."""
    pass


Callback = Callable[[Optional[BaseException], Any], Any]


def transfer_target(container, remote, callback):
    """
    Normalize ``upload``/``download`` arguments.

    The host calls ``upload({"container": ..., "remote": ...}, cb)``; Python
    callers pass the two names positionally.
    """
    if isinstance(container, Mapping):
        if callable(remote) and callback is None:
            callback = remote
        return container.get("container"), container.get("remote"), callback
    return container, remote, callback


class StorageProvider(ABC):
    """
    Abstract base class for storage providers.

    A container is a top-level grouping of files (a directory on a file
    share, a bucket elsewhere); containers cannot be nested.
    """

    @abstractmethod
    def get_containers(self, callback: Optional[Callback] = None):
        """
        List all containers.

        Returns:
            Future of list[Container] when no callback is given
        """
        pass

    @abstractmethod
    def create_container(self, name: str, callback: Optional[Callback] = None):
        """
        Create a container, or return the existing one with that name.

        Args:
            name: Container name
            callback: Optional completion callback
        """
        pass

    @abstractmethod
    def destroy_container(self, name: str, callback: Optional[Callback] = None):
        """
        Delete a container together with every file in it.

        Resolves with ``{"result": bool}``.
        """
        pass

    @abstractmethod
    def get_container(self, name: str, callback: Optional[Callback] = None):
        """Fetch a single container's metadata."""
        pass

    @abstractmethod
    def get_files(self, container: str, options: Any = None,
                  callback: Optional[Callback] = None):
        """
        List the files in a container.

        Args:
            container: Container name
            options: Optional filter (prefix, regex or predicate)
            callback: Optional completion callback
        """
        pass

    @abstractmethod
    def get_file(self, container: str, name: str,
                 callback: Optional[Callback] = None):
        """Fetch a single file's metadata."""
        pass

    @abstractmethod
    def remove_file(self, container: str, name: str,
                    callback: Optional[Callback] = None):
        """
        Delete a file.

        Resolves with ``{"success": bool}``, false when it did not exist.
        """
        pass

    @abstractmethod
    def upload(self, container, remote: Optional[str] = None,
               callback: Optional[Callback] = None):
        """
        Open a writable stream to a new file.

        Returns:
            UploadStream (a failed one when the request is rejected)
        """
        pass

    @abstractmethod
    def download(self, container, remote: Optional[str] = None,
                 callback: Optional[Callback] = None):
        """
        Open a readable stream over a file's contents.

        Returns:
            DownloadStream (a failed one when the request is rejected)
        """
        pass

    @abstractmethod
    def get_url(self, container: str, name: str) -> Optional[str]:
        """
        Build a time-limited, read-only URL for a file.

        Returns:
            URL string, or None if a name is invalid
        """
        pass

    # Host method-name contract

    def getContainers(self, cb=None):
        return self.get_containers(cb)

    def createContainer(self, options: Mapping[str, Any], cb=None):
        return self.create_container(options.get("name"), cb)

    def destroyContainer(self, container: str, cb=None):
        return self.destroy_container(container, cb)

    def getContainer(self, container: str, cb=None):
        return self.get_container(container, cb)

    def getFiles(self, container: str, options=None, cb=None):
        return self.get_files(container, options, cb)

    def getFile(self, container: str, file: str, cb=None):
        return self.get_file(container, file, cb)

    def removeFile(self, container: str, file: str, cb=None):
        return self.remove_file(container, file, cb)

    def getUrl(self, options: Optional[Mapping[str, Any]] = None):
        options = options or {}
        return self.get_url(options.get("directoryName"), options.get("fileName"))
