"""
Value objects returned by storage providers.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional


def property_value(props: Any, key: str, default: Any = None) -> Any:
    # SDK property models behave as both objects and mappings
    if isinstance(props, Mapping):
        return props.get(key, default)
    return getattr(props, key, default)


@dataclass(frozen=True)
class Container:
    """A directory on the share, seen by the host as a container."""
    client: Any = field(repr=False, compare=False)
    metadata: Dict[str, Any]

    @property
    def name(self) -> str:
        return self.metadata["name"]

    @property
    def last_modified(self) -> Optional[datetime]:
        return self.metadata.get("last_modified")

    @property
    def etag(self) -> Optional[str]:
        return self.metadata.get("etag")

    @classmethod
    def from_properties(cls, client: Any, props: Any, name: Optional[str] = None) -> "Container":
        """Build from SDK directory properties or a create/list response."""
        return cls(client, {
            "name": property_value(props, "name") or name,
            "last_modified": property_value(props, "last_modified"),
            "etag": property_value(props, "etag"),
        })


@dataclass(frozen=True)
class File:
    """A file inside a container."""
    client: Any = field(repr=False, compare=False)
    metadata: Dict[str, Any]

    @property
    def name(self) -> str:
        return self.metadata["name"]

    @property
    def container(self) -> Optional[str]:
        return self.metadata.get("container")

    @property
    def size(self) -> Optional[int]:
        return self.metadata.get("size")

    @property
    def last_modified(self) -> Optional[datetime]:
        return self.metadata.get("last_modified")

    @property
    def etag(self) -> Optional[str]:
        return self.metadata.get("etag")

    @classmethod
    def from_properties(cls, client: Any, props: Any, container: Optional[str] = None,
                        name: Optional[str] = None) -> "File":
        """Build from SDK file properties, a listing entry or an upload response."""
        size = property_value(props, "size")
        if size is None:
            size = property_value(props, "content_length")
        return cls(client, {
            "name": property_value(props, "name") or name,
            "container": container,
            "size": size,
            "last_modified": property_value(props, "last_modified"),
            "etag": property_value(props, "etag"),
        })
