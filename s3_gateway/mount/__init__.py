"""Client-side file view over the gateway's objects."""

from .client import DownloadClient, MetadataClient
from .context import MountStorageContext
from .view import MountView, StorageFileLayout

__all__ = [
    "DownloadClient",
    "MetadataClient",
    "MountStorageContext",
    "MountView",
    "StorageFileLayout",
]
