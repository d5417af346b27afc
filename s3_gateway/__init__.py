"""Download gateway for partitioned S3 object storage."""

from .download import ObjectDownloadService
from .errors import DownloadFailedError, DownloadResult, FailureKind
from .settings import MountSettings, ServerSettings, StorageSettings

__all__ = [
    "DownloadFailedError",
    "DownloadResult",
    "FailureKind",
    "MountSettings",
    "ObjectDownloadService",
    "ServerSettings",
    "StorageSettings",
]
