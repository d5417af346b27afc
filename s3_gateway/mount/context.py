"""Read-only file view over a snapshot of metadata entities and object listings.

The view is built once from the collections handed to
:class:`MountStorageContext`; it never observes later changes to the metadata
service or the object store. Rebuild the context to pick those up.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Generic, Protocol, TypeVar

import httpx
from cachetools import TTLCache

from ..models import StorageFile
from ..settings import load_mount_settings_from_env
from .client import DownloadClient, MetadataClient

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from ..models import Entity, IndexFileType, ObjectInfo
    from ..settings import MountSettings

LOG = logging.getLogger("s3_gateway.mount.context")

T = TypeVar("T")

DEFAULT_URL_EXPIRATION_HOURS = 24


class DownloadCapability(Protocol):
    def get_url(self, object_id: str) -> str: ...


class Once(Generic[T]):
    """A value computed on first use, at most once per successful computation.

    Concurrent first callers block on the computation and all observe the
    same result. A computation that raises leaves the cell empty.
    """

    def __init__(self, compute: Callable[[], T]):
        self._compute = compute
        self._lock = threading.Lock()
        self._done = False
        self._value: T | None = None

    def get(self) -> T:
        if not self._done:
            with self._lock:
                if not self._done:
                    self._value = self._compute()
                    self._done = True
        return self._value  # type: ignore[return-value]


class _KeyLock:
    __slots__ = ("lock", "waiters")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.waiters = 0


class UrlCache:
    """Presigned URLs by object id, each kept for a fixed time after loading.

    Loads of the same id are serialized so one backend call is in flight per
    id; other ids are only held up for the duration of a dictionary access.
    Expired entries are dropped when next touched. A per-id lock lives only
    while some thread is loading or waiting on that id.
    """

    def __init__(
        self,
        loader: Callable[[str], str],
        ttl: float,
        *,
        maxsize: int = 100_000,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._loader = loader
        self._cache: TTLCache[str, str] = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)
        self._lock = threading.Lock()
        self._key_locks: dict[str, _KeyLock] = {}

    def get(self, key: str) -> str:
        with self._lock:
            url = self._cache.get(key)
            if url is not None:
                return url
            key_lock = self._key_locks.get(key)
            if key_lock is None:
                key_lock = self._key_locks[key] = _KeyLock()
            key_lock.waiters += 1

        try:
            with key_lock.lock:
                with self._lock:
                    url = self._cache.get(key)
                if url is not None:
                    return url
                LOG.debug("loading url for object_id=%s", key)
                url = self._loader(key)
                with self._lock:
                    self._cache[key] = url
                return url
        finally:
            with self._lock:
                key_lock.waiters -= 1
                if key_lock.waiters == 0:
                    del self._key_locks[key]


class MountStorageContext:
    def __init__(
        self,
        download_service: DownloadCapability,
        entities: Sequence[Entity],
        objects: Sequence[ObjectInfo],
        *,
        url_expiration_hours: int = DEFAULT_URL_EXPIRATION_HOURS,
        timer: Callable[[], float] = time.monotonic,
        http_client: httpx.Client | None = None,
    ):
        if url_expiration_hours < 2:
            msg = "url expiration must be at least 2 hours"
            raise ValueError(msg)
        self._download_service = download_service
        self._entities = tuple(entities)
        self._objects = tuple(objects)
        self._http_client = http_client

        self._files = Once(self._resolve_files)
        self._file_object_id_index = Once(self._resolve_file_object_id_index)
        self._file_gnos_id_index = Once(self._resolve_file_gnos_id_index)
        self._authorized = Once(self._resolve_authorized)
        # Cached URLs must expire before the URLs themselves do.
        self._url_cache = Once(
            lambda: UrlCache(
                download_service.get_url,
                ttl=(url_expiration_hours - 1) * 3600,
                timer=timer,
            )
        )

        self._metrics: dict[str, int] = {}
        self._metrics_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: MountSettings | None = None) -> MountStorageContext:
        """Snapshot the metadata service and the gateway listing into a context."""
        settings = settings or load_mount_settings_from_env()
        download_client = DownloadClient.connect(
            settings.gateway_url, settings.access_token
        )
        metadata_client = MetadataClient.connect(
            settings.metadata_url, settings.access_token
        )
        try:
            entities = metadata_client.find_entities()
        finally:
            metadata_client.close()
        objects = download_client.list_objects()
        LOG.info(
            "mounting %d entities and %d objects from %s",
            len(entities),
            len(objects),
            settings.gateway_url,
        )
        return cls(
            download_client,
            entities,
            objects,
            url_expiration_hours=settings.url_expiration_hours,
        )

    def files(self) -> tuple[StorageFile, ...]:
        return self._files.get()

    def get_file(self, object_id: str) -> StorageFile | None:
        return self._file_object_id_index.get().get(object_id)

    def get_files_by_group(self, gnos_id: str) -> tuple[StorageFile, ...]:
        return self._file_gnos_id_index.get().get(gnos_id, ())

    def get_index_file(
        self, object_id: str, index_file_type: IndexFileType
    ) -> StorageFile | None:
        """Find the index file (e.g. ``.bai``) belonging to a data file.

        When several files of the group match, the first in listing order wins.
        """
        file = self.get_file(object_id)
        if file is None:
            return None
        name = f"{file.file_name}.{index_file_type.extension}"
        for candidate in self.get_files_by_group(file.gnos_id):
            if candidate.file_name == name:
                return candidate
        return None

    def get_url(self, object_id: str) -> str:
        return self._url_cache.get().get(object_id)

    def is_authorized(self) -> bool:
        """Probe once whether the current credentials may read object data."""
        return self._authorized.get()

    def increment_count(self, name: str, n: int = 1) -> None:
        with self._metrics_lock:
            self._metrics[name] = self._metrics.get(name, 0) + n

    def metrics(self) -> dict[str, int]:
        with self._metrics_lock:
            return dict(self._metrics)

    def _resolve_files(self) -> tuple[StorageFile, ...]:
        entity_index: dict[str, Entity] = {}
        for entity in self._entities:
            if entity.id in entity_index:
                LOG.warning("duplicate metadata entity %s, keeping the first", entity.id)
                continue
            entity_index[entity.id] = entity

        files: list[StorageFile] = []
        seen: set[str] = set()
        for info in self._objects:
            entity = entity_index.get(info.id)
            if entity is None or info.id in seen:
                continue
            seen.add(info.id)
            files.append(
                StorageFile(
                    object_id=info.id,
                    file_name=entity.file_name,
                    gnos_id=entity.gnos_id,
                    last_modified=info.last_modified,
                    size=info.size,
                )
            )

        LOG.debug(
            "resolved %d files from %d entities and %d objects",
            len(files),
            len(self._entities),
            len(self._objects),
        )
        return tuple(files)

    def _resolve_file_object_id_index(self) -> dict[str, StorageFile]:
        return {file.object_id: file for file in self.files()}

    def _resolve_file_gnos_id_index(self) -> dict[str, tuple[StorageFile, ...]]:
        index: dict[str, list[StorageFile]] = {}
        for file in self.files():
            index.setdefault(file.gnos_id, []).append(file)
        return {gnos_id: tuple(files) for gnos_id, files in index.items()}

    def _resolve_authorized(self) -> bool:
        if not self._objects:
            LOG.warning("no objects listed, cannot probe authorization")
            return False

        probe = self._objects[-1]
        url = self._download_service.get_url(probe.id)
        client = self._http_client or httpx.Client(timeout=httpx.Timeout(30.0))
        try:
            with client.stream("GET", url) as response:
                if response.status_code == 403:
                    LOG.info("not authorized to read object data (probe %s)", probe.id)
                    return False
                response.raise_for_status()
        finally:
            if self._http_client is None:
                client.close()
        return True
