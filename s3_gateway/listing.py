from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from botocore.exceptions import BotoCoreError, ClientError

from .buckets import META_SUFFIX, partition_buckets
from .errors import DownloadFailedError, FailureKind, classify_error
from .models import ObjectInfo

if TYPE_CHECKING:
    from collections.abc import Iterator

    from botocore.client import BaseClient

    from .settings import ServerSettings

LOG = logging.getLogger("s3_gateway.listing")


class ListingService:
    """Lists the data objects held across every data bucket."""

    def __init__(self, client: BaseClient, settings: ServerSettings):
        self._client = client
        self._settings = settings

    def list_objects(self) -> list[ObjectInfo]:
        buckets = partition_buckets(
            self._settings.bucket_name,
            self._settings.bucket_pool_size,
            self._settings.bucket_key_size,
        )
        if self._settings.partitioned:
            # Objects stored before partitioning still live in the base bucket.
            buckets.append(self._settings.bucket_name)

        objects: dict[str, ObjectInfo] = {}
        for bucket in buckets:
            for info in self._list_bucket(bucket):
                objects.setdefault(info.id, info)
        LOG.debug("listed %d objects across %d buckets", len(objects), len(buckets))
        return sorted(objects.values(), key=lambda info: info.id)

    def _list_bucket(self, bucket: str) -> Iterator[ObjectInfo]:
        prefix = f"{self._settings.data_directory}/"
        paginator = self._client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                for entry in page.get("Contents", []):
                    object_id = entry["Key"][len(prefix) :]
                    if not object_id or "/" in object_id:
                        continue
                    if object_id.endswith(META_SUFFIX):
                        continue
                    yield ObjectInfo(
                        id=object_id,
                        last_modified=entry["LastModified"],
                        size=entry["Size"],
                    )
        except (ClientError, BotoCoreError) as error:
            kind = classify_error(error)
            if kind is FailureKind.NOT_FOUND:
                LOG.debug("bucket %s does not exist, skipping", bucket)
                return
            LOG.error("failed to list s3://%s/%s: %s", bucket, prefix, error)
            raise DownloadFailedError(kind, f"failed to list bucket {bucket}") from error
