from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from .buckets import object_key, object_meta_key, resolve_bucket
from .errors import DownloadResult, FailureKind, classify_error
from .models import ObjectSpecification
from .parts import PartCalculator
from .settings import load_server_settings_from_env, load_storage_settings_from_env
from .storage import build_s3_client
from .urls import ObjectURLGenerator

if TYPE_CHECKING:
    from botocore.client import BaseClient

    from .models import Part
    from .settings import ServerSettings

LOG = logging.getLogger("s3_gateway.download")


@dataclass(frozen=True)
class _FetchedMeta:
    body: bytes
    bucket: str
    relocated: bool


class ObjectDownloadService:
    """Builds download specifications for stored objects, full or partial."""

    def __init__(
        self,
        client: BaseClient,
        settings: ServerSettings,
        *,
        url_generator: ObjectURLGenerator | None = None,
        part_calculator: PartCalculator | None = None,
    ):
        self._client = client
        self._settings = settings
        self._url_generator = url_generator or ObjectURLGenerator(client)
        self._part_calculator = part_calculator or PartCalculator(settings.part_size)

    @classmethod
    def from_env(cls) -> ObjectDownloadService:
        return cls(
            client=build_s3_client(load_storage_settings_from_env()),
            settings=load_server_settings_from_env(),
        )

    @property
    def settings(self) -> ServerSettings:
        return self._settings

    def download(
        self,
        object_id: str,
        offset: int,
        length: int,
        for_external_use: bool = False,
    ) -> DownloadResult:
        """Return the parts needed to read ``length`` bytes from ``offset``.

        A negative ``length`` reads to the end of the object. For external use
        the whole object is returned as one part without a range restriction.
        """
        result = self._download(object_id, offset, length, for_external_use)
        if not result.ok:
            LOG.error(
                "failed to download object_id=%s offset=%d length=%d external=%s: %s (%s)",
                object_id,
                offset,
                length,
                for_external_use,
                result.message,
                result.kind.value,
            )
        return result

    def _download(
        self, object_id: str, offset: int, length: int, for_external_use: bool
    ) -> DownloadResult:
        if offset < 0:
            return DownloadResult.failure(
                FailureKind.INVALID_RANGE, f"offset must not be negative: {offset}"
            )

        fetched = self.get_specification(object_id)
        if not fetched.ok:
            return fetched
        stored = fetched.specification
        assert stored is not None

        if not for_external_use and offset == 0 and length < 0:
            return fetched

        if not for_external_use and length < 0:
            length = stored.object_size - offset

        if offset + length > stored.object_size:
            return DownloadResult.failure(
                FailureKind.INVALID_RANGE,
                f"specified parameters exceed object size (object id: {object_id}, "
                f"offset: {offset}, length: {length}, size: {stored.object_size})",
            )

        key = object_key(self._settings.data_directory, object_id)
        if for_external_use:
            parts = self._part_calculator.specify(0, -1)
        else:
            parts = self._part_calculator.divide(offset, length)

        failure = self._fill_part_urls(key, parts, stored.relocated, for_external_use)
        if failure is not None:
            return failure

        return DownloadResult.success(
            ObjectSpecification(
                object_key=key,
                object_id=object_id,
                upload_id=object_id,
                parts=parts,
                object_size=stored.object_size if length < 0 else length,
                object_md5=stored.object_md5,
                relocated=stored.relocated,
            )
        )

    def get_specification(self, object_id: str) -> DownloadResult:
        """Read the stored specification of ``object_id`` with URLs filled in.

        Objects written before partitioning was enabled are looked up in the
        unpartitioned state bucket when the partition misses, and come back
        marked as relocated.
        """
        key = object_key(self._settings.data_directory, object_id)
        meta_key = object_meta_key(self._settings.data_directory, object_id)
        LOG.debug(
            "getting specification for object_id=%s key=%s meta_key=%s",
            object_id,
            key,
            meta_key,
        )

        fetched = self._fetch_meta(object_id, meta_key)
        if isinstance(fetched, DownloadResult):
            return fetched

        try:
            spec = ObjectSpecification.model_validate_json(fetched.body)
        except ValidationError as error:
            LOG.error(
                "error reading specification for object_id=%s from s3://%s/%s: %s",
                object_id,
                fetched.bucket,
                meta_key,
                error,
            )
            return DownloadResult.failure(
                FailureKind.MALFORMED,
                f"malformed specification for object id {object_id}",
            )
        spec.relocated = fetched.relocated
        for part in spec.parts:
            part.url = None

        failure = self._fill_part_urls(key, spec.parts, spec.relocated, False)
        if failure is not None:
            return failure
        return DownloadResult.success(spec)

    def _fetch_meta(self, object_id: str, meta_key: str) -> _FetchedMeta | DownloadResult:
        base_bucket = self._settings.state_bucket_name
        bucket = resolve_bucket(
            object_id,
            base_bucket,
            self._settings.bucket_pool_size,
            self._settings.bucket_key_size,
        )
        body, kind, detail = self._read_object(bucket, meta_key)
        if kind is None:
            return _FetchedMeta(body=body, bucket=bucket, relocated=False)

        if kind is FailureKind.NOT_FOUND and self._settings.partitioned:
            LOG.warning(
                "object_id=%s not found in s3://%s/%s, trying base bucket %s",
                object_id,
                bucket,
                meta_key,
                base_bucket,
            )
            bucket = base_bucket
            body, kind, detail = self._read_object(bucket, meta_key)
            if kind is None:
                LOG.info(
                    "found relocated object_id=%s in base bucket %s",
                    object_id,
                    base_bucket,
                )
                return _FetchedMeta(body=body, bucket=bucket, relocated=True)

        LOG.error(
            "failed to get specification for object_id=%s from s3://%s/%s: %s",
            object_id,
            bucket,
            meta_key,
            detail,
        )
        if kind is FailureKind.NOT_FOUND:
            return DownloadResult.failure(kind, f"unknown object id {object_id}")
        return DownloadResult.failure(kind, detail)

    def _read_object(
        self, bucket: str, key: str
    ) -> tuple[bytes, FailureKind | None, str]:
        try:
            result = self._client.get_object(Bucket=bucket, Key=key)
            stream = result["Body"]
            try:
                return stream.read(), None, ""
            finally:
                stream.close()
        except (ClientError, BotoCoreError) as error:
            return b"", classify_error(error), str(error)

    def _fill_part_urls(
        self,
        key: str,
        parts: list[Part],
        relocated: bool,
        for_external_use: bool,
    ) -> DownloadResult | None:
        """Presign every part against the bucket that actually holds the data."""
        if relocated:
            bucket = self._settings.bucket_name
        else:
            bucket = resolve_bucket(
                key,
                self._settings.bucket_name,
                self._settings.bucket_pool_size,
                self._settings.bucket_key_size,
            )
        expires_in = self._settings.download_expiration * 24 * 3600

        try:
            for part in parts:
                if for_external_use:
                    part.url = self._url_generator.download_url(bucket, key, expires_in)
                else:
                    part.url = self._url_generator.download_part_url(
                        bucket, key, part, expires_in
                    )
        except (ClientError, BotoCoreError) as error:
            LOG.exception("failed to presign s3://%s/%s", bucket, key)
            return DownloadResult.failure(classify_error(error), str(error))
        return None
