from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from botocore.client import BaseClient

    from .models import Part

LOG = logging.getLogger("s3_gateway.urls")

# SigV4 presigned URLs cannot outlive seven days.
MAX_EXPIRES_IN = 7 * 24 * 3600


class ObjectURLGenerator:
    """Issues presigned GET URLs for data objects."""

    def __init__(self, client: BaseClient):
        self._client = client

    def download_url(self, bucket: str, key: str, expires_in: int) -> str:
        """Presign the whole object, with no range restriction."""
        return self._presign({"Bucket": bucket, "Key": key}, expires_in)

    def download_part_url(
        self, bucket: str, key: str, part: Part, expires_in: int
    ) -> str:
        """Presign one part; the URL only grants the part's byte range."""
        params = {"Bucket": bucket, "Key": key, "Range": part.byte_range()}
        return self._presign(params, expires_in)

    def _presign(self, params: dict[str, str], expires_in: int) -> str:
        expires_in = min(expires_in, MAX_EXPIRES_IN)
        LOG.debug(
            "presigning s3://%s/%s range=%s expires_in=%d",
            params["Bucket"],
            params["Key"],
            params.get("Range"),
            expires_in,
        )
        return self._client.generate_presigned_url(
            "get_object", Params=params, ExpiresIn=expires_in
        )
