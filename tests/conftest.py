from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from s3_gateway.models import Entity, ObjectInfo
from s3_gateway.settings import ServerSettings

if TYPE_CHECKING:
    from collections.abc import Callable


DATA_BUCKET = "oicr.icgc"
STATE_BUCKET = "oicr.icgc.meta"


def client_error(code: str, status: int, operation: str = "GetObject") -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": code},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


def meta_document(
    object_id: str, size: int, part_size: int | None = None, data_dir: str = "data"
) -> bytes:
    """Build the stored specification of an object the way the uploader writes it."""
    part_size = part_size or size
    parts = []
    offset = 0
    while offset < size:
        length = min(part_size, size - offset)
        parts.append(
            {
                "partNumber": len(parts) + 1,
                "partSize": length,
                "offset": offset,
                "md5": f"md5-{len(parts) + 1}",
            }
        )
        offset += length
    return json.dumps(
        {
            "objectKey": f"{data_dir}/{object_id}",
            "objectId": object_id,
            "uploadId": "upload-1",
            "parts": parts,
            "objectSize": size,
            "objectMd5": "abc123",
        }
    ).encode()


def presigned(bucket: str, key: str, byte_range: str | None = None) -> str:
    url = f"https://s3.test/{bucket}/{key}?signed"
    if byte_range:
        url += f"&range={byte_range}"
    return url


@pytest.fixture
def server_settings() -> Callable[..., ServerSettings]:
    def build(**overrides: Any) -> ServerSettings:
        values: dict[str, Any] = {
            "bucket_name": DATA_BUCKET,
            "state_bucket_name": STATE_BUCKET,
            "data_directory": "data",
            "bucket_pool_size": 0,
            "bucket_key_size": 2,
            "download_expiration": 1,
            "part_size": 100,
        }
        values.update(overrides)
        return ServerSettings(**values)

    return build


@pytest.fixture
def stored_objects() -> dict[tuple[str, str], bytes | Exception]:
    """Objects held by the fake store, keyed by (bucket, key).

    An exception value is raised instead of returning a body.
    """
    return {}


@pytest.fixture
def s3_client(stored_objects) -> MagicMock:
    client = MagicMock()

    def get_object(Bucket: str, Key: str) -> dict[str, Any]:  # noqa: N803
        value = stored_objects.get((Bucket, Key))
        if value is None:
            raise client_error("NoSuchKey", 404)
        if isinstance(value, Exception):
            raise value
        body = MagicMock()
        body.read.return_value = value
        return {"Body": body}

    def generate_presigned_url(
        method: str,
        Params: dict[str, str],  # noqa: N803
        ExpiresIn: int,  # noqa: N803
    ) -> str:
        assert method == "get_object"
        return presigned(Params["Bucket"], Params["Key"], Params.get("Range"))

    client.get_object.side_effect = get_object
    client.generate_presigned_url.side_effect = generate_presigned_url
    return client


@pytest.fixture
def entities() -> list[Entity]:
    return [
        Entity(id="A", file_name="sample.bam", gnos_id="g1"),
        Entity(id="B", file_name="sample.bam.bai", gnos_id="g1"),
        Entity(id="D", file_name="calls.vcf.gz", gnos_id="g2"),
    ]


@pytest.fixture
def objects() -> list[ObjectInfo]:
    modified = datetime(2024, 5, 1, tzinfo=UTC)
    return [
        ObjectInfo(id="A", last_modified=modified, size=1000),
        ObjectInfo(id="B", last_modified=modified, size=10),
        ObjectInfo(id="C", last_modified=modified, size=5),
        ObjectInfo(id="D", last_modified=modified, size=300),
    ]


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
