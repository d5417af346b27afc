from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import TypeAdapter

from ..errors import DownloadFailedError, FailureKind
from ..models import Entity, ObjectInfo, ObjectSpecification

LOG = logging.getLogger("s3_gateway.mount.client")

_OBJECT_LISTING = TypeAdapter(list[ObjectInfo])

RETRYABLE_STATUSES = frozenset({429, 502, 503, 504})


def _failure_kind(status_code: int) -> FailureKind:
    if status_code == 404:
        return FailureKind.NOT_FOUND
    if status_code == 400:
        return FailureKind.INVALID_RANGE
    if status_code in RETRYABLE_STATUSES:
        return FailureKind.RETRYABLE
    return FailureKind.PERMANENT


def _build_http_client(base_url: str, access_token: str | None) -> httpx.Client:
    headers = {}
    if access_token:
        headers["Authorization"] = f"Bearer {access_token}"
    return httpx.Client(
        base_url=base_url,
        headers=headers,
        timeout=httpx.Timeout(60.0),
    )


class DownloadClient:
    """Client of the gateway's download and listing endpoints."""

    def __init__(self, http_client: httpx.Client):
        self._http_client = http_client

    @classmethod
    def connect(cls, gateway_url: str, access_token: str | None = None) -> DownloadClient:
        return cls(_build_http_client(gateway_url, access_token))

    def close(self) -> None:
        self._http_client.close()

    def download(
        self,
        object_id: str,
        offset: int = 0,
        length: int = -1,
        external: bool = False,
    ) -> ObjectSpecification:
        params = {
            "offset": offset,
            "length": length,
            "external": "true" if external else "false",
        }
        payload = self._get(f"/download/{object_id}", params=params)
        return ObjectSpecification.model_validate(payload)

    def get_url(self, object_id: str) -> str:
        """Return a presigned URL for the whole object."""
        spec = self.download(object_id, external=True)
        url = spec.parts[0].url if spec.parts else None
        if url is None:
            message = f"gateway returned no url for object id {object_id}"
            raise DownloadFailedError(FailureKind.PERMANENT, message)
        return url

    def list_objects(self) -> list[ObjectInfo]:
        return _OBJECT_LISTING.validate_python(self._get("/listing"))

    def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        try:
            response = self._http_client.get(path, params=params)
        except httpx.TransportError as error:
            LOG.warning("gateway request %s failed: %s", path, error)
            raise DownloadFailedError(FailureKind.RETRYABLE, str(error)) from error

        if response.is_error:
            kind = _failure_kind(response.status_code)
            LOG.error(
                "gateway request %s failed with status %d (%s)",
                path,
                response.status_code,
                kind.value,
            )
            raise DownloadFailedError(kind, response.text)
        return response.json()


class MetadataClient:
    """Reads entity records from the metadata service, page by page."""

    def __init__(self, http_client: httpx.Client, page_size: int = 2000):
        self._http_client = http_client
        self._page_size = page_size

    @classmethod
    def connect(cls, metadata_url: str, access_token: str | None = None) -> MetadataClient:
        return cls(_build_http_client(metadata_url, access_token))

    def close(self) -> None:
        self._http_client.close()

    def find_entities(self) -> list[Entity]:
        entities: list[Entity] = []
        page = 0
        while True:
            response = self._http_client.get(
                "/entities", params={"page": page, "size": self._page_size}
            )
            response.raise_for_status()
            payload = response.json()
            entities.extend(
                Entity.model_validate(item) for item in payload.get("content", [])
            )
            if payload.get("last", True):
                break
            page += 1
        LOG.debug("found %d entities in %d pages", len(entities), page + 1)
        return entities
