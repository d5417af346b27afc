from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING, Annotated, Any

from anyio import to_thread
from litestar import Litestar, get
from litestar.config.cors import CORSConfig
from litestar.exceptions import (
    ClientException,
    HTTPException,
    InternalServerException,
    NotFoundException,
    ServiceUnavailableException,
)
from litestar.params import Parameter
from litestar.plugins.prometheus import PrometheusConfig, PrometheusController

from .auth import TokenChecker, scope_guard
from .download import ObjectDownloadService
from .errors import DownloadFailedError, FailureKind
from .listing import ListingService
from .settings import load_server_settings_from_env, load_storage_settings_from_env
from .storage import build_s3_client

if TYPE_CHECKING:
    from collections.abc import Callable

    from .errors import DownloadResult

LOG = logging.getLogger("s3_gateway.app")

RETRY_AFTER_SECONDS = 5

prometheus_config = PrometheusConfig(app_name="s3_gateway", prefix="s3_gateway")


async def _run_sync(func: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Any:
    return await to_thread.run_sync(partial(func, *args, **kwargs))


def failure_to_http(kind: FailureKind, message: str) -> HTTPException:
    """Map a classified failure onto the HTTP error returned to clients."""
    if kind is FailureKind.NOT_FOUND:
        return NotFoundException(detail=message)
    if kind is FailureKind.INVALID_RANGE:
        return ClientException(detail=message)
    if kind is FailureKind.RETRYABLE:
        return ServiceUnavailableException(
            detail=message, headers={"Retry-After": str(RETRY_AFTER_SECONDS)}
        )
    return InternalServerException(detail=message)


def create_app(
    download_service: ObjectDownloadService | None = None,
    listing_service: ListingService | None = None,
    token_checker: TokenChecker | None = None,
) -> Litestar:
    """Create the download gateway ASGI application."""
    settings = (
        download_service.settings
        if download_service is not None
        else load_server_settings_from_env()
    )
    if download_service is None or listing_service is None:
        client = build_s3_client(load_storage_settings_from_env())
        download_service = download_service or ObjectDownloadService(client, settings)
        listing_service = listing_service or ListingService(client, settings)
    if token_checker is None and settings.secured:
        assert settings.auth_url is not None
        token_checker = TokenChecker(
            settings.auth_url, settings.auth_client_id, settings.auth_client_secret
        )

    guards = []
    if token_checker is not None:
        guards.append(scope_guard(token_checker, settings.download_scope))

    @get("/health", include_in_schema=False)
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @get("/download/{object_id:str}", guards=guards)
    async def download(
        object_id: Annotated[str, Parameter(description="Object id")],
        offset: Annotated[int, Parameter(query="offset", description="First byte")] = 0,
        length: Annotated[
            int, Parameter(query="length", description="Byte count, -1 for the rest")
        ] = -1,
        external: Annotated[
            bool, Parameter(query="external", description="Single whole-object URL")
        ] = False,
    ) -> dict[str, Any]:
        result: DownloadResult = await _run_sync(
            download_service.download, object_id, offset, length, external
        )
        if not result.ok:
            assert result.kind is not None
            raise failure_to_http(result.kind, result.message)
        return result.unwrap().to_json()

    @get("/listing", guards=guards)
    async def listing() -> list[dict[str, Any]]:
        try:
            objects = await _run_sync(listing_service.list_objects)
        except DownloadFailedError as error:
            raise failure_to_http(error.kind, error.message) from error
        return [info.model_dump(mode="json", by_alias=True) for info in objects]

    async def startup(app: Litestar) -> None:
        if token_checker is not None:
            await token_checker.startup()
        LOG.info(
            "s3 gateway ready (bucket=%s, state=%s, pool=%d, auth=%s)",
            settings.bucket_name,
            settings.state_bucket_name,
            settings.bucket_pool_size,
            "enabled" if token_checker is not None else "disabled",
        )

    async def shutdown(app: Litestar) -> None:
        if token_checker is not None:
            await token_checker.shutdown()

    cors_config = CORSConfig(
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    return Litestar(
        route_handlers=[health, download, listing, PrometheusController],
        on_startup=[startup],
        on_shutdown=[shutdown],
        cors_config=cors_config,
        middleware=[prometheus_config.middleware],
    )


app = create_app()
