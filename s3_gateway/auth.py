"""Bearer token checks in front of the download endpoints.

Tokens are verified by a remote OAuth2 check-token endpoint; only requests
whose token carries the configured scope reach the download service.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx
from cachetools import TTLCache
from litestar.exceptions import NotAuthorizedException, PermissionDeniedException

if TYPE_CHECKING:
    from litestar.connection import ASGIConnection
    from litestar.handlers.base import BaseRouteHandler
    from litestar.types import Guard

LOG = logging.getLogger("s3_gateway.auth")


def extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class TokenChecker:
    """Resolves access tokens to their granted scopes."""

    def __init__(
        self,
        check_url: str,
        client_id: str | None,
        client_secret: str | None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._check_url = check_url
        self._auth = (client_id, client_secret) if client_id else None
        self._http_client = http_client
        self._owns_client = http_client is None
        self._scopes: TTLCache[str, frozenset[str]] = TTLCache(maxsize=1000, ttl=60)

    async def startup(self) -> None:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=httpx.Timeout(10.0))

    async def shutdown(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    async def check(self, token: str) -> frozenset[str] | None:
        """Return the scopes of ``token``, or None if it is not valid."""
        cached = self._scopes.get(token)
        if cached is not None:
            return cached

        if self._http_client is None:
            message = "token checker not initialised"
            raise RuntimeError(message)

        response = await self._http_client.post(
            self._check_url, data={"token": token}, auth=self._auth
        )
        if response.status_code in {400, 401, 403}:
            LOG.debug("token rejected by %s (%s)", self._check_url, response.status_code)
            return None
        response.raise_for_status()

        payload = response.json()
        if "error" in payload:
            return None
        scope = payload.get("scope") or []
        if isinstance(scope, str):
            scope = scope.split()
        scopes = frozenset(scope)
        self._scopes[token] = scopes
        return scopes


def scope_guard(checker: TokenChecker, scope: str) -> Guard:
    """Build a guard admitting only tokens that carry ``scope``."""

    async def guard(connection: ASGIConnection, _: BaseRouteHandler) -> None:
        token = extract_bearer_token(connection.headers.get("authorization"))
        if token is None:
            raise NotAuthorizedException(detail="missing bearer token")
        scopes = await checker.check(token)
        if scopes is None:
            raise NotAuthorizedException(detail="invalid access token")
        if scope not in scopes:
            LOG.info("rejected %s: token lacks scope %s", connection.url.path, scope)
            raise PermissionDeniedException(detail=f"scope {scope} required")

    return guard
