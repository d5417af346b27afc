from __future__ import annotations

import httpx
import pytest
from s3_gateway.auth import TokenChecker, extract_bearer_token


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        ("Bearer abc", "abc"),
        ("bearer  abc ", "abc"),
        ("Basic abc", None),
        ("Bearer", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_bearer_token(header, expected):
    assert extract_bearer_token(header) == expected


class TestTokenChecker:
    @pytest.mark.anyio
    async def test_scopes_are_cached(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"scope": ["s3.download", "s3.upload"]})

        checker = TokenChecker(
            "http://auth.test/check",
            "client",
            "secret",
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        assert await checker.check("t") == {"s3.download", "s3.upload"}
        assert await checker.check("t") == {"s3.download", "s3.upload"}
        assert len(calls) == 1
        assert calls[0].headers["authorization"].startswith("Basic ")

    @pytest.mark.anyio
    async def test_error_payload_is_invalid(self):
        checker = TokenChecker(
            "http://auth.test/check",
            None,
            None,
            http_client=httpx.AsyncClient(
                transport=httpx.MockTransport(
                    lambda request: httpx.Response(200, json={"error": "expired"})
                )
            ),
        )
        assert await checker.check("t") is None

    @pytest.mark.anyio
    async def test_server_error_propagates(self):
        checker = TokenChecker(
            "http://auth.test/check",
            None,
            None,
            http_client=httpx.AsyncClient(
                transport=httpx.MockTransport(lambda request: httpx.Response(502))
            ),
        )
        with pytest.raises(httpx.HTTPStatusError):
            await checker.check("t")

    @pytest.mark.anyio
    async def test_startup_shutdown(self):
        checker = TokenChecker("http://auth.test/check", None, None)
        assert checker._http_client is None

        await checker.startup()
        assert checker._http_client is not None

        await checker.shutdown()
        assert checker._http_client is None
