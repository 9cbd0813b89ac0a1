"""Unit tests for the external fraud-signal client."""

import json

import httpx
import pytest

from paysentry.domains.fraud.signals import HttpSignalProvider
from tests.fakes import make_txn

URL = "https://signals.test/v1/score"


def _provider(handler, api_key: str = "test-key") -> HttpSignalProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpSignalProvider(URL, api_key=api_key, client=client)


class TestHttpSignalProvider:
    @pytest.mark.asyncio
    async def test_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"score": 0.83, "reasons": ["proxy_ip"]})

        result = await _provider(handler).score(make_txn())

        assert result.status == "SUCCESS"
        assert result.is_success
        assert result.score == 0.83
        assert result.reasons == ["proxy_ip"]
        assert seen["auth"] == "Bearer test-key"
        assert seen["body"]["transaction_id"] == "txn-1"
        assert seen["body"]["amount"] == "100.00"

    @pytest.mark.asyncio
    async def test_not_configured_makes_no_request(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        result = await _provider(handler, api_key="").score(make_txn())

        assert result.status == "NOT_CONFIGURED"
        assert not result.is_success

    @pytest.mark.asyncio
    async def test_server_error(self):
        result = await _provider(lambda request: httpx.Response(502)).score(make_txn())
        assert result.status == "ERROR"

    @pytest.mark.asyncio
    async def test_missing_score(self):
        handler = lambda request: httpx.Response(200, json={"reasons": []})  # noqa: E731
        result = await _provider(handler).score(make_txn())
        assert result.status == "ERROR"

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        result = await _provider(handler).score(make_txn())
        assert result.status == "ERROR"

    @pytest.mark.asyncio
    async def test_score_clamped(self):
        handler = lambda request: httpx.Response(200, json={"score": 1.7})  # noqa: E731
        result = await _provider(handler).score(make_txn())
        assert result.score == 1.0

    @pytest.mark.asyncio
    async def test_non_finite_score_is_an_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, content=b'{"score": NaN}', headers={"Content-Type": "application/json"}
            )

        result = await _provider(handler).score(make_txn())

        assert result.status == "ERROR"
        assert not result.is_success
