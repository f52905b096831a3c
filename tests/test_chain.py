"""
Unit tests for the outbound request middleware chain.

Tests cover response decoding, middleware ordering, header injection, metrics recording
and the translation of transport failures into ProviderException.
"""

import json
from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest
from aiohttp import ClientConnectionError, ClientResponse, hdrs
from multidict import CIMultiDict, CIMultiDictProxy

from moodboard.app.metrics import MetricsClient
from moodboard.providers.chain import (
    AuthorizationMiddleware,
    ChainMiddlewareClient,
    ChainRequest,
    ChainResponse,
    DebugMiddleware,
    MetricsMiddleware,
    RequestMiddlewareBase,
    chain_middleware_for,
)
from moodboard.providers.errors import ProviderException


def create_mock_response(
    status: int = 200,
    content_type: str = "application/json",
    body: Any = None,
) -> ClientResponse:
    """Create a mock aiohttp ClientResponse."""
    mock_response = AsyncMock(spec=ClientResponse)
    mock_response.status = status
    mock_response.headers = CIMultiDictProxy(CIMultiDict({hdrs.CONTENT_TYPE: content_type}))
    mock_response.closed = False
    mock_response.release = Mock()

    if content_type.startswith("application/json"):
        mock_response.json = AsyncMock(return_value=body)
        mock_response.read = AsyncMock(return_value=json.dumps(body).encode())
    elif content_type.startswith("text/"):
        mock_response.text = AsyncMock(return_value=body)
        mock_response.read = AsyncMock(return_value=body.encode())
    else:
        mock_response.read = AsyncMock(return_value=body)

    return mock_response


def create_mock_session(response: ClientResponse = None, error: Exception = None) -> Mock:
    session = Mock()
    session.request = AsyncMock(return_value=response, side_effect=error)
    return session


class RecordingMiddleware(RequestMiddlewareBase):
    def __init__(self, name: str, order: list) -> None:
        self.name = name
        self.order = order

    async def handle(self, next, request):
        self.order.append(self.name)
        return await next(request)


class TestChainResponse:
    @pytest.mark.asyncio
    async def test_json_body(self):
        response = create_mock_response(body={"items": []})
        chain_response = await ChainResponse.from_aiohttp_response(response)
        assert chain_response.body == {"items": []}
        assert chain_response.ok

    @pytest.mark.asyncio
    async def test_text_body(self):
        response = create_mock_response(content_type="text/plain", body="hello")
        chain_response = await ChainResponse.from_aiohttp_response(response)
        assert chain_response.body == "hello"

    @pytest.mark.asyncio
    async def test_raw_body_ignores_content_type(self):
        response = create_mock_response(body={"a": 1})
        chain_response = await ChainResponse.from_aiohttp_response(response, raw=True)
        assert chain_response.body == b'{"a": 1}'

    def test_raise_for_provider_decodes_bytes(self):
        chain_response = ChainResponse(
            status=502,
            headers=CIMultiDictProxy(CIMultiDict()),
            body=b"bad gateway",
        )
        assert not chain_response.ok
        with pytest.raises(ProviderException) as excinfo:
            chain_response.raise_for_provider("image")
        assert excinfo.value.status == 502
        assert excinfo.value.detail == "bad gateway"
        assert excinfo.value.provider == "image"

    def test_raise_for_provider_empty_body(self):
        chain_response = ChainResponse(
            status=500, headers=CIMultiDictProxy(CIMultiDict()), body=b""
        )
        with pytest.raises(ProviderException) as excinfo:
            chain_response.raise_for_provider("unsplash")
        assert excinfo.value.detail == "Request failed with status code 500"

    def test_raise_for_provider_ok(self):
        chain_response = ChainResponse(
            status=204, headers=CIMultiDictProxy(CIMultiDict()), body=None
        )
        chain_response.raise_for_provider("pinterest")

    def test_json_body_passes_decoded_json_through(self):
        chain_response = ChainResponse(
            status=200, headers=CIMultiDictProxy(CIMultiDict()), body={"items": []}
        )
        assert chain_response.json_body("pinterest") == {"items": []}

    @pytest.mark.asyncio
    async def test_json_body_decodes_octet_stream(self):
        response = create_mock_response(
            content_type="application/octet-stream", body=b'{"items": [1]}'
        )
        chain_response = await ChainResponse.from_aiohttp_response(response)
        assert chain_response.body == b'{"items": [1]}'
        assert chain_response.json_body("pinterest") == {"items": [1]}

    def test_json_body_decodes_text(self):
        chain_response = ChainResponse(
            status=200, headers=CIMultiDictProxy(CIMultiDict()), body="[1, 2]"
        )
        assert chain_response.json_body("unsplash") == [1, 2]

    @pytest.mark.parametrize("body", [b"\xff\xfe", b"<html></html>", "42", None])
    def test_json_body_rejects_non_json(self, body):
        chain_response = ChainResponse(
            status=200, headers=CIMultiDictProxy(CIMultiDict()), body=body
        )
        with pytest.raises(ProviderException) as excinfo:
            chain_response.json_body("unsplash")
        assert excinfo.value.provider == "unsplash"
        assert excinfo.value.status is None


class TestMiddleware:
    @pytest.mark.asyncio
    async def test_middleware_runs_in_order(self):
        order: list = []
        session = create_mock_session(create_mock_response(body={}))
        client = ChainMiddlewareClient(
            client_session=session,
            provider="test",
            middleware=[RecordingMiddleware("a", order), RecordingMiddleware("b", order)],
        )
        async with client.get("https://example.com/x") as (_, chain_response):
            assert chain_response.body == {}
        assert order == ["a", "b"]

    @pytest.mark.asyncio
    async def test_authorization_header_is_set(self):
        session = create_mock_session(create_mock_response(body={}))
        client = ChainMiddlewareClient(
            client_session=session,
            provider="test",
            middleware=[AuthorizationMiddleware.bearer("tok")],
        )
        async with client.get("https://example.com/x", params={"q": "1"}):
            pass

        args, kwargs = session.request.call_args
        assert args[0] == "get"
        assert kwargs["headers"][hdrs.AUTHORIZATION] == "Bearer tok"
        assert kwargs["params"] == {"q": "1"}

    def test_client_id_authorization(self):
        assert AuthorizationMiddleware.client_id("key")._authorization == "Client-ID key"

    @pytest.mark.asyncio
    async def test_metrics_middleware_records_status(self):
        metrics_client = Mock(spec=MetricsClient)
        session = create_mock_session(create_mock_response(status=404, body={}))
        client = ChainMiddlewareClient(
            client_session=session,
            provider="pinterest",
            middleware=[MetricsMiddleware(metrics_client, "pinterest")],
        )
        async with client.get("https://example.com/x"):
            pass

        metrics_client.timer.assert_called_once()
        assert metrics_client.timer.call_args.args[0] == "moodboard.provider.request.time"
        metrics_client.increment.assert_called_once_with(
            "moodboard.provider.request.count",
            1,
            tag_dict={"provider": "pinterest", "method": "get", "status": 404},
        )

    def test_chain_middleware_for_debug(self):
        metrics_client = Mock(spec=MetricsClient)
        extra = AuthorizationMiddleware.bearer("tok")

        middleware = chain_middleware_for(metrics_client, "p", False, extra)
        assert [type(mw) for mw in middleware] == [MetricsMiddleware, AuthorizationMiddleware]

        middleware = chain_middleware_for(metrics_client, "p", True, extra)
        assert isinstance(middleware[-1], DebugMiddleware)


class TestChainErrors:
    @pytest.mark.asyncio
    async def test_transport_error_becomes_provider_exception(self):
        session = create_mock_session(error=ClientConnectionError("connection refused"))
        client = ChainMiddlewareClient(client_session=session, provider="unsplash")

        with pytest.raises(ProviderException) as excinfo:
            async with client.get("https://example.com/x"):
                pass
        assert excinfo.value.provider == "unsplash"
        assert excinfo.value.detail == "connection refused"
        assert excinfo.value.status is None

    @pytest.mark.asyncio
    async def test_undecodable_json_is_malformed(self):
        response = create_mock_response(body={})
        response.json = AsyncMock(side_effect=ValueError("Expecting value"))
        client = ChainMiddlewareClient(
            client_session=create_mock_session(response), provider="pinterest"
        )

        with pytest.raises(ProviderException) as excinfo:
            async with client.get("https://example.com/x"):
                pass
        assert "unexpected response" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_response_released_on_exit(self):
        response = create_mock_response(body={})
        client = ChainMiddlewareClient(
            client_session=create_mock_session(response), provider="pinterest"
        )
        async with client.get("https://example.com/x"):
            pass
        response.release.assert_called_once()


class TestChainRequest:
    def test_defaults(self):
        request = ChainRequest(method="GET", url="https://example.com")
        assert request.raw is False
        assert request.headers is None
