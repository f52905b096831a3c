from abc import ABC, abstractmethod
import asyncio
from dataclasses import dataclass
import json
from time import time
from types import TracebackType
from typing import (
    Any,
    Awaitable,
    Callable,
    Sequence,
    Tuple,
)
import logging
from aiohttp import ClientError, ClientResponse, ClientSession, hdrs
from aiohttp.typedefs import StrOrURL
from multidict import CIMultiDictProxy

from moodboard.app.metrics import MetricsClient
from moodboard.providers.errors import ProviderException

RequestFunc = Callable[..., Awaitable[ClientResponse]]

logger = logging.getLogger(__name__)


@dataclass
class ChainRequest:
    method: str
    url: StrOrURL
    headers: dict[str, Any] | None = None
    trace_request_ctx: dict[str, Any] | None = None
    kwargs: dict[str, Any] | None = None
    raw: bool = False


@dataclass
class ChainResponse:
    status: int
    headers: CIMultiDictProxy[str]
    body: str | bytes | dict[str, Any] | list[Any] | None = None

    @staticmethod
    async def from_aiohttp_response(
        response: ClientResponse, raw: bool = False
    ) -> "ChainResponse":
        status = response.status
        headers = response.headers

        if raw:
            return ChainResponse(status=status, headers=headers, body=await response.read())

        content_type = response.headers.get(hdrs.CONTENT_TYPE, "")

        if content_type.startswith("application/json"):
            return ChainResponse(
                status=status, headers=headers, body=await response.json()
            )
        elif content_type.startswith("text/"):
            return ChainResponse(
                status=status, headers=headers, body=await response.text()
            )
        else:
            return ChainResponse(
                status=status, headers=headers, body=await response.read()
            )

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def raise_for_provider(self, provider: str) -> None:
        if not self.ok:
            body = self.body
            if isinstance(body, bytes):
                body = body.decode("utf-8", errors="replace")
            raise ProviderException.upstream_status(provider, self.status, body)

    def json_body(self, provider: str) -> dict[str, Any] | list[Any]:
        """
        The body as a JSON object or array, whatever Content-Type it was sent with.

        Raises:
            ProviderException: If the body is not a JSON object or array.
        """
        body = self.body
        if isinstance(body, (bytes, str)):
            try:
                body = json.loads(body)
            except ValueError as e:
                raise ProviderException.malformed(
                    provider, f"body is not JSON: {e}"
                ) from e
        if not isinstance(body, (dict, list)):
            raise ProviderException.malformed(provider, "body is not a JSON object or array")
        return body


NextChainResponseCallbackType = Tuple[ClientResponse, ChainResponse]

NextChainCallbackType = Callable[
    [ChainRequest], Awaitable[NextChainResponseCallbackType]
]


class RequestMiddlewareBase(ABC):
    @abstractmethod
    async def handle(
        self, next: NextChainCallbackType, request: ChainRequest
    ) -> NextChainResponseCallbackType:
        pass

    def handle_gen(self, next: NextChainCallbackType) -> NextChainCallbackType:
        async def next_invoke(request: ChainRequest) -> NextChainResponseCallbackType:
            return await self.handle(next, request)

        return next_invoke


class AuthorizationMiddleware(RequestMiddlewareBase):
    """Sets the ``Authorization`` header on every request passing through the chain."""

    def __init__(self, authorization: str) -> None:
        super().__init__()
        self._authorization = authorization

    @staticmethod
    def bearer(token: str) -> "AuthorizationMiddleware":
        return AuthorizationMiddleware(f"Bearer {token}")

    @staticmethod
    def client_id(access_key: str) -> "AuthorizationMiddleware":
        return AuthorizationMiddleware(f"Client-ID {access_key}")

    async def handle(
        self, next: NextChainCallbackType, request: ChainRequest
    ) -> NextChainResponseCallbackType:
        if request.headers is None:
            request.headers = {}
        request.headers[hdrs.AUTHORIZATION] = self._authorization
        return await next(request)


class MetricsMiddleware(RequestMiddlewareBase):
    """Counts and times provider requests, tagged by provider and response status."""

    def __init__(self, metrics_client: MetricsClient, provider: str) -> None:
        super().__init__()
        self._metrics_client = metrics_client
        self._provider = provider

    async def handle(
        self, next: NextChainCallbackType, request: ChainRequest
    ) -> NextChainResponseCallbackType:
        start_time = time()
        status = 0
        try:
            response = await next(request)
            status = response[1].status
            return response
        finally:
            tags = {"provider": self._provider, "method": request.method.lower()}
            self._metrics_client.timer(
                "moodboard.provider.request.time", time() - start_time, tag_dict=tags
            )
            self._metrics_client.increment(
                "moodboard.provider.request.count",
                1,
                tag_dict={**tags, "status": status},
            )


class DebugMiddleware(RequestMiddlewareBase):
    async def handle(
        self, next: NextChainCallbackType, request: ChainRequest
    ) -> NextChainResponseCallbackType:
        logger.debug("Provider request: %s %s", request.method, request.url)
        response = await next(request)
        logger.debug(
            "Provider response: %s %s -> %s",
            request.method,
            request.url,
            response[1].status,
        )
        return response


class EndOfLineChainMiddleware:
    def __init__(self, request_func: RequestFunc) -> None:
        super().__init__()
        self._request_func = request_func

    async def handle(self, request: ChainRequest) -> NextChainResponseCallbackType:
        response: ClientResponse = await self._request_func(
            request.method.lower(),
            request.url,
            headers=request.headers,
            trace_request_ctx={
                **(request.trace_request_ctx or {}),
            },
            **(request.kwargs or {}),
        )

        return response, await ChainResponse.from_aiohttp_response(
            response, raw=request.raw
        )


class ChainMiddlewareContext:
    """
    Runs one request through the middleware chain.

    Usable with ``async with`` to get ``(client_response, chain_response)``. Transport
    failures are raised as ProviderException so callers deal with a single error type.
    """

    def __init__(
        self,
        chain_callback: NextChainCallbackType,
        chain_request: ChainRequest,
        provider: str,
    ) -> None:
        self._chain_callback = chain_callback
        self._chain_request = chain_request
        self._provider = provider

        self.client_response: ClientResponse | None = None

    async def _do_request(self) -> Tuple[ClientResponse, ChainResponse]:
        try:
            client_response, chain_response = await self._chain_callback(
                self._chain_request
            )
        except (ClientError, asyncio.TimeoutError) as e:
            raise ProviderException.transport(self._provider, e) from e
        except ValueError as e:
            # Body advertised as JSON but did not decode.
            raise ProviderException.malformed(self._provider, str(e)) from e

        self.client_response = client_response
        return client_response, chain_response

    async def __aenter__(self) -> Tuple[ClientResponse, ChainResponse]:
        return await self._do_request()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self.client_response is not None and not self.client_response.closed:
            self.client_response.release()


class ChainMiddlewareClient:
    def __init__(
        self,
        client_session: ClientSession,
        provider: str,
        middleware: Sequence[RequestMiddlewareBase] | None = None,
    ) -> None:
        self._client = client_session
        self._provider = provider
        self._middleware = middleware

    def get(
        self,
        url: StrOrURL,
        raw: bool = False,
        **kwargs: Any,
    ) -> ChainMiddlewareContext:
        return self._make_request(method=hdrs.METH_GET, url=url, raw=raw, **kwargs)

    def post(
        self,
        url: StrOrURL,
        raw: bool = False,
        **kwargs: Any,
    ) -> ChainMiddlewareContext:
        return self._make_request(method=hdrs.METH_POST, url=url, raw=raw, **kwargs)

    def _make_request(
        self,
        method: str,
        url: StrOrURL,
        raw: bool = False,
        **kwargs: Any,
    ) -> ChainMiddlewareContext:
        chain_request = ChainRequest(
            method=method,
            url=url,
            headers=kwargs.pop("headers", {}),
            trace_request_ctx=kwargs.pop("trace_request_ctx", None),
            kwargs=kwargs,
            raw=raw,
        )

        end_of_line_middleware = EndOfLineChainMiddleware(
            request_func=self._client.request
        )

        chain_callback: NextChainCallbackType = end_of_line_middleware.handle

        for mw in reversed(self._middleware or []):
            chain_callback = mw.handle_gen(chain_callback)

        return ChainMiddlewareContext(
            chain_callback=chain_callback,
            chain_request=chain_request,
            provider=self._provider,
        )


def chain_middleware_for(
    metrics_client: MetricsClient,
    provider: str,
    debug: bool,
    *extra: RequestMiddlewareBase,
) -> list[RequestMiddlewareBase]:
    """The standard middleware stack: metrics first, then any extras, then debug logging."""
    middleware: list[RequestMiddlewareBase] = [MetricsMiddleware(metrics_client, provider)]
    middleware.extend(extra)
    if debug:
        middleware.append(DebugMiddleware())
    return middleware
