import base64
from dataclasses import dataclass
from typing import Dict, Mapping

from aiohttp import ClientSession, hdrs

from moodboard.app.metrics import MetricsClient
from moodboard.providers.chain import ChainMiddlewareClient, chain_middleware_for
from moodboard.providers.errors import ProviderException

PROVIDER = "image"

DEFAULT_MIME_TYPE = "image/jpeg"


@dataclass(frozen=True)
class FetchedImage:
    data: bytes
    mime_type: str

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_payload(self) -> Dict[str, str]:
        return {"base64": self.to_base64(), "mimeType": self.mime_type}


def mime_type_from_headers(headers: Mapping[str, str]) -> str:
    """The upstream Content-Type as sent, or image/jpeg when there is none."""
    return headers.get(hdrs.CONTENT_TYPE) or DEFAULT_MIME_TYPE


async def fetch_image(
    http_session: ClientSession,
    metrics_client: MetricsClient,
    url: str,
    debug: bool = False,
) -> FetchedImage:
    """
    Fetch an arbitrary URL as bytes on behalf of the browser.

    Raises:
        ProviderException: On transport failure or a non-2xx answer.
    """
    chain_client = ChainMiddlewareClient(
        client_session=http_session,
        provider=PROVIDER,
        middleware=chain_middleware_for(metrics_client, PROVIDER, debug),
    )
    async with chain_client.get(url, raw=True) as (_, chain_response):
        chain_response.raise_for_provider(PROVIDER)
        body = chain_response.body
        mime_type = mime_type_from_headers(chain_response.headers)

    if not isinstance(body, bytes):
        raise ProviderException.malformed(PROVIDER, "image body was not binary")
    return FetchedImage(data=body, mime_type=mime_type)
