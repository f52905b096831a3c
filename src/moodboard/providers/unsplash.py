from typing import Any, Optional

from aiohttp import ClientSession

from moodboard.app.config import Settings
from moodboard.app.metrics import MetricsClient
from moodboard.providers.chain import (
    AuthorizationMiddleware,
    ChainMiddlewareClient,
    chain_middleware_for,
)
from moodboard.providers.errors import ConfigurationException

PROVIDER = "unsplash"


async def search_photos(
    settings: Settings,
    http_session: ClientSession,
    metrics_client: MetricsClient,
    query: Optional[str],
) -> Any:
    """
    Search Unsplash photos and return the upstream payload untouched.

    An empty query falls back to ``settings.unsplash_default_query``.

    Raises:
        ConfigurationException: If UNSPLASH_ACCESS_KEY is not configured. No request is made.
        ProviderException: On transport failure, a non-2xx answer, or a body that is not JSON.
    """
    if not settings.unsplash_access_key:
        raise ConfigurationException("UNSPLASH_ACCESS_KEY")

    chain_client = ChainMiddlewareClient(
        client_session=http_session,
        provider=PROVIDER,
        middleware=chain_middleware_for(
            metrics_client,
            PROVIDER,
            settings.debug,
            AuthorizationMiddleware.client_id(settings.unsplash_access_key),
        ),
    )

    params = {
        "query": query or settings.unsplash_default_query,
        "per_page": str(settings.unsplash_per_page),
    }
    async with chain_client.get(
        f"{settings.unsplash_api_url}/search/photos", params=params
    ) as (_, chain_response):
        chain_response.raise_for_provider(PROVIDER)
        return chain_response.json_body(PROVIDER)
