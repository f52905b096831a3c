"""
Pinterest OAuth and API Client

This module implements the server side of the Pinterest OAuth 2.0 authorization code flow
and the authenticated board and pin listing calls.

The OAuth flow is implemented in two stages:
1. Initialization (`authorization_url`): Build the Pinterest authorization URL carrying the
   client id, redirect URI, scopes and a fresh state token
2. Completion (`exchange_code`): Exchange the authorization code for an access token with
   HTTP Basic client authentication

The access token is never stored server-side; callers hand it back to the browser as a cookie
and receive it again on every request.
"""

import secrets
from typing import Any, Optional, Tuple
from urllib.parse import quote, urlencode

from aiohttp import BasicAuth, ClientSession

from moodboard.app.config import Settings
from moodboard.app.metrics import MetricsClient
from moodboard.providers.chain import (
    AuthorizationMiddleware,
    ChainMiddlewareClient,
    chain_middleware_for,
)
from moodboard.providers.errors import ConfigurationException, ProviderException

PROVIDER = "pinterest"


def generate_state() -> str:
    """Generate an unguessable OAuth state token."""
    return secrets.token_urlsafe(32)


def authorization_url(settings: Settings) -> Tuple[str, str]:
    """
    Build the URL that starts the Pinterest authorization flow.

    Returns:
        Tuple[str, str]: (url, state) where state must be remembered for the callback.

    Raises:
        ConfigurationException: If PINTEREST_CLIENT_ID is not configured.
    """
    if not settings.pinterest_client_id:
        raise ConfigurationException("PINTEREST_CLIENT_ID")

    state = generate_state()
    query = urlencode(
        {
            "client_id": settings.pinterest_client_id,
            "redirect_uri": settings.pinterest_redirect_uri,
            "response_type": "code",
            "scope": settings.pinterest_scope,
            "state": state,
        }
    )
    return f"{settings.pinterest_authorize_url}?{query}", state


def state_matches(state: Optional[str], stored_state: Optional[str]) -> bool:
    """
    Check the state echoed back by Pinterest against the one issued to this browser.

    Both values must be present; an absent cookie never matches an absent query parameter.
    """
    if not state or not stored_state:
        return False
    return secrets.compare_digest(state.encode("utf-8"), stored_state.encode("utf-8"))


async def exchange_code(
    settings: Settings,
    http_session: ClientSession,
    metrics_client: MetricsClient,
    code: str,
) -> str:
    """
    Exchange an authorization code for an access token.

    Args:
        settings: Application settings
        http_session: HTTP session for making requests
        metrics_client: Metrics client for tracking requests
        code: Authorization code from the callback query

    Returns:
        str: The access token

    Raises:
        ConfigurationException: If the client id or secret is missing. No request is made.
        ProviderException: On transport failure, a non-2xx answer, or a body without
            an access token.
    """
    if not settings.pinterest_client_id:
        raise ConfigurationException("PINTEREST_CLIENT_ID")
    if not settings.pinterest_client_secret:
        raise ConfigurationException("PINTEREST_CLIENT_SECRET")

    client_auth = BasicAuth(settings.pinterest_client_id, settings.pinterest_client_secret)
    chain_client = ChainMiddlewareClient(
        client_session=http_session,
        provider=PROVIDER,
        middleware=chain_middleware_for(
            metrics_client,
            PROVIDER,
            settings.debug,
            AuthorizationMiddleware(client_auth.encode()),
        ),
    )

    data = {
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": settings.pinterest_redirect_uri,
    }
    async with chain_client.post(
        f"{settings.pinterest_api_url}/oauth/token", data=data
    ) as (_, chain_response):
        chain_response.raise_for_provider(PROVIDER)
        body = chain_response.body

    access_token = body.get("access_token") if isinstance(body, dict) else None
    if not access_token:
        raise ProviderException.malformed(PROVIDER, "no access_token in token response", body)
    return str(access_token)


def _api_client(
    settings: Settings,
    http_session: ClientSession,
    metrics_client: MetricsClient,
    access_token: str,
) -> ChainMiddlewareClient:
    return ChainMiddlewareClient(
        client_session=http_session,
        provider=PROVIDER,
        middleware=chain_middleware_for(
            metrics_client,
            PROVIDER,
            settings.debug,
            AuthorizationMiddleware.bearer(access_token),
        ),
    )


async def _get_json(
    settings: Settings,
    http_session: ClientSession,
    metrics_client: MetricsClient,
    access_token: str,
    path: str,
) -> Any:
    chain_client = _api_client(settings, http_session, metrics_client, access_token)
    async with chain_client.get(f"{settings.pinterest_api_url}{path}") as (
        _,
        chain_response,
    ):
        chain_response.raise_for_provider(PROVIDER)
        return chain_response.json_body(PROVIDER)


async def list_boards(
    settings: Settings,
    http_session: ClientSession,
    metrics_client: MetricsClient,
    access_token: str,
) -> Any:
    """List the boards of the user owning the access token, as returned by Pinterest."""
    return await _get_json(settings, http_session, metrics_client, access_token, "/boards")


async def list_board_pins(
    settings: Settings,
    http_session: ClientSession,
    metrics_client: MetricsClient,
    access_token: str,
    board_id: str,
) -> Any:
    """List the pins on one board, as returned by Pinterest."""
    return await _get_json(
        settings,
        http_session,
        metrics_client,
        access_token,
        f"/boards/{quote(board_id, safe='')}/pins",
    )


async def token_is_valid(
    settings: Settings,
    http_session: ClientSession,
    metrics_client: MetricsClient,
    access_token: str,
) -> bool:
    """
    Ask Pinterest whether the access token still works.

    Any failure, including a transport error, counts as invalid.
    """
    try:
        await _get_json(
            settings, http_session, metrics_client, access_token, "/user_account"
        )
    except ProviderException:
        return False
    return True
