"""
Pinterest OAuth Handlers

These handlers run the browser side of the Pinterest authorization code flow:

1. ``handle_pinterest_auth_url`` issues a state token, stores it in a short-lived cookie and
   returns the Pinterest authorization URL for the client to open in a popup.
2. ``handle_pinterest_callback`` is where Pinterest sends the popup back. It checks the state,
   exchanges the code for an access token, stores the token in an HTTP-only cookie and renders
   a page that reports the outcome to the opener window with postMessage.

The callback never retries and never reveals upstream error detail to the browser. Whatever
the outcome, the state cookie is removed so a state token can only be consumed once.
"""

import logging
from typing import Optional

import aiohttp_jinja2
from aiohttp import web
import sentry_sdk

from moodboard.app.config import (
    MetricsClientAppKey,
    PINTEREST_STATE_COOKIE,
    PINTEREST_TOKEN_COOKIE,
    SessionAppKey,
    SettingsAppKey,
)
from moodboard.app.handlers.helpers import cookie_options, error_response
from moodboard.model.messages import OAuthMessage
from moodboard.providers import pinterest
from moodboard.providers.errors import ConfigurationException, ProviderException

logger = logging.getLogger(__name__)

STATE_MISMATCH = "State mismatch"
MISSING_CODE = "Missing authorization code"
EXCHANGE_FAILED = "Failed to exchange token"


async def handle_pinterest_auth_url(request: web.Request) -> web.Response:
    settings = request.app[SettingsAppKey]

    try:
        url, state = pinterest.authorization_url(settings)
    except ConfigurationException as e:
        logger.error("Cannot start Pinterest OAuth: %s", e)
        return error_response(500, str(e))

    response = web.json_response({"url": url})
    response.set_cookie(PINTEREST_STATE_COOKIE, state, **cookie_options())
    return response


async def _render_result(
    request: web.Request, message: OAuthMessage
) -> web.Response:
    settings = request.app[SettingsAppKey]
    response = await aiohttp_jinja2.render_template_async(
        "oauth_result.html",
        request,
        context={
            "message": message.to_payload(),
            "target_origin": settings.app_origin,
            "success": message.is_success,
        },
    )
    response.del_cookie(PINTEREST_STATE_COOKIE, **cookie_options())
    return response


async def handle_pinterest_callback(request: web.Request) -> web.Response:
    """
    Complete the Pinterest OAuth flow.

    The response is always an HTML page with status 200; the outcome travels in the posted
    message. On success the access token cookie is set to exactly the token Pinterest issued.
    """
    settings = request.app[SettingsAppKey]
    http_session = request.app[SessionAppKey]
    metrics_client = request.app[MetricsClientAppKey]

    error: Optional[str] = request.query.get("error")
    code: Optional[str] = request.query.get("code")
    state: Optional[str] = request.query.get("state")
    stored_state: Optional[str] = request.cookies.get(PINTEREST_STATE_COOKIE)

    if error:
        logger.info("Pinterest authorization declined: %s", error)
        return await _render_result(request, OAuthMessage.failure(error))

    if not pinterest.state_matches(state, stored_state):
        logger.warning("Pinterest OAuth state mismatch")
        metrics_client.increment(
            "moodboard.oauth.callback", 1, tag_dict={"outcome": "state_mismatch"}
        )
        return await _render_result(request, OAuthMessage.failure(STATE_MISMATCH))

    if not code:
        return await _render_result(request, OAuthMessage.failure(MISSING_CODE))

    try:
        access_token = await pinterest.exchange_code(
            settings, http_session, metrics_client, code
        )
    except (ConfigurationException, ProviderException) as e:
        logger.error(
            "Pinterest token exchange failed: %s detail=%s",
            e,
            getattr(e, "detail", None),
        )
        sentry_sdk.capture_exception(e)
        metrics_client.increment(
            "moodboard.oauth.callback", 1, tag_dict={"outcome": "exchange_failed"}
        )
        return await _render_result(request, OAuthMessage.failure(EXCHANGE_FAILED))

    metrics_client.increment(
        "moodboard.oauth.callback", 1, tag_dict={"outcome": "success"}
    )
    response = await _render_result(request, OAuthMessage.success())
    response.set_cookie(
        PINTEREST_TOKEN_COOKIE,
        access_token,
        **cookie_options(max_age=settings.pinterest_token_max_age),
    )
    return response
