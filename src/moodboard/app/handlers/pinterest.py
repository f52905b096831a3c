import logging

from aiohttp import web

from moodboard.app.config import MetricsClientAppKey, SessionAppKey, SettingsAppKey
from moodboard.app.handlers.helpers import access_token_from_request, error_response
from moodboard.providers import pinterest
from moodboard.providers.errors import ProviderException

logger = logging.getLogger(__name__)

NOT_AUTHENTICATED = "Not authenticated with Pinterest"


async def handle_pinterest_status(request: web.Request) -> web.Response:
    """
    Report whether the browser holds a Pinterest access token.

    Only the cookie is consulted unless PINTEREST_VALIDATE_STATUS is on, in which case the token
    is also checked against Pinterest.
    """
    settings = request.app[SettingsAppKey]
    access_token = access_token_from_request(request)

    if access_token is None:
        return web.json_response({"connected": False})

    if not settings.pinterest_validate_status:
        return web.json_response({"connected": True})

    connected = await pinterest.token_is_valid(
        settings,
        request.app[SessionAppKey],
        request.app[MetricsClientAppKey],
        access_token,
    )
    return web.json_response({"connected": connected})


async def handle_pinterest_boards(request: web.Request) -> web.Response:
    access_token = access_token_from_request(request)
    if access_token is None:
        return error_response(401, NOT_AUTHENTICATED)

    try:
        boards = await pinterest.list_boards(
            request.app[SettingsAppKey],
            request.app[SessionAppKey],
            request.app[MetricsClientAppKey],
            access_token,
        )
    except ProviderException as e:
        logger.error("Failed to list Pinterest boards: %s", e)
        return error_response(500, e.detail)

    return web.json_response(boards)


async def handle_pinterest_board_pins(request: web.Request) -> web.Response:
    access_token = access_token_from_request(request)
    if access_token is None:
        return error_response(401, NOT_AUTHENTICATED)

    board_id = request.match_info["board_id"]
    try:
        pins = await pinterest.list_board_pins(
            request.app[SettingsAppKey],
            request.app[SessionAppKey],
            request.app[MetricsClientAppKey],
            access_token,
            board_id,
        )
    except ProviderException as e:
        logger.error("Failed to list pins for board %s: %s", board_id, e)
        return error_response(500, e.detail)

    return web.json_response(pins)
