import logging

from aiohttp import web

from moodboard.app.config import MetricsClientAppKey, SessionAppKey, SettingsAppKey
from moodboard.app.handlers.helpers import error_response
from moodboard.providers import unsplash
from moodboard.providers.errors import ConfigurationException, ProviderException

logger = logging.getLogger(__name__)


async def handle_unsplash_search(request: web.Request) -> web.Response:
    try:
        photos = await unsplash.search_photos(
            request.app[SettingsAppKey],
            request.app[SessionAppKey],
            request.app[MetricsClientAppKey],
            request.query.get("query"),
        )
    except ConfigurationException as e:
        logger.error("Unsplash search unavailable: %s", e)
        return error_response(500, str(e))
    except ProviderException as e:
        logger.error("Unsplash search failed: %s", e)
        return error_response(500, e.detail)

    return web.json_response(photos)
