import logging
from typing import Any, Dict, Optional

from aiohttp import web
import sentry_sdk

from moodboard.app.config import (
    GenaiClientAppKey,
    MetricsClientAppKey,
    SessionAppKey,
    SettingsAppKey,
)
from moodboard.app.handlers.helpers import error_response, json_body
from moodboard.model.records import parse_image_record
from moodboard.providers import gemini
from moodboard.providers.errors import ConfigurationException, ProviderException
from moodboard.providers.images import FetchedImage, fetch_image

logger = logging.getLogger(__name__)

FETCH_FAILED = "Failed to fetch image"
NO_IMAGE_URL = "No image URL provided"
ANALYSIS_FAILED = "Failed to analyze image"


def image_url_from_body(body: Dict[str, Any]) -> Optional[str]:
    """
    The image URL named by a request body.

    Accepts either ``{"url": ...}`` or ``{"image": <pin or photo record>}``; for a record the
    URL shown on its card is used.
    """
    url = body.get("url")
    if isinstance(url, str) and url:
        return url

    image = body.get("image")
    if isinstance(image, dict):
        try:
            display_url = parse_image_record(image).card().display_url
        except ValueError:
            return None
        return display_url or None

    return None


async def _fetch(request: web.Request, url: str) -> FetchedImage:
    settings = request.app[SettingsAppKey]
    return await fetch_image(
        request.app[SessionAppKey],
        request.app[MetricsClientAppKey],
        url,
        debug=settings.debug,
    )


async def handle_proxy_image(request: web.Request) -> web.Response:
    """
    Fetch an image for the browser and return it base64 encoded.

    Every failure, including a malformed request body, is reported as the same 500 error.
    """
    try:
        body = await json_body(request)
        url = body.get("url")
        if not isinstance(url, str) or not url:
            raise ValueError("missing url")
        image = await _fetch(request, url)
    except (ValueError, ProviderException) as e:
        logger.error("Image proxy failed: %s", e)
        return error_response(500, FETCH_FAILED)

    return web.json_response(image.to_payload())


async def handle_analyze(request: web.Request) -> web.Response:
    settings = request.app[SettingsAppKey]
    genai_client = request.app.get(GenaiClientAppKey)

    if not settings.gemini_api_key or genai_client is None:
        e = ConfigurationException("GEMINI_API_KEY")
        logger.error("Image analysis unavailable: %s", e)
        return error_response(500, str(e))

    try:
        body = await json_body(request)
    except ValueError:
        return error_response(400, NO_IMAGE_URL)

    url = image_url_from_body(body)
    if url is None:
        return error_response(400, NO_IMAGE_URL)

    try:
        image = await _fetch(request, url)
    except ProviderException as e:
        logger.error("Image fetch for analysis failed: %s", e)
        return error_response(500, FETCH_FAILED)

    try:
        result = await gemini.analyze_image(genai_client, settings.gemini_model, image)
    except ProviderException as e:
        logger.error("Image analysis failed: %s detail=%s", e, e.detail)
        sentry_sdk.capture_exception(e)
        return error_response(500, ANALYSIS_FAILED)

    return web.json_response(result.model_dump(mode="json"))
