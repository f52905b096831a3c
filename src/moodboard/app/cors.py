from typing import Dict, Iterable, Optional
from urllib.parse import urlparse

from aiohttp import hdrs, web

from moodboard.app.config import SettingsAppKey

ALLOWED_DEBUG_HOSTS = {
    "localhost",
    "127.0.0.1",
}


def get_cors_headers(
    origin_value: Optional[str], allowed_origins: Iterable[str], debug: bool
) -> Dict[str, str]:
    """
    Return CORS headers for a request from ``origin_value``.

    Cookies carry the Pinterest session, so an allowed origin is echoed back exactly and
    credentials are allowed; the wildcard origin is never used.
    """
    headers = {
        "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
        "Access-Control-Allow-Headers": (
            "Keep-Alive, User-Agent, X-Requested-With, "
            "If-Modified-Since, Cache-Control, Content-Type"
        ),
        "Vary": "Origin",
    }

    if not origin_value:
        return headers

    parsed = urlparse(origin_value)
    base = (
        f"{parsed.scheme}://{parsed.netloc}"
        if parsed.scheme and parsed.netloc
        else origin_value
    )

    if base in set(allowed_origins) or (
        debug and parsed.hostname in ALLOWED_DEBUG_HOSTS
    ):
        headers["Access-Control-Allow-Origin"] = origin_value
        headers["Access-Control-Allow-Credentials"] = "true"

    return headers


@web.middleware
async def cors_middleware(request: web.Request, handler):
    settings = request.app[SettingsAppKey]
    cors_headers = get_cors_headers(
        request.headers.get(hdrs.ORIGIN),
        settings.allowed_origins(),
        settings.debug,
    )

    if request.method == hdrs.METH_OPTIONS and request.path.startswith("/api/"):
        return web.Response(status=204, headers=cors_headers)

    try:
        response = await handler(request)
    except web.HTTPException as e:
        e.headers.update(cors_headers)
        raise
    response.headers.update(cors_headers)
    return response
