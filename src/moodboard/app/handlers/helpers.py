from typing import Any, Dict, Optional

from aiohttp import web

from moodboard.app.config import PINTEREST_TOKEN_COOKIE



def error_response(status: int, error: Any) -> web.Response:
    """JSON error body in the ``{"error": ...}`` shape every API endpoint uses."""
    return web.json_response({"error": error}, status=status)


def access_token_from_request(request: web.Request) -> Optional[str]:
    """The Pinterest access token cookie, or None when absent or empty."""
    access_token = request.cookies.get(PINTEREST_TOKEN_COOKIE)
    if not access_token:
        return None
    return access_token


def cookie_options(max_age: Optional[int] = None) -> Dict[str, Any]:
    """
    Attributes shared by every cookie the service sets.

    SameSite=None is required for the cookie to reach the callback inside the OAuth popup,
    and browsers only accept SameSite=None on Secure cookies.
    """
    options: Dict[str, Any] = {
        "httponly": True,
        "secure": True,
        "samesite": "None",
        "path": "/",
    }
    if max_age is not None:
        options["max_age"] = max_age
    return options


async def json_body(request: web.Request) -> Dict[str, Any]:
    """
    The request body as a JSON object.

    Raises:
        ValueError: If the body is missing, not JSON, or not an object.
    """
    body = await request.json()
    if not isinstance(body, dict):
        raise ValueError("request body must be a JSON object")
    return body
