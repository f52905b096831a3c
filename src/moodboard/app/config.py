"""
Configuration Module for the Moodboard Service

This module defines the configuration system for the moodboard service, using Pydantic
for settings validation and dependency injection through AppKeys.

The configuration follows these principles:
1. Environment-based configuration with sensible defaults
2. Strong validation and typing through Pydantic
3. Dependency injection pattern using aiohttp's app context
4. Provider credentials are read once at process start and never from request handlers

The Settings class serves as the central configuration point, loaded from environment variables
with defaults suitable for development environments. All application components access settings
and shared resources through typed AppKeys.

Key configuration areas include:
- Service identification and networking
- Pinterest OAuth client credentials and endpoints
- Unsplash search credentials and defaults
- Gemini image analysis credentials
- Monitoring and error reporting
"""

import asyncio
from typing import Final, List, Optional
from urllib.parse import urlparse
import logging

from aiohttp import web
from aiohttp import ClientSession
from google import genai
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from moodboard.app.metrics import MetricsClient
from moodboard.model.health import HealthGauge


logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings for the moodboard service.

    This class uses Pydantic's BaseSettings to automatically load values from environment
    variables, with defaults for development environments. Credentials default to unset;
    endpoints that need a missing credential fail with a configuration error instead of
    the whole service refusing to start.
    """

    # Environment and debugging settings
    debug: bool = False
    """
    Enable debug mode for verbose logging of provider requests.
    Set with DEBUG=true environment variable.
    """

    allowed_domains: str = ""
    """
    Comma-separated list of extra origins allowed for CORS, in addition to the app origin.
    Set with ALLOWED_DOMAINS environment variable.
    """

    # Network and service identification settings
    http_port: int = Field(alias="port", default=3000)
    """
    HTTP port for the service to listen on.
    Set with PORT environment variable.
    """

    app_url: str = "http://localhost:3000"
    """
    Public base URL of the application, used for the OAuth redirect URI and as the
    postMessage target origin of the OAuth popup.
    Set with APP_URL environment variable.
    """

    static_dir: Optional[str] = None
    """
    Directory holding the prebuilt client bundle. When unset, no static routes are added.
    Set with STATIC_DIR environment variable.
    """

    # Pinterest settings
    pinterest_client_id: Optional[str] = None
    """Set with PINTEREST_CLIENT_ID environment variable."""

    pinterest_client_secret: Optional[str] = None
    """Set with PINTEREST_CLIENT_SECRET environment variable."""

    pinterest_scope: str = "boards:read,pins:read"
    """OAuth scopes requested from Pinterest."""

    pinterest_authorize_url: str = "https://www.pinterest.com/oauth/"
    """Pinterest authorization page the popup is sent to."""

    pinterest_api_url: str = "https://api.pinterest.com/v5"
    """
    Base URL of the Pinterest v5 API, including the token endpoint.
    Set with PINTEREST_API_URL environment variable.
    """

    pinterest_token_max_age: int = 2592000  # 30 days
    """
    Lifetime in seconds of the access token cookie.
    Default: 2592000 (30 days)
    """

    pinterest_validate_status: bool = False
    """
    When enabled, the status endpoint confirms a present token cookie against the
    Pinterest API instead of trusting cookie presence alone.
    Set with PINTEREST_VALIDATE_STATUS environment variable.
    """

    # Unsplash settings
    unsplash_access_key: Optional[str] = None
    """Set with UNSPLASH_ACCESS_KEY environment variable."""

    unsplash_api_url: str = "https://api.unsplash.com"

    unsplash_default_query: str = "aesthetic"
    """Query used when the client sends an empty search."""

    unsplash_per_page: int = 30

    # Gemini settings
    gemini_api_key: Optional[str] = None
    """Set with GEMINI_API_KEY environment variable."""

    gemini_model: str = "gemini-2.5-flash"

    # Monitoring and error reporting
    sentry_dsn: Optional[str] = None
    """
    Sentry DSN for error reporting. Optional, no error reporting if not set.
    Set with SENTRY_DSN environment variable.
    """

    metrics_backend: str = "none"
    """
    Metrics backend, either "telegraf" or "none".
    Set with METRICS_BACKEND environment variable.
    """

    statsd_host: str = Field(alias="TELEGRAF_HOST", default="telegraf")
    """
    StatsD/Telegraf host for metrics collection.
    Set with TELEGRAF_HOST environment variable.
    """

    statsd_port: int = Field(alias="TELEGRAF_PORT", default=8125)
    """
    StatsD/Telegraf port for metrics collection.
    Set with TELEGRAF_PORT environment variable.
    """

    model_config = SettingsConfigDict(populate_by_name=True)

    @field_validator("app_url", "pinterest_api_url", "unsplash_api_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("metrics_backend", mode="after")
    @classmethod
    def check_metrics_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("telegraf", "none"):
            raise ValueError("metrics_backend must be 'telegraf' or 'none'")
        return v

    @property
    def app_origin(self) -> str:
        """The scheme, host and port of app_url, without any path."""
        parsed = urlparse(self.app_url)
        return f"{parsed.scheme}://{parsed.netloc}"

    @property
    def pinterest_redirect_uri(self) -> str:
        return f"{self.app_url}/api/auth/pinterest/callback"

    def allowed_origins(self) -> List[str]:
        extra = [
            domain.strip().rstrip("/")
            for domain in self.allowed_domains.split(",")
            if domain.strip()
        ]
        return [self.app_origin, *extra]


# Cookie names
PINTEREST_STATE_COOKIE = "pinterest_oauth_state"
"""Short-lived cookie holding the OAuth state token between initiation and callback."""

PINTEREST_TOKEN_COOKIE = "pinterest_access_token"
"""HTTP-only cookie holding the Pinterest access token."""

# Application context keys for dependency injection
SettingsAppKey: Final = web.AppKey("settings", Settings)
"""AppKey for accessing the application settings"""

SessionAppKey: Final = web.AppKey("http_session", ClientSession)
"""AppKey for accessing the shared aiohttp client session"""

HealthGaugeAppKey: Final = web.AppKey("health_gauge", HealthGauge)
"""AppKey for accessing the health monitoring gauge"""

MetricsClientAppKey: Final = web.AppKey("metrics_client", MetricsClient)
"""AppKey for accessing the metrics client"""

GenaiClientAppKey: Final = web.AppKey("genai_client", genai.Client)
"""AppKey for the Gemini client, present only when GEMINI_API_KEY is configured"""

TickHealthTaskAppKey: Final = web.AppKey("tick_health_task", asyncio.Task[None])
"""AppKey for the background task that decays the health gauge"""
