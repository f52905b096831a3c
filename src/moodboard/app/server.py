import asyncio
import contextlib
import os
import logging
from time import time
from typing import (
    Optional,
)
import jinja2
from aiohttp import web
import aiohttp_jinja2
import aiohttp
from google import genai
import sentry_sdk
from sentry_sdk.integrations.aiohttp import AioHttpIntegration

from moodboard.app.config import (
    GenaiClientAppKey,
    HealthGaugeAppKey,
    MetricsClientAppKey,
    SessionAppKey,
    Settings,
    SettingsAppKey,
    TickHealthTaskAppKey,
)
from moodboard.app.cors import cors_middleware
from moodboard.app.handlers.images import handle_analyze, handle_proxy_image
from moodboard.app.handlers.internal import (
    handle_internal_alive,
    handle_internal_ready,
)
from moodboard.app.handlers.oauth import (
    handle_pinterest_auth_url,
    handle_pinterest_callback,
)
from moodboard.app.handlers.pinterest import (
    handle_pinterest_board_pins,
    handle_pinterest_boards,
    handle_pinterest_status,
)
from moodboard.app.handlers.unsplash import handle_unsplash_search
from moodboard.app.metrics import create_metrics_client
from moodboard.app.tasks import tick_health_task
from moodboard.model.health import HealthGauge

logger = logging.getLogger(__name__)

TEMPLATES_DIR = os.path.join(os.path.dirname(__file__), "templates")


async def background_tasks(app):
    logger.info("Starting up")
    settings: Settings = app[SettingsAppKey]

    trace_config = aiohttp.TraceConfig()

    if settings.debug:

        async def on_request_start(
            session, trace_config_ctx, params: aiohttp.TraceRequestStartParams
        ):
            logger.debug("Starting request: %s %s", params.method, params.url)

        async def on_request_end(
            session, trace_config_ctx, params: aiohttp.TraceRequestEndParams
        ):
            logger.debug(
                "Ending request: %s %s -> %s",
                params.method,
                params.url,
                params.response.status,
            )

        trace_config.on_request_start.append(on_request_start)
        trace_config.on_request_end.append(on_request_end)

    app[SessionAppKey] = aiohttp.ClientSession(trace_configs=[trace_config])

    metrics_client = create_metrics_client(
        settings.metrics_backend,
        host=settings.statsd_host,
        port=settings.statsd_port,
        debug=settings.debug,
    )
    await metrics_client.connect()
    app[MetricsClientAppKey] = metrics_client

    if settings.gemini_api_key:
        app[GenaiClientAppKey] = genai.Client(api_key=settings.gemini_api_key)
    else:
        logger.warning("GEMINI_API_KEY is not configured, image analysis is disabled")

    logger.info("Startup complete")

    app[TickHealthTaskAppKey] = asyncio.create_task(tick_health_task(app))

    yield

    logger.info("Shutting down background tasks")

    app[TickHealthTaskAppKey].cancel()

    with contextlib.suppress(asyncio.exceptions.CancelledError):
        await app[TickHealthTaskAppKey]

    await app[SessionAppKey].close()
    await app[MetricsClientAppKey].close()
    if GenaiClientAppKey in app:
        await app[GenaiClientAppKey].aio.aclose()


@web.middleware
async def sentry_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception as e:
        sentry_sdk.capture_exception(e)
        await request.app[HealthGaugeAppKey].womp()
        raise e


@web.middleware
async def statsd_middleware(request: web.Request, handler):
    metrics_client = request.app[MetricsClientAppKey]
    request_method: str = request.method
    request_path = request.path

    start_time: float = time()
    response_status_code = 0

    try:
        response = await handler(request)
        response_status_code = response.status
        return response
    except web.HTTPException as e:
        response_status_code = e.status
        raise e
    except Exception as e:
        metrics_client.increment(
            "moodboard.server.request.exception",
            1,
            tag_dict={
                "exception": type(e).__name__,
                "path": request_path,
                "method": request_method,
            },
        )
        raise e
    finally:
        metrics_client.timer(
            "moodboard.server.request.time",
            time() - start_time,
            tag_dict={"path": request_path, "method": request_method},
        )
        metrics_client.increment(
            "moodboard.server.request.count",
            1,
            tag_dict={
                "path": request_path,
                "method": request_method,
                "status": response_status_code,
            },
        )


def add_static_routes(app: web.Application, static_dir: str) -> None:
    """Serve a prebuilt client bundle: ``/`` is its index.html and ``/assets`` its assets."""
    index_path = os.path.join(static_dir, "index.html")
    assets_dir = os.path.join(static_dir, "assets")

    async def handle_index(request: web.Request):
        return web.FileResponse(index_path)

    app.add_routes([web.get("/", handle_index)])
    if os.path.isdir(assets_dir):
        app.add_routes([web.static("/assets", assets_dir, append_version=True)])


async def start_web_server(settings: Optional[Settings] = None):

    if settings is None:
        settings = Settings()  # type: ignore
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            send_default_pii=False,
            integrations=[AioHttpIntegration()]
        )
    app = web.Application(
        middlewares=[cors_middleware, statsd_middleware, sentry_middleware]
    )

    app[SettingsAppKey] = settings
    app[HealthGaugeAppKey] = HealthGauge()

    app.add_routes(
        [
            web.get("/api/auth/pinterest/url", handle_pinterest_auth_url),
            web.get("/api/auth/pinterest/callback", handle_pinterest_callback),
        ]
    )

    app.add_routes(
        [
            web.get("/api/pinterest/status", handle_pinterest_status),
            web.get("/api/pinterest/boards", handle_pinterest_boards),
            web.get(
                "/api/pinterest/boards/{board_id}/pins", handle_pinterest_board_pins
            ),
            web.get("/api/unsplash/search", handle_unsplash_search),
            web.post("/api/proxy-image", handle_proxy_image),
            web.post("/api/analyze", handle_analyze),
        ]
    )

    app.add_routes(
        [
            web.get("/internal/alive", handle_internal_alive),
            web.get("/internal/ready", handle_internal_ready),
        ]
    )

    if settings.static_dir:
        if os.path.isdir(settings.static_dir):
            add_static_routes(app, settings.static_dir)
        else:
            logger.warning("STATIC_DIR %s does not exist, not serving it", settings.static_dir)

    _ = aiohttp_jinja2.setup(
        app,
        enable_async=True,
        loader=jinja2.FileSystemLoader(TEMPLATES_DIR),
    )

    app.cleanup_ctx.append(background_tasks)

    return app
